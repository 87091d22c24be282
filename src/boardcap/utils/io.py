"""
I/O utilities for the board capture pipeline.

Handles:
- Image loading and saving
- JSON serialization
- Directory management
"""

import json
import logging
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, List, Union

import numpy as np

from .images import Image

logger = logging.getLogger(__name__)


IMAGE_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.tiff', '.tif', '.bmp', '.webp')


# ============================================================================
# Image Loading
# ============================================================================

def load_image(
    image_path: Union[str, Path],
    grayscale: bool = False
) -> Image:
    """
    Load an image from file.

    Args:
        image_path: Path to the image file
        grayscale: If True, load as grayscale

    Returns:
        Image (BGR pixels if color)

    Raises:
        FileNotFoundError: If image file doesn't exist
        ValueError: If image cannot be decoded
    """
    import cv2

    image_path = Path(image_path)
    if not image_path.exists():
        raise FileNotFoundError(f"Image file not found: {image_path}")

    flag = cv2.IMREAD_GRAYSCALE if grayscale else cv2.IMREAD_COLOR
    img = cv2.imread(str(image_path), flag)

    if img is None:
        raise ValueError(f"Could not decode image: {image_path}")

    logger.debug(f"Loaded image: {image_path}, shape: {img.shape}")
    return Image(img)


def list_images(
    folder_path: Union[str, Path],
    extensions: tuple = IMAGE_EXTENSIONS
) -> List[Path]:
    """
    List image files in a folder, sorted by name.

    Raises:
        NotADirectoryError: If the path is not a directory
    """
    folder_path = Path(folder_path)
    if not folder_path.is_dir():
        raise NotADirectoryError(f"Not a directory: {folder_path}")

    image_files = sorted(
        f for f in folder_path.iterdir()
        if f.suffix.lower() in extensions
    )
    logger.info(f"Found {len(image_files)} images in {folder_path}")
    return image_files


def save_image(
    image: Image,
    output_path: Union[str, Path],
    quality: int = 95
) -> Path:
    """
    Save an image to file.

    Args:
        image: Image to write
        output_path: Path to save the image
        quality: JPEG quality (1-100)

    Returns:
        Path to the saved image
    """
    import cv2

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    if output_path.suffix.lower() in ('.jpg', '.jpeg'):
        ok = cv2.imwrite(str(output_path), image.pixels, [cv2.IMWRITE_JPEG_QUALITY, quality])
    else:
        ok = cv2.imwrite(str(output_path), image.pixels)

    if not ok:
        raise ValueError(f"Could not encode image: {output_path}")

    logger.debug(f"Saved image: {output_path}")
    return output_path


# ============================================================================
# JSON Serialization
# ============================================================================

class EnhancedJSONEncoder(json.JSONEncoder):
    """JSON encoder that handles numpy values, datetimes and dataclasses."""

    def default(self, obj):
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        if hasattr(obj, 'to_dict'):
            return obj.to_dict()
        if hasattr(obj, '__dataclass_fields__'):
            return asdict(obj)
        if isinstance(obj, Path):
            return str(obj)
        return super().default(obj)


def save_json(
    data: Any,
    output_path: Union[str, Path],
    indent: int = 2,
    ensure_ascii: bool = False
) -> Path:
    """
    Save data to a JSON file.

    Args:
        data: Data to serialize (dict, list, dataclass, etc.)
        output_path: Path to save the JSON file
        indent: Indentation level for pretty printing
        ensure_ascii: If True, escape non-ASCII characters

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=indent, ensure_ascii=ensure_ascii, cls=EnhancedJSONEncoder)

    logger.debug(f"Saved JSON: {output_path}")
    return output_path


def load_json(json_path: Union[str, Path]) -> Any:
    """
    Load data from a JSON file.

    Raises:
        FileNotFoundError: If the file doesn't exist
    """
    json_path = Path(json_path)
    if not json_path.exists():
        raise FileNotFoundError(f"JSON file not found: {json_path}")

    with open(json_path, 'r', encoding='utf-8') as f:
        return json.load(f)


# ============================================================================
# Directory Management
# ============================================================================

def ensure_dir(path: Union[str, Path]) -> Path:
    """Ensure a directory exists, creating it if necessary."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path
