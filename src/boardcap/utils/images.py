"""
Image value type and the filter bank used by the board enhancement pipeline.

Provides:
- Immutable Image wrapper around OpenCV/numpy arrays
- Enhancement filters (auto-adjust, color controls, luminance sharpening)
- Text optimization filters (luminance matrix, noise reduction)
- Perspective warp and cropping
- A named filter bank that reports failures as None
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

import numpy as np

from .geometry import BoundingBox, Quadrilateral

logger = logging.getLogger(__name__)


# ============================================================================
# Constants
# ============================================================================

# Pipeline-constant coefficients; not user-configurable.
CONTRAST_FACTOR = 1.1
SATURATION = 0.0
SHARPEN_STRENGTH = 0.5

# Rec. 709 luma weights in (R, G, B) order.
LUMA_WEIGHTS = (0.2126, 0.7152, 0.0722)

DEFAULT_NOISE_LEVEL = 0.02
DEFAULT_NOISE_SHARPNESS = 0.4


# ============================================================================
# Image Value
# ============================================================================

@dataclass(frozen=True, eq=False)
class Image:
    """
    Immutable raster image.

    Wraps a uint8 numpy array in OpenCV layout: (H, W) gray, (H, W, 3) BGR
    or (H, W, 4) BGRA. The array is copied on construction and marked
    read-only, so stages always produce new images.
    """
    pixels: np.ndarray

    def __post_init__(self):
        pixels = np.array(self.pixels, dtype=np.uint8, copy=True)
        if pixels.ndim == 3 and pixels.shape[2] == 1:
            pixels = pixels[:, :, 0].copy()
        if pixels.ndim not in (2, 3) or (pixels.ndim == 3 and pixels.shape[2] not in (3, 4)):
            raise ValueError(f"Unexpected image shape: {pixels.shape}")
        pixels.setflags(write=False)
        object.__setattr__(self, "pixels", pixels)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    @property
    def channels(self) -> int:
        return 1 if self.pixels.ndim == 2 else int(self.pixels.shape[2])

    @property
    def is_grayscale(self) -> bool:
        return self.channels == 1

    def to_array(self) -> np.ndarray:
        """Return a writable copy of the pixel data."""
        return self.pixels.copy()

    def same_pixels(self, other: 'Image') -> bool:
        return (
            self.pixels.shape == other.pixels.shape and
            bool(np.array_equal(self.pixels, other.pixels))
        )


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """
    Convert image to grayscale if it's color.

    Args:
        image: Input image (BGR, BGRA or grayscale)

    Returns:
        Grayscale image
    """
    import cv2

    if len(image.shape) == 2:
        return image
    elif len(image.shape) == 3:
        if image.shape[2] == 3:
            return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        elif image.shape[2] == 4:
            return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
        elif image.shape[2] == 1:
            return image.squeeze()

    raise ValueError(f"Unexpected image shape: {image.shape}")


def _drop_alpha(pixels: np.ndarray) -> np.ndarray:
    if pixels.ndim == 3 and pixels.shape[2] == 4:
        return pixels[:, :, :3]
    return pixels


def _luma(pixels: np.ndarray) -> np.ndarray:
    """Float luminance plane using Rec. 709 weights."""
    if pixels.ndim == 2:
        return pixels.astype(np.float32)
    r_w, g_w, b_w = LUMA_WEIGHTS
    bgr = _drop_alpha(pixels).astype(np.float32)
    return bgr[:, :, 2] * r_w + bgr[:, :, 1] * g_w + bgr[:, :, 0] * b_w


def _to_uint8(values: np.ndarray) -> np.ndarray:
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


# ============================================================================
# Enhancement Filters
# ============================================================================

def auto_adjust(
    image: Image,
    clip_limit: float = 2.0,
    grid_size: int = 8
) -> Image:
    """
    Automatic level adjustment using CLAHE on the luminance channel.

    Args:
        image: Input image
        clip_limit: Threshold for contrast limiting
        grid_size: Size of grid for histogram equalization

    Returns:
        Adjusted image with the same shape
    """
    import cv2

    clahe = cv2.createCLAHE(
        clipLimit=clip_limit,
        tileGridSize=(grid_size, grid_size)
    )

    if image.is_grayscale:
        return Image(clahe.apply(image.pixels))

    bgr = np.ascontiguousarray(_drop_alpha(image.pixels))
    lab = cv2.cvtColor(bgr, cv2.COLOR_BGR2LAB)
    l, a, b = cv2.split(lab)
    l = clahe.apply(l)
    enhanced = cv2.cvtColor(cv2.merge([l, a, b]), cv2.COLOR_LAB2BGR)

    if image.channels == 4:
        enhanced = np.dstack([enhanced, image.pixels[:, :, 3]])

    logger.debug(f"Applied auto-adjust (clip={clip_limit})")
    return Image(enhanced)


def adjust_color_controls(
    image: Image,
    contrast: float = CONTRAST_FACTOR,
    saturation: float = SATURATION
) -> Image:
    """
    Scale contrast around mid-gray and blend colors toward luminance.

    A saturation of 0 removes all color so that marker strokes stand out
    from colored distractions on the board.
    """
    if contrast < 0 or saturation < 0:
        raise ValueError("contrast and saturation must be non-negative")

    if image.is_grayscale:
        values = image.pixels.astype(np.float32)
        return Image(_to_uint8((values - 127.5) * contrast + 127.5))

    bgr = _drop_alpha(image.pixels).astype(np.float32)
    luma = _luma(image.pixels)[:, :, np.newaxis]
    blended = luma + saturation * (bgr - luma)
    adjusted = _to_uint8((blended - 127.5) * contrast + 127.5)

    if image.channels == 4:
        adjusted = np.dstack([adjusted, image.pixels[:, :, 3]])

    logger.debug(f"Applied color controls (contrast={contrast}, saturation={saturation})")
    return Image(adjusted)


def sharpen_luminance(
    image: Image,
    strength: float = SHARPEN_STRENGTH,
    sigma: float = 1.5
) -> Image:
    """
    Unsharp mask applied to luminance only, leaving chroma untouched.

    Args:
        image: Input image
        strength: Amount of high-frequency detail added back
        sigma: Gaussian blur radius used to isolate detail

    Returns:
        Sharpened image
    """
    import cv2

    if strength < 0:
        raise ValueError("strength must be non-negative")

    if image.is_grayscale:
        plane = image.pixels.astype(np.float32)
        blurred = cv2.GaussianBlur(plane, (0, 0), sigma)
        return Image(_to_uint8(plane + strength * (plane - blurred)))

    bgr = np.ascontiguousarray(_drop_alpha(image.pixels))
    ycrcb = cv2.cvtColor(bgr, cv2.COLOR_BGR2YCrCb)
    y = ycrcb[:, :, 0].astype(np.float32)
    blurred = cv2.GaussianBlur(y, (0, 0), sigma)
    ycrcb[:, :, 0] = _to_uint8(y + strength * (y - blurred))
    sharpened = cv2.cvtColor(ycrcb, cv2.COLOR_YCrCb2BGR)

    if image.channels == 4:
        sharpened = np.dstack([sharpened, image.pixels[:, :, 3]])

    logger.debug(f"Applied luminance sharpening (strength={strength})")
    return Image(sharpened)


# ============================================================================
# Text Optimization Filters
# ============================================================================

def luminance_matrix(image: Image) -> Image:
    """
    Collapse the image to a single luminance channel.

    Uses 0.2126 R + 0.7152 G + 0.0722 B. Any alpha channel is dropped, so
    the result is fully opaque.
    """
    if image.is_grayscale:
        return image
    return Image(_to_uint8(_luma(image.pixels)))


def reduce_noise(
    image: Image,
    noise_level: float = DEFAULT_NOISE_LEVEL,
    sharpness: float = DEFAULT_NOISE_SHARPNESS,
    template_window_size: int = 7,
    search_window_size: int = 21
) -> Image:
    """
    Light Non-local Means denoising followed by a mild sharpening pass.

    Args:
        image: Input image
        noise_level: Expected noise as a fraction of full scale (0-1)
        sharpness: Detail restored after denoising, protects thin strokes
        template_window_size: Size of template patch (should be odd)
        search_window_size: Size of search area (should be odd)

    Returns:
        Denoised image
    """
    import cv2

    if not 0 <= noise_level <= 1:
        raise ValueError(f"noise_level must be within [0, 1], got {noise_level}")

    strength = max(1.0, noise_level * 255.0)
    pixels = np.ascontiguousarray(_drop_alpha(image.pixels))

    if pixels.ndim == 2:
        denoised = cv2.fastNlMeansDenoising(
            pixels, None, strength, template_window_size, search_window_size
        )
    else:
        denoised = cv2.fastNlMeansDenoisingColored(
            pixels, None, strength, strength, template_window_size, search_window_size
        )

    if sharpness > 0:
        plane = denoised.astype(np.float32)
        blurred = cv2.GaussianBlur(plane, (0, 0), 1.0)
        denoised = _to_uint8(plane + sharpness * (plane - blurred))

    logger.debug(f"Applied noise reduction (h={strength:.1f}, sharpness={sharpness})")
    return Image(denoised)


# ============================================================================
# Geometry Transforms
# ============================================================================

def crop(image: Image, box: BoundingBox) -> Image:
    """
    Crop to an axis-aligned box, clipped to the image bounds.

    Raises:
        ValueError: If the clipped box is empty
    """
    clipped = box.clipped(image.width, image.height)
    x1, y1 = int(np.floor(clipped.x1)), int(np.floor(clipped.y1))
    x2, y2 = int(np.ceil(clipped.x2)), int(np.ceil(clipped.y2))

    if x2 - x1 < 1 or y2 - y1 < 1:
        raise ValueError(f"Crop box {box.to_tuple()} is empty inside {image.size}")

    cropped = image.pixels[y1:y2, x1:x2]
    logger.debug(f"Cropped image: {image.size} -> {(x2 - x1, y2 - y1)}")
    return Image(cropped)


def warp_perspective(image: Image, quad: Quadrilateral) -> Image:
    """
    Map a quadrilateral onto the image's own full-extent rectangle.

    Output dimensions equal the input dimensions.
    """
    import cv2

    w, h = image.width, image.height
    src = np.array(
        [
            quad.top_left.to_tuple(),
            quad.top_right.to_tuple(),
            quad.bottom_right.to_tuple(),
            quad.bottom_left.to_tuple(),
        ],
        dtype=np.float32
    )
    dst = np.array(
        [[0, 0], [w - 1, 0], [w - 1, h - 1], [0, h - 1]],
        dtype=np.float32
    )

    matrix = cv2.getPerspectiveTransform(src, dst)
    border = 255 if image.is_grayscale else (255,) * image.channels
    warped = cv2.warpPerspective(
        image.pixels,
        matrix,
        (w, h),
        flags=cv2.INTER_CUBIC,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=border
    )

    logger.debug(f"Warped quadrilateral {quad.to_list()} onto {w}x{h}")
    return Image(warped)


# ============================================================================
# Filter Bank
# ============================================================================

FilterFn = Callable[..., Image]


class FilterBank:
    """
    Named enhancement filters.

    `apply` never raises for filter errors: a filter that cannot produce
    output yields None and the caller decides how to degrade.
    """

    DEFAULT_FILTERS: Dict[str, FilterFn] = {
        "auto_adjust": auto_adjust,
        "color_controls": adjust_color_controls,
        "sharpen_luminance": sharpen_luminance,
        "luminance_matrix": luminance_matrix,
        "noise_reduction": reduce_noise,
    }

    def __init__(self, filters: Optional[Dict[str, FilterFn]] = None):
        self._filters = dict(self.DEFAULT_FILTERS)
        if filters:
            self._filters.update(filters)

    @property
    def names(self):
        return sorted(self._filters)

    def register(self, name: str, fn: FilterFn):
        self._filters[name] = fn

    def apply(self, image: Image, name: str, **params) -> Optional[Image]:
        """
        Apply a named filter.

        Returns:
            The filtered image, or None if the filter is unknown or failed
        """
        import cv2

        fn = self._filters.get(name)
        if fn is None:
            logger.warning(f"Unknown filter: {name}")
            return None

        try:
            return fn(image, **params)
        except (cv2.error, ValueError, TypeError) as e:
            logger.debug(f"Filter {name} failed: {e}")
            return None
