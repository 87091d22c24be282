"""
Configuration and constants for the board capture pipeline.

This module provides:
- Boundary detection limits
- Text optimization (denoise) settings
- OCR engine settings
- Layout clustering thresholds
- Environment overrides
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger("boardcap")


# ============================================================================
# Processing Configuration
# ============================================================================

@dataclass
class BoundaryConfig:
    """Board boundary detection limits."""
    min_aspect: float = 0.5
    max_aspect: float = 2.0
    min_area_fraction: float = 0.3  # Board must cover 30% of the capture


@dataclass
class TextOptimizationConfig:
    """Final denoise pass before recognition."""
    noise_level: float = 0.02
    sharpness: float = 0.4


@dataclass
class OCRConfig:
    """OCR configuration."""
    # Primary OCR engine: tesseract, easyocr
    primary_engine: str = "tesseract"
    language: str = "eng"
    tesseract_config: str = "--oem 3 --psm 11"  # Sparse text suits boards
    # Ignore text shorter than this fraction of the image height
    min_text_height_fraction: float = 0.01
    use_gpu: bool = False
    # Confidence thresholds
    high_confidence_threshold: float = 0.80
    low_confidence_threshold: float = 0.65


@dataclass
class LayoutConfig:
    """Line/paragraph clustering configuration."""
    line_threshold: float = 20.0
    paragraph_threshold: float = 50.0
    words_per_minute: float = 200.0


@dataclass
class PipelineConfig:
    """Main pipeline configuration."""
    boundary: BoundaryConfig = field(default_factory=BoundaryConfig)
    text_optimization: TextOptimizationConfig = field(default_factory=TextOptimizationConfig)
    ocr: OCRConfig = field(default_factory=OCRConfig)
    layout: LayoutConfig = field(default_factory=LayoutConfig)

    # Global settings
    preprocessing_enabled: bool = True
    # Thread board corners through to perspective correction; when False the
    # rectification stage only sees the bounding-rectangle crop and is skipped
    preserve_corners: bool = True
    debug_mode: bool = False


# ============================================================================
# Default Configuration Instance
# ============================================================================

def _env_flag(name: str) -> Optional[bool]:
    value = os.environ.get(name)
    if value is None:
        return None
    return value.strip().lower() in ("1", "true", "yes", "on")


def get_config() -> PipelineConfig:
    """Get the default pipeline configuration with environment overrides."""
    config = PipelineConfig()

    if _env_flag("BOARDCAP_DEBUG"):
        config.debug_mode = True

    preserve = _env_flag("BOARDCAP_PRESERVE_CORNERS")
    if preserve is not None:
        config.preserve_corners = preserve

    engine = os.environ.get("BOARDCAP_OCR_ENGINE")
    if engine:
        config.ocr.primary_engine = engine

    language = os.environ.get("BOARDCAP_LANGUAGE")
    if language:
        config.ocr.language = language

    return config


# ============================================================================
# JSON Schema Version
# ============================================================================

JSON_SCHEMA_VERSION = "1.0"
