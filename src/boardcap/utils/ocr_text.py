"""
Text recognition for board captures.

Provides:
- TextFragment / RecognizedDocument data types
- Tesseract engine (baseline) and EasyOCR engine (optional)
- recognize_text(), which turns engine output into a RecognizedDocument
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .geometry import BoundingBox
from .images import Image, to_grayscale

logger = logging.getLogger(__name__)


# Estimated glyph size relative to the box height
FONT_SIZE_RATIO = 0.8

DEFAULT_LANGUAGE = "eng"
DEFAULT_MIN_TEXT_HEIGHT_FRACTION = 0.01


class RecognitionUnavailable(Exception):
    """The recognition engine returned no text fragments."""


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class TextFragment:
    """One recognized text unit with its box and confidence."""
    text: str
    confidence: float
    bbox: BoundingBox
    estimated_font_size: float = 0.0

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be within [0, 1], got {self.confidence}")

    @property
    def top(self) -> float:
        return self.bbox.y1

    @property
    def left(self) -> float:
        return self.bbox.x1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "confidence": round(self.confidence, 4),
            "bbox": self.bbox.to_tuple(),
            "font_size": round(self.estimated_font_size, 2),
        }


@dataclass(frozen=True)
class RecognizedDocument:
    """Fragments in reading order plus the joined text."""
    full_text: str
    fragments: Tuple[TextFragment, ...] = ()
    overall_confidence: float = 0.0
    captured_at: datetime = field(default_factory=datetime.now)

    @property
    def is_empty(self) -> bool:
        return not self.fragments

    def to_dict(self) -> Dict[str, Any]:
        return {
            "full_text": self.full_text,
            "overall_confidence": round(self.overall_confidence, 4),
            "captured_at": self.captured_at.isoformat(),
            "fragments": [f.to_dict() for f in self.fragments],
        }


def make_fragment(
    text: str,
    confidence: float,
    bbox: Tuple[float, float, float, float]
) -> TextFragment:
    """Build a fragment from (x1, y1, x2, y2), clamping the confidence."""
    box = BoundingBox(*bbox)
    return TextFragment(
        text=text,
        confidence=min(max(float(confidence), 0.0), 1.0),
        bbox=box,
        estimated_font_size=box.height * FONT_SIZE_RATIO,
    )


# ============================================================================
# Tesseract Engine
# ============================================================================

class TesseractRecognizer:
    """Word-level OCR using Tesseract."""

    def __init__(self, config: str = "--oem 3 --psm 11"):
        try:
            import pytesseract
            self.pytesseract = pytesseract

            # Test that tesseract is installed
            pytesseract.get_tesseract_version()

        except Exception as e:
            raise ImportError(
                f"Tesseract not available: {e}\n"
                "Install with: pip install pytesseract\n"
                "Also install Tesseract: https://github.com/tesseract-ocr/tesseract"
            )

        self.config = config

    def recognize(
        self,
        image: Image,
        language: str = DEFAULT_LANGUAGE,
        min_text_height_fraction: float = DEFAULT_MIN_TEXT_HEIGHT_FRACTION
    ) -> Optional[List[TextFragment]]:
        """Recognize words; returns None if Tesseract fails."""
        try:
            data = self.pytesseract.image_to_data(
                to_grayscale(image.pixels),
                lang=language,
                config=self.config,
                output_type=self.pytesseract.Output.DICT
            )
        except Exception as e:
            logger.error(f"Tesseract error: {e}")
            return None

        return fragments_from_tesseract_data(data, image.height, min_text_height_fraction)


def fragments_from_tesseract_data(
    data: Dict[str, List[Any]],
    image_height: int,
    min_text_height_fraction: float = DEFAULT_MIN_TEXT_HEIGHT_FRACTION
) -> List[TextFragment]:
    """
    Convert a pytesseract `image_to_data` dict into fragments.

    Entries with negative confidence (non-word levels) or empty text are
    skipped, as are boxes shorter than the minimum text height.
    """
    min_height = image_height * min_text_height_fraction
    fragments = []

    for i in range(len(data['text'])):
        text = str(data['text'][i]).strip()
        try:
            conf = float(data['conf'][i])
        except (TypeError, ValueError):
            continue

        if conf < 0 or not text:
            continue

        left, top = float(data['left'][i]), float(data['top'][i])
        width, height = float(data['width'][i]), float(data['height'][i])
        if height < min_height:
            continue

        fragments.append(make_fragment(
            text, conf / 100.0, (left, top, left + width, top + height)
        ))

    return fragments


# ============================================================================
# EasyOCR Engine
# ============================================================================

class EasyOCRRecognizer:
    """OCR using EasyOCR."""

    def __init__(
        self,
        language: str = DEFAULT_LANGUAGE,
        use_gpu: bool = False
    ):
        try:
            import easyocr

            # Map language codes
            lang_map = {"eng": "en", "chi_sim": "ch_sim", "chi_tra": "ch_tra"}
            easy_lang = lang_map.get(language, language)

            self.reader = easyocr.Reader(
                [easy_lang],
                gpu=use_gpu,
                verbose=False
            )
        except ImportError:
            raise ImportError(
                "EasyOCR not available. Install with: pip install easyocr"
            )

        self.language = language

    def recognize(
        self,
        image: Image,
        language: str = DEFAULT_LANGUAGE,
        min_text_height_fraction: float = DEFAULT_MIN_TEXT_HEIGHT_FRACTION
    ) -> Optional[List[TextFragment]]:
        """Recognize text lines; the reader's language is fixed at construction."""
        if language != self.language:
            logger.warning(
                f"EasyOCR reader was built for {self.language}, ignoring {language}"
            )

        try:
            result = self.reader.readtext(image.to_array())
        except Exception as e:
            logger.error(f"EasyOCR error: {e}")
            return None

        min_height = image.height * min_text_height_fraction
        fragments = []
        for bbox_points, text, conf in result:
            text = str(text).strip()
            if not text:
                continue
            # Convert polygon to bounding box
            xs = [float(p[0]) for p in bbox_points]
            ys = [float(p[1]) for p in bbox_points]
            if max(ys) - min(ys) < min_height:
                continue
            fragments.append(make_fragment(text, conf, (min(xs), min(ys), max(xs), max(ys))))

        return fragments


def create_recognizer(engine_name: str, language: str = DEFAULT_LANGUAGE, **kwargs):
    """Create an OCR engine instance."""
    if engine_name == "tesseract":
        return TesseractRecognizer(**kwargs)
    elif engine_name == "easyocr":
        return EasyOCRRecognizer(language=language, **kwargs)
    else:
        raise ValueError(f"Unknown OCR engine: {engine_name}")


# ============================================================================
# Recognition Entry Point
# ============================================================================

def recognize_text(
    image: Image,
    recognizer,
    language: str = DEFAULT_LANGUAGE,
    min_text_height_fraction: float = DEFAULT_MIN_TEXT_HEIGHT_FRACTION,
    captured_at: Optional[datetime] = None,
    line_threshold: Optional[float] = None
) -> RecognizedDocument:
    """
    Run a recognizer and assemble its fragments in reading order.

    Args:
        image: Enhanced image
        recognizer: Object with a `recognize(image, language,
            min_text_height_fraction)` method
        language: Recognition language (single language only)
        min_text_height_fraction: Minimum text height relative to the image
        captured_at: Capture time; defaults to now
        line_threshold: Row tolerance for the reading order; must match the
            threshold used to group lines later

    Raises:
        RecognitionUnavailable: If the engine failed or found no text
    """
    from .layout import LINE_THRESHOLD, build_recognized_document

    if line_threshold is None:
        line_threshold = LINE_THRESHOLD

    fragments = recognizer.recognize(
        image,
        language=language,
        min_text_height_fraction=min_text_height_fraction
    )
    if not fragments:
        raise RecognitionUnavailable("No text fragments recognized")

    logger.info(f"Recognized {len(fragments)} fragment(s)")
    return build_recognized_document(
        fragments, captured_at=captured_at, line_threshold=line_threshold
    )
