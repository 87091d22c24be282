"""
Utility modules for the board capture pipeline.
"""

from .geometry import Point, BoundingBox, Quadrilateral
from .images import Image, FilterBank, auto_adjust, adjust_color_controls, sharpen_luminance
from .images import luminance_matrix, reduce_noise, crop, warp_perspective
from .boundary import ContourQuadDetector, detect_board_boundary, crop_to_boundary
from .pipeline import (
    PipelineOrchestrator, PipelineResult, Stage, StageRecord, StageFailed,
    FilterChain, build_default_stages, process_image,
)
from .ocr_text import TextFragment, RecognizedDocument, RecognitionUnavailable
from .ocr_text import TesseractRecognizer, EasyOCRRecognizer, create_recognizer, recognize_text
from .layout import TextLine, TextParagraph, StructuredDocument, structure, structure_text
from .metrics import DocumentMetrics, compute_metrics, word_count, reading_seconds
from .io import load_image, save_image, save_json, ensure_dir
from .assembler import BoardCaptureAssembler, BoardCapture
from .export import MarkdownExporter, TextExporter, DocumentExporter

__all__ = [
    # Geometry
    "Point", "BoundingBox", "Quadrilateral",
    # Images
    "Image", "FilterBank", "auto_adjust", "adjust_color_controls", "sharpen_luminance",
    "luminance_matrix", "reduce_noise", "crop", "warp_perspective",
    # Boundary
    "ContourQuadDetector", "detect_board_boundary", "crop_to_boundary",
    # Pipeline
    "PipelineOrchestrator", "PipelineResult", "Stage", "StageRecord", "StageFailed",
    "FilterChain", "build_default_stages", "process_image",
    # OCR
    "TextFragment", "RecognizedDocument", "RecognitionUnavailable",
    "TesseractRecognizer", "EasyOCRRecognizer", "create_recognizer", "recognize_text",
    # Layout
    "TextLine", "TextParagraph", "StructuredDocument", "structure", "structure_text",
    # Metrics
    "DocumentMetrics", "compute_metrics", "word_count", "reading_seconds",
    # IO
    "load_image", "save_image", "save_json", "ensure_dir",
    # Assembly
    "BoardCaptureAssembler", "BoardCapture",
    # Export
    "MarkdownExporter", "TextExporter", "DocumentExporter",
]
