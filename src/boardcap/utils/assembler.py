"""
Board capture assembler.

Coordinates:
- Image enhancement pipeline
- Text recognition
- Line/paragraph structuring and metrics
"""

import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

from ..config import JSON_SCHEMA_VERSION, PipelineConfig
from .images import FilterBank, Image
from .io import save_image
from .layout import StructuredDocument, empty_document, structure_document, structure_text
from .metrics import DocumentMetrics, compute_metrics
from .ocr_text import RecognitionUnavailable, TextFragment, create_recognizer, recognize_text
from .pipeline import PipelineResult, ProgressCallback, build_default_stages, process_image

logger = logging.getLogger(__name__)


@dataclass
class BoardCapture:
    """Enhanced image plus the structured text recognized in it."""
    pipeline: PipelineResult
    document: StructuredDocument
    metrics: DocumentMetrics
    source_file: str = ""
    capture_id: str = ""
    processing_time_seconds: float = 0.0
    schema_version: str = JSON_SCHEMA_VERSION

    def __post_init__(self):
        if not self.capture_id:
            self.capture_id = str(uuid.uuid4())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "capture_id": self.capture_id,
            "schema_version": self.schema_version,
            "source_file": self.source_file,
            "pipeline": self.pipeline.to_dict(),
            "document": self.document.to_dict(),
            "metrics": self.metrics.to_dict(),
            "processing_time_seconds": round(self.processing_time_seconds, 2),
        }


class BoardCaptureAssembler:
    """
    Runs a capture end to end: enhance, recognize, structure.

    Components are created lazily; pass explicit detector, filter bank or
    recognizer instances to replace the defaults. In debug mode, with an
    output_dir, each applied stage's output is written under output_dir/debug.
    """

    def __init__(
        self,
        config=None,
        detector=None,
        filter_bank: Optional[FilterBank] = None,
        recognizer=None,
        output_dir: Optional[Union[str, Path]] = None
    ):
        self.config = config or PipelineConfig()
        self.detector = detector
        self.filter_bank = filter_bank
        self._recognizer = recognizer
        self.output_dir = Path(output_dir) if output_dir else None

    @property
    def recognizer(self):
        if self._recognizer is None:
            ocr = self.config.ocr
            if ocr.primary_engine == "tesseract":
                self._recognizer = create_recognizer("tesseract", config=ocr.tesseract_config)
            else:
                self._recognizer = create_recognizer(
                    ocr.primary_engine, language=ocr.language, use_gpu=ocr.use_gpu
                )
            logger.info(f"Initialized OCR engine: {ocr.primary_engine}")
        return self._recognizer

    def build_stages(self):
        if not self.config.preprocessing_enabled:
            return []
        return build_default_stages(
            self.config,
            detector=self.detector,
            bank=self.filter_bank or FilterBank()
        )

    def process_image(
        self,
        image: Image,
        progress: Optional[ProgressCallback] = None
    ) -> PipelineResult:
        """Enhance a raw capture."""
        return process_image(
            image,
            stages=self.build_stages(),
            progress=progress,
            config=self.config
        )

    def structure_text(
        self,
        fragments: Iterable[TextFragment],
        captured_at: Optional[datetime] = None
    ) -> StructuredDocument:
        """Cluster raw fragments using the configured thresholds."""
        layout = self.config.layout
        return structure_text(
            fragments,
            captured_at=captured_at,
            line_threshold=layout.line_threshold,
            paragraph_threshold=layout.paragraph_threshold,
            words_per_minute=layout.words_per_minute
        )

    def recognize(
        self,
        image: Image,
        captured_at: Optional[datetime] = None
    ) -> StructuredDocument:
        """
        Recognize and structure the text of an enhanced image.

        Returns an empty document when recognition yields nothing.
        """
        ocr = self.config.ocr
        layout = self.config.layout

        try:
            recognized = recognize_text(
                image,
                self.recognizer,
                language=ocr.language,
                min_text_height_fraction=ocr.min_text_height_fraction,
                captured_at=captured_at,
                line_threshold=layout.line_threshold
            )
        except RecognitionUnavailable as e:
            logger.warning(f"Recognition unavailable: {e}")
            return empty_document(captured_at)

        return structure_document(
            recognized,
            line_threshold=layout.line_threshold,
            paragraph_threshold=layout.paragraph_threshold,
            words_per_minute=layout.words_per_minute
        )

    def capture(
        self,
        image: Image,
        progress: Optional[ProgressCallback] = None,
        source_file: str = ""
    ) -> BoardCapture:
        """
        Run the full capture flow on one image.

        Args:
            image: Raw capture
            progress: Optional pipeline progress callback
            source_file: Where the image came from, for reporting

        Returns:
            BoardCapture with pipeline result, document and metrics
        """
        start_time = time.time()

        pipeline_result = self.process_image(image, progress=progress)
        if self.config.debug_mode and self.output_dir:
            self._save_debug_images(pipeline_result, Path(source_file).stem or "capture")

        document = self.recognize(
            pipeline_result.enhanced_image,
            captured_at=pipeline_result.timestamp
        )
        metrics = compute_metrics(
            document,
            high_threshold=self.config.ocr.high_confidence_threshold,
            low_threshold=self.config.ocr.low_confidence_threshold
        )

        elapsed = time.time() - start_time
        logger.info(
            f"Captured {metrics.word_count} word(s) in {metrics.paragraph_count} "
            f"paragraph(s) ({elapsed:.2f}s)"
        )

        return BoardCapture(
            pipeline=pipeline_result,
            document=document,
            metrics=metrics,
            source_file=source_file,
            processing_time_seconds=elapsed,
        )

    def _save_debug_images(self, result: PipelineResult, stem: str):
        """Save each applied stage's output for inspection."""
        debug_dir = self.output_dir / "debug"
        debug_dir.mkdir(parents=True, exist_ok=True)

        for index, (name, stage_image) in enumerate(result.intermediates, start=1):
            debug_path = save_image(stage_image, debug_dir / f"{stem}_{index:02d}_{name}.png")
            logger.debug(f"Saved debug image: {debug_path}")
