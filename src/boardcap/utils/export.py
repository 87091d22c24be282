"""
Export module for structured board documents.

Provides:
- Markdown export
- Plain-text export
- JSON export
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from .io import save_json

logger = logging.getLogger(__name__)


class MarkdownExporter:
    """Export a StructuredDocument to Markdown."""

    def __init__(
        self,
        title: str = "Board Notes",
        include_metrics: bool = True,
        flag_low_confidence: Optional[float] = 0.65
    ):
        self.title = title
        self.include_metrics = include_metrics
        self.flag_low_confidence = flag_low_confidence

    def render(self, document, metrics=None) -> str:
        """Generate Markdown from document structure."""
        lines: List[str] = [f"# {self.title}", ""]

        captured = document.source.captured_at.strftime("%Y-%m-%d %H:%M")
        lines.append(f"*Captured {captured}*")
        lines.append("")

        if document.is_empty:
            lines.append("_No text recognized._")
            lines.append("")
        for paragraph in document.paragraphs:
            text = "  \n".join(line.text for line in paragraph.lines)
            if (
                self.flag_low_confidence is not None and
                paragraph.confidence < self.flag_low_confidence
            ):
                text += f"  \n<!-- low confidence: {paragraph.confidence:.0%} -->"
            lines.append(text)
            lines.append("")

        if self.include_metrics and metrics is not None:
            lines.append("---")
            lines.append("")
            lines.append(f"- Words: {metrics.word_count}")
            lines.append(f"- Reading time: {metrics.reading_seconds:.0f}s")
            lines.append(f"- Confidence: {metrics.overall_confidence:.0%}")
            lines.append("")

        return "\n".join(lines)

    def export(
        self,
        document,
        output_path: Union[str, Path],
        metrics=None
    ) -> Path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(self.render(document, metrics))

        logger.info(f"Exported Markdown to: {output_path}")
        return output_path


class TextExporter:
    """Export the formatted paragraph text."""

    def export(self, document, output_path: Union[str, Path]) -> Path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        text = document.formatted_text
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(text + "\n" if text else "")

        logger.info(f"Exported text to: {output_path}")
        return output_path


class DocumentExporter:
    """Convenience class for exporting to multiple formats."""

    SUPPORTED_FORMATS = ("json", "markdown", "text")

    def __init__(
        self,
        output_dir: Union[str, Path],
        base_name: str = "board",
        low_confidence_threshold: Optional[float] = 0.65
    ):
        self.output_dir = Path(output_dir)
        self.base_name = base_name
        self.low_confidence_threshold = low_confidence_threshold

    def export(self, capture, formats: List[str]) -> Dict[str, Path]:
        """
        Export a BoardCapture to the requested formats.

        Returns:
            Mapping of format name to written path
        """
        if "all" in formats:
            formats = list(self.SUPPORTED_FORMATS)

        results: Dict[str, Path] = {}
        for fmt in formats:
            if fmt == "json":
                results[fmt] = save_json(
                    capture.to_dict(), self.output_dir / f"{self.base_name}.json"
                )
            elif fmt == "markdown":
                results[fmt] = MarkdownExporter(
                    flag_low_confidence=self.low_confidence_threshold
                ).export(
                    capture.document,
                    self.output_dir / f"{self.base_name}.md",
                    metrics=capture.metrics
                )
            elif fmt == "text":
                results[fmt] = TextExporter().export(
                    capture.document, self.output_dir / f"{self.base_name}.txt"
                )
            else:
                logger.warning(f"Unsupported export format: {fmt}")

        return results
