"""
Document metrics: word count, reading time and confidence aggregation.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable

logger = logging.getLogger(__name__)


WORDS_PER_MINUTE = 200.0

HIGH_CONFIDENCE_THRESHOLD = 0.80
LOW_CONFIDENCE_THRESHOLD = 0.65


def word_count(text: str) -> int:
    """Count non-empty tokens separated by runs of whitespace or newlines."""
    return len(text.split())


def reading_seconds(text: str, words_per_minute: float = WORDS_PER_MINUTE) -> float:
    """Estimated reading time in seconds."""
    if words_per_minute <= 0:
        raise ValueError("words_per_minute must be positive")
    return (word_count(text) / words_per_minute) * 60.0


def mean_confidence(values: Iterable[float]) -> float:
    """Arithmetic mean; 0.0 for an empty collection."""
    values = list(values)
    if not values:
        return 0.0
    return sum(values) / len(values)


@dataclass
class DocumentMetrics:
    """Summary statistics for a structured document."""
    word_count: int = 0
    reading_seconds: float = 0.0
    overall_confidence: float = 0.0
    fragment_count: int = 0
    line_count: int = 0
    paragraph_count: int = 0
    lines_high_confidence: int = 0
    lines_low_confidence: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "word_count": self.word_count,
            "reading_seconds": round(self.reading_seconds, 2),
            "overall_confidence": round(self.overall_confidence, 3),
            "fragments": self.fragment_count,
            "lines": {
                "total": self.line_count,
                "high_confidence": self.lines_high_confidence,
                "low_confidence": self.lines_low_confidence
            },
            "paragraphs": self.paragraph_count,
        }


def compute_metrics(
    document,
    high_threshold: float = HIGH_CONFIDENCE_THRESHOLD,
    low_threshold: float = LOW_CONFIDENCE_THRESHOLD
) -> DocumentMetrics:
    """
    Calculate document-wide metrics for a StructuredDocument.

    Lines at or above `high_threshold` count as high confidence, lines
    below `low_threshold` as low confidence.
    """
    metrics = DocumentMetrics(
        word_count=document.word_count,
        reading_seconds=document.estimated_reading_seconds,
        overall_confidence=document.overall_confidence,
        fragment_count=len(document.source.fragments),
        line_count=len(document.lines),
        paragraph_count=len(document.paragraphs),
    )

    for line in document.lines:
        if line.confidence >= high_threshold:
            metrics.lines_high_confidence += 1
        elif line.confidence < low_threshold:
            metrics.lines_low_confidence += 1

    return metrics
