"""
Text layout reconstruction for board captures.

Groups an unordered set of recognized fragments into lines and paragraphs:

1. Reading order: fragments are sorted top-to-bottom; fragments whose tops
   lie within the line threshold of a row's first fragment form one row,
   read left-to-right.
2. Lines: walking that order, a fragment joins the current line when its
   top is within the line threshold of the previous fragment's top. The
   comparison is against the previous fragment, not the line's first one,
   so a line may drift gradually.
3. Paragraphs: a line joins the current paragraph when its first
   fragment's top is within the paragraph threshold of the previous line's.

Every fragment ends up in exactly one line and every line in exactly one
paragraph.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .geometry import BoundingBox
from .metrics import WORDS_PER_MINUTE, mean_confidence, reading_seconds, word_count
from .ocr_text import RecognizedDocument, TextFragment

logger = logging.getLogger(__name__)


LINE_THRESHOLD = 20.0
PARAGRAPH_THRESHOLD = 50.0


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class TextLine:
    """Fragments on one text line, left to right."""
    fragments: Tuple[TextFragment, ...]

    def __post_init__(self):
        ordered = tuple(sorted(self.fragments, key=_horizontal_key))
        object.__setattr__(self, "fragments", ordered)

    @property
    def text(self) -> str:
        return " ".join(f.text for f in self.fragments)

    @property
    def confidence(self) -> float:
        return mean_confidence(f.confidence for f in self.fragments)

    @property
    def top(self) -> float:
        return min((f.top for f in self.fragments), default=0.0)

    @property
    def anchor_top(self) -> float:
        """Top of the first (leftmost) fragment."""
        return self.fragments[0].top if self.fragments else 0.0

    @property
    def bbox(self) -> Optional[BoundingBox]:
        if not self.fragments:
            return None
        return BoundingBox(
            min(f.bbox.x1 for f in self.fragments),
            min(f.bbox.y1 for f in self.fragments),
            max(f.bbox.x2 for f in self.fragments),
            max(f.bbox.y2 for f in self.fragments),
        )

    def to_dict(self) -> Dict[str, Any]:
        bbox = self.bbox
        return {
            "text": self.text,
            "confidence": round(self.confidence, 4),
            "bbox": bbox.to_tuple() if bbox else None,
            "fragments": len(self.fragments),
        }


@dataclass(frozen=True)
class TextParagraph:
    """Lines of one vertical text block, top to bottom."""
    lines: Tuple[TextLine, ...]

    @property
    def text(self) -> str:
        return "\n".join(line.text for line in self.lines)

    @property
    def confidence(self) -> float:
        return mean_confidence(line.confidence for line in self.lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "confidence": round(self.confidence, 4),
            "lines": [line.to_dict() for line in self.lines],
        }


@dataclass(frozen=True)
class StructuredDocument:
    """Lines, paragraphs and reading statistics derived from a RecognizedDocument."""
    source: RecognizedDocument
    lines: Tuple[TextLine, ...] = ()
    paragraphs: Tuple[TextParagraph, ...] = ()
    word_count: int = 0
    estimated_reading_seconds: float = 0.0

    @property
    def overall_confidence(self) -> float:
        return self.source.overall_confidence

    @property
    def formatted_text(self) -> str:
        """Paragraph texts separated by blank lines."""
        return "\n\n".join(p.text for p in self.paragraphs)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def to_dict(self) -> Dict[str, Any]:
        return {
            "full_text": self.source.full_text,
            "formatted_text": self.formatted_text,
            "overall_confidence": round(self.overall_confidence, 4),
            "captured_at": self.source.captured_at.isoformat(),
            "word_count": self.word_count,
            "estimated_reading_seconds": round(self.estimated_reading_seconds, 2),
            "paragraphs": [p.to_dict() for p in self.paragraphs],
            "fragments": [f.to_dict() for f in self.source.fragments],
        }


# ============================================================================
# Ordering
# ============================================================================

def _position_key(fragment: TextFragment):
    box = fragment.bbox
    return (box.y1, box.x1, box.y2, box.x2, fragment.text, fragment.confidence)


def _horizontal_key(fragment: TextFragment):
    box = fragment.bbox
    return (box.x1, box.y1, box.y2, box.x2, fragment.text, fragment.confidence)


def sort_reading_order(
    fragments: Iterable[TextFragment],
    line_threshold: float = LINE_THRESHOLD
) -> List[TextFragment]:
    """
    Sort fragments into reading order.

    The result depends only on the fragment set, not on the input order.
    """
    rows: List[List[TextFragment]] = []
    for fragment in sorted(fragments, key=_position_key):
        if rows and fragment.top - rows[-1][0].top < line_threshold:
            rows[-1].append(fragment)
        else:
            rows.append([fragment])

    ordered = []
    for row in rows:
        ordered.extend(sorted(row, key=_horizontal_key))
    return ordered


# ============================================================================
# Grouping
# ============================================================================

def group_into_lines(
    fragments: Sequence[TextFragment],
    line_threshold: float = LINE_THRESHOLD
) -> List[TextLine]:
    """
    Split fragments (already in reading order) into lines.

    A fragment joins the current line if its top is within `line_threshold`
    of the previous fragment's top.
    """
    lines: List[TextLine] = []
    current: List[TextFragment] = []

    for fragment in fragments:
        if current and abs(fragment.top - current[-1].top) < line_threshold:
            current.append(fragment)
            continue
        if current:
            lines.append(TextLine(tuple(current)))
        current = [fragment]

    if current:
        lines.append(TextLine(tuple(current)))

    return lines


def group_into_paragraphs(
    lines: Sequence[TextLine],
    paragraph_threshold: float = PARAGRAPH_THRESHOLD
) -> List[TextParagraph]:
    """
    Split lines into paragraphs by the gap between first-fragment tops.
    """
    paragraphs: List[TextParagraph] = []
    current: List[TextLine] = []

    for line in lines:
        if current and abs(line.anchor_top - current[-1].anchor_top) < paragraph_threshold:
            current.append(line)
            continue
        if current:
            paragraphs.append(TextParagraph(tuple(current)))
        current = [line]

    if current:
        paragraphs.append(TextParagraph(tuple(current)))

    return paragraphs


def structure(
    fragments: Iterable[TextFragment],
    line_threshold: float = LINE_THRESHOLD,
    paragraph_threshold: float = PARAGRAPH_THRESHOLD
) -> Tuple[List[TextLine], List[TextParagraph]]:
    """
    Cluster fragments into lines and paragraphs.

    Returns:
        (lines, paragraphs); both empty for an empty input
    """
    ordered = sort_reading_order(fragments, line_threshold)
    lines = group_into_lines(ordered, line_threshold)
    paragraphs = group_into_paragraphs(lines, paragraph_threshold)

    logger.debug(
        f"Structured {len(ordered)} fragment(s) into {len(lines)} line(s), "
        f"{len(paragraphs)} paragraph(s)"
    )
    return lines, paragraphs


# ============================================================================
# Document Construction
# ============================================================================

def build_recognized_document(
    fragments: Iterable[TextFragment],
    captured_at: Optional[datetime] = None,
    line_threshold: float = LINE_THRESHOLD
) -> RecognizedDocument:
    """Order fragments and join their texts with single spaces."""
    ordered = sort_reading_order(fragments, line_threshold)
    return RecognizedDocument(
        full_text=" ".join(f.text for f in ordered).strip(),
        fragments=tuple(ordered),
        overall_confidence=mean_confidence(f.confidence for f in ordered),
        captured_at=captured_at or datetime.now(),
    )


def structure_document(
    recognized: RecognizedDocument,
    line_threshold: float = LINE_THRESHOLD,
    paragraph_threshold: float = PARAGRAPH_THRESHOLD,
    words_per_minute: float = WORDS_PER_MINUTE
) -> StructuredDocument:
    """Derive lines, paragraphs and reading statistics from a recognized document."""
    lines, paragraphs = structure(
        recognized.fragments,
        line_threshold=line_threshold,
        paragraph_threshold=paragraph_threshold
    )
    return StructuredDocument(
        source=recognized,
        lines=tuple(lines),
        paragraphs=tuple(paragraphs),
        word_count=word_count(recognized.full_text),
        estimated_reading_seconds=reading_seconds(recognized.full_text, words_per_minute),
    )


def empty_document(captured_at: Optional[datetime] = None) -> StructuredDocument:
    """Document for a capture where no text was recognized."""
    return StructuredDocument(
        source=RecognizedDocument(full_text="", captured_at=captured_at or datetime.now())
    )


def structure_text(
    fragments: Iterable[TextFragment],
    captured_at: Optional[datetime] = None,
    line_threshold: float = LINE_THRESHOLD,
    paragraph_threshold: float = PARAGRAPH_THRESHOLD,
    words_per_minute: float = WORDS_PER_MINUTE
) -> StructuredDocument:
    """
    Build a StructuredDocument straight from raw fragments.

    An empty fragment list yields an empty document with zero confidence.
    """
    fragments = list(fragments)
    if not fragments:
        return empty_document(captured_at)

    recognized = build_recognized_document(fragments, captured_at, line_threshold)
    return structure_document(
        recognized,
        line_threshold=line_threshold,
        paragraph_threshold=paragraph_threshold,
        words_per_minute=words_per_minute
    )
