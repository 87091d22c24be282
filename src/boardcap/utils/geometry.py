"""
Geometry helpers shared by board detection, cropping and text layout.

Provides:
- Points and axis-aligned bounding boxes
- Quadrilaterals (detected board outlines) with corner ordering
"""

import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Tuple

logger = logging.getLogger(__name__)


# ============================================================================
# Points and Boxes
# ============================================================================

@dataclass(frozen=True)
class Point:
    """A 2D point in image pixel coordinates."""
    x: float
    y: float

    def translated(self, dx: float, dy: float) -> 'Point':
        return Point(self.x + dx, self.y + dy)

    def distance_to(self, other: 'Point') -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def to_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned bounding box with coordinates."""
    x1: float
    y1: float
    x2: float
    y2: float

    def __post_init__(self):
        if self.x2 < self.x1 or self.y2 < self.y1:
            raise ValueError(
                f"Invalid bounding box ({self.x1}, {self.y1}, {self.x2}, {self.y2})"
            )

    @property
    def left(self) -> float:
        return self.x1

    @property
    def top(self) -> float:
        return self.y1

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.x1 + self.x2) / 2, (self.y1 + self.y2) / 2)

    def to_tuple(self) -> Tuple[float, float, float, float]:
        return (self.x1, self.y1, self.x2, self.y2)

    def to_xywh(self) -> Tuple[float, float, float, float]:
        return (self.x1, self.y1, self.width, self.height)

    @classmethod
    def from_xywh(cls, x: float, y: float, w: float, h: float) -> 'BoundingBox':
        return cls(x, y, x + w, y + h)

    @classmethod
    def enclosing(cls, points: Iterable[Point]) -> 'BoundingBox':
        """Smallest axis-aligned box containing all points."""
        points = list(points)
        if not points:
            raise ValueError("Cannot enclose an empty point set")
        xs = [p.x for p in points]
        ys = [p.y for p in points]
        return cls(min(xs), min(ys), max(xs), max(ys))

    def translated(self, dx: float, dy: float) -> 'BoundingBox':
        return BoundingBox(self.x1 + dx, self.y1 + dy, self.x2 + dx, self.y2 + dy)

    def clipped(self, width: float, height: float) -> 'BoundingBox':
        """Clip the box to the rectangle [0, width] x [0, height]."""
        x1 = min(max(self.x1, 0), width)
        y1 = min(max(self.y1, 0), height)
        x2 = min(max(self.x2, 0), width)
        y2 = min(max(self.y2, 0), height)
        return BoundingBox(x1, y1, x2, y2)

    def intersects(self, other: 'BoundingBox') -> bool:
        return not (
            self.x2 < other.x1 or self.x1 > other.x2 or
            self.y2 < other.y1 or self.y1 > other.y2
        )

    def intersection_area(self, other: 'BoundingBox') -> float:
        if not self.intersects(other):
            return 0
        x1 = max(self.x1, other.x1)
        y1 = max(self.y1, other.y1)
        x2 = min(self.x2, other.x2)
        y2 = min(self.y2, other.y2)
        return max(0, x2 - x1) * max(0, y2 - y1)

    def iou(self, other: 'BoundingBox') -> float:
        inter = self.intersection_area(other)
        union = self.area + other.area - inter
        return inter / union if union > 0 else 0.0


# ============================================================================
# Quadrilaterals
# ============================================================================

@dataclass(frozen=True)
class Quadrilateral:
    """Four corners of a detected board outline, in pixel coordinates."""
    top_left: Point
    top_right: Point
    bottom_left: Point
    bottom_right: Point

    @property
    def corners(self) -> Tuple[Point, Point, Point, Point]:
        """Corners in clockwise order starting at top-left."""
        return (self.top_left, self.top_right, self.bottom_right, self.bottom_left)

    @property
    def area(self) -> float:
        """Polygon area (shoelace formula)."""
        pts = self.corners
        total = 0.0
        for i, p in enumerate(pts):
            q = pts[(i + 1) % 4]
            total += p.x * q.y - q.x * p.y
        return abs(total) / 2

    @property
    def aspect_ratio(self) -> float:
        """Mean edge width over mean edge height; 0 for a degenerate shape."""
        width = (
            self.top_left.distance_to(self.top_right) +
            self.bottom_left.distance_to(self.bottom_right)
        ) / 2
        height = (
            self.top_left.distance_to(self.bottom_left) +
            self.top_right.distance_to(self.bottom_right)
        ) / 2
        return width / height if height > 0 else 0.0

    @property
    def is_convex(self) -> bool:
        pts = self.corners
        signs = []
        for i in range(4):
            a, b, c = pts[i], pts[(i + 1) % 4], pts[(i + 2) % 4]
            cross = (b.x - a.x) * (c.y - b.y) - (b.y - a.y) * (c.x - b.x)
            if cross != 0:
                signs.append(cross > 0)
        return bool(signs) and (all(signs) or not any(signs))

    def bounding_box(self) -> BoundingBox:
        """Axis-aligned rectangle enclosing all four corners."""
        return BoundingBox.enclosing(self.corners)

    def translated(self, dx: float, dy: float) -> 'Quadrilateral':
        return Quadrilateral(
            top_left=self.top_left.translated(dx, dy),
            top_right=self.top_right.translated(dx, dy),
            bottom_left=self.bottom_left.translated(dx, dy),
            bottom_right=self.bottom_right.translated(dx, dy),
        )

    def to_list(self) -> List[Tuple[float, float]]:
        return [p.to_tuple() for p in self.corners]

    @classmethod
    def from_points(cls, points: Iterable[Tuple[float, float]]) -> 'Quadrilateral':
        """
        Build a quadrilateral from four unordered points.

        Top-left has the smallest x+y, bottom-right the largest; top-right
        has the smallest y-x, bottom-left the largest. When those picks
        collide (a board turned 45 degrees), corners are taken clockwise
        around the centroid starting from the smallest x+y.
        """
        pts = [Point(float(x), float(y)) for x, y in points]
        if len(pts) != 4:
            raise ValueError(f"A quadrilateral needs 4 points, got {len(pts)}")

        by_sum = sorted(pts, key=lambda p: (p.x + p.y, p.y))
        by_diff = sorted(pts, key=lambda p: (p.y - p.x, p.x))
        picks = (by_sum[0], by_diff[0], by_sum[-1], by_diff[-1])

        if len(set(picks)) < 4:
            cx = sum(p.x for p in pts) / 4
            cy = sum(p.y for p in pts) / 4
            # y grows downward, so increasing angle is clockwise on screen
            ring = sorted(pts, key=lambda p: math.atan2(p.y - cy, p.x - cx))
            start = ring.index(min(ring, key=lambda p: (p.x + p.y, p.y)))
            picks = tuple(ring[start:] + ring[:start])

        top_left, top_right, bottom_right, bottom_left = picks
        return cls(
            top_left=top_left,
            top_right=top_right,
            bottom_left=bottom_left,
            bottom_right=bottom_right,
        )

    @classmethod
    def from_box(cls, box: BoundingBox) -> 'Quadrilateral':
        return cls(
            top_left=Point(box.x1, box.y1),
            top_right=Point(box.x2, box.y1),
            bottom_left=Point(box.x1, box.y2),
            bottom_right=Point(box.x2, box.y2),
        )
