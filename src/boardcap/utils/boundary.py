"""
Board boundary detection and cropping.

The detector looks for the dominant convex quadrilateral in a photograph
(the board outline). Cropping uses the axis-aligned rectangle that encloses
the detected corners; true perspective correction happens later in the
pipeline.
"""

import logging
from typing import List, Optional, Tuple

import numpy as np

from .geometry import Quadrilateral
from .images import Image, crop, to_grayscale

logger = logging.getLogger(__name__)


DEFAULT_MIN_ASPECT = 0.5
DEFAULT_MAX_ASPECT = 2.0
DEFAULT_MIN_AREA_FRACTION = 0.3


# ============================================================================
# Quadrilateral Detector
# ============================================================================

class ContourQuadDetector:
    """
    Classical CV quadrilateral detector.

    Edge map -> external contours -> polygon approximation. Candidates must be
    convex four-sided polygons within the aspect and area limits; the largest
    one wins.
    """

    def __init__(
        self,
        canny_low: int = 50,
        canny_high: int = 150,
        blur_size: int = 5,
        approx_epsilon: float = 0.02
    ):
        self.canny_low = canny_low
        self.canny_high = canny_high
        self.blur_size = blur_size
        self.approx_epsilon = approx_epsilon

    def _candidates(self, image: Image) -> List[Quadrilateral]:
        import cv2

        gray = to_grayscale(image.pixels)
        blurred = cv2.GaussianBlur(gray, (self.blur_size, self.blur_size), 0)
        edges = cv2.Canny(blurred, self.canny_low, self.canny_high)
        # Close small gaps in the board frame
        edges = cv2.dilate(edges, np.ones((3, 3), dtype=np.uint8), iterations=1)

        contours, _ = cv2.findContours(edges, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)

        quads = []
        for contour in contours:
            perimeter = cv2.arcLength(contour, True)
            approx = cv2.approxPolyDP(contour, self.approx_epsilon * perimeter, True)
            if len(approx) != 4 or not cv2.isContourConvex(approx):
                continue
            points = [(float(p[0][0]), float(p[0][1])) for p in approx]
            quads.append(Quadrilateral.from_points(points))

        return quads

    def detect(
        self,
        image: Image,
        min_aspect: float = DEFAULT_MIN_ASPECT,
        max_aspect: float = DEFAULT_MAX_ASPECT,
        min_area_fraction: float = DEFAULT_MIN_AREA_FRACTION
    ) -> Optional[Quadrilateral]:
        """
        Find the most confident board outline.

        Args:
            image: Input image
            min_aspect: Smallest accepted width/height ratio
            max_aspect: Largest accepted width/height ratio
            min_area_fraction: Smallest accepted area relative to the image

        Returns:
            The largest qualifying quadrilateral, or None
        """
        image_area = float(image.width * image.height)
        if image_area == 0:
            return None

        scored: List[Tuple[float, Quadrilateral]] = []
        for quad in self._candidates(image):
            if not quad.is_convex:
                continue
            aspect = quad.aspect_ratio
            if not min_aspect <= aspect <= max_aspect:
                continue
            fraction = quad.area / image_area
            if fraction < min_area_fraction:
                continue
            scored.append((fraction, quad))

        if not scored:
            logger.debug("No quadrilateral passed the aspect/area filters")
            return None

        fraction, best = max(scored, key=lambda item: item[0])
        logger.debug(f"Detected board outline covering {fraction:.0%} of the image")
        return best


# ============================================================================
# Boundary Stage Functions
# ============================================================================

def detect_board_boundary(
    image: Image,
    detector=None,
    min_aspect: float = DEFAULT_MIN_ASPECT,
    max_aspect: float = DEFAULT_MAX_ASPECT,
    min_area_fraction: float = DEFAULT_MIN_AREA_FRACTION
) -> Optional[Quadrilateral]:
    """
    Detect the board quadrilateral.

    Args:
        image: Input image
        detector: Object with a `detect(image, min_aspect, max_aspect,
            min_area_fraction)` method; defaults to ContourQuadDetector
        min_aspect: Smallest accepted aspect ratio
        max_aspect: Largest accepted aspect ratio
        min_area_fraction: Smallest accepted fraction of the image area

    Returns:
        The detected quadrilateral, or None when no board is found
    """
    detector = detector or ContourQuadDetector()
    return detector.detect(
        image,
        min_aspect=min_aspect,
        max_aspect=max_aspect,
        min_area_fraction=min_area_fraction
    )


def crop_to_boundary(image: Image, quad: Quadrilateral) -> Image:
    """
    Crop to the axis-aligned rectangle enclosing the quadrilateral's corners.

    This is a conservative approximation of the board region, not a warp.
    """
    return crop(image, quad.bounding_box())


def crop_origin(image: Image, quad: Quadrilateral) -> Tuple[int, int]:
    """Top-left pixel of the region `crop_to_boundary` keeps."""
    box = quad.bounding_box().clipped(image.width, image.height)
    return int(np.floor(box.x1)), int(np.floor(box.y1))
