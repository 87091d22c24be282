"""
Fail-open board enhancement pipeline.

Provides:
- Stage and filter-chain building blocks
- The default stage sequence (board detection -> enhancement ->
  perspective correction -> text optimization)
- The orchestrator, which never aborts on a stage failure: the stage's
  input is carried forward and the stage is recorded as skipped
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple

from .boundary import (
    DEFAULT_MAX_ASPECT,
    DEFAULT_MIN_AREA_FRACTION,
    DEFAULT_MIN_ASPECT,
    crop_origin,
    crop_to_boundary,
    detect_board_boundary,
)
from .geometry import Quadrilateral
from .images import (
    CONTRAST_FACTOR,
    DEFAULT_NOISE_LEVEL,
    DEFAULT_NOISE_SHARPNESS,
    SATURATION,
    SHARPEN_STRENGTH,
    FilterBank,
    Image,
    warp_perspective,
)

logger = logging.getLogger(__name__)


BOARD_DETECTION = "board_detection"
ENHANCEMENT = "enhancement"
PERSPECTIVE_CORRECTION = "perspective_correction"
TEXT_OPTIMIZATION = "text_optimization"

ProgressCallback = Callable[[float], None]


class StageFailed(Exception):
    """A single pipeline stage could not produce output."""

    def __init__(self, stage: str, reason: str = ""):
        self.stage = stage
        self.reason = reason
        super().__init__(f"{stage}: {reason}" if reason else stage)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class PipelineContext:
    """Per-run state shared between stages of one pipeline run."""
    corners: Optional[Quadrilateral] = None
    preserve_corners: bool = True


StageFn = Callable[[Image, PipelineContext], Optional[Image]]


@dataclass(frozen=True)
class Stage:
    """A named pipeline step; `fn` returns None (or raises StageFailed) on failure."""
    name: str
    fn: StageFn
    weight: float = 1.0

    def __post_init__(self):
        if self.weight < 0:
            raise ValueError(f"Stage weight must be non-negative: {self.name}")


@dataclass(frozen=True)
class StageRecord:
    """Outcome of one stage in a pipeline run."""
    name: str
    applied: bool
    reason: str = ""

    def to_dict(self):
        return {"name": self.name, "applied": self.applied, "reason": self.reason}


@dataclass
class PipelineResult:
    """Result of running the pipeline on one capture."""
    original_image: Image
    enhanced_image: Image
    stages_applied: List[StageRecord] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.now)
    corners: Optional[Quadrilateral] = None
    # (stage name, output) per applied stage; only kept in debug mode
    intermediates: List[Tuple[str, Image]] = field(default_factory=list)

    @property
    def applied_stage_names(self) -> List[str]:
        return [s.name for s in self.stages_applied if s.applied]

    @property
    def skipped_stage_names(self) -> List[str]:
        return [s.name for s in self.stages_applied if not s.applied]

    def to_dict(self):
        return {
            "original_size": list(self.original_image.size),
            "enhanced_size": list(self.enhanced_image.size),
            "stages": [s.to_dict() for s in self.stages_applied],
            "timestamp": self.timestamp.isoformat(),
            "corners": self.corners.to_list() if self.corners else None,
        }


# ============================================================================
# Filter Chain
# ============================================================================

class FilterChain:
    """
    Ordered, independently-failable filters.

    Each step: attempt the filter, adopt its output on success, keep the
    prior image on failure, continue. The chain never stops early.
    """

    def __init__(self, steps: Sequence[Tuple[str, Callable[[Image], Optional[Image]]]]):
        self.steps = list(steps)

    def apply(self, image: Image) -> Tuple[Image, List[str]]:
        current = image
        applied = []
        for name, fn in self.steps:
            output = fn(current)
            if output is None:
                logger.debug(f"Filter {name} produced no output, keeping previous image")
                continue
            current = output
            applied.append(name)
        return current, applied

    @classmethod
    def from_bank(
        cls,
        bank: FilterBank,
        steps: Sequence[Tuple[str, dict]]
    ) -> 'FilterChain':
        """Build a chain of named filter-bank filters with fixed parameters."""
        def bind(name, params):
            return lambda img: bank.apply(img, name, **params)
        return cls([(name, bind(name, params)) for name, params in steps])


# ============================================================================
# Stage Builders
# ============================================================================

def rectify(image: Image, corners: Optional[Quadrilateral] = None) -> Image:
    """
    Warp the board quadrilateral onto the image rectangle.

    Without corners this is the identity.
    """
    if corners is None:
        return image
    return warp_perspective(image, corners)


def board_detection_stage(
    detector=None,
    min_aspect: float = DEFAULT_MIN_ASPECT,
    max_aspect: float = DEFAULT_MAX_ASPECT,
    min_area_fraction: float = DEFAULT_MIN_AREA_FRACTION
) -> Stage:
    """Detect the board and crop to its enclosing rectangle."""

    def run(image: Image, context: PipelineContext) -> Optional[Image]:
        quad = detect_board_boundary(
            image,
            detector=detector,
            min_aspect=min_aspect,
            max_aspect=max_aspect,
            min_area_fraction=min_area_fraction
        )
        if quad is None:
            raise StageFailed(BOARD_DETECTION, "no board boundary detected")

        cropped = crop_to_boundary(image, quad)
        if context.preserve_corners:
            dx, dy = crop_origin(image, quad)
            context.corners = quad.translated(-dx, -dy)
        return cropped

    return Stage(BOARD_DETECTION, run)


def enhancement_stage(bank: Optional[FilterBank] = None) -> Stage:
    """Auto-adjust, contrast boost with desaturation, luminance sharpening."""
    chain = FilterChain.from_bank(bank or FilterBank(), [
        ("auto_adjust", {}),
        ("color_controls", {"contrast": CONTRAST_FACTOR, "saturation": SATURATION}),
        ("sharpen_luminance", {"strength": SHARPEN_STRENGTH}),
    ])

    def run(image: Image, context: PipelineContext) -> Optional[Image]:
        enhanced, applied = chain.apply(image)
        if not applied:
            raise StageFailed(ENHANCEMENT, "no enhancement filter succeeded")
        logger.debug(f"Enhancement filters applied: {applied}")
        return enhanced

    return Stage(ENHANCEMENT, run)


def perspective_correction_stage() -> Stage:
    """Rectify using corners left on the context by board detection."""

    def run(image: Image, context: PipelineContext) -> Optional[Image]:
        if context.corners is None:
            raise StageFailed(PERSPECTIVE_CORRECTION, "no board corners available")
        return rectify(image, context.corners)

    return Stage(PERSPECTIVE_CORRECTION, run)


def text_optimization_stage(
    bank: Optional[FilterBank] = None,
    noise_level: float = DEFAULT_NOISE_LEVEL,
    sharpness: float = DEFAULT_NOISE_SHARPNESS
) -> Stage:
    """Single-channel luminance followed by light denoising."""
    chain = FilterChain.from_bank(bank or FilterBank(), [
        ("luminance_matrix", {}),
        ("noise_reduction", {"noise_level": noise_level, "sharpness": sharpness}),
    ])

    def run(image: Image, context: PipelineContext) -> Optional[Image]:
        optimized, applied = chain.apply(image)
        if not applied:
            raise StageFailed(TEXT_OPTIMIZATION, "no optimization filter succeeded")
        return optimized

    return Stage(TEXT_OPTIMIZATION, run)


def build_default_stages(
    config=None,
    detector=None,
    bank: Optional[FilterBank] = None
) -> List[Stage]:
    """
    Default stage order.

    Args:
        config: Optional PipelineConfig supplying boundary and denoise settings
        detector: Optional quadrilateral detector
        bank: Optional filter bank shared by the filter stages
    """
    bank = bank or FilterBank()
    boundary = config.boundary if config is not None else None
    optimization = config.text_optimization if config is not None else None

    return [
        board_detection_stage(
            detector=detector,
            min_aspect=boundary.min_aspect if boundary else DEFAULT_MIN_ASPECT,
            max_aspect=boundary.max_aspect if boundary else DEFAULT_MAX_ASPECT,
            min_area_fraction=(
                boundary.min_area_fraction if boundary else DEFAULT_MIN_AREA_FRACTION
            ),
        ),
        enhancement_stage(bank),
        perspective_correction_stage(),
        text_optimization_stage(
            bank,
            noise_level=optimization.noise_level if optimization else DEFAULT_NOISE_LEVEL,
            sharpness=optimization.sharpness if optimization else DEFAULT_NOISE_SHARPNESS,
        ),
    ]


# ============================================================================
# Orchestrator
# ============================================================================

class PipelineOrchestrator:
    """
    Runs stages in order with fail-open degradation.

    Progress is reported once per stage boundary as the cumulative weight
    fraction, ending at exactly 1.0.
    """

    def __init__(self, preserve_corners: bool = True, keep_intermediates: bool = False):
        self.preserve_corners = preserve_corners
        self.keep_intermediates = keep_intermediates

    def run(
        self,
        image: Image,
        stages: Sequence[Stage],
        progress: Optional[ProgressCallback] = None
    ) -> PipelineResult:
        """
        Run all stages on an image.

        Args:
            image: Original capture
            stages: Ordered stages
            progress: Optional callback receiving a fraction in [0, 1]

        Returns:
            PipelineResult; enhanced_image is the original when every stage failed
        """
        context = PipelineContext(preserve_corners=self.preserve_corners)
        records: List[StageRecord] = []
        intermediates: List[Tuple[str, Image]] = []
        current = image

        total_weight = sum(stage.weight for stage in stages)
        done_weight = 0.0

        for index, stage in enumerate(stages):
            output, reason = self._run_stage(stage, current, context)

            if output is None:
                records.append(StageRecord(stage.name, applied=False, reason=reason))
                logger.warning(f"Stage {stage.name} skipped: {reason}")
            else:
                current = output
                records.append(StageRecord(stage.name, applied=True))
                if self.keep_intermediates:
                    intermediates.append((stage.name, current))
                logger.debug(f"Stage {stage.name} applied -> {current.size}")

            done_weight += stage.weight
            if progress is not None:
                is_last = index == len(stages) - 1
                if is_last or total_weight <= 0:
                    fraction = 1.0 if is_last else (index + 1) / len(stages)
                else:
                    fraction = min(done_weight / total_weight, 1.0)
                progress(fraction)

        if not stages and progress is not None:
            progress(1.0)

        applied = [r.name for r in records if r.applied]
        logger.info(f"Pipeline complete: {' -> '.join(applied) or 'no changes'}")

        return PipelineResult(
            original_image=image,
            enhanced_image=current,
            stages_applied=records,
            corners=context.corners,
            intermediates=intermediates,
        )

    def _run_stage(
        self,
        stage: Stage,
        image: Image,
        context: PipelineContext
    ) -> Tuple[Optional[Image], str]:
        try:
            output = stage.fn(image, context)
        except StageFailed as e:
            return None, e.reason or "stage failed"
        except Exception as e:
            logger.exception(f"Unexpected error in stage {stage.name}")
            return None, f"unexpected error: {e}"

        if output is None:
            return None, "stage produced no output"
        return output, ""


def process_image(
    image: Image,
    stages: Optional[Sequence[Stage]] = None,
    progress: Optional[ProgressCallback] = None,
    config=None
) -> PipelineResult:
    """
    Enhance a raw capture for text recognition.

    Args:
        image: Raw capture
        stages: Stages to run; defaults to build_default_stages(config)
        progress: Optional progress callback
        config: Optional PipelineConfig

    Returns:
        PipelineResult retaining the unmodified original
    """
    if stages is None:
        stages = build_default_stages(config)
    if config is None:
        orchestrator = PipelineOrchestrator()
    else:
        orchestrator = PipelineOrchestrator(
            preserve_corners=config.preserve_corners,
            keep_intermediates=config.debug_mode
        )
    return orchestrator.run(image, stages, progress)
