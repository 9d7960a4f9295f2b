"""
Pipeline executor: applies a filter stack to a raster buffer.

The executor walks the enabled instances in execution order (see
:func:`~filterstack.filters.pipeline.execution_order`) and groups them into
passes:

- **Affine batch**: consecutive brightness / contrast / hue / gamma-space
  saturation steps are composed into one matrix + offset and applied once.
- **Per-pixel**: vibrance, whites, blacks and linear-light saturation run
  pixel by pixel after flushing any pending batch.
- **Convolution**: blur, sharpen, edge, denoise and custom kernels flush
  the batch, then replace every pixel with the neighborhood result.

Affine and per-pixel passes leave fully transparent pixels untouched;
convolution passes do not (their alpha is copied through but RGB is
rewritten everywhere).

One call is one synchronous pass over the buffer. The executor keeps no
state between calls.

Usage:
    from filterstack.filters.executor import PipelineExecutor, PipelineOptions

    report = PipelineExecutor().run(buffer, stack, PipelineOptions(linear_saturation=True))
    print(report.summary())
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Mapping

import numpy as np

from ..config import settings
from ..raster import RasterBuffer, to_uint8
from .affine import (
    AffineTransform,
    apply_affine,
    brightness_transform,
    compose,
    contrast_transform,
    hue_transform,
    saturation_transform,
)
from .constants import LumaModel
from .instances import (
    CONVOLUTION_KINDS,
    BlacksParams,
    BrightnessParams,
    ContrastParams,
    FilterInstance,
    FilterKind,
    FilterParams,
    HueParams,
    SaturationParams,
    VibranceParams,
    WhitesParams,
    as_instance,
    require_params,
)
from .pipeline import execution_order, validate_unique_ids
from .spatial import ConvolutionPlan, apply_plan, plan_convolution
from .tone import blacks, saturation_linear, vibrance, whites

logger = logging.getLogger(__name__)


@dataclass
class PipelineOptions:
    """Global toggles for one run.

    :param linear_saturation: Saturation and vibrance in linear light
    :param luma_model: Gamma-space luma weights used pipeline-wide
    """
    linear_saturation: bool = False
    luma_model: LumaModel = LumaModel.REC601

    def __post_init__(self):
        self.luma_model = LumaModel(self.luma_model)

    @classmethod
    def from_settings(cls) -> 'PipelineOptions':
        return cls(linear_saturation=settings.LINEAR_SATURATION, luma_model=LumaModel(settings.LUMA_MODEL))

    @property
    def weights(self) -> np.ndarray:
        return self.luma_model.weights


class ExecutorState(Enum):
    """Executor states; a run moves Idle -> Scanning -> ... -> Done."""
    IDLE = 'idle'
    SCANNING = 'scanning'
    BATCHING_AFFINE = 'batching_affine'
    APPLYING_PER_PIXEL = 'applying_per_pixel'
    APPLYING_CONVOLUTION = 'applying_convolution'
    DONE = 'done'


@dataclass
class StepEvent:
    """One applied instance, reported to an observer.

    ``before`` is a snapshot of the buffer before the pass that applied the
    instance; ``after`` is the buffer right after it. For an affine batch
    every instance of the batch shares the same snapshots and carries its
    own transform plus its position in the batch.

    :param instance: Applied instance
    :param stage: Pass type (BATCHING_AFFINE, APPLYING_PER_PIXEL, APPLYING_CONVOLUTION)
    :param before: RGBA buffer before the pass
    :param after: RGBA buffer after the pass
    :param transform: Affine transform of this instance (affine steps)
    :param batch_position: Index of this instance within its batch
    :param batch_size: Number of instances in the batch
    :param plan: Convolution plan (convolution steps)
    """
    instance: FilterInstance
    stage: ExecutorState
    before: np.ndarray
    after: np.ndarray
    transform: AffineTransform | None = None
    batch_position: int = 0
    batch_size: int = 1
    plan: ConvolutionPlan | None = None
    pixel_fn: Callable[[np.ndarray], np.ndarray] | None = None


class ExecutionObserver:
    """Receives one callback per applied instance."""

    def on_step(self, event: StepEvent) -> None:
        pass


@dataclass
class PassMetrics:
    """Timing of one pass over the buffer.

    :param stage: Pass type
    :param kinds: Kinds applied in this pass, in order
    :param time_ms: Wall time of the pass in milliseconds
    """
    stage: ExecutorState
    kinds: list[str]
    time_ms: float = 0.0


@dataclass
class ExecutionReport:
    """What one run did.

    :param width: Buffer width
    :param height: Buffer height
    :param passes: Passes in the order they ran
    :param transitions: State transitions of the run
    :param applied: Number of enabled instances applied
    :param skipped: Number of disabled instances skipped
    """
    width: int
    height: int
    passes: list[PassMetrics] = field(default_factory=list)
    transitions: list[ExecutorState] = field(default_factory=list)
    applied: int = 0
    skipped: int = 0
    start_time: float = 0.0
    end_time: float = 0.0

    @property
    def total_time_ms(self) -> float:
        return (self.end_time - self.start_time) * 1000.0

    def summary(self) -> str:
        """Generate human-readable summary of the run."""
        lines = [
            "=== Pipeline Execution Report ===",
            f"Image: {self.width}x{self.height}",
            f"Filters: {self.applied} applied, {self.skipped} skipped",
            f"Total time: {self.total_time_ms:.2f}ms",
            "",
            "Passes:",
        ]
        for p in self.passes:
            lines.append(f"  {p.stage.value}: {', '.join(p.kinds)} ({p.time_ms:.2f}ms)")
        return "\n".join(lines)


# ============================================================================
# Per-kind dispatch
# ============================================================================

def classify(params: FilterParams, options: PipelineOptions) -> ExecutorState:
    """Pass type for an instance's params under the given options."""
    kind = params.kind_id
    if kind in CONVOLUTION_KINDS:
        return ExecutorState.APPLYING_CONVOLUTION
    if kind == FilterKind.SATURATION and not options.linear_saturation:
        return ExecutorState.BATCHING_AFFINE
    if kind in (FilterKind.BRIGHTNESS, FilterKind.CONTRAST, FilterKind.HUE):
        return ExecutorState.BATCHING_AFFINE
    return ExecutorState.APPLYING_PER_PIXEL


def affine_for(params: FilterParams, options: PipelineOptions) -> AffineTransform:
    """Affine transform of an affine-representable instance."""
    if isinstance(params, BrightnessParams):
        return brightness_transform(params.value)
    if isinstance(params, ContrastParams):
        return contrast_transform(params.value)
    if isinstance(params, HueParams):
        return hue_transform(params.hue)
    if isinstance(params, SaturationParams):
        return saturation_transform(params.value, options.weights)
    raise ValueError(f"{type(params).__name__} is not affine")


def pixel_function_for(params: FilterParams, options: PipelineOptions) -> Callable[[np.ndarray], np.ndarray]:
    """Per-pixel function (float RGB -> clamped float RGB) of an instance."""
    weights = options.weights
    if isinstance(params, VibranceParams):
        return lambda rgb: vibrance(rgb, params.vibrance, options.linear_saturation, weights)
    if isinstance(params, SaturationParams):
        return lambda rgb: saturation_linear(rgb, params.value)
    if isinstance(params, WhitesParams):
        return lambda rgb: whites(rgb, params.value)
    if isinstance(params, BlacksParams):
        return lambda rgb: blacks(rgb, params.value)
    raise ValueError(f"{type(params).__name__} is not a per-pixel filter")


def apply_per_pixel(pixels: np.ndarray, fn: Callable[[np.ndarray], np.ndarray]) -> np.ndarray:
    """Apply a per-pixel function in place, skipping alpha == 0 pixels."""
    visible = pixels[:, :, 3] != 0
    rgb = pixels[:, :, :3]
    rgb[visible] = to_uint8(fn(rgb[visible].astype(np.float64)))
    return pixels


# ============================================================================
# Executor
# ============================================================================

class PipelineExecutor:
    """Runs filter stacks over RGBA buffers.

    Example::

        executor = PipelineExecutor()
        report = executor.run(buffer, stack)
    """

    def run(
        self,
        buffer: RasterBuffer | np.ndarray,
        pipeline: Iterable[FilterInstance | Mapping[str, Any]],
        options: PipelineOptions | None = None,
        observer: ExecutionObserver | None = None,
    ) -> ExecutionReport:
        """Apply ``pipeline`` (storage order) to ``buffer`` in place.

        Args:
            buffer: RasterBuffer or uint8 (H, W, 4) array, mutated in place
            pipeline: Instances in storage order (newest first)
            options: Global toggles; defaults come from settings
            observer: Optional per-instance callback

        Returns:
            ExecutionReport of the run

        Raises:
            InvalidParamsError: An instance's params do not match its kind
            PipelineError: Duplicate ids
        """
        pixels = buffer.pixels if isinstance(buffer, RasterBuffer) else buffer
        if pixels.ndim != 3 or pixels.shape[2] != 4 or pixels.dtype != np.uint8:
            raise ValueError(f"Expected uint8 RGBA pixels (H, W, 4), got {pixels.dtype} {pixels.shape}")
        options = options or PipelineOptions.from_settings()

        # Validate everything before touching the buffer
        instances = [as_instance(item) for item in pipeline]
        validate_unique_ids(instances)
        steps = [(inst, require_params(inst)) for inst in execution_order(instances)]

        height, width = pixels.shape[:2]
        if width * height > settings.LARGE_IMAGE_PIXELS:
            logger.warning(f"Processing large image {width}x{height}; expect slow execution")

        report = ExecutionReport(width=width, height=height, start_time=time.perf_counter())
        run = _Run(pixels, options, observer, report)
        run.transition(ExecutorState.SCANNING)
        for inst, params in steps:
            if not inst.enabled:
                report.skipped += 1
                continue
            report.applied += 1
            stage = classify(params, options)
            if stage is ExecutorState.BATCHING_AFFINE:
                run.extend_batch(inst, affine_for(params, options))
            elif stage is ExecutorState.APPLYING_PER_PIXEL:
                run.flush()
                run.per_pixel(inst, pixel_function_for(params, options))
            else:
                run.flush()
                run.convolution(inst, plan_convolution(params))
        run.flush()
        run.transition(ExecutorState.DONE)
        report.end_time = time.perf_counter()
        logger.debug(f"Pipeline done in {report.total_time_ms:.2f}ms ({len(report.passes)} passes)")
        return report


class _Run:
    """Internal: mutable state of one executor run."""

    def __init__(self, pixels: np.ndarray, options: PipelineOptions,
                 observer: ExecutionObserver | None, report: ExecutionReport):
        self.pixels = pixels
        self.options = options
        self.observer = observer
        self.report = report
        self.state = ExecutorState.IDLE
        self.batch: list[tuple[FilterInstance, AffineTransform]] = []
        report.transitions.append(self.state)

    def transition(self, state: ExecutorState) -> None:
        if state is not self.state:
            self.state = state
            self.report.transitions.append(state)

    def _snapshot(self) -> np.ndarray | None:
        return self.pixels.copy() if self.observer is not None else None

    def _record(self, stage: ExecutorState, kinds: list[str], started: float) -> None:
        elapsed = (time.perf_counter() - started) * 1000.0
        self.report.passes.append(PassMetrics(stage, kinds, elapsed))

    def extend_batch(self, inst: FilterInstance, transform: AffineTransform) -> None:
        self.transition(ExecutorState.BATCHING_AFFINE)
        self.batch.append((inst, transform))

    def flush(self) -> None:
        """Compose and apply the pending affine batch, if any."""
        if not self.batch:
            return
        batch, self.batch = self.batch, []
        started = time.perf_counter()
        before = self._snapshot()
        combined = compose([t for _, t in batch])
        apply_affine(self.pixels, combined)
        self._record(ExecutorState.BATCHING_AFFINE, [inst.kind.value for inst, _ in batch], started)
        logger.debug(f"Flushed affine batch of {len(batch)}")
        if self.observer is not None:
            for position, (inst, transform) in enumerate(batch):
                self.observer.on_step(StepEvent(
                    inst, ExecutorState.BATCHING_AFFINE, before, self.pixels,
                    transform=transform, batch_position=position, batch_size=len(batch),
                ))
        self.transition(ExecutorState.SCANNING)

    def per_pixel(self, inst: FilterInstance, fn: Callable[[np.ndarray], np.ndarray]) -> None:
        self.transition(ExecutorState.APPLYING_PER_PIXEL)
        started = time.perf_counter()
        before = self._snapshot()
        apply_per_pixel(self.pixels, fn)
        self._record(ExecutorState.APPLYING_PER_PIXEL, [inst.kind.value], started)
        if self.observer is not None:
            self.observer.on_step(StepEvent(
                inst, ExecutorState.APPLYING_PER_PIXEL, before, self.pixels, pixel_fn=fn,
            ))
        self.transition(ExecutorState.SCANNING)

    def convolution(self, inst: FilterInstance, plan: ConvolutionPlan) -> None:
        self.transition(ExecutorState.APPLYING_CONVOLUTION)
        started = time.perf_counter()
        result = apply_plan(self.pixels, plan, self.options.weights)
        before = self._snapshot()
        self.pixels[...] = result
        self._record(ExecutorState.APPLYING_CONVOLUTION, [inst.kind.value], started)
        if self.observer is not None:
            self.observer.on_step(StepEvent(
                inst, ExecutorState.APPLYING_CONVOLUTION, before, self.pixels, plan=plan,
            ))
        self.transition(ExecutorState.SCANNING)


def apply_pipeline(
    buffer: RasterBuffer | np.ndarray,
    pipeline: Iterable[FilterInstance | Mapping[str, Any]],
    options: PipelineOptions | None = None,
) -> RasterBuffer | np.ndarray:
    """Run ``pipeline`` over ``buffer`` in place and return the buffer."""
    PipelineExecutor().run(buffer, pipeline, options)
    return buffer


__all__ = [
    'PipelineOptions', 'ExecutorState', 'StepEvent', 'ExecutionObserver',
    'PassMetrics', 'ExecutionReport',
    'classify', 'affine_for', 'pixel_function_for', 'apply_per_pixel',
    'PipelineExecutor', 'apply_pipeline',
]
