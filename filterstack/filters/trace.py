"""
Pixel trace: what every filter did to one pixel.

The trace runs the real executor on a copy of the buffer with an observer
attached, and reads the pixel at (x, y) out of the before/after snapshots
of each step. Convolution steps additionally record the sampled
neighborhood and the per-cell ``weight x sample`` products, so a UI can
show the arithmetic behind the result.

Inside an affine batch the pixel is composed, not applied step by step, so
intermediate steps report the unclamped float value of applying each
transform in sequence; the last step of a batch reports the byte value
actually committed to the buffer.

Usage:
    from filterstack.filters.trace import trace_pixel

    trace = trace_pixel(buffer, stack, x=10, y=20)
    for step in trace.steps:
        print(step.kind, step.input, '->', step.output)
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

import numpy as np

from ..raster import RasterBuffer
from .color_space import ColorDescription, describe_color
from .convolution import sample_window
from .executor import ExecutionObserver, ExecutorState, PipelineExecutor, PipelineOptions, StepEvent
from .instances import FilterInstance


@dataclass
class KernelTrace:
    """One kernel applied at the traced pixel.

    :param label: Kernel name (e.g. 'gaussian', 'Gx')
    :param kernel: (N, N) weights
    :param products: (N, N, 3) weight x sample per cell and channel
    :param totals: (3,) unclamped sums of the products
    """
    label: str
    kernel: np.ndarray
    products: np.ndarray
    totals: np.ndarray


@dataclass
class TraceStep:
    """One instance's effect on the traced pixel.

    :param instance_id: Id of the instance
    :param kind: Filter kind value
    :param stage: Pass type the instance ran in
    :param input: RGB before the step
    :param output: RGB after the step
    :param sample_xy: Coordinate the neighborhood was sampled at (stride aligned)
    :param window: (N, N, 3) sampled neighborhood for convolution steps
    :param valid: (N, N) mask of window cells that read real pixels
    :param kernels: Per-kernel products for convolution steps
    """
    instance_id: str
    kind: str
    stage: ExecutorState
    input: tuple[float, float, float]
    output: tuple[float, float, float]
    sample_xy: tuple[int, int] | None = None
    window: np.ndarray | None = None
    valid: np.ndarray | None = None
    kernels: list[KernelTrace] = field(default_factory=list)


@dataclass
class PixelTrace:
    """Full trace of one pixel through a pipeline."""
    x: int
    y: int
    original: tuple[int, int, int, int]
    final: tuple[int, int, int, int]
    steps: list[TraceStep] = field(default_factory=list)

    def describe_final(self) -> ColorDescription:
        return describe_color(self.final[:3])


def _rgb(values) -> tuple[float, float, float]:
    return tuple(float(v) for v in values)


class TraceObserver(ExecutionObserver):
    """Collects the traced pixel from each executor step."""

    def __init__(self, x: int, y: int, weights):
        self.x = x
        self.y = y
        self.weights = weights
        self.steps: list[TraceStep] = []
        self._batch_value: np.ndarray | None = None

    def on_step(self, event: StepEvent) -> None:
        if event.stage is ExecutorState.BATCHING_AFFINE:
            self.steps.append(self._affine_step(event))
        elif event.stage is ExecutorState.APPLYING_CONVOLUTION:
            self.steps.append(self._convolution_step(event))
        else:
            self.steps.append(self._step(event, event.before[self.y, self.x, :3], event.after[self.y, self.x, :3]))

    def _step(self, event: StepEvent, before, after, **extra: Any) -> TraceStep:
        return TraceStep(
            instance_id=event.instance.id,
            kind=event.instance.kind.value,
            stage=event.stage,
            input=_rgb(before),
            output=_rgb(after),
            **extra,
        )

    def _affine_step(self, event: StepEvent) -> TraceStep:
        if event.batch_position == 0:
            self._batch_value = event.before[self.y, self.x, :3].astype(np.float64)
        current = self._batch_value
        if event.batch_position == event.batch_size - 1:
            value = event.after[self.y, self.x, :3].astype(np.float64)
        elif event.before[self.y, self.x, 3] == 0:
            value = current
        else:
            value = event.transform.apply(current)
        self._batch_value = value
        return self._step(event, current, value)

    def _convolution_step(self, event: StepEvent) -> TraceStep:
        plan = event.plan
        sx = (self.x // plan.stride) * plan.stride
        sy = (self.y // plan.stride) * plan.stride
        window, valid = sample_window(
            event.before, sx, sy, plan.size, plan.padding,
            per_channel=plan.per_channel, weights=self.weights,
        )
        kernels = []
        for lk in plan.kernels:
            products = lk.kernel[:, :, np.newaxis] * window
            kernels.append(KernelTrace(lk.label, lk.kernel, products, products.sum(axis=(0, 1))))
        return self._step(
            event, event.before[self.y, self.x, :3], event.after[self.y, self.x, :3],
            sample_xy=(sx, sy), window=window, valid=valid, kernels=kernels,
        )


def trace_pixel(
    buffer: RasterBuffer | np.ndarray,
    pipeline: Iterable[FilterInstance | Mapping[str, Any]],
    x: int,
    y: int,
    options: PipelineOptions | None = None,
) -> PixelTrace:
    """Trace pixel (x, y) through ``pipeline`` without modifying ``buffer``.

    Args:
        buffer: Source RasterBuffer or uint8 (H, W, 4) array
        pipeline: Instances in storage order
        x, y: Pixel coordinate
        options: Global toggles; defaults come from settings

    Returns:
        PixelTrace with one step per enabled instance, in execution order
    """
    source = buffer if isinstance(buffer, RasterBuffer) else RasterBuffer(buffer)
    work = source.copy()
    original = work.pixel(x, y)
    options = options or PipelineOptions.from_settings()

    observer = TraceObserver(x, y, options.weights)
    PipelineExecutor().run(work, pipeline, options, observer)
    return PixelTrace(x=x, y=y, original=original, final=work.pixel(x, y), steps=observer.steps)


__all__ = ['KernelTrace', 'TraceStep', 'PixelTrace', 'TraceObserver', 'trace_pixel']
