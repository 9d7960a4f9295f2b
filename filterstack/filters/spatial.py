"""
Neighborhood filters built on the convolution engine.

Every convolution-kind params model is first turned into a
:class:`ConvolutionPlan` (the kernels plus how to use them), then the plan
is applied to a whole RGBA buffer. The plan is also what the pixel trace
reads to show the per-cell products at one coordinate.

## Modes

| Mode | Kinds | Output |
|------|-------|--------|
| convolve | blur, sharpen, customConv | clamp(K * image) |
| gradient | edge | clamp(combine(Gx * image, Gy * image)) |
| mean | denoise (mean) | original (1 - k) + clamp(box * image) k |
| median | denoise (median) | per-channel rank filter |
"""
from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from ..raster import to_uint8
from .constants import LUMA_REC601
from .convolution import convolve_image, convolve_image_data, median_filter, with_source_alpha
from .instances import (
    BlurParams,
    ConvolutionParams,
    CustomConvParams,
    DenoiseParams,
    EdgeParams,
    FilterKind,
    SharpenParams,
    kernel_array,
)
from .kernels import (
    box_kernel,
    edge_enhance_kernel,
    gaussian_kernel,
    laplacian_kernel,
    prewitt_kernels,
    sobel_kernels,
    unsharp_kernel,
)


@dataclass
class LabelledKernel:
    """A kernel and the name it is shown under (e.g. ``Gx``)."""
    label: str
    kernel: np.ndarray


@dataclass
class ConvolutionPlan:
    """How one convolution instance runs.

    :param kind: Filter kind the plan was built for
    :param mode: 'convolve', 'gradient', 'mean' or 'median'
    :param size: Window size
    :param kernels: Kernels to apply (empty for median)
    :param padding: Padding mode
    :param stride: Stride for the full-image pass
    :param combine: Gradient combine mode ('magnitude', 'x', 'y')
    :param strength: Mean-denoise blend factor
    :param per_channel: False to convolve luma only
    """
    kind: FilterKind
    mode: str
    size: int
    kernels: list[LabelledKernel] = field(default_factory=list)
    padding: str = 'edge'
    stride: int = 1
    combine: str | None = None
    strength: float = 1.0
    per_channel: bool = True


def _blur_plan(params: BlurParams) -> ConvolutionPlan:
    if params.kind == 'gaussian':
        kernel = gaussian_kernel(params.size, params.sigma)
    else:
        kernel = box_kernel(params.size)
    return ConvolutionPlan(FilterKind.BLUR, 'convolve', params.size,
                           [LabelledKernel(params.kind, kernel)], params.padding, params.stride)


def _sharpen_plan(params: SharpenParams) -> ConvolutionPlan:
    if params.kernel is not None:
        kernel = kernel_array(params.kernel)
        label = 'custom'
    elif params.kind == 'unsharp':
        kernel = unsharp_kernel(params.amount, params.size)
        label = params.kind
    elif params.kind == 'laplacian':
        kernel = laplacian_kernel(params.amount)
        label = params.kind
    else:
        kernel = edge_enhance_kernel(params.amount)
        label = params.kind
    return ConvolutionPlan(FilterKind.SHARPEN, 'convolve', kernel.shape[0],
                           [LabelledKernel(label, kernel)], params.padding, params.stride)


def _edge_plan(params: EdgeParams) -> ConvolutionPlan:
    factory = sobel_kernels if params.operator == 'sobel' else prewitt_kernels
    gx, gy = factory(params.size)
    return ConvolutionPlan(FilterKind.EDGE, 'gradient', params.size,
                           [LabelledKernel('Gx', gx), LabelledKernel('Gy', gy)],
                           params.padding, params.stride, combine=params.combine)


def _denoise_plan(params: DenoiseParams) -> ConvolutionPlan:
    if params.kind == 'median':
        return ConvolutionPlan(FilterKind.DENOISE, 'median', params.size, [],
                               params.padding, params.stride)
    strength = min(1.0, max(0.0, params.strength))
    return ConvolutionPlan(FilterKind.DENOISE, 'mean', params.size,
                           [LabelledKernel('box', box_kernel(params.size))],
                           params.padding, params.stride, strength=strength)


def _custom_plan(params: CustomConvParams) -> ConvolutionPlan:
    kernel = kernel_array(params.kernel)
    return ConvolutionPlan(FilterKind.CUSTOM_CONV, 'convolve', kernel.shape[0],
                           [LabelledKernel('custom', kernel)], params.padding, params.stride)


_PLANNERS = {
    BlurParams: _blur_plan,
    SharpenParams: _sharpen_plan,
    EdgeParams: _edge_plan,
    DenoiseParams: _denoise_plan,
    CustomConvParams: _custom_plan,
}


def plan_convolution(params: ConvolutionParams) -> ConvolutionPlan:
    """Build the convolution plan for a convolution-kind params model."""
    planner = _PLANNERS.get(type(params))
    if planner is None:
        raise ValueError(f"Not a convolution params model: {type(params).__name__}")
    return planner(params)


def combine_gradients(gx: np.ndarray, gy: np.ndarray, combine: str) -> np.ndarray:
    """Combine signed gradient responses per channel."""
    if combine == 'x':
        return np.abs(gx)
    if combine == 'y':
        return np.abs(gy)
    if combine == 'magnitude':
        return np.hypot(gx, gy)
    raise ValueError(f"Unknown combine mode: {combine!r}")


def apply_plan(pixels: np.ndarray, plan: ConvolutionPlan, weights=LUMA_REC601) -> np.ndarray:
    """Run a plan over a whole RGBA buffer.

    Args:
        pixels: uint8 RGBA array (H, W, 4), not modified
        plan: Plan from :func:`plan_convolution`
        weights: Luma weights for luma-only plans

    Returns:
        New uint8 RGBA array, alpha copied from ``pixels``
    """
    if plan.mode == 'median':
        return median_filter(pixels, plan.size, plan.padding, plan.stride)

    if plan.mode == 'gradient':
        gx, gy = (
            convolve_image(pixels, lk.kernel, plan.padding, plan.per_channel, plan.stride, weights=weights)
            for lk in plan.kernels
        )
        return with_source_alpha(pixels, combine_gradients(gx, gy, plan.combine))

    kernel = plan.kernels[0].kernel
    filtered = convolve_image_data(pixels, kernel, plan.padding, plan.per_channel, plan.stride, weights=weights)
    if plan.mode == 'convolve':
        return filtered

    # mean: blend the original with the quantized filter output
    k = plan.strength
    out = filtered.copy()
    blended = pixels[:, :, :3].astype(np.float64) * (1.0 - k) + filtered[:, :, :3].astype(np.float64) * k
    out[:, :, :3] = to_uint8(blended)
    return out


__all__ = [
    'LabelledKernel', 'ConvolutionPlan', 'plan_convolution', 'combine_gradients', 'apply_plan',
]
