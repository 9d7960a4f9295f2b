"""
Convolution engine: padding, per-pixel and full-image kernel application.

Kernels are odd square float arrays with arbitrary weights. Out-of-range
samples are resolved through a padding mode:

| Mode | Behaviour |
|------|-----------|
| zero | sample contributes nothing (skipped) |
| edge | clamped to the nearest border pixel |
| reflect | mirrored about the border without repeating it (-1 -> 1) |

Full-image passes are vectorized over shifted gathers, one per kernel cell.
With ``stride > 1`` only every stride-th row/column is computed and the
skipped pixels copy the nearest lower stride-aligned result (an
approximation, not downsampling). Alpha is copied from the source
unchanged, including for fully transparent pixels.

Usage:
    from filterstack.filters.convolution import convolve_image_data
    from filterstack.filters.kernels import box_kernel

    out = convolve_image_data(pixels, box_kernel(3), padding='edge')
"""
from __future__ import annotations

import numpy as np
from scipy import ndimage

from ..raster import to_uint8
from .constants import LUMA_REC601, PaddingMode


def _padding_mode(mode) -> PaddingMode:
    try:
        return PaddingMode(mode)
    except ValueError:
        raise ValueError(f"Unknown padding mode: {mode!r}") from None


def _check_kernel(kernel) -> np.ndarray:
    k = np.asarray(kernel, dtype=np.float64)
    if k.ndim != 2 or k.shape[0] != k.shape[1]:
        raise ValueError(f"Expected square kernel, got shape {k.shape}")
    if k.shape[0] % 2 == 0:
        raise ValueError(f"Expected odd kernel size, got {k.shape[0]}")
    return k


def _check_pixels(pixels: np.ndarray) -> None:
    if pixels.ndim != 3 or pixels.shape[2] != 4:
        raise ValueError(f"Expected RGBA pixels (H, W, 4), got shape {pixels.shape}")


# ============================================================================
# Padding
# ============================================================================

def pad_indices(indices, limit: int, mode='edge') -> np.ndarray:
    """Resolve sample coordinates along one axis.

    Args:
        indices: Integer coordinates, possibly out of range
        limit: Axis length
        mode: 'zero', 'edge' or 'reflect'

    Returns:
        In-range coordinates; -1 marks a zero-padded sample
    """
    mode = _padding_mode(mode)
    idx = np.asarray(indices, dtype=np.int64)
    inside = (idx >= 0) & (idx < limit)
    if mode is PaddingMode.ZERO:
        resolved = np.full_like(idx, -1)
    elif mode is PaddingMode.EDGE:
        resolved = np.clip(idx, 0, limit - 1)
    else:
        period = 2 * (limit - 1)
        if period == 0:
            resolved = np.zeros_like(idx)
        else:
            folded = np.abs(idx) % period
            resolved = np.where(folded >= limit, period - folded, folded)
    return np.where(inside, idx, resolved)


def pad_index(i: int, limit: int, mode='edge') -> int:
    """Scalar form of :func:`pad_indices`."""
    return int(pad_indices(np.array([i]), limit, mode)[0])


# ============================================================================
# Sampling
# ============================================================================

def _source_channels(pixels: np.ndarray, per_channel: bool, weights) -> np.ndarray:
    rgb = pixels[:, :, :3].astype(np.float64)
    if per_channel:
        return rgb
    gray = rgb @ np.asarray(weights, dtype=np.float64)
    return np.repeat(gray[:, :, np.newaxis], 3, axis=2)


def _gather(source: np.ndarray, rows: np.ndarray, cols: np.ndarray) -> np.ndarray:
    """Gather ``source[rows][:, cols]`` with -1 entries reading as zero."""
    valid = (rows >= 0)[:, np.newaxis] & (cols >= 0)[np.newaxis, :]
    sample = source[np.maximum(rows, 0)][:, np.maximum(cols, 0)]
    return np.where(valid[:, :, np.newaxis], sample, 0.0)


def sample_window(pixels: np.ndarray, x: int, y: int, size: int, padding='edge',
                  dilation: int = 1, per_channel: bool = True,
                  weights=LUMA_REC601) -> tuple[np.ndarray, np.ndarray]:
    """Neighborhood of (x, y) as the kernel sees it.

    Args:
        pixels: uint8 RGBA array (H, W, 4)
        x, y: Center coordinate
        size: Odd window size
        padding: Padding mode
        dilation: Spacing between sampled cells
        per_channel: False to broadcast luma to all three channels
        weights: Luma weights for ``per_channel=False``

    Returns:
        (window, valid): float samples (size, size, 3) with zero-padded cells
        set to 0, and a (size, size) mask of cells that read real pixels
    """
    _check_pixels(pixels)
    height, width = pixels.shape[:2]
    half = size // 2
    offsets = (np.arange(size) - half) * dilation
    rows = pad_indices(y + offsets, height, padding)
    cols = pad_indices(x + offsets, width, padding)
    window = _gather(_source_channels(pixels, per_channel, weights), rows, cols)
    valid = (rows >= 0)[:, np.newaxis] & (cols >= 0)[np.newaxis, :]
    return window, valid


def accumulate_at_pixel(pixels: np.ndarray, x: int, y: int, kernel, padding='edge',
                        per_channel: bool = True, dilation: int = 1,
                        weights=LUMA_REC601) -> np.ndarray:
    """Unclamped weighted sum of the neighborhood of (x, y), shape (3,)."""
    k = _check_kernel(kernel)
    window, _ = sample_window(pixels, x, y, k.shape[0], padding, dilation, per_channel, weights)
    return np.einsum('ij,ijc->c', k, window)


def convolve_at_pixel(pixels: np.ndarray, x: int, y: int, kernel, padding='edge',
                      per_channel: bool = True, dilation: int = 1,
                      weights=LUMA_REC601) -> np.ndarray:
    """Convolution result at (x, y) clamped to [0, 255], shape (3,)."""
    raw = accumulate_at_pixel(pixels, x, y, kernel, padding, per_channel, dilation, weights)
    return np.clip(raw, 0.0, 255.0)


# ============================================================================
# Full-image passes
# ============================================================================

def _stride_grid(height: int, width: int, stride: int) -> tuple[np.ndarray, np.ndarray]:
    if stride < 1:
        raise ValueError(f"Stride must be >= 1, got {stride}")
    return np.arange(0, height, stride), np.arange(0, width, stride)


def expand_strided(grid: np.ndarray, height: int, width: int, stride: int) -> np.ndarray:
    """Fill a full (H, W, ...) array from a stride-sampled grid.

    Every pixel takes the sample at ``(floor(y/s)*s, floor(x/s)*s)``.
    """
    if stride == 1:
        return grid
    rows = np.arange(height) // stride
    cols = np.arange(width) // stride
    return grid[rows][:, cols]


def convolve_image(pixels: np.ndarray, kernel, padding='edge', per_channel: bool = True,
                   stride: int = 1, dilation: int = 1, weights=LUMA_REC601) -> np.ndarray:
    """Raw convolution sums over the whole image.

    Args:
        pixels: uint8 RGBA array (H, W, 4)
        kernel: Odd square kernel
        padding: Padding mode
        per_channel: False to convolve luma and broadcast it
        stride: Compute every stride-th pixel, fill the rest
        dilation: Spacing between sampled cells
        weights: Luma weights for ``per_channel=False``

    Returns:
        Unclamped float64 RGB sums (H, W, 3)
    """
    _check_pixels(pixels)
    k = _check_kernel(kernel)
    _padding_mode(padding)
    height, width = pixels.shape[:2]
    ys, xs = _stride_grid(height, width, stride)
    source = _source_channels(pixels, per_channel, weights)
    half = k.shape[0] // 2

    acc = np.zeros((len(ys), len(xs), 3))
    for ky in range(k.shape[0]):
        rows = pad_indices(ys + (ky - half) * dilation, height, padding)
        for kx in range(k.shape[1]):
            weight = k[ky, kx]
            if weight == 0.0:
                continue
            cols = pad_indices(xs + (kx - half) * dilation, width, padding)
            acc += weight * _gather(source, rows, cols)
    return expand_strided(acc, height, width, stride)


def with_source_alpha(pixels: np.ndarray, rgb: np.ndarray) -> np.ndarray:
    """New RGBA uint8 array from float RGB (clamped) and the source alpha."""
    out = np.empty_like(pixels)
    out[:, :, :3] = to_uint8(rgb)
    out[:, :, 3] = pixels[:, :, 3]
    return out


def convolve_image_data(pixels: np.ndarray, kernel, padding='edge', per_channel: bool = True,
                        stride: int = 1, dilation: int = 1, weights=LUMA_REC601) -> np.ndarray:
    """Convolve an RGBA image, clamping RGB and copying alpha through.

    Returns:
        New uint8 RGBA array (H, W, 4)
    """
    raw = convolve_image(pixels, kernel, padding, per_channel, stride, dilation, weights)
    return with_source_alpha(pixels, raw)


# ============================================================================
# Rank filter
# ============================================================================

# scipy boundary modes matching each padding mode
_MEDIAN_MODES = {
    PaddingMode.ZERO: 'constant',
    PaddingMode.EDGE: 'nearest',
    PaddingMode.REFLECT: 'mirror',
}


def median_filter(pixels: np.ndarray, size: int, padding='edge', stride: int = 1) -> np.ndarray:
    """Per-channel median over a size x size neighborhood.

    Zero-padded cells enter the window as 0. The result is the sorted
    window's element at ``floor(n / 2)``.

    Returns:
        New uint8 RGBA array (H, W, 4), alpha copied from the source
    """
    _check_pixels(pixels)
    if size < 1 or size % 2 == 0:
        raise ValueError(f"Median size must be a positive odd number, got {size}")
    mode = _MEDIAN_MODES[_padding_mode(padding)]
    height, width = pixels.shape[:2]
    _stride_grid(height, width, stride)

    median = ndimage.median_filter(pixels[:, :, :3], size=(size, size, 1), mode=mode, cval=0)
    sampled = median[::stride, ::stride].astype(np.float64)
    return with_source_alpha(pixels, expand_strided(sampled, height, width, stride))


def median_at_pixel(pixels: np.ndarray, x: int, y: int, size: int, padding='edge') -> np.ndarray:
    """Per-channel median of the neighborhood of (x, y), shape (3,)."""
    window, _ = sample_window(pixels, x, y, size, padding)
    ordered = np.sort(window.reshape(-1, 3), axis=0)
    return ordered[ordered.shape[0] // 2]


__all__ = [
    'pad_indices', 'pad_index', 'sample_window',
    'accumulate_at_pixel', 'convolve_at_pixel',
    'expand_strided', 'convolve_image', 'with_source_alpha', 'convolve_image_data',
    'median_filter', 'median_at_pixel',
]
