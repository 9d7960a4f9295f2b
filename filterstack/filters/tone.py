"""
Per-pixel non-linear tone and saturation transforms.

These adjustments depend on each pixel's own statistics (luma, estimated
saturation) and therefore cannot be folded into an affine batch. Each
function takes float RGB values ``(..., 3)`` on the 0-255 scale and returns
clamped floats of the same shape; quantizing back to bytes is left to the
caller.

Usage:
    from filterstack.filters.tone import vibrance, whites

    out = vibrance(rgb, 0.5)
    out = whites(rgb, 30)
"""
from __future__ import annotations

import numpy as np

from .color_space import linear_to_srgb, srgb_to_linear
from .constants import BLACKS_EDGES, LINEAR_LUMINANCE, LUMA_REC601, WHITES_EDGES


def _as_rgb(rgb) -> np.ndarray:
    arr = np.asarray(rgb, dtype=np.float64)
    if arr.shape[-1] != 3:
        raise ValueError(f"Expected trailing RGB axis of size 3, got shape {arr.shape}")
    return arr


def _estimated_saturation(rgb: np.ndarray) -> np.ndarray:
    """(max - min) / max per pixel, 0 where max is 0."""
    max_c = rgb.max(axis=-1)
    min_c = rgb.min(axis=-1)
    return np.where(max_c > 0, (max_c - min_c) / np.where(max_c > 0, max_c, 1.0), 0.0)


def _is_gray(rgb: np.ndarray) -> np.ndarray:
    return (rgb[..., 0] == rgb[..., 1]) & (rgb[..., 1] == rgb[..., 2])


# ============================================================================
# Saturation / Vibrance
# ============================================================================

def saturation_linear(rgb, value: float) -> np.ndarray:
    """Saturation adjustment performed in linear light.

    Each linear channel is interpolated toward the Rec.709 luminance ``Y``
    by ``value`` and re-encoded to sRGB.

    Args:
        rgb: Float RGB (..., 3), 0-255
        value: 0 = grayscale, 1 = unchanged, 2 = double saturation

    Returns:
        Clamped float RGB, same shape
    """
    arr = _as_rgb(rgb)
    linear = srgb_to_linear(arr)
    y = (linear @ LINEAR_LUMINANCE)[..., np.newaxis]
    return np.clip(linear_to_srgb(y + (linear - y) * value), 0.0, 255.0)


def vibrance(rgb, amount: float, linear: bool = False, weights=LUMA_REC601) -> np.ndarray:
    """Adaptive saturation that pushes low-chroma pixels hardest.

    The existing saturation ``s = (max - min) / max`` drives the factor
    ``f = 1 + amount * (1 - s)``; every channel is then interpolated away
    from luma by ``f``. In linear mode both the estimate and the
    interpolation happen in linear light against Rec.709 luminance.
    Neutral pixels (R = G = B) are returned unchanged.

    Args:
        rgb: Float RGB (..., 3), 0-255
        amount: -1.0 to 1.0
        linear: Work in linear light instead of gamma space
        weights: Gamma-space luma weights

    Returns:
        Clamped float RGB, same shape
    """
    arr = _as_rgb(rgb)
    gray = _is_gray(arr)[..., np.newaxis]
    if linear:
        lin = srgb_to_linear(arr)
        factor = (1.0 + amount * (1.0 - _estimated_saturation(lin)))[..., np.newaxis]
        y = (lin @ LINEAR_LUMINANCE)[..., np.newaxis]
        result = linear_to_srgb(y + (lin - y) * factor)
    else:
        factor = (1.0 + amount * (1.0 - _estimated_saturation(arr)))[..., np.newaxis]
        y = (arr @ np.asarray(weights, dtype=np.float64))[..., np.newaxis]
        result = y + (arr - y) * factor
    return np.clip(np.where(gray, arr, result), 0.0, 255.0)


# ============================================================================
# Tone curves
# ============================================================================

def smoothstep(edge0: float, edge1: float, x) -> np.ndarray:
    """Cubic falloff ``t^2 (3 - 2t)`` with ``t = clamp((x - e0) / (e1 - e0))``.

    Inverted edges (``edge0 > edge1``) give a falling curve. Equal edges
    degenerate to a hard step at ``edge0``.
    """
    x = np.asarray(x, dtype=np.float64)
    if edge0 == edge1:
        return np.where(x < edge0, 0.0, 1.0)
    t = np.clip((x - edge0) / (edge1 - edge0), 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)


def _tone_shift(rgb, value: float, edges: tuple[float, float]) -> np.ndarray:
    # Tone masks always read Rec.601 luma, whatever the pipeline luma model
    arr = _as_rgb(rgb)
    lum = (arr @ LUMA_REC601) / 255.0
    adjustment = value * smoothstep(edges[0], edges[1], lum)
    return np.clip(arr + adjustment[..., np.newaxis], 0.0, 255.0)


def whites(rgb, value: float) -> np.ndarray:
    """Shift bright pixels by up to ``value`` (smoothstep 0.4 -> 0.8 on luma)."""
    return _tone_shift(rgb, value, WHITES_EDGES)


def blacks(rgb, value: float) -> np.ndarray:
    """Shift dark pixels by up to ``value`` (smoothstep 0.8 -> 0.2 on luma)."""
    return _tone_shift(rgb, value, BLACKS_EDGES)


__all__ = ['saturation_linear', 'vibrance', 'smoothstep', 'whites', 'blacks']
