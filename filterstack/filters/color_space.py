"""
Color-space conversions for diagnostics and per-pixel transforms.

All functions are pure and vectorized over a trailing channel axis, so they
accept a single pixel ``(3,)`` as well as whole images ``(H, W, 3)``. RGB
inputs are gamma-encoded sRGB in the 0-255 range (floats or bytes).

## Output Ranges

| Function | Output |
|----------|--------|
| srgb_to_linear | 0.0-1.0 linear light |
| linear_to_srgb | 0.0-255.0 encoded (unclamped floats) |
| rgb_to_hsv | H degrees 0-360, S and V 0-1 |
| rgb_to_hsl | H degrees 0-360, S and L 0-1 |
| rgb_to_xyz | D65 XYZ, Y 0-1 |
| rgb_to_lab | L 0-100, a and b roughly -128-127 |
| rgb_to_ycbcr | BT.601 full range, Cb/Cr centered at 128 |

None of these mutate pipeline buffers.

Usage:
    from filterstack.filters.color_space import srgb_to_linear, rgb_to_lab

    lab = rgb_to_lab(np.array([200, 150, 100]))
"""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .constants import (
    D65_WHITE,
    LAB_EPSILON,
    LAB_KAPPA,
    LINEAR_LUMINANCE,
    LUMA_REC601,
    SRGB_ENCODED_THRESHOLD,
    SRGB_LINEAR_SLOPE,
    SRGB_LINEAR_THRESHOLD,
    SRGB_TO_XYZ,
)


def _as_rgb(rgb) -> np.ndarray:
    arr = np.asarray(rgb, dtype=np.float64)
    if arr.shape[-1] != 3:
        raise ValueError(f"Expected trailing RGB axis of size 3, got shape {arr.shape}")
    return arr


# ============================================================================
# sRGB transfer function
# ============================================================================

def srgb_to_linear(rgb) -> np.ndarray:
    """Decode 0-255 sRGB values to 0-1 linear light.

    Args:
        rgb: Encoded values 0-255, any shape

    Returns:
        Linear-light float64 values 0-1, same shape
    """
    c = np.asarray(rgb, dtype=np.float64) / 255.0
    return np.where(
        c <= SRGB_ENCODED_THRESHOLD,
        c / SRGB_LINEAR_SLOPE,
        ((c + 0.055) / 1.055) ** 2.4,
    )


def linear_to_srgb(linear) -> np.ndarray:
    """Encode 0-1 linear light to 0-255 sRGB floats (not clamped).

    Args:
        linear: Linear-light values, any shape

    Returns:
        Encoded float64 values on the 0-255 scale, same shape
    """
    c = np.asarray(linear, dtype=np.float64)
    # Negative inputs only reach the linear segment
    power = 1.055 * np.power(np.maximum(c, SRGB_LINEAR_THRESHOLD), 1.0 / 2.4) - 0.055
    encoded = np.where(c <= SRGB_LINEAR_THRESHOLD, c * SRGB_LINEAR_SLOPE, power)
    return encoded * 255.0


# ============================================================================
# Luma
# ============================================================================

def luma(rgb, weights=LUMA_REC601) -> np.ndarray:
    """Weighted RGB sum over the trailing axis.

    Args:
        rgb: Values (..., 3) in any scale
        weights: Three channel weights

    Returns:
        Luma with the channel axis removed, in the input scale
    """
    return _as_rgb(rgb) @ np.asarray(weights, dtype=np.float64)


# ============================================================================
# Cylindrical models
# ============================================================================

def _hue_degrees(rgb: np.ndarray, max_c: np.ndarray, delta: np.ndarray) -> np.ndarray:
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    safe = np.where(delta > 0, delta, 1.0)
    hue = np.where(
        max_c == r,
        np.mod((g - b) / safe, 6.0),
        np.where(max_c == g, (b - r) / safe + 2.0, (r - g) / safe + 4.0),
    )
    return np.where(delta > 0, hue * 60.0, 0.0)


def rgb_to_hsv(rgb) -> np.ndarray:
    """Convert 0-255 RGB to HSV (hue in degrees, S/V in 0-1)."""
    arr = _as_rgb(rgb) / 255.0
    max_c = arr.max(axis=-1)
    min_c = arr.min(axis=-1)
    delta = max_c - min_c
    hue = _hue_degrees(arr, max_c, delta)
    sat = np.where(max_c > 0, delta / np.where(max_c > 0, max_c, 1.0), 0.0)
    return np.stack([hue, sat, max_c], axis=-1)


def rgb_to_hsl(rgb) -> np.ndarray:
    """Convert 0-255 RGB to HSL (hue in degrees, S/L in 0-1)."""
    arr = _as_rgb(rgb) / 255.0
    max_c = arr.max(axis=-1)
    min_c = arr.min(axis=-1)
    delta = max_c - min_c
    light = (max_c + min_c) / 2.0
    hue = _hue_degrees(arr, max_c, delta)
    denom = 1.0 - np.abs(2.0 * light - 1.0)
    sat = np.where(delta > 0, delta / np.where(denom > 0, denom, 1.0), 0.0)
    return np.stack([hue, sat, light], axis=-1)


# ============================================================================
# CIE models
# ============================================================================

def rgb_to_xyz(rgb) -> np.ndarray:
    """Convert 0-255 sRGB to CIE XYZ (D65), Y of white = 1."""
    return srgb_to_linear(_as_rgb(rgb)) @ SRGB_TO_XYZ.T


def _lab_f(t: np.ndarray) -> np.ndarray:
    return np.where(t > LAB_EPSILON, np.cbrt(t), t * LAB_KAPPA + 4.0 / 29.0)


def rgb_to_lab(rgb) -> np.ndarray:
    """Convert 0-255 sRGB to CIE L*a*b* (D65 white point).

    XYZ is clamped to non-negative before the cube-root step.
    """
    xyz = np.maximum(rgb_to_xyz(rgb), 0.0) / D65_WHITE
    fx, fy, fz = _lab_f(xyz[..., 0]), _lab_f(xyz[..., 1]), _lab_f(xyz[..., 2])
    return np.stack([116.0 * fy - 16.0, 500.0 * (fx - fy), 200.0 * (fy - fz)], axis=-1)


# ============================================================================
# Video models
# ============================================================================

def rgb_to_ycbcr(rgb) -> np.ndarray:
    """Convert 0-255 RGB to full-range BT.601 YCbCr."""
    arr = _as_rgb(rgb)
    r, g, b = arr[..., 0], arr[..., 1], arr[..., 2]
    y = 0.299 * r + 0.587 * g + 0.114 * b
    cb = 128.0 - 0.168736 * r - 0.331264 * g + 0.5 * b
    cr = 128.0 + 0.5 * r - 0.418688 * g - 0.081312 * b
    return np.stack([y, cb, cr], axis=-1)


# ============================================================================
# Diagnostics bundle
# ============================================================================

@dataclass
class ColorDescription:
    """One pixel expressed in every supported color model.

    :param rgb: Source RGB 0-255
    :param linear: Linear-light RGB 0-1
    :param hsv: Hue degrees, saturation, value
    :param hsl: Hue degrees, saturation, lightness
    :param xyz: CIE XYZ (D65)
    :param lab: CIE L*a*b*
    :param ycbcr: BT.601 YCbCr
    :param luma: Rec.601 luma 0-255
    :param luminance: Linear-light relative luminance 0-1
    """
    rgb: tuple[float, float, float]
    linear: tuple[float, float, float]
    hsv: tuple[float, float, float]
    hsl: tuple[float, float, float]
    xyz: tuple[float, float, float]
    lab: tuple[float, float, float]
    ycbcr: tuple[float, float, float]
    luma: float
    luminance: float


def describe_color(rgb) -> ColorDescription:
    """Describe a single RGB pixel in all supported color models."""
    arr = _as_rgb(rgb)
    if arr.shape != (3,):
        raise ValueError(f"Expected a single pixel of shape (3,), got {arr.shape}")
    linear = srgb_to_linear(arr)

    def _t(values) -> tuple[float, float, float]:
        return tuple(float(v) for v in values)

    return ColorDescription(
        rgb=_t(arr),
        linear=_t(linear),
        hsv=_t(rgb_to_hsv(arr)),
        hsl=_t(rgb_to_hsl(arr)),
        xyz=_t(rgb_to_xyz(arr)),
        lab=_t(rgb_to_lab(arr)),
        ycbcr=_t(rgb_to_ycbcr(arr)),
        luma=float(luma(arr)),
        luminance=float(linear @ LINEAR_LUMINANCE),
    )


__all__ = [
    'srgb_to_linear', 'linear_to_srgb', 'luma',
    'rgb_to_hsv', 'rgb_to_hsl', 'rgb_to_xyz', 'rgb_to_lab', 'rgb_to_ycbcr',
    'ColorDescription', 'describe_color',
]
