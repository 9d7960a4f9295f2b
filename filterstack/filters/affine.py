"""
Affine color transforms: builders, composer, and buffer application.

An affine transform maps a pixel ``p`` (RGB floats) to ``M @ p + offset``.
Brightness, contrast, hue rotation and gamma-space saturation are all
affine, so a run of them collapses into a single transform that is applied
once per pixel.

Usage:
    from filterstack.filters.affine import brightness_transform, contrast_transform, compose

    combined = compose([brightness_transform(20), contrast_transform(1.5)])
    combined.apply(np.array([200.0, 150.0, 100.0]))
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from functools import reduce
from typing import Sequence

import numpy as np

from ..raster import to_uint8
from .constants import CONTRAST_PIVOT, LUMA_REC601


@dataclass
class AffineTransform:
    """3x3 row-major color matrix plus additive offset.

    :param matrix: (3, 3) float matrix
    :param offset: (3,) float offset, added after the matrix product
    """
    matrix: np.ndarray = field(default_factory=lambda: np.eye(3))
    offset: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self):
        self.matrix = np.asarray(self.matrix, dtype=np.float64)
        self.offset = np.asarray(self.offset, dtype=np.float64)
        if self.matrix.shape != (3, 3):
            raise ValueError(f"Expected (3, 3) matrix, got shape {self.matrix.shape}")
        if self.offset.shape != (3,):
            raise ValueError(f"Expected (3,) offset, got shape {self.offset.shape}")

    @classmethod
    def identity(cls) -> 'AffineTransform':
        return cls()

    def is_identity(self, tol: float = 0.0) -> bool:
        return bool(
            np.allclose(self.matrix, np.eye(3), rtol=0.0, atol=tol)
            and np.allclose(self.offset, 0.0, rtol=0.0, atol=tol)
        )

    def apply(self, rgb) -> np.ndarray:
        """Apply to float RGB values (..., 3). No clamping."""
        return np.asarray(rgb, dtype=np.float64) @ self.matrix.T + self.offset

    def then(self, other: 'AffineTransform') -> 'AffineTransform':
        """Transform equivalent to applying ``self`` first, then ``other``."""
        return AffineTransform(
            matrix=other.matrix @ self.matrix,
            offset=other.matrix @ self.offset + other.offset,
        )


# ============================================================================
# Builders
# ============================================================================

def brightness_transform(value: float) -> AffineTransform:
    """Add ``value`` to every channel."""
    return AffineTransform(offset=np.full(3, float(value)))


def contrast_transform(value: float) -> AffineTransform:
    """Scale every channel around mid-gray 128."""
    return AffineTransform(
        matrix=np.eye(3) * value,
        offset=np.full(3, CONTRAST_PIVOT * (1.0 - value)),
    )


def saturation_transform(value: float, weights=LUMA_REC601) -> AffineTransform:
    """Interpolate each channel between luma and itself by ``value``.

    Every output channel is ``value * channel + (1 - value) * luma``.

    Args:
        value: 0 = grayscale, 1 = unchanged, >1 = oversaturated
        weights: Luma weights (wR, wG, wB)
    """
    luma_rows = np.tile(np.asarray(weights, dtype=np.float64), (3, 1))
    return AffineTransform(matrix=np.eye(3) * value + (1.0 - value) * luma_rows)


def hue_transform(degrees: float) -> AffineTransform:
    """Rotate colors around the gray axis (R = G = B) by ``degrees``."""
    theta = degrees * math.pi / 180.0
    cos_t = math.cos(theta)
    sin_t = math.sin(theta)
    third = (1.0 - cos_t) / 3.0
    root = math.sqrt(1.0 / 3.0) * sin_t
    diag = cos_t + third
    off1 = third - root
    off2 = third + root
    return AffineTransform(matrix=np.array([
        [diag, off1, off2],
        [off2, diag, off1],
        [off1, off2, diag],
    ]))


# ============================================================================
# Composer
# ============================================================================

def compose(transforms: Sequence[AffineTransform]) -> AffineTransform:
    """Fold transforms, in application order, into one.

    For T1..Tn applied in that order the result is ``M = Mn...M1`` with each
    accumulated offset carried through the next matrix before that
    transform's own offset is added.

    Args:
        transforms: Transforms in the order they would be applied

    Returns:
        Identity for an empty list, the sole transform for a single one
    """
    if not transforms:
        return AffineTransform.identity()
    if len(transforms) == 1:
        return transforms[0]
    return reduce(lambda acc, t: acc.then(t), transforms[1:], transforms[0])


# ============================================================================
# Buffer application
# ============================================================================

def apply_affine(pixels: np.ndarray, transform: AffineTransform) -> np.ndarray:
    """Apply a transform to an RGBA buffer in place.

    Pixels with alpha == 0 are left untouched. Alpha is never modified.

    Args:
        pixels: uint8 array (H, W, 4), modified in place
        transform: Transform to apply

    Returns:
        The same ``pixels`` array
    """
    if pixels.ndim != 3 or pixels.shape[2] != 4:
        raise ValueError(f"Expected RGBA pixels (H, W, 4), got shape {pixels.shape}")
    visible = pixels[:, :, 3] != 0
    rgb = pixels[:, :, :3]
    rgb[visible] = to_uint8(transform.apply(rgb[visible]))
    return pixels


__all__ = [
    'AffineTransform',
    'brightness_transform', 'contrast_transform', 'saturation_transform', 'hue_transform',
    'compose', 'apply_affine',
]
