"""Shared numeric tables for the pipeline engine."""
from enum import Enum

import numpy as np

# Gamma-space luma weights
LUMA_REC601 = np.array([0.299, 0.587, 0.114])
LUMA_REC709 = np.array([0.2126, 0.7152, 0.0722])

# Luminance of the sRGB primaries in linear light
LINEAR_LUMINANCE = LUMA_REC709

# sRGB transfer function
SRGB_ENCODED_THRESHOLD = 0.04045
SRGB_LINEAR_THRESHOLD = 0.0031308
SRGB_LINEAR_SLOPE = 12.92

# Mid-gray pivot for contrast
CONTRAST_PIVOT = 128.0

# Whites/blacks smoothstep edges on normalized luma
WHITES_EDGES = (0.4, 0.8)
BLACKS_EDGES = (0.8, 0.2)

# D65 reference white
D65_WHITE = np.array([0.95047, 1.0, 1.08883])

# Linear sRGB -> XYZ (D65)
SRGB_TO_XYZ = np.array([
    [0.4124564, 0.3575761, 0.1804375],
    [0.2126729, 0.7151522, 0.0721750],
    [0.0193339, 0.1191920, 0.9503041],
])

LAB_EPSILON = (6.0 / 29.0) ** 3
LAB_KAPPA = (29.0 / 6.0) ** 2 / 3.0

KERNEL_SIZES = (3, 5, 7, 9)


class LumaModel(str, Enum):
    """Gamma-space luma weight set used pipeline-wide."""
    REC601 = 'rec601'
    REC709 = 'rec709'

    @property
    def weights(self) -> np.ndarray:
        return LUMA_REC601 if self is LumaModel.REC601 else LUMA_REC709


class PaddingMode(str, Enum):
    """Policy for sampling outside the image bounds."""
    ZERO = 'zero'
    EDGE = 'edge'
    REFLECT = 'reflect'


__all__ = [
    'LUMA_REC601', 'LUMA_REC709', 'LINEAR_LUMINANCE',
    'SRGB_ENCODED_THRESHOLD', 'SRGB_LINEAR_THRESHOLD', 'SRGB_LINEAR_SLOPE',
    'CONTRAST_PIVOT', 'WHITES_EDGES', 'BLACKS_EDGES',
    'D65_WHITE', 'SRGB_TO_XYZ', 'LAB_EPSILON', 'LAB_KAPPA',
    'KERNEL_SIZES', 'LumaModel', 'PaddingMode',
]
