"""
Convolution kernel factory.

Kernels are plain square float64 numpy arrays with odd size. They are
rebuilt on every call; nothing is cached.

## Kernels

| Factory | Size | Sum |
|---------|------|-----|
| gaussian_kernel | any odd | 1 |
| box_kernel | any odd | 1 |
| sobel_kernels / prewitt_kernels | 3, 5 | 0 |
| unsharp_kernel | any odd | 1 |
| laplacian_kernel / edge_enhance_kernel | 3 | 1 |
| identity_kernel | any odd | 1 |

Usage:
    from filterstack.filters.kernels import gaussian_kernel, sobel_kernels

    k = gaussian_kernel(5)
    gx, gy = sobel_kernels(3)
"""
from __future__ import annotations

import numpy as np

# Sigma used when a gaussian blur omits it
DEFAULT_GAUSSIAN_SIGMA = {3: 0.85, 5: 1.2, 7: 1.6, 9: 2.0}

# Separable gradient factors: (smoothing, derivative)
_SOBEL_FACTORS = {
    3: ([1.0, 2.0, 1.0], [-1.0, 0.0, 1.0]),
    5: ([1.0, 4.0, 6.0, 4.0, 1.0], [-1.0, -2.0, 0.0, 2.0, 1.0]),
}
_PREWITT_FACTORS = {
    3: ([1.0, 1.0, 1.0], [-1.0, 0.0, 1.0]),
    5: ([1.0, 1.0, 1.0, 1.0, 1.0], [-2.0, -1.0, 0.0, 1.0, 2.0]),
}


def _check_size(size: int) -> None:
    if size < 1 or size % 2 == 0:
        raise ValueError(f"Kernel size must be a positive odd number, got {size}")


def gaussian_kernel(size: int, sigma: float | None = None) -> np.ndarray:
    """Normalized gaussian ``exp(-(x^2 + y^2) / (2 sigma^2))``.

    Args:
        size: Odd kernel size
        sigma: Standard deviation; defaults to 0.85 / 1.2 / 1.6 / 2.0
            for sizes 3 / 5 / 7 / 9

    Returns:
        (size, size) kernel whose weights sum to 1
    """
    _check_size(size)
    if sigma is None:
        if size not in DEFAULT_GAUSSIAN_SIGMA:
            raise ValueError(f"No default sigma for size {size}")
        sigma = DEFAULT_GAUSSIAN_SIGMA[size]
    if sigma <= 0:
        raise ValueError(f"Sigma must be positive, got {sigma}")
    half = size // 2
    coords = np.arange(-half, half + 1, dtype=np.float64)
    xx, yy = np.meshgrid(coords, coords)
    kernel = np.exp(-(xx * xx + yy * yy) / (2.0 * sigma * sigma))
    return kernel / kernel.sum()


def box_kernel(size: int) -> np.ndarray:
    """Uniform kernel with every weight ``1 / size^2``."""
    _check_size(size)
    return np.full((size, size), 1.0 / (size * size))


def _gradient_pair(factors: dict, name: str, size: int) -> tuple[np.ndarray, np.ndarray]:
    if size not in factors:
        raise ValueError(f"{name} supports sizes {sorted(factors)}, got {size}")
    smooth, deriv = factors[size]
    gx = np.outer(smooth, deriv)
    return gx, gx.T.copy()


def sobel_kernels(size: int = 3) -> tuple[np.ndarray, np.ndarray]:
    """Sobel gradient pair (Gx, Gy). Size 5 is the separable extension."""
    return _gradient_pair(_SOBEL_FACTORS, 'Sobel', size)


def prewitt_kernels(size: int = 3) -> tuple[np.ndarray, np.ndarray]:
    """Prewitt gradient pair (Gx, Gy). Size 5 is the separable extension."""
    return _gradient_pair(_PREWITT_FACTORS, 'Prewitt', size)


def unsharp_kernel(amount: float, size: int = 3) -> np.ndarray:
    """``-amount * box(size)`` with ``1 + amount`` added at the center."""
    kernel = -amount * box_kernel(size)
    center = size // 2
    kernel[center, center] += 1.0 + amount
    return kernel


def laplacian_kernel(amount: float) -> np.ndarray:
    """3x3 Laplacian sharpen: original plus ``amount`` times the Laplacian."""
    a = float(amount)
    return np.array([
        [0.0, -a, 0.0],
        [-a, 1.0 + 4.0 * a, -a],
        [0.0, -a, 0.0],
    ])


def edge_enhance_kernel(amount: float) -> np.ndarray:
    """3x3 edge enhance, same weights as :func:`laplacian_kernel`."""
    return laplacian_kernel(amount)


def identity_kernel(size: int = 3) -> np.ndarray:
    """Zero kernel with 1 at the center."""
    _check_size(size)
    kernel = np.zeros((size, size))
    kernel[size // 2, size // 2] = 1.0
    return kernel


__all__ = [
    'DEFAULT_GAUSSIAN_SIGMA',
    'gaussian_kernel', 'box_kernel', 'sobel_kernels', 'prewitt_kernels',
    'unsharp_kernel', 'laplacian_kernel', 'edge_enhance_kernel', 'identity_kernel',
]
