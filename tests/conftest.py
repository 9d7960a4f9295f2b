"""
Pytest fixtures for FilterStack tests
"""

import numpy as np
import pytest

from filterstack import RasterBuffer


def _solid(width: int, height: int, rgba) -> np.ndarray:
    img = np.empty((height, width, 4), dtype=np.uint8)
    img[:, :] = rgba
    return img


@pytest.fixture
def solid():
    """Factory for constant-color RGBA uint8 images: solid(w, h, rgba)."""
    return _solid


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)


@pytest.fixture
def random_image(rng) -> np.ndarray:
    """Opaque 12x9 RGBA noise image."""
    img = rng.integers(0, 256, size=(9, 12, 4), dtype=np.uint8)
    img[:, :, 3] = 255
    return img


@pytest.fixture
def single_pixel():
    """Factory for 1x1 buffers: single_pixel(r, g, b, a=255)."""
    def make(r: int, g: int, b: int, a: int = 255) -> RasterBuffer:
        return RasterBuffer(_solid(1, 1, (r, g, b, a)))
    return make
