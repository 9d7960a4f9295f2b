"""
Raster buffer owned by the caller and mutated by the pipeline executor.

A RasterBuffer wraps a contiguous (height, width, 4) uint8 numpy array of
interleaved RGBA bytes. The engine reads and writes ``pixels`` directly;
it never keeps a reference to the buffer after a call returns.

Usage:
    from filterstack.raster import RasterBuffer

    buffer = RasterBuffer.from_bytes(data, width=640, height=480)
    ...
    data = buffer.to_bytes()
"""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from PIL import Image as PILImage


def to_uint8(values: np.ndarray) -> np.ndarray:
    """Quantize float channel values to bytes.

    Values are clamped to [0, 255] and rounded half to even, the same way a
    clamped byte array stores an assigned float.

    Args:
        values: Float array of any shape

    Returns:
        uint8 array of the same shape
    """
    return np.rint(np.clip(values, 0.0, 255.0)).astype(np.uint8)


@dataclass
class RasterBuffer:
    """Width x height interleaved RGBA bytes.

    :param pixels: uint8 array of shape (height, width, 4)
    """
    pixels: np.ndarray

    def __post_init__(self):
        if self.pixels.ndim != 3 or self.pixels.shape[2] != 4:
            raise ValueError(f"Expected RGBA pixels (H, W, 4), got shape {self.pixels.shape}")
        if self.pixels.dtype != np.uint8:
            raise ValueError(f"Expected uint8 dtype, got {self.pixels.dtype}")

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def stride(self) -> int:
        """Bytes per row."""
        return self.width * 4

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_bytes(cls, data: bytes | bytearray | memoryview, width: int, height: int) -> 'RasterBuffer':
        """Create a buffer from raw interleaved RGBA bytes (copied)."""
        expected = width * height * 4
        if len(data) != expected:
            raise ValueError(f"Expected {expected} bytes for {width}x{height} RGBA, got {len(data)}")
        pixels = np.frombuffer(bytes(data), dtype=np.uint8).reshape(height, width, 4).copy()
        return cls(pixels)

    @classmethod
    def from_array(cls, array: np.ndarray) -> 'RasterBuffer':
        """Create a buffer from an RGB or RGBA uint8 array.

        RGB input gets a fully opaque alpha channel. The array is copied.
        """
        if array.ndim != 3 or array.shape[2] not in (3, 4):
            raise ValueError(f"Expected image (H, W, 3|4), got shape {array.shape}")
        if array.dtype != np.uint8:
            raise ValueError(f"Expected uint8 dtype, got {array.dtype}")
        if array.shape[2] == 3:
            alpha = np.full(array.shape[:2] + (1,), 255, dtype=np.uint8)
            return cls(np.ascontiguousarray(np.concatenate([array, alpha], axis=2)))
        return cls(np.ascontiguousarray(array).copy())

    @classmethod
    def filled(cls, width: int, height: int, rgba: tuple[int, int, int, int]) -> 'RasterBuffer':
        """Create a buffer of one constant color."""
        pixels = np.empty((height, width, 4), dtype=np.uint8)
        pixels[:, :] = rgba
        return cls(pixels)

    @classmethod
    def from_pil(cls, image: PILImage.Image) -> 'RasterBuffer':
        """Create a buffer from a PIL image (converted to RGBA)."""
        return cls(np.array(image.convert('RGBA'), dtype=np.uint8))

    # ------------------------------------------------------------------
    # Export / access
    # ------------------------------------------------------------------

    def to_bytes(self) -> bytes:
        return self.pixels.tobytes()

    def to_pil(self) -> PILImage.Image:
        return PILImage.fromarray(self.pixels)

    def copy(self) -> 'RasterBuffer':
        return RasterBuffer(self.pixels.copy())

    def rgb(self) -> np.ndarray:
        """View of the color channels, shape (H, W, 3)."""
        return self.pixels[:, :, :3]

    def alpha(self) -> np.ndarray:
        """View of the alpha channel, shape (H, W)."""
        return self.pixels[:, :, 3]

    def pixel(self, x: int, y: int) -> tuple[int, int, int, int]:
        """RGBA value at (x, y)."""
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Pixel ({x}, {y}) outside {self.width}x{self.height} buffer")
        r, g, b, a = self.pixels[y, x]
        return int(r), int(g), int(b), int(a)


__all__ = ['RasterBuffer', 'to_uint8']
