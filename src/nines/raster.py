"""
Immutable pixel buffers exchanged between the drawing surface and the recogniser.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np
from PIL import Image


def _frozen(array: np.ndarray) -> np.ndarray:
    copy = np.array(array, copy=True)
    copy.setflags(write=False)
    return copy


@dataclass(frozen=True)
class RasterBuffer:
    """Snapshot of the drawing surface: grey ``(H, W)`` or RGB(A) ``(H, W, C)`` uint8."""

    width: int
    height: int
    pixels: np.ndarray

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Raster dimensions must be positive, got {self.width}x{self.height}")
        pixels = np.asarray(self.pixels)
        if pixels.shape[:2] != (self.height, self.width):
            raise ValueError(
                f"Pixel array shape {pixels.shape} does not match {self.width}x{self.height}"
            )
        if pixels.ndim == 3 and pixels.shape[2] not in (3, 4):
            raise ValueError(f"Expected 3 or 4 channels, got {pixels.shape[2]}")
        if pixels.ndim not in (2, 3):
            raise ValueError(f"Expected a 2D or 3D pixel array, got {pixels.ndim}D")
        object.__setattr__(self, "pixels", _frozen(pixels.astype(np.uint8, copy=False)))

    @property
    def channels(self) -> int:
        return 1 if self.pixels.ndim == 2 else int(self.pixels.shape[2])

    @classmethod
    def from_array(cls, array: np.ndarray) -> "RasterBuffer":
        arr = np.asarray(array)
        return cls(width=int(arr.shape[1]), height=int(arr.shape[0]), pixels=arr)

    @classmethod
    def from_rgba_bytes(
        cls, width: int, height: int, data: Union[bytes, bytearray, Sequence[int]]
    ) -> "RasterBuffer":
        """Wrap a flat row-major RGBA byte sequence (canvas ``ImageData`` layout)."""
        if isinstance(data, (bytes, bytearray)):
            flat = np.frombuffer(data, dtype=np.uint8)
        else:
            flat = np.asarray(data, dtype=np.uint8).ravel()
        if flat.size != width * height * 4:
            raise ValueError(f"Expected {width * height * 4} RGBA bytes, got {flat.size}")
        return cls(width=width, height=height, pixels=flat.reshape(height, width, 4))

    @classmethod
    def from_image(cls, image: Image.Image) -> "RasterBuffer":
        if image.mode not in ("L", "RGB", "RGBA"):
            image = image.convert("RGBA")
        return cls.from_array(np.asarray(image))


@dataclass(frozen=True)
class BinaryMask:
    """Foreground mask with the same dimensions as its source buffer; bits are 0/1."""

    width: int
    height: int
    bits: np.ndarray

    def __post_init__(self) -> None:
        bits = np.asarray(self.bits)
        if bits.shape != (self.height, self.width):
            raise ValueError(f"Mask shape {bits.shape} does not match {self.width}x{self.height}")
        object.__setattr__(self, "bits", _frozen((bits != 0).astype(np.uint8)))

    @classmethod
    def from_array(cls, array: np.ndarray) -> "BinaryMask":
        arr = np.asarray(array)
        return cls(width=int(arr.shape[1]), height=int(arr.shape[0]), bits=arr)

    def is_empty(self) -> bool:
        return not self.bits.any()
