"""
Preprocessing utilities: binarising drawing snapshots and normalising glyphs
to the classifier input.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

import cv2
import numpy as np

from .constants import DEFAULT_THRESHOLD, GLYPH_SIZE, INTERPOLATIONS
from .raster import BinaryMask, RasterBuffer
from .segmentation import Region

_CV2_INTERPOLATION = {
    "nearest": cv2.INTER_NEAREST,
    "bilinear": cv2.INTER_LINEAR,
}


@dataclass(frozen=True)
class Glyph:
    region: Region
    tensor: np.ndarray


class GlyphPreprocessor:
    """Pipeline from a drawing snapshot to 28x28 classifier tensors."""

    def __init__(
        self,
        threshold: int = DEFAULT_THRESHOLD,
        target_size: int = GLYPH_SIZE,
        interpolation: str = "nearest",
    ) -> None:
        if interpolation not in INTERPOLATIONS:
            raise ValueError(f"Unknown interpolation {interpolation!r}; expected one of {INTERPOLATIONS}")
        self.threshold = int(threshold)
        self.target_size = int(target_size)
        self.interpolation = interpolation

    def to_grayscale(self, buffer: RasterBuffer) -> np.ndarray:
        """Mean of R, G and B; alpha is ignored."""
        pixels = buffer.pixels
        if pixels.ndim == 2:
            return pixels.astype(np.float32)
        return pixels[:, :, :3].astype(np.float32).mean(axis=2)

    def binarise(self, buffer: RasterBuffer) -> BinaryMask:
        """Drawn pixels are darker than the threshold."""
        gray = self.to_grayscale(buffer)
        bits = (gray < self.threshold).astype(np.uint8)
        return BinaryMask(width=buffer.width, height=buffer.height, bits=bits)

    def crop(self, mask: BinaryMask, region: Region) -> np.ndarray:
        return mask.bits[region.min_y : region.max_y + 1, region.min_x : region.max_x + 1]

    def resize(self, patch: np.ndarray) -> np.ndarray:
        size = (self.target_size, self.target_size)
        return cv2.resize(
            patch.astype(np.float32), size, interpolation=_CV2_INTERPOLATION[self.interpolation]
        )

    def normalise(self, mask: BinaryMask, region: Region) -> Glyph:
        """Crop ``region`` out of ``mask`` and scale it to a ``(size, size, 1)`` float tensor."""
        patch = self.crop(mask, region)
        resized = np.clip(self.resize(patch), 0.0, 1.0)
        tensor = resized.reshape(self.target_size, self.target_size, 1).astype(np.float32)
        return Glyph(region=region, tensor=tensor)

    def normalise_all(self, mask: BinaryMask, regions: Sequence[Region]) -> List[Glyph]:
        return [self.normalise(mask, region) for region in regions]
