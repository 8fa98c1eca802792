"""
Segmentation of a binarised drawing into symbol regions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

import cv2
import numpy as np

from .constants import DEFAULT_CONNECTIVITY, DEFAULT_MIN_AREA
from .raster import BinaryMask

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Region:
    """Inclusive bounding box of one connected component."""

    min_x: int
    min_y: int
    max_x: int
    max_y: int
    area: int
    index: int = 0

    @property
    def width(self) -> int:
        return self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        return self.max_y - self.min_y + 1


class ComponentSegmenter:
    """Split a handwritten expression mask into connected-component regions."""

    def __init__(self, min_area: int = DEFAULT_MIN_AREA, connectivity: int = DEFAULT_CONNECTIVITY) -> None:
        if connectivity not in (4, 8):
            raise ValueError(f"connectivity must be 4 or 8, got {connectivity}")
        self.min_area = int(min_area)
        self.connectivity = connectivity

    def label(self, mask: BinaryMask) -> np.ndarray:
        """Return the per-pixel component label image (0 is background)."""
        _, labels = cv2.connectedComponents(mask.bits.copy(), connectivity=self.connectivity)
        return labels

    def segment(self, mask: BinaryMask) -> List[Region]:
        """
        Regions for every component with at least ``min_area`` foreground pixels,
        in discovery (raster) order.
        """
        if mask.is_empty():
            return []
        num_labels, _, stats, _ = cv2.connectedComponentsWithStats(
            mask.bits.copy(), connectivity=self.connectivity
        )
        regions: List[Region] = []
        dropped = 0
        for idx in range(1, num_labels):
            x, y, w, h, area = (int(v) for v in stats[idx])
            if area < self.min_area:
                dropped += 1
                continue
            regions.append(
                Region(
                    min_x=x,
                    min_y=y,
                    max_x=x + w - 1,
                    max_y=y + h - 1,
                    area=area,
                    index=len(regions),
                )
            )
        logger.debug(
            "Segmented %d region(s), dropped %d below min_area=%d",
            len(regions),
            dropped,
            self.min_area,
        )
        return regions
