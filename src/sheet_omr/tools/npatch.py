# src/sheet_omr/tools/npatch.py
from __future__ import annotations
from typing import Optional, Tuple

import cv2 as cv
import numpy as np

from ..scoring_defaults import DEFAULTS


class NPatch:
    """Shading statistics over one grayscale patch (uint8, HxW)."""

    def __init__(self, gray: np.ndarray, min_contrast: float = DEFAULTS.min_contrast):
        if gray.ndim != 2:
            raise ValueError(f"NPatch expects a 2-D grayscale array, got shape {gray.shape}")
        self.gray = gray
        self.min_contrast = min_contrast

    def average(self) -> float:
        """Mean intensity; 0 is ink, 255 is paper."""
        if self.gray.size == 0:
            raise ValueError("Cannot average an empty patch")
        return float(self.gray.mean())

    def sufficient_contrast(self) -> bool:
        return self.gray.size > 0 and float(self.gray.std()) >= self.min_contrast

    def dark_centroid(self) -> Optional[Tuple[float, float]]:
        """
        Centroid (x, y), in patch coordinates, of the largest dark region.

        Returns None when the patch is too flat to hold a mark.
        Pipeline:
          - contrast guard (std-dev),
          - Otsu threshold, inverted so ink becomes foreground,
          - connected components, keep the biggest one.
        """
        if not self.sufficient_contrast():
            return None

        _, binary = cv.threshold(self.gray, 0, 255, cv.THRESH_BINARY_INV + cv.THRESH_OTSU)
        n, _, stats, centroids = cv.connectedComponentsWithStats(binary, connectivity=8)
        if n < 2:
            return None

        # label 0 is the background
        biggest = 1 + int(np.argmax(stats[1:, cv.CC_STAT_AREA]))
        cx, cy = centroids[biggest]
        return float(cx), float(cy)
