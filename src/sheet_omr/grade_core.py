# src/sheet_omr/grade_core.py
from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union
import logging

import numpy as np

from .scoring_defaults import DEFAULTS
from .tools.grid_geometry import Area, GridGeometry
from .tools.npatch import NPatch
from .tools.raster import RasterImage

logger = logging.getLogger(__name__)

QuestionRange = Union[None, int, Sequence[int]]


def question_range(r: QuestionRange, max_questions: int) -> List[int]:
    """
    Resolve a question selector:
      - None           -> all questions
      - int n          -> the first n
      - list/tuple/range of ints -> those questions, in that order
    """
    if r is None:
        return list(range(max_questions))
    if isinstance(r, bool):
        raise TypeError("Invalid question range: bool")
    if isinstance(r, (int, np.integer)):
        if r < 0:
            raise ValueError(f"Invalid question count: {r}")
        return list(range(int(r)))
    if isinstance(r, (list, tuple, range)):
        out: List[int] = []
        for q in r:
            if isinstance(q, bool) or not isinstance(q, (int, np.integer)):
                raise TypeError(f"Invalid question index: {q!r}")
            out.append(int(q))
        return out
    raise TypeError(f"Invalid question range of type {type(r).__name__}")


@dataclass(frozen=True)
class Thresholds:
    barcode: float
    choice: float


class Calibrator:
    """Reference shading of a registered sheet, measured once."""

    def __init__(self, corrected: RasterImage, geometry: GridGeometry,
                 choice_fraction: float = DEFAULTS.choice_fraction):
        self.corrected = corrected
        self.geometry = geometry
        self.choice_fraction = choice_fraction
        self._ink_black: Optional[float] = None
        self._paper_white: Optional[float] = None
        self._cell_means: Optional[List[float]] = None
        self._thresholds: Optional[Thresholds] = None

    def average(self, area: Area) -> float:
        return NPatch(self.corrected.crop(area)).average()

    @property
    def ink_black(self) -> float:
        if self._ink_black is None:
            self._ink_black = self.average(self.geometry.ink_black_area())
        return self._ink_black

    @property
    def paper_white(self) -> float:
        if self._paper_white is None:
            self._paper_white = self.average(self.geometry.paper_white_area())
        return self._paper_white

    @property
    def calibration_cell_means(self) -> List[float]:
        if self._cell_means is None:
            self._cell_means = [self.average(a) for a in self.geometry.calibration_cell_areas()]
        return list(self._cell_means)

    @property
    def thresholds(self) -> Thresholds:
        if self._thresholds is None:
            ink = self.ink_black
            cal_mean = float(np.mean(self.calibration_cell_means))
            self._thresholds = Thresholds(
                barcode=(self.paper_white + ink) / 2,
                choice=(cal_mean - ink) * self.choice_fraction + ink,
            )
            logger.debug("ink_black=%.1f paper_white=%.1f calibration=%.1f -> %s",
                         ink, self.paper_white, cal_mean, self._thresholds)
        return self._thresholds


class Decoder:
    """Classify answer cells and barcode bits on a corrected sheet."""

    def __init__(self, calibrator: Calibrator):
        self.calibrator = calibrator
        self.geometry = calibrator.geometry

    # ---------- choices ----------
    def shade_of(self, q: int, c: int) -> float:
        return self.calibrator.average(self.geometry.choice_cell_area(q, c))

    def is_marked(self, q: int, c: int) -> bool:
        return self.shade_of(q, c) < self.calibrator.thresholds.choice

    def mark(self, q: int) -> List[int]:
        return [c for c in range(self.geometry.max_choices_per_question) if self.is_marked(q, c)]

    def mark_array(self, r: QuestionRange = None) -> List[List[int]]:
        return [self.mark(q) for q in question_range(r, self.geometry.max_questions)]

    def mark_logical_array(self, r: QuestionRange = None) -> List[List[bool]]:
        n = self.geometry.max_choices_per_question
        return [[self.is_marked(q, c) for c in range(n)]
                for q in question_range(r, self.geometry.max_questions)]

    # ---------- barcode ----------
    def shade_of_barcode_bit(self, i: int) -> float:
        """Shading of bit `i` (0-based; geometry position i + 1)."""
        return self.calibrator.average(self.geometry.barcode_bit_area(i + 1))

    def barcode_bit_value(self, i: int) -> str:
        return "1" if self.shade_of_barcode_bit(i) < self.calibrator.thresholds.barcode else "0"

    def barcode_string(self) -> str:
        """Bit values, highest geometry position first."""
        bits = "".join(self.barcode_bit_value(i) for i in range(self.geometry.barcode_bits))
        return bits[::-1]

    def barcode(self) -> int:
        s = self.barcode_string()
        return int(s, 2) if s else 0
