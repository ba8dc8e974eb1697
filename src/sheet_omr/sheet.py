# src/sheet_omr/sheet.py
"""
SheetOMR: one scanned answer sheet, from raw raster to marks and barcode.

Registration runs once, in the constructor. After that the sheet is either
registered (corrected image available, every query answers) or permanently
unregistered (queries return None and log why, write_raw still works).
"""
from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union
import logging

import numpy as np
from PIL import Image

from .config_io import Layout, load_layout
from .grade_core import Calibrator, Decoder, QuestionRange, Thresholds
from .register_core import Registrar, Registration, RegistrationMark
from .scoring_defaults import DEFAULTS, RegistrationDefaults
from .tools.grid_geometry import Corner, GridGeometry
from .tools.raster import RasterImage
from .visualize_core import Overlay

logger = logging.getLogger(__name__)

ImageSource = Union[str, Path, np.ndarray, Image.Image, RasterImage]
LayoutSource = Union[None, str, Path, Mapping[str, Any], Layout]


def _load_image(im: ImageSource) -> RasterImage:
    if isinstance(im, RasterImage):
        return RasterImage(im.pixels)
    if isinstance(im, np.ndarray):
        return RasterImage(im)
    if isinstance(im, Image.Image):
        return RasterImage.from_pil(im)
    if isinstance(im, (str, Path)):
        return RasterImage.load(im)
    raise TypeError(
        "A new sheet requires an image array, a PIL image, a RasterImage or the "
        f"path of the source image file, but it was a: {type(im).__name__}"
    )


class SheetOMR:
    def __init__(self, im: ImageSource, layout: LayoutSource = None,
                 defaults: RegistrationDefaults = DEFAULTS):
        self._raw = _load_image(im)
        self.layout = load_layout(layout)
        self.geometry = GridGeometry(self._raw.width, self._raw.height, self.layout)
        self.defaults = defaults

        registrar = Registrar(self.geometry, max_attempts=defaults.max_attempts,
                              min_contrast=defaults.min_contrast)
        self._registration: Registration = registrar.register(self._raw)

        self._calibrator: Optional[Calibrator] = None
        self._decoder: Optional[Decoder] = None
        if self._registration.ok:
            self._calibrator = Calibrator(self._registration.corrected, self.geometry,
                                          choice_fraction=defaults.choice_fraction)
            self._decoder = Decoder(self._calibrator)
        self._overlay = Overlay(self._raw, self._registration, self.geometry, self._decoder)

    # ---------- status ----------
    @property
    def valid(self) -> bool:
        return self._registration.ok

    @property
    def registration_marks(self) -> Dict[Corner, RegistrationMark]:
        return dict(self._registration.marks)

    def _not_registered(self) -> bool:
        if not self._registration.ok:
            logger.warning("Unregistered image. Reason: %s", self._registration.failure_reasons())
            return True
        return False

    @property
    def thresholds(self) -> Optional[Thresholds]:
        if self._not_registered():
            return None
        return self._calibrator.thresholds

    # ---------- barcode ----------
    @property
    def barcode(self) -> Optional[int]:
        """Sheet barcode as an integer."""
        if self._not_registered():
            return None
        return self._decoder.barcode()

    @property
    def barcode_string(self) -> Optional[str]:
        """
        Sheet barcode as a string of 0s and 1s, barcode_bits long, with the
        most significant bits to the left.
        """
        if self._not_registered():
            return None
        return self._decoder.barcode_string()

    # ---------- choices ----------
    def shade_of(self, q: int, c: int) -> Optional[float]:
        if self._not_registered():
            return None
        return self._decoder.shade_of(q, c)

    def marked(self, q: int, c: int) -> Optional[bool]:
        """True if the question/choice cell has been darkened."""
        if self._not_registered():
            return None
        return self._decoder.is_marked(q, c)

    def mark(self, q: int) -> Optional[List[int]]:
        """Marked choices of a single question."""
        if self._not_registered():
            return None
        return self._decoder.mark(q)

    def mark_array(self, r: QuestionRange = None) -> Optional[List[List[int]]]:
        """
        List of marked choices per question.

        `r` is a list/tuple/range of question indices, or an int n for the
        first n questions; without it every question is evaluated.
        """
        if self._not_registered():
            return None
        return self._decoder.mark_array(r)

    def mark_logical_array(self, r: QuestionRange = None) -> Optional[List[List[bool]]]:
        if self._not_registered():
            return None
        return self._decoder.mark_logical_array(r)

    # ---------- highlighting ----------
    def outline(self, cells: Sequence[Iterable[int]]) -> None:
        if self._not_registered():
            return None
        self._overlay.outline(cells)

    def highlight_all(self) -> None:
        if self._not_registered():
            return None
        self._overlay.highlight_all()

    def highlight_marked(self) -> None:
        if self._not_registered():
            return None
        self._overlay.highlight_marked()

    def highlight_barcode(self) -> None:
        if self._not_registered():
            return None
        self._overlay.highlight_barcode()

    def highlight_reg_area(self) -> None:
        self._overlay.highlight_reg_area()

    # ---------- output ----------
    def write(self, fname: Union[str, Path]) -> Optional[str]:
        """Write the corrected image, with any highlights."""
        if self._not_registered():
            return None
        return self._registration.corrected.write(fname)

    def write_raw(self, fname: Union[str, Path]) -> str:
        return self._raw.write(fname)
