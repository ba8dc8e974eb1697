# src/sheet_omr/tools/grid_geometry.py
from __future__ import annotations
from enum import Enum
from typing import List, NamedTuple

from ..config_io import Layout, RectLayout


class Corner(str, Enum):
    TL = "tl"
    TR = "tr"
    BR = "br"
    BL = "bl"


class Area(NamedTuple):
    """Integer pixel rectangle: top-left corner plus width/height."""
    x: int
    y: int
    w: int
    h: int


def _to_px(x: float, y: float, w: float, h: float, sx: float, sy: float) -> Area:
    return Area(
        int(round(x * sx)),
        int(round(y * sy)),
        max(1, int(round(w * sx))),
        max(1, int(round(h * sy))),
    )


class GridGeometry:
    """
    Pixel coordinates for one sheet layout at a given image size.

    Two coordinate spaces are involved:
      - raw image: the scan as loaded; used only for registration-mark search
        areas, scaled by width / page_width.
      - corrected image: the scan stretched so the four mark centres sit on
        the image corners; every cell, calibration, reference and barcode
        area lives here, measured from the top-left mark centre and scaled by
        width / reg_frame_width.
    """

    def __init__(self, width: int, height: int, layout: Layout):
        self.width = int(width)
        self.height = int(height)
        self.layout = layout
        self._ppu_x = self.width / layout.page_width
        self._ppu_y = self.height / layout.page_height
        self._cppu_x = self.width / layout.reg_frame_width
        self._cppu_y = self.height / layout.reg_frame_height

    # ---------- counts ----------
    @property
    def max_questions(self) -> int:
        return self.layout.items.questions

    @property
    def max_choices_per_question(self) -> int:
        return self.layout.items.choices

    @property
    def barcode_bits(self) -> int:
        return self.layout.barcode.bits

    # ---------- registration marks (raw image space) ----------
    def rm_search_area(self, corner: Corner, step: int) -> Area:
        """Square search area anchored at the page corner, growing by one mark radius per step."""
        rm = self.layout.reg_marks
        side = rm.search + rm.radius * step
        corner = Corner(corner)
        if corner in (Corner.TL, Corner.BL):
            x = rm.offset
        else:
            x = self.layout.page_width - rm.offset - side
        if corner in (Corner.TL, Corner.TR):
            y = rm.offset
        else:
            y = self.layout.page_height - rm.offset - side
        return _to_px(x, y, side, side, self._ppu_x, self._ppu_y)

    @property
    def rm_edgy_x(self) -> float:
        return self.layout.reg_marks.radius * self._ppu_x

    @property
    def rm_edgy_y(self) -> float:
        return self.layout.reg_marks.radius * self._ppu_y

    @property
    def rm_max_search_area_side(self) -> float:
        max_side = self.layout.reg_marks.max_search
        if max_side is None:
            max_side = self.layout.page_width / 4
        return max_side * self._ppu_x

    # ---------- cells (corrected image space) ----------
    def _cell(self, cx: float, cy: float, w: float, h: float) -> Area:
        return _to_px(cx - w / 2, cy - h / 2, w, h, self._cppu_x, self._cppu_y)

    def _rect(self, r: RectLayout) -> Area:
        return _to_px(r.x, r.y, r.w, r.h, self._cppu_x, self._cppu_y)

    def choice_cell_area(self, q: int, c: int) -> Area:
        it = self.layout.items
        if not 0 <= q < it.questions:
            raise IndexError(f"question {q} out of range 0..{it.questions - 1}")
        if not 0 <= c < it.choices:
            raise IndexError(f"choice {c} out of range 0..{it.choices - 1}")
        col, row = divmod(q, it.questions_per_column)
        cx = it.x + col * it.column_spacing + c * it.choice_spacing
        cy = it.y + row * it.question_spacing
        return self._cell(cx, cy, it.cell_width, it.cell_height)

    def calibration_cell_areas(self) -> List[Area]:
        it = self.layout.items
        return [self._cell(x, y, it.cell_width, it.cell_height) for (x, y) in self.layout.calibration_cells]

    def ink_black_area(self) -> Area:
        return self._rect(self.layout.ink_black)

    def paper_white_area(self) -> Area:
        return self._rect(self.layout.paper_white)

    def barcode_bit_area(self, bit: int) -> Area:
        """Area of barcode bit position `bit` (1-based)."""
        bc = self.layout.barcode
        if not 1 <= bit <= bc.bits:
            raise IndexError(f"barcode bit {bit} out of range 1..{bc.bits}")
        cx = bc.x + (bit - 1) * bc.spacing
        return self._cell(cx, bc.y, bc.width, bc.height)

    def barcode_bit_areas(self) -> List[Area]:
        return [self.barcode_bit_area(b) for b in range(1, self.barcode_bits + 1)]
