# src/sheet_omr/visualize_core.py

from __future__ import annotations
from typing import Iterable, List, Optional, Sequence

from .grade_core import Decoder
from .register_core import CORNERS, Registration
from .tools.grid_geometry import Area, GridGeometry
from .tools.raster import RasterImage

CELL_COLOR = (0, 200, 0)
MARKED_COLOR = (0, 0, 255)
CALIBRATION_COLOR = (255, 140, 0)
REFERENCE_COLOR = (0, 200, 255)
BARCODE_COLOR = (147, 112, 219)
SEARCH_COLOR = (0, 165, 255)
FRAME_COLOR = (255, 0, 0)


def cells_to_areas(geometry: GridGeometry, cells: Sequence[Iterable[int]]) -> List[Area]:
    """Answer-matrix-shaped selection (choices per question index) -> cell areas."""
    out: List[Area] = []
    for q, choices in enumerate(cells):
        for c in choices:
            out.append(geometry.choice_cell_area(q, c))
    return out


class Overlay:
    """
    Diagnostic drawing on the overlay layers of the raw and corrected images.
    Reads classification results, never changes them.
    """

    def __init__(self, raw: RasterImage, registration: Registration,
                 geometry: GridGeometry, decoder: Optional[Decoder] = None):
        self.raw = raw
        self.registration = registration
        self.geometry = geometry
        self.decoder = decoder

    @property
    def corrected(self) -> Optional[RasterImage]:
        return self.registration.corrected

    def outline(self, cells: Sequence[Iterable[int]]) -> None:
        self.corrected.outline(cells_to_areas(self.geometry, cells), color=MARKED_COLOR)

    def highlight_all(self) -> None:
        g = self.geometry
        every = [range(g.max_choices_per_question)] * g.max_questions
        self.corrected.highlight_cells(cells_to_areas(g, every), color=CELL_COLOR)
        self.corrected.highlight_cells(g.calibration_cell_areas(), color=CALIBRATION_COLOR)
        self.corrected.highlight_rects([g.ink_black_area(), g.paper_white_area()], color=REFERENCE_COLOR)
        self.corrected.highlight_rects(g.barcode_bit_areas(), color=BARCODE_COLOR)

    def highlight_marked(self) -> None:
        self.corrected.highlight_cells(cells_to_areas(self.geometry, self.decoder.mark_array()),
                                       color=MARKED_COLOR)

    def highlight_barcode(self) -> None:
        bits = self.decoder.barcode_string()[::-1]
        areas = [self.geometry.barcode_bit_area(i + 1) for i, b in enumerate(bits) if b == "1"]
        self.corrected.highlight_rects(areas, color=BARCODE_COLOR)

    def highlight_reg_area(self) -> None:
        """Search areas on the raw scan, plus the fitted frame if registration worked."""
        marks = self.registration.marks
        self.raw.highlight_rects([marks[c].area for c in CORNERS], color=SEARCH_COLOR)
        if self.registration.ok:
            self.raw.join([marks[c].center for c in CORNERS], color=FRAME_COLOR)
