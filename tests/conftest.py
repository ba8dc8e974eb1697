import sys
from pathlib import Path

import numpy as np
import pytest

# Add src to sys.path so we can import sheet_omr
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if SRC_PATH.as_posix() not in sys.path:
    sys.path.insert(0, SRC_PATH.as_posix())


# 200 x 280 layout units on a 1000 x 1400 scan: 5 px per unit on both axes,
# mark centres 10 units in from each edge -> raw (50,50) ... (950,1350).
SHEET_W, SHEET_H = 1000, 1400
PX_PER_UNIT = 5
MARK_CENTRE = 50
MARK_HALF = 12
PAPER = 255

TEST_LAYOUT = {
    "page_size": {"width": 200, "height": 280},
    "reg_marks": {"margin": 10, "radius": 2.5, "search": 15, "offset": 2, "max_search": 50},
    "items": {
        "questions": 4, "choices": 5, "x": 20, "y": 60,
        "choice_spacing": 10, "question_spacing": 10,
        "questions_per_column": 4, "column_spacing": 60,
        "cell_width": 6, "cell_height": 4,
    },
    "barcode": {"bits": 4, "x": 20, "y": 150, "spacing": 10, "width": 6, "height": 4},
    "calibration_cells": [[100, 60]],
    "ink_black": {"x": 120, "y": 55, "w": 10, "h": 10},
    "paper_white": {"x": 140, "y": 55, "w": 10, "h": 10},
}


def mark_centres():
    lo, hx, hy = MARK_CENTRE, SHEET_W - MARK_CENTRE, SHEET_H - MARK_CENTRE
    return {"tl": (lo, lo), "tr": (hx, lo), "br": (hx, hy), "bl": (lo, hy)}


def paint_mark(img, cx, cy, value=0):
    img[cy - MARK_HALF:cy + MARK_HALF + 1, cx - MARK_HALF:cx + MARK_HALF + 1] = value


def paint_units(img, x, y, w, h, value, pad=1.0):
    """Fill a rectangle given in layout units from the top-left mark centre."""
    x0 = int(round(MARK_CENTRE + (x - pad) * PX_PER_UNIT))
    y0 = int(round(MARK_CENTRE + (y - pad) * PX_PER_UNIT))
    x1 = int(round(MARK_CENTRE + (x + w + pad) * PX_PER_UNIT))
    y1 = int(round(MARK_CENTRE + (y + h + pad) * PX_PER_UNIT))
    img[y0:y1, x0:x1] = value


def paint_cell(img, cx, cy, value, w=6, h=4):
    paint_units(img, cx - w / 2, cy - h / 2, w, h, value)


def choice_centre(q, c):
    it = TEST_LAYOUT["items"]
    col, row = divmod(q, it["questions_per_column"])
    return (it["x"] + col * it["column_spacing"] + c * it["choice_spacing"],
            it["y"] + row * it["question_spacing"])


def barcode_centre(bit):
    bc = TEST_LAYOUT["barcode"]
    return bc["x"] + (bit - 1) * bc["spacing"], bc["y"]


def make_sheet(marked=((0, 2),), barcode_positions=(1, 3), calibration=60,
               choice_value=20, erase=(), move=None):
    """
    Grayscale synthetic scan: four marks, a darkened calibration cell, a black
    reference patch, white paper, the given choice cells and barcode bits.
    """
    img = np.full((SHEET_H, SHEET_W), PAPER, dtype=np.uint8)
    centres = mark_centres()
    centres.update(move or {})
    for corner, (cx, cy) in centres.items():
        if corner not in erase:
            paint_mark(img, cx, cy)

    for (x, y) in TEST_LAYOUT["calibration_cells"]:
        paint_cell(img, x, y, calibration)
    ib = TEST_LAYOUT["ink_black"]
    paint_units(img, ib["x"], ib["y"], ib["w"], ib["h"], 0)

    for (q, c) in marked:
        paint_cell(img, *choice_centre(q, c), choice_value)
    for bit in barcode_positions:
        paint_cell(img, *barcode_centre(bit), 0)
    return img


@pytest.fixture
def test_layout():
    return dict(TEST_LAYOUT)


@pytest.fixture
def sheet_image():
    return make_sheet()


@pytest.fixture
def sheet(sheet_image):
    from sheet_omr import SheetOMR
    return SheetOMR(sheet_image, TEST_LAYOUT)


@pytest.fixture
def unregistered_sheet():
    from sheet_omr import SheetOMR
    return SheetOMR(make_sheet(erase=("tl",)), TEST_LAYOUT)
