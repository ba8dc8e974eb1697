# src/sheet_omr/config_io.py
from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union
import copy
import json

import yaml  # PyYAML

def load_config_any(path: str | Path) -> Dict[str, Any]:
    """
    Prefer YAML, but transparently accept JSON.
    - If extension is .yml/.yaml -> use YAML
    - If extension is .json -> use JSON
    - Otherwise: try YAML first, then JSON
    """
    p = Path(path)
    data = p.read_text(encoding="utf-8")
    ext = p.suffix.lower()

    if ext in {".yml", ".yaml"}:
        cfg = yaml.safe_load(data)
    elif ext == ".json":
        cfg = json.loads(data)
    else:
        # No/unknown extension: prefer YAML, then fallback to JSON
        try:
            cfg = yaml.safe_load(data)
        except yaml.YAMLError:
            cfg = json.loads(data)

    if not isinstance(cfg, dict):
        raise ValueError("Config root must be a mapping/object.")

    return cfg

# ------------------------------------------------------------------------------
# Layout model (all lengths in layout units, e.g. millimetres)
# ------------------------------------------------------------------------------

@dataclass(frozen=True)
class RegMarkLayout:
    margin: float              # mark centre distance from the page edges
    radius: float              # mark half-side; also the edge margin for centroids
    search: float              # initial search-area side
    offset: float              # search-area distance from the page edges
    max_search: Optional[float] = None   # stop expanding past this side (default: page_width / 4)

@dataclass(frozen=True)
class ItemLayout:
    questions: int
    choices: int
    x: float                   # centre of question 0 / choice 0, from the top-left mark centre
    y: float
    choice_spacing: float
    question_spacing: float
    questions_per_column: int
    column_spacing: float
    cell_width: float
    cell_height: float

@dataclass(frozen=True)
class BarcodeLayout:
    bits: int
    x: float                   # centre of bit position 1, from the top-left mark centre
    y: float
    spacing: float
    width: float
    height: float

@dataclass(frozen=True)
class RectLayout:
    x: float                   # top-left corner, from the top-left mark centre
    y: float
    w: float
    h: float

@dataclass(frozen=True)
class Layout:
    page_width: float
    page_height: float
    reg_marks: RegMarkLayout
    items: ItemLayout
    barcode: BarcodeLayout
    calibration_cells: Tuple[Tuple[float, float], ...]
    ink_black: RectLayout
    paper_white: RectLayout

    @property
    def reg_frame_width(self) -> float:
        return self.page_width - 2 * self.reg_marks.margin

    @property
    def reg_frame_height(self) -> float:
        return self.page_height - 2 * self.reg_marks.margin

# ------------------------------------------------------------------------------
# Presets
# ------------------------------------------------------------------------------

PRESETS: Dict[str, Dict[str, Any]] = {
    # A4 portrait, 40 questions in two columns, 16-bit barcode along the bottom
    "default": {
        "page_size": {"width": 210, "height": 297},
        "reg_marks": {"margin": 10, "radius": 2.5, "search": 12, "offset": 2},
        "items": {
            "questions": 40, "choices": 5, "x": 20, "y": 40,
            "choice_spacing": 7, "question_spacing": 6,
            "questions_per_column": 20, "column_spacing": 50,
            "cell_width": 5, "cell_height": 3.5,
        },
        "barcode": {"bits": 16, "x": 20, "y": 268, "spacing": 8, "width": 5, "height": 3},
        "calibration_cells": [[130, 40], [137, 40], [144, 40], [151, 40], [158, 40]],
        "ink_black": {"x": 130, "y": 60, "w": 10, "h": 10},
        "paper_white": {"x": 150, "y": 60, "w": 10, "h": 10},
    },
}

# ------------------------------------------------------------------------------
# Parsing
# ------------------------------------------------------------------------------

def _merge(base: Dict[str, Any], over: Mapping[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in over.items():
        if isinstance(v, Mapping) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = copy.deepcopy(v)
    return out

def _num(section: Mapping[str, Any], key: str, where: str, kind=float):
    if key not in section:
        raise ValueError(f"Layout '{where}' is missing '{key}'.")
    val = section[key]
    if isinstance(val, bool) or not isinstance(val, (int, float)):
        raise ValueError(f"Layout '{where}.{key}' must be a number, got {val!r}.")
    if kind is int:
        if int(val) != val:
            raise ValueError(f"Layout '{where}.{key}' must be an integer, got {val!r}.")
        return int(val)
    return float(val)

def _section(cfg: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    sec = cfg.get(key)
    if not isinstance(sec, Mapping):
        raise ValueError(f"Layout section '{key}' must be a mapping.")
    return sec

def _rect(cfg: Mapping[str, Any], key: str) -> RectLayout:
    sec = _section(cfg, key)
    return RectLayout(*(_num(sec, k, key) for k in ("x", "y", "w", "h")))

def _check_inside(layout: Layout, where: str, x0: float, y0: float, x1: float, y1: float) -> None:
    fw, fh = layout.reg_frame_width, layout.reg_frame_height
    if x0 < 0 or y0 < 0 or x1 > fw or y1 > fh:
        raise ValueError(
            f"Layout '{where}' spans ({x0:g}, {y0:g})-({x1:g}, {y1:g}), "
            f"outside the {fw:g} x {fh:g} registration frame."
        )

def _check_bounds(layout: Layout) -> None:
    """Reference patches, calibration cells and barcode bits must sit inside the mark frame."""
    for key in ("ink_black", "paper_white"):
        r = getattr(layout, key)
        _check_inside(layout, key, r.x, r.y, r.x + r.w, r.y + r.h)
    hw, hh = layout.items.cell_width / 2, layout.items.cell_height / 2
    for (x, y) in layout.calibration_cells:
        _check_inside(layout, "calibration_cells", x - hw, y - hh, x + hw, y + hh)
    bc = layout.barcode
    if bc.bits:
        last = bc.x + (bc.bits - 1) * bc.spacing
        _check_inside(layout, "barcode",
                      min(bc.x, last) - bc.width / 2, bc.y - bc.height / 2,
                      max(bc.x, last) + bc.width / 2, bc.y + bc.height / 2)

def layout_from_dict(cfg: Mapping[str, Any]) -> Layout:
    """Build a Layout from a mapping, filling omitted keys from the default preset."""
    cfg = _merge(PRESETS["default"], cfg)

    page = _section(cfg, "page_size")
    rm = _section(cfg, "reg_marks")
    it = _section(cfg, "items")
    bc = _section(cfg, "barcode")

    max_search = rm.get("max_search")
    reg_marks = RegMarkLayout(
        margin=_num(rm, "margin", "reg_marks"),
        radius=_num(rm, "radius", "reg_marks"),
        search=_num(rm, "search", "reg_marks"),
        offset=_num(rm, "offset", "reg_marks"),
        max_search=None if max_search is None else _num(rm, "max_search", "reg_marks"),
    )
    items = ItemLayout(
        questions=_num(it, "questions", "items", int),
        choices=_num(it, "choices", "items", int),
        x=_num(it, "x", "items"),
        y=_num(it, "y", "items"),
        choice_spacing=_num(it, "choice_spacing", "items"),
        question_spacing=_num(it, "question_spacing", "items"),
        questions_per_column=_num(it, "questions_per_column", "items", int),
        column_spacing=_num(it, "column_spacing", "items"),
        cell_width=_num(it, "cell_width", "items"),
        cell_height=_num(it, "cell_height", "items"),
    )
    if items.questions < 0 or items.choices < 1 or items.questions_per_column < 1:
        raise ValueError("Layout 'items' needs questions >= 0, choices >= 1, questions_per_column >= 1.")
    barcode = BarcodeLayout(
        bits=_num(bc, "bits", "barcode", int),
        x=_num(bc, "x", "barcode"),
        y=_num(bc, "y", "barcode"),
        spacing=_num(bc, "spacing", "barcode"),
        width=_num(bc, "width", "barcode"),
        height=_num(bc, "height", "barcode"),
    )
    if barcode.bits < 0:
        raise ValueError("Layout 'barcode.bits' must be >= 0.")

    cells = cfg.get("calibration_cells")
    if not isinstance(cells, (list, tuple)) or not cells:
        raise ValueError("Layout 'calibration_cells' must be a non-empty list of [x, y] pairs.")
    cal: list = []
    for pt in cells:
        if not isinstance(pt, (list, tuple)) or len(pt) != 2:
            raise ValueError(f"Calibration cell must be an [x, y] pair, got {pt!r}.")
        point = dict(zip(("x", "y"), pt))
        cal.append((_num(point, "x", "calibration_cells"), _num(point, "y", "calibration_cells")))

    layout = Layout(
        page_width=_num(page, "width", "page_size"),
        page_height=_num(page, "height", "page_size"),
        reg_marks=reg_marks,
        items=items,
        barcode=barcode,
        calibration_cells=tuple(cal),
        ink_black=_rect(cfg, "ink_black"),
        paper_white=_rect(cfg, "paper_white"),
    )
    if layout.reg_frame_width <= 0 or layout.reg_frame_height <= 0:
        raise ValueError("Registration marks leave no room on the page; check page_size and reg_marks.margin.")
    _check_bounds(layout)
    return layout

def load_layout(source: Union[None, str, Path, Mapping[str, Any], Layout] = None) -> Layout:
    """
    Resolve a layout descriptor:
      - None            -> the "default" preset
      - Layout          -> returned as is
      - mapping         -> merged over the default preset
      - preset name     -> one of PRESETS
      - str/Path        -> YAML or JSON file
    """
    if source is None:
        return layout_from_dict({})
    if isinstance(source, Layout):
        return source
    if isinstance(source, Mapping):
        return layout_from_dict(source)
    if isinstance(source, str) and source in PRESETS:
        return layout_from_dict(PRESETS[source])
    if isinstance(source, (str, Path)):
        p = Path(source).expanduser()
        if not p.is_file():
            raise FileNotFoundError(f"Layout is neither a preset nor a readable file: {source}")
        return layout_from_dict(load_config_any(p))
    raise TypeError(f"Invalid layout descriptor of type {type(source).__name__}")
