# src/sheet_omr/tools/raster.py
from __future__ import annotations
from pathlib import Path
from typing import Iterable, Optional, Sequence, Tuple, Union

import numpy as np
import cv2 as cv
from PIL import Image

from .grid_geometry import Area

Color = Tuple[int, int, int]
Point = Tuple[float, float]

# -------------------------
# Image I/O utilities
# -------------------------

def imread_any(path: str) -> Optional[np.ndarray]:
    """Read image from path into BGR np.ndarray or return None on failure."""
    try:
        buf = np.fromfile(path, dtype=np.uint8)
    except OSError:
        return None
    if buf.size == 0:
        return None
    return cv.imdecode(buf, cv.IMREAD_COLOR)

def pil_to_bgr(img: Image.Image) -> np.ndarray:
    return cv.cvtColor(np.array(img.convert("RGB")), cv.COLOR_RGB2BGR)

def _as_bgr(pixels: np.ndarray) -> np.ndarray:
    if pixels.dtype != np.uint8:
        raise ValueError(f"Expected uint8 pixel data, got {pixels.dtype}")
    if pixels.ndim == 2:
        return cv.cvtColor(pixels, cv.COLOR_GRAY2BGR)
    if pixels.ndim == 3 and pixels.shape[2] == 3:
        return pixels.copy()
    if pixels.ndim == 3 and pixels.shape[2] == 4:
        return cv.cvtColor(pixels, cv.COLOR_BGRA2BGR)
    raise ValueError(f"Unsupported pixel array shape {pixels.shape}")


class RasterImage:
    """
    A BGR raster plus a lazily created overlay layer.

    Pixel data is never drawn on; `outline`, `highlight_*` and `join` paint a
    copy that `write` saves instead of the clean pixels.
    """

    def __init__(self, pixels: np.ndarray):
        self.pixels = _as_bgr(pixels)
        self._gray: Optional[np.ndarray] = None
        self._overlay: Optional[np.ndarray] = None

    @classmethod
    def load(cls, path: Union[str, Path]) -> "RasterImage":
        img = imread_any(str(path))
        if img is None:
            raise FileNotFoundError(f"Could not read image: {path}")
        return cls(img)

    @classmethod
    def from_pil(cls, img: Image.Image) -> "RasterImage":
        return cls(pil_to_bgr(img))

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def gray(self) -> np.ndarray:
        if self._gray is None:
            self._gray = cv.cvtColor(self.pixels, cv.COLOR_BGR2GRAY)
        return self._gray

    def crop(self, area: Area) -> np.ndarray:
        """Grayscale view of `area`, clipped to the image bounds."""
        x0 = max(0, area.x); y0 = max(0, area.y)
        x1 = min(self.width, area.x + area.w); y1 = min(self.height, area.y + area.h)
        if x1 <= x0 or y1 <= y0:
            return self.gray[0:0, 0:0]
        return self.gray[y0:y1, x0:x1]

    def stretch(self, src: Sequence[Point], width: int, height: int) -> "RasterImage":
        """
        Perspective-remap the four `src` points (tl, tr, br, bl) onto the
        corners of a width x height rectangle.
        """
        if len(src) != 4:
            raise ValueError(f"stretch needs exactly 4 source points, got {len(src)}")
        src_pts = np.float32(src)
        dst_pts = np.float32([[0, 0], [width, 0], [width, height], [0, height]])
        M = cv.getPerspectiveTransform(src_pts, dst_pts)
        warped = cv.warpPerspective(
            self.pixels, M, (int(width), int(height)),
            flags=cv.INTER_LINEAR, borderMode=cv.BORDER_REPLICATE,
        )
        return RasterImage(warped)

    # ---------- overlay drawing ----------
    @property
    def canvas(self) -> np.ndarray:
        if self._overlay is None:
            self._overlay = self.pixels.copy()
        return self._overlay

    @property
    def has_overlay(self) -> bool:
        return self._overlay is not None

    def outline(self, areas: Iterable[Area], color: Color = (0, 0, 255), thickness: int = 2) -> None:
        img = self.canvas
        for a in areas:
            cv.rectangle(img, (a.x, a.y), (a.x + a.w, a.y + a.h), color, thickness)

    def _blend(self, layer: np.ndarray, alpha: float) -> None:
        img = self.canvas
        cv.addWeighted(layer, alpha, img, 1.0 - alpha, 0, dst=img)

    def highlight_rects(self, areas: Iterable[Area], color: Color = (0, 200, 255), alpha: float = 0.4) -> None:
        layer = self.canvas.copy()
        for a in areas:
            cv.rectangle(layer, (a.x, a.y), (a.x + a.w, a.y + a.h), color, thickness=-1)
        self._blend(layer, alpha)

    def highlight_cells(self, areas: Iterable[Area], color: Color = (0, 255, 0), alpha: float = 0.4) -> None:
        """Fill the ellipse inscribed in each cell."""
        layer = self.canvas.copy()
        for a in areas:
            center = (a.x + a.w // 2, a.y + a.h // 2)
            axes = (max(1, a.w // 2), max(1, a.h // 2))
            cv.ellipse(layer, center, axes, 0, 0, 360, color, thickness=-1, lineType=cv.LINE_AA)
        self._blend(layer, alpha)

    def join(self, points: Sequence[Point], color: Color = (255, 0, 0), thickness: int = 2) -> None:
        """Closed polyline through `points`, with a dot on each."""
        img = self.canvas
        pts = np.int32([[int(round(x)), int(round(y))] for (x, y) in points]).reshape(-1, 1, 2)
        cv.polylines(img, [pts], isClosed=True, color=color, thickness=thickness, lineType=cv.LINE_AA)
        for (x, y) in points:
            cv.circle(img, (int(round(x)), int(round(y))), 4, color, thickness=-1, lineType=cv.LINE_AA)

    def write(self, path: Union[str, Path]) -> str:
        out_path = Path(path).expanduser().resolve()
        out_path.parent.mkdir(parents=True, exist_ok=True)
        img = self._overlay if self._overlay is not None else self.pixels
        if not cv.imwrite(str(out_path), img):
            raise OSError(f"Could not write image: {out_path}")
        return str(out_path)
