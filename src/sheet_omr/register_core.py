# src/sheet_omr/register_core.py
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple
import logging

from .scoring_defaults import DEFAULTS
from .tools.grid_geometry import Area, Corner, GridGeometry
from .tools.npatch import NPatch
from .tools.raster import RasterImage

logger = logging.getLogger(__name__)

# stretch order: source centroids land on (0,0), (W,0), (W,H), (0,H)
CORNERS: Tuple[Corner, ...] = (Corner.TL, Corner.TR, Corner.BR, Corner.BL)


class MarkStatus(str, Enum):
    OK = "ok"
    EDGY = "edgy"
    INSUFFICIENT_CONTRAST = "insufficient_contrast"
    SEARCH_EXHAUSTED = "search_exhausted"


@dataclass(frozen=True)
class RegistrationMark:
    corner: Corner
    status: MarkStatus
    area: Area                       # last search area tried (raw image space)
    step: int                        # expansion step of that area
    x: Optional[float] = None        # centroid, raw image space (ok only)
    y: Optional[float] = None

    @property
    def ok(self) -> bool:
        return self.status is MarkStatus.OK

    @property
    def center(self) -> Optional[Tuple[float, float]]:
        return (self.x, self.y) if self.ok else None


@dataclass(frozen=True)
class Registration:
    marks: Dict[Corner, RegistrationMark]
    corrected: Optional[RasterImage] = field(default=None, compare=False)

    @property
    def ok(self) -> bool:
        return self.corrected is not None

    def failure_reasons(self) -> Dict[str, str]:
        return {c.value: m.status.value for c, m in self.marks.items() if not m.ok}


class Registrar:
    """
    Find the four registration marks on a raw scan and stretch the scan so
    the mark centroids become the image corners.
    """

    def __init__(self, geometry: GridGeometry,
                 max_attempts: int = DEFAULTS.max_attempts,
                 min_contrast: float = DEFAULTS.min_contrast):
        self.geometry = geometry
        self.max_attempts = max_attempts
        self.min_contrast = min_contrast

    def _classify(self, shape: Tuple[int, int], centroid: Optional[Tuple[float, float]]) -> MarkStatus:
        """`shape` is the (h, w) of the clipped patch the centroid was measured in."""
        if centroid is None:
            return MarkStatus.INSUFFICIENT_CONTRAST
        cx, cy = centroid
        ex, ey = self.geometry.rm_edgy_x, self.geometry.rm_edgy_y
        h, w = shape
        if cx < ex or cy < ey or cx > w - ex or cy > h - ey:
            return MarkStatus.EDGY
        return MarkStatus.OK

    def find_mark(self, raw: RasterImage, corner: Corner) -> RegistrationMark:
        """Grow the corner's search area until a clean centroid turns up or the area gets too big."""
        max_side = self.geometry.rm_max_search_area_side
        area = self.geometry.rm_search_area(corner, 0)
        for step in range(self.max_attempts):
            area = self.geometry.rm_search_area(corner, step)
            patch = raw.crop(area)
            centroid = NPatch(patch, min_contrast=self.min_contrast).dark_centroid()
            status = self._classify(patch.shape, centroid)
            logger.debug("corner %s step %d area %s -> %s", corner.value, step, tuple(area), status.value)

            if status is MarkStatus.OK:
                cx, cy = centroid
                # crop clips at 0, so the local origin is the clipped corner
                return RegistrationMark(corner, status, area, step,
                                        x=cx + max(0, area.x), y=cy + max(0, area.y))
            if area.w > max_side:
                return RegistrationMark(corner, status, area, step)

        return RegistrationMark(corner, MarkStatus.SEARCH_EXHAUSTED, area, self.max_attempts - 1)

    def register(self, raw: RasterImage) -> Registration:
        marks = {corner: self.find_mark(raw, corner) for corner in CORNERS}
        if not all(m.ok for m in marks.values()):
            logger.warning("registration failed: %s",
                           {c.value: m.status.value for c, m in marks.items()})
            return Registration(marks)

        src: List[Tuple[float, float]] = [marks[c].center for c in CORNERS]
        corrected = raw.stretch(src, raw.width, raw.height)
        logger.info("registered %dx%d sheet, marks at %s", raw.width, raw.height,
                    {c.value: (round(x, 1), round(y, 1)) for c, (x, y) in zip(CORNERS, src)})
        return Registration(marks, corrected)
