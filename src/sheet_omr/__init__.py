from .config_io import Layout, load_layout
from .grade_core import Thresholds
from .register_core import MarkStatus, RegistrationMark
from .sheet import SheetOMR
from .tools.grid_geometry import Corner

__all__ = [
    "Corner",
    "Layout",
    "MarkStatus",
    "RegistrationMark",
    "SheetOMR",
    "Thresholds",
    "load_layout",
]
