from .logger import get_logger, setup_logging
from .units import pick_unit_distance, pick_unit_speed, pick_unit_area, pick_unit_seconds, format_with_unit
from . import settings

__all__ = [
    "get_logger",
    "setup_logging",
    "settings",
    "pick_unit_distance",
    "pick_unit_speed",
    "pick_unit_area",
    "pick_unit_seconds",
    "format_with_unit",
]
