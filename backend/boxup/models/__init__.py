from .category import Category, DEFAULT_COLOR, DEFAULT_ICON, ICON_PRESETS, UNCLASSIFIED_COLOR
from .entry import Entry

__all__ = [
    "Category",
    "Entry",
    "DEFAULT_COLOR",
    "DEFAULT_ICON",
    "ICON_PRESETS",
    "UNCLASSIFIED_COLOR",
]
