"""
Canvas toolbar components.
"""

from cellcanvas.components.dashboard.toolbar import (
    create_selection_toolbar,
    create_toolbar,
    format_selection_info,
)

__all__ = [
    "create_toolbar",
    "create_selection_toolbar",
    "format_selection_info",
]
