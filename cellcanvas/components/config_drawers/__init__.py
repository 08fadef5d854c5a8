"""
Configuration drawer components for display settings.
"""

from cellcanvas.components.config_drawers.display_options import (
    create_display_options_drawer,
    create_palette_legend,
    get_settings_from_inputs,
)

__all__ = [
    "create_display_options_drawer",
    "create_palette_legend",
    "get_settings_from_inputs",
]
