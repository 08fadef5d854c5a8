"""Camera, color mapping, selection and frame rendering for the scatter canvas."""

from cellcanvas.render.camera import Camera, DataBounds, compute_data_bounds
from cellcanvas.render.palettes import PALETTES, compute_bounds, map_color
from cellcanvas.render.scatter import ColorRule, Frame, Scene, choose_color_rule, render_frame
from cellcanvas.render.selection import SelectionEngine, SelectionMode

__all__ = [
    "Camera",
    "DataBounds",
    "compute_data_bounds",
    "PALETTES",
    "compute_bounds",
    "map_color",
    "ColorRule",
    "Frame",
    "Scene",
    "choose_color_rule",
    "render_frame",
    "SelectionEngine",
    "SelectionMode",
]
