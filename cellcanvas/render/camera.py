"""
Camera / viewport transform for the scatter canvas.

Data space is mapped linearly into the canvas inset (``padding`` pixels on
every side, y axis pointing up), then the camera applies a scale about the
canvas center followed by a pan offset:

    canvas = (untransformed - center) * scale + center + pan

``canvas_to_data`` is the exact inverse.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

MIN_SCALE = 0.5
MAX_SCALE = 10.0
WHEEL_ZOOM_IN = 1.1
WHEEL_ZOOM_OUT = 0.9
BUTTON_ZOOM = 1.2
BOUNDS_PADDING = 0.1
CANVAS_PADDING = 50


@dataclass(frozen=True)
class DataBounds:
    """Padded data-space extent of the dataset."""

    min_x: float
    max_x: float
    min_y: float
    max_y: float


DEFAULT_BOUNDS = DataBounds(-50.0, 50.0, -50.0, 50.0)


def compute_data_bounds(xs: Sequence[float], ys: Sequence[float]) -> DataBounds:
    """
    Min/max of all coordinates padded by 10% of each axis range.

    Zero cells give a fixed default rectangle; a zero-width axis is padded by
    one data unit so the transform stays invertible.
    """
    xs = np.asarray(xs, dtype=float)
    ys = np.asarray(ys, dtype=float)
    finite = np.isfinite(xs) & np.isfinite(ys)
    if not finite.any():
        return DEFAULT_BOUNDS
    xs, ys = xs[finite], ys[finite]

    min_x, max_x = float(xs.min()), float(xs.max())
    min_y, max_y = float(ys.min()), float(ys.max())
    range_x = max_x - min_x
    range_y = max_y - min_y
    pad_x = range_x * BOUNDS_PADDING if range_x > 0 else 1.0
    pad_y = range_y * BOUNDS_PADDING if range_y > 0 else 1.0

    return DataBounds(min_x - pad_x, max_x + pad_x, min_y - pad_y, max_y + pad_y)


def clamp_scale(scale: float) -> float:
    return max(MIN_SCALE, min(MAX_SCALE, scale))


class Camera:
    """
    Pan/zoom state plus the data <-> canvas mapping.

    Usage:
        camera = Camera(width=900, height=650, bounds=compute_data_bounds(xs, ys))
        cx, cy = camera.data_to_canvas(1.5, -3.0)
        camera.wheel(delta_y=-1)   # zoom in one notch
    """

    def __init__(
        self,
        width: int = 900,
        height: int = 650,
        bounds: DataBounds = DEFAULT_BOUNDS,
        padding: int = CANVAS_PADDING,
    ):
        self.width = width
        self.height = height
        self.bounds = bounds
        self.padding = padding
        self.tx = 0.0
        self.ty = 0.0
        self.scale = 1.0
        self._pan_start: Optional[Tuple[float, float]] = None

    # ==================== State ====================

    def state(self) -> Tuple[float, float, float]:
        """(tx, ty, scale), usable as a cache key."""
        return (self.tx, self.ty, self.scale)

    def set_state(self, tx: float, ty: float, scale: float) -> None:
        self.tx = float(tx)
        self.ty = float(ty)
        self.scale = clamp_scale(float(scale))

    def reset(self) -> None:
        """Identity camera (double-click / reset button)."""
        self.tx = 0.0
        self.ty = 0.0
        self.scale = 1.0
        self._pan_start = None

    # ==================== Zoom ====================

    def zoom_by(self, factor: float) -> float:
        self.scale = clamp_scale(self.scale * factor)
        return self.scale

    def wheel(self, delta_y: float) -> float:
        """One wheel notch: scrolling down zooms out, up zooms in."""
        return self.zoom_by(WHEEL_ZOOM_OUT if delta_y > 0 else WHEEL_ZOOM_IN)

    def zoom_in(self) -> float:
        return self.zoom_by(BUTTON_ZOOM)

    def zoom_out(self) -> float:
        return self.zoom_by(1 / BUTTON_ZOOM)

    # ==================== Pan ====================

    @property
    def is_panning(self) -> bool:
        return self._pan_start is not None

    def begin_pan(self, x: float, y: float) -> None:
        """Remember the pointer relative to the pan at drag start."""
        self._pan_start = (x - self.tx, y - self.ty)

    def drag_pan(self, x: float, y: float) -> None:
        """Pan is the total drag delta from the start, so it cannot drift."""
        if self._pan_start is None:
            return
        self.tx = x - self._pan_start[0]
        self.ty = y - self._pan_start[1]

    def end_pan(self) -> None:
        self._pan_start = None

    # ==================== Transforms ====================

    def _axis_scales(self) -> Tuple[float, float]:
        plot_width = max(self.width - self.padding * 2, 1)
        plot_height = max(self.height - self.padding * 2, 1)
        b = self.bounds
        return plot_width / (b.max_x - b.min_x), plot_height / (b.max_y - b.min_y)

    def data_to_canvas(self, x, y):
        """Map data coordinates to canvas pixels (scalars or numpy arrays)."""
        scale_x, scale_y = self._axis_scales()
        b = self.bounds
        canvas_x = self.padding + (np.asarray(x, dtype=float) - b.min_x) * scale_x
        canvas_y = self.height - self.padding - (np.asarray(y, dtype=float) - b.min_y) * scale_y

        cx = (canvas_x - self.width / 2) * self.scale + self.width / 2 + self.tx
        cy = (canvas_y - self.height / 2) * self.scale + self.height / 2 + self.ty
        if np.ndim(cx) == 0:
            return float(cx), float(cy)
        return cx, cy

    def canvas_to_data(self, canvas_x, canvas_y):
        """Inverse of ``data_to_canvas``."""
        scale_x, scale_y = self._axis_scales()
        b = self.bounds
        ux = (np.asarray(canvas_x, dtype=float) - self.tx - self.width / 2) / self.scale + self.width / 2
        uy = (np.asarray(canvas_y, dtype=float) - self.ty - self.height / 2) / self.scale + self.height / 2

        x = (ux - self.padding) / scale_x + b.min_x
        y = b.max_y - (uy - self.padding) / scale_y
        if np.ndim(x) == 0:
            return float(x), float(y)
        return x, y
