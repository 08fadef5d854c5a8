"""
Selection Engine for the scatter canvas.

Modes:
- none:      pointer drags pan the camera; hover hit-testing is active
- lasso:     a drag accumulates a free-form polygon in canvas space
- rectangle: a drag spans an axis-aligned rectangle in canvas space

The gesture is committed on pointer release: every filtered cell is mapped to
canvas space and tested for containment, and the committed selection set is
replaced in one step.
"""

from enum import Enum
from typing import List, Optional, Sequence, Set, Tuple

import numpy as np

from cellcanvas.data.model import Cell
from cellcanvas.render.camera import Camera

Point = Tuple[float, float]
Rect = Tuple[float, float, float, float]  # x1, y1, x2, y2

HOVER_RADIUS_PX = 2.0


class SelectionMode(str, Enum):
    NONE = "none"
    LASSO = "lasso"
    RECTANGLE = "rectangle"


def point_in_polygon(x: float, y: float, polygon: Sequence[Point]) -> bool:
    """Ray-casting containment test; fewer than 3 vertices contains nothing."""
    return bool(points_in_polygon(np.asarray([x]), np.asarray([y]), polygon)[0])


def points_in_polygon(xs: np.ndarray, ys: np.ndarray, polygon: Sequence[Point]) -> np.ndarray:
    """Vectorized ray casting over many points."""
    xs = np.asarray(xs, dtype=float)
    ys = np.asarray(ys, dtype=float)
    inside = np.zeros(xs.shape, dtype=bool)
    if len(polygon) < 3:
        return inside

    verts = np.asarray(polygon, dtype=float)
    n = len(verts)
    with np.errstate(divide="ignore", invalid="ignore"):
        j = n - 1
        for i in range(n):
            xi, yi = verts[i]
            xj, yj = verts[j]
            crosses = (yi > ys) != (yj > ys)
            x_cross = (xj - xi) * (ys - yi) / (yj - yi) + xi
            inside ^= crosses & (xs < x_cross)
            j = i
    return inside


def point_in_rect(x: float, y: float, rect: Rect) -> bool:
    return bool(points_in_rect(np.asarray([x]), np.asarray([y]), rect)[0])


def points_in_rect(xs: np.ndarray, ys: np.ndarray, rect: Rect) -> np.ndarray:
    """Inclusive containment in the rectangle spanned by two corners."""
    x1, y1, x2, y2 = rect
    min_x, max_x = min(x1, x2), max(x1, x2)
    min_y, max_y = min(y1, y2), max(y1, y2)
    xs = np.asarray(xs, dtype=float)
    ys = np.asarray(ys, dtype=float)
    return (xs >= min_x) & (xs <= max_x) & (ys >= min_y) & (ys <= max_y)


def cell_coordinates(cells: Sequence[Cell]) -> Tuple[np.ndarray, np.ndarray]:
    xs = np.fromiter((c.x for c in cells), dtype=float, count=len(cells))
    ys = np.fromiter((c.y for c in cells), dtype=float, count=len(cells))
    return xs, ys


def find_hovered_cell(
    cells: Sequence[Cell],
    camera: Camera,
    canvas_x: float,
    canvas_y: float,
    xs: Optional[np.ndarray] = None,
    ys: Optional[np.ndarray] = None,
) -> Optional[Cell]:
    """
    Nearest cell to the cursor within a ~2px screen radius.

    The threshold is ``2 / camera.scale`` data units; ties go to the first
    cell in iteration order.
    """
    if not cells:
        return None
    if xs is None or ys is None:
        xs, ys = cell_coordinates(cells)

    data_x, data_y = camera.canvas_to_data(canvas_x, canvas_y)
    threshold = HOVER_RADIUS_PX / camera.scale
    dist = np.hypot(xs - data_x, ys - data_y)
    dist = np.where(np.isfinite(dist), dist, np.inf)

    idx = int(np.argmin(dist))
    if dist[idx] < threshold:
        return cells[idx]
    return None


class SelectionEngine:
    """
    Selection state machine.

    Usage:
        engine = SelectionEngine()
        engine.set_mode(SelectionMode.RECTANGLE)
        engine.begin(10, 10)
        engine.extend(200, 150)
        selected = engine.commit(filtered_cells, camera)
    """

    def __init__(self):
        self.mode = SelectionMode.NONE
        self.is_selecting = False
        self.lasso_points: List[Point] = []
        self.rect: Optional[Rect] = None
        self.selected_ids: Set[str] = set()
        self.version = 0

    def _discard_gesture(self) -> None:
        self.is_selecting = False
        self.lasso_points = []
        self.rect = None

    def set_mode(self, mode) -> bool:
        """
        Switch tool. Any in-progress gesture is discarded and the committed
        selection is cleared. Returns True if the selection was non-empty.
        """
        mode = SelectionMode(mode)
        had_selection = bool(self.selected_ids)
        self._discard_gesture()
        if mode != self.mode:
            self.mode = mode
            self.selected_ids = set()
            self.version += 1
            return had_selection
        return False

    def begin(self, x: float, y: float) -> bool:
        """Start a gesture at a canvas point. Returns False in mode ``none``."""
        if self.mode == SelectionMode.LASSO:
            self.is_selecting = True
            self.lasso_points = [(float(x), float(y))]
        elif self.mode == SelectionMode.RECTANGLE:
            self.is_selecting = True
            self.rect = (float(x), float(y), float(x), float(y))
        else:
            return False
        return True

    def extend(self, x: float, y: float) -> None:
        """Append a lasso vertex or move the rectangle's far corner."""
        if not self.is_selecting:
            return
        if self.mode == SelectionMode.LASSO:
            self.lasso_points.append((float(x), float(y)))
        elif self.mode == SelectionMode.RECTANGLE and self.rect is not None:
            x1, y1, _, _ = self.rect
            self.rect = (x1, y1, float(x), float(y))

    def contains(self, canvas_xs: np.ndarray, canvas_ys: np.ndarray) -> np.ndarray:
        """Membership mask of canvas points in the current gesture."""
        if self.mode == SelectionMode.LASSO:
            return points_in_polygon(canvas_xs, canvas_ys, self.lasso_points)
        if self.mode == SelectionMode.RECTANGLE and self.rect is not None:
            return points_in_rect(canvas_xs, canvas_ys, self.rect)
        return np.zeros(np.shape(canvas_xs), dtype=bool)

    def commit(
        self,
        cells: Sequence[Cell],
        camera: Camera,
        xs: Optional[np.ndarray] = None,
        ys: Optional[np.ndarray] = None,
    ) -> Optional[List[Cell]]:
        """
        Finish the gesture and replace the selection.

        Returns the selected cells in filtered-cell order, or None if no
        gesture was in progress.
        """
        if not self.is_selecting:
            self._discard_gesture()
            return None

        if cells:
            if xs is None or ys is None:
                xs, ys = cell_coordinates(cells)
            canvas_xs, canvas_ys = camera.data_to_canvas(xs, ys)
            mask = self.contains(np.atleast_1d(canvas_xs), np.atleast_1d(canvas_ys))
        else:
            mask = np.zeros(0, dtype=bool)

        selected = [cell for cell, hit in zip(cells, mask) if hit]
        self.selected_ids = {cell.id for cell in selected}
        self.version += 1
        self._discard_gesture()
        return selected

    def clear(self) -> List[Cell]:
        """Empty the selection; the listener receives an empty list."""
        self.selected_ids = set()
        self.version += 1
        self._discard_gesture()
        return []

    def is_selected(self, cell_id: str) -> bool:
        return cell_id in self.selected_ids
