"""
Scatter Renderer for CellCanvas.

``render_frame(scene)`` is a pure function from the current view state to a
list of drawing commands. Nothing here touches a drawing surface: the Plotly
figure builder (``cellcanvas.components.plots.scatter``) and the SVG writer
(``cellcanvas.render.svg``) consume the resulting ``Frame``.

Draw order:
1. clear to white
2. background grid (fixed data-space spacing, transformed by the camera)
3. highlight rings for selected cells, then the cell points
4. cluster label boxes at filtered-cell centroids
5. in-progress lasso / rectangle overlay
6. axis labels
"""

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional, Sequence, Set, Tuple

import numpy as np
import pandas as pd

from cellcanvas.data.model import Cell
from cellcanvas.render.camera import Camera
from cellcanvas.render.palettes import DEFAULT_COLOR, map_colors, parse_color
from cellcanvas.render.selection import SelectionMode, cell_coordinates

BACKGROUND = "#ffffff"
GRID_SPACING = 20.0
GRID_COLOR = "#e5e7eb"
CULL_MARGIN = 10.0

RING_COLOR = "rgba(255, 200, 0, 0.9)"
RING_EXTRA_RADIUS = 2.0

LABEL_FONT_SIZE = 12
LABEL_PADDING = 6
LABEL_HEIGHT = 20
LABEL_RADIUS = 4
LABEL_TEXT_COLOR = "#1f2937"
# Average advance width of a bold sans-serif digit, as a fraction of font size
BOLD_CHAR_WIDTH = 0.62

OVERLAY_STROKE = "rgba(59, 130, 246, 0.8)"
OVERLAY_FILL = "rgba(59, 130, 246, 0.1)"
OVERLAY_WIDTH = 2
OVERLAY_DASH = (5, 5)

AXIS_COLOR = "#6b7280"
AXIS_FONT_SIZE = 12


class ColorRule(str, Enum):
    EXPRESSION = "expression"
    AVERAGED = "averaged"
    ANNOTATION = "annotation"
    CLUSTER = "cluster"
    DEFAULT = "default"


def choose_color_rule(
    has_selected_gene: bool,
    has_expression: bool,
    has_averaged: bool,
    has_annotation: bool,
    show_clusters: bool,
) -> ColorRule:
    """
    Which coloring rule applies to the points.

    A selected single gene always wins over the averaged gene-set view.
    """
    if has_selected_gene and has_expression:
        return ColorRule.EXPRESSION
    if has_averaged:
        return ColorRule.AVERAGED
    if has_annotation:
        return ColorRule.ANNOTATION
    if show_clusters:
        return ColorRule.CLUSTER
    return ColorRule.DEFAULT


# ==================== Frame commands ====================


@dataclass(frozen=True)
class Clear:
    width: int
    height: int
    color: str = BACKGROUND


@dataclass(frozen=True)
class GridLine:
    x1: float
    y1: float
    x2: float
    y2: float
    color: str = GRID_COLOR
    width: float = 1.0


@dataclass(frozen=True, eq=False)
class Points:
    """
    A batch of filled circles.

    ``colors`` is an (n, 4) integer RGBA array; ``cell_ids`` lines up with
    the coordinates so backends can attach hover data.
    """

    xs: np.ndarray
    ys: np.ndarray
    colors: np.ndarray
    radius: float
    cell_ids: Tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.xs)


@dataclass(frozen=True, eq=False)
class SelectionRings:
    """Highlight discs drawn underneath selected points."""

    xs: np.ndarray
    ys: np.ndarray
    radius: float
    color: str = RING_COLOR

    def __len__(self) -> int:
        return len(self.xs)


@dataclass(frozen=True)
class LabelBox:
    """Rounded, centered text box (cluster labels)."""

    x: float
    y: float
    text: str
    width: float
    height: float = LABEL_HEIGHT
    radius: float = LABEL_RADIUS
    fill: str = "rgba(255, 255, 255, 0.9)"
    stroke: str = "rgba(0, 0, 0, 0.3)"
    stroke_width: float = 1.0
    text_color: str = LABEL_TEXT_COLOR
    font_size: int = LABEL_FONT_SIZE
    bold: bool = True


@dataclass(frozen=True)
class OverlayPolygon:
    points: Tuple[Tuple[float, float], ...]
    stroke: str = OVERLAY_STROKE
    fill: str = OVERLAY_FILL
    width: float = OVERLAY_WIDTH
    dash: Tuple[int, int] = OVERLAY_DASH


@dataclass(frozen=True)
class OverlayRect:
    x: float
    y: float
    width: float
    height: float
    stroke: str = OVERLAY_STROKE
    fill: str = OVERLAY_FILL
    line_width: float = OVERLAY_WIDTH
    dash: Tuple[int, int] = OVERLAY_DASH


@dataclass(frozen=True)
class AxisText:
    x: float
    y: float
    text: str
    rotation: float = 0.0
    color: str = AXIS_COLOR
    font_size: int = AXIS_FONT_SIZE


@dataclass
class Frame:
    """Ordered drawing commands for one redraw."""

    width: int
    height: int
    commands: List[object] = field(default_factory=list)
    color_rule: ColorRule = ColorRule.DEFAULT

    def add(self, command) -> None:
        self.commands.append(command)

    def of_type(self, kind) -> List:
        return [c for c in self.commands if isinstance(c, kind)]


# ==================== Scene ====================


@dataclass
class Scene:
    """
    Everything a redraw depends on.

    Attributes:
        cells: Filtered cells, in dataset order
        camera: Camera (its bounds come from the full, unfiltered cell set)
        xs, ys: Optional precomputed data coordinates of ``cells``
        expression: Per-cell values of the selected gene, or None
        averaged: Per-cell averaged gene-set values, or None
        annotation_key: Metadata key for categorical coloring, or None
        annotation_colors: Annotation value -> CSS color
        cluster_colors: Cluster id -> CSS color
        cluster_centers: Cluster id -> (x, y) centroid of filtered cells
        expression_bounds: (min, max) used to normalize expression values
    """

    cells: Sequence[Cell]
    camera: Camera
    xs: Optional[np.ndarray] = None
    ys: Optional[np.ndarray] = None
    point_size: float = 2.0
    opacity: float = 0.8
    show_clusters: bool = True
    show_labels: bool = True
    selected_gene: Optional[str] = None
    expression: Optional[pd.Series] = None
    averaged: Optional[pd.Series] = None
    expression_bounds: Tuple[float, float] = (0.0, 1.0)
    expression_scale: float = 1.0
    palette: str = "viridis"
    annotation_key: Optional[str] = None
    annotation_colors: Dict[str, str] = field(default_factory=dict)
    cluster_colors: Dict[int, str] = field(default_factory=dict)
    cluster_centers: Dict[int, Tuple[float, float]] = field(default_factory=dict)
    selected_ids: Set[str] = field(default_factory=set)
    selection_mode: SelectionMode = SelectionMode.NONE
    is_selecting: bool = False
    lasso_points: Sequence[Tuple[float, float]] = ()
    rect: Optional[Tuple[float, float, float, float]] = None
    x_label: str = "tSNE1"
    y_label: str = "tSNE2"


# ==================== Helpers ====================


def measure_text(text: str, font_size: int = LABEL_FONT_SIZE) -> float:
    """Approximate rendered width of bold label text in pixels."""
    return len(text) * font_size * BOLD_CHAR_WIDTH


def compute_cluster_centers(
    cells: Sequence[Cell],
    xs: Optional[np.ndarray] = None,
    ys: Optional[np.ndarray] = None,
) -> Dict[int, Tuple[float, float]]:
    """Mean (x, y) of each cluster over the given cells, keyed by cluster id."""
    if not cells:
        return {}
    if xs is None or ys is None:
        xs, ys = cell_coordinates(cells)

    df = pd.DataFrame({
        "cluster": [c.cluster for c in cells],
        "x": xs,
        "y": ys,
    })
    means = df.groupby("cluster", sort=True)[["x", "y"]].mean()
    return {int(cid): (float(row.x), float(row.y)) for cid, row in means.iterrows()}


def _alpha(opacity: float) -> int:
    return int(math.floor(max(0.0, min(1.0, opacity)) * 255))


def _values_for(cells: Sequence[Cell], values: pd.Series) -> np.ndarray:
    """Align a sparse value map to ``cells``; absent ids are zeros."""
    ids = [c.id for c in cells]
    return values.reindex(ids).fillna(0.0).to_numpy(dtype=float)


def compute_point_colors(scene: Scene, rule: ColorRule) -> np.ndarray:
    """(n, 4) RGBA array for ``scene.cells`` under ``rule``."""
    cells = scene.cells
    n = len(cells)
    rgb = np.empty((n, 3), dtype=int)

    if rule in (ColorRule.EXPRESSION, ColorRule.AVERAGED):
        source = scene.expression if rule == ColorRule.EXPRESSION else scene.averaged
        vmin, vmax = scene.expression_bounds
        if n:
            rgb[:] = map_colors(
                _values_for(cells, source), vmin, vmax, scene.expression_scale, scene.palette
            )
    elif rule == ColorRule.ANNOTATION:
        parsed: Dict[Optional[str], Tuple[int, int, int]] = {}
        for i, cell in enumerate(cells):
            label = cell.get_label(scene.annotation_key)
            if label not in parsed:
                parsed[label] = parse_color(scene.annotation_colors.get(label))
            rgb[i] = parsed[label]
    elif rule == ColorRule.CLUSTER:
        parsed_clusters = {cid: parse_color(color) for cid, color in scene.cluster_colors.items()}
        for i, cell in enumerate(cells):
            rgb[i] = parsed_clusters.get(cell.cluster, DEFAULT_COLOR)
    else:
        rgb[:] = DEFAULT_COLOR

    alpha = np.full((n, 1), _alpha(scene.opacity), dtype=int)
    return np.hstack([rgb, alpha])


def _grid_lines(camera: Camera) -> List[GridLine]:
    b = camera.bounds
    lines = []
    for k in range(math.ceil(b.min_x / GRID_SPACING), math.floor(b.max_x / GRID_SPACING) + 1):
        x = k * GRID_SPACING
        x1, y1 = camera.data_to_canvas(x, b.min_y)
        x2, y2 = camera.data_to_canvas(x, b.max_y)
        lines.append(GridLine(x1, y1, x2, y2))
    for k in range(math.ceil(b.min_y / GRID_SPACING), math.floor(b.max_y / GRID_SPACING) + 1):
        y = k * GRID_SPACING
        x1, y1 = camera.data_to_canvas(b.min_x, y)
        x2, y2 = camera.data_to_canvas(b.max_x, y)
        lines.append(GridLine(x1, y1, x2, y2))
    return lines


def _label_boxes(scene: Scene) -> List[LabelBox]:
    emphasized = scene.selected_gene is not None
    boxes = []
    for cluster_id, (cx, cy) in scene.cluster_centers.items():
        x, y = scene.camera.data_to_canvas(cx, cy)
        if not (math.isfinite(x) and math.isfinite(y)):
            continue
        text = str(cluster_id)
        boxes.append(LabelBox(
            x=x,
            y=y,
            text=text,
            width=measure_text(text) + LABEL_PADDING * 2,
            fill=f"rgba(255, 255, 255, {0.95 if emphasized else 0.9})",
            stroke="rgba(0, 0, 0, 0.5)" if emphasized else "rgba(0, 0, 0, 0.3)",
            stroke_width=1.5 if emphasized else 1.0,
        ))
    return boxes


def _overlay(scene: Scene):
    if not scene.is_selecting:
        return None
    if scene.selection_mode == SelectionMode.LASSO and len(scene.lasso_points) > 1:
        return OverlayPolygon(points=tuple((float(x), float(y)) for x, y in scene.lasso_points))
    if scene.selection_mode == SelectionMode.RECTANGLE and scene.rect is not None:
        x1, y1, x2, y2 = scene.rect
        return OverlayRect(x=min(x1, x2), y=min(y1, y2), width=abs(x2 - x1), height=abs(y2 - y1))
    return None


# ==================== Render ====================


def render_frame(scene: Scene) -> Frame:
    """
    Build the drawing commands for one redraw.

    Never raises for degenerate numeric input: empty cell sets, equal
    expression bounds and cells far outside the viewport all resolve to a
    defined output.
    """
    camera = scene.camera
    width, height = camera.width, camera.height

    rule = choose_color_rule(
        has_selected_gene=scene.selected_gene is not None,
        has_expression=scene.expression is not None,
        has_averaged=scene.averaged is not None,
        has_annotation=scene.annotation_key is not None,
        show_clusters=scene.show_clusters,
    )
    frame = Frame(width=width, height=height, color_rule=rule)
    frame.add(Clear(width, height))

    for line in _grid_lines(camera):
        frame.add(line)

    # Points
    cells = list(scene.cells)
    xs, ys = scene.xs, scene.ys
    if xs is None or ys is None:
        xs, ys = cell_coordinates(cells)
    if cells:
        canvas_x, canvas_y = camera.data_to_canvas(xs, ys)
        canvas_x = np.atleast_1d(canvas_x)
        canvas_y = np.atleast_1d(canvas_y)
    else:
        canvas_x = canvas_y = np.zeros(0)

    visible = (
        (canvas_x >= -CULL_MARGIN) & (canvas_x <= width + CULL_MARGIN)
        & (canvas_y >= -CULL_MARGIN) & (canvas_y <= height + CULL_MARGIN)
    )
    idx = np.flatnonzero(visible)
    visible_cells = [cells[i] for i in idx]

    radius = scene.point_size * camera.scale
    if scene.selected_ids:
        selected = np.fromiter(
            (c.id in scene.selected_ids for c in visible_cells), dtype=bool, count=len(visible_cells)
        )
        if selected.any():
            frame.add(SelectionRings(
                xs=canvas_x[idx][selected],
                ys=canvas_y[idx][selected],
                radius=radius + RING_EXTRA_RADIUS,
            ))

    color_scene = scene if len(visible_cells) == len(cells) else _with_cells(scene, visible_cells)
    frame.add(Points(
        xs=canvas_x[idx],
        ys=canvas_y[idx],
        colors=compute_point_colors(color_scene, rule),
        radius=radius,
        cell_ids=tuple(c.id for c in visible_cells),
    ))

    if scene.show_labels:
        for box in _label_boxes(scene):
            frame.add(box)

    overlay = _overlay(scene)
    if overlay is not None:
        frame.add(overlay)

    frame.add(AxisText(width / 2, height - 10, scene.x_label))
    frame.add(AxisText(15, height / 2, scene.y_label, rotation=-90))
    return frame


def _with_cells(scene: Scene, cells: Sequence[Cell]) -> Scene:
    return replace(scene, cells=cells, xs=None, ys=None)
