"""
Application state and the Explorer controller.

All view state lives in one ``AppState`` owned by an ``Explorer``. Every
change goes through an explicit method on the controller (settings updates,
pointer events, annotation edits, dataset loads). Derived quantities are
recomputed through ``Memo``, keyed by explicit dependency tuples, so a redraw
costs time proportional to the cell count and not to unrelated state changes.
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from cellcanvas.config import Config
from cellcanvas.data.annotation import AnnotationError
from cellcanvas.data.expression import (
    get_annotation_color_map,
    get_annotation_values,
    get_expression_value,
)
from cellcanvas.data.filters import CellFilterState, filter_mask
from cellcanvas.data.loader import ValidationResult, parse_dataset_json
from cellcanvas.data.manager import DataManager
from cellcanvas.data.model import Cell, SingleCellDataset
from cellcanvas.render.camera import Camera, compute_data_bounds
from cellcanvas.render.palettes import PALETTES, compute_bounds
from cellcanvas.render.scatter import Frame, Scene, compute_cluster_centers, render_frame
from cellcanvas.render.selection import SelectionEngine, SelectionMode, find_hovered_cell

SelectionListener = Callable[[List[Cell]], None]

POINT_SIZE_RANGE = (0.5, 5.0)
OPACITY_RANGE = (0.1, 1.0)
SCALE_RANGE = (0.1, 3.0)


def _clamp(value: float, bounds: Tuple[float, float]) -> float:
    low, high = bounds
    return max(low, min(high, float(value)))


@dataclass(frozen=True)
class VisualizationSettings:
    """View settings; replaced wholesale on every update."""

    point_size: float = 2.0
    opacity: float = 0.8
    show_clusters: bool = True
    show_labels: bool = True
    show_averaged_expression: bool = False
    use_percentile_clipping: bool = False
    palette: str = "viridis"
    selected_gene: Optional[str] = None
    selected_genes: Tuple[str, ...] = ()
    percentile_low: float = 5.0
    percentile_high: float = 95.0
    expression_scale: float = 1.0
    annotation_key: Optional[str] = None
    cell_filter: CellFilterState = field(default_factory=CellFilterState)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pointSize": self.point_size,
            "opacity": self.opacity,
            "showClusters": self.show_clusters,
            "showLabels": self.show_labels,
            "showAveragedExpression": self.show_averaged_expression,
            "usePercentileClipping": self.use_percentile_clipping,
            "colorPalette": self.palette,
            "selectedGene": self.selected_gene,
            "selectedGenes": list(self.selected_genes),
            "percentileLow": self.percentile_low,
            "percentileHigh": self.percentile_high,
            "expressionScale": self.expression_scale,
            "selectedAnnotation": self.annotation_key,
            "cellFilter": self.cell_filter.to_dict(),
        }


@dataclass
class AppState:
    """Everything the scatter view depends on besides the dataset itself."""

    settings: VisualizationSettings
    camera: Camera
    selection: SelectionEngine
    hovered_cell_id: Optional[str] = None


class Memo:
    """
    One cached value per derived quantity, keyed by a dependency tuple.

    Usage:
        memo = Memo()
        cells = memo.get("filtered", (dataset_key, filter_key), compute)
    """

    def __init__(self):
        self._entries: Dict[str, Tuple[tuple, Any]] = {}
        self.hits = 0
        self.misses = 0

    def get(self, name: str, deps: tuple, compute: Callable[[], Any]) -> Any:
        entry = self._entries.get(name)
        if entry is not None and entry[0] == deps:
            self.hits += 1
            return entry[1]
        self.misses += 1
        value = compute()
        self._entries[name] = (deps, value)
        return value

    def invalidate(self, name: Optional[str] = None) -> None:
        if name is None:
            self._entries.clear()
        else:
            self._entries.pop(name, None)


class Explorer:
    """
    Single owner of the dataset and all view state.

    Usage:
        explorer = Explorer(Config(seed=0))
        explorer.update_settings(selected_gene="MYH7", palette="magma")
        explorer.set_selection_mode("rectangle")
        explorer.mouse_down(100, 100)
        explorer.mouse_move(300, 250)
        explorer.mouse_up()
        frame = explorer.render()
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        data_manager: Optional[DataManager] = None,
    ):
        self.config = config or Config()
        self.data = data_manager or DataManager(self.config)
        self.memo = Memo()
        self.state = AppState(
            settings=VisualizationSettings(),
            camera=Camera(self.config.canvas_width, self.config.canvas_height),
            selection=SelectionEngine(),
        )
        self._listeners: List[SelectionListener] = []
        self._refresh_bounds()

    # ==================== Accessors ====================

    @property
    def dataset(self) -> SingleCellDataset:
        return self.data.dataset

    @property
    def settings(self) -> VisualizationSettings:
        return self.state.settings

    @property
    def camera(self) -> Camera:
        return self.state.camera

    @property
    def selection(self) -> SelectionEngine:
        return self.state.selection

    def _dataset_key(self) -> tuple:
        return (id(self.dataset), self.dataset.version)

    def _refresh_bounds(self) -> None:
        """Data bounds always use the full, unfiltered cell set."""
        xs, ys = self.data.coordinates
        self.camera.bounds = self.memo.get(
            "data_bounds", self._dataset_key(), lambda: compute_data_bounds(xs, ys)
        )

    # ==================== Settings ====================

    def update_settings(self, **changes) -> bool:
        """
        Apply a settings update.

        Percentile updates that would break ``0 <= low < high <= 100`` are
        ignored (the whole update is dropped). Returns True if applied.

        Raises:
            ValueError: Unknown palette name
            TypeError: Unknown settings field
        """
        if not changes:
            return False

        if "palette" in changes and changes["palette"] not in PALETTES:
            raise ValueError(f"Unknown palette: {changes['palette']}")

        if "point_size" in changes:
            changes["point_size"] = _clamp(changes["point_size"], POINT_SIZE_RANGE)
        if "opacity" in changes:
            changes["opacity"] = _clamp(changes["opacity"], OPACITY_RANGE)
        if "expression_scale" in changes:
            changes["expression_scale"] = _clamp(changes["expression_scale"], SCALE_RANGE)
        if "selected_genes" in changes:
            changes["selected_genes"] = tuple(dict.fromkeys(changes["selected_genes"] or ()))
        if "cell_filter" in changes and isinstance(changes["cell_filter"], dict):
            changes["cell_filter"] = CellFilterState.from_dict(changes["cell_filter"])

        updated = replace(self.settings, **changes)
        low, high = updated.percentile_low, updated.percentile_high
        if not (0 <= low < high <= 100):
            return False

        self.state.settings = updated
        return True

    def select_gene(self, gene: Optional[str]) -> None:
        self.update_settings(selected_gene=gene or None)

    def set_gene_set(self, genes: Sequence[str]) -> None:
        self.update_settings(selected_genes=tuple(genes))

    def set_filter(self, samples: Iterable[str] = (), clusters: Iterable[int] = ()) -> None:
        self.update_settings(cell_filter=CellFilterState(
            selected_samples=tuple(samples),
            selected_clusters=tuple(int(c) for c in clusters),
        ))

    # ==================== Derived values ====================

    def _filtered(self) -> Tuple[List[Cell], np.ndarray, np.ndarray]:
        cell_filter = self.settings.cell_filter

        def compute():
            cells = self.dataset.cells
            xs, ys = self.data.coordinates
            mask = filter_mask(cells, cell_filter)
            idx = np.flatnonzero(mask)
            return [cells[i] for i in idx], xs[idx], ys[idx]

        return self.memo.get("filtered", (self._dataset_key(), cell_filter.key()), compute)

    @property
    def filtered_cells(self) -> List[Cell]:
        return self._filtered()[0]

    @property
    def expression_map(self) -> Optional[pd.Series]:
        """Values of the selected gene, or None when no gene is selected."""
        gene = self.settings.selected_gene
        if gene is None:
            return None
        return self.memo.get(
            "expression",
            (self._dataset_key(), gene),
            lambda: self.data.get_gene_expression(gene),
        )

    @property
    def averaged_map(self) -> Optional[pd.Series]:
        """Averaged gene-set values when the averaged view is active."""
        s = self.settings
        if not s.show_averaged_expression or not s.selected_genes:
            return None
        return self.memo.get(
            "averaged",
            (self._dataset_key(), s.selected_genes),
            lambda: self.data.get_averaged_expression(s.selected_genes),
        )

    def _active_values(self) -> Tuple[Optional[str], Optional[pd.Series]]:
        if self.settings.selected_gene is not None:
            return self.settings.selected_gene, self.expression_map
        averaged = self.averaged_map
        if averaged is not None:
            return "average:" + ",".join(self.settings.selected_genes), averaged
        return None, None

    @property
    def expression_bounds(self) -> Tuple[float, float]:
        s = self.settings
        name, values = self._active_values()
        if values is None:
            return (0.0, 1.0)
        deps = (
            self._dataset_key(),
            name,
            s.use_percentile_clipping,
            s.percentile_low,
            s.percentile_high,
        )
        return self.memo.get(
            "expression_bounds",
            deps,
            lambda: compute_bounds(
                values.to_numpy(dtype=float),
                s.use_percentile_clipping,
                s.percentile_low,
                s.percentile_high,
            ),
        )

    @property
    def cluster_centers(self) -> Dict[int, Tuple[float, float]]:
        def compute():
            cells, xs, ys = self._filtered()
            return compute_cluster_centers(cells, xs, ys)

        deps = (self._dataset_key(), self.settings.cell_filter.key())
        return self.memo.get("cluster_centers", deps, compute)

    @property
    def annotation_colors(self) -> Dict[str, str]:
        key = self.settings.annotation_key
        if key is None:
            return {}
        return self.memo.get(
            "annotation_colors",
            (self._dataset_key(), key),
            lambda: get_annotation_color_map(get_annotation_values(self.dataset.cells, key)),
        )

    @property
    def selected_cells(self) -> List[Cell]:
        """Committed selection, in filtered-cell order."""
        ids = self.selection.selected_ids
        if not ids:
            return []
        return [c for c in self.filtered_cells if c.id in ids]

    @property
    def hovered_cell(self) -> Optional[Cell]:
        if self.state.hovered_cell_id is None:
            return None
        return self.data.get_cell(self.state.hovered_cell_id)

    def hover_info(self, cell: Optional[Cell] = None) -> Optional[Dict[str, Any]]:
        """Tooltip fields for a cell (defaults to the hovered cell)."""
        cell = cell or self.hovered_cell
        if cell is None:
            return None
        cluster = self.dataset.get_cluster(cell.cluster)
        info: Dict[str, Any] = {
            "id": cell.id,
            "cluster": cell.cluster,
            "cluster_name": cluster.name if cluster else f"Cluster {cell.cluster}",
        }
        gene = self.settings.selected_gene
        if gene is not None:
            info["gene"] = gene
            info["expression"] = get_expression_value(self.expression_map, cell.id)
        return info

    # ==================== Listeners ====================

    def on_cells_selected(self, listener: SelectionListener) -> None:
        self._listeners.append(listener)

    def _notify(self, cells: List[Cell]) -> None:
        for listener in self._listeners:
            listener(cells)

    # ==================== Pointer events ====================

    def mouse_down(self, x: float, y: float) -> None:
        """Start a pan (mode ``none``) or a selection gesture."""
        if self.selection.mode == SelectionMode.NONE:
            self.camera.begin_pan(x, y)
        else:
            self.selection.begin(x, y)

    def mouse_move(self, x: float, y: float) -> Optional[Cell]:
        """Drag the active gesture, or hit-test for hover. Returns the hovered cell."""
        if self.camera.is_panning:
            self.camera.drag_pan(x, y)
            return None
        if self.selection.is_selecting:
            self.selection.extend(x, y)
            return None
        if self.selection.mode != SelectionMode.NONE:
            return None

        cells, xs, ys = self._filtered()
        cell = find_hovered_cell(cells, self.camera, x, y, xs, ys)
        self.state.hovered_cell_id = cell.id if cell else None
        return cell

    def mouse_up(self) -> Optional[List[Cell]]:
        """End the active gesture; a selection gesture is committed."""
        if self.camera.is_panning:
            self.camera.end_pan()
            return None
        if not self.selection.is_selecting:
            return None
        cells, xs, ys = self._filtered()
        selected = self.selection.commit(cells, self.camera, xs, ys)
        if selected is not None:
            self._notify(selected)
        return selected

    def mouse_leave(self) -> Optional[List[Cell]]:
        result = self.mouse_up()
        self.state.hovered_cell_id = None
        return result

    def wheel(self, delta_y: float) -> float:
        return self.camera.wheel(delta_y)

    def click(self, x: float, y: float) -> Optional[Cell]:
        """Report the cell under the cursor (mode ``none`` only)."""
        if self.selection.mode != SelectionMode.NONE:
            return None
        cells, xs, ys = self._filtered()
        return find_hovered_cell(cells, self.camera, x, y, xs, ys)

    def double_click(self) -> None:
        self.reset_view()

    def zoom_in(self) -> float:
        return self.camera.zoom_in()

    def zoom_out(self) -> float:
        return self.camera.zoom_out()

    def reset_view(self) -> None:
        self.camera.reset()

    # ==================== Selection ====================

    def set_selection_mode(self, mode: Union[str, SelectionMode]) -> None:
        if self.selection.set_mode(mode):
            self._notify([])
        self.state.hovered_cell_id = None

    def clear_selection(self) -> List[Cell]:
        cleared = self.selection.clear()
        self._notify(cleared)
        return cleared

    def apply_lasso(self, points: Sequence[Tuple[float, float]]) -> List[Cell]:
        """Replay a complete lasso gesture given in canvas pixels."""
        if self.selection.mode != SelectionMode.LASSO:
            self.set_selection_mode(SelectionMode.LASSO)
        if not points:
            return self.clear_selection()
        first, rest = points[0], points[1:]
        self.mouse_down(*first)
        for x, y in rest:
            self.mouse_move(x, y)
        return self.mouse_up() or []

    def apply_rectangle(self, x1: float, y1: float, x2: float, y2: float) -> List[Cell]:
        """Replay a rectangle gesture between two canvas corners."""
        if self.selection.mode != SelectionMode.RECTANGLE:
            self.set_selection_mode(SelectionMode.RECTANGLE)
        self.mouse_down(x1, y1)
        self.mouse_move(x2, y2)
        return self.mouse_up() or []

    # ==================== Dataset ====================

    def _after_dataset_change(self) -> None:
        self.state.settings = replace(
            self.settings,
            selected_gene=None,
            selected_genes=(),
            cell_filter=CellFilterState(),
            annotation_key=(
                self.settings.annotation_key
                if self.settings.annotation_key in self.dataset.annotation_options
                else None
            ),
        )
        self.selection.clear()
        self.state.hovered_cell_id = None
        self.camera.reset()
        self.memo.invalidate()
        self._refresh_bounds()
        self._notify([])

    def load_dataset(self, dataset: SingleCellDataset) -> None:
        """Replace the dataset; gene, gene set, filter, selection and camera are reset."""
        self.data.load(dataset)
        self._after_dataset_change()

    def load_json(self, text: Union[str, bytes]) -> ValidationResult:
        """
        Parse, validate and load an uploaded JSON dataset.

        Raises:
            LoadError / DatasetValidationError: The current dataset stays active
        """
        dataset, result = parse_dataset_json(text)
        self.data.last_validation = result
        self.load_dataset(dataset)
        return result

    def load_file(self, path: Union[str, Path]) -> ValidationResult:
        """
        Load a dataset file. On failure the error propagates and the current
        dataset and view state are left untouched.
        """
        result = self.data.load_file(path)
        self._after_dataset_change()
        return result

    # ==================== Cluster annotation ====================

    def _edit(self, action: Callable[[], Any], success: str) -> Tuple[bool, str]:
        try:
            action()
        except AnnotationError as e:
            return False, str(e)
        self._refresh_bounds()
        return True, success

    def rename_cluster(self, cluster_id: int, new_name: str) -> Tuple[bool, str]:
        return self._edit(
            lambda: self.data.rename_cluster(cluster_id, new_name),
            f'Cluster {cluster_id} renamed to "{new_name.strip()}"',
        )

    def merge_clusters(self, source_ids: Iterable[int], target_id: int, merged_name: str) -> Tuple[bool, str]:
        source_ids = list(source_ids)
        ok, message = self._edit(
            lambda: self.data.merge_clusters(source_ids, target_id, merged_name),
            f"Merged {len(set(source_ids))} cluster(s) into cluster {target_id}",
        )
        if ok:
            # Drop merged-away clusters from the active filter
            remaining = set(self.dataset.cluster_ids())
            current = self.settings.cell_filter
            kept = tuple(c for c in current.selected_clusters if c in remaining)
            if kept != current.selected_clusters:
                self.update_settings(cell_filter=replace(current, selected_clusters=kept))
        return ok, message

    def recolor_cluster(self, cluster_id: int, new_color: str) -> Tuple[bool, str]:
        return self._edit(
            lambda: self.data.recolor_cluster(cluster_id, new_color),
            f"Cluster {cluster_id} color updated",
        )

    def reset_clusters(self) -> Tuple[bool, str]:
        return self._edit(self.data.reset_clusters, "Cluster annotations reset to original")

    # ==================== Rendering ====================

    def scene(self) -> Scene:
        s = self.settings
        cells, xs, ys = self._filtered()
        return Scene(
            cells=cells,
            camera=self.camera,
            xs=xs,
            ys=ys,
            point_size=s.point_size,
            opacity=s.opacity,
            show_clusters=s.show_clusters,
            show_labels=s.show_labels,
            selected_gene=s.selected_gene,
            expression=self.expression_map,
            averaged=self.averaged_map,
            expression_bounds=self.expression_bounds,
            expression_scale=s.expression_scale,
            palette=s.palette,
            annotation_key=s.annotation_key,
            annotation_colors=self.annotation_colors,
            cluster_colors=self.dataset.cluster_colors(),
            cluster_centers=self.cluster_centers if s.show_labels else {},
            selected_ids=set(self.selection.selected_ids),
            selection_mode=self.selection.mode,
            is_selecting=self.selection.is_selecting,
            lasso_points=tuple(self.selection.lasso_points),
            rect=self.selection.rect,
        )

    def render(self) -> Frame:
        return render_frame(self.scene())
