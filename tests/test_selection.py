"""Tests for the selection engine and hover hit-testing."""

import numpy as np
import pytest

from cellcanvas.config import Config
from cellcanvas.data.manager import DataManager
from cellcanvas.data.model import Cell, ClusterInfo, DatasetMetadata, SingleCellDataset
from cellcanvas.render.camera import Camera, DataBounds
from cellcanvas.render.selection import (
    SelectionEngine,
    SelectionMode,
    find_hovered_cell,
    point_in_polygon,
    point_in_rect,
    points_in_polygon,
    points_in_rect,
)
from cellcanvas.state import Explorer

SQUARE = [(0, 0), (10, 0), (10, 10), (0, 10)]


def _three_cell_explorer():
    cells = [
        Cell(id="a", x=0.0, y=0.0, cluster=0),
        Cell(id="b", x=10.0, y=10.0, cluster=0),
        Cell(id="c", x=100.0, y=100.0, cluster=1),
    ]
    dataset = SingleCellDataset(
        metadata=DatasetMetadata("three", "", 3, 0, 2),
        cells=cells,
        genes=[],
        clusters=[
            ClusterInfo(0, "A", 0, "rgb(255,0,0)"),
            ClusterInfo(1, "B", 0, "rgb(0,0,255)"),
        ],
    )
    dataset.refresh_counts()
    config = Config(seed=0)
    return Explorer(config, DataManager(config, dataset))


def _unit_camera():
    """One canvas pixel per data unit, data (0, 0) at canvas (50, 150)."""
    return Camera(width=200, height=200, bounds=DataBounds(0, 100, 0, 100), padding=50)


def test_point_in_polygon():
    assert point_in_polygon(5, 5, SQUARE)
    assert not point_in_polygon(15, 5, SQUARE)
    assert not point_in_polygon(5, -1, SQUARE)


def test_concave_polygon():
    # U shape: the notch between the arms is outside
    u_shape = [(0, 0), (30, 0), (30, 30), (20, 30), (20, 10), (10, 10), (10, 30), (0, 30)]
    assert point_in_polygon(5, 20, u_shape)
    assert point_in_polygon(25, 20, u_shape)
    assert not point_in_polygon(15, 20, u_shape)


def test_polygon_with_fewer_than_three_vertices_contains_nothing():
    xs = np.array([0.0, 5.0, 10.0])
    assert not points_in_polygon(xs, xs, []).any()
    assert not points_in_polygon(xs, xs, [(0, 0), (10, 10)]).any()


def test_rect_is_inclusive_and_corner_order_free():
    assert point_in_rect(10, 10, (0, 0, 10, 10))
    assert point_in_rect(0, 0, (10, 10, 0, 0))
    assert not point_in_rect(10.01, 5, (0, 0, 10, 10))
    mask = points_in_rect(np.array([1, 20]), np.array([1, 1]), (5, 5, 0, 0))
    assert mask.tolist() == [True, False]


def test_rectangle_scenario():
    explorer = _three_cell_explorer()
    assert explorer.camera.state() == (0.0, 0.0, 1.0)

    x0, y0 = explorer.camera.data_to_canvas(0.0, 0.0)
    x1, y1 = explorer.camera.data_to_canvas(10.0, 10.0)
    selected = explorer.apply_rectangle(
        min(x0, x1) - 1, max(y0, y1) + 1, max(x0, x1) + 1, min(y0, y1) - 1
    )

    assert [c.id for c in selected] == ["a", "b"]
    assert explorer.selection.selected_ids == {"a", "b"}


def test_lasso_with_two_points_selects_nothing():
    explorer = _three_cell_explorer()
    selected = explorer.apply_lasso([(0, 0), (900, 650)])
    assert selected == []
    assert explorer.selection.selected_ids == set()


def test_lasso_selects_enclosed_cells():
    explorer = _three_cell_explorer()
    cx, cy = explorer.camera.data_to_canvas(100.0, 100.0)
    triangle = [(cx - 20, cy - 20), (cx + 20, cy - 20), (cx, cy + 20)]
    assert [c.id for c in explorer.apply_lasso(triangle)] == ["c"]


def test_hover_threshold():
    camera = _unit_camera()
    cells = [Cell(id="only", x=50.0, y=50.0, cluster=0)]

    assert camera.data_to_canvas(50.0, 50.0) == pytest.approx((100.0, 100.0))
    assert find_hovered_cell(cells, camera, 101.5, 100.0).id == "only"
    assert find_hovered_cell(cells, camera, 102.5, 100.0) is None


def test_hover_threshold_shrinks_with_zoom():
    camera = _unit_camera()
    camera.set_state(0, 0, 2.0)
    cells = [Cell(id="only", x=50.0, y=50.0, cluster=0)]

    assert find_hovered_cell(cells, camera, *camera.data_to_canvas(50.5, 50.0)).id == "only"
    assert find_hovered_cell(cells, camera, *camera.data_to_canvas(51.5, 50.0)) is None


def test_hover_tie_goes_to_first_cell():
    camera = _unit_camera()
    cells = [
        Cell(id="first", x=50.0, y=50.0, cluster=0),
        Cell(id="second", x=50.0, y=50.0, cluster=1),
    ]
    assert find_hovered_cell(cells, camera, 100.0, 100.0).id == "first"
    assert find_hovered_cell([], camera, 100.0, 100.0) is None


def test_engine_begin_requires_a_tool():
    engine = SelectionEngine()
    assert not engine.begin(1, 1)
    assert not engine.is_selecting
    assert engine.commit([], _unit_camera()) is None


def test_engine_rectangle_gesture():
    engine = SelectionEngine()
    engine.set_mode(SelectionMode.RECTANGLE)
    engine.begin(10, 10)
    engine.extend(40, 30)
    engine.extend(60, 20)
    assert engine.rect == (10.0, 10.0, 60.0, 20.0)


def test_engine_lasso_gesture_accumulates_points():
    engine = SelectionEngine()
    engine.set_mode("lasso")
    engine.begin(0, 0)
    engine.extend(5, 0)
    engine.extend(5, 5)
    assert engine.lasso_points == [(0.0, 0.0), (5.0, 0.0), (5.0, 5.0)]


def test_changing_mode_clears_selection_and_gesture():
    engine = SelectionEngine()
    engine.set_mode(SelectionMode.LASSO)
    engine.selected_ids = {"a"}
    engine.begin(0, 0)

    assert engine.set_mode(SelectionMode.RECTANGLE) is True
    assert engine.selected_ids == set()
    assert not engine.is_selecting
    assert engine.lasso_points == []
    assert engine.set_mode(SelectionMode.RECTANGLE) is False


def test_clear():
    engine = SelectionEngine()
    engine.selected_ids = {"a", "b"}
    version = engine.version
    assert engine.clear() == []
    assert not engine.is_selected("a")
    assert engine.version == version + 1
