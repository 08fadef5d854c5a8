"""Tests for the camera / viewport transform."""

import numpy as np
import pytest

from cellcanvas.render.camera import (
    DEFAULT_BOUNDS,
    MAX_SCALE,
    MIN_SCALE,
    Camera,
    DataBounds,
    compute_data_bounds,
)


def _camera():
    bounds = compute_data_bounds([-20.0, 35.0, 0.0, 12.5], [-40.0, 12.0, 7.0, 3.0])
    return Camera(width=900, height=650, bounds=bounds)


def test_compute_data_bounds_pads_ten_percent():
    bounds = compute_data_bounds([0.0, 10.0], [0.0, 20.0])
    assert bounds.min_x == pytest.approx(-1.0)
    assert bounds.max_x == pytest.approx(11.0)
    assert bounds.min_y == pytest.approx(-2.0)
    assert bounds.max_y == pytest.approx(22.0)


def test_compute_data_bounds_degenerate_inputs():
    assert compute_data_bounds([], []) == DEFAULT_BOUNDS

    single = compute_data_bounds([3.0], [4.0])
    assert single == DataBounds(2.0, 4.0, 3.0, 5.0)


@pytest.mark.parametrize("state", [
    (0.0, 0.0, 1.0),
    (37.5, -12.25, 3.3),
    (-400.0, 220.0, 0.5),
    (5.0, 5.0, 10.0),
])
def test_round_trip(state):
    camera = _camera()
    camera.set_state(*state)
    for x, y in [(-20.0, -40.0), (0.0, 0.0), (35.0, 12.0), (1e-3, -7.77), (500.0, -500.0)]:
        cx, cy = camera.data_to_canvas(x, y)
        back_x, back_y = camera.canvas_to_data(cx, cy)
        assert back_x == pytest.approx(x, abs=1e-6)
        assert back_y == pytest.approx(y, abs=1e-6)


def test_round_trip_arrays():
    camera = _camera()
    camera.set_state(12.0, -3.0, 2.5)
    xs = np.linspace(-20, 35, 50)
    ys = np.linspace(-40, 12, 50)
    cx, cy = camera.data_to_canvas(xs, ys)
    back_x, back_y = camera.canvas_to_data(cx, cy)
    np.testing.assert_allclose(back_x, xs, atol=1e-6)
    np.testing.assert_allclose(back_y, ys, atol=1e-6)


def test_data_bounds_fill_canvas_inset():
    camera = Camera(width=200, height=300, bounds=DataBounds(0, 10, 0, 10), padding=50)
    assert camera.data_to_canvas(0, 0) == pytest.approx((50.0, 250.0))
    assert camera.data_to_canvas(10, 10) == pytest.approx((150.0, 50.0))


def test_scale_is_about_canvas_center():
    camera = Camera(width=200, height=200, bounds=DataBounds(0, 10, 0, 10), padding=50)
    center = camera.data_to_canvas(5, 5)
    camera.zoom_by(4)
    assert camera.data_to_canvas(5, 5) == pytest.approx(center)


def test_wheel_zoom_clamps():
    camera = _camera()
    for _ in range(100):
        camera.wheel(-1)
    assert camera.scale == MAX_SCALE

    for _ in range(100):
        camera.wheel(1)
    assert camera.scale == MIN_SCALE


def test_wheel_notch_factors():
    camera = _camera()
    assert camera.wheel(-1) == pytest.approx(1.1)
    camera.reset()
    assert camera.wheel(1) == pytest.approx(0.9)
    camera.reset()
    assert camera.zoom_in() == pytest.approx(1.2)


def test_pan_accumulates_from_drag_start():
    camera = _camera()
    camera.begin_pan(100, 100)
    camera.drag_pan(110, 105)
    camera.drag_pan(130, 120)
    assert (camera.tx, camera.ty) == (30, 20)
    camera.end_pan()

    camera.begin_pan(0, 0)
    camera.drag_pan(5, 5)
    camera.end_pan()
    assert (camera.tx, camera.ty) == (35, 25)
    assert not camera.is_panning


def test_drag_without_pan_is_ignored():
    camera = _camera()
    camera.drag_pan(40, 40)
    assert camera.state() == (0.0, 0.0, 1.0)


def test_reset():
    camera = _camera()
    camera.set_state(10, -20, 4)
    camera.begin_pan(1, 1)
    camera.reset()
    assert camera.state() == (0.0, 0.0, 1.0)
    assert not camera.is_panning
