"""Tests for render_frame and the SVG export."""

import numpy as np
import pandas as pd
import pytest

from cellcanvas.data.model import Cell, StringValue
from cellcanvas.render.camera import Camera, compute_data_bounds
from cellcanvas.render.palettes import DEFAULT_COLOR
from cellcanvas.render.scatter import (
    LABEL_PADDING,
    RING_EXTRA_RADIUS,
    AxisText,
    Clear,
    ColorRule,
    GridLine,
    LabelBox,
    OverlayPolygon,
    OverlayRect,
    Points,
    Scene,
    SelectionRings,
    choose_color_rule,
    compute_cluster_centers,
    measure_text,
    render_frame,
)
from cellcanvas.render.selection import SelectionMode
from cellcanvas.render.svg import frame_to_svg, write_svg


def _make_cells():
    coords = [(-10.0, -10.0), (-8.0, -12.0), (10.0, 10.0), (12.0, 8.0), (0.0, 0.0)]
    kinds = ["T", "T", "B", "B", None]
    cells = []
    for i, ((x, y), kind) in enumerate(zip(coords, kinds)):
        metadata = {"cell_type": StringValue(kind)} if kind else {}
        cells.append(Cell(id=f"c{i}", x=x, y=y, cluster=0 if i < 2 else 1, metadata=metadata))
    return cells


def _make_scene(**overrides):
    cells = overrides.pop("cells", _make_cells())
    camera = Camera(900, 650, compute_data_bounds([c.x for c in cells], [c.y for c in cells]))
    scene = Scene(
        cells=cells,
        camera=camera,
        cluster_colors={0: "rgb(255,0,0)", 1: "hsl(240, 100%, 50%)"},
        cluster_centers=compute_cluster_centers(cells),
    )
    for key, value in overrides.items():
        setattr(scene, key, value)
    return scene


def test_draw_order():
    frame = render_frame(_make_scene(selected_ids={"c0"}))
    kinds = [type(c) for c in frame.commands]

    assert kinds[0] is Clear
    assert kinds[-2:] == [AxisText, AxisText]
    assert kinds.index(SelectionRings) < kinds.index(Points)
    assert max(i for i, k in enumerate(kinds) if k is GridLine) < kinds.index(SelectionRings)
    assert kinds.index(Points) < kinds.index(LabelBox)


def test_points_and_rings():
    scene = _make_scene(selected_ids={"c0", "c3"}, point_size=3.0)
    scene.camera.set_state(0, 0, 1.2)
    frame = render_frame(scene)

    points = frame.of_type(Points)[0]
    rings = frame.of_type(SelectionRings)[0]
    assert points.radius == pytest.approx(3.6)
    assert rings.radius == pytest.approx(3.6 + RING_EXTRA_RADIUS)
    assert len(rings) == 2


def test_no_rings_without_selection():
    assert render_frame(_make_scene()).of_type(SelectionRings) == []


def test_viewport_culling():
    scene = _make_scene()
    frame = render_frame(scene)
    assert len(frame.of_type(Points)[0]) == 5

    scene.camera.set_state(10000, 0, 1.0)
    assert len(render_frame(scene).of_type(Points)[0]) == 0


def test_culling_keeps_colors_aligned():
    scene = _make_scene()
    scene.camera.set_state(0, 0, 10.0)
    points = render_frame(scene).of_type(Points)[0]
    visible = set(points.cell_ids)

    assert visible and len(visible) < 5
    for cell_id, rgba in zip(points.cell_ids, points.colors):
        expected = (255, 0, 0) if cell_id in ("c0", "c1") else (0, 0, 255)
        assert tuple(rgba[:3]) == expected


def test_empty_scene_renders():
    frame = render_frame(_make_scene(cells=[]))
    points = frame.of_type(Points)[0]
    assert len(points) == 0
    assert frame.of_type(LabelBox) == []


def test_label_boxes():
    frame = render_frame(_make_scene())
    labels = frame.of_type(LabelBox)

    assert [label.text for label in labels] == ["0", "1"]
    for label in labels:
        assert label.width == pytest.approx(measure_text(label.text) + LABEL_PADDING * 2)
        assert label.width > 0
        assert label.stroke_width == 1.0


def test_label_boxes_emphasized_with_gene():
    scene = _make_scene(selected_gene="MYH7", expression=pd.Series({"c0": 1.0}))
    label = render_frame(scene).of_type(LabelBox)[0]
    assert label.stroke_width == 1.5
    assert label.fill == "rgba(255, 255, 255, 0.95)"


def test_labels_hidden():
    assert render_frame(_make_scene(show_labels=False)).of_type(LabelBox) == []


def test_cluster_centers():
    centers = compute_cluster_centers(_make_cells())
    assert centers[0] == pytest.approx((-9.0, -11.0))
    assert centers[1] == pytest.approx((22.0 / 3, 6.0))
    assert compute_cluster_centers([]) == {}


def test_lasso_overlay_needs_two_points():
    scene = _make_scene(selection_mode=SelectionMode.LASSO, is_selecting=True, lasso_points=[(1, 1)])
    assert render_frame(scene).of_type(OverlayPolygon) == []

    scene.lasso_points = [(1, 1), (50, 60)]
    overlay = render_frame(scene).of_type(OverlayPolygon)[0]
    assert overlay.points == ((1.0, 1.0), (50.0, 60.0))
    assert overlay.dash == (5, 5)


def test_rectangle_overlay_is_normalized():
    scene = _make_scene(selection_mode=SelectionMode.RECTANGLE, is_selecting=True, rect=(100, 80, 40, 20))
    overlay = render_frame(scene).of_type(OverlayRect)[0]
    assert (overlay.x, overlay.y, overlay.width, overlay.height) == (40, 20, 60, 60)


def test_no_overlay_when_idle():
    scene = _make_scene(selection_mode=SelectionMode.RECTANGLE, rect=(0, 0, 5, 5))
    frame = render_frame(scene)
    assert frame.of_type(OverlayRect) == [] and frame.of_type(OverlayPolygon) == []


def test_axis_labels():
    frame = render_frame(_make_scene(x_label="UMAP1", y_label="UMAP2"))
    x_axis, y_axis = frame.of_type(AxisText)
    assert (x_axis.x, x_axis.y, x_axis.text) == (450, 640, "UMAP1")
    assert (y_axis.x, y_axis.y, y_axis.rotation) == (15, 325, -90)


@pytest.mark.parametrize("flags, expected", [
    ((True, True, True, True, True), ColorRule.EXPRESSION),
    ((True, False, True, True, True), ColorRule.AVERAGED),
    ((False, False, True, True, True), ColorRule.AVERAGED),
    ((False, False, False, True, True), ColorRule.ANNOTATION),
    ((False, False, False, False, True), ColorRule.CLUSTER),
    ((False, False, False, False, False), ColorRule.DEFAULT),
])
def test_color_rule_precedence(flags, expected):
    assert choose_color_rule(*flags) == expected


def test_expression_colors_use_bounds_and_sparse_zeros():
    scene = _make_scene(
        selected_gene="MYH7",
        expression=pd.Series({"c2": 4.0, "c3": 2.0}),
        expression_bounds=(0.0, 4.0),
        palette="viridis",
        opacity=0.8,
    )
    frame = render_frame(scene)
    colors = dict(zip(frame.of_type(Points)[0].cell_ids, frame.of_type(Points)[0].colors))

    assert frame.color_rule == ColorRule.EXPRESSION
    assert tuple(colors["c2"]) == (253, 231, 37, 204)
    assert tuple(colors["c3"][:3]) == (33, 145, 140)
    assert tuple(colors["c0"][:3]) == (68, 1, 84)


def test_averaged_colors():
    scene = _make_scene(averaged=pd.Series({"c0": 1.0}), expression_bounds=(1.0, 1.0))
    frame = render_frame(scene)
    colors = frame.of_type(Points)[0].colors

    assert frame.color_rule == ColorRule.AVERAGED
    # Equal bounds normalize everything to the palette midpoint
    assert {tuple(c[:3]) for c in colors} == {(33, 145, 140)}


def test_annotation_colors_fall_back_to_default():
    scene = _make_scene(annotation_key="cell_type", annotation_colors={"T": "rgb(1, 2, 3)"})
    frame = render_frame(scene)
    colors = dict(zip(frame.of_type(Points)[0].cell_ids, frame.of_type(Points)[0].colors))

    assert frame.color_rule == ColorRule.ANNOTATION
    assert tuple(colors["c0"][:3]) == (1, 2, 3)
    assert tuple(colors["c2"][:3]) == DEFAULT_COLOR
    assert tuple(colors["c4"][:3]) == DEFAULT_COLOR


def test_default_color_when_clusters_hidden():
    frame = render_frame(_make_scene(show_clusters=False))
    colors = frame.of_type(Points)[0].colors
    assert frame.color_rule == ColorRule.DEFAULT
    assert np.all(colors[:, :3] == DEFAULT_COLOR)


def test_svg_export():
    frame = render_frame(_make_scene(selected_ids={"c1"}))
    svg = frame_to_svg(frame)

    assert svg.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    assert 'width="900" height="650" viewBox="0 0 900 650"' in svg
    assert svg.count("<circle") == 5 + 1
    assert ">tSNE1</text>" in svg
    assert 'transform="rotate(-90 15 325)"' in svg
    assert svg.rstrip().endswith("</svg>")


def test_svg_export_scale():
    frame = render_frame(_make_scene())
    svg = frame_to_svg(frame, scale=2.0)
    assert 'width="1800" height="1300" viewBox="0 0 900 650"' in svg

    with pytest.raises(ValueError, match="positive"):
        frame_to_svg(frame, scale=0)


def test_svg_overlay_and_escaping():
    scene = _make_scene(
        selection_mode=SelectionMode.LASSO,
        is_selecting=True,
        lasso_points=[(0, 0), (10, 0), (10, 10)],
        x_label="a<b",
    )
    svg = frame_to_svg(render_frame(scene))
    assert '<polygon points="0,0 10,0 10,10"' in svg
    assert 'stroke-dasharray="5,5"' in svg
    assert "a&lt;b" in svg


def test_write_svg(tmp_path):
    path = write_svg(render_frame(_make_scene()), tmp_path / "out.svg", scale=1.5)
    assert path.exists()
    assert 'width="1350" height="975"' in path.read_text(encoding="utf-8")
