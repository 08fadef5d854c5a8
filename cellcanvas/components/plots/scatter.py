"""
Scatter plot component for the embedding canvas.

Draws a rendered ``Frame`` with Plotly. Axes are in canvas pixels (x right,
y down) so lasso/box gestures and pan offsets reported by the browser are
already in canvas space. Uses Scattergl (WebGL) for the cell points.
"""

from typing import Dict, List, Optional

import numpy as np
import plotly.graph_objects as go
from dash import dcc

from cellcanvas.render.palettes import rgba_css
from cellcanvas.render.scatter import (
    AxisText,
    Clear,
    Frame,
    GridLine,
    LabelBox,
    OverlayPolygon,
    OverlayRect,
    Points,
    SelectionRings,
)
from cellcanvas.render.selection import SelectionMode

DRAGMODES = {
    SelectionMode.NONE: "pan",
    SelectionMode.LASSO: "lasso",
    SelectionMode.RECTANGLE: "select",
}


def _rounded_rect_path(x0: float, y0: float, x1: float, y1: float, r: float) -> str:
    """SVG path for a rectangle with quadratic-curve corners."""
    r = min(r, (x1 - x0) / 2, (y1 - y0) / 2)
    return (
        f"M {x0 + r},{y0} L {x1 - r},{y0} Q {x1},{y0} {x1},{y0 + r} "
        f"L {x1},{y1 - r} Q {x1},{y1} {x1 - r},{y1} "
        f"L {x0 + r},{y1} Q {x0},{y1} {x0},{y1 - r} "
        f"L {x0},{y0 + r} Q {x0},{y0} {x0 + r},{y0} Z"
    )


def _grid_trace(lines: List[GridLine]) -> go.Scattergl:
    xs: List[Optional[float]] = []
    ys: List[Optional[float]] = []
    for line in lines:
        xs.extend([line.x1, line.x2, None])
        ys.extend([line.y1, line.y2, None])
    color = lines[0].color if lines else "#e5e7eb"
    return go.Scattergl(
        x=xs,
        y=ys,
        mode="lines",
        line=dict(color=color, width=1),
        hoverinfo="skip",
        showlegend=False,
        name="grid",
    )


def create_scatter_figure(frame: Frame, dragmode: str = "pan") -> go.Figure:
    """
    Convert a rendered frame into a Plotly figure.

    Args:
        frame: Output of ``render_frame``
        dragmode: Plotly drag mode matching the active selection tool

    Returns:
        Figure sized to the frame's canvas
    """
    traces = []
    shapes: List[Dict] = []
    annotations: List[Dict] = []
    background = "#ffffff"

    grid = frame.of_type(GridLine)
    if grid:
        traces.append(_grid_trace(grid))

    for command in frame.commands:
        if isinstance(command, Clear):
            background = command.color

        elif isinstance(command, SelectionRings):
            traces.append(go.Scattergl(
                x=command.xs,
                y=command.ys,
                mode="markers",
                marker=dict(size=command.radius * 2, color=command.color, line=dict(width=0)),
                hoverinfo="skip",
                showlegend=False,
                name="selected",
            ))

        elif isinstance(command, Points):
            colors = [rgba_css(tuple(int(v) for v in rgba)) for rgba in command.colors]
            traces.append(go.Scattergl(
                x=command.xs,
                y=command.ys,
                mode="markers",
                marker=dict(size=command.radius * 2, color=colors, line=dict(width=0)),
                customdata=np.asarray(command.cell_ids, dtype=object),
                hovertemplate="%{customdata}<extra></extra>",
                showlegend=False,
                name="cells",
            ))

        elif isinstance(command, LabelBox):
            x0 = command.x - command.width / 2
            y0 = command.y - command.height / 2
            shapes.append(dict(
                type="path",
                path=_rounded_rect_path(x0, y0, x0 + command.width, y0 + command.height, command.radius),
                fillcolor=command.fill,
                line=dict(color=command.stroke, width=command.stroke_width),
                layer="above",
            ))
            text = f"<b>{command.text}</b>" if command.bold else command.text
            annotations.append(dict(
                x=command.x,
                y=command.y,
                text=text,
                showarrow=False,
                font=dict(size=command.font_size, color=command.text_color),
                xanchor="center",
                yanchor="middle",
            ))

        elif isinstance(command, OverlayPolygon):
            path = "M " + " L ".join(f"{x},{y}" for x, y in command.points) + " Z"
            shapes.append(dict(
                type="path",
                path=path,
                fillcolor=command.fill,
                line=dict(color=command.stroke, width=command.width, dash="dash"),
                layer="above",
            ))

        elif isinstance(command, OverlayRect):
            shapes.append(dict(
                type="rect",
                x0=command.x,
                y0=command.y,
                x1=command.x + command.width,
                y1=command.y + command.height,
                fillcolor=command.fill,
                line=dict(color=command.stroke, width=command.line_width, dash="dash"),
                layer="above",
            ))

        elif isinstance(command, AxisText):
            annotations.append(dict(
                x=command.x,
                y=command.y,
                text=command.text,
                showarrow=False,
                textangle=command.rotation,
                font=dict(size=command.font_size, color=command.color),
            ))

    fig = go.Figure(data=traces)
    fig.update_layout(
        width=frame.width,
        height=frame.height,
        xaxis=dict(
            range=[0, frame.width],
            visible=False,
            showgrid=False,
            zeroline=False,
        ),
        yaxis=dict(
            range=[frame.height, 0],
            visible=False,
            showgrid=False,
            zeroline=False,
        ),
        shapes=shapes,
        annotations=annotations,
        plot_bgcolor=background,
        paper_bgcolor=background,
        margin=dict(l=0, r=0, t=0, b=0),
        dragmode=dragmode,
        hovermode="closest",
        showlegend=False,
        selections=[],
    )
    return fig


def create_scatter_graph(frame: Frame, graph_id: str = "scatter-plot", dragmode: str = "pan") -> dcc.Graph:
    """Wrap the frame figure in a ``dcc.Graph`` with scroll zoom enabled."""
    return dcc.Graph(
        id=graph_id,
        figure=create_scatter_figure(frame, dragmode),
        config={
            "displayModeBar": False,
            "displaylogo": False,
            "scrollZoom": True,
            "doubleClick": "reset",
        },
        style={"width": f"{frame.width}px", "height": f"{frame.height}px"},
    )


def view_change_from_relayout(relayout: Optional[Dict], width: int) -> Optional[Dict]:
    """
    Interpret a Plotly ``relayoutData`` event against the canvas-pixel axes.

    Returns one of:
        {"reset": True}                       double-click autorange
        {"zoom": +1 | -1}                     scroll zoom in / out
        {"pan": (dx, dy)}                     drag offset in pixels
        None                                  anything else
    """
    if not relayout:
        return None
    if relayout.get("xaxis.autorange") or relayout.get("yaxis.autorange"):
        return {"reset": True}

    x0 = relayout.get("xaxis.range[0]")
    x1 = relayout.get("xaxis.range[1]")
    y0 = relayout.get("yaxis.range[0]")
    y1 = relayout.get("yaxis.range[1]")
    if x0 is None or x1 is None:
        return None

    span = abs(x1 - x0)
    if not np.isclose(span, width, rtol=1e-3):
        return {"zoom": 1 if span < width else -1}

    dx = -min(x0, x1)
    dy = 0.0
    if y0 is not None and y1 is not None:
        dy = -min(y0, y1)
    return {"pan": (dx, dy)}
