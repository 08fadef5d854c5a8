"""
Plot components for CellCanvas.

Draws rendered scatter frames with Plotly (Scattergl for WebGL performance).
"""

from cellcanvas.components.plots.scatter import (
    DRAGMODES,
    create_scatter_figure,
    create_scatter_graph,
    view_change_from_relayout,
)

__all__ = [
    "DRAGMODES",
    "create_scatter_figure",
    "create_scatter_graph",
    "view_change_from_relayout",
]
