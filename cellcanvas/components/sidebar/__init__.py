"""
Sidebar components for CellCanvas.

Provides:
- Data info display for dataset metadata and clusters
- Gene search and cell filter controls
- Top differential expression markers
"""

from cellcanvas.components.sidebar.controls import create_filter_controls, create_gene_controls
from cellcanvas.components.sidebar.data_info import create_data_info
from cellcanvas.components.sidebar.markers import create_marker_table

__all__ = [
    "create_data_info",
    "create_filter_controls",
    "create_gene_controls",
    "create_marker_table",
]
