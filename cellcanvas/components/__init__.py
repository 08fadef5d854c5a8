"""
UI components for CellCanvas.

This package contains all the Dash/Mantine components used in the application:
- dashboard: Canvas toolbar and selection info bar
- plots: Plotly figure built from a rendered scatter frame
- sidebar: Dataset info, gene/filter controls, top markers
- config_drawers: Display options panel
- modals: Cluster annotation and dataset upload dialogs
"""

# Toolbar components
from cellcanvas.components.dashboard import (
    create_selection_toolbar,
    create_toolbar,
    format_selection_info,
)

# Plot components
from cellcanvas.components.plots import (
    create_scatter_figure,
    create_scatter_graph,
    view_change_from_relayout,
)

# Sidebar components
from cellcanvas.components.sidebar import (
    create_data_info,
    create_filter_controls,
    create_gene_controls,
    create_marker_table,
)

# Configuration drawers
from cellcanvas.components.config_drawers import (
    create_display_options_drawer,
    create_palette_legend,
    get_settings_from_inputs,
)

# Modals
from cellcanvas.components.modals import (
    cluster_options,
    create_annotation_modal,
    create_upload_modal,
    create_validation_report,
)

__all__ = [
    # Toolbar
    "create_toolbar",
    "create_selection_toolbar",
    "format_selection_info",
    # Plots
    "create_scatter_figure",
    "create_scatter_graph",
    "view_change_from_relayout",
    # Sidebar
    "create_data_info",
    "create_filter_controls",
    "create_gene_controls",
    "create_marker_table",
    # Config drawers
    "create_display_options_drawer",
    "create_palette_legend",
    "get_settings_from_inputs",
    # Modals
    "cluster_options",
    "create_annotation_modal",
    "create_upload_modal",
    "create_validation_report",
]
