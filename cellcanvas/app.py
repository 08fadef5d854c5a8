"""
Dash application factory for CellCanvas.

This module creates and configures the main Dash application with:
- Mantine UI components
- The scatter canvas drawn from rendered frames
- Sidebar with dataset info, gene search, cell filter and top markers
- Display options drawer, annotation and upload modals
- Callback registration

All state lives in the ``Explorer`` stored on the Flask server config; the
``view-version`` and ``dataset-version`` stores only tell the page when to
redraw the canvas or rebuild the sidebar.
"""

import base64
from typing import Any, Dict, Optional

import dash_mantine_components as dmc
from dash import ALL, Dash, Input, Output, State, ctx, dcc, html, no_update
from dash.exceptions import PreventUpdate
from dash_iconify import DashIconify

from cellcanvas.components import (
    create_annotation_modal,
    create_data_info,
    create_display_options_drawer,
    create_filter_controls,
    create_gene_controls,
    create_marker_table,
    create_palette_legend,
    create_scatter_figure,
    create_scatter_graph,
    create_selection_toolbar,
    create_toolbar,
    create_upload_modal,
    create_validation_report,
    format_selection_info,
    get_settings_from_inputs,
    view_change_from_relayout,
)
from cellcanvas.components.plots.scatter import DRAGMODES
from cellcanvas.config import Config
from cellcanvas.data.loader import DatasetValidationError, LoadError, ValidationResult
from cellcanvas.render.selection import SelectionMode
from cellcanvas.render.svg import frame_to_svg
from cellcanvas.state import Explorer

HIRES_SCALE = 2.0
TOP_MARKERS = 20


def create_app(config: Config, explorer: Optional[Explorer] = None) -> Dash:
    """
    Create and configure the Dash application.
    """
    app = Dash(
        __name__,
        suppress_callback_exceptions=True,
        title="CellCanvas - Single-Cell Explorer",
        update_title=None,
    )

    if explorer is None:
        explorer = Explorer(config)

    # Store references for callbacks (use Flask server config, not Dash config)
    app.server.config["explorer"] = explorer
    app.server.config["app_config"] = config

    app.layout = create_layout(explorer)
    register_callbacks(app)

    return app


def create_layout(explorer: Explorer) -> dmc.MantineProvider:
    """Create the main application layout."""
    return dmc.MantineProvider(
        id="mantine-provider",
        theme={
            "fontFamily": "Inter, -apple-system, BlinkMacSystemFont, sans-serif",
            "primaryColor": "blue",
            "components": {
                "Button": {"defaultProps": {"radius": "md"}},
                "Paper": {"defaultProps": {"radius": "md"}},
                "Select": {"defaultProps": {"radius": "md"}},
            },
        },
        children=[
            # Notification system
            dmc.NotificationProvider(position="top-right"),
            html.Div(id="notifications-container"),

            # Redraw triggers
            dcc.Store(id="view-version", storage_type="memory", data=0),
            dcc.Store(id="dataset-version", storage_type="memory", data=0),

            # Modals and drawer
            html.Div(id="annotation-modal-container", children=create_annotation_modal(explorer.dataset.clusters)),
            create_upload_modal(),
            create_display_options_drawer(explorer.settings, explorer.dataset.annotation_options),

            # Main layout
            dmc.AppShell(
                id="app-shell",
                children=[
                    dmc.AppShellHeader(html.Div(id="header-content", children=create_header(explorer)), id="app-header"),
                    dmc.AppShellNavbar(
                        id="sidebar-navbar",
                        children=dmc.ScrollArea(html.Div(id="sidebar-content", children=create_sidebar(explorer))),
                        p="md",
                    ),
                    dmc.AppShellMain(
                        children=create_main_content(explorer),
                        id="main-content",
                    ),
                ],
                header={"height": 60},
                padding="md",
                navbar={"width": 320, "breakpoint": "sm", "collapsed": {"mobile": True}},
            ),
        ],
    )


def create_header(explorer: Explorer):
    """Create the header content."""
    dataset = explorer.dataset
    return dmc.Group(
        [
            dmc.Group([
                dmc.Title("CellCanvas", order=3, c="blue"),
                dmc.Badge(f"{dataset.n_cells:,} cells", color="gray", variant="light", size="lg"),
            ], gap="md"),
            dmc.Text(
                f"{dataset.metadata.name} | {dataset.n_genes:,} genes | {len(dataset.clusters)} clusters",
                size="sm", c="dimmed",
            ),
        ],
        justify="space-between", h="100%", px="md",
    )


def create_sidebar(explorer: Explorer) -> dmc.Stack:
    """Create the sidebar content."""
    dataset = explorer.dataset
    samples = dataset.samples()
    return dmc.Stack([
        create_data_info(dataset.metadata, dataset.clusters, samples),
        dmc.Divider(),
        create_gene_controls(dataset.genes, explorer.settings),
        dmc.Divider(),
        create_filter_controls(samples, dataset.clusters, explorer.settings),
        dmc.Divider(),
        create_marker_table(explorer.data.get_top_markers(TOP_MARKERS)),
    ], gap="md")


def create_main_content(explorer: Explorer):
    """Create the canvas area."""
    frame = explorer.render()
    return dmc.Stack([
        create_toolbar(explorer.selection.mode.value),
        dmc.Paper(
            create_scatter_graph(frame, "scatter-plot", DRAGMODES[explorer.selection.mode]),
            withBorder=True,
            p=0,
            style={"width": "fit-content", "overflow": "hidden"},
        ),
        create_selection_toolbar(),
    ], gap=0)


def create_notification(title: str, message: str, color: str = "blue", icon: str = "tabler:check") -> dmc.Notification:
    """Create a notification component."""
    return dmc.Notification(
        title=title,
        message=message,
        color=color,
        icon=DashIconify(icon=icon),
        action="show",
        autoClose=4000,
    )


def create_hover_info(info: Optional[Dict[str, Any]]):
    """Tooltip text for the hovered / clicked cell."""
    if not info:
        return []
    parts = [
        dmc.Text(info["id"], size="xs", fw=600),
        dmc.Text(f"Cluster {info['cluster']}: {info['cluster_name']}", size="xs", c="dimmed"),
    ]
    if "expression" in info:
        parts.append(dmc.Text(f"{info['gene']}: {info['expression']:.3f}", size="xs"))
    return dmc.Group(parts, gap="xs")


def _selection_summary(explorer: Explorer) -> list:
    cells = explorer.selected_cells
    names = explorer.dataset.cluster_names()
    counts: Dict[str, int] = {}
    for cell in cells:
        name = names.get(cell.cluster, f"Cluster {cell.cluster}")
        counts[name] = counts.get(name, 0) + 1
    return format_selection_info(len(cells), counts)


def _decode_upload(contents: str) -> bytes:
    """Decode a ``dcc.Upload`` data URL."""
    try:
        _, content_string = contents.split(",", 1)
        return base64.b64decode(content_string)
    except (ValueError, TypeError) as e:
        raise LoadError(f"Could not read uploaded file: {e}") from e


# =============================================================================
# CALLBACKS
# =============================================================================

def register_callbacks(app: Dash):
    """Register all Dash callbacks."""

    def explorer() -> Explorer:
        return app.server.config["explorer"]

    # -------------------------------------------------------------------------
    # Canvas Rendering
    # -------------------------------------------------------------------------
    @app.callback(
        Output("scatter-plot", "figure"),
        Output("selection-info", "children"),
        Output("palette-legend", "children"),
        Input("view-version", "data"),
    )
    def render_canvas(version):
        """Redraw the canvas from the current explorer state."""
        ex = explorer()
        figure = create_scatter_figure(ex.render(), DRAGMODES[ex.selection.mode])
        has_values = ex.settings.selected_gene is not None or ex.averaged_map is not None
        legend = create_palette_legend(ex.settings.palette, ex.expression_bounds if has_values else None)
        return figure, _selection_summary(ex), legend

    # -------------------------------------------------------------------------
    # Display Settings
    # -------------------------------------------------------------------------
    @app.callback(
        Output("view-version", "data", allow_duplicate=True),
        Output("notifications-container", "children", allow_duplicate=True),
        Output("opt-percentile-range", "value"),
        Input("opt-point-size", "value"),
        Input("opt-opacity", "value"),
        Input("opt-show-clusters", "checked"),
        Input("opt-show-labels", "checked"),
        Input("opt-annotation", "value"),
        Input("opt-palette", "value"),
        Input("opt-expression-scale", "value"),
        Input("opt-percentile-clipping", "checked"),
        Input("opt-percentile-range", "value"),
        Input("opt-show-averaged", "checked"),
        State("view-version", "data"),
        prevent_initial_call=True,
    )
    def update_display_settings(
        point_size, opacity, show_clusters, show_labels, annotation_key,
        palette, expression_scale, clipping, percentile_range, show_averaged, version,
    ):
        """Apply display drawer changes."""
        ex = explorer()
        changes = get_settings_from_inputs(
            point_size, opacity, show_clusters, show_labels, annotation_key,
            palette, expression_scale, clipping, percentile_range, show_averaged,
        )
        try:
            applied = ex.update_settings(**changes)
        except ValueError as e:
            return no_update, create_notification("Invalid setting", str(e), "red", "tabler:alert-circle"), no_update

        if not applied:
            s = ex.settings
            notification = create_notification(
                "Percentile range ignored",
                "The lower percentile must be below the upper percentile.",
                "yellow",
                "tabler:alert-triangle",
            )
            return no_update, notification, [s.percentile_low, s.percentile_high]

        return (version or 0) + 1, no_update, no_update

    @app.callback(
        Output("display-options-drawer", "opened"),
        Input("display-options-btn", "n_clicks"),
        prevent_initial_call=True,
    )
    def open_display_options(n_clicks):
        return True

    # -------------------------------------------------------------------------
    # Gene Selection
    # -------------------------------------------------------------------------
    @app.callback(
        Output("view-version", "data", allow_duplicate=True),
        Input("gene-select", "value"),
        Input("gene-set-select", "value"),
        State("view-version", "data"),
        prevent_initial_call=True,
    )
    def update_genes(gene, gene_set, version):
        """Select a gene and/or gene set for expression coloring."""
        ex = explorer()
        ex.update_settings(selected_gene=gene or None, selected_genes=tuple(gene_set or ()))
        return (version or 0) + 1

    @app.callback(
        Output("gene-select", "value"),
        Input({"type": "de-gene", "gene": ALL}, "n_clicks"),
        prevent_initial_call=True,
    )
    def select_marker_gene(n_clicks):
        """Clicking a gene in the marker table selects it."""
        if not ctx.triggered_id or not any(n_clicks):
            raise PreventUpdate
        return ctx.triggered_id["gene"]

    # -------------------------------------------------------------------------
    # Cell Filter
    # -------------------------------------------------------------------------
    @app.callback(
        Output("view-version", "data", allow_duplicate=True),
        Input("filter-samples", "value"),
        Input("filter-clusters", "value"),
        State("view-version", "data"),
        prevent_initial_call=True,
    )
    def update_filter(samples, clusters, version):
        """Restrict the canvas to the selected samples and clusters."""
        ex = explorer()
        ex.set_filter(samples or (), [int(c) for c in clusters or ()])
        return (version or 0) + 1

    # -------------------------------------------------------------------------
    # Camera
    # -------------------------------------------------------------------------
    @app.callback(
        Output("view-version", "data", allow_duplicate=True),
        Input("zoom-in-btn", "n_clicks"),
        Input("zoom-out-btn", "n_clicks"),
        Input("reset-view-btn", "n_clicks"),
        Input("scatter-plot", "relayoutData"),
        State("view-version", "data"),
        prevent_initial_call=True,
    )
    def update_camera(zoom_in, zoom_out, reset, relayout, version):
        """Zoom buttons, scroll zoom, drag pan and double-click reset."""
        ex = explorer()
        triggered = ctx.triggered_id

        if triggered == "zoom-in-btn":
            ex.zoom_in()
        elif triggered == "zoom-out-btn":
            ex.zoom_out()
        elif triggered == "reset-view-btn":
            ex.reset_view()
        else:
            change = view_change_from_relayout(relayout, ex.camera.width)
            if change is None:
                raise PreventUpdate
            if "reset" in change:
                ex.double_click()
            elif "zoom" in change:
                ex.wheel(-change["zoom"])
            elif ex.selection.mode == SelectionMode.NONE:
                dx, dy = change["pan"]
                ex.mouse_down(0, 0)
                ex.mouse_move(dx, dy)
                ex.mouse_up()
            else:
                raise PreventUpdate
        return (version or 0) + 1

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------
    @app.callback(
        Output("view-version", "data", allow_duplicate=True),
        Input("selection-mode", "value"),
        State("view-version", "data"),
        prevent_initial_call=True,
    )
    def update_selection_mode(mode, version):
        """Switch selection tool; clears the current selection."""
        explorer().set_selection_mode(mode)
        return (version or 0) + 1

    @app.callback(
        Output("view-version", "data", allow_duplicate=True),
        Input("scatter-plot", "selectedData"),
        State("view-version", "data"),
        prevent_initial_call=True,
    )
    def commit_selection(selected, version):
        """Replay a browser lasso / box gesture through the selection engine."""
        if not selected:
            raise PreventUpdate
        ex = explorer()
        if "lassoPoints" in selected:
            lasso = selected["lassoPoints"]
            ex.apply_lasso(list(zip(lasso["x"], lasso["y"])))
        elif "range" in selected:
            rng = selected["range"]
            ex.apply_rectangle(rng["x"][0], rng["y"][0], rng["x"][1], rng["y"][1])
        else:
            raise PreventUpdate
        return (version or 0) + 1

    @app.callback(
        Output("view-version", "data", allow_duplicate=True),
        Input("clear-selection-btn", "n_clicks"),
        State("view-version", "data"),
        prevent_initial_call=True,
    )
    def clear_selection(n_clicks, version):
        """Clear selection."""
        explorer().clear_selection()
        return (version or 0) + 1

    @app.callback(
        Output("hover-info", "children"),
        Input("scatter-plot", "hoverData"),
        Input("scatter-plot", "clickData"),
        prevent_initial_call=True,
    )
    def show_cell_info(hover, click):
        """Tooltip fields for the cell under the cursor or the clicked cell."""
        ex = explorer()
        is_click = bool(ctx.triggered) and ctx.triggered[0]["prop_id"].endswith(".clickData")
        data = click if is_click else hover
        if not data or not data.get("points"):
            return []
        point = data["points"][0]
        if is_click:
            cell = ex.click(point["x"], point["y"])
        else:
            cell = ex.mouse_move(point["x"], point["y"])
        return create_hover_info(ex.hover_info(cell)) if cell else []

    # -------------------------------------------------------------------------
    # SVG Export
    # -------------------------------------------------------------------------
    @app.callback(
        Output("svg-download", "data"),
        Input("export-svg-btn", "n_clicks"),
        Input("export-svg-hires-btn", "n_clicks"),
        prevent_initial_call=True,
    )
    def export_svg(n_clicks, n_clicks_hires):
        """Download the current canvas as SVG."""
        scale = HIRES_SCALE if ctx.triggered_id == "export-svg-hires-btn" else 1.0
        suffix = "_2x" if scale != 1.0 else ""
        return dcc.send_string(frame_to_svg(explorer().render(), scale), f"cellcanvas{suffix}.svg")

    # -------------------------------------------------------------------------
    # Cluster Annotation
    # -------------------------------------------------------------------------
    @app.callback(
        Output("annotation-modal", "opened"),
        Input("annotate-btn", "n_clicks"),
        Input("annotation-close-btn", "n_clicks"),
        prevent_initial_call=True,
    )
    def toggle_annotation_modal(open_click, close_click):
        """Toggle the annotation modal."""
        return ctx.triggered_id == "annotate-btn"

    @app.callback(
        Output("dataset-version", "data", allow_duplicate=True),
        Output("notifications-container", "children", allow_duplicate=True),
        Input("rename-confirm-btn", "n_clicks"),
        Input("merge-confirm-btn", "n_clicks"),
        Input("recolor-confirm-btn", "n_clicks"),
        Input("reset-clusters-btn", "n_clicks"),
        State("rename-cluster", "value"),
        State("rename-name", "value"),
        State("merge-sources", "value"),
        State("merge-target", "value"),
        State("merge-name", "value"),
        State("recolor-cluster", "value"),
        State("recolor-color", "value"),
        State("dataset-version", "data"),
        prevent_initial_call=True,
    )
    def edit_clusters(
        rename_click, merge_click, recolor_click, reset_click,
        rename_id, rename_name, merge_sources, merge_target, merge_name,
        recolor_id, recolor_color, version,
    ):
        """Rename, merge, recolor or reset clusters."""
        ex = explorer()
        triggered = ctx.triggered_id

        if triggered == "rename-confirm-btn":
            if rename_id is None:
                ok, message = False, "Select a cluster to rename"
            else:
                ok, message = ex.rename_cluster(int(rename_id), rename_name or "")
        elif triggered == "merge-confirm-btn":
            if merge_target is None:
                ok, message = False, "Select source and target clusters"
            else:
                ok, message = ex.merge_clusters(
                    [int(s) for s in merge_sources or []], int(merge_target), merge_name or ""
                )
        elif triggered == "recolor-confirm-btn":
            if recolor_id is None or not recolor_color:
                ok, message = False, "Select a cluster and a color"
            else:
                ok, message = ex.recolor_cluster(int(recolor_id), recolor_color)
        elif triggered == "reset-clusters-btn":
            ok, message = ex.reset_clusters()
        else:
            raise PreventUpdate

        if not ok:
            return no_update, create_notification("Annotation failed", message, "red", "tabler:alert-circle")
        return (version or 0) + 1, create_notification("Clusters updated", message, "green")

    # -------------------------------------------------------------------------
    # Dataset Upload
    # -------------------------------------------------------------------------
    @app.callback(
        Output("upload-modal", "opened"),
        Input("upload-btn", "n_clicks"),
        Input("upload-close-btn", "n_clicks"),
        prevent_initial_call=True,
    )
    def toggle_upload_modal(open_click, close_click):
        """Toggle the upload modal."""
        return ctx.triggered_id == "upload-btn"

    @app.callback(
        Output("upload-report", "children"),
        Output("dataset-version", "data", allow_duplicate=True),
        Output("notifications-container", "children", allow_duplicate=True),
        Input("dataset-upload", "contents"),
        State("dataset-upload", "filename"),
        State("dataset-version", "data"),
        prevent_initial_call=True,
    )
    def upload_dataset(contents, filename, version):
        """Validate and load an uploaded JSON dataset."""
        if not contents:
            raise PreventUpdate
        ex = explorer()

        try:
            result = ex.load_json(_decode_upload(contents))
        except DatasetValidationError as e:
            report = create_validation_report(ValidationResult(False, e.errors, e.warnings))
            notification = create_notification(
                "Invalid dataset", f"{len(e.errors)} error(s) in {filename}", "red", "tabler:alert-circle"
            )
            return report, no_update, notification
        except LoadError as e:
            notification = create_notification("Upload failed", str(e), "red", "tabler:alert-circle")
            return [], no_update, notification

        notification = create_notification(
            "Dataset loaded",
            f"{ex.dataset.n_cells:,} cells from {filename}",
            "green",
        )
        return create_validation_report(result), (version or 0) + 1, notification

    # -------------------------------------------------------------------------
    # Dataset Change: rebuild sidebar and modal options
    # -------------------------------------------------------------------------
    @app.callback(
        Output("sidebar-content", "children"),
        Output("header-content", "children"),
        Output("annotation-modal-container", "children"),
        Output("opt-annotation", "data"),
        Output("view-version", "data", allow_duplicate=True),
        Input("dataset-version", "data"),
        State("view-version", "data"),
        State("annotation-modal", "opened"),
        prevent_initial_call=True,
    )
    def refresh_dataset_views(dataset_version, view_version, modal_opened):
        """Rebuild everything that lists clusters, genes or samples."""
        ex = explorer()
        modal = create_annotation_modal(ex.dataset.clusters)
        modal.opened = bool(modal_opened)
        annotation_data = [{"value": k, "label": k} for k in ex.dataset.annotation_options]
        return create_sidebar(ex), create_header(ex), modal, annotation_data, (view_version or 0) + 1
