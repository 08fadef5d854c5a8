"""
Canvas toolbar components.

Provides the selection tool switcher, zoom controls, export menu and the
selection info bar shown under the scatter canvas.
"""

import dash_mantine_components as dmc
from dash import dcc, html
from dash_iconify import DashIconify

from cellcanvas.render.selection import SelectionMode


def create_toolbar(selection_mode: str = SelectionMode.NONE.value) -> dmc.Group:
    """
    Create the canvas toolbar.

    Args:
        selection_mode: Active selection tool ("none", "lasso" or "rectangle")

    Returns:
        Group component with toolbar controls
    """
    return dmc.Group(
        [
            # Left side: selection tools
            dmc.SegmentedControl(
                id="selection-mode",
                data=[
                    {"value": SelectionMode.NONE.value, "label": "Pan"},
                    {"value": SelectionMode.LASSO.value, "label": "Lasso"},
                    {"value": SelectionMode.RECTANGLE.value, "label": "Rectangle"},
                ],
                value=selection_mode,
                size="sm",
            ),

            # Right side: view and dataset controls
            dmc.Group(
                [
                    dmc.ActionIcon(
                        DashIconify(icon="tabler:zoom-in", width=18),
                        id="zoom-in-btn",
                        variant="light",
                        size="lg",
                    ),
                    dmc.ActionIcon(
                        DashIconify(icon="tabler:zoom-out", width=18),
                        id="zoom-out-btn",
                        variant="light",
                        size="lg",
                    ),
                    dmc.ActionIcon(
                        DashIconify(icon="tabler:focus-centered", width=18),
                        id="reset-view-btn",
                        variant="light",
                        size="lg",
                    ),
                    dmc.Button(
                        "Display",
                        id="display-options-btn",
                        leftSection=DashIconify(icon="tabler:adjustments", width=16),
                        variant="outline",
                        size="sm",
                    ),
                    dmc.Button(
                        "Annotate",
                        id="annotate-btn",
                        leftSection=DashIconify(icon="tabler:tags", width=16),
                        variant="outline",
                        size="sm",
                    ),
                    dmc.Button(
                        "Upload",
                        id="upload-btn",
                        leftSection=DashIconify(icon="tabler:upload", width=16),
                        variant="outline",
                        size="sm",
                    ),
                    dmc.Menu(
                        [
                            dmc.MenuTarget(
                                dmc.ActionIcon(
                                    DashIconify(icon="tabler:download", width=16),
                                    variant="subtle",
                                    size="lg",
                                )
                            ),
                            dmc.MenuDropdown(
                                [
                                    dmc.MenuItem(
                                        "Export SVG",
                                        id="export-svg-btn",
                                        leftSection=DashIconify(icon="tabler:file-vector", width=16),
                                    ),
                                    dmc.MenuItem(
                                        "Export SVG (2x)",
                                        id="export-svg-hires-btn",
                                        leftSection=DashIconify(icon="tabler:photo-up", width=16),
                                    ),
                                ]
                            ),
                        ],
                        position="bottom-end",
                    ),
                    dcc.Download(id="svg-download"),
                ],
                gap="xs",
            ),
        ],
        justify="space-between",
        mb="md",
    )


def create_selection_toolbar() -> dmc.Paper:
    """
    Create the selection info bar.

    Returns:
        Paper component with the selection count and a clear button
    """
    return dmc.Paper(
        dmc.Group(
            [
                # Selection info (updated by callback)
                html.Div(
                    id="selection-info",
                    children=[
                        dmc.Text("No cells selected", size="sm", c="dimmed"),
                    ],
                ),
                html.Div(id="hover-info"),
                dmc.Button(
                    "Clear",
                    id="clear-selection-btn",
                    leftSection=DashIconify(icon="tabler:x", width=16),
                    variant="subtle",
                    size="sm",
                    color="gray",
                ),
            ],
            justify="space-between",
        ),
        withBorder=True,
        p="sm",
        mt="md",
    )


def format_selection_info(n_selected: int, cluster_counts: dict) -> list:
    """Text children for the selection info bar."""
    if n_selected == 0:
        return [dmc.Text("No cells selected", size="sm", c="dimmed")]

    badges = [
        dmc.Badge(f"{name}: {count:,}", size="sm", variant="light")
        for name, count in sorted(cluster_counts.items(), key=lambda kv: -kv[1])[:5]
    ]
    return [
        dmc.Group([
            dmc.Text(f"{n_selected:,} cells selected", size="sm", fw=500),
            *badges,
        ], gap="xs"),
    ]
