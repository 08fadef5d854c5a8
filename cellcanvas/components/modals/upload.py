"""
Dataset upload modal component.
"""

from typing import List

import dash_mantine_components as dmc
from dash import dcc, html
from dash_iconify import DashIconify

from cellcanvas.data.loader import ValidationResult


def create_upload_modal() -> dmc.Modal:
    """
    Create modal for uploading a dataset JSON export.

    Returns:
        Modal component
    """
    return dmc.Modal(
        id="upload-modal",
        title=dmc.Group([
            DashIconify(icon="tabler:upload", width=20),
            dmc.Text("Upload Dataset", fw=500),
        ]),
        size="lg",
        children=[
            dmc.Stack([
                dcc.Upload(
                    id="dataset-upload",
                    children=dmc.Paper(
                        dmc.Stack([
                            DashIconify(icon="tabler:file-upload", width=36, color="var(--mantine-color-blue-6)"),
                            dmc.Text("Drop a .json export here or click to browse", size="sm"),
                            dmc.Text("cells, clusters, genes and optional expression", size="xs", c="dimmed"),
                        ], align="center", gap="xs"),
                        p="xl",
                        withBorder=True,
                        radius="md",
                        style={"borderStyle": "dashed", "cursor": "pointer"},
                    ),
                    accept=".json,application/json",
                    multiple=False,
                ),

                dmc.Alert(
                    children=[
                        dmc.Text("Required fields:", size="sm"),
                        dmc.List([
                            dmc.ListItem("cells: [{id, x, y, cluster, metadata}]"),
                            dmc.ListItem("clusters: [{id, name, cellCount, color}]"),
                        ], size="sm"),
                    ],
                    icon=DashIconify(icon="tabler:info-circle", width=16),
                    color="blue",
                ),

                # Validation report (filled by callback)
                html.Div(id="upload-report"),

                dmc.Group([
                    dmc.Button(
                        "Close",
                        id="upload-close-btn",
                        variant="light",
                        color="gray",
                    ),
                ], justify="flex-end"),
            ], gap="md"),
        ],
        opened=False,
    )


def create_validation_report(result: ValidationResult) -> List:
    """Itemized alerts: errors in red, warnings in yellow."""
    children = []
    if result.errors:
        children.append(dmc.Alert(
            title="Validation failed",
            children=dmc.List([dmc.ListItem(e) for e in result.errors], size="sm"),
            icon=DashIconify(icon="tabler:alert-circle", width=16),
            color="red",
        ))
    if result.warnings:
        children.append(dmc.Alert(
            title="Warnings",
            children=dmc.List([dmc.ListItem(w) for w in result.warnings], size="sm"),
            icon=DashIconify(icon="tabler:alert-triangle", width=16),
            color="yellow",
        ))
    return children
