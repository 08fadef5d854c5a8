"""
Cluster annotation modal component.
"""

from typing import List

import dash_mantine_components as dmc
from dash_iconify import DashIconify

from cellcanvas.data.model import ClusterInfo

# Preset recolor swatches
SWATCHES = [
    "#ef4444", "#f97316", "#eab308", "#22c55e", "#14b8a6", "#3b82f6",
    "#6366f1", "#a855f7", "#ec4899", "#64748b", "#0ea5e9", "#84cc16",
]


def cluster_options(clusters: List[ClusterInfo]) -> List[dict]:
    return [{"value": str(c.id), "label": f"{c.id}: {c.name} ({c.cell_count:,})"} for c in clusters]


def create_annotation_modal(clusters: List[ClusterInfo]) -> dmc.Modal:
    """
    Create modal for renaming, merging and recoloring clusters.

    Args:
        clusters: Current cluster descriptors

    Returns:
        Modal component
    """
    options = cluster_options(clusters)

    return dmc.Modal(
        id="annotation-modal",
        title=dmc.Group([
            DashIconify(icon="tabler:tags", width=20),
            dmc.Text("Cluster Annotation", fw=500),
        ]),
        size="lg",
        children=[
            dmc.Tabs(
                [
                    dmc.TabsList([
                        dmc.TabsTab("Rename", value="rename", leftSection=DashIconify(icon="tabler:pencil", width=16)),
                        dmc.TabsTab("Merge", value="merge", leftSection=DashIconify(icon="tabler:git-merge", width=16)),
                        dmc.TabsTab("Recolor", value="recolor", leftSection=DashIconify(icon="tabler:palette", width=16)),
                    ]),

                    dmc.TabsPanel(
                        dmc.Stack([
                            dmc.Select(
                                id="rename-cluster",
                                label="Cluster",
                                data=options,
                                searchable=True,
                            ),
                            dmc.TextInput(
                                id="rename-name",
                                label="New Name",
                                placeholder="e.g. Cardiomyocytes",
                                leftSection=DashIconify(icon="tabler:tag", width=16),
                            ),
                            dmc.Group([
                                dmc.Button("Rename", id="rename-confirm-btn"),
                            ], justify="flex-end"),
                        ], gap="md", pt="md"),
                        value="rename",
                    ),

                    dmc.TabsPanel(
                        dmc.Stack([
                            dmc.MultiSelect(
                                id="merge-sources",
                                label="Source Clusters",
                                description="These clusters are removed and their cells reassigned",
                                data=options,
                                searchable=True,
                            ),
                            dmc.Select(
                                id="merge-target",
                                label="Target Cluster",
                                data=options,
                                searchable=True,
                            ),
                            dmc.TextInput(
                                id="merge-name",
                                label="Merged Name",
                                placeholder="Leave empty to keep the target's name",
                            ),
                            dmc.Group([
                                dmc.Button(
                                    "Merge",
                                    id="merge-confirm-btn",
                                    leftSection=DashIconify(icon="tabler:git-merge", width=16),
                                ),
                            ], justify="flex-end"),
                        ], gap="md", pt="md"),
                        value="merge",
                    ),

                    dmc.TabsPanel(
                        dmc.Stack([
                            dmc.Select(
                                id="recolor-cluster",
                                label="Cluster",
                                data=options,
                                searchable=True,
                            ),
                            dmc.ColorPicker(
                                id="recolor-color",
                                format="hex",
                                swatches=SWATCHES,
                                fullWidth=True,
                            ),
                            dmc.Group([
                                dmc.Button("Apply Color", id="recolor-confirm-btn"),
                            ], justify="flex-end"),
                        ], gap="md", pt="md"),
                        value="recolor",
                    ),
                ],
                value="rename",
            ),

            dmc.Divider(my="md"),

            dmc.Group([
                dmc.Button(
                    "Reset to Original",
                    id="reset-clusters-btn",
                    leftSection=DashIconify(icon="tabler:refresh", width=16),
                    variant="light",
                    color="red",
                ),
                dmc.Button(
                    "Close",
                    id="annotation-close-btn",
                    variant="light",
                    color="gray",
                ),
            ], justify="space-between"),
        ],
        opened=False,
    )
