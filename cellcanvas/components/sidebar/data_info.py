"""
Data info component for sidebar.

Displays dataset metadata and the cluster list.
"""

from typing import List

import dash_mantine_components as dmc
from dash import html
from dash_iconify import DashIconify

from cellcanvas.data.model import ClusterInfo, DatasetMetadata


def create_data_info(
    metadata: DatasetMetadata,
    clusters: List[ClusterInfo],
    samples: List[str],
) -> dmc.Stack:
    """
    Create the data info display for the sidebar.

    Args:
        metadata: Dataset-level metadata
        clusters: Cluster descriptors (name, count, color)
        samples: Distinct sample names

    Returns:
        Stack component with data info
    """
    rows = [
        _info_row("tabler:file", "Dataset", metadata.name or "No data loaded"),
        _info_row("tabler:cells", "Cells", f"{metadata.cell_count:,}"),
        _info_row("tabler:dna-2", "Genes", f"{metadata.gene_count:,}"),
        _info_row("tabler:circles", "Clusters", f"{metadata.cluster_count:,}"),
    ]
    if metadata.organism:
        rows.append(_info_row("tabler:paw", "Organism", metadata.organism))
    if metadata.tissue:
        rows.append(_info_row("tabler:heart", "Tissue", metadata.tissue))

    return dmc.Stack([
        dmc.Text("Dataset Info", fw=600, size="sm"),

        dmc.Paper([
            dmc.Stack(rows, gap="xs"),
        ], p="xs", withBorder=True, radius="sm"),

        dmc.Accordion(
            children=[
                dmc.AccordionItem(
                    value="clusters",
                    children=[
                        dmc.AccordionControl(
                            dmc.Group([
                                DashIconify(icon="tabler:circles", width=16),
                                dmc.Text("Clusters", size="sm"),
                                dmc.Badge(str(len(clusters)), size="sm", variant="light"),
                            ], gap="xs"),
                        ),
                        dmc.AccordionPanel(
                            dmc.Stack([
                                _cluster_row(cluster) for cluster in clusters
                            ] if clusters else [
                                dmc.Text("No clusters", size="xs", c="dimmed")
                            ], gap=2),
                        ),
                    ],
                ),
                dmc.AccordionItem(
                    value="samples",
                    children=[
                        dmc.AccordionControl(
                            dmc.Group([
                                DashIconify(icon="tabler:test-pipe", width=16),
                                dmc.Text("Samples", size="sm"),
                                dmc.Badge(str(len(samples)), size="sm", variant="light"),
                            ], gap="xs"),
                        ),
                        dmc.AccordionPanel(
                            dmc.Stack([
                                dmc.Text(sample, size="xs", c="dimmed")
                                for sample in samples[:20]
                            ] + ([
                                dmc.Text(f"... and {len(samples) - 20} more", size="xs", c="dimmed", fs="italic")
                            ] if len(samples) > 20 else []), gap=2),
                        ),
                    ],
                ),
            ],
            variant="separated",
            chevronPosition="right",
        ),
    ], gap="xs")


def _cluster_row(cluster: ClusterInfo) -> dmc.Group:
    return dmc.Group([
        html.Div(style={
            "width": "10px",
            "height": "10px",
            "borderRadius": "50%",
            "background": cluster.color,
            "flexShrink": 0,
        }),
        dmc.Text(f"{cluster.id}: {cluster.name}", size="xs", truncate=True, style={"flex": 1}),
        dmc.Text(f"{cluster.cell_count:,}", size="xs", c="dimmed"),
    ], gap="xs", wrap="nowrap")


def _info_row(icon: str, label: str, value: str) -> dmc.Group:
    """Create an info row with icon, label, and value."""
    return dmc.Group([
        DashIconify(icon=icon, width=14, color="var(--mantine-color-dimmed)"),
        dmc.Text(label, size="xs", c="dimmed", style={"minWidth": "60px"}),
        dmc.Text(value, size="xs", fw=500, truncate=True),
    ], gap="xs", wrap="nowrap")
