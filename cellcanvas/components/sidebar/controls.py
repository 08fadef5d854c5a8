"""
Gene search and cell filter controls for the sidebar.
"""

from typing import List

import dash_mantine_components as dmc
from dash_iconify import DashIconify

from cellcanvas.data.model import ClusterInfo
from cellcanvas.state import VisualizationSettings

MAX_GENE_OPTIONS = 1000


def create_gene_controls(genes: List[str], settings: VisualizationSettings) -> dmc.Stack:
    """
    Gene selector and gene-set selector.

    Args:
        genes: Gene names available for search
        settings: Current visualization settings

    Returns:
        Stack with the two selectors
    """
    data = [{"value": g, "label": g} for g in genes[:MAX_GENE_OPTIONS]]  # Limit for performance
    return dmc.Stack([
        dmc.Text("Gene Expression", fw=600, size="sm"),
        dmc.Select(
            id="gene-select",
            label="Gene",
            placeholder="Search genes...",
            data=data,
            value=settings.selected_gene,
            searchable=True,
            clearable=True,
            leftSection=DashIconify(icon="tabler:dna-2", width=16),
            nothingFoundMessage="No genes found",
        ),
        dmc.MultiSelect(
            id="gene-set-select",
            label="Gene Set",
            description="Average expression across several genes",
            placeholder="Add genes...",
            data=data,
            value=list(settings.selected_genes),
            searchable=True,
            clearable=True,
            leftSection=DashIconify(icon="tabler:list-details", width=16),
        ),
    ], gap="xs")


def create_filter_controls(
    samples: List[str],
    clusters: List[ClusterInfo],
    settings: VisualizationSettings,
) -> dmc.Stack:
    """
    Sample and cluster filter selectors. Empty selections show all cells.
    """
    cell_filter = settings.cell_filter
    return dmc.Stack([
        dmc.Text("Cell Filter", fw=600, size="sm"),
        dmc.MultiSelect(
            id="filter-samples",
            label="Samples",
            placeholder="All samples",
            data=[{"value": s, "label": s} for s in samples],
            value=list(cell_filter.selected_samples),
            clearable=True,
            leftSection=DashIconify(icon="tabler:test-pipe", width=16),
        ),
        dmc.MultiSelect(
            id="filter-clusters",
            label="Clusters",
            placeholder="All clusters",
            data=[{"value": str(c.id), "label": f"{c.id}: {c.name}"} for c in clusters],
            value=[str(c) for c in cell_filter.selected_clusters],
            clearable=True,
            leftSection=DashIconify(icon="tabler:circles", width=16),
        ),
    ], gap="xs")
