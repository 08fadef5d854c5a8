"""
Dataset model for CellCanvas.

This module defines the in-memory representation of a single-cell dataset:
- Cells with 2D embedding coordinates, cluster assignment and metadata
- Cluster descriptors (name, cached cell count, display color)
- Differential expression records
- An optional sparse expression matrix (gene -> cell id -> value)

Metadata values are stored as a tagged union (StringValue | NumberValue) so
categorical and continuous annotations are handled explicitly.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


@dataclass(frozen=True)
class StringValue:
    """Categorical metadata value."""

    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class NumberValue:
    """Continuous metadata value."""

    value: float

    def __str__(self) -> str:
        if float(self.value).is_integer():
            return str(int(self.value))
        return str(self.value)


MetadataValue = Union[StringValue, NumberValue]


def to_metadata_value(value: Any) -> MetadataValue:
    """Wrap a raw JSON scalar into a tagged metadata value."""
    if isinstance(value, (StringValue, NumberValue)):
        return value
    if isinstance(value, bool):
        return StringValue(str(value).lower())
    if isinstance(value, (int, float)):
        return NumberValue(float(value))
    return StringValue(str(value))


def from_metadata_value(value: MetadataValue) -> Union[str, float, int]:
    """Unwrap a tagged metadata value back into a JSON scalar."""
    if isinstance(value, NumberValue):
        return int(value.value) if float(value.value).is_integer() else value.value
    return value.value


@dataclass
class Cell:
    """One sequenced cell."""

    id: str
    x: float  # embedding coordinate (UMAP/tSNE)
    y: float
    cluster: int
    metadata: Dict[str, MetadataValue] = field(default_factory=dict)

    def get_string(self, key: str) -> Optional[str]:
        """Return a metadata field as a string if it is categorical."""
        value = self.metadata.get(key)
        if isinstance(value, StringValue):
            return value.value
        return None

    def get_label(self, key: str) -> Optional[str]:
        """Return any metadata field rendered as text, or None if absent."""
        value = self.metadata.get(key)
        return None if value is None else str(value)

    @property
    def sample(self) -> Optional[str]:
        """Sample name, used by the cell filter."""
        return self.get_string("sample")


@dataclass
class ClusterInfo:
    """One cluster / cell-type group."""

    id: int
    name: str
    cell_count: int
    color: str  # CSS rgb(), hsl() or hex string


@dataclass(frozen=True)
class DifferentialExpression:
    """A single differential expression result (immutable)."""

    gene: str
    cluster: str
    log_fc: float
    p_value: float
    p_adj: float


@dataclass
class DatasetMetadata:
    """Dataset-level descriptive metadata."""

    name: str
    description: str
    cell_count: int
    gene_count: int
    cluster_count: int
    organism: Optional[str] = None
    tissue: Optional[str] = None
    source: Optional[str] = None


@dataclass
class SingleCellDataset:
    """
    In-memory single-cell dataset.

    Attributes:
        metadata: Dataset description and counts
        cells: All cells, in load order
        genes: Gene names available for search
        clusters: Cluster descriptors
        differential_expression: DE records for display
        expression: Optional sparse matrix, gene -> cell id -> value.
            Absent cell ids are implicit zeros.
        annotation_options: Metadata keys usable as categorical annotations
        version: Bumped on every structural mutation (used as a cache key)
    """

    metadata: DatasetMetadata
    cells: List[Cell]
    genes: List[str]
    clusters: List[ClusterInfo]
    differential_expression: List[DifferentialExpression] = field(default_factory=list)
    expression: Optional[Dict[str, Dict[str, float]]] = None
    annotation_options: List[str] = field(default_factory=list)
    version: int = 0

    # ==================== Lookups ====================

    @property
    def n_cells(self) -> int:
        return len(self.cells)

    @property
    def n_genes(self) -> int:
        return len(self.genes)

    def get_cluster(self, cluster_id: int) -> Optional[ClusterInfo]:
        """Find a cluster by id."""
        for cluster in self.clusters:
            if cluster.id == cluster_id:
                return cluster
        return None

    def cluster_ids(self) -> List[int]:
        return [c.id for c in self.clusters]

    def cluster_names(self) -> Dict[int, str]:
        """Mapping of cluster id to display name."""
        return {c.id: c.name for c in self.clusters}

    def cluster_colors(self) -> Dict[int, str]:
        """Mapping of cluster id to display color."""
        return {c.id: c.color for c in self.clusters}

    def has_expression(self, gene: str) -> bool:
        """Whether real expression values are embedded for a gene."""
        return bool(self.expression) and gene in self.expression

    def samples(self) -> List[str]:
        """Sorted distinct sample names."""
        return sorted({c.sample for c in self.cells if c.sample is not None})

    def count_cells_per_cluster(self) -> Dict[int, int]:
        counts: Dict[int, int] = {}
        for cell in self.cells:
            counts[cell.cluster] = counts.get(cell.cluster, 0) + 1
        return counts

    def refresh_counts(self) -> None:
        """Recompute cached cluster cell counts and dataset-level counts."""
        counts = self.count_cells_per_cluster()
        for cluster in self.clusters:
            cluster.cell_count = counts.get(cluster.id, 0)
        self.metadata.cell_count = len(self.cells)
        self.metadata.cluster_count = len(self.clusters)

    def snapshot(self) -> "SingleCellDataset":
        """Deep structural copy, used to restore the load-time state."""
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the ingest JSON shape."""
        data: Dict[str, Any] = {
            "metadata": {
                "name": self.metadata.name,
                "description": self.metadata.description,
                "cellCount": self.metadata.cell_count,
                "geneCount": self.metadata.gene_count,
                "clusterCount": self.metadata.cluster_count,
            },
            "cells": [
                {
                    "id": c.id,
                    "x": c.x,
                    "y": c.y,
                    "cluster": c.cluster,
                    "metadata": {k: from_metadata_value(v) for k, v in c.metadata.items()},
                }
                for c in self.cells
            ],
            "genes": list(self.genes),
            "clusters": [
                {"id": c.id, "name": c.name, "cellCount": c.cell_count, "color": c.color}
                for c in self.clusters
            ],
            "differentialExpression": [
                {
                    "gene": d.gene,
                    "cluster": d.cluster,
                    "logFC": d.log_fc,
                    "pValue": d.p_value,
                    "pAdj": d.p_adj,
                }
                for d in self.differential_expression
            ],
            "annotationOptions": list(self.annotation_options),
        }
        for key in ("organism", "tissue", "source"):
            value = getattr(self.metadata, key)
            if value is not None:
                data["metadata"][key] = value
        if self.expression is not None:
            data["expression"] = {g: dict(v) for g, v in self.expression.items()}
        return data
