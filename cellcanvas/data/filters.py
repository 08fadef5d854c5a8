"""
Cell filter for CellCanvas.

A cell passes when its sample is among the selected samples (or none are
selected) and its cluster is among the selected clusters (or none are
selected). Every spatial operation works on the filtered subset.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

import numpy as np

from cellcanvas.data.model import Cell


@dataclass(frozen=True)
class CellFilterState:
    """Active sample / cluster filter. Empty tuples mean "show all"."""

    selected_samples: tuple = ()
    selected_clusters: tuple = ()

    @property
    def is_empty(self) -> bool:
        return not self.selected_samples and not self.selected_clusters

    def key(self) -> tuple:
        return (self.selected_samples, self.selected_clusters)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "selectedSamples": list(self.selected_samples),
            "selectedClusters": list(self.selected_clusters),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CellFilterState":
        return cls(
            selected_samples=tuple(str(s) for s in data.get("selectedSamples", [])),
            selected_clusters=tuple(int(c) for c in data.get("selectedClusters", [])),
        )


def cell_passes(cell: Cell, cell_filter: CellFilterState) -> bool:
    sample_match = (
        not cell_filter.selected_samples
        or cell.sample in cell_filter.selected_samples
    )
    cluster_match = (
        not cell_filter.selected_clusters
        or cell.cluster in cell_filter.selected_clusters
    )
    return sample_match and cluster_match


def filter_cells(cells: Sequence[Cell], cell_filter: CellFilterState) -> List[Cell]:
    """Return the cells that pass ``cell_filter``, in their original order."""
    if cell_filter.is_empty:
        return list(cells)
    return [cell for cell in cells if cell_passes(cell, cell_filter)]


def filter_mask(cells: Sequence[Cell], cell_filter: CellFilterState) -> np.ndarray:
    """Boolean mask over ``cells`` for the same predicate."""
    if cell_filter.is_empty:
        return np.ones(len(cells), dtype=bool)
    return np.fromiter((cell_passes(c, cell_filter) for c in cells), dtype=bool, count=len(cells))
