"""
Data management module for CellCanvas.

Provides the dataset model, JSON/AnnData loading, expression lookup,
cell filtering and cluster annotation.
"""

from cellcanvas.data.manager import DataManager
from cellcanvas.data.model import Cell, ClusterInfo, SingleCellDataset

__all__ = [
    "Cell",
    "ClusterInfo",
    "DataManager",
    "SingleCellDataset",
]
