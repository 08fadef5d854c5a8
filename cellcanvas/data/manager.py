"""
DataManager - Core data handling for CellCanvas.

This module provides the DataManager class that handles:
- Loading a dataset (JSON export, .h5ad, or the demo dataset)
- Precomputing embedding coordinates as numpy arrays for fast access
- Cluster annotation edits with a restorable load-time snapshot
- Caching gene expression maps

Design Principles:
1. Load the dataset once, keep it in memory
2. Precompute coordinate arrays; rebuild them only when the dataset changes
3. Annotation edits replace the dataset with a new consistent snapshot
4. LRU cache for frequently accessed gene expression data
"""

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from cellcanvas.config import Config
from cellcanvas.data.annotation import ClusterAnnotationEngine
from cellcanvas.data.demo import generate_demo_dataset
from cellcanvas.data.expression import ExpressionResolver, ExpressionSource
from cellcanvas.data.loader import LoadError, ValidationResult, load_dataset
from cellcanvas.data.model import Cell, SingleCellDataset


class DataManager:
    """
    Owner of the active dataset.

    Usage:
        dm = DataManager(config)
        xs, ys = dm.coordinates
        expr = dm.get_gene_expression("MYH7")
        dm.merge_clusters([1, 2], 0, "Myocytes")
    """

    def __init__(self, config: Config, dataset: Optional[SingleCellDataset] = None):
        self.config = config
        self.resolver = ExpressionResolver(seed=config.seed, cache_size=config.expression_cache_size)
        self.last_validation: Optional[ValidationResult] = None

        source = None
        if dataset is None:
            dataset, source = self._load_initial()
        self._set_dataset(dataset, source)

    def _load_initial(self) -> Tuple[SingleCellDataset, Optional[ExpressionSource]]:
        """Load the dataset named by the config, or the demo dataset."""
        path = self.config.data_path
        if path is None:
            print(f"Generating demo dataset ({self.config.demo_cells:,} cells)...")
            return generate_demo_dataset(self.config.demo_cells, seed=self.config.seed), None

        print(f"Loading dataset from {path}...")
        if path.suffix == ".h5ad":
            return self._read_h5ad(path)

        dataset, result = load_dataset(path)
        self.last_validation = result
        for warning in result.warnings:
            print(f"Warning: {warning}")
        return dataset, None

    def _read_h5ad(self, path: Path) -> Tuple[SingleCellDataset, ExpressionSource]:
        from cellcanvas.data.anndata_import import load_h5ad
        return load_h5ad(
            path,
            embedding_key=self.config.embedding_key,
            cluster_key=self.config.cluster_key,
        )

    def _set_dataset(self, dataset: SingleCellDataset, source: Optional[ExpressionSource] = None) -> None:
        self._annotations = ClusterAnnotationEngine(dataset)
        # The source is keyed by cell id, so it survives annotation edits
        self.resolver.source = source
        self.resolver.clear_cache()
        self._precompute_coordinates()
        print(f"Loaded {self.n_cells:,} cells × {self.n_genes:,} genes")

    def _precompute_coordinates(self) -> None:
        """Contiguous coordinate arrays, much faster than iterating Cell objects."""
        cells = self.dataset.cells
        self._x = np.fromiter((c.x for c in cells), dtype=float, count=len(cells))
        self._y = np.fromiter((c.y for c in cells), dtype=float, count=len(cells))
        self._index_by_id: Dict[str, int] = {c.id: i for i, c in enumerate(cells)}

    # ==================== Properties ====================

    @property
    def dataset(self) -> SingleCellDataset:
        return self._annotations.dataset

    @property
    def has_stored_expression(self) -> bool:
        """Whether real expression values are available (embedded or from X)."""
        return bool(self.dataset.expression) or self.resolver.source is not None

    @property
    def n_cells(self) -> int:
        return self.dataset.n_cells

    @property
    def n_genes(self) -> int:
        return self.dataset.n_genes

    @property
    def gene_names(self) -> List[str]:
        return list(self.dataset.genes)

    @property
    def coordinates(self):
        """Tuple of (x, y) arrays for all cells."""
        return self._x, self._y

    def get_cell(self, cell_id: str) -> Optional[Cell]:
        idx = self._index_by_id.get(cell_id)
        return None if idx is None else self.dataset.cells[idx]

    # ==================== Loading ====================

    def load(self, dataset: SingleCellDataset, source: Optional[ExpressionSource] = None) -> None:
        """Replace the active dataset (new load-time snapshot)."""
        dataset.version = self.dataset.version + 1
        self._set_dataset(dataset, source)

    def load_file(self, path: Union[str, Path]) -> ValidationResult:
        """
        Load a dataset file, keeping the current dataset if loading fails.

        Raises:
            LoadError / DatasetValidationError: The prior dataset stays active
        """
        path = Path(path)
        source = None
        if path.suffix == ".h5ad":
            dataset, source = self._read_h5ad(path)
            result = ValidationResult(valid=True)
        elif path.suffix == ".json":
            dataset, result = load_dataset(path)
        else:
            raise LoadError(f"Unsupported file type: {path.suffix}")

        self.last_validation = result
        self.load(dataset, source)
        return result

    # ==================== Expression Data Access ====================

    def get_gene_expression(self, gene: str) -> pd.Series:
        """Expression map for a gene (cell id -> value)."""
        return self.resolver.resolve(self.dataset, gene)

    def get_averaged_expression(self, genes: Sequence[str]) -> pd.Series:
        return self.resolver.resolve_averaged(self.dataset, genes)

    # ==================== Cluster Annotation ====================

    def _after_edit(self, rebuild: bool) -> SingleCellDataset:
        if rebuild:
            self._precompute_coordinates()
        return self.dataset

    def rename_cluster(self, cluster_id: int, new_name: str) -> SingleCellDataset:
        self._annotations.rename(cluster_id, new_name)
        return self._after_edit(rebuild=False)

    def merge_clusters(self, source_ids: Iterable[int], target_id: int, merged_name: str) -> SingleCellDataset:
        self._annotations.merge(source_ids, target_id, merged_name)
        return self._after_edit(rebuild=True)

    def recolor_cluster(self, cluster_id: int, new_color: str) -> SingleCellDataset:
        self._annotations.recolor(cluster_id, new_color)
        return self._after_edit(rebuild=False)

    def reset_clusters(self) -> SingleCellDataset:
        self._annotations.reset()
        return self._after_edit(rebuild=True)

    # ==================== Statistics ====================

    def get_top_markers(self, top_n: int = 20) -> pd.DataFrame:
        """Differential expression records sorted by log fold-change."""
        records = self.dataset.differential_expression
        df = pd.DataFrame({
            "gene": [r.gene for r in records],
            "cluster": [r.cluster for r in records],
            "logFC": [r.log_fc for r in records],
            "pValue": [r.p_value for r in records],
            "pAdj": [r.p_adj for r in records],
        })
        if df.empty:
            return df
        return df.sort_values("logFC", ascending=False).head(top_n).reset_index(drop=True)
