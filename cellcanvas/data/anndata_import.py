"""
AnnData import for CellCanvas.

Converts an AnnData object (or .h5ad file) into the Dataset Model so that
scanpy-processed data can be explored without a separate JSON export.
Expression stays in the AnnData and is read one gene column at a time.
"""

from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import anndata as ad
import numpy as np
import pandas as pd

from cellcanvas.data.demo import CLUSTER_COLORS
from cellcanvas.data.model import (
    Cell,
    ClusterInfo,
    DatasetMetadata,
    SingleCellDataset,
    to_metadata_value,
)

MAX_METADATA_COLUMNS = 20
UNASSIGNED_LABEL = "NA"


def _cluster_color(idx: int) -> str:
    if idx < len(CLUSTER_COLORS):
        r, g, b = CLUSTER_COLORS[idx]
        return f"rgb({r},{g},{b})"
    return f"hsl({(idx * 36) % 360}, 70%, 50%)"


def _gene_column(adata: ad.AnnData, gene_idx: int) -> np.ndarray:
    """Extract one gene as a dense 1D array (handles sparse X)."""
    expr = adata.X[:, gene_idx]
    if hasattr(expr, "toarray"):
        return expr.toarray().flatten()
    return np.asarray(expr).flatten()


def _gene_index(adata: ad.AnnData, gene: str) -> Optional[int]:
    """Position of a gene in var_names (first match for duplicated names)."""
    try:
        loc = adata.var_names.get_loc(gene)
    except KeyError:
        return None
    if isinstance(loc, (int, np.integer)):
        return int(loc)
    # Duplicated names give a slice or boolean mask
    positions = np.arange(adata.n_vars)[loc]
    return int(positions[0]) if len(positions) else None


class AnnDataExpression:
    """
    On-demand expression source backed by ``adata.X``.

    Each lookup reads a single gene column and keeps only the non-zero
    values, matching the sparse semantics of embedded expression.

    Usage:
        source = AnnDataExpression(adata)
        values = source.get("MYH7")   # pd.Series[cell_id -> value] or None
    """

    def __init__(self, adata: ad.AnnData):
        self._adata = adata
        self._cell_ids = np.asarray([str(c) for c in adata.obs_names], dtype=object)

    def __contains__(self, gene: str) -> bool:
        return _gene_index(self._adata, gene) is not None

    def get(self, gene: str) -> Optional[pd.Series]:
        """Non-zero values of ``gene``, or None if the gene is not in var_names."""
        gene_idx = _gene_index(self._adata, gene)
        if gene_idx is None:
            return None
        values = _gene_column(self._adata, gene_idx)
        nonzero = np.flatnonzero(values)
        return pd.Series(
            values[nonzero].astype(float),
            index=pd.Index(self._cell_ids[nonzero], dtype=object),
            dtype=float,
            name=gene,
        )


def dataset_from_anndata(
    adata: ad.AnnData,
    embedding_key: str = "X_umap",
    cluster_key: str = "leiden",
    expression_genes: Optional[Sequence[str]] = None,
    name: Optional[str] = None,
) -> SingleCellDataset:
    """
    Build a dataset from an AnnData object.

    Cells with a missing cluster value are collected in an extra "NA"
    cluster placed after the categories.

    Args:
        adata: Source AnnData
        embedding_key: Key in obsm holding 2D coordinates
        cluster_key: Categorical obs column used as the cluster assignment
        expression_genes: Genes whose values are embedded in the dataset
            (sparse, non-zero only). Use ``AnnDataExpression`` to serve the
            rest on demand.
        name: Dataset display name

    Returns:
        SingleCellDataset

    Raises:
        ValueError: If the embedding or cluster column is missing
    """
    if embedding_key not in adata.obsm:
        raise ValueError(f"Unknown embedding: {embedding_key}")
    if cluster_key not in adata.obs.columns:
        raise ValueError(f"Column not found: {cluster_key}")

    coords = np.ascontiguousarray(adata.obsm[embedding_key])[:, :2]

    groups = adata.obs[cluster_key]
    if not isinstance(groups.dtype, pd.CategoricalDtype):
        groups = groups.astype("string").astype("category")
    codes = groups.cat.codes.to_numpy()
    categories = [str(c) for c in groups.cat.categories]

    unassigned = codes < 0
    if unassigned.any():
        codes = np.where(unassigned, len(categories), codes)
        categories.append(UNASSIGNED_LABEL)

    # Metadata: string-like columns become categorical, numbers continuous
    meta_cols: List[str] = [
        col for col in adata.obs.columns[:MAX_METADATA_COLUMNS] if col != cluster_key
    ]
    obs = adata.obs[meta_cols]

    cells = []
    for i, cell_id in enumerate(adata.obs_names):
        metadata = {}
        for col in meta_cols:
            value = obs[col].iat[i]
            if pd.isna(value):
                continue
            if isinstance(value, (np.integer, np.floating)):
                value = value.item()
            metadata[col] = to_metadata_value(value)
        # cell_type always mirrors the cluster name
        metadata["cell_type"] = to_metadata_value(categories[codes[i]])
        cells.append(Cell(
            id=str(cell_id),
            x=float(coords[i, 0]),
            y=float(coords[i, 1]),
            cluster=int(codes[i]),
            metadata=metadata,
        ))

    clusters = [
        ClusterInfo(id=idx, name=cat, cell_count=0, color=_cluster_color(idx))
        for idx, cat in enumerate(categories)
    ]

    expression = None
    if expression_genes:
        source = AnnDataExpression(adata)
        expression = {}
        for gene in expression_genes:
            values = source.get(gene)
            if values is None:
                print(f"Warning: Gene not found in AnnData: {gene}")
                continue
            expression[gene] = values.to_dict()

    annotation_options = ["cell_type"]
    for col in meta_cols:
        if col in annotation_options:
            continue
        if isinstance(adata.obs[col].dtype, pd.CategoricalDtype) or pd.api.types.is_string_dtype(adata.obs[col]):
            annotation_options.append(col)

    dataset = SingleCellDataset(
        metadata=DatasetMetadata(
            name=name or "AnnData import",
            description=f"Imported from AnnData ({embedding_key}, clusters from '{cluster_key}')",
            cell_count=len(cells),
            gene_count=adata.n_vars,
            cluster_count=len(clusters),
        ),
        cells=cells,
        genes=[str(g) for g in adata.var_names],
        clusters=clusters,
        expression=expression,
        annotation_options=annotation_options,
    )
    dataset.refresh_counts()
    return dataset


def load_h5ad(
    path: Union[str, Path],
    embedding_key: str = "X_umap",
    cluster_key: str = "leiden",
) -> Tuple[SingleCellDataset, AnnDataExpression]:
    """
    Read an .h5ad file and convert it.

    Returns:
        Tuple of (dataset, expression source reading ``X`` on demand)
    """
    path = Path(path)
    print(f"Loading AnnData from {path}...")
    adata = ad.read_h5ad(path)
    print(f"Loaded {adata.n_obs:,} cells × {adata.n_vars:,} genes")
    dataset = dataset_from_anndata(
        adata,
        embedding_key=embedding_key,
        cluster_key=cluster_key,
        name=path.stem,
    )
    return dataset, AnnDataExpression(adata)
