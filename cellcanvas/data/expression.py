"""
Expression Resolver for CellCanvas.

Turns a gene (or gene set) into a per-cell value map, represented as a
pandas Series indexed by cell id. Embedded expression is sparse: cells that
are absent from the map are implicit zeros. Genes that are neither embedded nor
found in the attached expression source (e.g. an AnnData ``X``) are
synthesized from the marker-gene table:

- marker cluster cells:      uniform in [2.0, 4.5]
- other cells (marker gene): uniform in [0.0, 0.8]
- non-marker genes:          max(0, N(1, 0.5)) ("housekeeping")

Synthesis is seedable. With a seed, each gene gets its own generator derived
from (seed, gene) so values do not depend on query order.
"""

import zlib
from collections import OrderedDict
from typing import Dict, List, Optional, Protocol, Sequence

import numpy as np
import pandas as pd

from cellcanvas.data.demo import MARKER_GENES
from cellcanvas.data.model import Cell, SingleCellDataset

ANNOTATION_PALETTE = [
    (52, 152, 165),   # teal
    (215, 95, 130),   # pink
    (210, 180, 60),   # gold
    (90, 165, 110),   # green
    (165, 105, 180),  # purple
    (215, 130, 65),   # orange
    (75, 170, 155),   # teal-green
    (190, 100, 165),  # magenta
    (130, 170, 85),   # lime
    (100, 140, 200),  # blue
    (180, 80, 80),    # red
    (120, 100, 160),  # lavender
]


class LRUCache:
    """Simple LRU cache for resolved expression maps."""

    def __init__(self, maxsize: int = 100):
        self.maxsize = maxsize
        self._cache: "OrderedDict[str, pd.Series]" = OrderedDict()

    def get(self, key: str) -> Optional[pd.Series]:
        """Get item from cache, moving to end (most recently used)."""
        if key in self._cache:
            self._cache.move_to_end(key)
            return self._cache[key]
        return None

    def set(self, key: str, value: pd.Series) -> None:
        """Add item to cache, evicting oldest if necessary."""
        if key in self._cache:
            self._cache.move_to_end(key)
            self._cache[key] = value
        else:
            if len(self._cache) >= self.maxsize:
                self._cache.popitem(last=False)
            self._cache[key] = value

    def clear(self) -> None:
        """Clear the cache."""
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)


class ExpressionSource(Protocol):
    """Lookup of stored expression outside the dataset (e.g. an AnnData X)."""

    def get(self, gene: str) -> Optional[pd.Series]:
        ...


def find_marker_cluster(gene: str, marker_genes: Dict[int, List[str]]) -> Optional[int]:
    """Return the first cluster that lists ``gene`` as a marker, if any."""
    for cluster, genes in marker_genes.items():
        if gene in genes:
            return int(cluster)
    return None


def synthesize_expression(
    cells: Sequence[Cell],
    gene: str,
    marker_genes: Dict[int, List[str]],
    rng: np.random.Generator,
) -> pd.Series:
    """Draw plausible expression values for a gene with no embedded data."""
    ids = [c.id for c in cells]
    n = len(ids)
    marker_cluster = find_marker_cluster(gene, marker_genes)

    if marker_cluster is None:
        values = 1 + rng.normal(0, 0.5, n)
    else:
        clusters = np.fromiter((c.cluster for c in cells), dtype=np.int64, count=n)
        in_marker = clusters == marker_cluster
        values = np.where(
            in_marker,
            2 + rng.random(n) * 2.5,
            rng.random(n) * 0.8,
        )

    return pd.Series(np.maximum(0.0, values), index=pd.Index(ids, dtype=object), dtype=float, name=gene)


class ExpressionResolver:
    """
    Resolve per-cell expression maps for genes.

    Usage:
        resolver = ExpressionResolver(seed=0)
        values = resolver.resolve(dataset, "MYH7")   # pd.Series[cell_id -> value]
        avg = resolver.resolve_averaged(dataset, ["MYH7", "TNNT2"])
    """

    def __init__(
        self,
        marker_genes: Optional[Dict[int, List[str]]] = None,
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
        cache_size: int = 100,
        source: Optional[ExpressionSource] = None,
    ):
        self.marker_genes = marker_genes if marker_genes is not None else MARKER_GENES
        self.seed = seed
        self.source = source
        self._rng = rng if rng is not None else np.random.default_rng(seed)
        self._cache = LRUCache(cache_size)

    def _rng_for(self, gene: str) -> np.random.Generator:
        if self.seed is None:
            return self._rng
        return np.random.default_rng([self.seed, zlib.crc32(gene.encode("utf-8"))])

    def clear_cache(self) -> None:
        self._cache.clear()

    def resolve(self, dataset: SingleCellDataset, gene: str) -> pd.Series:
        """
        Get the value map for one gene.

        Lookup order: values embedded in the dataset, then the attached
        source, then synthesis. Stored values are returned sparse. Results
        are cached per dataset version so repeated lookups stay stable.
        """
        cache_key = f"{gene}:{id(dataset)}:{dataset.version}"
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        series = None
        if dataset.has_expression(gene):
            values = dataset.expression[gene]
            series = pd.Series(
                list(values.values()),
                index=pd.Index(list(values.keys()), dtype=object),
                dtype=float,
                name=gene,
            )
        elif self.source is not None:
            series = self.source.get(gene)

        if series is None:
            series = synthesize_expression(dataset.cells, gene, self.marker_genes, self._rng_for(gene))

        self._cache.set(cache_key, series)
        return series

    def resolve_many(self, dataset: SingleCellDataset, genes: Sequence[str]) -> Dict[str, pd.Series]:
        """Resolve each gene in ``genes``."""
        return {gene: self.resolve(dataset, gene) for gene in genes}

    def resolve_averaged(self, dataset: SingleCellDataset, genes: Sequence[str]) -> pd.Series:
        """
        Average expression across genes.

        For every cell present in any per-gene map, only the genes that carry
        a value for that cell contribute; absent entries are not zeros.
        """
        per_gene = [s for s in self.resolve_many(dataset, genes).values() if len(s) > 0]
        if not per_gene:
            return pd.Series(dtype=float, name="average")

        frame = pd.concat(per_gene, axis=1, sort=False)
        averaged = frame.mean(axis=1, skipna=True).fillna(0.0)
        averaged.name = "average"
        return averaged


def get_expression_value(expression: Optional[pd.Series], cell_id: str) -> float:
    """Value for a cell with sparse semantics (missing -> 0)."""
    if expression is None:
        return 0.0
    value = expression.get(cell_id)
    return 0.0 if value is None or np.isnan(value) else float(value)


def get_annotation_values(cells: Sequence[Cell], annotation: str) -> List[str]:
    """Sorted distinct values of a metadata annotation."""
    values = set()
    for cell in cells:
        label = cell.get_label(annotation)
        if label is not None:
            values.add(label)
    return sorted(values)


def get_annotation_color_map(values: Sequence[str]) -> Dict[str, str]:
    """Assign categorical colors to annotation values, cycling the palette."""
    colors = {}
    for idx, value in enumerate(values):
        r, g, b = ANNOTATION_PALETTE[idx % len(ANNOTATION_PALETTE)]
        colors[value] = f"rgb({r}, {g}, {b})"
    return colors
