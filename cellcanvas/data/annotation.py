"""
Cluster Annotation Engine for CellCanvas.

Rename, merge and recolor clusters. Every operation builds a fully consistent
new dataset snapshot (cell -> cluster reassignment, ``cell_type`` metadata,
cached cell counts, dataset cluster count) and leaves the input untouched.
"""

from dataclasses import replace
from typing import Iterable, List

from cellcanvas.data.model import Cell, ClusterInfo, SingleCellDataset, StringValue

CELL_TYPE_KEY = "cell_type"


class AnnotationError(ValueError):
    """Raised when a cluster annotation operation is invalid."""


def _require_cluster(dataset: SingleCellDataset, cluster_id: int) -> ClusterInfo:
    cluster = dataset.get_cluster(cluster_id)
    if cluster is None:
        raise AnnotationError(f"Unknown cluster: {cluster_id}")
    return cluster


def _copy_cell(cell: Cell, **changes) -> Cell:
    return replace(cell, metadata=dict(cell.metadata), **changes)


def _finish(dataset: SingleCellDataset, cells: List[Cell], clusters: List[ClusterInfo]) -> SingleCellDataset:
    result = replace(
        dataset,
        metadata=replace(dataset.metadata),
        cells=cells,
        clusters=clusters,
        version=dataset.version + 1,
    )
    result.refresh_counts()
    return result


def rename_cluster(dataset: SingleCellDataset, cluster_id: int, new_name: str) -> SingleCellDataset:
    """Rename a cluster and mirror the name into its cells' ``cell_type``."""
    new_name = new_name.strip()
    if not new_name:
        raise AnnotationError("Select a cluster and provide a new name")
    _require_cluster(dataset, cluster_id)

    clusters = [
        replace(c, name=new_name) if c.id == cluster_id else replace(c)
        for c in dataset.clusters
    ]
    cells = []
    for cell in dataset.cells:
        new_cell = _copy_cell(cell)
        if cell.cluster == cluster_id:
            new_cell.metadata[CELL_TYPE_KEY] = StringValue(new_name)
        cells.append(new_cell)

    return _finish(dataset, cells, clusters)


def merge_clusters(
    dataset: SingleCellDataset,
    source_ids: Iterable[int],
    target_id: int,
    merged_name: str,
) -> SingleCellDataset:
    """
    Merge source clusters into a target cluster.

    Cells in any source cluster move to ``target_id`` and take ``merged_name``
    as their ``cell_type``; source entries are removed and the target is
    renamed. Fails without mutation when the target is one of the sources.
    """
    sources = list(dict.fromkeys(int(s) for s in source_ids))
    if not sources:
        raise AnnotationError("Select source and target clusters")
    if target_id in sources:
        raise AnnotationError("Target cluster cannot be one of the source clusters")
    target = _require_cluster(dataset, target_id)
    for source_id in sources:
        _require_cluster(dataset, source_id)

    name = merged_name.strip() or target.name
    source_set = set(sources)

    cells = []
    for cell in dataset.cells:
        if cell.cluster in source_set:
            new_cell = _copy_cell(cell, cluster=target_id)
            new_cell.metadata[CELL_TYPE_KEY] = StringValue(name)
        else:
            new_cell = _copy_cell(cell)
        cells.append(new_cell)

    clusters = [
        replace(c, name=name) if c.id == target_id else replace(c)
        for c in dataset.clusters
        if c.id not in source_set
    ]

    return _finish(dataset, cells, clusters)


def recolor_cluster(dataset: SingleCellDataset, cluster_id: int, new_color: str) -> SingleCellDataset:
    """Change a cluster's display color. Cells are not touched."""
    if not new_color or not new_color.strip():
        raise AnnotationError("Select a color first")
    _require_cluster(dataset, cluster_id)

    clusters = [
        replace(c, color=new_color.strip()) if c.id == cluster_id else replace(c)
        for c in dataset.clusters
    ]
    return _finish(dataset, list(dataset.cells), clusters)


class ClusterAnnotationEngine:
    """
    Holds the load-time snapshot and the current annotated dataset.

    Usage:
        engine = ClusterAnnotationEngine(dataset)
        engine.merge([1, 2], 0, "Myocytes")
        engine.reset()  # back to the load-time dataset
    """

    def __init__(self, dataset: SingleCellDataset):
        self._original = dataset.snapshot()
        self.dataset = dataset

    @property
    def original(self) -> SingleCellDataset:
        return self._original

    def rename(self, cluster_id: int, new_name: str) -> SingleCellDataset:
        self.dataset = rename_cluster(self.dataset, cluster_id, new_name)
        return self.dataset

    def merge(self, source_ids: Iterable[int], target_id: int, merged_name: str) -> SingleCellDataset:
        self.dataset = merge_clusters(self.dataset, source_ids, target_id, merged_name)
        return self.dataset

    def recolor(self, cluster_id: int, new_color: str) -> SingleCellDataset:
        self.dataset = recolor_cluster(self.dataset, cluster_id, new_color)
        return self.dataset

    def reset(self) -> SingleCellDataset:
        """Restore the full load-time structure, discarding all edits."""
        restored = self._original.snapshot()
        restored.version = self.dataset.version + 1
        self.dataset = restored
        return self.dataset
