"""Tests for the expression resolver."""

import numpy as np
import pandas as pd
import pytest

from cellcanvas.data.expression import (
    ANNOTATION_PALETTE,
    ExpressionResolver,
    LRUCache,
    find_marker_cluster,
    get_annotation_color_map,
    get_annotation_values,
    get_expression_value,
)
from cellcanvas.data.model import Cell, ClusterInfo, DatasetMetadata, SingleCellDataset, StringValue


def _make_dataset(cluster_sizes=(1000, 1000), expression=None):
    cells = []
    for cluster_id, size in enumerate(cluster_sizes):
        for _ in range(size):
            cells.append(Cell(
                id=f"c{len(cells)}",
                x=float(len(cells)),
                y=0.0,
                cluster=cluster_id,
                metadata={"sample": StringValue(f"S{len(cells) % 3}")},
            ))
    clusters = [
        ClusterInfo(id=i, name=f"Cluster {i}", cell_count=0, color="rgb(0,0,0)")
        for i in range(len(cluster_sizes))
    ]
    dataset = SingleCellDataset(
        metadata=DatasetMetadata("test", "", len(cells), 0, len(clusters)),
        cells=cells,
        genes=["MYH7", "GAPDH"],
        clusters=clusters,
        expression=expression,
    )
    dataset.refresh_counts()
    return dataset


def test_marker_fallback_separates_clusters():
    dataset = _make_dataset()
    values = ExpressionResolver(seed=0).resolve(dataset, "MYH7")

    assert len(values) == dataset.n_cells
    marker_mean = values[[c.id for c in dataset.cells if c.cluster == 0]].mean()
    other_mean = values[[c.id for c in dataset.cells if c.cluster == 1]].mean()
    assert marker_mean - other_mean > 1.5


def test_marker_fallback_ranges():
    dataset = _make_dataset()
    values = ExpressionResolver(seed=1).resolve(dataset, "MYH7")
    in_marker = values[[c.id for c in dataset.cells if c.cluster == 0]]
    outside = values[[c.id for c in dataset.cells if c.cluster == 1]]
    assert in_marker.min() >= 2.0 and in_marker.max() <= 4.5
    assert outside.min() >= 0.0 and outside.max() <= 0.8


def test_housekeeping_fallback_is_non_negative():
    dataset = _make_dataset()
    values = ExpressionResolver(seed=3).resolve(dataset, "GAPDH")
    assert (values >= 0).all()
    assert values.mean() == pytest.approx(1.0, abs=0.1)


def test_seeded_values_do_not_depend_on_query_order():
    dataset = _make_dataset((50, 50))
    first = ExpressionResolver(seed=7)
    second = ExpressionResolver(seed=7)

    a_then_b = first.resolve(dataset, "MYH7"), first.resolve(dataset, "GAPDH")
    second.resolve(dataset, "GAPDH")
    b_then_a = second.resolve(dataset, "MYH7")

    pd.testing.assert_series_equal(a_then_b[0], b_then_a)


def test_resolve_is_cached_per_dataset_version():
    dataset = _make_dataset((20,))
    resolver = ExpressionResolver()
    assert resolver.resolve(dataset, "MYH7") is resolver.resolve(dataset, "MYH7")

    dataset.version += 1
    assert len(resolver.resolve(dataset, "MYH7")) == 20


def test_embedded_expression_is_sparse():
    dataset = _make_dataset((3,), expression={"MYH7": {"c0": 5.0, "c2": 1.5}})
    values = ExpressionResolver(seed=0).resolve(dataset, "MYH7")

    assert dict(values) == {"c0": 5.0, "c2": 1.5}
    assert get_expression_value(values, "c1") == 0.0
    assert get_expression_value(values, "c2") == 1.5
    assert get_expression_value(None, "c0") == 0.0


def test_averaged_expression_partial_coverage():
    dataset = _make_dataset((3,), expression={"A": {"c0": 2.0}, "B": {"c1": 4.0}})
    averaged = ExpressionResolver().resolve_averaged(dataset, ["A", "B"])

    assert averaged["c0"] == 2.0
    assert averaged["c1"] == 4.0
    assert "c2" not in averaged.index


def test_averaged_expression_overlap():
    dataset = _make_dataset((2,), expression={"A": {"c0": 2.0, "c1": 1.0}, "B": {"c0": 4.0}})
    averaged = ExpressionResolver().resolve_averaged(dataset, ["A", "B"])
    assert averaged["c0"] == pytest.approx(3.0)
    assert averaged["c1"] == pytest.approx(1.0)


def test_averaged_expression_of_empty_set():
    dataset = _make_dataset((2,))
    assert ExpressionResolver().resolve_averaged(dataset, []).empty

class _DictSource:
    def __init__(self, maps):
        self.maps = maps
        self.calls = []

    def get(self, gene):
        self.calls.append(gene)
        values = self.maps.get(gene)
        return None if values is None else pd.Series(values, dtype=float, name=gene)


def test_source_is_consulted_before_synthesis():
    dataset = _make_dataset((3, 3), expression={"MYH7": {"c0": 9.0}})
    source = _DictSource({"MYH7": {"c1": 1.0}, "GAPDH": {"c4": 2.5}})
    resolver = ExpressionResolver(seed=0, source=source)

    assert resolver.resolve(dataset, "MYH7").to_dict() == {"c0": 9.0}
    assert resolver.resolve(dataset, "GAPDH").to_dict() == {"c4": 2.5}
    assert len(resolver.resolve(dataset, "TNNT2")) == 6
    assert source.calls == ["GAPDH", "TNNT2"]

    resolver.resolve(dataset, "GAPDH")
    assert source.calls == ["GAPDH", "TNNT2"]



def test_resolve_many():
    dataset = _make_dataset((10, 10))
    result = ExpressionResolver(seed=0).resolve_many(dataset, ["MYH7", "GAPDH"])
    assert list(result) == ["MYH7", "GAPDH"]


def test_find_marker_cluster():
    assert find_marker_cluster("MYH7", {0: ["MYH7"], 1: ["CDH5"]}) == 0
    assert find_marker_cluster("CDH5", {0: ["MYH7"], 1: ["CDH5"]}) == 1
    assert find_marker_cluster("GAPDH", {0: ["MYH7"]}) is None


def test_injected_marker_table():
    dataset = _make_dataset((100, 100))
    resolver = ExpressionResolver(marker_genes={1: ["FOO"]}, seed=0)
    values = resolver.resolve(dataset, "FOO")
    assert values[[c.id for c in dataset.cells if c.cluster == 1]].min() >= 2.0


def test_lru_cache_evicts_oldest():
    cache = LRUCache(maxsize=2)
    cache.set("a", pd.Series([1.0]))
    cache.set("b", pd.Series([2.0]))
    cache.get("a")
    cache.set("c", pd.Series([3.0]))
    assert cache.get("b") is None
    assert cache.get("a") is not None
    assert len(cache) == 2


def test_annotation_values_and_colors():
    dataset = _make_dataset((4,))
    values = get_annotation_values(dataset.cells, "sample")
    assert values == ["S0", "S1", "S2"]

    many = [f"v{i:02d}" for i in range(len(ANNOTATION_PALETTE) + 1)]
    colors = get_annotation_color_map(many)
    assert colors[many[0]] == colors[many[-1]]
    assert colors[many[0]] != colors[many[1]]
    assert np.all([c.startswith("rgb(") for c in colors.values()])
