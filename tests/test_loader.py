"""Tests for dataset ingest and validation."""

import json

import pytest

from cellcanvas.data.loader import (
    DatasetValidationError,
    LoadError,
    load_dataset,
    parse_dataset_json,
    validate_dataset,
)
from cellcanvas.data.model import NumberValue, StringValue


def _raw_dataset(**overrides):
    data = {
        "metadata": {"name": "Mini", "description": "three cells", "cellCount": 3,
                     "geneCount": 2, "clusterCount": 2, "organism": "Mus musculus"},
        "cells": [
            {"id": 1, "x": 0, "y": 1.5, "cluster": 0,
             "metadata": {"sample": "A", "nCount_RNA": 1200, "cell_type": "T"}},
            {"id": "b", "x": 2.5, "y": "3", "cluster": 1, "metadata": {"sample": "B"}},
            {"id": "c", "x": -1, "y": 0, "cluster": 1, "metadata": {"sample": "A"}},
        ],
        "genes": ["CD3E", "MYH7"],
        "clusters": [
            {"id": 0, "name": "T Cells", "cellCount": 999, "color": "rgb(1,2,3)"},
            {"id": 1, "name": "Myocytes", "cellCount": 0, "color": "hsl(10, 70%, 50%)"},
        ],
        "differentialExpression": [
            {"gene": "CD3E", "cluster": "Cl_0", "logFC": 2.1, "pValue": 1e-300, "pAdj": 1e-280},
        ],
        "expression": {"MYH7": {"b": 3.5, "c": 0.25}},
    }
    data.update(overrides)
    return data


def test_parse_normalizes_fields():
    dataset, result = parse_dataset_json(json.dumps(_raw_dataset()))

    assert result.valid and result.errors == []
    assert [c.id for c in dataset.cells] == ["1", "b", "c"]
    assert dataset.cells[1].y == 3.0
    assert dataset.cells[0].metadata["sample"] == StringValue("A")
    assert dataset.cells[0].metadata["nCount_RNA"] == NumberValue(1200.0)
    assert dataset.metadata.organism == "Mus musculus"
    assert dataset.differential_expression[0].log_fc == 2.1
    assert dataset.expression == {"MYH7": {"b": 3.5, "c": 0.25}}


def test_cluster_counts_are_recomputed():
    dataset, _ = parse_dataset_json(json.dumps(_raw_dataset()))
    counts = {c.id: c.cell_count for c in dataset.clusters}
    assert counts == {0: 1, 1: 2}
    assert dataset.metadata.cell_count == 3


def test_annotation_options_derived_from_string_metadata():
    dataset, _ = parse_dataset_json(json.dumps(_raw_dataset()))
    assert dataset.annotation_options == ["sample", "cell_type"]

    explicit, _ = parse_dataset_json(json.dumps(_raw_dataset(annotationOptions=["sample"])))
    assert explicit.annotation_options == ["sample"]


def test_missing_optional_fields_warn():
    raw = _raw_dataset()
    del raw["genes"]
    del raw["metadata"]
    dataset, result = parse_dataset_json(json.dumps(raw))

    assert result.valid
    assert any("genes" in w for w in result.warnings)
    assert any("metadata" in w for w in result.warnings)
    assert dataset.genes == []
    assert dataset.metadata.name == "Uploaded Dataset"


def test_unknown_cluster_reference_gets_default_entry():
    raw = _raw_dataset(clusters=[{"id": 0, "name": "T Cells", "color": "rgb(1,2,3)"}])
    dataset, result = parse_dataset_json(json.dumps(raw))

    assert any("missing from 'clusters'" in w for w in result.warnings)
    assert dataset.get_cluster(1).name == "Cluster 1"
    assert dataset.get_cluster(1).cell_count == 2


@pytest.mark.parametrize("overrides, message", [
    ({"cells": []}, "'cells' array is empty"),
    ({"cells": "nope"}, "Missing or invalid 'cells' array"),
    ({"cells": [{"id": "a", "x": "left", "y": 0, "cluster": 0}]}, "numeric 'x' and 'y'"),
    ({"cells": [{"id": "a", "x": 0, "y": 0, "cluster": "T"}]}, "numeric 'cluster'"),
    ({"clusters": None}, "Missing or invalid 'clusters' array"),
])
def test_hard_validation_errors(overrides, message):
    raw = _raw_dataset(**overrides)
    result = validate_dataset(raw)
    assert not result.valid
    assert any(message in e for e in result.errors)

    with pytest.raises(DatasetValidationError, match="Invalid dataset") as excinfo:
        parse_dataset_json(json.dumps(raw))
    assert excinfo.value.errors == result.errors


def test_non_object_json_is_invalid():
    assert not validate_dataset([1, 2, 3]).valid


def test_bad_json_raises_load_error():
    with pytest.raises(LoadError, match="Failed to parse JSON"):
        parse_dataset_json("{not json")


def test_load_dataset_from_file(tmp_path):
    path = tmp_path / "mini.json"
    path.write_text(json.dumps(_raw_dataset()), encoding="utf-8")
    dataset, result = load_dataset(path)
    assert dataset.n_cells == 3
    assert result.valid


def test_load_dataset_rejects_other_suffixes(tmp_path):
    path = tmp_path / "mini.csv"
    path.write_text("x,y\n", encoding="utf-8")
    with pytest.raises(LoadError, match="Only JSON files"):
        load_dataset(path)


def test_to_dict_is_reloadable():
    dataset, _ = parse_dataset_json(json.dumps(_raw_dataset()))
    reloaded, result = parse_dataset_json(json.dumps(dataset.to_dict()))

    assert result.warnings == []
    assert [c.id for c in reloaded.cells] == [c.id for c in dataset.cells]
    assert reloaded.cluster_colors() == dataset.cluster_colors()
    assert reloaded.expression == dataset.expression


@pytest.mark.parametrize("mutate, message", [
    (lambda d: d["cells"].append(5), "Cell entries must be objects (1 invalid, first at index 3)"),
    (lambda d: d["cells"][0].update(metadata="oops"), "Cell 'metadata' must be an object"),
    (lambda d: d["cells"][2].update(metadata={"sample": ["A"]}), "metadata values must be strings or numbers"),
    (lambda d: d["clusters"].append("Cl_2"), "Cluster entries must be objects"),
])
def test_wrongly_typed_entries_are_rejected(mutate, message):
    raw = _raw_dataset()
    mutate(raw)

    with pytest.raises(DatasetValidationError) as excinfo:
        parse_dataset_json(json.dumps(raw))
    assert any(message in e for e in excinfo.value.errors)


def test_wrongly_typed_optional_fields_do_not_crash():
    dataset, result = parse_dataset_json(json.dumps(_raw_dataset(
        genes=7,
        metadata="none",
        differentialExpression=[1, 2],
        cells=[{"id": "a", "x": 0, "y": 0, "cluster": 1e400}],
    )))

    assert result.valid
    assert dataset.genes == []
    assert dataset.cells[0].cluster == 0
    assert dataset.differential_expression == []
