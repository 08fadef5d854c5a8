"""Tests for AnnData -> dataset conversion."""

import anndata as ad
import numpy as np
import pandas as pd
import pytest

from cellcanvas.config import Config
from cellcanvas.data.anndata_import import dataset_from_anndata, load_h5ad
from cellcanvas.data.manager import DataManager
from cellcanvas.data.model import NumberValue, StringValue
from cellcanvas.state import Explorer


def _make_adata(n_obs=6):
    X = np.zeros((n_obs, 3), dtype=np.float32)
    X[0, 0] = 2.5
    X[3, 0] = 1.0
    X[:, 2] = 7.0
    obs = pd.DataFrame(
        {
            "leiden": pd.Categorical(["0", "1", "1", "2", "0", "2"][:n_obs]),
            "sample": ["A", "B", "A", "B", "A", "B"][:n_obs],
            "n_counts": np.arange(n_obs, dtype=float) * 100,
        },
        index=[f"cell{i}" for i in range(n_obs)],
    )
    var = pd.DataFrame(index=["MYH7", "CDH5", "GAPDH"])
    adata = ad.AnnData(X=X, obs=obs, var=var)
    adata.obsm["X_umap"] = np.column_stack([np.arange(n_obs, dtype=float), -np.arange(n_obs, dtype=float)])
    return adata


def test_dataset_from_anndata():
    dataset = dataset_from_anndata(_make_adata(), name="toy")

    assert dataset.metadata.name == "toy"
    assert dataset.n_cells == 6
    assert dataset.genes == ["MYH7", "CDH5", "GAPDH"]
    assert [c.name for c in dataset.clusters] == ["0", "1", "2"]
    assert [c.cell_count for c in dataset.clusters] == [2, 2, 2]

    cell = dataset.cells[3]
    assert (cell.id, cell.x, cell.y, cell.cluster) == ("cell3", 3.0, -3.0, 2)
    assert cell.metadata["sample"] == StringValue("B")
    assert cell.metadata["n_counts"] == NumberValue(300.0)
    assert cell.metadata["cell_type"] == StringValue("2")
    assert "leiden" not in cell.metadata


def test_annotation_options_include_categorical_columns():
    dataset = dataset_from_anndata(_make_adata())
    assert dataset.annotation_options[0] == "cell_type"
    assert "sample" in dataset.annotation_options
    assert "n_counts" not in dataset.annotation_options


def test_requested_genes_are_embedded_sparse():
    dataset = dataset_from_anndata(_make_adata(), expression_genes=["MYH7", "NOPE"])

    assert set(dataset.expression) == {"MYH7"}
    assert dataset.expression["MYH7"] == {"cell0": 2.5, "cell3": 1.0}


def test_missing_keys_raise():
    adata = _make_adata()
    with pytest.raises(ValueError, match="Unknown embedding"):
        dataset_from_anndata(adata, embedding_key="X_tsne")
    with pytest.raises(ValueError, match="Column not found"):
        dataset_from_anndata(adata, cluster_key="louvain")


def test_non_categorical_cluster_column():
    adata = _make_adata()
    adata.obs["leiden"] = adata.obs["leiden"].astype(str)
    dataset = dataset_from_anndata(adata)
    assert [c.name for c in dataset.clusters] == ["0", "1", "2"]


def test_h5ad_round_trip_through_manager(tmp_path):
    path = tmp_path / "toy.h5ad"
    _make_adata().write_h5ad(path)

    dataset, source = load_h5ad(path)
    assert dataset.metadata.name == "toy"
    assert dataset.n_cells == 6
    assert "MYH7" in source and "NOPE" not in source

    manager = DataManager(Config(data_path=path, seed=0))
    xs, ys = manager.coordinates
    assert xs.tolist() == [0.0, 1.0, 2.0, 3.0, 4.0, 5.0]
    assert manager.get_cell("cell5").cluster == 2
    assert manager.has_stored_expression


def test_h5ad_expression_is_read_from_x(tmp_path):
    n_obs = 40
    X = np.zeros((n_obs, 2), dtype=np.float32)
    X[:20, 0] = 7.0
    X[5, 1] = 0.5
    obs = pd.DataFrame(
        {"leiden": pd.Categorical(["0", "1"] * (n_obs // 2))},
        index=[f"c{i}" for i in range(n_obs)],
    )
    adata = ad.AnnData(X=X, obs=obs, var=pd.DataFrame(index=["GENEA", "GENEB"]))
    adata.obsm["X_umap"] = np.column_stack([np.arange(n_obs, dtype=float), np.zeros(n_obs)])
    path = tmp_path / "genes.h5ad"
    adata.write_h5ad(path)

    explorer = Explorer(Config(data_path=path, seed=0))
    explorer.update_settings(selected_gene="GENEA")
    values = explorer.expression_map

    assert values.to_dict() == {f"c{i}": 7.0 for i in range(20)}
    assert explorer.hover_info(explorer.dataset.cells[30])["expression"] == 0.0
    assert explorer.expression_bounds == (7.0, 7.0)

    explorer.select_gene("GENEB")
    assert explorer.expression_map.to_dict() == {"c5": 0.5}

    # Annotation edits keep the stored values
    assert explorer.merge_clusters([1], 0, "All")[0]
    explorer.select_gene("GENEA")
    assert explorer.expression_map.to_dict() == {f"c{i}": 7.0 for i in range(20)}


def test_h5ad_unknown_gene_falls_back_to_synthesis(tmp_path):
    path = tmp_path / "toy.h5ad"
    _make_adata().write_h5ad(path)
    manager = DataManager(Config(data_path=path, seed=0))

    assert manager.get_gene_expression("CDH5").empty
    synthesized = manager.get_gene_expression("NOT_A_GENE")
    assert len(synthesized) == 6
    assert (synthesized >= 0).all()


def test_unassigned_cells_get_their_own_cluster():
    adata = _make_adata()
    adata.obs["leiden"] = pd.Categorical(["0", None, "1", "1", "0", None])
    dataset = dataset_from_anndata(adata)

    assert [c.name for c in dataset.clusters] == ["0", "1", "NA"]
    assert [c.cell_count for c in dataset.clusters] == [2, 2, 2]
    cell = dataset.cells[1]
    assert cell.cluster == 2
    assert cell.metadata["cell_type"] == StringValue("NA")


def test_existing_cell_type_column_is_not_listed_twice():
    adata = _make_adata()
    adata.obs["cell_type"] = pd.Categorical(["a", "b", "a", "b", "a", "b"])
    dataset = dataset_from_anndata(adata)

    assert dataset.annotation_options.count("cell_type") == 1
    assert dataset.cells[0].metadata["cell_type"] == StringValue("0")
