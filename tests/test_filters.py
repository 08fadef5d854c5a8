"""Tests for the cell filter."""

import numpy as np

from cellcanvas.data.filters import CellFilterState, filter_cells, filter_mask
from cellcanvas.data.model import Cell, StringValue


def _make_cells():
    cells = []
    for i in range(30):
        cells.append(Cell(
            id=f"c{i}",
            x=float(i),
            y=float(-i),
            cluster=i % 3,
            metadata={"sample": StringValue(f"Sample_{i % 2 + 1}")},
        ))
    cells.append(Cell(id="no_sample", x=0.0, y=0.0, cluster=0))
    return cells


def test_empty_filter_keeps_everything():
    cells = _make_cells()
    result = filter_cells(cells, CellFilterState())
    assert result == cells
    assert result is not cells


def test_samples_and_clusters_are_combined():
    cells = _make_cells()
    cell_filter = CellFilterState(selected_samples=("Sample_1",), selected_clusters=(0, 1))
    result = filter_cells(cells, cell_filter)

    assert result
    assert all(c.sample == "Sample_1" and c.cluster in (0, 1) for c in result)
    assert len(result) == sum(1 for i in range(30) if i % 2 == 0 and i % 3 in (0, 1))


def test_cells_without_sample_fail_sample_filter():
    cells = _make_cells()
    result = filter_cells(cells, CellFilterState(selected_samples=("Sample_1", "Sample_2")))
    assert "no_sample" not in {c.id for c in result}
    assert "no_sample" in {c.id for c in filter_cells(cells, CellFilterState(selected_clusters=(0,)))}


def test_filter_preserves_order():
    cells = _make_cells()
    result = filter_cells(cells, CellFilterState(selected_clusters=(2,)))
    assert [c.id for c in result] == [f"c{i}" for i in range(30) if i % 3 == 2]


def test_filter_idempotence():
    cells = _make_cells()
    cell_filter = CellFilterState(selected_samples=("Sample_2",), selected_clusters=(1,))
    once = filter_cells(cells, cell_filter)
    twice = filter_cells(once, cell_filter)
    assert twice == once


def test_mask_matches_list():
    cells = _make_cells()
    cell_filter = CellFilterState(selected_clusters=(0,))
    mask = filter_mask(cells, cell_filter)
    assert [c for c, keep in zip(cells, mask) if keep] == filter_cells(cells, cell_filter)
    assert filter_mask(cells, CellFilterState()).all()
    assert mask.dtype == np.bool_


def test_filter_state_serialization():
    state = CellFilterState.from_dict({"selectedSamples": ["A"], "selectedClusters": ["3"]})
    assert state.selected_clusters == (3,)
    assert state.to_dict() == {"selectedSamples": ["A"], "selectedClusters": [3]}
    assert not state.is_empty
    assert CellFilterState().is_empty
