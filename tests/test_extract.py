#!/usr/bin/env python3

from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
import pytest

# Ensure we can import from src without installing the package
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

from landsig.signatures import extract as ex

GRID = np.array([
    [1, 1, 2, 2],
    [1, 1, 2, 2],
    [1, 2, 0, 0],
    [2, 1, 0, 0],
])


def test_composition_tiles_row_major():
    sigs = ex.extract_signatures(GRID, [1, 2], window=2, nodata=0)
    assert sigs.ids == ["r0_c0", "r0_c1", "r1_c0", "r1_c1"]
    assert sigs.categories == ["1", "2"]
    np.testing.assert_allclose(sigs.vectors[0], [1.0, 0.0])
    np.testing.assert_allclose(sigs.vectors[1], [0.0, 1.0])
    np.testing.assert_allclose(sigs.vectors[2], [0.5, 0.5])
    assert np.isnan(sigs.vectors[3]).all()
    assert sigs.index["nodata_share"].tolist() == [0.0, 0.0, 0.0, 1.0]


def test_composition_follows_legend_order():
    sigs = ex.extract_signatures(GRID, [2, 1], window=4, nodata=0, max_nodata_share=1.0)
    assert sigs.categories == ["2", "1"]
    # 6 cells of code 2, 6 of code 1, 4 nodata
    np.testing.assert_allclose(sigs.vectors[0], [0.5, 0.5])


def test_edge_tiles_count_outside_cells_as_nodata():
    grid = np.ones((3, 3), dtype=int)
    sigs = ex.extract_signatures(grid, [1], window=2)
    assert len(sigs.ids) == 4
    # bottom-right tile only has one real cell
    assert sigs.index["valid_cells"].tolist() == [4, 2, 2, 1]
    assert np.isnan(sigs.vectors[3]).all()

    loose = ex.extract_signatures(grid, [1], window=2, max_nodata_share=1.0)
    np.testing.assert_allclose(loose.vectors[:, 0], [1.0, 1.0, 1.0, 1.0])


def test_unknown_codes_are_nodata():
    grid = np.array([[1, 9], [2, 9]])
    sigs = ex.extract_signatures(grid, [1, 2], window=2)
    np.testing.assert_allclose(sigs.vectors[0], [0.5, 0.5])
    assert sigs.index.loc[0, "nodata_share"] == pytest.approx(0.5)


def test_cove_is_symmetric_and_normalised():
    sigs = ex.extract_signatures(GRID, [1, 2], window=2, kind="cove", nodata=0)
    assert sigs.categories == ["1|1", "1|2", "2|1", "2|2"]
    np.testing.assert_allclose(sigs.vectors[0], [1.0, 0.0, 0.0, 0.0])
    np.testing.assert_allclose(sigs.vectors[2], [0.0, 0.5, 0.5, 0.0])

    defined = sigs.vectors[~np.isnan(sigs.vectors).all(axis=1)]
    np.testing.assert_allclose(defined.sum(axis=1), 1.0)
    for v in defined:
        mat = v.reshape(2, 2)
        np.testing.assert_allclose(mat, mat.T)


def test_to_frame_layout():
    frame = ex.extract_signatures(GRID, [1, 2], window=2, nodata=0).to_frame()
    assert list(frame.columns) == ["tile_id", "row", "col", "1", "2"]
    assert frame["row"].tolist() == [0, 0, 1, 1]
    assert frame["col"].tolist() == [0, 1, 0, 1]


def test_bad_arguments():
    with pytest.raises(ValueError):
        ex.extract_signatures(np.ones(4), [1])
    with pytest.raises(ValueError):
        ex.extract_signatures(GRID, [1, 2], window=0)
    with pytest.raises(ValueError):
        ex.extract_signatures(GRID, [1, 2], kind="texture")
    with pytest.raises(ValueError):
        ex.extract_signatures(GRID, [])
