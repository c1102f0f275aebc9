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

from landsig.compare import cluster as cl
from landsig.signatures.collection import build_collection, merge_collections

FOREST = [[0.9, 0.1, 0.0], [0.95, 0.05, 0.0], [0.85, 0.15, 0.0]]
WATER = [[0.0, 0.1, 0.9], [0.0, 0.05, 0.95], [0.0, 0.15, 0.85]]


def test_two_obvious_groups():
    coll = build_collection(FOREST + WATER)
    res = cl.cluster_signatures(coll, 2)
    assert res.n_clusters == 2
    assert res.labels.tolist() == [0, 0, 0, 1, 1, 1]
    # the middle-of-the-road tile of each group is its medoid
    assert res.medoids == [0, 3]


def test_merged_regions_cluster_across_sources():
    a = build_collection(FOREST[:2] + WATER[:1], ids=["f0", "f1", "w0"])
    b = build_collection(FOREST[2:] + WATER[1:], ids=["f2", "w1", "w2"])
    pool = merge_collections(a, b)
    frame = cl.cluster_signatures(pool, 2).to_frame()
    by_id = dict(zip(frame["tile_id"], frame["cluster"]))
    assert by_id["A:f0"] == by_id["A:f1"] == by_id["B:f2"]
    assert by_id["A:w0"] == by_id["B:w1"] == by_id["B:w2"]
    assert by_id["A:f0"] != by_id["A:w0"]
    assert frame["is_medoid"].sum() == 2


def test_single_cluster_and_single_tile():
    coll = build_collection(FOREST + WATER)
    res = cl.cluster_signatures(coll, 1)
    assert set(res.labels.tolist()) == {0}
    assert len(res.medoids) == 1

    one = cl.cluster_signatures(build_collection([[0.5, 0.5]]), 1)
    assert one.labels.tolist() == [0]
    assert one.medoids == [0]


def test_k_out_of_range():
    coll = build_collection(FOREST)
    with pytest.raises(ValueError):
        cl.cluster_signatures(coll, 0)
    with pytest.raises(ValueError):
        cl.cluster_signatures(coll, 4)


def test_custom_cluster_fn_receives_square_matrix():
    seen = {}

    def everything_together(d, k):
        seen["shape"] = d.shape
        seen["k"] = k
        seen["diag"] = np.diag(d).copy()
        return np.zeros(d.shape[0], dtype=int), [0]

    coll = build_collection(FOREST + WATER)
    res = cl.cluster_signatures(coll, 3, cluster_fn=everything_together)
    assert seen["shape"] == (6, 6)
    assert seen["k"] == 3
    assert (seen["diag"] == 0).all()
    assert res.medoids == [0]
