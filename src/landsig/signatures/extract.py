#!/usr/bin/env python3
"""extract.py

Turn an in-memory categorical land-cover grid into per-tile signatures.

The grid is cut into `window x window` tiles, row-major. Edge tiles are kept;
cells past the grid extent count as nodata, the same as explicit nodata cells
and cells whose code is not in the category legend. A tile whose nodata share
exceeds `max_nodata_share` gets an all-NaN vector (undefined), which the
collection's missing policy later decides what to do with.

Signature kinds:
- "composition": share of each category among the tile's valid cells (K values).
- "cove": symmetric co-occurrence of rook-adjacent valid cell pairs,
  normalised to sum 1 (K*K values, labelled "a|b").

Reading rasters from disk is not this module's job. Callers hand over an ndarray.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd


@dataclass
class TileSignatures:
    """Raw extraction output, before validation."""

    ids: List[str]
    vectors: np.ndarray  # (T, K) or (T, K*K); NaN rows are undefined tiles
    categories: List[str]
    index: pd.DataFrame  # tile_id, row, col, valid_cells, nodata_share

    def to_frame(self) -> pd.DataFrame:
        """Signature table: tile_id, row, col, then one column per category."""
        values = pd.DataFrame(self.vectors, columns=self.categories)
        meta = self.index[["tile_id", "row", "col"]].reset_index(drop=True)
        return pd.concat([meta, values], axis=1)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def _category_index(grid: np.ndarray, codes: Sequence[int], nodata: Optional[int]) -> np.ndarray:
    """Map raw codes to 0..K-1 in legend order; -1 marks nodata/unknown cells."""
    codes_arr = np.asarray(list(codes), dtype=np.int64)
    order = np.argsort(codes_arr, kind="stable")
    sorted_codes = codes_arr[order]

    pos = np.clip(np.searchsorted(sorted_codes, grid), 0, len(codes_arr) - 1)
    hit = sorted_codes[pos] == grid

    idx = np.full(grid.shape, -1, dtype=np.int64)
    idx[hit] = order[pos[hit]]
    if nodata is not None:
        idx[grid == nodata] = -1
    return idx


def _tiles(idx: np.ndarray, window: int):
    """Pad to whole tiles with -1 and return (tiles[T, w, w], n_rows, n_cols)."""
    h, w = idx.shape
    n_rows = -(-h // window)
    n_cols = -(-w // window)
    padded = np.pad(
        idx,
        ((0, n_rows * window - h), (0, n_cols * window - w)),
        constant_values=-1,
    )
    tiles = (
        padded.reshape(n_rows, window, n_cols, window)
        .transpose(0, 2, 1, 3)
        .reshape(n_rows * n_cols, window, window)
    )
    return tiles, n_rows, n_cols


def _composition(tiles: np.ndarray, k: int) -> np.ndarray:
    t = tiles.shape[0]
    flat = tiles.reshape(t, -1)
    valid = flat >= 0
    tile_of = np.broadcast_to(np.arange(t)[:, None], flat.shape)
    counts = np.bincount((tile_of[valid] * k + flat[valid]), minlength=t * k)
    return counts.reshape(t, k).astype(float)


def _cove(tiles: np.ndarray, k: int) -> np.ndarray:
    t = tiles.shape[0]
    tile_of = np.arange(t)[:, None, None]
    counts = np.zeros(t * k * k, dtype=np.int64)

    # horizontal then vertical neighbours; each pair counted both ways
    for a, b in (
        (tiles[:, :, :-1], tiles[:, :, 1:]),
        (tiles[:, :-1, :], tiles[:, 1:, :]),
    ):
        ok = (a >= 0) & (b >= 0)
        base = np.broadcast_to(tile_of, a.shape)[ok] * (k * k)
        av, bv = a[ok], b[ok]
        counts += np.bincount(base + av * k + bv, minlength=t * k * k)
        counts += np.bincount(base + bv * k + av, minlength=t * k * k)

    return counts.reshape(t, k * k).astype(float)


# -----------------------------------------------------------------------------
# Core function
# -----------------------------------------------------------------------------

def extract_signatures(
    grid: np.ndarray,
    categories: Sequence[int],
    *,
    window: int = 100,
    kind: str = "composition",
    nodata: Optional[int] = None,
    max_nodata_share: float = 0.5,
) -> TileSignatures:
    """Compute one signature per tile of `grid`.

    Args:
        grid: 2-D array of raw category codes.
        categories: Category codes; their order fixes the signature layout.
        window: Tile edge length in cells.
        kind: "composition" or "cove".
        nodata: Raw code to treat as missing (optional).
        max_nodata_share: Tiles with a larger nodata share become undefined.

    Returns:
        TileSignatures with ids "r{row}_c{col}" in row-major order.
    """
    grid = np.asarray(grid)
    if grid.ndim != 2:
        raise ValueError(f"Expected a 2-D grid, got shape {grid.shape}")
    if grid.size == 0:
        raise ValueError("Grid is empty")
    if window < 1:
        raise ValueError(f"window must be >= 1 (got {window})")
    if not categories:
        raise ValueError("Need at least one category code")

    k = len(categories)
    idx = _category_index(grid, categories, nodata)
    tiles, n_rows, n_cols = _tiles(idx, window)

    valid_cells = (tiles >= 0).reshape(tiles.shape[0], -1).sum(axis=1)
    nodata_share = 1.0 - valid_cells / float(window * window)

    if kind == "composition":
        counts = _composition(tiles, k)
        labels = [str(c) for c in categories]
    elif kind == "cove":
        counts = _cove(tiles, k)
        labels = [f"{a}|{b}" for a in categories for b in categories]
    else:
        raise ValueError(f"Unknown signature kind: {kind}")

    totals = counts.sum(axis=1)
    undefined = (nodata_share > max_nodata_share) | (totals == 0)

    with np.errstate(invalid="ignore", divide="ignore"):
        vectors = counts / totals[:, None]
    vectors[undefined] = np.nan

    rows = np.repeat(np.arange(n_rows), n_cols)
    cols = np.tile(np.arange(n_cols), n_rows)
    ids = [f"r{r}_c{c}" for r, c in zip(rows, cols)]

    index = pd.DataFrame({
        "tile_id": ids,
        "row": rows,
        "col": cols,
        "valid_cells": valid_cells,
        "nodata_share": nodata_share,
    })

    return TileSignatures(ids=ids, vectors=vectors, categories=labels, index=index)
