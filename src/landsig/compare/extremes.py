#!/usr/bin/env python3
"""extremes.py

Reduce a divergence matrix to best-match distances and find the most
distinctive tile on each side.

For matrix M (R x C):
- row_min[i] = min_j M[i, j]   how close tile i of A gets to anything in B
- col_min[j] = min_i M[i, j]   how close tile j of B gets to anything in A
- argmax_row = argmax_i row_min[i]   the A tile least like anything in B
- argmax_col = argmax_j col_min[j]   the B tile least like anything in A

Ties always go to the lowest index so repeated runs pick the same tile.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd

from landsig.compare.divergence import divergence_matrix
from landsig.errors import DimensionMismatch, EmptyCollection
from landsig.signatures.collection import SignatureCollection


@dataclass(frozen=True)
class Extremes:
    row_min: np.ndarray
    col_min: np.ndarray
    argmax_row: int
    argmax_col: int


def first_argmax(v) -> int:
    """Index of the maximum; the first one wins on ties."""
    v = np.asarray(v, dtype=float)
    if v.size == 0:
        raise EmptyCollection("Cannot take argmax of an empty vector")
    # np.argmax already returns the first occurrence
    return int(np.argmax(v))


def reduce_minima(m) -> Tuple[np.ndarray, np.ndarray]:
    """Row-wise and column-wise minima of a 2-D matrix."""
    m = np.asarray(m, dtype=float)
    if m.ndim != 2:
        raise DimensionMismatch(f"Expected a 2-D matrix, got shape {m.shape}")
    if m.shape[0] == 0 or m.shape[1] == 0:
        raise EmptyCollection(f"Divergence matrix is empty: shape {m.shape}")
    return m.min(axis=1), m.min(axis=0)


def extremal_search(m) -> Extremes:
    row_min, col_min = reduce_minima(m)
    return Extremes(
        row_min=row_min,
        col_min=col_min,
        argmax_row=first_argmax(row_min),
        argmax_col=first_argmax(col_min),
    )


# -----------------------------------------------------------------------------
# Comparison result
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class ComparisonResult:
    """Everything one A-vs-B comparison produces."""

    a: SignatureCollection
    b: SignatureCollection
    matrix: np.ndarray
    extremes: Extremes

    @property
    def unique_a(self) -> str:
        return self.a.ids[self.extremes.argmax_row]

    @property
    def unique_b(self) -> str:
        return self.b.ids[self.extremes.argmax_col]

    def summary(self) -> Dict[str, object]:
        """JSON-friendly summary of the run."""
        ex = self.extremes
        return {
            "a": {
                "name": self.a.name,
                "tiles": self.a.size,
                "excluded": self.a.excluded_count(),
                "unique_tile": self.unique_a,
                "unique_index": ex.argmax_row,
                "unique_min_divergence": float(ex.row_min[ex.argmax_row]),
            },
            "b": {
                "name": self.b.name,
                "tiles": self.b.size,
                "excluded": self.b.excluded_count(),
                "unique_tile": self.unique_b,
                "unique_index": ex.argmax_col,
                "unique_min_divergence": float(ex.col_min[ex.argmax_col]),
            },
            "categories": list(self.a.categories),
        }

    def to_frames(self, labels: Optional[Dict[str, str]] = None) -> Tuple[pd.DataFrame, pd.DataFrame]:
        """Per-tile tables for A and B, most unique first.

        `labels` maps category column -> readable name for the `dominant` column.
        """
        fa = _side_frame(self.a, self.b, self.matrix, self.extremes.row_min, labels)
        fb = _side_frame(self.b, self.a, self.matrix.T, self.extremes.col_min, labels)
        return fa, fb


def _side_frame(
    own: SignatureCollection,
    other: SignatureCollection,
    m: np.ndarray,
    minima: np.ndarray,
    labels: Optional[Dict[str, str]],
) -> pd.DataFrame:
    nearest = m.argmin(axis=1)
    # stable sort keeps first-occurrence order among ties, matching first_argmax
    order = np.argsort(-minima, kind="stable")
    rank = np.empty(len(minima), dtype=int)
    rank[order] = np.arange(1, len(minima) + 1)

    dominant_idx = np.nanargmax(own.vectors, axis=1)
    dominant = [own.categories[i] for i in dominant_idx]
    if labels:
        dominant = [labels.get(c, c) for c in dominant]

    df = pd.DataFrame({
        "tile_id": own.ids,
        "nearest_id": [other.ids[j] for j in nearest],
        "min_divergence": minima,
        "dominant": dominant,
        "rank": rank,
    })
    return df.sort_values("rank").reset_index(drop=True)


def compare_collections(
    a: SignatureCollection,
    b: SignatureCollection,
    *,
    workers: int = 1,
    batch_rows: int = 256,
    cancel: Optional[threading.Event] = None,
) -> ComparisonResult:
    """Divergence matrix + extremal search in one call."""
    m = divergence_matrix(a, b, workers=workers, batch_rows=batch_rows, cancel=cancel)
    return ComparisonResult(a=a, b=b, matrix=m, extremes=extremal_search(m))


def rank_unique(
    result: ComparisonResult,
    side: str = "a",
    n: int = 10,
    labels: Optional[Dict[str, str]] = None,
) -> pd.DataFrame:
    """Top-n most distinctive tiles of one side, largest best-match distance first."""
    if side not in ("a", "b"):
        raise ValueError(f"side must be 'a' or 'b' (got {side!r})")
    if n < 1:
        raise ValueError(f"n must be >= 1 (got {n})")
    fa, fb = result.to_frames(labels)
    return (fa if side == "a" else fb).head(n).reset_index(drop=True)
