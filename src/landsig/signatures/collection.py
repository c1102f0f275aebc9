#!/usr/bin/env python3
"""collection.py

Signature collections: the validated input to every comparison.

A collection is an ordered set of tiles, each with a fixed-width
probability-like vector over the same ordered category list. All data
checks happen here, once, so the O(R*C) divergence loop never sees a bad row.

Missing-data policy (`missing_policy`):
- "exclude" (default): any tile with a NaN entry is dropped and recorded.
- "partial": tiles keep their NaNs; divergence is computed over the categories
  both tiles define. Tiles with no defined entry at all are still dropped.
- "error": the first NaN raises UndefinedEntry.

Invalid-distribution policy (`invalid_policy`):
- "exclude" (default): negative or badly-normalised tiles are dropped and counted.
- "error": raise InvalidDistribution.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np

from landsig.errors import (
    DimensionMismatch,
    EmptyCollection,
    InvalidDistribution,
    UndefinedEntry,
)


@dataclass(frozen=True)
class SignatureCollection:
    """Validated tiles ready for comparison."""

    ids: List[str]
    vectors: np.ndarray  # (R, K) float64
    categories: List[str]
    excluded: Dict[str, str] = field(default_factory=dict)  # tile id -> reason
    name: str = ""

    @property
    def size(self) -> int:
        return int(self.vectors.shape[0])

    @property
    def width(self) -> int:
        return int(self.vectors.shape[1])

    @property
    def has_undefined(self) -> bool:
        return bool(np.isnan(self.vectors).any())

    def excluded_count(self, reason: Optional[str] = None) -> int:
        if reason is None:
            return len(self.excluded)
        return sum(1 for r in self.excluded.values() if r == reason)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def _as_matrix(vectors) -> np.ndarray:
    """Coerce input rows to a 2-D float array, rejecting ragged rows."""
    if isinstance(vectors, np.ndarray):
        arr = vectors.astype(float, copy=False)
        if arr.ndim == 1:
            arr = arr.reshape(1, -1)
        if arr.ndim != 2:
            raise DimensionMismatch(f"Expected a 2-D array of signatures, got shape {arr.shape}")
        return arr

    rows = [list(v) for v in vectors]
    widths = {len(r) for r in rows}
    if len(widths) > 1:
        raise DimensionMismatch(f"Signatures have differing widths: {sorted(widths)}")
    return np.asarray(rows, dtype=float)


def _report(name: str, kept: int, excluded: Dict[str, str]) -> None:
    n_undef = sum(1 for r in excluded.values() if r == "undefined")
    n_invalid = sum(1 for r in excluded.values() if r == "invalid")
    label = f" {name}" if name else ""
    print(
        f"[SIGNATURES]{label}: kept {kept}, excluded {len(excluded)} "
        f"(undefined={n_undef}, invalid={n_invalid})"
    )


# -----------------------------------------------------------------------------
# Core functions
# -----------------------------------------------------------------------------

def build_collection(
    vectors,
    ids: Optional[Sequence[str]] = None,
    categories: Optional[Sequence[str]] = None,
    *,
    name: str = "",
    missing_policy: str = "exclude",
    invalid_policy: str = "exclude",
    sum_tolerance: float = 1e-3,
) -> SignatureCollection:
    """Validate raw signature rows and apply the missing/invalid policies.

    Args:
        vectors: (R, K) array or sequence of equal-length sequences.
        ids: Tile identifiers (default: "0".."R-1").
        categories: Category labels in column order (default: "0".."K-1").
        name: Optional collection name, used in the printed report.
        missing_policy: "exclude", "partial" or "error".
        invalid_policy: "exclude" or "error".
        sum_tolerance: Allowed |sum - 1| for a fully-defined tile.

    Returns:
        A SignatureCollection holding only the kept tiles.

    Raises:
        EmptyCollection: no input rows, or every tile was excluded.
        DimensionMismatch: ragged rows or category count != width.
        UndefinedEntry: NaNs present and missing_policy == "error".
        InvalidDistribution: bad tile and invalid_policy == "error".
    """
    if missing_policy not in ("exclude", "partial", "error"):
        raise ValueError(f"Unknown missing_policy: {missing_policy}")
    if invalid_policy not in ("exclude", "error"):
        raise ValueError(f"Unknown invalid_policy: {invalid_policy}")

    if len(vectors) == 0:
        raise EmptyCollection(f"Collection {name or '?'} has no tiles")

    arr = _as_matrix(vectors)
    n, k = arr.shape
    if k == 0:
        raise DimensionMismatch("Signatures have zero categories")

    ids = [str(i) for i in range(n)] if ids is None else [str(i) for i in ids]
    if len(ids) != n:
        raise ValueError(f"Got {len(ids)} ids for {n} signatures")
    if len(set(ids)) != n:
        raise ValueError("Tile ids must be unique within a collection")

    categories = [str(c) for c in range(k)] if categories is None else [str(c) for c in categories]
    if len(categories) != k:
        raise DimensionMismatch(f"{len(categories)} category labels for signatures of width {k}")

    # --- Missing data ---
    undefined = np.isnan(arr)
    any_undef = undefined.any(axis=1)
    all_undef = undefined.all(axis=1)

    if missing_policy == "error" and any_undef.any():
        bad = ids[int(np.flatnonzero(any_undef)[0])]
        raise UndefinedEntry(f"Tile {bad} has undefined category entries")

    drop_undef = all_undef if missing_policy == "partial" else any_undef

    # --- Distribution checks (defined entries only) ---
    defined = np.where(undefined, 0.0, arr)
    bad_values = (defined < 0).any(axis=1) | ~np.isfinite(defined).all(axis=1)
    sums = defined.sum(axis=1)
    # Fully-defined rows must sum to ~1; partial rows only need some mass and no excess.
    sum_ok = np.where(
        any_undef,
        (sums > 0) & (sums <= 1.0 + sum_tolerance),
        np.abs(sums - 1.0) <= sum_tolerance,
    )
    invalid = ~drop_undef & (bad_values | ~sum_ok)

    if invalid_policy == "error" and invalid.any():
        i = int(np.flatnonzero(invalid)[0])
        raise InvalidDistribution(f"Tile {ids[i]} is not a distribution (sum={sums[i]:.6g})")

    excluded: Dict[str, str] = {}
    for i in np.flatnonzero(drop_undef):
        excluded[ids[i]] = "undefined"
    for i in np.flatnonzero(invalid):
        excluded[ids[i]] = "invalid"

    keep = ~(drop_undef | invalid)
    if not keep.any():
        raise EmptyCollection(
            f"Collection {name or '?'} has no usable tiles "
            f"({len(excluded)} excluded of {n})"
        )

    if excluded:
        _report(name, int(keep.sum()), excluded)

    return SignatureCollection(
        ids=[ids[i] for i in np.flatnonzero(keep)],
        vectors=np.ascontiguousarray(arr[keep]),
        categories=categories,
        excluded=excluded,
        name=name,
    )


def check_compatible(a: SignatureCollection, b: SignatureCollection) -> None:
    """Raise DimensionMismatch unless a and b share width and category order."""
    if a.width != b.width:
        raise DimensionMismatch(f"Signature widths differ: {a.width} vs {b.width}")
    if list(a.categories) != list(b.categories):
        raise DimensionMismatch(
            "Category ordering differs between collections.\n"
            f"  {a.name or 'a'}: {a.categories}\n"
            f"  {b.name or 'b'}: {b.categories}"
        )


def merge_collections(
    a: SignatureCollection,
    b: SignatureCollection,
    prefixes: Sequence[str] = ("A:", "B:"),
) -> SignatureCollection:
    """Stack two compatible collections into one, prefixing ids by origin.

    Used for the merged clustering pass, where both regions share one tile pool.
    """
    check_compatible(a, b)
    pa, pb = prefixes
    excluded = {pa + k: v for k, v in a.excluded.items()}
    excluded.update({pb + k: v for k, v in b.excluded.items()})
    return SignatureCollection(
        ids=[pa + i for i in a.ids] + [pb + i for i in b.ids],
        vectors=np.vstack([a.vectors, b.vectors]),
        categories=list(a.categories),
        excluded=excluded,
        name=f"{a.name or 'a'}+{b.name or 'b'}",
    )
