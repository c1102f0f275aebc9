#!/usr/bin/env python3
"""divergence.py

Pairwise Jensen-Shannon divergence between two signature collections.

JSD(P, Q) = 1/2 KL(P || M) + 1/2 KL(Q || M),  M = (P + Q) / 2

Natural log throughout, so every value lies in [0, ln 2]. Zero probabilities
follow the 0 * log(0 / x) = 0 convention via scipy.special.rel_entr.

The matrix is filled as an independent map over row batches: the output is
allocated once and each batch writes its own slice, so batches can run on a
thread pool without locks. A threading.Event can stop the run between batches.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Tuple

import numpy as np
from scipy.special import rel_entr

from landsig.errors import (
    ComparisonCancelled,
    DimensionMismatch,
    EmptyCollection,
    InvalidDistribution,
)
from landsig.signatures.collection import SignatureCollection, check_compatible


LN2 = float(np.log(2.0))


# -----------------------------------------------------------------------------
# Row kernels
# -----------------------------------------------------------------------------
# Each kernel compares one distribution p (K,) against every row of qs (C, K).

def _jsd_rows(p: np.ndarray, qs: np.ndarray) -> np.ndarray:
    m = 0.5 * (p + qs)
    js = 0.5 * rel_entr(p, m).sum(axis=-1) + 0.5 * rel_entr(qs, m).sum(axis=-1)
    return np.clip(js, 0.0, LN2)


def _jsd_rows_partial(p: np.ndarray, qs: np.ndarray) -> np.ndarray:
    """JSD over jointly-defined categories, renormalised per pair.

    Pairs with no jointly-defined mass on either side get ln 2.
    """
    joint = ~np.isnan(p) & ~np.isnan(qs)
    pj = np.where(joint, p, 0.0)
    qj = np.where(joint, qs, 0.0)
    ps = pj.sum(axis=-1, keepdims=True)
    qsum = qj.sum(axis=-1, keepdims=True)
    empty = (ps[:, 0] <= 0) | (qsum[:, 0] <= 0)

    with np.errstate(invalid="ignore", divide="ignore"):
        pj = pj / ps
        qj = qj / qsum
    pj[empty] = 0.0
    qj[empty] = 0.0

    js = _jsd_rows(pj, qj)
    js[empty] = LN2
    return js


def _normalize_rows(v: np.ndarray) -> np.ndarray:
    # Collections are validated to sum ~1; this only removes tolerance drift.
    return v / v.sum(axis=-1, keepdims=True)


# -----------------------------------------------------------------------------
# Public API
# -----------------------------------------------------------------------------

def jensen_shannon(p, q, *, sum_tolerance: float = 1e-3) -> float:
    """Jensen-Shannon divergence (natural log) between two distributions.

    Inputs are checked like build_collection does: a fully-defined vector must
    sum to 1 within `sum_tolerance`. NaN entries are handled like the "partial"
    missing policy: only categories defined in both vectors count.
    """
    p = np.asarray(p, dtype=float)
    q = np.asarray(q, dtype=float)
    if p.ndim != 1 or p.shape != q.shape:
        raise DimensionMismatch(f"Distributions must be 1-D and equal length: {p.shape} vs {q.shape}")
    if p.size == 0:
        raise EmptyCollection("Distributions have zero categories")
    for v in (p, q):
        undefined = np.isnan(v)
        defined = v[~undefined]
        total = defined.sum()
        if undefined.any():
            sum_ok = 0 < total <= 1.0 + sum_tolerance
        else:
            sum_ok = abs(total - 1.0) <= sum_tolerance
        if (defined < 0).any() or not np.isfinite(defined).all() or not sum_ok:
            raise InvalidDistribution(f"Not a distribution: {v.tolist()} (sum={total:.6g})")

    if np.isnan(p).any() or np.isnan(q).any():
        return float(_jsd_rows_partial(p, q[None, :])[0])
    return float(_jsd_rows(_normalize_rows(p), _normalize_rows(q)[None, :])[0])


def _row_batches(n: int, batch_rows: int) -> List[Tuple[int, int]]:
    return [(s, min(s + batch_rows, n)) for s in range(0, n, batch_rows)]


def divergence_matrix(
    a: SignatureCollection,
    b: SignatureCollection,
    *,
    workers: int = 1,
    batch_rows: int = 256,
    cancel: Optional[threading.Event] = None,
) -> np.ndarray:
    """Build the R x C JSD matrix between collections a (rows) and b (columns).

    Args:
        a, b: Validated collections sharing the same category order.
        workers: Threads used for row batches (1 = run inline).
        batch_rows: Rows per batch; the cancel event is checked per batch.
        cancel: Optional event; once set, raises ComparisonCancelled.

    Raises:
        DimensionMismatch: widths or category order differ.
        EmptyCollection: either side has zero tiles.
        ComparisonCancelled: cancel was set before the matrix completed.
    """
    check_compatible(a, b)
    if a.size == 0 or b.size == 0:
        raise EmptyCollection(f"Cannot compare {a.size} x {b.size} tiles")
    if workers < 1 or batch_rows < 1:
        raise ValueError("workers and batch_rows must be >= 1")

    partial = a.has_undefined or b.has_undefined
    if partial:
        av, bv = a.vectors, b.vectors
        kernel: Callable[[np.ndarray, np.ndarray], np.ndarray] = _jsd_rows_partial
    else:
        av, bv = _normalize_rows(a.vectors), _normalize_rows(b.vectors)
        kernel = _jsd_rows

    out = np.empty((a.size, b.size), dtype=float)

    def run(bounds: Tuple[int, int]) -> None:
        if cancel is not None and cancel.is_set():
            raise ComparisonCancelled("Divergence computation cancelled")
        start, stop = bounds
        for i in range(start, stop):
            out[i] = kernel(av[i], bv)

    batches = _row_batches(a.size, batch_rows)
    if workers == 1 or len(batches) == 1:
        for bounds in batches:
            run(bounds)
        return out

    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(run, bounds) for bounds in batches]
        try:
            for f in futures:
                f.result()
        except BaseException:
            for f in futures:
                f.cancel()
            raise

    return out
