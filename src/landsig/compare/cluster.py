#!/usr/bin/env python3
"""cluster.py

Group tiles of a (usually merged A+B) collection by signature similarity.

The grouping itself is delegated to a clustering routine that takes a square
divergence matrix and k and returns (labels, medoid indices). The default is
scipy hierarchical clustering cut at k clusters, with each cluster's medoid
taken as the member with the smallest summed divergence to the rest.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import numpy as np
import pandas as pd
from scipy.cluster.hierarchy import fcluster, linkage
from scipy.spatial.distance import squareform

from landsig.compare.divergence import divergence_matrix
from landsig.signatures.collection import SignatureCollection


ClusterFn = Callable[[np.ndarray, int], Tuple[np.ndarray, List[int]]]


@dataclass(frozen=True)
class ClusterResult:
    ids: List[str]
    labels: np.ndarray  # 0-based cluster per tile
    medoids: List[int]  # tile index of each cluster's medoid, by cluster number

    @property
    def n_clusters(self) -> int:
        return len(self.medoids)

    def to_frame(self) -> pd.DataFrame:
        is_medoid = np.zeros(len(self.ids), dtype=bool)
        is_medoid[self.medoids] = True
        return pd.DataFrame({
            "tile_id": self.ids,
            "cluster": self.labels,
            "is_medoid": is_medoid,
        })


def _medoids(d: np.ndarray, labels: np.ndarray) -> List[int]:
    out = []
    for c in range(int(labels.max()) + 1):
        members = np.flatnonzero(labels == c)
        within = d[np.ix_(members, members)].sum(axis=1)
        out.append(int(members[np.argmin(within)]))
    return out


def hierarchical_medoids(d: np.ndarray, k: int, method: str = "average") -> Tuple[np.ndarray, List[int]]:
    """Default clustering routine: scipy linkage + fcluster(maxclust=k).

    Labels are renumbered 0.. in order of first appearance so output is stable.
    fcluster may return fewer than k clusters when merge heights tie.
    """
    n = d.shape[0]
    if n == 1:
        labels = np.zeros(1, dtype=int)
        return labels, [0]

    z = linkage(squareform(d, checks=False), method=method)
    raw = fcluster(z, t=k, criterion="maxclust")

    uniq, first = np.unique(raw, return_index=True)
    renumber = {c: i for i, c in enumerate(uniq[np.argsort(first)])}
    labels = np.array([renumber[c] for c in raw], dtype=int)
    return labels, _medoids(d, labels)


def cluster_signatures(
    collection: SignatureCollection,
    k: int,
    *,
    method: str = "average",
    cluster_fn: Optional[ClusterFn] = None,
    workers: int = 1,
    batch_rows: int = 256,
    cancel: Optional[threading.Event] = None,
) -> ClusterResult:
    """Cluster a collection's tiles into (at most) k groups.

    Args:
        collection: Validated tiles (see merge_collections for A+B pools).
        k: Requested number of clusters, 1 <= k <= collection.size.
        method: scipy linkage method for the default routine.
        cluster_fn: Replacement routine taking (matrix, k).
        workers, batch_rows, cancel: Passed to divergence_matrix.
    """
    if k < 1 or k > collection.size:
        raise ValueError(f"k must be between 1 and {collection.size} (got {k})")

    d = divergence_matrix(collection, collection, workers=workers, batch_rows=batch_rows, cancel=cancel)
    d = 0.5 * (d + d.T)
    np.fill_diagonal(d, 0.0)

    if cluster_fn is None:
        labels, medoids = hierarchical_medoids(d, k, method=method)
    else:
        labels, medoids = cluster_fn(d, k)

    return ClusterResult(ids=list(collection.ids), labels=np.asarray(labels, dtype=int), medoids=list(medoids))
