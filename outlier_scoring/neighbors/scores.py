"""
Neighbour-based anomaly scores computed from a NeighborTable.

- kNN score: mean distance to the k nearest neighbours.
- LOF score: Local Outlier Factor, the ratio of the neighbours' local
  reachability density to the point's own.

Zero reachability: when every reachability distance of a point is zero
(it sits on top of k duplicates) its density is infinite. The LOF ratio then
follows inf/inf = 1, finite/inf = 0 and inf/finite = inf, so no score is NaN.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from ..core.schema import Scores
from .index import DistanceIndex, NeighborTable

logger = logging.getLogger(__name__)


def knn_scores(table: NeighborTable) -> Scores:
    """Mean distance from each point to its k nearest neighbours."""
    return Scores("knn", table.distances.mean(axis=1))


def reachability_distances(table: NeighborTable) -> npt.NDArray[np.float64]:
    """
    reach-dist(p, o) = max(k-distance(o), d(p, o)) for every neighbour o of p.
    Returns:
        Array of shape (n_samples, k) aligned with ``table.indices``.
    """
    return np.maximum(table.k_distance[table.indices], table.distances)


def local_reachability_density(table: NeighborTable) -> npt.NDArray[np.float64]:
    """
    lrd(p) = 1 / mean reach-dist(p, o) over the neighbours o of p; inf when
    that mean is zero.
    """
    mean_reach = reachability_distances(table).mean(axis=1)
    lrd = np.full(mean_reach.shape, np.inf)
    np.divide(1.0, mean_reach, out=lrd, where=mean_reach > 0.0)

    n_infinite = int(np.sum(np.isinf(lrd)))
    if n_infinite:
        logger.warning(
            f"{n_infinite} points coincide with all of their {table.k} neighbours; "
            f"their local density is treated as infinite"
        )
    return lrd


def lof_scores(table: NeighborTable) -> Scores:
    """
    Local Outlier Factor of every point.

    LOF ~ 1: density similar to the neighbours'. LOF >> 1: local outlier.
    LOF < 1: denser than the neighbourhood.
    """
    lrd = local_reachability_density(table)
    neighbor_lrd = lrd[table.indices].mean(axis=1)

    own_inf = np.isinf(lrd)
    neighbor_inf = np.isinf(neighbor_lrd)

    lof = np.empty_like(lrd)
    finite = ~own_inf & ~neighbor_inf
    lof[finite] = neighbor_lrd[finite] / lrd[finite]
    lof[own_inf & neighbor_inf] = 1.0
    lof[own_inf & ~neighbor_inf] = 0.0
    lof[~own_inf & neighbor_inf] = np.inf

    return Scores("lof", lof)


@dataclass
class ScoreAggregator:
    """
    kNN and LOF scores for one k over a DistanceIndex.

    The index must already hold a table for k (``index.build(k)``); asking
    for scores otherwise raises InvalidConfiguration.
    """

    index: DistanceIndex
    k: int

    def knn(self) -> Scores:
        return knn_scores(self.index.neighbors(self.k))

    def lof(self) -> Scores:
        return lof_scores(self.index.neighbors(self.k))
