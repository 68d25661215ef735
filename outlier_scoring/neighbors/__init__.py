"""Nearest-neighbour scoring.

This package provides an exact k-nearest-neighbour index and the distance
(kNN mean distance) and density (Local Outlier Factor) scores built on it.
"""

from .index import DistanceIndex, NeighborTable
from .scores import (
    ScoreAggregator,
    knn_scores,
    local_reachability_density,
    lof_scores,
    reachability_distances,
)

__all__ = [
    "DistanceIndex",
    "NeighborTable",
    "ScoreAggregator",
    "knn_scores",
    "lof_scores",
    "local_reachability_density",
    "reachability_distances",
]
