"""
This module contains the DistanceIndex and NeighborTable classes that answer
exact k-nearest-neighbour queries over a fixed dataset.

Neighbours are ranked by ascending Euclidean distance, ties going to the lower
point index, and a point is never its own neighbour (a duplicate of it is).
Two backends produce identical tables: a blocked brute-force search and a
scikit-learn KDTree used only to narrow down the candidates.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import numpy.typing as npt
from joblib import Parallel, delayed
from sklearn.neighbors import KDTree

from ..core.config import config
from ..core.dataset import Dataset, as_dataset
from ..core.exceptions import InvalidConfiguration

logger = logging.getLogger(__name__)

ALGORITHMS = ("brute", "kd_tree")

# Upper bound on the (rows, n_samples, n_features) difference tensor of one block
MAX_BLOCK_ELEMENTS = 2 ** 24


def _distances(
    Xs_query: npt.NDArray[np.float64],
    Xs: npt.NDArray[np.float64],
) -> npt.NDArray[np.float64]:
    """
    Exact Euclidean distances between every query row and every dataset row.
    Both backends go through here so equal pairs always give equal floats.
    Args:
        Xs_query: Query samples of shape (n_queries, n_features).
        Xs: Data samples of shape (n_samples, n_features).
    Returns:
        Distances of shape (n_queries, n_samples).
    """
    diff = Xs_query[:, np.newaxis, :] - Xs[np.newaxis, :, :]
    return np.sqrt(np.sum(diff * diff, axis=2))


def _select_k(
    dists: npt.NDArray[np.float64],
    candidates: npt.NDArray[np.int_],
    k: int,
) -> tuple[npt.NDArray[np.int_], npt.NDArray[np.float64]]:
    """
    Pick the k smallest distances, ties broken by lower point index.
    Args:
        dists: Distances to the candidates, shape (n_candidates,).
        candidates: Point indices of the candidates in ascending order.
        k: Number of neighbours to keep (k <= n_candidates).
    Returns:
        Tuple of (indices, distances), each of shape (k,).
    """
    kth_value = np.partition(dists, k - 1)[k - 1]
    within = np.flatnonzero(dists <= kth_value)
    # flatnonzero keeps index order, so a stable sort leaves ties by index
    order = within[np.argsort(dists[within], kind="stable")][:k]
    return candidates[order], dists[order]


def _query_block_brute(
    Xs: npt.NDArray[np.float64],
    start: int,
    stop: int,
    k: int,
) -> tuple[npt.NDArray[np.int_], npt.NDArray[np.float64]]:
    """
    Worker function computing the neighbours of rows [start, stop).
    This function is designed to be called in parallel using joblib.
    Args:
        Xs: Data samples of shape (n_samples, n_features).
        start: First row of the block.
        stop: One past the last row of the block.
        k: Number of neighbours per row.
    Returns:
        Tuple of (indices, distances), each of shape (stop - start, k).
    """
    n_samples = Xs.shape[0]
    all_indices = np.arange(n_samples)
    dist_block = _distances(Xs[start:stop], Xs)

    indices = np.empty((stop - start, k), dtype=np.int_)
    distances = np.empty((stop - start, k), dtype=np.float64)

    for row, idx_point in enumerate(range(start, stop)):
        keep = all_indices != idx_point
        indices[row], distances[row] = _select_k(dist_block[row][keep], all_indices[keep], k)

    return indices, distances


def _query_block_kd_tree(
    tree: KDTree,
    Xs: npt.NDArray[np.float64],
    start: int,
    stop: int,
    k: int,
) -> tuple[npt.NDArray[np.int_], npt.NDArray[np.float64]]:
    """
    Worker function computing the neighbours of rows [start, stop) with a KDTree.
    The tree only bounds the search radius and lists the points inside it;
    distances are recomputed exactly and ranked with the brute-force rule.
    Args:
        tree: KDTree built over Xs.
        Xs: Data samples of shape (n_samples, n_features).
        start: First row of the block.
        stop: One past the last row of the block.
        k: Number of neighbours per row.
    Returns:
        Tuple of (indices, distances), each of shape (stop - start, k).
    """
    Xs_block = Xs[start:stop]

    # k + 1 nearest always covers k points other than the query itself
    kd_dists, _ = tree.query(Xs_block, k=k + 1)
    radii = kd_dists[:, -1] * (1.0 + 1e-9) + 1e-12
    candidate_lists = tree.query_radius(Xs_block, r=radii)

    indices = np.empty((stop - start, k), dtype=np.int_)
    distances = np.empty((stop - start, k), dtype=np.float64)

    for row, idx_point in enumerate(range(start, stop)):
        candidates = np.sort(candidate_lists[row])
        candidates = candidates[candidates != idx_point]
        dists = _distances(Xs[idx_point:idx_point + 1], Xs[candidates])[0]
        indices[row], distances[row] = _select_k(dists, candidates, k)

    return indices, distances


@dataclass(frozen=True, eq=False)
class NeighborTable:
    """
    The k nearest neighbours of every point in a dataset.
    Attributes:
        k: Number of neighbours per point.
        indices: Neighbour point indices of shape (n_samples, k), nearest first.
        distances: Matching Euclidean distances of shape (n_samples, k), ascending per row.
    """

    k: int
    indices: npt.NDArray[np.int_]
    distances: npt.NDArray[np.float64]

    def __post_init__(self) -> None:
        self.indices.setflags(write=False)
        self.distances.setflags(write=False)

    def __len__(self) -> int:
        return int(self.indices.shape[0])

    @property
    def k_distance(self) -> npt.NDArray[np.float64]:
        """Distance from every point to its own k-th nearest neighbour."""
        return self.distances[:, -1]

    def row(self, idx_point: int) -> list[tuple[int, float]]:
        """(neighbour index, distance) pairs of one point, nearest first."""
        return [
            (int(j), float(d))
            for j, d in zip(self.indices[idx_point], self.distances[idx_point])
        ]

    def entries(self) -> Iterator[tuple[int, int, float]]:
        """
        Yield (point index, neighbour rank, distance) triples. Rank 0 is the
        nearest neighbour.
        """
        for idx_point in range(len(self)):
            for rank in range(self.k):
                yield idx_point, rank, float(self.distances[idx_point, rank])


@dataclass(eq=False)
class DistanceIndex:
    """
    Exact k-nearest-neighbour index over an immutable dataset.

    Tables are built on demand with ``build(k)`` and cached per k, so the kNN
    and LOF scores for the same k share one neighbour search.

    Attributes:
        points: The validated, read-only dataset.
        algorithm: "brute" or "kd_tree".
        block_size: Rows per vectorised distance block (and per parallel job).
        n_jobs: Number of parallel jobs to run. -1 means using all processors.
    """

    points: Any
    algorithm: str = field(default_factory=lambda: config.neighbors.algorithm)
    block_size: int = field(default_factory=lambda: config.neighbors.block_size)
    n_jobs: int = field(default_factory=lambda: config.n_jobs)

    def __post_init__(self) -> None:
        self.points: Dataset = as_dataset(self.points)
        if self.algorithm not in ALGORITHMS:
            raise InvalidConfiguration(
                f"Unknown neighbour algorithm {self.algorithm!r}, expected one of {ALGORITHMS}"
            )
        if self.block_size < 1:
            raise InvalidConfiguration(f"block_size must be >= 1, got {self.block_size}")
        if self.n_jobs == 0:
            raise InvalidConfiguration("n_jobs must be a positive count or negative, got 0")
        self._tables: dict[int, NeighborTable] = {}

    @property
    def n_samples(self) -> int:
        return int(self.points.shape[0])

    @property
    def n_features(self) -> int:
        return int(self.points.shape[1])

    def build(self, k: int) -> NeighborTable:
        """
        Compute (or return the cached) neighbour table for k.
        Args:
            k: Number of neighbours, 1 <= k < n_samples.
        Returns:
            NeighborTable for this k.
        """
        if isinstance(k, bool) or not isinstance(k, (int, np.integer)):
            raise InvalidConfiguration(f"k must be an integer, got {k!r}")
        k = int(k)
        if not 1 <= k < self.n_samples:
            raise InvalidConfiguration(
                f"k must satisfy 1 <= k < n ({self.n_samples}), got {k}"
            )

        if k in self._tables:
            return self._tables[k]

        logger.info(
            f"Building {self.algorithm} neighbour table: n={self.n_samples}, "
            f"d={self.n_features}, k={k}"
        )

        Xs = self.points
        rows = max(1, min(self.block_size, MAX_BLOCK_ELEMENTS // (self.n_samples * self.n_features)))
        blocks = [
            (start, min(start + rows, self.n_samples))
            for start in range(0, self.n_samples, rows)
        ]

        if self.algorithm == "kd_tree":
            tree = KDTree(Xs)
            jobs = (delayed(_query_block_kd_tree)(tree, Xs, start, stop, k) for start, stop in blocks)
        else:
            jobs = (delayed(_query_block_brute)(Xs, start, stop, k) for start, stop in blocks)

        if self.n_jobs == 1 or len(blocks) == 1:
            # Sequential execution
            results = [fn(*args, **kwargs) for fn, args, kwargs in jobs]
        else:
            # Parallel execution using joblib
            results = Parallel(n_jobs=self.n_jobs, backend="loky")(jobs)

        table = NeighborTable(
            k=k,
            indices=np.vstack([r[0] for r in results]),
            distances=np.vstack([r[1] for r in results]),
        )
        self._tables[k] = table
        return table

    def neighbors(self, k: int) -> NeighborTable:
        """
        Return the table already built for k.
        Raises:
            InvalidConfiguration: ``build(k)`` has not been called on this index.
        """
        try:
            return self._tables[k]
        except KeyError:
            raise InvalidConfiguration(
                f"Distance index has not been built for k={k}; call build({k}) first"
            ) from None

    def is_built(self, k: int) -> bool:
        return k in self._tables
