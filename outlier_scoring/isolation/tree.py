"""
This module contains the IsolationTreeNode and IsolationTree classes that
implement the random recursive partitioning of the Isolation Forest algorithm.
"""

from __future__ import annotations

import math
from typing import Any

import numpy as np
import numpy.typing as npt

EULER_GAMMA = 0.5772156649


def average_path_length(n_samples: int) -> float:
    """
    Expected path length c(n) of an unsuccessful search in a binary search tree
    of n points; normalises isolation depths and estimates the depth still
    needed below a leaf holding n points.
    c(n) = 2 * H(n - 1) - 2 * (n - 1) / n, H(i) ~ ln(i) + Euler's constant, c(1) = 0.
    """
    if n_samples <= 1:
        return 0.0
    HARMONIC_NUMBER = math.log(n_samples - 1) + EULER_GAMMA
    return 2.0 * (HARMONIC_NUMBER - (n_samples - 1) / n_samples)


def default_max_depth(subsample_size: int) -> int:
    """ceil(log2(subsample_size)), the average tree height for that many points."""
    return max(1, math.ceil(math.log2(subsample_size)))


class IsolationTreeNode:
    """
    Node in an Isolation Tree.
    Internal nodes split on one feature at a random threshold; leaves record
    how many training points ended there.
    Attributes:
        depth: Depth of the node in the tree (root is 0).
        idx_feature: Index of the feature used for splitting (None for leaf nodes).
        split_threshold: Threshold value for the split (None for leaf nodes).
        children: [lower, upper] child nodes (empty for leaf nodes).
        size: Number of training points in this leaf (None for internal nodes).
    """

    __slots__ = ("depth", "idx_feature", "split_threshold", "children", "size")

    def __init__(self, depth: int) -> None:
        self.depth = depth

        self.idx_feature: int | None = None
        self.split_threshold: float | None = None

        self.children: list[IsolationTreeNode] = []
        self.size: int | None = None

    @property
    def is_leaf(self) -> bool:
        return self.size is not None

    def partition_space(
        self,
        Xs: npt.NDArray[np.floating[Any]],
        MAX_DEPTH: int,
        rng: np.random.Generator,
    ) -> None:
        """
        Recursively partition the points reaching this node.
        The split feature is drawn uniformly among the features that still
        vary at the node, and the threshold uniformly and strictly inside
        that feature's (min, max). Points below the threshold go left.
        Args:
            Xs: Points reaching this node, shape (n_points, n_features).
            MAX_DEPTH: Depth at which nodes become leaves.
            rng: Random generator owned by the tree being built.
        """
        if self.depth >= MAX_DEPTH or Xs.shape[0] <= 1:
            self.size = Xs.shape[0]
            return

        mins = Xs.min(axis=0)
        maxs = Xs.max(axis=0)
        # A feature is splittable when some float lies strictly between min and max
        splittable = np.flatnonzero(np.nextafter(mins, np.inf) < maxs)
        if splittable.size == 0:
            self.size = Xs.shape[0]
            return

        self.idx_feature = int(rng.choice(splittable))
        low = float(mins[self.idx_feature])
        high = float(maxs[self.idx_feature])

        threshold = rng.uniform(low, high)
        while not low < threshold < high:
            threshold = rng.uniform(low, high)
        self.split_threshold = float(threshold)

        mask_lower = Xs[:, self.idx_feature] < self.split_threshold

        child_lower = IsolationTreeNode(depth=self.depth + 1)
        child_upper = IsolationTreeNode(depth=self.depth + 1)

        self.children = [child_lower, child_upper]
        self.children[0].partition_space(Xs[mask_lower], MAX_DEPTH, rng)
        self.children[1].partition_space(Xs[~mask_lower], MAX_DEPTH, rng)

    def get_path_lengths_batch(self, Xs: npt.NDArray[np.floating[Any]]) -> npt.NDArray[np.floating[Any]]:
        """
        Path length from this node for every sample, including the c(size)
        estimate of the depth still needed below the leaf it lands in.
        Args:
            Xs: Data samples of shape (n_samples, n_features).
        Returns:
            Path lengths for each sample of shape (n_samples,).
        """
        n_samples = Xs.shape[0]

        if self.is_leaf:
            return np.full(n_samples, average_path_length(self.size), dtype=np.float64)

        path_lengths = np.zeros(n_samples, dtype=np.float64)
        mask_lower = Xs[:, self.idx_feature] < self.split_threshold

        if np.any(mask_lower):
            path_lengths[mask_lower] = 1 + self.children[0].get_path_lengths_batch(Xs[mask_lower])

        if np.any(~mask_lower):
            path_lengths[~mask_lower] = 1 + self.children[1].get_path_lengths_batch(Xs[~mask_lower])

        return path_lengths

    def leaves(self) -> list[IsolationTreeNode]:
        if self.is_leaf:
            return [self]
        return self.children[0].leaves() + self.children[1].leaves()


class IsolationTree:
    """
    Single Isolation Tree built over a subsample of the data.
    Attributes:
        root: Root node of the tree.
        n_features: Dimensionality of the training points.
        n_samples_fit: Number of points the tree was built from.
        max_depth: Depth limit used while building.
        expected_path_length: c(n_samples_fit), the normalising constant for scores.
    """

    def __init__(self) -> None:
        self.root: IsolationTreeNode | None = None
        self.n_features: int | None = None
        self.n_samples_fit: int | None = None
        self.max_depth: int | None = None
        self.expected_path_length: float | None = None

    def fit(
        self,
        Xs: npt.NDArray[np.floating[Any]],
        rng: np.random.Generator,
        subsample_size: int | None = 256,
        max_depth: int | None = None,
    ) -> IsolationTree:
        """
        Draw a subsample without replacement and partition it.
        Args:
            Xs: Training data of shape (n_samples, n_features).
            rng: Random generator used for subsampling and every split.
            subsample_size: Number of samples to build the tree from.
                If None or >= n_samples, uses all samples.
            max_depth: Depth limit; defaults to ceil(log2(subsample size)).
        Returns:
            The fitted tree.
        """
        if subsample_size is not None and subsample_size < Xs.shape[0]:
            subsample_indices = rng.choice(Xs.shape[0], subsample_size, replace=False)
            Xs_train = Xs[subsample_indices]
        else:
            Xs_train = Xs

        self.n_features = Xs.shape[1]
        self.n_samples_fit = Xs_train.shape[0]
        self.max_depth = max_depth if max_depth is not None else default_max_depth(self.n_samples_fit)
        self.expected_path_length = average_path_length(self.n_samples_fit)

        self.root = IsolationTreeNode(depth=0)
        self.root.partition_space(Xs_train, self.max_depth, rng)
        return self

    def get_path_lengths(self, Xs: npt.NDArray[np.floating[Any]]) -> npt.NDArray[np.floating[Any]]:
        """
        Args:
            Xs: Data samples of shape (n_samples, n_features).
        Returns:
            Path lengths for each sample of shape (n_samples,).
        """
        assert self.root is not None

        return self.root.get_path_lengths_batch(Xs)

    def scores(self, Xs: npt.NDArray[np.floating[Any]]) -> npt.NDArray[np.floating[Any]]:
        """
        Single-tree anomaly scores 2^(-h(x) / c(n)) in [0, 1].
        Args:
            Xs: Data samples of shape (n_samples, n_features).
        Returns:
            Anomaly scores for each sample of shape (n_samples,).
        """
        assert self.expected_path_length is not None

        return 2.0 ** (-self.get_path_lengths(Xs) / self.expected_path_length)
