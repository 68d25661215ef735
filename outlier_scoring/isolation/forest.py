"""
This module contains the IsolationForest class that implements an ensemble
of isolation trees, plus the functional ``build_forest`` / ``score`` entry
points and the small-vs-large forest convergence check.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import numpy as np
import numpy.typing as npt
from joblib import Parallel, delayed

from ..core.config import config
from ..core.dataset import as_dataset, as_point
from ..core.exceptions import DimensionMismatch, InvalidConfiguration
from ..core.schema import Scores
from .tree import IsolationTree, average_path_length

logger = logging.getLogger(__name__)


def _fit_single_tree(
    seed: int,
    Xs: npt.NDArray[np.floating[Any]],
    subsample_size: int,
    max_depth: int | None,
) -> IsolationTree:
    """
    Worker function to fit an isolation tree with a given seed.
    This function is designed to be called in parallel using joblib.
    Each worker builds its own Generator from the seed, so the result does
    not depend on which process runs it.

    Args:
        seed: Random seed for this tree (integer).
        Xs: Training data of shape (n_samples, n_features).
        subsample_size: Number of samples to use for building the tree.
        max_depth: Depth limit, None for the default.
    Returns:
        Fitted IsolationTree instance.
    """
    rng = np.random.default_rng(seed)
    return IsolationTree().fit(Xs, rng, subsample_size=subsample_size, max_depth=max_depth)


def _score_single_tree(
    tree: IsolationTree,
    Xs: npt.NDArray[np.floating[Any]],
) -> npt.NDArray[np.floating[Any]]:
    """
    Worker function returning the path lengths of the samples in one tree.
    This function is designed to be called in parallel using joblib.
    """
    return tree.get_path_lengths(Xs)


class IsolationForest:
    """
    Ensemble of Isolation Trees for anomaly detection.

    Each tree is trained on its own random subsample of the data; a point's
    score is 2^(-E[h(x)] / c(subsample_size)) where E[h(x)] is its path
    length averaged over the trees. Near 1: likely anomaly. Around 0.5:
    normal. Well below 0.5: inside a dense cluster.

    Attributes:
        n_trees: Number of trees in the ensemble.
        subsample_size: Points drawn (without replacement) for each tree.
        max_depth: Depth limit, None for ceil(log2(subsample size)).
        n_jobs: Number of parallel jobs to run. -1 means using all processors.
        random_state: Random seed for reproducibility.
        n_features: Dimensionality seen at fit time.
        expected_path_length: c() of the effective subsample size.
        contamination: Expected proportion of anomalies, if given at fit time.
        anomaly_threshold: Score at or above which ``predict`` flags a point.
        trees: Tuple of fitted IsolationTree instances.
    """

    def __init__(
        self,
        n_trees: int | None = None,
        subsample_size: int | None = None,
        max_depth: int | None = None,
        n_jobs: int | None = None,
        random_state: int | None = None,
    ) -> None:
        """
        Initialize an IsolationForest. Parameters left as None take their
        value from ``config.isolation`` / ``config.n_jobs``, except
        random_state, where None means an unseeded build.

        Raises:
            InvalidConfiguration: n_trees < 1, subsample_size < 2, max_depth < 1
                or n_jobs == 0.
        """
        self.n_trees = config.isolation.n_trees if n_trees is None else n_trees
        self.subsample_size = config.isolation.subsample_size if subsample_size is None else subsample_size
        self.max_depth = config.isolation.max_depth if max_depth is None else max_depth
        self.n_jobs = config.n_jobs if n_jobs is None else n_jobs
        self.random_state = random_state

        if self.n_trees < 1:
            raise InvalidConfiguration(f"n_trees must be >= 1, got {self.n_trees}")
        if self.subsample_size < 2:
            raise InvalidConfiguration(f"subsample_size must be >= 2, got {self.subsample_size}")
        if self.max_depth is not None and self.max_depth < 1:
            raise InvalidConfiguration(f"max_depth must be >= 1, got {self.max_depth}")
        if self.n_jobs == 0:
            raise InvalidConfiguration("n_jobs must be a positive count or negative, got 0")

        self.n_features: int | None = None
        self.expected_path_length: float | None = None
        self.contamination: float | None = None
        self.anomaly_threshold: float | None = None

        self.trees: tuple[IsolationTree, ...] = ()

    @property
    def is_fitted(self) -> bool:
        return len(self.trees) > 0

    def fit(
        self,
        Xs: Any,
        contamination: float | None = None,
    ) -> IsolationForest:
        """
        Build every tree from its own seed, then derive the anomaly threshold.

        Args:
            Xs: Training data of shape (n_samples, n_features), at least 2 points.
            contamination: Expected proportion of anomalies in (0, 0.5]. When
                given, the threshold is the matching quantile of the training
                scores; otherwise it is 0.5.
        Returns:
            The fitted forest.
        """
        Xs = as_dataset(Xs)
        if Xs.shape[0] < 2:
            raise InvalidConfiguration(
                f"An isolation forest needs at least 2 points, got {Xs.shape[0]}"
            )
        if contamination is None:
            contamination = config.isolation.contamination
        if contamination is not None and not 0.0 < contamination <= 0.5:
            raise InvalidConfiguration(f"contamination must be in (0, 0.5], got {contamination}")

        train_size = min(self.subsample_size, Xs.shape[0])
        if train_size < self.subsample_size:
            logger.warning(
                f"subsample_size={self.subsample_size} exceeds n={Xs.shape[0]}; "
                f"every tree uses the whole dataset"
            )

        rng = np.random.default_rng(self.random_state)
        MAX_INT = np.iinfo(np.int32).max
        seeds = rng.integers(MAX_INT, size=self.n_trees)

        logger.info(
            f"Building isolation forest: trees={self.n_trees}, subsample={train_size}, "
            f"n_jobs={self.n_jobs}"
        )

        # Build trees in parallel or sequentially
        if self.n_jobs == 1:
            trees = [_fit_single_tree(int(seed), Xs, train_size, self.max_depth) for seed in seeds]
        else:
            trees = Parallel(n_jobs=self.n_jobs, backend="loky")(
                delayed(_fit_single_tree)(int(seed), Xs, train_size, self.max_depth) for seed in seeds
            )

        self.trees = tuple(trees)
        self.n_features = Xs.shape[1]
        self.expected_path_length = average_path_length(train_size)

        self.contamination = contamination
        if self.contamination is None:
            self.anomaly_threshold = 0.5
        else:
            train_scores = self._score_array(Xs)
            self.anomaly_threshold = float(np.quantile(train_scores, 1.0 - self.contamination))

        return self

    def _check_fitted(self) -> None:
        if not self.is_fitted:
            raise InvalidConfiguration("IsolationForest has not been fitted")

    def _score_array(self, Xs: npt.NDArray[np.floating[Any]]) -> npt.NDArray[np.floating[Any]]:
        if self.n_jobs == 1:
            depth_matrix = np.zeros((Xs.shape[0], len(self.trees)))
            for tree_idx, tree in enumerate(self.trees):
                depth_matrix[:, tree_idx] = tree.get_path_lengths(Xs)
        else:
            depth_results = Parallel(n_jobs=self.n_jobs, backend="loky")(
                delayed(_score_single_tree)(tree, Xs) for tree in self.trees
            )
            depth_matrix = np.column_stack(list(depth_results))

        mean_depths = np.mean(depth_matrix, axis=1)
        return 2.0 ** (-mean_depths / self.expected_path_length)

    def mean_path_lengths(self, Xs: Any) -> npt.NDArray[np.floating[Any]]:
        """E[h(x)] over the trees for every sample."""
        self._check_fitted()
        Xs = self._check_points(Xs)
        return np.mean(np.column_stack([tree.get_path_lengths(Xs) for tree in self.trees]), axis=1)

    def _check_points(self, Xs: Any) -> npt.NDArray[np.float64]:
        Xs = as_dataset(Xs)
        if Xs.shape[1] != self.n_features:
            raise DimensionMismatch(
                f"Points have {Xs.shape[1]} features, forest was fitted on {self.n_features}"
            )
        return Xs

    def scores(self, Xs: Any) -> Scores:
        """
        Anomaly scores in [0, 1], higher for points isolated sooner.
        Args:
            Xs: Data samples of shape (n_samples, n_features); need not be
                the training data.
        Returns:
            Scores mapping each sample index to its score.
        """
        self._check_fitted()
        return Scores("isolation", self._score_array(self._check_points(Xs)))

    def score(self, point: Any) -> float:
        """Anomaly score of a single point."""
        self._check_fitted()
        x = as_point(point, self.n_features)
        return float(self._score_array(x.reshape(1, -1))[0])

    def predict(self, Xs: Any) -> npt.NDArray[np.int_]:
        """
        Args:
            Xs: Data samples of shape (n_samples, n_features).
        Returns:
            Binary labels (0=normal, 1=anomaly) of shape (n_samples,).
        """
        scores_arr = self.scores(Xs).values
        return (scores_arr >= self.anomaly_threshold).astype(int)


def build_forest(
    points: Any,
    n_trees: int | None = None,
    subsample_size: int | None = None,
    seed: int | None = None,
    max_depth: int | None = None,
    n_jobs: int | None = None,
    contamination: float | None = None,
) -> IsolationForest:
    """Build an isolation forest over points; the same seed rebuilds the same forest."""
    forest = IsolationForest(
        n_trees=n_trees,
        subsample_size=subsample_size,
        max_depth=max_depth,
        n_jobs=n_jobs,
        random_state=seed,
    )
    return forest.fit(points, contamination=contamination)


def score(forest: IsolationForest, point: Any) -> float:
    """Anomaly score of one point under a fitted forest."""
    return forest.score(point)


@dataclass(frozen=True)
class ConvergenceReport:
    """
    Agreement between the scores of a small and a large forest.

    Fields:
    - small_trees / large_trees: ensemble sizes compared
    - epsilon: per-point tolerance
    - max_abs_diff / mean_abs_diff: score differences over all points
    - fraction_within: share of points whose scores differ by less than epsilon
    """

    small_trees: int
    large_trees: int
    epsilon: float
    max_abs_diff: float
    mean_abs_diff: float
    fraction_within: float

    @property
    def converged(self) -> bool:
        """True when a majority of points agree within epsilon."""
        return self.fraction_within > 0.5


def convergence(
    points: Any,
    small_trees: int = 100,
    large_trees: int = 200,
    subsample_size: int | None = None,
    seed: int | None = None,
    epsilon: float | None = None,
    n_jobs: int | None = None,
) -> ConvergenceReport:
    """
    Check whether adding trees still moves the scores.

    Builds a forest of ``small_trees`` and one of ``large_trees`` from the
    same seed and compares their scores point by point. If they agree the
    smaller ensemble is large enough.
    """
    if epsilon is None:
        epsilon = config.isolation.convergence_epsilon
    if epsilon <= 0:
        raise InvalidConfiguration(f"epsilon must be > 0, got {epsilon}")
    if not 1 <= small_trees < large_trees:
        raise InvalidConfiguration(
            f"Expected 1 <= small_trees < large_trees, got {small_trees} and {large_trees}"
        )

    Xs = as_dataset(points)
    small = build_forest(Xs, n_trees=small_trees, subsample_size=subsample_size, seed=seed, n_jobs=n_jobs)
    large = build_forest(Xs, n_trees=large_trees, subsample_size=subsample_size, seed=seed, n_jobs=n_jobs)

    diff = np.abs(small.scores(Xs).values - large.scores(Xs).values)
    report = ConvergenceReport(
        small_trees=small_trees,
        large_trees=large_trees,
        epsilon=epsilon,
        max_abs_diff=float(diff.max()),
        mean_abs_diff=float(diff.mean()),
        fraction_within=float(np.mean(diff < epsilon)),
    )
    logger.info(
        f"Convergence {small_trees} vs {large_trees} trees: "
        f"{report.fraction_within:.1%} within {epsilon}, max diff {report.max_abs_diff:.4f}"
    )
    return report
