"""
Scoring engine: runs the distance, density and isolation scores on one dataset.

The components are independent; this only saves callers from wiring them by
hand. Results stay as separate score mappings and are joined with the points
only when a presentation layer asks for rows.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .core.config import config
from .core.dataset import Dataset, as_dataset, standardize
from .core.schema import Scores
from .isolation.forest import IsolationForest
from .neighbors.index import DistanceIndex
from .neighbors.scores import ScoreAggregator

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class ScoreReport:
    """
    Scores of one dataset, one mapping per technique.

    Fields:
    - points: the dataset that was scored (read-only)
    - scores: technique name ("knn", "lof", "isolation") to Scores
    """

    points: Dataset
    scores: Dict[str, Scores]

    def __getitem__(self, method: str) -> Scores:
        return self.scores[method]

    def rows(self) -> List[Dict[str, Any]]:
        """
        Joined view for reporting: one dict per point with its index, its
        feature values and one column per technique.
        """
        rows = []
        for idx_point, values in enumerate(self.points):
            row: Dict[str, Any] = {"index": idx_point, "features": values.tolist()}
            for method, method_scores in self.scores.items():
                row[method] = method_scores[idx_point]
            rows.append(row)
        return rows

    def top(self, method: str, n: int = 10) -> List[tuple[int, float]]:
        return self.scores[method].top(n)


@dataclass
class OutlierScorer:
    """
    Configurable front end over the Distance Index, the Score Aggregator and
    the Isolation Forest Engine.

    Notes:
    - Unset parameters fall back to ``config``.
    - standardize=True z-scores the features before the neighbour search;
      the isolation forest always sees the raw features, since its splits
      are scale-invariant.
    """

    k: int = field(default_factory=lambda: config.neighbors.k)
    algorithm: str = field(default_factory=lambda: config.neighbors.algorithm)
    n_trees: int = field(default_factory=lambda: config.isolation.n_trees)
    subsample_size: int = field(default_factory=lambda: config.isolation.subsample_size)
    max_depth: Optional[int] = field(default_factory=lambda: config.isolation.max_depth)
    n_jobs: int = field(default_factory=lambda: config.n_jobs)
    seed: Optional[int] = None
    standardize: bool = False

    def score(self, points: Any) -> ScoreReport:
        Xs = as_dataset(points)
        neighbor_points = standardize(Xs) if self.standardize else Xs

        index = DistanceIndex(neighbor_points, algorithm=self.algorithm, n_jobs=self.n_jobs)
        index.build(self.k)
        aggregator = ScoreAggregator(index, self.k)

        forest = IsolationForest(
            n_trees=self.n_trees,
            subsample_size=self.subsample_size,
            max_depth=self.max_depth,
            n_jobs=self.n_jobs,
            random_state=self.seed,
        ).fit(Xs)

        report = ScoreReport(
            points=Xs,
            scores={
                "knn": aggregator.knn(),
                "lof": aggregator.lof(),
                "isolation": forest.scores(Xs),
            },
        )
        logger.info(f"Scored {Xs.shape[0]} points with k={self.k}, trees={self.n_trees}")
        return report
