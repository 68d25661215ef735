"""Outlier scoring package.

This package provides from-scratch anomaly scoring techniques:
- neighbors: exact k-nearest-neighbour index, kNN mean-distance and Local Outlier Factor scores
- isolation: Isolation Forest using random partitioning
- univariate: Grubbs' test for a single extreme value
"""

from . import isolation
from . import neighbors
from . import univariate
from .core import (
    DimensionMismatch,
    GrubbsResult,
    InvalidConfiguration,
    OutlierScoringError,
    Scores,
    as_dataset,
    standardize,
)
from .engine import OutlierScorer, ScoreReport

__all__ = [
    "isolation",
    "neighbors",
    "univariate",
    "OutlierScoringError",
    "InvalidConfiguration",
    "DimensionMismatch",
    "GrubbsResult",
    "Scores",
    "as_dataset",
    "standardize",
    "OutlierScorer",
    "ScoreReport",
]
