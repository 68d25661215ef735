"""Isolation Forest implementation for anomaly detection.

This package provides the standard Isolation Forest algorithm using random
partitioning of the feature space, with explicit per-tree seeds.
"""

from .forest import ConvergenceReport, IsolationForest, build_forest, convergence, score
from .tree import IsolationTree, IsolationTreeNode, average_path_length, default_max_depth

__all__ = [
    "IsolationTree",
    "IsolationTreeNode",
    "IsolationForest",
    "ConvergenceReport",
    "average_path_length",
    "default_max_depth",
    "build_forest",
    "convergence",
    "score",
]
