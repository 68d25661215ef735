"""
Dataset validation shared by every scoring component.

A dataset is an ordered sequence of points, each a fixed-length vector of
numeric features. Components receive it through ``as_dataset``, which returns
a read-only ``float64`` copy so nothing downstream can mutate the caller's
data or the copy another component holds.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import numpy as np
import numpy.typing as npt

from .exceptions import DimensionMismatch, InvalidConfiguration

logger = logging.getLogger(__name__)

Dataset = npt.NDArray[np.float64]


def _freeze(Xs: npt.NDArray[Any]) -> Dataset:
    Xs = np.array(Xs, dtype=np.float64, copy=True)
    Xs.setflags(write=False)
    return Xs


def as_dataset(points: Any) -> Dataset:
    """
    Validate points and return them as an immutable (n_samples, n_features) array.

    1-D input is read as n points of dimension 1.

    Raises:
        InvalidConfiguration: empty input, non-finite values, or values so far
            apart that feature ranges or distances overflow float64.
        DimensionMismatch: rows of different lengths, or more than 2 dimensions.
    """
    if isinstance(points, np.ndarray):
        Xs = points
    else:
        if isinstance(points, Sequence) and len(points) > 0:
            lengths = {np.size(p) for p in points}
            if len(lengths) > 1:
                raise DimensionMismatch(
                    f"Points have inconsistent dimensionality: {sorted(lengths)}"
                )
        Xs = np.asarray(points)

    if Xs.size == 0:
        raise InvalidConfiguration("Dataset is empty")
    if Xs.ndim == 1:
        Xs = Xs.reshape(-1, 1)
    if Xs.ndim != 2:
        raise DimensionMismatch(f"Expected a 2-D dataset, got {Xs.ndim} dimensions")

    try:
        Xs = Xs.astype(np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidConfiguration(f"Dataset values must be numeric: {e}") from e

    if not np.all(np.isfinite(Xs)):
        raise InvalidConfiguration("Dataset contains NaN or infinite values")

    # Every pairwise squared distance is bounded by the sum of squared column ranges
    with np.errstate(over="ignore"):
        spans = np.ptp(Xs, axis=0)
        max_squared = np.sum(spans * spans)
    if not np.isfinite(max_squared):
        raise InvalidConfiguration(
            "Dataset values are too far apart: feature ranges or distances overflow float64"
        )

    return _freeze(Xs)


def as_point(point: Any, n_features: int) -> npt.NDArray[np.float64]:
    """
    Validate a single query vector against the expected dimensionality.

    Raises:
        DimensionMismatch: the point does not have n_features values.
        InvalidConfiguration: the point holds non-finite values.
    """
    x = np.asarray(point, dtype=np.float64).ravel()
    if x.shape[0] != n_features:
        raise DimensionMismatch(
            f"Point has {x.shape[0]} features, expected {n_features}"
        )
    if not np.all(np.isfinite(x)):
        raise InvalidConfiguration("Point contains NaN or infinite values")
    return x


def standardize(points: Any) -> Dataset:
    """
    Column-wise z-score standardisation.

    Distances are only meaningful once features share a scale. Constant
    columns are centred but not scaled.

    Args:
        points: Data samples of shape (n_samples, n_features).
    Returns:
        New immutable dataset of the same shape.
    """
    Xs = as_dataset(points)
    means = Xs.mean(axis=0)
    stds = Xs.std(axis=0, ddof=0)

    constant = stds == 0.0
    if np.any(constant):
        logger.warning(
            f"Columns {np.flatnonzero(constant).tolist()} are constant, centring only"
        )
    stds = np.where(constant, 1.0, stds)

    return _freeze((Xs - means) / stds)
