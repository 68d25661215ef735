"""
Result records produced by the scoring components.

Scores are kept apart from the dataset they describe: each technique returns
its own immutable mapping from point index to score, and joining them with
the points is left to whoever presents the results.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

import numpy as np
import numpy.typing as npt
from pydantic import BaseModel, Field

from .exceptions import InvalidConfiguration


class Scores(Mapping[int, float]):
    """
    Immutable mapping from point index to anomaly score (higher = more anomalous).

    Attributes:
        method: Name of the technique that produced the scores ("knn", "lof", "isolation").
        values: Read-only array of scores in point order.
    """

    __slots__ = ("method", "values")

    def __init__(self, method: str, values: npt.ArrayLike) -> None:
        arr = np.array(values, dtype=np.float64, copy=True).ravel()
        arr.setflags(write=False)
        object.__setattr__(self, "method", method)
        object.__setattr__(self, "values", arr)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __getitem__(self, index: int) -> float:
        if not isinstance(index, (int, np.integer)) or not 0 <= index < self.values.shape[0]:
            raise KeyError(index)
        return float(self.values[index])

    def __iter__(self) -> Iterator[int]:
        return iter(range(self.values.shape[0]))

    def __len__(self) -> int:
        return int(self.values.shape[0])

    def __repr__(self) -> str:
        return f"Scores(method={self.method!r}, n={len(self)})"

    def ranking(self) -> npt.NDArray[np.int_]:
        """Point indices by descending score; equal scores keep the lower index first."""
        return np.argsort(-self.values, kind="stable")

    def top(self, n: int) -> list[tuple[int, float]]:
        """The n highest-scoring points as (index, score) pairs."""
        return [(int(i), float(self.values[i])) for i in self.ranking()[:n]]

    def threshold(self, contamination: float) -> float:
        """Score above which the expected ``contamination`` share of points lies."""
        if not 0.0 < contamination < 1.0:
            raise InvalidConfiguration(
                f"contamination must be in (0, 1), got {contamination}"
            )
        finite = self.values[np.isfinite(self.values)]
        if finite.size == 0:
            return float("inf")
        return float(np.quantile(finite, 1.0 - contamination))

    def flag(self, contamination: float) -> npt.NDArray[np.int_]:
        """Binary labels (0=normal, 1=anomaly) at the contamination threshold."""
        return (self.values >= self.threshold(contamination)).astype(int)


class GrubbsResult(BaseModel):
    """
    Outcome of a single Grubbs' test.

    Fields:
    - suspect_value: the value furthest from the sample mean
    - suspect_index: its position in the tested vector (original position for iterative runs)
    - g: test statistic max|x_i - mean| / s
    - critical_value: two-sided critical G at alpha
    - p_value: Bonferroni-bounded two-sided p-value in [0, 1]
    - is_outlier: g > critical_value
    - alpha: significance level used
    - n: sample size
    """

    suspect_value: float
    suspect_index: int = Field(ge=0)
    g: float = Field(ge=0.0)
    critical_value: float = Field(ge=0.0)
    p_value: float = Field(ge=0.0, le=1.0)
    is_outlier: bool
    alpha: float = Field(gt=0.0, lt=1.0)
    n: int = Field(ge=3)
