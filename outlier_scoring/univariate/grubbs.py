"""
Grubbs' test for a single outlier in an approximately normal sample.

G = max|x_i - mean| / s (sample standard deviation, n - 1 denominator) is
compared with the two-sided critical value

    G_crit = (n - 1) / sqrt(n) * sqrt(t^2 / (n - 2 + t^2)),  t = t_{alpha / (2n), n - 2}

where t is the upper critical value of Student's t with n - 2 degrees of freedom.
"""

from __future__ import annotations

import logging
import math
from typing import Any

import numpy as np
import numpy.typing as npt
from scipy import stats

from ..core.config import config
from ..core.exceptions import InvalidConfiguration
from ..core.schema import GrubbsResult

logger = logging.getLogger(__name__)


def _as_sample(values: Any) -> npt.NDArray[np.float64]:
    try:
        x = np.asarray(values, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidConfiguration(f"Sample values must be numeric: {e}") from e
    if x.ndim > 1:
        raise InvalidConfiguration(f"Grubbs' test takes a 1-D sample, got {x.ndim} dimensions")
    x = x.reshape(-1)
    if x.shape[0] < 3:
        raise InvalidConfiguration(f"Grubbs' test needs at least 3 values, got {x.shape[0]}")
    if not np.all(np.isfinite(x)):
        raise InvalidConfiguration("Sample contains NaN or infinite values")
    return x


def _check_alpha(alpha: float | None) -> float:
    if alpha is None:
        alpha = config.grubbs.alpha
    if not 0.0 < alpha < 1.0:
        raise InvalidConfiguration(f"alpha must be in (0, 1), got {alpha}")
    return alpha


def critical_value(n: int, alpha: float) -> float:
    """Two-sided Grubbs critical value for a sample of size n."""
    t = stats.t.isf(alpha / (2 * n), n - 2)
    return (n - 1) / math.sqrt(n) * math.sqrt(t**2 / (n - 2 + t**2))


def p_value(g: float, n: int) -> float:
    """
    Two-sided p-value of G, Bonferroni-bounded: min(1, 2n * P(T > t_G)) with
    t_G = sqrt(n (n - 2) G^2 / ((n - 1)^2 - n G^2)). G can not exceed
    (n - 1) / sqrt(n); at that bound the p-value is 0.
    """
    denom = (n - 1) ** 2 - n * g**2
    if denom <= 0.0:
        return 0.0
    t_g = math.sqrt(n * (n - 2) * g**2 / denom)
    return float(min(1.0, 2 * n * stats.t.sf(t_g, n - 2)))


def grubbs_test(values: Any, alpha: float | None = None) -> GrubbsResult:
    """
    Test the value furthest from the mean.

    Args:
        values: Numeric vector of length n >= 3.
        alpha: Significance level, defaults to ``config.grubbs.alpha`` (0.05).
    Returns:
        GrubbsResult with the suspect value and index, G, the critical value,
        the p-value and the decision. A constant sample has G = 0 and no outlier.
    """
    x = _as_sample(values)
    alpha = _check_alpha(alpha)
    n = x.shape[0]

    deviations = np.abs(x - x.mean())
    # argmax keeps the first index on ties
    index = int(np.argmax(deviations))
    std = float(x.std(ddof=1))
    g_crit = critical_value(n, alpha)

    if std == 0.0:
        logger.warning("Sample has zero variance, no outlier can be tested")
        g = 0.0
        p = 1.0
    else:
        g = float(deviations[index] / std)
        p = p_value(g, n)

    result = GrubbsResult(
        suspect_value=float(x[index]),
        suspect_index=index,
        g=g,
        critical_value=g_crit,
        p_value=p,
        is_outlier=g > g_crit,
        alpha=alpha,
        n=n,
    )
    logger.debug(f"Grubbs: n={n}, G={g:.4f}, G_crit={g_crit:.4f}, p={p:.4g}")
    return result


def grubbs_iterative(
    values: Any,
    alpha: float | None = None,
    max_outliers: int | None = None,
) -> list[GrubbsResult]:
    """
    Repeat Grubbs' test, removing each detected outlier, until a test fails,
    fewer than 3 values remain or ``max_outliers`` have been found.

    Returns:
        The results that flagged an outlier, in detection order, with
        ``suspect_index`` pointing into the original vector.
    """
    x = _as_sample(values)
    alpha = _check_alpha(alpha)
    if max_outliers is not None and max_outliers < 1:
        raise InvalidConfiguration(f"max_outliers must be >= 1, got {max_outliers}")

    remaining = np.arange(x.shape[0])
    found: list[GrubbsResult] = []

    while remaining.shape[0] >= 3:
        if max_outliers is not None and len(found) >= max_outliers:
            break
        result = grubbs_test(x[remaining], alpha)
        if not result.is_outlier:
            break
        original_index = int(remaining[result.suspect_index])
        found.append(result.model_copy(update={"suspect_index": original_index}))
        remaining = np.delete(remaining, result.suspect_index)

    logger.info(f"Grubbs iterative: {len(found)} outliers at alpha={alpha}")
    return found
