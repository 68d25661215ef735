"""Univariate outlier tests.

This package provides Grubbs' test for a single extreme value in an
approximately normal sample, and its iterative form.
"""

from .grubbs import critical_value, grubbs_iterative, grubbs_test, p_value

__all__ = [
    "grubbs_test",
    "grubbs_iterative",
    "critical_value",
    "p_value",
]
