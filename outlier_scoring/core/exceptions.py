"""
Exceptions raised by the outlier scoring engine.

Every failure is a caller contract violation detected before any computation
starts, so none of these are worth retrying.
"""


class OutlierScoringError(Exception):
    """Base exception for outlier scoring failures."""
    pass


class InvalidConfiguration(OutlierScoringError, ValueError):
    """Raised when a parameter is out of range (k, n, tree counts, alpha...)."""
    pass


class DimensionMismatch(OutlierScoringError, ValueError):
    """Raised when feature vectors do not share the same length."""
    pass
