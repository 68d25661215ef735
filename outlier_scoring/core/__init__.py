"""
Core module: configuration, logging, exceptions, dataset validation and result records.
"""

from .config import Config, config
from .dataset import as_dataset, as_point, standardize
from .exceptions import DimensionMismatch, InvalidConfiguration, OutlierScoringError
from .logging_config import setup_logging
from .schema import GrubbsResult, Scores

__all__ = [
    "Config",
    "config",
    "as_dataset",
    "as_point",
    "standardize",
    "OutlierScoringError",
    "InvalidConfiguration",
    "DimensionMismatch",
    "setup_logging",
    "GrubbsResult",
    "Scores",
]
