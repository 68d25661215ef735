"""
Pytest configuration and shared fixtures.

Provides small synthetic datasets: a tight cluster with one far outlier, a
uniform cluster without outliers, and the 1-D line used for hand-checked
neighbour and LOF values.
"""

import numpy as np
import pytest

from outlier_scoring.core.config import Config


@pytest.fixture
def mock_config():
    """
    Fixture providing a test configuration with explicit values (not from .env).

    Returns:
        Config: Small forests and neighbourhoods so tests stay fast
    """
    return Config(
        log_level="WARNING",
        n_jobs=1,
        neighbors={"k": 5, "algorithm": "brute", "block_size": 16},
        isolation={"n_trees": 20, "subsample_size": 32},
        grubbs={"alpha": 0.05},
    )


@pytest.fixture
def line_points() -> np.ndarray:
    """Four points on a line: 0, 1, 3, 6."""
    return np.array([[0.0], [1.0], [3.0], [6.0]])


@pytest.fixture
def cluster_with_outlier() -> np.ndarray:
    """
    60 points from a tight 2-D Gaussian around the origin, followed by one
    point at (10, 10). The outlier is the last row.
    """
    rng = np.random.default_rng(7)
    cluster = rng.normal(loc=0.0, scale=0.1, size=(60, 2))
    return np.vstack([cluster, [[10.0, 10.0]]])


@pytest.fixture
def uniform_cluster() -> np.ndarray:
    """400 points drawn uniformly from the unit square."""
    rng = np.random.default_rng(11)
    return rng.uniform(0.0, 1.0, size=(400, 2))


@pytest.fixture
def integer_grid() -> np.ndarray:
    """80 points on a small integer grid: many exact ties and duplicates."""
    rng = np.random.default_rng(3)
    return rng.integers(0, 5, size=(80, 2)).astype(float)


def pytest_configure(config):
    """
    Pytest hook for custom configuration.

    Registers custom markers used throughout tests.
    """
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running (spawns worker processes)"
    )
