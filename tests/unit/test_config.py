"""
Unit tests for configuration and logging setup.
"""

import logging

import pytest
from pydantic import ValidationError

from outlier_scoring.core.config import Config
from outlier_scoring.core.logging_config import setup_logging


def test_defaults():
    cfg = Config()

    assert cfg.neighbors.k == 20
    assert cfg.neighbors.algorithm == "brute"
    assert cfg.isolation.n_trees == 100
    assert cfg.isolation.subsample_size == 256
    assert cfg.isolation.max_depth is None
    assert cfg.grubbs.alpha == 0.05


def test_explicit_values(mock_config):
    assert mock_config.neighbors.k == 5
    assert mock_config.isolation.n_trees == 20
    assert mock_config.log_level == "WARNING"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("OUTLIER_ISOLATION__N_TREES", "50")
    monkeypatch.setenv("OUTLIER_NEIGHBORS__ALGORITHM", "kd_tree")
    monkeypatch.setenv("OUTLIER_N_JOBS", "-1")

    cfg = Config()
    assert cfg.isolation.n_trees == 50
    assert cfg.neighbors.algorithm == "kd_tree"
    assert cfg.n_jobs == -1


@pytest.mark.parametrize(
    "overrides",
    [
        {"neighbors": {"k": 0}},
        {"neighbors": {"algorithm": "ball_tree"}},
        {"isolation": {"subsample_size": 1}},
        {"isolation": {"n_trees": 0}},
        {"grubbs": {"alpha": 1.0}},
        {"n_jobs": 0},
    ],
)
def test_invalid_values(overrides):
    with pytest.raises(ValidationError):
        Config(**overrides)


def test_logs_dir_creates_directory(tmp_path):
    logs_dir = tmp_path / "logs"
    Config(logs_dir=logs_dir)
    assert logs_dir.is_dir()


def test_setup_logging_is_idempotent():
    logger = setup_logging("outlier_scoring.test")
    n_handlers = len(logger.handlers)

    assert setup_logging("outlier_scoring.test") is logger
    assert len(logger.handlers) == n_handlers
    assert isinstance(logger.handlers[0], logging.StreamHandler)


def test_import_leaves_output_to_the_application():
    import outlier_scoring  # noqa: F401

    handlers = logging.getLogger("outlier_scoring").handlers
    assert handlers
    assert all(isinstance(h, logging.NullHandler) for h in handlers)


def test_setup_logging_after_null_handler():
    name = "outlier_scoring.silent"
    logging.getLogger(name).addHandler(logging.NullHandler())

    logger = setup_logging(name)
    assert any(isinstance(h, logging.StreamHandler) for h in logger.handlers)
