"""
Configuration for the outlier scoring engine.

Defaults used whenever a caller leaves a parameter out. Every value can be
overridden from the environment, e.g. ``OUTLIER_ISOLATION__N_TREES=200``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class NeighborConfig(BaseModel):
	"""
	Distance Index settings.

	Notes:
	- k: neighbour count used by the kNN and LOF scores.
	- algorithm: "brute" (blocked exact search) or "kd_tree" (scikit-learn KDTree).
	- block_size: rows per vectorised distance block in the brute backend.
	"""

	k: int = Field(20, ge=1)
	algorithm: Literal["brute", "kd_tree"] = "brute"
	block_size: int = Field(256, ge=1)


class IsolationConfig(BaseModel):
	"""
	Isolation Forest settings.

	Notes:
	- subsample_size: 256 is the size recommended by the original paper.
	- max_depth: None means ceil(log2(subsample_size)).
	- convergence_epsilon: tolerated per-point score difference between a
	  small and a large forest built from the same seed.
	"""

	n_trees: int = Field(100, ge=1)
	subsample_size: int = Field(256, ge=2)
	max_depth: Optional[int] = Field(None, ge=1)
	convergence_epsilon: float = Field(0.05, gt=0.0)
	contamination: Optional[float] = Field(None, gt=0.0, le=0.5)


class GrubbsConfig(BaseModel):
	"""Grubbs' test settings."""

	alpha: float = Field(0.05, gt=0.0, lt=1.0, description="Significance level")


class Config(BaseSettings):
	"""
	Global configuration with environment overrides.
	"""

	model_config = SettingsConfigDict(
		env_prefix="OUTLIER_",
		env_nested_delimiter="__",
		env_file=".env",
		extra="ignore",
	)

	log_level: str = Field("INFO", description="Default logging level")
	logs_dir: Optional[Path] = Field(None, description="Directory for log files")
	n_jobs: int = Field(1, description="joblib workers; -1 uses all processors")

	neighbors: NeighborConfig = NeighborConfig()
	isolation: IsolationConfig = IsolationConfig()
	grubbs: GrubbsConfig = GrubbsConfig()

	@field_validator("n_jobs")
	@classmethod
	def _check_n_jobs(cls, value: int) -> int:
		if value == 0:
			raise ValueError("n_jobs must be a positive count or negative, got 0")
		return value

	def model_post_init(self, __context: object) -> None:
		if self.logs_dir is not None:
			self.logs_dir.mkdir(parents=True, exist_ok=True)


config = Config()
