"""Configuration models for the experience layer.

Pydantic models for the engine's tunable policy. Every field defaults to the
values in ``experience_layer.core.constants`` so an empty YAML file (or no
file at all) yields the reference behaviour.

Example YAML::

    db_path: ~/.experience-layer/experience.db
    patterns:
      recency_window_days: 14
    retention:
      episode_retention_days: 60
    logging:
      level: DEBUG
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from experience_layer.core import constants as c
from experience_layer.core.errors import ConfigurationError

DEFAULT_DB_PATH = Path.home() / ".experience-layer" / "experience.db"


class PatternConfig(BaseModel):
    """Pattern mining and temporal decay parameters."""

    min_episodes: int = Field(
        default=c.MIN_EPISODES,
        ge=1,
        description="Minimum episodes to form a pattern or a lesson.",
    )
    recency_window_days: float = Field(
        default=c.RECENCY_WINDOW_DAYS,
        gt=0,
        description="Look-back window (days) for pattern detection.",
    )
    decay_constant: float = Field(
        default=c.DECAY_CONSTANT,
        ge=0.0,
        description="k in CF(t) = CF0 * e^(-k * days). Assigned to new patterns and lessons.",
    )
    min_discrimination_weight: float = Field(
        default=c.MIN_DISCRIMINATION_WEIGHT,
        ge=0.0,
        description="Detection results weaker than this are discarded.",
    )
    detection_limit: int = Field(default=c.DETECTION_LIMIT, ge=1)
    novelty_lookback: int = Field(default=c.NOVELTY_LOOKBACK, ge=1)
    frequency_lookback: int = Field(default=c.FREQUENCY_LOOKBACK, ge=1)


class UtilityWeights(BaseModel):
    """Weights of U = a*novelty + b*effectiveness + g*generalizability."""

    novelty: float = Field(default=c.NOVELTY_WEIGHT, ge=0.0, le=1.0)
    effectiveness: float = Field(default=c.EFFECTIVENESS_WEIGHT, ge=0.0, le=1.0)
    generalizability: float = Field(default=c.GENERALIZABILITY_WEIGHT, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _validate_sum(self) -> UtilityWeights:
        total = self.novelty + self.effectiveness + self.generalizability
        if not math.isclose(total, 1.0, abs_tol=1e-9):
            raise ValueError(f"utility weights must sum to 1.0 (got {total})")
        return self


class ConfidenceThresholds(BaseModel):
    """Confidence buckets and the deprecation policy for lessons."""

    high: float = Field(default=c.HIGH_CONFIDENCE, ge=0.0, le=1.0)
    medium: float = Field(default=c.MEDIUM_CONFIDENCE, ge=0.0, le=1.0)
    deprecation: float = Field(default=c.DEPRECATION_THRESHOLD, ge=0.0, le=1.0)
    min_applications_for_deprecation: int = Field(
        default=c.MIN_APPLICATIONS_FOR_DEPRECATION,
        ge=1,
        description="Applications required before a lesson may be auto-deprecated.",
    )

    @model_validator(mode="after")
    def _validate_order(self) -> ConfidenceThresholds:
        if not self.deprecation < self.medium < self.high:
            raise ValueError(
                f"thresholds must satisfy deprecation ({self.deprecation}) < "
                f"medium ({self.medium}) < high ({self.high})"
            )
        return self


class RetentionConfig(BaseModel):
    """Retention sweep policy."""

    episode_retention_days: float = Field(default=c.EPISODE_RETENTION_DAYS, gt=0)
    pattern_retention_factor: float = Field(
        default=c.PATTERN_RETENTION_FACTOR,
        ge=1.0,
        description="Patterns unseen for factor * episode_retention_days are deleted.",
    )
    stale_lesson_confidence: float = Field(
        default=c.MEDIUM_CONFIDENCE,
        ge=0.0,
        le=1.0,
        description="Unvalidated lessons whose decayed confidence is below this "
        "are deprecated by the sweep.",
    )


class LogConfig(BaseModel):
    """Logging output settings."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    format: Literal["json", "console", "both"] = "console"
    file: Path | None = None

    @model_validator(mode="after")
    def _validate_file_for_both(self) -> LogConfig:
        if self.format == "both" and self.file is None:
            raise ValueError("logging.file is required when logging.format is 'both'")
        return self


class ExperienceConfig(BaseModel):
    """Top-level configuration for an experience layer instance."""

    db_path: Path = Field(default=DEFAULT_DB_PATH)
    patterns: PatternConfig = Field(default_factory=PatternConfig)
    utility: UtilityWeights = Field(default_factory=UtilityWeights)
    confidence: ConfidenceThresholds = Field(default_factory=ConfidenceThresholds)
    retention: RetentionConfig = Field(default_factory=RetentionConfig)
    logging: LogConfig = Field(default_factory=LogConfig)

    @model_validator(mode="after")
    def _expand_paths(self) -> ExperienceConfig:
        self.db_path = self.db_path.expanduser()
        return self

    @classmethod
    def from_yaml(cls, path: Path) -> ExperienceConfig:
        """Load configuration from a YAML file.

        Raises:
            ConfigurationError: If the file is missing, unparseable or invalid.
        """
        try:
            with open(path) as f:
                text = f.read()
        except OSError as e:
            raise ConfigurationError(f"Cannot read config {path}: {e}") from e
        return cls.from_yaml_string(text)

    @classmethod
    def from_yaml_string(cls, yaml_str: str) -> ExperienceConfig:
        """Load configuration from a YAML string."""
        try:
            data = yaml.safe_load(yaml_str) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError("Config root must be a mapping")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(str(e)) from e


__all__ = [
    "DEFAULT_DB_PATH",
    "ConfidenceThresholds",
    "ExperienceConfig",
    "LogConfig",
    "PatternConfig",
    "RetentionConfig",
    "UtilityWeights",
]
