"""Core configuration, errors and logging for the experience layer."""

from experience_layer.core.config import (
    ConfidenceThresholds,
    ExperienceConfig,
    LogConfig,
    PatternConfig,
    RetentionConfig,
    UtilityWeights,
)
from experience_layer.core.errors import (
    ConfigurationError,
    ErrorCode,
    ExperienceError,
    InsufficientEvidenceError,
    NotFoundError,
    StorageFailureError,
)

__all__ = [
    "ConfidenceThresholds",
    "ConfigurationError",
    "ErrorCode",
    "ExperienceConfig",
    "ExperienceError",
    "InsufficientEvidenceError",
    "LogConfig",
    "NotFoundError",
    "PatternConfig",
    "RetentionConfig",
    "StorageFailureError",
    "UtilityWeights",
]
