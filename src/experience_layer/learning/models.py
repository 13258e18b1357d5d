"""Inputs and results of the public engine operations.

Inputs are pydantic models so that plain dicts arriving from a CLI, a signal
payload or a library caller are validated the same way. Results are plain
dataclasses with ``to_dict()`` for JSON output.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, JsonValue

from experience_layer.core import constants as c
from experience_layer.store.models import (
    Episode,
    LessonWithConfidence,
    Outcome,
    Pattern,
)

# =============================================================================
# Inputs
# =============================================================================


class RecordExperienceInput(BaseModel):
    """One attempted operation to record as an episode."""

    model_config = ConfigDict(extra="forbid")

    operation_type: str = Field(min_length=1, description="build, search, verify, ...")
    outcome: Outcome
    server_name: str | None = None
    problem: dict[str, JsonValue] | None = Field(
        default=None, description="Problem context (query, constraints, context)."
    )
    solution: dict[str, JsonValue] | None = Field(
        default=None, description="Solution applied (tool, params, approach)."
    )
    metadata: dict[str, JsonValue] | None = Field(
        default=None, description="Environment, dependencies and triggers."
    )
    quality_score: float | None = Field(default=None, ge=0.0, le=1.0)
    duration_ms: float | None = Field(default=None, ge=0.0)
    notes: str | None = None


class RecallByTypeInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    operation_type: str = Field(min_length=1)
    outcome_filter: Outcome | None = None
    limit: int = Field(default=c.DEFAULT_RECALL_LIMIT, ge=1)


class RecallByOutcomeInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    outcome: Outcome
    operation_type: str | None = None
    limit: int = Field(default=c.DEFAULT_RECALL_LIMIT, ge=1)


class GetLessonsInput(BaseModel):
    """Filters for retrieving applicable lessons."""

    model_config = ConfigDict(extra="forbid")

    context: dict[str, Any] | None = Field(
        default=None, description="Current context matched loosely against lesson contexts."
    )
    operation_type: str | None = None
    min_confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class ApplyLessonInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    lesson_id: int
    outcome: Outcome
    notes: str | None = None


class LearnFromPatternInput(BaseModel):
    """Evidence and statement for a new lesson.

    ``episode_ids`` is not length-checked here; too few resolvable ids is an
    InsufficientEvidenceError raised by the lesson manager.
    """

    model_config = ConfigDict(extra="forbid")

    pattern_description: str = Field(min_length=1)
    episode_ids: list[int]
    lesson_statement: str = Field(min_length=1)


# =============================================================================
# Results
# =============================================================================


@dataclass
class RecordExperienceResult:
    episode_id: int
    utility_score: float
    patterns_triggered: list[str] = field(default_factory=list)
    recorded: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "episode_id": self.episode_id,
            "recorded": self.recorded,
            "utility_score": self.utility_score,
            "patterns_triggered": list(self.patterns_triggered),
        }


@dataclass
class RecallResult:
    """A page of episodes plus the patterns related to the query."""

    episodes: list[Episode]
    patterns_detected: list[Pattern]
    avg_utility: float

    @property
    def count(self) -> int:
        return len(self.episodes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "episodes": [e.to_dict() for e in self.episodes],
            "count": self.count,
            "patterns_detected": [p.to_dict() for p in self.patterns_detected],
            "avg_utility": self.avg_utility,
        }


@dataclass
class ConfidenceSummary:
    high: int = 0
    medium: int = 0
    low: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"high": self.high, "medium": self.medium, "low": self.low}


@dataclass
class LessonsResult:
    lessons: list[LessonWithConfidence]
    confidence_summary: ConfidenceSummary

    def to_dict(self) -> dict[str, Any]:
        return {
            "lessons": [lesson.to_dict() for lesson in self.lessons],
            "confidence_summary": self.confidence_summary.to_dict(),
        }


@dataclass
class ApplyLessonResult:
    """Outcome of one Bayesian-style confidence update."""

    lesson_id: int
    previous_confidence: float
    new_confidence: float
    total_applications: int
    success_rate: float
    deprecated: bool = False
    applied: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "applied": self.applied,
            "lesson_id": self.lesson_id,
            "previous_confidence": self.previous_confidence,
            "new_confidence": self.new_confidence,
            "total_applications": self.total_applications,
            "success_rate": self.success_rate,
            "deprecated": self.deprecated,
        }


@dataclass
class LearnFromPatternResult:
    lesson_id: int
    initial_confidence: float
    pattern_id: int
    created: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "lesson_id": self.lesson_id,
            "created": self.created,
            "initial_confidence": self.initial_confidence,
            "pattern_id": self.pattern_id,
        }


@dataclass
class CleanupResult:
    episodes_deleted: int = 0
    patterns_deleted: int = 0
    lessons_deprecated: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "episodes_deleted": self.episodes_deleted,
            "patterns_deleted": self.patterns_deleted,
            "lessons_deprecated": self.lessons_deprecated,
        }


__all__ = [
    "ApplyLessonInput",
    "ApplyLessonResult",
    "CleanupResult",
    "ConfidenceSummary",
    "GetLessonsInput",
    "LearnFromPatternInput",
    "LearnFromPatternResult",
    "LessonsResult",
    "RecallByOutcomeInput",
    "RecallByTypeInput",
    "RecallResult",
    "RecordExperienceInput",
    "RecordExperienceResult",
]
