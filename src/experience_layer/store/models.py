"""Data models for the experience store.

Dataclasses for the three entity tables (episodes, patterns, lessons) and the
enums shared across the engine. Free-form payloads (problem, solution,
metadata) are carried as JSON values and are opaque to the engine except for
the few fields the scoring functions read.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, TypeAlias

from experience_layer.utils.time import to_iso

JSONValue: TypeAlias = (
    str | int | float | bool | None | dict[str, "JSONValue"] | list["JSONValue"]
)
"""Variant value for caller-supplied payloads."""

JSONObject: TypeAlias = dict[str, JSONValue]


class Outcome(str, Enum):
    """Result of an attempted operation or of applying a lesson."""

    SUCCESS = "success"
    FAILURE = "failure"
    PARTIAL = "partial"

    @property
    def credit(self) -> float:
        """Evidence value of the outcome: 1.0 / 0.5 / 0.0."""
        return _OUTCOME_CREDIT[self]


_OUTCOME_CREDIT = {
    Outcome.SUCCESS: 1.0,
    Outcome.PARTIAL: 0.5,
    Outcome.FAILURE: 0.0,
}


class PatternType(str, Enum):
    """Classification of a mined pattern by its success rate."""

    SUCCESS = "success"
    FAILURE = "failure"
    CORRELATION = "correlation"

    @classmethod
    def for_outcome(cls, outcome: Outcome) -> PatternType:
        """Pattern type that corresponds to an episode outcome."""
        if outcome is Outcome.SUCCESS:
            return cls.SUCCESS
        if outcome is Outcome.FAILURE:
            return cls.FAILURE
        return cls.CORRELATION


@dataclass
class Episode:
    """One recorded attempt at an operation. Immutable once stored."""

    id: int
    timestamp: datetime
    operation_type: str
    outcome: Outcome
    server_name: str | None = None
    problem: JSONObject | None = None
    solution: JSONObject | None = None
    metadata: JSONObject | None = None
    quality_score: float | None = None
    duration_ms: float | None = None
    notes: str | None = None
    novelty_score: float = 0.5
    effectiveness_score: float = 0.5
    generalizability_score: float = 0.5
    utility_score: float = 0.5

    @property
    def environment(self) -> str | None:
        """The ``metadata.environment`` value as text, if it is a truthy scalar."""
        if isinstance(self.metadata, dict):
            env = self.metadata.get("environment")
            if env and not isinstance(env, (dict, list)):
                return str(env)
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary for transport."""
        return {
            "id": self.id,
            "timestamp": to_iso(self.timestamp),
            "operation_type": self.operation_type,
            "server_name": self.server_name,
            "problem": self.problem,
            "solution": self.solution,
            "outcome": self.outcome.value,
            "metadata": self.metadata,
            "quality_score": self.quality_score,
            "duration_ms": self.duration_ms,
            "notes": self.notes,
            "novelty_score": self.novelty_score,
            "effectiveness_score": self.effectiveness_score,
            "generalizability_score": self.generalizability_score,
            "utility_score": self.utility_score,
        }


@dataclass
class Pattern:
    """A regularity mined across several same-type episodes."""

    id: int
    pattern_type: PatternType
    description: str
    episode_ids: list[int]
    frequency: int
    last_seen: datetime
    created_at: datetime
    initial_confidence: float
    decay_constant: float
    last_validated: datetime
    times_applied: int = 0
    times_succeeded: int = 0
    discrimination_weight: float = 0.5

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary for transport."""
        return {
            "id": self.id,
            "pattern_type": self.pattern_type.value,
            "description": self.description,
            "episode_ids": list(self.episode_ids),
            "frequency": self.frequency,
            "last_seen": to_iso(self.last_seen),
            "created_at": to_iso(self.created_at),
            "initial_confidence": self.initial_confidence,
            "decay_constant": self.decay_constant,
            "last_validated": to_iso(self.last_validated),
            "times_applied": self.times_applied,
            "times_succeeded": self.times_succeeded,
            "discrimination_weight": self.discrimination_weight,
        }


@dataclass
class Lesson:
    """Distilled guidance, optionally traced back to a pattern.

    ``initial_confidence`` is the confidence as of ``last_validated``; the
    displayed confidence is always derived from it at read time.
    """

    id: int
    statement: str
    initial_confidence: float
    decay_constant: float
    last_validated: datetime
    created_at: datetime
    pattern_id: int | None = None
    contexts: list[str] | None = None
    times_applied: int = 0
    times_succeeded: int = 0
    deprecated_at: datetime | None = None

    @property
    def is_deprecated(self) -> bool:
        return self.deprecated_at is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary for transport."""
        return {
            "id": self.id,
            "statement": self.statement,
            "pattern_id": self.pattern_id,
            "contexts": list(self.contexts) if self.contexts is not None else None,
            "initial_confidence": self.initial_confidence,
            "decay_constant": self.decay_constant,
            "last_validated": to_iso(self.last_validated),
            "times_applied": self.times_applied,
            "times_succeeded": self.times_succeeded,
            "created_at": to_iso(self.created_at),
            "deprecated_at": to_iso(self.deprecated_at) if self.deprecated_at else None,
        }


@dataclass
class LessonWithConfidence:
    """A lesson paired with its decayed confidence at query time."""

    lesson: Lesson
    current_confidence: float

    def to_dict(self) -> dict[str, Any]:
        return {**self.lesson.to_dict(), "current_confidence": self.current_confidence}


@dataclass
class StoreStats:
    """Aggregate counts over the store."""

    episodes: int = 0
    patterns: int = 0
    lessons: int = 0
    avg_utility: float = 0.0
    high_confidence_lessons: int = 0
    deprecated_lessons: int = 0
    by_outcome: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "episodes": self.episodes,
            "patterns": self.patterns,
            "lessons": self.lessons,
            "avg_utility": self.avg_utility,
            "high_confidence_lessons": self.high_confidence_lessons,
            "deprecated_lessons": self.deprecated_lessons,
            "by_outcome": dict(self.by_outcome),
        }


__all__ = [
    "Episode",
    "JSONObject",
    "JSONValue",
    "Lesson",
    "LessonWithConfidence",
    "Outcome",
    "Pattern",
    "PatternType",
    "StoreStats",
]
