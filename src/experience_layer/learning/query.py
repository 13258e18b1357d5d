"""Read paths over the experience store.

Recall by type or outcome, active lessons ranked by decayed confidence, the
context-filtered lesson lookup and store statistics. Nothing here writes;
decay is applied at read time against a single ``now`` per call.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from experience_layer.core.config import ExperienceConfig
from experience_layer.core.logging import get_logger
from experience_layer.learning.models import (
    ConfidenceSummary,
    GetLessonsInput,
    LessonsResult,
    RecallByOutcomeInput,
    RecallByTypeInput,
    RecallResult,
)
from experience_layer.learning.scoring import confidence_bucket, current_confidence
from experience_layer.store import (
    Episode,
    ExperienceStore,
    Lesson,
    LessonWithConfidence,
    PatternType,
    StoreStats,
)
from experience_layer.utils.time import utc_now

_logger = get_logger("learning.query")


def _mean_utility(episodes: list[Episode]) -> float:
    if not episodes:
        return 0.0
    return sum(e.utility_score for e in episodes) / len(episodes)


def matches_context(lesson: Lesson, context: Mapping[str, Any]) -> bool:
    """Loose keyword overlap between lesson context tags and a caller context.

    A tag matches when it contains a context key, or when the stringified
    value of a key contains the tag (both case-insensitive). Lessons without
    contexts always match.
    """
    if lesson.contexts is None:
        return True
    for tag in lesson.contexts:
        tag_lower = tag.lower()
        for key, value in context.items():
            if key.lower() in tag_lower or tag_lower in str(value).lower():
                return True
    return False


class QueryLayer:
    """Read-only queries with decay applied at read time."""

    def __init__(self, store: ExperienceStore, config: ExperienceConfig | None = None) -> None:
        self.store = store
        self.config = config or ExperienceConfig()

    def recall_by_type(self, data: RecallByTypeInput) -> RecallResult:
        """Newest-first episodes of one operation type.

        The outcome filter is applied in the store query so the page holds up
        to ``limit`` matching episodes. Related patterns are those whose
        description mentions the operation type.
        """
        episodes = self.store.get_episodes_by_type(
            data.operation_type, outcome=data.outcome_filter, limit=data.limit
        )
        patterns = self.store.find_patterns_containing(data.operation_type)
        return RecallResult(
            episodes=episodes,
            patterns_detected=patterns,
            avg_utility=_mean_utility(episodes),
        )

    def recall_by_outcome(self, data: RecallByOutcomeInput) -> RecallResult:
        """Newest-first episodes with one outcome, optionally of one type.

        Related patterns are those of the matching pattern type (partial maps
        to correlation), narrowed to descriptions mentioning the operation
        type when one is given.
        """
        episodes = self.store.get_episodes_by_outcome(
            data.outcome, operation_type=data.operation_type, limit=data.limit
        )
        pattern_type = PatternType.for_outcome(data.outcome)
        if data.operation_type:
            patterns = self.store.find_patterns_containing(
                data.operation_type, pattern_type=pattern_type
            )
        else:
            patterns = self.store.get_patterns(pattern_type=pattern_type)
        return RecallResult(
            episodes=episodes,
            patterns_detected=patterns,
            avg_utility=_mean_utility(episodes),
        )

    def active_lessons(
        self, min_confidence: float = 0.0, now: datetime | None = None
    ) -> list[LessonWithConfidence]:
        """Non-deprecated lessons at or above ``min_confidence`` after decay.

        Sorted by decayed confidence, highest first; ties keep id order.
        """
        now = now or utc_now()
        ranked = []
        for lesson in self.store.get_active_lessons():
            confidence = current_confidence(
                lesson.initial_confidence,
                lesson.decay_constant,
                lesson.last_validated,
                now,
            )
            if confidence >= min_confidence:
                ranked.append(LessonWithConfidence(lesson, confidence))
        ranked.sort(key=lambda item: item.current_confidence, reverse=True)
        return ranked

    def get_lessons(self, data: GetLessonsInput, now: datetime | None = None) -> LessonsResult:
        """Active lessons applicable to an operation type and context."""
        lessons = self.active_lessons(data.min_confidence, now=now)

        if data.operation_type:
            needle = data.operation_type.lower()
            lessons = [
                item for item in lessons if self._mentions(item.lesson, needle)
            ]

        if data.context:
            context = data.context
            lessons = [item for item in lessons if matches_context(item.lesson, context)]

        thresholds = self.config.confidence
        summary = ConfidenceSummary()
        for item in lessons:
            bucket = confidence_bucket(
                item.current_confidence, thresholds.high, thresholds.medium
            )
            setattr(summary, bucket, getattr(summary, bucket) + 1)

        return LessonsResult(lessons=lessons, confidence_summary=summary)

    def _mentions(self, lesson: Lesson, needle: str) -> bool:
        if needle in lesson.statement.lower():
            return True
        if lesson.contexts and any(needle in tag.lower() for tag in lesson.contexts):
            return True
        if lesson.pattern_id is not None:
            pattern = self.store.get_pattern(lesson.pattern_id)
            if pattern is None:
                _logger.debug(
                    "lesson_pattern_missing",
                    lesson_id=lesson.id,
                    pattern_id=lesson.pattern_id,
                )
                return False
            return needle in pattern.description.lower()
        return False

    def stats(self, now: datetime | None = None) -> StoreStats:
        """Counts across the store plus high-confidence active lessons."""
        high = self.config.confidence.high
        active = self.active_lessons(now=now)
        return StoreStats(
            episodes=self.store.count_episodes(),
            patterns=self.store.count_patterns(),
            lessons=len(active),
            avg_utility=self.store.average_utility(),
            high_confidence_lessons=sum(1 for item in active if item.current_confidence >= high),
            deprecated_lessons=self.store.count_deprecated_lessons(),
            by_outcome=self.store.count_episodes_by_outcome(),
        )


__all__ = ["QueryLayer", "matches_context"]
