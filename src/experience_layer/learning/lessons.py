"""Lesson lifecycle: creation, application, deprecation and retention.

A lesson's stored ``initial_confidence`` is its confidence as of
``last_validated``. Applying a lesson folds the outcome into that value with a
prior-weighted update and resets the decay clock:

    prior_weight = max(0.3, 1 - ln(times_applied + 1) / 5)
    new = clamp(prior_weight × decayed_previous
                + (1 - prior_weight) × (0.7 × success_rate + 0.3 × evidence),
                0.1, 0.95)

The prior dominates while a lesson has little history and gives way to the
observed success rate as applications accumulate.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta

from experience_layer.core import constants as c
from experience_layer.core.config import ExperienceConfig
from experience_layer.core.errors import InsufficientEvidenceError, NotFoundError
from experience_layer.core.logging import get_logger
from experience_layer.learning.models import (
    ApplyLessonInput,
    ApplyLessonResult,
    CleanupResult,
    LearnFromPatternInput,
    LearnFromPatternResult,
)
from experience_layer.learning.scoring import (
    clamp,
    classify_pattern,
    current_confidence,
    round_half_up,
    success_rate,
)
from experience_layer.store import Episode, ExperienceStore, Lesson, Outcome
from experience_layer.utils.time import utc_now

_logger = get_logger("learning.lessons")


def derive_contexts(episodes: list[Episode]) -> list[str]:
    """Context tags for a lesson, de-duplicated in first-seen order.

    ``server:<name>`` and ``env:<environment>`` tags follow episode order;
    ``operation:<type>`` tags for each distinct operation type come last.
    """
    tags: list[str] = []
    operation_types: list[str] = []
    for episode in episodes:
        if episode.server_name:
            tags.append(f"server:{episode.server_name}")
        if episode.environment:
            tags.append(f"env:{episode.environment}")
        if episode.operation_type not in operation_types:
            operation_types.append(episode.operation_type)
    tags.extend(f"operation:{op}" for op in operation_types)
    return list(dict.fromkeys(tags))


def initial_lesson_confidence(episodes: list[Episode]) -> float:
    """Confidence of a lesson formed from ``episodes``.

    0.4 base, up to 0.3 for success rate, up to 0.3 for episode count and up
    to 0.2 for mean utility, clamped to [0.3, 0.9].
    """
    n = len(episodes)
    count_bonus = min(0.3, 0.1 * math.log(n + 1))
    mean_utility = sum(e.utility_score for e in episodes) / n
    raw = 0.4 + 0.3 * success_rate(episodes) + count_bonus + 0.2 * mean_utility
    return clamp(raw, 0.3, 0.9)


class LessonManager:
    """Creates lessons from evidence and keeps their confidence current."""

    def __init__(self, store: ExperienceStore, config: ExperienceConfig | None = None) -> None:
        self.store = store
        self.config = config or ExperienceConfig()

    def _require_lesson(self, lesson_id: int) -> Lesson:
        lesson = self.store.get_lesson(lesson_id)
        if lesson is None:
            raise NotFoundError("lesson", lesson_id)
        return lesson

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_from_pattern(
        self, data: LearnFromPatternInput, now: datetime | None = None
    ) -> LearnFromPatternResult:
        """Distill a lesson from a set of episodes.

        Ids that do not resolve are ignored; at least ``min_episodes`` must
        remain. The pattern named by ``pattern_description`` is refreshed if
        one already matches, otherwise created.

        Raises:
            InsufficientEvidenceError: Too few episode ids resolve.
        """
        now = now or utc_now()
        required = self.config.patterns.min_episodes
        episodes = self.store.get_episodes_by_ids(data.episode_ids)
        if len(episodes) < required:
            raise InsufficientEvidenceError(required=required, found=len(episodes))

        n = len(episodes)
        rate = success_rate(episodes)
        confidence = initial_lesson_confidence(episodes)
        episode_ids = [e.id for e in episodes]

        with self.store.transaction():
            existing = self.store.find_pattern_by_description(data.pattern_description)
            if existing is not None:
                pattern_id = existing.id
                self.store.update_pattern(
                    pattern_id,
                    frequency=n,
                    last_seen=now,
                    last_validated=now,
                    episode_ids=episode_ids,
                )
            else:
                pattern = self.store.insert_pattern(
                    pattern_type=classify_pattern(rate),
                    description=data.pattern_description,
                    episode_ids=episode_ids,
                    initial_confidence=confidence,
                    decay_constant=self.config.patterns.decay_constant,
                    discrimination_weight=rate * math.log(n + 1),
                    now=now,
                )
                pattern_id = pattern.id

            lesson = self.store.insert_lesson(
                statement=data.lesson_statement,
                pattern_id=pattern_id,
                contexts=derive_contexts(episodes),
                initial_confidence=confidence,
                decay_constant=self.config.patterns.decay_constant,
                now=now,
            )

        _logger.info(
            "lesson_created",
            lesson_id=lesson.id,
            pattern_id=pattern_id,
            pattern_reused=existing is not None,
            episodes=n,
            initial_confidence=round(confidence, 4),
        )
        return LearnFromPatternResult(
            lesson_id=lesson.id,
            initial_confidence=confidence,
            pattern_id=pattern_id,
        )

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------

    def apply(self, data: ApplyLessonInput, now: datetime | None = None) -> ApplyLessonResult:
        """Record one use of a lesson and update its confidence.

        Partial outcomes count half a success toward the running rate; the
        stored success counter is rounded to an integer. A linked pattern
        only gains a success on a full success.

        Raises:
            NotFoundError: The lesson id does not resolve.
        """
        now = now or utc_now()
        thresholds = self.config.confidence

        with self.store.transaction():
            lesson = self._require_lesson(data.lesson_id)
            previous = current_confidence(
                lesson.initial_confidence,
                lesson.decay_constant,
                lesson.last_validated,
                now,
            )

            applied = lesson.times_applied + 1
            succeeded = lesson.times_succeeded + data.outcome.credit
            rate = succeeded / applied

            prior_weight = max(0.3, 1 - math.log(applied + 1) / 5)
            evidence = 0.7 * rate + 0.3 * data.outcome.credit
            new_confidence = clamp(
                prior_weight * previous + (1 - prior_weight) * evidence,
                c.MIN_LESSON_CONFIDENCE,
                c.MAX_LESSON_CONFIDENCE,
            )

            self.store.update_lesson(
                lesson.id,
                initial_confidence=new_confidence,
                last_validated=now,
                times_applied=applied,
                times_succeeded=round_half_up(succeeded),
            )

            deprecated = lesson.is_deprecated
            if (
                new_confidence < thresholds.deprecation
                and applied >= thresholds.min_applications_for_deprecation
            ):
                if self.store.deprecate_lesson(lesson.id, now):
                    _logger.info(
                        "lesson_auto_deprecated",
                        lesson_id=lesson.id,
                        confidence=round(new_confidence, 4),
                        times_applied=applied,
                    )
                deprecated = True

            if lesson.pattern_id is not None:
                self._credit_pattern(lesson.pattern_id, data.outcome, now)

        _logger.info(
            "lesson_applied",
            lesson_id=lesson.id,
            outcome=data.outcome.value,
            previous_confidence=round(previous, 4),
            new_confidence=round(new_confidence, 4),
            times_applied=applied,
        )
        return ApplyLessonResult(
            lesson_id=lesson.id,
            previous_confidence=previous,
            new_confidence=new_confidence,
            total_applications=applied,
            success_rate=rate,
            deprecated=deprecated,
        )

    def _credit_pattern(self, pattern_id: int, outcome: Outcome, now: datetime) -> None:
        pattern = self.store.get_pattern(pattern_id)
        if pattern is None:
            _logger.warning("lesson_pattern_missing", pattern_id=pattern_id)
            return
        self.store.update_pattern(
            pattern_id,
            times_applied=pattern.times_applied + 1,
            times_succeeded=pattern.times_succeeded + (1 if outcome is Outcome.SUCCESS else 0),
            last_validated=now,
        )

    # ------------------------------------------------------------------
    # Deprecation and retention
    # ------------------------------------------------------------------

    def deprecate(self, lesson_id: int, now: datetime | None = None) -> Lesson:
        """Deprecate a lesson permanently and return its stored state.

        Deprecating an already deprecated lesson keeps the first timestamp.

        Raises:
            NotFoundError: The lesson id does not resolve.
        """
        now = now or utc_now()
        with self.store.transaction():
            self._require_lesson(lesson_id)
            if self.store.deprecate_lesson(lesson_id, now):
                _logger.info("lesson_deprecated", lesson_id=lesson_id)
            return self._require_lesson(lesson_id)

    def cleanup(
        self, retention_days: float | None = None, now: datetime | None = None
    ) -> CleanupResult:
        """Run the retention sweep.

        Deletes episodes older than ``retention_days``, deletes patterns not
        seen for ``pattern_retention_factor`` times that, and deprecates
        active lessons not validated within ``retention_days`` that were
        never applied or whose decayed confidence is below
        ``stale_lesson_confidence``. Safe to re-run: a second pass over the
        same state changes nothing.

        Raises:
            ValueError: If ``retention_days`` is not positive or reaches past
                the earliest representable date.
        """
        now = now or utc_now()
        retention = self.config.retention
        days = retention.episode_retention_days if retention_days is None else retention_days
        if days <= 0:
            raise ValueError(f"retention_days must be positive (got {days})")

        try:
            episode_cutoff = now - timedelta(days=days)
            pattern_cutoff = now - timedelta(days=days * retention.pattern_retention_factor)
        except OverflowError as e:
            raise ValueError(f"retention_days is out of range (got {days})") from e
        result = CleanupResult()

        with self.store.transaction():
            result.episodes_deleted = self.store.delete_episodes_before(episode_cutoff)
            result.patterns_deleted = self.store.delete_patterns_unseen_since(pattern_cutoff)

            for lesson in self.store.get_stale_lessons(validated_before=episode_cutoff):
                confidence = current_confidence(
                    lesson.initial_confidence,
                    lesson.decay_constant,
                    lesson.last_validated,
                    now,
                )
                if lesson.times_applied > 0 and confidence >= retention.stale_lesson_confidence:
                    continue
                if self.store.deprecate_lesson(lesson.id, now):
                    result.lessons_deprecated += 1

        _logger.info("cleanup_completed", retention_days=days, **result.to_dict())
        return result


__all__ = [
    "LessonManager",
    "derive_contexts",
    "initial_lesson_confidence",
]
