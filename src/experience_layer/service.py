"""Public programmatic surface of the experience layer.

``ExperienceService`` owns one store and the engine components built on it,
and exposes the operations callers use: record-experience, recall-by-type,
recall-by-outcome, get-lessons, apply-lesson, learn-from-pattern and the
cleanup sweep, plus a handful of read helpers.

Each operation accepts its pydantic input model or an equivalent plain dict
and runs inside an ``OperationContext`` so every log line it produces carries
the operation name and a request id.

Example::

    service = ExperienceService.from_config(ExperienceConfig())
    result = service.record_experience(
        {"operation_type": "build", "outcome": "success"}
    )
    lessons = service.get_lessons({"operation_type": "build"})
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime
from typing import Any, TypeVar

from pydantic import BaseModel

from experience_layer.core.config import ExperienceConfig
from experience_layer.core.errors import NotFoundError
from experience_layer.core.logging import OperationContext, get_logger, with_context
from experience_layer.learning.detector import PatternDetector
from experience_layer.learning.lessons import LessonManager
from experience_layer.learning.models import (
    ApplyLessonInput,
    ApplyLessonResult,
    CleanupResult,
    GetLessonsInput,
    LearnFromPatternInput,
    LearnFromPatternResult,
    LessonsResult,
    RecallByOutcomeInput,
    RecallByTypeInput,
    RecallResult,
    RecordExperienceInput,
    RecordExperienceResult,
)
from experience_layer.learning.query import QueryLayer
from experience_layer.learning.recorder import EpisodeRecorder
from experience_layer.store import (
    Episode,
    ExperienceStore,
    Lesson,
    LessonWithConfidence,
    Pattern,
    PatternType,
    StoreStats,
)

_logger = get_logger("service")

InputT = TypeVar("InputT", bound=BaseModel)


def _coerce(model: type[InputT], data: InputT | Mapping[str, Any]) -> InputT:
    if isinstance(data, model):
        return data
    return model.model_validate(data)


class ExperienceService:
    """Facade over the recorder, lesson manager and query layer.

    Args:
        store: Store to operate on. Defaults to one at ``config.db_path``.
        config: Engine configuration. Defaults to the built-in policy.
    """

    def __init__(
        self,
        store: ExperienceStore | None = None,
        config: ExperienceConfig | None = None,
    ) -> None:
        self.config = config or ExperienceConfig()
        self.store = store or ExperienceStore(self.config.db_path)
        self.detector = PatternDetector(self.store, self.config.patterns)
        self.recorder = EpisodeRecorder(self.store, self.config, self.detector)
        self.lessons = LessonManager(self.store, self.config)
        self.query = QueryLayer(self.store, self.config)

    @classmethod
    def from_config(cls, config: ExperienceConfig) -> ExperienceService:
        return cls(ExperienceStore(config.db_path), config)

    @contextmanager
    def _operation(self, name: str, source: str | None) -> Iterator[None]:
        with with_context(OperationContext(operation=name, source=source)):
            _logger.debug("operation_started")
            yield

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    def record_experience(
        self,
        data: RecordExperienceInput | Mapping[str, Any],
        *,
        now: datetime | None = None,
        source: str | None = None,
    ) -> RecordExperienceResult:
        """Score, store and mine one experience.

        Raises:
            pydantic.ValidationError: If ``data`` is malformed.
            StorageFailureError: If the store fails.
        """
        with self._operation("record_experience", source):
            return self.recorder.record(_coerce(RecordExperienceInput, data), now=now)

    def recall_by_type(
        self,
        data: RecallByTypeInput | Mapping[str, Any],
        *,
        source: str | None = None,
    ) -> RecallResult:
        with self._operation("recall_by_type", source):
            return self.query.recall_by_type(_coerce(RecallByTypeInput, data))

    def recall_by_outcome(
        self,
        data: RecallByOutcomeInput | Mapping[str, Any],
        *,
        source: str | None = None,
    ) -> RecallResult:
        with self._operation("recall_by_outcome", source):
            return self.query.recall_by_outcome(_coerce(RecallByOutcomeInput, data))

    def get_lessons(
        self,
        data: GetLessonsInput | Mapping[str, Any] | None = None,
        *,
        now: datetime | None = None,
        source: str | None = None,
    ) -> LessonsResult:
        """Active lessons for a context, with decayed confidence."""
        with self._operation("get_lessons", source):
            return self.query.get_lessons(_coerce(GetLessonsInput, data or {}), now=now)

    def apply_lesson(
        self,
        data: ApplyLessonInput | Mapping[str, Any],
        *,
        now: datetime | None = None,
        source: str | None = None,
    ) -> ApplyLessonResult:
        """Record a use of a lesson and update its confidence.

        Raises:
            NotFoundError: If the lesson does not exist.
        """
        with self._operation("apply_lesson", source):
            return self.lessons.apply(_coerce(ApplyLessonInput, data), now=now)

    def learn_from_pattern(
        self,
        data: LearnFromPatternInput | Mapping[str, Any],
        *,
        now: datetime | None = None,
        source: str | None = None,
    ) -> LearnFromPatternResult:
        """Distill a lesson from recurring episodes.

        Raises:
            InsufficientEvidenceError: If fewer than the minimum episodes resolve.
        """
        with self._operation("learn_from_pattern", source):
            return self.lessons.create_from_pattern(
                _coerce(LearnFromPatternInput, data), now=now
            )

    def cleanup(
        self,
        retention_days: float | None = None,
        *,
        now: datetime | None = None,
        source: str | None = None,
    ) -> CleanupResult:
        """Run the retention sweep (defaults to the configured window)."""
        with self._operation("cleanup", source):
            return self.lessons.cleanup(retention_days, now=now)

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    def get_stats(self, *, now: datetime | None = None) -> StoreStats:
        with self._operation("get_stats", None):
            return self.query.stats(now=now)

    def get_episode(self, episode_id: int) -> Episode:
        episode = self.store.get_episode(episode_id)
        if episode is None:
            raise NotFoundError("episode", episode_id)
        return episode

    def get_pattern(self, pattern_id: int) -> Pattern:
        pattern = self.store.get_pattern(pattern_id)
        if pattern is None:
            raise NotFoundError("pattern", pattern_id)
        return pattern

    def list_patterns(
        self, pattern_type: PatternType | str | None = None, limit: int | None = None
    ) -> list[Pattern]:
        if pattern_type is not None:
            pattern_type = PatternType(pattern_type)
        return self.store.get_patterns(pattern_type=pattern_type, limit=limit)

    def recent_episodes(self, limit: int = 50, offset: int = 0) -> list[Episode]:
        return self.store.get_recent_episodes(limit=limit, offset=offset)

    def active_lessons(
        self, min_confidence: float = 0.0, *, now: datetime | None = None
    ) -> list[LessonWithConfidence]:
        return self.query.active_lessons(min_confidence, now=now)

    def deprecate_lesson(
        self, lesson_id: int, *, now: datetime | None = None, source: str | None = None
    ) -> Lesson:
        """Permanently exclude a lesson from active queries.

        Raises:
            NotFoundError: If the lesson does not exist.
        """
        with self._operation("deprecate_lesson", source):
            return self.lessons.deprecate(lesson_id, now=now)

    def close(self) -> None:
        self.store.close()


__all__ = ["ExperienceService"]
