"""Episode recording.

Scores a new experience against what the store already holds, persists it,
then hands the stored episode to the pattern detector. Scores are computed
once here and never recomputed.
"""

from __future__ import annotations

from datetime import datetime

from experience_layer.core.config import ExperienceConfig
from experience_layer.core.logging import get_logger
from experience_layer.learning.detector import PatternDetector
from experience_layer.learning.models import RecordExperienceInput, RecordExperienceResult
from experience_layer.learning.scoring import (
    effectiveness_score,
    generalizability_score,
    novelty_score,
    utility_score,
)
from experience_layer.store import ExperienceStore
from experience_layer.utils.time import utc_now

_logger = get_logger("learning.recorder")


class EpisodeRecorder:
    """Validates, scores and stores episodes."""

    def __init__(
        self,
        store: ExperienceStore,
        config: ExperienceConfig | None = None,
        detector: PatternDetector | None = None,
    ) -> None:
        self.store = store
        self.config = config or ExperienceConfig()
        self.detector = detector or PatternDetector(store, self.config.patterns)

    def record(
        self, data: RecordExperienceInput, now: datetime | None = None
    ) -> RecordExperienceResult:
        """Score and persist one experience, then run pattern detection.

        Raises:
            StorageFailureError: If the store cannot be read or written.
        """
        now = now or utc_now()
        patterns_cfg = self.config.patterns

        recent = self.store.get_episodes_by_type(
            data.operation_type, limit=patterns_cfg.novelty_lookback
        )
        type_frequency = min(
            self.store.count_episodes(data.operation_type),
            patterns_cfg.frequency_lookback,
        )

        novelty = novelty_score(data.problem, recent)
        effectiveness = effectiveness_score(data.outcome, data.quality_score)
        generalizability = generalizability_score(data.metadata, type_frequency)
        utility = utility_score(
            novelty, effectiveness, generalizability, self.config.utility
        )

        episode = self.store.insert_episode(
            operation_type=data.operation_type,
            outcome=data.outcome,
            timestamp=now,
            server_name=data.server_name,
            problem=data.problem,
            solution=data.solution,
            metadata=data.metadata,
            quality_score=data.quality_score,
            duration_ms=data.duration_ms,
            notes=data.notes,
            novelty_score=novelty,
            effectiveness_score=effectiveness,
            generalizability_score=generalizability,
            utility_score=utility,
        )
        _logger.info(
            "episode_recorded",
            episode_id=episode.id,
            operation_type=episode.operation_type,
            outcome=episode.outcome.value,
            utility_score=round(utility, 4),
        )

        pattern = self.detector.detect(episode, now=now)
        triggered = [pattern.description] if pattern is not None else []

        return RecordExperienceResult(
            episode_id=episode.id,
            utility_score=utility,
            patterns_triggered=triggered,
        )


__all__ = ["EpisodeRecorder"]
