"""Pattern detection over recent same-type episodes.

After each recorded episode the detector looks back over the recency window
for episodes of the same operation type and, when there is enough evidence,
creates or refreshes a pattern. Strength is measured as a discrimination
weight:

    weight = success_rate × ln(n + 1) × e^(-k × mean_age_days)

Weak results (below ``min_discrimination_weight``) are discarded outright;
they neither create a pattern nor refresh an existing one.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta

from experience_layer.core.config import PatternConfig
from experience_layer.core.logging import get_logger
from experience_layer.learning.scoring import (
    classify_pattern,
    round_half_up,
    success_rate,
)
from experience_layer.store import Episode, ExperienceStore, Pattern
from experience_layer.utils.time import days_between, utc_now

_logger = get_logger("learning.detector")


def describe_pattern(operation_type: str, rate: float, episode_count: int) -> str:
    """Human-readable description, also used as the dedup key."""
    return (
        f"{operation_type}: {round_half_up(rate * 100)}% success rate "
        f"over {episode_count} episodes"
    )


class PatternDetector:
    """Mines a pattern from the episodes surrounding a new one."""

    def __init__(self, store: ExperienceStore, config: PatternConfig | None = None) -> None:
        self.store = store
        self.config = config or PatternConfig()

    def detect(self, episode: Episode, now: datetime | None = None) -> Pattern | None:
        """Create or refresh the pattern for ``episode.operation_type``.

        Args:
            episode: The just-stored episode; it is itself eligible.
            now: Reference time (defaults to the current UTC time).

        Returns:
            The created or refreshed pattern, or None when there is too little
            evidence or the discrimination weight is too low.
        """
        now = now or utc_now()
        since = now - timedelta(days=self.config.recency_window_days)

        with self.store.transaction():
            similar = self.store.get_episodes_by_type(
                episode.operation_type,
                since=since,
                limit=self.config.detection_limit,
            )
            if len(similar) < self.config.min_episodes:
                _logger.debug(
                    "pattern_insufficient_episodes",
                    operation_type=episode.operation_type,
                    found=len(similar),
                    required=self.config.min_episodes,
                )
                return None

            weight = self._discrimination_weight(similar, now)
            if weight < self.config.min_discrimination_weight:
                _logger.debug(
                    "pattern_below_threshold",
                    operation_type=episode.operation_type,
                    discrimination_weight=round(weight, 4),
                )
                return None

            rate = success_rate(similar)
            episode_ids = [e.id for e in similar]
            existing = self.store.find_pattern_by_description(episode.operation_type)

            if existing is not None:
                self.store.update_pattern(
                    existing.id,
                    frequency=len(similar),
                    discrimination_weight=weight,
                    initial_confidence=(existing.initial_confidence + weight) / 2,
                    last_seen=now,
                    last_validated=now,
                    episode_ids=episode_ids,
                )
                refreshed = self.store.get_pattern(existing.id)
                _logger.info(
                    "pattern_refreshed",
                    pattern_id=existing.id,
                    operation_type=episode.operation_type,
                    frequency=len(similar),
                    discrimination_weight=round(weight, 4),
                )
                return refreshed

            pattern = self.store.insert_pattern(
                pattern_type=classify_pattern(rate),
                description=describe_pattern(episode.operation_type, rate, len(similar)),
                episode_ids=episode_ids,
                initial_confidence=min(0.8, 0.4 + weight),
                decay_constant=self.config.decay_constant,
                discrimination_weight=weight,
                now=now,
            )
            _logger.info(
                "pattern_created",
                pattern_id=pattern.id,
                pattern_type=pattern.pattern_type.value,
                operation_type=episode.operation_type,
                frequency=pattern.frequency,
                discrimination_weight=round(weight, 4),
            )
            return pattern

    def _discrimination_weight(self, episodes: list[Episode], now: datetime) -> float:
        n = len(episodes)
        frequency_weight = math.log(n + 1)
        mean_age_days = sum(
            max(0.0, days_between(e.timestamp, now)) for e in episodes
        ) / n
        recency_bonus = math.exp(-self.config.decay_constant * mean_age_days)
        return success_rate(episodes) * frequency_weight * recency_bonus


__all__ = ["PatternDetector", "describe_pattern"]
