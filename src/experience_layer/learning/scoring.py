"""Scoring functions for episodes, patterns and lessons.

Every function here is pure: callers that need store context (recent
episodes for novelty, same-type counts for generalizability) read it first
and pass it in. The single temporal-decay law is:

    confidence(t) = initial × e^(-k × days_since_last_validated)

and applies uniformly to patterns and lessons. Decayed confidence is never
persisted; it is recomputed on every read.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import datetime

from experience_layer.core import constants as c
from experience_layer.core.config import UtilityWeights
from experience_layer.store.models import Episode, JSONObject, Outcome, PatternType
from experience_layer.utils.time import days_between


def clamp(value: float, low: float, high: float) -> float:
    """Limit ``value`` to the closed interval [low, high]."""
    return max(low, min(high, value))


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return math.floor(value + 0.5)


def _count_list(metadata: JSONObject | None, key: str) -> int:
    if not isinstance(metadata, dict):
        return 0
    value = metadata.get(key)
    return len(value) if isinstance(value, list) else 0


def _problem_query(problem: JSONObject | None) -> object:
    if not isinstance(problem, dict):
        return None
    return problem.get("query")


def novelty_score(problem: JSONObject | None, recent: Sequence[Episode]) -> float:
    """How unlike recent same-type episodes this problem is.

    Compares ``problem.query`` by exact equality against each recent episode.
    A missing query equals another missing query.

    Args:
        problem: Problem payload of the episode being scored.
        recent: Most recent same-type episodes (up to the novelty lookback).

    Returns:
        1.0 for a first-ever operation type, otherwise
        max(0.1, 1 - matches / len(recent)).
    """
    if not recent:
        return 1.0
    query = _problem_query(problem)
    matches = sum(1 for episode in recent if _problem_query(episode.problem) == query)
    return max(0.1, 1.0 - matches / len(recent))


def effectiveness_score(outcome: Outcome, quality_score: float | None = None) -> float:
    """Outcome credit, blended 60/40 with a caller-supplied quality score."""
    base = outcome.credit
    if quality_score is None:
        return base
    return 0.6 * base + 0.4 * quality_score


def generalizability_score(metadata: JSONObject | None, type_frequency: int) -> float:
    """How reusable an episode's context is.

    Starts at 0.5. Each dependency costs 0.1 (at most 0.3), each trigger adds
    0.05 (at most 0.2), and common operation types add up to 0.3 via
    0.1 × ln(type_frequency + 1).

    Args:
        metadata: Episode metadata; ``dependencies`` and ``triggers`` lists
            are counted when present.
        type_frequency: Number of stored same-type episodes (capped by the
            caller at the frequency lookback).

    Returns:
        Score clamped to [0.1, 1.0].
    """
    dependency_penalty = min(0.3, 0.1 * _count_list(metadata, "dependencies"))
    trigger_bonus = min(0.2, 0.05 * _count_list(metadata, "triggers"))
    type_bonus = min(0.3, 0.1 * math.log(type_frequency + 1))
    return clamp(0.5 - dependency_penalty + trigger_bonus + type_bonus, 0.1, 1.0)


def utility_score(
    novelty: float,
    effectiveness: float,
    generalizability: float,
    weights: UtilityWeights | None = None,
) -> float:
    """Weighted sum U = 0.3·novelty + 0.5·effectiveness + 0.2·generalizability."""
    if weights is None:
        return (
            c.NOVELTY_WEIGHT * novelty
            + c.EFFECTIVENESS_WEIGHT * effectiveness
            + c.GENERALIZABILITY_WEIGHT * generalizability
        )
    return (
        weights.novelty * novelty
        + weights.effectiveness * effectiveness
        + weights.generalizability * generalizability
    )


def current_confidence(
    initial: float,
    decay_constant: float,
    last_validated: datetime,
    now: datetime,
) -> float:
    """Apply temporal decay to a stored confidence.

    Equals ``initial`` exactly when ``now == last_validated``. A
    ``last_validated`` in the future is treated as zero elapsed time.
    """
    elapsed = max(0.0, days_between(last_validated, now))
    if elapsed == 0.0:
        return initial
    return initial * math.exp(-decay_constant * elapsed)


def discrimination_weight(
    times_succeeded: float,
    times_applied: int,
    frequency: int,
    last_seen: datetime,
    now: datetime,
    decay_constant: float = c.DECAY_CONSTANT,
) -> float:
    """Strength of a pattern from its usage history.

    successRate × ln(frequency + 1) × e^(-k × ageDays), with a neutral 0.5
    success rate for a pattern that has never been applied.
    """
    rate = times_succeeded / times_applied if times_applied > 0 else 0.5
    age_days = max(0.0, days_between(last_seen, now))
    return rate * math.log(frequency + 1) * math.exp(-decay_constant * age_days)


def classify_pattern(success_rate: float) -> PatternType:
    """success above 0.6, failure below 0.4, correlation in between."""
    if success_rate > c.SUCCESS_PATTERN_THRESHOLD:
        return PatternType.SUCCESS
    if success_rate < c.FAILURE_PATTERN_THRESHOLD:
        return PatternType.FAILURE
    return PatternType.CORRELATION


def success_rate(episodes: Sequence[Episode]) -> float:
    """Fraction of episodes with a full success outcome (0.0 when empty)."""
    if not episodes:
        return 0.0
    return sum(1 for e in episodes if e.outcome is Outcome.SUCCESS) / len(episodes)


def confidence_bucket(
    confidence: float,
    high: float = c.HIGH_CONFIDENCE,
    medium: float = c.MEDIUM_CONFIDENCE,
) -> str:
    """Name the bucket (high / medium / low) a confidence falls into."""
    if confidence >= high:
        return "high"
    if confidence >= medium:
        return "medium"
    return "low"


__all__ = [
    "clamp",
    "classify_pattern",
    "confidence_bucket",
    "current_confidence",
    "discrimination_weight",
    "effectiveness_score",
    "generalizability_score",
    "novelty_score",
    "round_half_up",
    "success_rate",
    "utility_score",
]
