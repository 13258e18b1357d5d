"""Shared helpers for experience layer tests."""

from datetime import datetime, timedelta

from experience_layer.store import Episode, ExperienceStore, Outcome


def insert_scored_episode(
    store: ExperienceStore,
    operation_type: str,
    outcome: Outcome,
    timestamp: datetime,
    utility: float = 0.5,
    **fields,
) -> Episode:
    """Insert an episode directly, bypassing scoring and detection."""
    return store.insert_episode(
        operation_type=operation_type,
        outcome=outcome,
        timestamp=timestamp,
        novelty_score=0.5,
        effectiveness_score=outcome.credit,
        generalizability_score=0.5,
        utility_score=utility,
        **fields,
    )


def days_ago(now: datetime, days: float) -> datetime:
    return now - timedelta(days=days)
