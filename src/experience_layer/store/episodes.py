"""Episode persistence mixin for ExperienceStore.

Episodes are written once by the recorder and never updated; the only other
write path is the retention sweep, which deletes by age.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Callable, Iterable, Mapping
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any

from experience_layer.store.base import Row, WhereBuilder
from experience_layer.store.models import Episode, JSONObject, Outcome
from experience_layer.utils.time import to_iso


class EpisodeMixin:
    """Mixin providing episode storage for ExperienceStore.

    This mixin requires that the composed class provides:
    - _get_connection(): Context manager yielding sqlite3.Connection
    - the generic insert/get_by_id/query/delete/count contract
    """

    _get_connection: Callable[[], AbstractContextManager[sqlite3.Connection]]
    insert: Callable[[str, Mapping[str, Any]], int]
    get_by_id: Callable[[str, int], Row | None]
    query: Callable[..., list[Row]]
    delete: Callable[[str, WhereBuilder], int]
    count: Callable[..., int]

    def insert_episode(
        self,
        *,
        operation_type: str,
        outcome: Outcome,
        timestamp: datetime,
        novelty_score: float,
        effectiveness_score: float,
        generalizability_score: float,
        utility_score: float,
        server_name: str | None = None,
        problem: JSONObject | None = None,
        solution: JSONObject | None = None,
        metadata: JSONObject | None = None,
        quality_score: float | None = None,
        duration_ms: float | None = None,
        notes: str | None = None,
    ) -> Episode:
        """Persist a scored episode and return it with its new id."""
        fields: dict[str, Any] = {
            "timestamp": timestamp,
            "operation_type": operation_type,
            "server_name": server_name,
            "problem": problem,
            "solution": solution,
            "outcome": outcome,
            "metadata": metadata,
            "quality_score": quality_score,
            "duration_ms": duration_ms,
            "notes": notes,
            "novelty_score": novelty_score,
            "effectiveness_score": effectiveness_score,
            "generalizability_score": generalizability_score,
            "utility_score": utility_score,
        }
        episode_id = self.insert("episodes", fields)
        return Episode(id=episode_id, **fields)

    def get_episode(self, episode_id: int) -> Episode | None:
        row = self.get_by_id("episodes", episode_id)
        return self._row_to_episode(row) if row else None

    def get_episodes_by_ids(self, episode_ids: Iterable[int]) -> list[Episode]:
        """Resolve ids to episodes, silently skipping ids that do not exist.

        Returned in ascending id order, each episode at most once.
        """
        unique = sorted(set(episode_ids))
        if not unique:
            return []
        placeholders = ", ".join("?" for _ in unique)
        wb = WhereBuilder().add(f"id IN ({placeholders})", *unique)
        rows = self.query("episodes", wb, order_by="id ASC")
        return [self._row_to_episode(row) for row in rows]

    def get_episodes_by_type(
        self,
        operation_type: str,
        *,
        since: datetime | None = None,
        outcome: Outcome | None = None,
        limit: int | None = None,
    ) -> list[Episode]:
        """Same-type episodes, newest first."""
        wb = WhereBuilder().add("operation_type = ?", operation_type)
        if since is not None:
            wb.add("timestamp >= ?", to_iso(since))
        if outcome is not None:
            wb.add("outcome = ?", outcome.value)
        rows = self.query("episodes", wb, order_by="timestamp DESC, id DESC", limit=limit)
        return [self._row_to_episode(row) for row in rows]

    def get_episodes_by_outcome(
        self,
        outcome: Outcome,
        *,
        operation_type: str | None = None,
        limit: int | None = None,
    ) -> list[Episode]:
        """Episodes with the given outcome, newest first."""
        wb = WhereBuilder().add("outcome = ?", outcome.value)
        if operation_type is not None:
            wb.add("operation_type = ?", operation_type)
        rows = self.query("episodes", wb, order_by="timestamp DESC, id DESC", limit=limit)
        return [self._row_to_episode(row) for row in rows]

    def get_recent_episodes(self, limit: int = 50, offset: int = 0) -> list[Episode]:
        rows = self.query(
            "episodes", order_by="timestamp DESC, id DESC", limit=limit, offset=offset
        )
        return [self._row_to_episode(row) for row in rows]

    def count_episodes(self, operation_type: str | None = None) -> int:
        wb = WhereBuilder()
        if operation_type is not None:
            wb.add("operation_type = ?", operation_type)
        return self.count("episodes", wb)

    def count_episodes_by_outcome(self) -> dict[str, int]:
        """Episode counts keyed by outcome value (all outcomes present)."""
        counts = {outcome.value: 0 for outcome in Outcome}
        with self._get_connection() as conn:
            cursor = conn.execute(
                "SELECT outcome, COUNT(*) AS n FROM episodes GROUP BY outcome"
            )
            for row in cursor.fetchall():
                counts[row["outcome"]] = row["n"]
        return counts

    def average_utility(self) -> float:
        """Mean utility over every stored episode; 0.0 for an empty store."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT AVG(utility_score) AS avg_utility FROM episodes"
            ).fetchone()
        value = row["avg_utility"]
        return float(value) if value is not None else 0.0

    def delete_episodes_before(self, cutoff: datetime) -> int:
        """Delete episodes strictly older than ``cutoff``."""
        return self.delete("episodes", WhereBuilder().add("timestamp < ?", to_iso(cutoff)))

    @staticmethod
    def _row_to_episode(row: Row) -> Episode:
        return Episode(
            id=row["id"],
            timestamp=row["timestamp"],
            operation_type=row["operation_type"],
            outcome=Outcome(row["outcome"]),
            server_name=row["server_name"],
            problem=row["problem"],
            solution=row["solution"],
            metadata=row["metadata"],
            quality_score=row["quality_score"],
            duration_ms=row["duration_ms"],
            notes=row["notes"],
            novelty_score=float(row["novelty_score"]),
            effectiveness_score=float(row["effectiveness_score"]),
            generalizability_score=float(row["generalizability_score"]),
            utility_score=float(row["utility_score"]),
        )


__all__ = ["EpisodeMixin"]
