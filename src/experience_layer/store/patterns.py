"""Pattern persistence mixin for ExperienceStore.

Patterns are deduplicated by description substring: callers look a pattern
up with ``find_pattern_by_description`` before inserting, inside one
``transaction()`` so that the check and the write cannot interleave.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from experience_layer.store.base import Row, WhereBuilder
from experience_layer.store.models import Pattern, PatternType
from experience_layer.utils.time import to_iso


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PatternMixin:
    """Mixin providing pattern storage for ExperienceStore.

    This mixin requires that the composed class provides the generic
    insert/get_by_id/query/update/delete/count contract.
    """

    insert: Callable[[str, Mapping[str, Any]], int]
    get_by_id: Callable[[str, int], Row | None]
    query: Callable[..., list[Row]]
    update: Callable[[str, int, Mapping[str, Any]], bool]
    delete: Callable[[str, WhereBuilder], int]
    count: Callable[..., int]

    def insert_pattern(
        self,
        *,
        pattern_type: PatternType,
        description: str,
        episode_ids: list[int],
        initial_confidence: float,
        decay_constant: float,
        discrimination_weight: float,
        now: datetime,
    ) -> Pattern:
        """Insert a new pattern first seen and validated at ``now``."""
        fields: dict[str, Any] = {
            "pattern_type": pattern_type,
            "description": description,
            "episode_ids": list(episode_ids),
            "frequency": len(episode_ids),
            "last_seen": now,
            "created_at": now,
            "initial_confidence": initial_confidence,
            "decay_constant": decay_constant,
            "last_validated": now,
            "times_applied": 0,
            "times_succeeded": 0,
            "discrimination_weight": discrimination_weight,
        }
        pattern_id = self.insert("patterns", fields)
        return Pattern(id=pattern_id, **fields)

    def update_pattern(self, pattern_id: int, **fields: Any) -> bool:
        """Partially update a pattern. Returns False if it no longer exists."""
        return self.update("patterns", pattern_id, fields)

    def get_pattern(self, pattern_id: int) -> Pattern | None:
        row = self.get_by_id("patterns", pattern_id)
        return self._row_to_pattern(row) if row else None

    def find_pattern_by_description(self, text: str) -> Pattern | None:
        """First pattern (lowest id) whose description contains ``text``.

        Matching uses SQL LIKE, so it is case-insensitive for ASCII.
        """
        wb = WhereBuilder().add(
            "description LIKE ? ESCAPE '\\'", f"%{_escape_like(text)}%"
        )
        rows = self.query("patterns", wb, order_by="id ASC", limit=1)
        return self._row_to_pattern(rows[0]) if rows else None

    def find_patterns_containing(
        self, text: str, *, pattern_type: PatternType | None = None
    ) -> list[Pattern]:
        """Patterns whose description contains ``text`` (case-insensitive)."""
        wb = WhereBuilder().add(
            "description LIKE ? ESCAPE '\\'", f"%{_escape_like(text)}%"
        )
        if pattern_type is not None:
            wb.add("pattern_type = ?", pattern_type.value)
        rows = self.query("patterns", wb, order_by="discrimination_weight DESC, id ASC")
        return [self._row_to_pattern(row) for row in rows]

    def get_patterns(
        self, pattern_type: PatternType | None = None, limit: int | None = None
    ) -> list[Pattern]:
        """All patterns, strongest discrimination weight first."""
        wb = WhereBuilder()
        if pattern_type is not None:
            wb.add("pattern_type = ?", pattern_type.value)
        rows = self.query(
            "patterns", wb, order_by="discrimination_weight DESC, id ASC", limit=limit
        )
        return [self._row_to_pattern(row) for row in rows]

    def count_patterns(self) -> int:
        return self.count("patterns")

    def delete_patterns_unseen_since(self, cutoff: datetime) -> int:
        """Delete patterns whose ``last_seen`` is strictly older than ``cutoff``."""
        return self.delete("patterns", WhereBuilder().add("last_seen < ?", to_iso(cutoff)))

    @staticmethod
    def _row_to_pattern(row: Row) -> Pattern:
        return Pattern(
            id=row["id"],
            pattern_type=PatternType(row["pattern_type"]),
            description=row["description"],
            episode_ids=list(row["episode_ids"] or []),
            frequency=row["frequency"],
            last_seen=row["last_seen"],
            created_at=row["created_at"],
            initial_confidence=float(row["initial_confidence"]),
            decay_constant=float(row["decay_constant"]),
            last_validated=row["last_validated"],
            times_applied=row["times_applied"],
            times_succeeded=row["times_succeeded"],
            discrimination_weight=float(row["discrimination_weight"]),
        )


__all__ = ["PatternMixin"]
