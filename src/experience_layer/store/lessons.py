"""Lesson persistence mixin for ExperienceStore."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from experience_layer.store.base import Row, WhereBuilder
from experience_layer.store.models import Lesson
from experience_layer.utils.time import to_iso


class LessonMixin:
    """Mixin providing lesson storage for ExperienceStore.

    Deprecation is one-way: ``deprecated_at`` is only ever written while it is
    still NULL, and ``update_lesson`` refuses to touch it.
    """

    insert: Callable[[str, Mapping[str, Any]], int]
    get_by_id: Callable[[str, int], Row | None]
    query: Callable[..., list[Row]]
    update: Callable[[str, int, Mapping[str, Any]], bool]
    count: Callable[..., int]
    _get_connection: Callable[..., Any]

    def insert_lesson(
        self,
        *,
        statement: str,
        initial_confidence: float,
        decay_constant: float,
        now: datetime,
        pattern_id: int | None = None,
        contexts: list[str] | None = None,
    ) -> Lesson:
        """Insert a new active lesson validated at ``now``."""
        fields: dict[str, Any] = {
            "statement": statement,
            "pattern_id": pattern_id,
            "contexts": contexts,
            "initial_confidence": initial_confidence,
            "decay_constant": decay_constant,
            "last_validated": now,
            "times_applied": 0,
            "times_succeeded": 0,
            "created_at": now,
            "deprecated_at": None,
        }
        lesson_id = self.insert("lessons", fields)
        return Lesson(id=lesson_id, **fields)

    def get_lesson(self, lesson_id: int) -> Lesson | None:
        row = self.get_by_id("lessons", lesson_id)
        return self._row_to_lesson(row) if row else None

    def update_lesson(self, lesson_id: int, **fields: Any) -> bool:
        """Partially update a lesson's confidence state or counters.

        Raises:
            ValueError: If ``deprecated_at`` is passed; use ``deprecate_lesson``.
        """
        if "deprecated_at" in fields:
            raise ValueError("deprecated_at can only be set via deprecate_lesson()")
        return self.update("lessons", lesson_id, fields)

    def deprecate_lesson(self, lesson_id: int, now: datetime) -> bool:
        """Mark a lesson deprecated.

        Returns True only if this call flipped the flag; an already
        deprecated lesson keeps its original timestamp.
        """
        with self._get_connection() as conn:
            cursor = conn.execute(
                "UPDATE lessons SET deprecated_at = ? "
                "WHERE id = ? AND deprecated_at IS NULL",
                (to_iso(now), lesson_id),
            )
        return cursor.rowcount > 0

    def get_active_lessons(self) -> list[Lesson]:
        """All non-deprecated lessons in id order."""
        wb = WhereBuilder().add("deprecated_at IS NULL")
        rows = self.query("lessons", wb, order_by="id ASC")
        return [self._row_to_lesson(row) for row in rows]

    def get_stale_lessons(self, validated_before: datetime) -> list[Lesson]:
        """Active lessons not validated since ``validated_before``."""
        wb = WhereBuilder()
        wb.add("deprecated_at IS NULL")
        wb.add("last_validated < ?", to_iso(validated_before))
        rows = self.query("lessons", wb, order_by="id ASC")
        return [self._row_to_lesson(row) for row in rows]

    def get_lessons_by_pattern(self, pattern_id: int) -> list[Lesson]:
        wb = WhereBuilder().add("pattern_id = ?", pattern_id)
        rows = self.query("lessons", wb, order_by="id ASC")
        return [self._row_to_lesson(row) for row in rows]

    def count_lessons(self, include_deprecated: bool = False) -> int:
        wb = WhereBuilder()
        if not include_deprecated:
            wb.add("deprecated_at IS NULL")
        return self.count("lessons", wb)

    def count_deprecated_lessons(self) -> int:
        return self.count("lessons", WhereBuilder().add("deprecated_at IS NOT NULL"))

    @staticmethod
    def _row_to_lesson(row: Row) -> Lesson:
        return Lesson(
            id=row["id"],
            statement=row["statement"],
            pattern_id=row["pattern_id"],
            contexts=list(row["contexts"]) if row["contexts"] is not None else None,
            initial_confidence=float(row["initial_confidence"]),
            decay_constant=float(row["decay_constant"]),
            last_validated=row["last_validated"],
            times_applied=row["times_applied"],
            times_succeeded=row["times_succeeded"],
            created_at=row["created_at"],
            deprecated_at=row["deprecated_at"],
        )


__all__ = ["LessonMixin"]
