"""Persistent experience store with modular mixins.

This package provides the ExperienceStore class, composed from one mixin per
entity table:

- EpisodeMixin: Episode inserts, recall queries, age-based deletion
- PatternMixin: Pattern refresh/insert, description lookup, retention
- LessonMixin: Lesson inserts, confidence updates, monotonic deprecation

The base class (ExperienceStoreBase) provides:
- SQLite connection management with WAL mode
- Shared transactions (``transaction()``)
- Schema creation
- The generic insert/get_by_id/query/update/delete contract

Usage:
    from experience_layer.store import ExperienceStore

    store = ExperienceStore()  # Uses default ~/.experience-layer/experience.db
    store = ExperienceStore(db_path=Path("/custom/path.db"))

ExperienceStoreBase is listed LAST so the mixins resolve the generic contract
from it.
"""

from experience_layer.store.base import ExperienceStoreBase, WhereBuilder
from experience_layer.store.episodes import EpisodeMixin
from experience_layer.store.lessons import LessonMixin
from experience_layer.store.models import (
    Episode,
    JSONObject,
    JSONValue,
    Lesson,
    LessonWithConfidence,
    Outcome,
    Pattern,
    PatternType,
    StoreStats,
)
from experience_layer.store.patterns import PatternMixin


class ExperienceStore(
    EpisodeMixin,
    PatternMixin,
    LessonMixin,
    ExperienceStoreBase,
):
    """SQLite store for episodes, patterns and lessons.

    One instance is owned by each engine; there is no process-wide handle.
    Tests construct an isolated store per case under ``tmp_path``.
    """


__all__ = [
    "Episode",
    "EpisodeMixin",
    "ExperienceStore",
    "ExperienceStoreBase",
    "JSONObject",
    "JSONValue",
    "Lesson",
    "LessonMixin",
    "LessonWithConfidence",
    "Outcome",
    "Pattern",
    "PatternMixin",
    "PatternType",
    "StoreStats",
    "WhereBuilder",
]
