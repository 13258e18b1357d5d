"""Base class for the experience store with connection and schema management.

This module provides the foundational `ExperienceStoreBase` class that handles:
- SQLite connection management with WAL mode
- Store-level transactions shared by nested calls
- Schema creation and version tracking
- The generic table contract used by the entity mixins:
  insert / get_by_id / query / update / delete

Structured columns are stored as JSON text and instants as ISO-8601 UTC text;
both are converted on the way in and out so callers only see Python values.
"""

from __future__ import annotations

import contextvars
import json
import re
import sqlite3
from collections.abc import Generator, Mapping
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from experience_layer.core.config import DEFAULT_DB_PATH
from experience_layer.core.errors import StorageFailureError
from experience_layer.core.logging import get_logger
from experience_layer.utils.time import from_iso, to_iso

_logger = get_logger("store")

# SQLite accepts str, int, float, bytes, and None as bind parameters.
SQLParam = str | int | float | bytes | None

Row = dict[str, Any]


class WhereBuilder:
    """Accumulates SQL WHERE clauses and their bound parameters.

    Clauses are joined with AND.

    Usage::

        wb = WhereBuilder()
        wb.add("operation_type = ?", "build")
        wb.add("timestamp >= ?", since_iso)
        where_sql, params = wb.build()
    """

    __slots__ = ("_clauses", "_params")

    def __init__(self) -> None:
        self._clauses: list[str] = []
        self._params: list[SQLParam] = []

    def add(self, clause: str, *params: SQLParam) -> WhereBuilder:
        """Append a WHERE clause with its bound parameters."""
        self._clauses.append(clause)
        self._params.extend(params)
        return self

    def build(self) -> tuple[str, tuple[SQLParam, ...]]:
        """Return the combined WHERE fragment and parameter tuple.

        Returns ``("1=1", ())`` when no clauses have been added.
        """
        if not self._clauses:
            return "1=1", ()
        return " AND ".join(self._clauses), tuple(self._params)


# Column layout per table. JSON columns hold serialized structures,
# TIMESTAMP columns hold ISO-8601 UTC text.
_TABLE_COLUMNS: dict[str, tuple[str, ...]] = {
    "episodes": (
        "id", "timestamp", "operation_type", "server_name",
        "problem", "solution", "outcome", "metadata",
        "quality_score", "duration_ms", "notes",
        "novelty_score", "effectiveness_score",
        "generalizability_score", "utility_score",
    ),
    "patterns": (
        "id", "pattern_type", "description", "episode_ids",
        "frequency", "last_seen", "created_at",
        "initial_confidence", "decay_constant", "last_validated",
        "times_applied", "times_succeeded", "discrimination_weight",
    ),
    "lessons": (
        "id", "statement", "pattern_id", "contexts",
        "initial_confidence", "decay_constant", "last_validated",
        "times_applied", "times_succeeded", "created_at", "deprecated_at",
    ),
}

_JSON_COLUMNS: dict[str, frozenset[str]] = {
    "episodes": frozenset({"problem", "solution", "metadata"}),
    "patterns": frozenset({"episode_ids"}),
    "lessons": frozenset({"contexts"}),
}

_TIMESTAMP_COLUMNS: dict[str, frozenset[str]] = {
    "episodes": frozenset({"timestamp"}),
    "patterns": frozenset({"last_seen", "created_at", "last_validated"}),
    "lessons": frozenset({"last_validated", "created_at", "deprecated_at"}),
}

_ORDER_TERM = re.compile(r"^\s*(\w+)(?:\s+(ASC|DESC))?\s*$", re.IGNORECASE)


class ExperienceStoreBase:
    """SQLite-backed store base class.

    Owns the episodes, patterns and lessons tables. Each public call opens a
    short-lived connection unless it runs inside ``transaction()``, in which
    case all calls share one connection and commit together.

    Attributes:
        db_path: Path to the SQLite database file.
    """

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path | None = None) -> None:
        """Initialize the store, creating the database and schema if needed.

        Args:
            db_path: Path to the SQLite database file.
                Defaults to ~/.experience-layer/experience.db
        """
        self.db_path = Path(db_path) if db_path is not None else DEFAULT_DB_PATH
        self._logger = _logger
        self._tx_conn: contextvars.ContextVar[sqlite3.Connection | None] = (
            contextvars.ContextVar("_tx_conn", default=None)
        )
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._migrate_if_needed()

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    def _connect(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=30.0)
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA foreign_keys=ON")
            conn.execute("PRAGMA busy_timeout=30000")
        except sqlite3.Error as e:
            raise StorageFailureError(
                f"Cannot open store {self.db_path}: {e}"
            ) from e
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a database connection.

        Inside ``transaction()`` the shared connection is reused and left
        open; otherwise a fresh connection is committed and closed.

        Raises:
            StorageFailureError: Wrapping any sqlite3 error.
        """
        shared = self._tx_conn.get()
        if shared is not None:
            try:
                yield shared
            except sqlite3.Error as e:
                raise StorageFailureError(str(e)) from e
            return

        conn = self._connect()
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            _logger.warning(
                "store_operation_failed", db_path=str(self.db_path), error=str(e)
            )
            raise StorageFailureError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """Run several store calls as one atomic unit.

        Takes the write lock up front (``BEGIN IMMEDIATE``) so that a
        check-then-write sequence cannot interleave with another writer.
        Nested use joins the outer transaction.

        Example::

            with store.transaction():
                existing = store.find_pattern_by_description("build")
                if existing is None:
                    store.insert_pattern(...)
        """
        outer = self._tx_conn.get()
        if outer is not None:
            yield outer
            return

        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            conn.close()
            raise StorageFailureError(str(e)) from e
        token = self._tx_conn.set(conn)
        try:
            yield conn
            conn.commit()
        except BaseException as e:
            conn.rollback()
            if isinstance(e, sqlite3.Error):
                _logger.warning(
                    "store_transaction_failed",
                    db_path=str(self.db_path),
                    error=str(e),
                )
                raise StorageFailureError(str(e)) from e
            raise
        finally:
            self._tx_conn.reset(token)
            conn.close()

    def close(self) -> None:
        """No-op: connections are managed per operation."""

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def _migrate_if_needed(self) -> None:
        with self._get_connection() as conn:
            try:
                row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
                current_version = row["version"] if row else 0
            except sqlite3.OperationalError:
                current_version = 0

            if current_version < self.SCHEMA_VERSION:
                self._create_schema(conn)

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        self._create_schema_version_table(conn)
        self._create_episodes_table(conn)
        self._create_patterns_table(conn)
        self._create_lessons_table(conn)

        conn.execute("DELETE FROM schema_version")
        conn.execute(
            "INSERT INTO schema_version (version) VALUES (?)",
            (self.SCHEMA_VERSION,),
        )
        self._logger.info("schema_created", version=self.SCHEMA_VERSION)

    @staticmethod
    def _create_schema_version_table(conn: sqlite3.Connection) -> None:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            )
        """)

    @staticmethod
    def _create_episodes_table(conn: sqlite3.Connection) -> None:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS episodes (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp TIMESTAMP NOT NULL,
                operation_type TEXT NOT NULL,
                server_name TEXT,
                problem TEXT,
                solution TEXT,
                outcome TEXT NOT NULL
                    CHECK (outcome IN ('success', 'failure', 'partial')),
                metadata TEXT,
                quality_score REAL,
                duration_ms REAL,
                notes TEXT,
                novelty_score REAL DEFAULT 0.5,
                effectiveness_score REAL DEFAULT 0.5,
                generalizability_score REAL DEFAULT 0.5,
                utility_score REAL DEFAULT 0.5
            )
        """)
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_episodes_timestamp ON episodes(timestamp)"
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_episodes_type "
            "ON episodes(operation_type, timestamp)"
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_episodes_outcome ON episodes(outcome)"
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_episodes_server ON episodes(server_name)"
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_episodes_utility ON episodes(utility_score)"
        )

    @staticmethod
    def _create_patterns_table(conn: sqlite3.Connection) -> None:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS patterns (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                pattern_type TEXT NOT NULL
                    CHECK (pattern_type IN ('success', 'failure', 'correlation')),
                description TEXT NOT NULL,
                episode_ids TEXT,
                frequency INTEGER DEFAULT 1,
                last_seen TIMESTAMP,
                created_at TIMESTAMP,
                initial_confidence REAL DEFAULT 0.5,
                decay_constant REAL DEFAULT 0.01,
                last_validated TIMESTAMP,
                times_applied INTEGER DEFAULT 0,
                times_succeeded INTEGER DEFAULT 0,
                discrimination_weight REAL DEFAULT 0.5
            )
        """)
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_patterns_type ON patterns(pattern_type)"
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_patterns_weight "
            "ON patterns(discrimination_weight DESC)"
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_patterns_validated ON patterns(last_validated)"
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_patterns_seen ON patterns(last_seen)"
        )

    @staticmethod
    def _create_lessons_table(conn: sqlite3.Connection) -> None:
        # pattern_id is a soft reference: retention may delete the pattern
        conn.execute("""
            CREATE TABLE IF NOT EXISTS lessons (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                statement TEXT NOT NULL,
                pattern_id INTEGER,
                contexts TEXT,
                initial_confidence REAL DEFAULT 0.5,
                decay_constant REAL DEFAULT 0.01,
                last_validated TIMESTAMP,
                times_applied INTEGER DEFAULT 0,
                times_succeeded INTEGER DEFAULT 0,
                created_at TIMESTAMP,
                deprecated_at TIMESTAMP
            )
        """)
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_lessons_pattern ON lessons(pattern_id)"
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_lessons_validated ON lessons(last_validated)"
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_lessons_deprecated ON lessons(deprecated_at)"
        )

    # ------------------------------------------------------------------
    # Value conversion
    # ------------------------------------------------------------------

    @staticmethod
    def _check_table(table: str) -> tuple[str, ...]:
        try:
            return _TABLE_COLUMNS[table]
        except KeyError:
            raise ValueError(f"Unknown table: {table}") from None

    @classmethod
    def _encode(cls, table: str, fields: Mapping[str, Any]) -> dict[str, SQLParam]:
        columns = cls._check_table(table)
        encoded: dict[str, SQLParam] = {}
        for name, value in fields.items():
            if name not in columns or name == "id":
                raise ValueError(f"Unknown or read-only column {table}.{name}")
            if value is None:
                encoded[name] = None
            elif name in _JSON_COLUMNS[table]:
                encoded[name] = json.dumps(value)
            elif isinstance(value, datetime):
                encoded[name] = to_iso(value)
            elif isinstance(value, Enum):
                encoded[name] = value.value
            else:
                encoded[name] = value
        return encoded

    @staticmethod
    def _decode(table: str, row: sqlite3.Row) -> Row:
        decoded: Row = dict(row)
        for name in _JSON_COLUMNS[table]:
            raw = decoded.get(name)
            if raw is not None:
                decoded[name] = json.loads(raw)
        for name in _TIMESTAMP_COLUMNS[table]:
            raw = decoded.get(name)
            if raw is not None:
                decoded[name] = from_iso(raw)
        return decoded

    @classmethod
    def _order_clause(cls, table: str, order_by: str | None) -> str:
        if not order_by:
            return ""
        columns = cls._check_table(table)
        terms = []
        for term in order_by.split(","):
            match = _ORDER_TERM.match(term)
            if match is None or match.group(1) not in columns:
                raise ValueError(f"Invalid order term for {table}: {term!r}")
            direction = (match.group(2) or "ASC").upper()
            terms.append(f"{match.group(1)} {direction}")
        return " ORDER BY " + ", ".join(terms)

    # ------------------------------------------------------------------
    # Generic table contract
    # ------------------------------------------------------------------

    def insert(self, table: str, fields: Mapping[str, Any]) -> int:
        """Insert a row and return its new id."""
        encoded = self._encode(table, fields)
        names = ", ".join(encoded)
        placeholders = ", ".join("?" for _ in encoded)
        with self._get_connection() as conn:
            cursor = conn.execute(
                f"INSERT INTO {table} ({names}) VALUES ({placeholders})",
                tuple(encoded.values()),
            )
            row_id = cursor.lastrowid
        if row_id is None:
            raise StorageFailureError(f"Insert into {table} returned no row id")
        return row_id

    def get_by_id(self, table: str, row_id: int) -> Row | None:
        """Fetch one decoded row, or None when the id does not resolve."""
        self._check_table(table)
        with self._get_connection() as conn:
            row = conn.execute(
                f"SELECT * FROM {table} WHERE id = ?", (row_id,)
            ).fetchone()
        return self._decode(table, row) if row else None

    def query(
        self,
        table: str,
        where: WhereBuilder | None = None,
        order_by: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Row]:
        """Select decoded rows matching ``where``."""
        self._check_table(table)
        where_sql, params = (where or WhereBuilder()).build()
        sql = f"SELECT * FROM {table} WHERE {where_sql}"
        sql += self._order_clause(table, order_by)
        bound: tuple[SQLParam, ...] = params
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            bound = (*params, limit, offset)
        with self._get_connection() as conn:
            rows = conn.execute(sql, bound).fetchall()
        return [self._decode(table, row) for row in rows]

    def update(self, table: str, row_id: int, fields: Mapping[str, Any]) -> bool:
        """Apply a partial update; returns True if a row changed."""
        encoded = self._encode(table, fields)
        if not encoded:
            return False
        assignments = ", ".join(f"{name} = ?" for name in encoded)
        with self._get_connection() as conn:
            cursor = conn.execute(
                f"UPDATE {table} SET {assignments} WHERE id = ?",
                (*encoded.values(), row_id),
            )
        return cursor.rowcount > 0

    def delete(self, table: str, where: WhereBuilder) -> int:
        """Delete rows matching ``where`` and return the count."""
        self._check_table(table)
        where_sql, params = where.build()
        with self._get_connection() as conn:
            cursor = conn.execute(f"DELETE FROM {table} WHERE {where_sql}", params)
        return cursor.rowcount

    def count(self, table: str, where: WhereBuilder | None = None) -> int:
        """Count rows matching ``where``."""
        self._check_table(table)
        where_sql, params = (where or WhereBuilder()).build()
        with self._get_connection() as conn:
            row = conn.execute(
                f"SELECT COUNT(*) AS n FROM {table} WHERE {where_sql}", params
            ).fetchone()
        return int(row["n"])

    def clear_all(self) -> None:
        """Clear all data from the store.

        WARNING: This is destructive and should only be used for testing.
        """
        with self._get_connection() as conn:
            conn.execute("DELETE FROM lessons")
            conn.execute("DELETE FROM patterns")
            conn.execute("DELETE FROM episodes")

        _logger.warning("store_cleared", db_path=str(self.db_path))


__all__ = [
    "ExperienceStoreBase",
    "Row",
    "SQLParam",
    "WhereBuilder",
    "_logger",
]
