"""Time utilities for the experience layer.

All instants handled by the engine are timezone-aware UTC datetimes. They are
persisted as ISO-8601 text with a fixed microsecond precision so that lexical
ordering in SQLite matches chronological ordering.
"""

from datetime import UTC, datetime

SECONDS_PER_DAY = 86_400.0


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


def to_iso(moment: datetime) -> str:
    """Serialize an instant for storage.

    Naive datetimes are assumed to already be UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).isoformat(timespec="microseconds")


def from_iso(value: str) -> datetime:
    """Parse a stored instant back into an aware UTC datetime."""
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


def days_between(earlier: datetime, later: datetime) -> float:
    """Fractional days from ``earlier`` to ``later`` (negative if reversed)."""
    return (later - earlier).total_seconds() / SECONDS_PER_DAY
