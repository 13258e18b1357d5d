"""Exception hierarchy for the experience layer.

All engine exceptions inherit from ExperienceError so callers can catch the
broad class or a narrow one. Each carries a stable ErrorCode usable for
routing, log aggregation and CLI exit handling.
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Stable identifiers for engine failures."""

    CONFIG_INVALID = "E301"
    """Configuration file is malformed or fails validation."""

    NOT_FOUND = "E404"
    """A referenced episode, pattern or lesson does not exist."""

    INSUFFICIENT_EVIDENCE = "E422"
    """Too few episodes were supplied to form a lesson."""

    STORAGE_FAILURE = "E500"
    """The persistent store raised an I/O or SQL error."""


class ExperienceError(Exception):
    """Base exception for all experience layer errors."""

    code: ErrorCode = ErrorCode.STORAGE_FAILURE


class NotFoundError(ExperienceError):
    """Raised when an entity id does not resolve.

    Surfaced to the caller as-is; lookups are never retried.
    """

    code = ErrorCode.NOT_FOUND

    def __init__(self, entity: str, entity_id: int) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} {entity_id} not found")


class InsufficientEvidenceError(ExperienceError):
    """Raised when fewer than the minimum episodes back a new lesson."""

    code = ErrorCode.INSUFFICIENT_EVIDENCE

    def __init__(self, required: int, found: int) -> None:
        self.required = required
        self.found = found
        super().__init__(
            f"Need at least {required} episodes to form a lesson (got {found})"
        )


class StorageFailureError(ExperienceError):
    """Raised when the underlying store fails.

    The original sqlite3 exception is always chained as ``__cause__``.
    """

    code = ErrorCode.STORAGE_FAILURE


class ConfigurationError(ExperienceError):
    """Raised when a configuration file cannot be loaded or validated."""

    code = ErrorCode.CONFIG_INVALID


__all__ = [
    "ConfigurationError",
    "ErrorCode",
    "ExperienceError",
    "InsufficientEvidenceError",
    "NotFoundError",
    "StorageFailureError",
]
