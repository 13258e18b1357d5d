"""Pytest fixtures for experience layer tests."""

import logging
from collections.abc import Generator
from datetime import UTC, datetime
from pathlib import Path

import pytest
import structlog

from experience_layer.core.config import ExperienceConfig
from experience_layer.service import ExperienceService
from experience_layer.store import ExperienceStore


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset logging and CLI state before and after each test.

    This ensures test isolation for logging configuration.
    """
    from experience_layer.cli import helpers

    helpers.reset_logging_state()
    structlog.reset_defaults()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    helpers.reset_logging_state()
    structlog.reset_defaults()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in original_handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(original_level)


@pytest.fixture
def now() -> datetime:
    """A fixed reference instant so decay math is deterministic."""
    return datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "experience.db"


@pytest.fixture
def store(db_path: Path) -> ExperienceStore:
    """An empty store in a temporary directory."""
    return ExperienceStore(db_path)


@pytest.fixture
def config(db_path: Path) -> ExperienceConfig:
    return ExperienceConfig(db_path=db_path)


@pytest.fixture
def service(store: ExperienceStore, config: ExperienceConfig) -> ExperienceService:
    """A service over the temporary store with default policy."""
    return ExperienceService(store, config)
