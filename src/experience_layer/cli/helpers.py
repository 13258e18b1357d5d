"""Shared utilities for experience CLI commands.

This module contains helpers used across the command modules:
- Logging state set by the global options and applied once per session
- Store location and config file state
- Service construction
- Error handling that maps engine errors to exit code 1
- Parsing of JSON-valued options
"""

from __future__ import annotations

import json as json_lib
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import typer
from pydantic import ValidationError
from rich.console import Console

from experience_layer.core.config import ExperienceConfig
from experience_layer.core.errors import ExperienceError
from experience_layer.core.logging import configure_logging, get_logger
from experience_layer.service import ExperienceService

from .output import console, output_error

_logger = get_logger("cli")


# =============================================================================
# Logging configuration
# =============================================================================


@dataclass
class CliLoggingConfig:
    """CLI logging state; unset fields fall back to the config file."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None
    file: Path | None = None
    format: Literal["json", "console", "both"] | None = None
    configured: bool = False


_log_config = CliLoggingConfig()


def set_log_level(level: str) -> None:
    _log_config.level = level.upper()  # type: ignore[assignment]


def set_log_file(path: Path | None) -> None:
    _log_config.file = path


def set_log_format(fmt: str) -> None:
    _log_config.format = fmt.lower()  # type: ignore[assignment]


def configure_global_logging(config: ExperienceConfig, console: Console) -> None:
    """Configure logging from CLI options layered over the config file.

    Only configures once per session.

    Raises:
        typer.Exit: If logging configuration fails.
    """
    if _log_config.configured:
        return

    try:
        configure_logging(
            level=_log_config.level or config.logging.level,
            format=_log_config.format or config.logging.format,
            file_path=_log_config.file or config.logging.file,
        )
        _log_config.configured = True
    except (ValueError, AttributeError) as e:
        console.print(f"[red]Logging configuration error:[/red] {e}")
        raise typer.Exit(1) from None


def reset_logging_state() -> None:
    """Reset logging and store state (primarily for testing)."""
    global _log_config, _store_config
    _log_config = CliLoggingConfig()
    _store_config = CliStoreConfig()


# =============================================================================
# Store and config selection
# =============================================================================


@dataclass
class CliStoreConfig:
    db_path: Path | None = None
    config_path: Path | None = None


_store_config = CliStoreConfig()


def set_db_path(path: Path | None) -> None:
    _store_config.db_path = path


def set_config_path(path: Path | None) -> None:
    _store_config.config_path = path


def load_config() -> ExperienceConfig:
    """Load the config file (if any) and apply the ``--db`` override.

    Raises:
        ConfigurationError: If the config file is unreadable or invalid.
    """
    if _store_config.config_path is not None:
        config = ExperienceConfig.from_yaml(_store_config.config_path)
    else:
        config = ExperienceConfig()
    if _store_config.db_path is not None:
        config = config.model_copy(update={"db_path": _store_config.db_path.expanduser()})
    return config


def get_service() -> ExperienceService:
    """Build a service for one command invocation."""
    config = load_config()
    _logger.debug("service_opened", db_path=str(config.db_path))
    return ExperienceService.from_config(config)


# =============================================================================
# Error handling and option parsing
# =============================================================================


@contextmanager
def handle_errors(json_output: bool = False) -> Iterator[None]:
    """Print engine and validation errors and exit with status 1."""
    try:
        yield
    except ExperienceError as e:
        output_error(str(e), error_code=e.code.value, json_output=json_output)
        raise typer.Exit(1) from None
    except ValidationError as e:
        output_error(
            f"Invalid input: {e.error_count()} validation error(s)",
            hints=[
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            ],
            json_output=json_output,
        )
        raise typer.Exit(1) from None


def parse_json_option(value: str | None, option: str) -> dict[str, Any] | None:
    """Parse a JSON object passed on the command line.

    Raises:
        typer.BadParameter: If the value is not a JSON object.
    """
    if value is None:
        return None
    try:
        parsed = json_lib.loads(value)
    except json_lib.JSONDecodeError as e:
        raise typer.BadParameter(f"not valid JSON: {e}", param_hint=option) from None
    if not isinstance(parsed, dict):
        raise typer.BadParameter("must be a JSON object", param_hint=option)
    return parsed


__all__ = [
    "CliLoggingConfig",
    "CliStoreConfig",
    "configure_global_logging",
    "console",
    "get_service",
    "handle_errors",
    "load_config",
    "parse_json_option",
    "reset_logging_state",
    "set_config_path",
    "set_db_path",
    "set_log_file",
    "set_log_format",
    "set_log_level",
]
