"""Experience CLI - modular command structure.

The CLI is built with Typer. Global options (store location, config file,
logging) are handled by the app callback before any command runs; each
command module builds its own ``ExperienceService`` from that state.

Package structure:
    cli/
    ├── __init__.py           # This file - app assembly
    ├── helpers.py            # Shared state, service factory, error handling
    ├── output.py             # Rich formatting
    └── commands/
        ├── record.py         # record
        ├── recall.py         # recall-type, recall-outcome
        ├── lessons.py        # lessons, apply, learn, deprecate
        └── maintenance.py    # cleanup, stats, patterns
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from experience_layer import __version__

from . import helpers as helpers
from .commands import (
    apply,
    cleanup,
    deprecate,
    learn,
    lessons,
    patterns,
    recall_outcome,
    recall_type,
    record,
    stats,
)
from .helpers import (
    configure_global_logging,
    handle_errors,
    load_config,
    set_config_path,
    set_db_path,
    set_log_file,
    set_log_format,
    set_log_level,
)
from .output import console

# =============================================================================
# Typer app definition
# =============================================================================

app = typer.Typer(
    name="experience",
    help="Episodic memory: record experiences, mine patterns, manage lessons",
    add_completion=False,
)


# =============================================================================
# Global option callbacks
# =============================================================================


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"experience-layer v{__version__}")
        raise typer.Exit()


def log_level_callback(value: str | None) -> str | None:
    if value:
        set_log_level(value)
    return value


def log_file_callback(value: Path | None) -> Path | None:
    if value:
        set_log_file(value)
    return value


def log_format_callback(value: str | None) -> str | None:
    if value:
        set_log_format(value)
    return value


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    db: Annotated[
        Path | None,
        typer.Option(
            "--db",
            help="SQLite store path (default ~/.experience-layer/experience.db)",
            envvar="EXPERIENCE_DB",
        ),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="YAML configuration file",
            envvar="EXPERIENCE_CONFIG",
        ),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            "-L",
            callback=log_level_callback,
            help="Logging level (DEBUG, INFO, WARNING, ERROR)",
            envvar="EXPERIENCE_LOG_LEVEL",
        ),
    ] = None,
    log_file: Annotated[
        Path | None,
        typer.Option(
            "--log-file",
            callback=log_file_callback,
            help="Path for log file output",
            envvar="EXPERIENCE_LOG_FILE",
        ),
    ] = None,
    log_format: Annotated[
        str | None,
        typer.Option(
            "--log-format",
            callback=log_format_callback,
            help="Log format: json, console, or both",
            envvar="EXPERIENCE_LOG_FORMAT",
        ),
    ] = None,
) -> None:
    """Experience layer - episodic memory for agents and tools."""
    set_db_path(db)
    set_config_path(config)
    with handle_errors():
        loaded = load_config()
    configure_global_logging(loaded, console)


# =============================================================================
# Command registration
# =============================================================================

app.command()(record)
app.command(name="recall-type")(recall_type)
app.command(name="recall-outcome")(recall_outcome)

app.command()(lessons)
app.command()(apply)
app.command()(learn)
app.command()(deprecate)

app.command()(cleanup)
app.command()(stats)
app.command()(patterns)


# =============================================================================
# Public API
# =============================================================================

__all__ = [
    "app",
    "console",
    "helpers",
    "main",
]
