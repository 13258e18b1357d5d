"""Rich output formatting for the experience CLI.

Centralizes colors, table builders and the JSON / error output paths so that
every command renders episodes, patterns and lessons the same way.
"""

from __future__ import annotations

import json as json_lib
from collections.abc import Sequence
from datetime import datetime
from typing import Any, Literal

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from experience_layer.core import constants as c
from experience_layer.store import (
    Episode,
    LessonWithConfidence,
    Outcome,
    Pattern,
    PatternType,
)

# =============================================================================
# Shared console instance
# =============================================================================

console = Console()


# =============================================================================
# Color schemes
# =============================================================================


class StatusColors:
    """Color mappings for outcomes and pattern types."""

    OUTCOME: dict[Outcome, str] = {
        Outcome.SUCCESS: "green",
        Outcome.PARTIAL: "yellow",
        Outcome.FAILURE: "red",
    }

    PATTERN_TYPE: dict[PatternType, str] = {
        PatternType.SUCCESS: "green",
        PatternType.CORRELATION: "yellow",
        PatternType.FAILURE: "red",
    }

    @classmethod
    def get_outcome_color(cls, outcome: Outcome) -> str:
        return cls.OUTCOME.get(outcome, "white")

    @classmethod
    def get_pattern_color(cls, pattern_type: PatternType) -> str:
        return cls.PATTERN_TYPE.get(pattern_type, "white")


def confidence_color(confidence: float) -> str:
    """green for high, yellow for medium, red for low confidence."""
    if confidence >= c.HIGH_CONFIDENCE:
        return "green"
    if confidence >= c.MEDIUM_CONFIDENCE:
        return "yellow"
    return "red"


# =============================================================================
# Formatters
# =============================================================================


def format_timestamp(dt: datetime | None) -> str:
    """Format an instant for display, or "-" if None."""
    if dt is None:
        return "-"
    return dt.strftime("%Y-%m-%d %H:%M:%S UTC")


def format_confidence(confidence: float) -> str:
    color = confidence_color(confidence)
    return f"[{color}]{confidence:.2f}[/{color}]"


def format_outcome(outcome: Outcome) -> str:
    color = StatusColors.get_outcome_color(outcome)
    return f"[{color}]{outcome.value}[/{color}]"


# =============================================================================
# Table builders
# =============================================================================


def create_episodes_table(episodes: Sequence[Episode], title: str = "Episodes") -> Table:
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("When", width=23)
    table.add_column("Type")
    table.add_column("Outcome")
    table.add_column("Server", style="dim")
    table.add_column("Utility", justify="right")

    for episode in episodes:
        table.add_row(
            str(episode.id),
            format_timestamp(episode.timestamp),
            episode.operation_type,
            format_outcome(episode.outcome),
            episode.server_name or "-",
            f"{episode.utility_score:.2f}",
        )
    return table


def create_patterns_table(patterns: Sequence[Pattern], title: str = "Patterns") -> Table:
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Type")
    table.add_column("Description", no_wrap=False)
    table.add_column("Freq", justify="right")
    table.add_column("Weight", justify="right")
    table.add_column("Applied", justify="right")

    for pattern in patterns:
        color = StatusColors.get_pattern_color(pattern.pattern_type)
        table.add_row(
            str(pattern.id),
            f"[{color}]{pattern.pattern_type.value}[/{color}]",
            escape(pattern.description),
            str(pattern.frequency),
            f"{pattern.discrimination_weight:.2f}",
            f"{pattern.times_succeeded}/{pattern.times_applied}",
        )
    return table


def create_lessons_table(
    lessons: Sequence[LessonWithConfidence], title: str = "Lessons"
) -> Table:
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Statement", no_wrap=False)
    table.add_column("Confidence", justify="right")
    table.add_column("Applied", justify="right")
    table.add_column("Contexts", style="dim", no_wrap=False)

    for item in lessons:
        lesson = item.lesson
        table.add_row(
            str(lesson.id),
            escape(lesson.statement),
            format_confidence(item.current_confidence),
            f"{lesson.times_succeeded}/{lesson.times_applied}",
            escape(", ".join(lesson.contexts or [])) or "-",
        )
    return table


def create_simple_table(show_header: bool = False) -> Table:
    """Key/value table without box styling."""
    return Table(show_header=show_header, box=None)


# =============================================================================
# JSON and error output
# =============================================================================


def print_json(data: Any, console_instance: Console | None = None) -> None:
    """Print ``data`` as indented JSON without Rich markup or wrapping."""
    out = console_instance or console
    out.print(
        json_lib.dumps(data, indent=2, default=str),
        markup=False,
        highlight=False,
        soft_wrap=True,
    )


def output_error(
    message: str,
    *,
    error_code: str | None = None,
    hints: list[str] | None = None,
    severity: Literal["error", "warning"] = "error",
    json_output: bool = False,
    console_instance: Console | None = None,
) -> None:
    """Output a formatted error or warning, as Rich markup or JSON."""
    out = console_instance or console
    color = "red" if severity == "error" else "yellow"
    label = "Error" if severity == "error" else "Warning"

    if json_output:
        result: dict[str, Any] = {"success": False, "message": message}
        if error_code:
            result["error_code"] = error_code
        if hints:
            result["hints"] = hints
        print_json(result, out)
        return

    if error_code:
        prefix = f"[{color}]{label} \\[{error_code}]:[/{color}] "
    else:
        prefix = f"[{color}]{label}:[/{color}] "
    out.print(f"{prefix}{escape(message)}")

    if hints:
        out.print()
        out.print("[dim]Hints:[/dim]")
        for hint in hints:
            out.print(f"  - {hint}")


__all__ = [
    "StatusColors",
    "confidence_color",
    "console",
    "create_episodes_table",
    "create_lessons_table",
    "create_patterns_table",
    "create_simple_table",
    "format_confidence",
    "format_outcome",
    "format_timestamp",
    "output_error",
    "print_json",
]
