"""Store maintenance and inspection commands.

Commands:
- cleanup: Run the retention sweep
- stats: Summary statistics for the store
- patterns: List mined patterns
"""

from __future__ import annotations

from typing import Annotated

import typer

from ..helpers import get_service, handle_errors
from ..output import console, create_patterns_table, create_simple_table, print_json


def cleanup(
    days: Annotated[
        float | None,
        typer.Option(
            "--days",
            "-d",
            help="Retention window in days (default from config, 90)",
        ),
    ] = None,
    json_output: bool = typer.Option(
        False, "--json", "-j", help="Output as JSON for machine parsing"
    ),
) -> None:
    """Delete old episodes and patterns, and deprecate stale lessons.

    Examples:
        experience cleanup
        experience cleanup --days 30 --json
    """
    with handle_errors(json_output):
        try:
            result = get_service().cleanup(days, source="cli")
        except ValueError as e:
            raise typer.BadParameter(str(e), param_hint="--days") from None

    if json_output:
        print_json(result.to_dict())
        return

    console.print("[bold]Retention sweep complete[/bold]")
    console.print(f"  Episodes deleted: [cyan]{result.episodes_deleted}[/cyan]")
    console.print(f"  Patterns deleted: [cyan]{result.patterns_deleted}[/cyan]")
    console.print(f"  Lessons deprecated: [cyan]{result.lessons_deprecated}[/cyan]")


def stats(
    json_output: bool = typer.Option(
        False, "--json", "-j", help="Output as JSON for machine parsing"
    ),
) -> None:
    """Show summary statistics for the experience store."""
    with handle_errors(json_output):
        result = get_service().get_stats()

    if json_output:
        print_json(result.to_dict())
        return

    console.print("[bold]Experience Store Statistics[/bold]\n")
    table = create_simple_table()
    table.add_column("Field", style="dim", width=24)
    table.add_column("Value", style="bold")
    table.add_row("Episodes", str(result.episodes))
    for outcome, count in result.by_outcome.items():
        table.add_row(f"  {outcome}", str(count))
    table.add_row("Average utility", f"{result.avg_utility:.2f}")
    table.add_row("Patterns", str(result.patterns))
    table.add_row("Active lessons", str(result.lessons))
    table.add_row("High-confidence lessons", str(result.high_confidence_lessons))
    table.add_row("Deprecated lessons", str(result.deprecated_lessons))
    console.print(table)


def patterns(
    pattern_type: Annotated[
        str | None,
        typer.Option("--type", "-t", help="success, failure or correlation"),
    ] = None,
    limit: Annotated[
        int, typer.Option("--limit", "-n", help="Maximum patterns to show")
    ] = 20,
    json_output: bool = typer.Option(
        False, "--json", "-j", help="Output as JSON for machine parsing"
    ),
) -> None:
    """List mined patterns, strongest first.

    Examples:
        experience patterns
        experience patterns --type failure --json
    """
    with handle_errors(json_output):
        try:
            found = get_service().list_patterns(pattern_type, limit=limit)
        except ValueError:
            raise typer.BadParameter(
                f"unknown pattern type {pattern_type!r}", param_hint="--type"
            ) from None

    if json_output:
        print_json([p.to_dict() for p in found])
        return

    if not found:
        console.print("[dim]No patterns yet.[/dim]")
        return
    console.print(create_patterns_table(found))
