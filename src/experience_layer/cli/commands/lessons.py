"""Lesson commands.

Commands:
- lessons: Active lessons with decayed confidence
- apply: Record a use of a lesson and update its confidence
- learn: Distill a lesson from recurring episodes
- deprecate: Permanently retire a lesson
"""

from __future__ import annotations

from typing import Annotated

import typer
from rich.markup import escape
from rich.panel import Panel

from ..helpers import get_service, handle_errors, parse_json_option
from ..output import (
    console,
    create_lessons_table,
    create_simple_table,
    format_confidence,
    print_json,
)


def lessons(
    operation_type: Annotated[
        str | None, typer.Option("--type", "-t", help="Only lessons about this type")
    ] = None,
    context: Annotated[
        str | None,
        typer.Option("--context", "-c", help="Current context as a JSON object"),
    ] = None,
    min_confidence: Annotated[
        float, typer.Option("--min-confidence", "-m", help="Minimum decayed confidence")
    ] = 0.0,
    json_output: bool = typer.Option(
        False, "--json", "-j", help="Output as JSON for machine parsing"
    ),
) -> None:
    """List lessons applicable to the current context.

    Examples:
        experience lessons
        experience lessons --type build --min-confidence 0.5
        experience lessons --context '{"env": "production"}' --json
    """
    context_data = parse_json_option(context, "--context")

    with handle_errors(json_output):
        result = get_service().get_lessons(
            {
                "operation_type": operation_type,
                "context": context_data,
                "min_confidence": min_confidence,
            },
            source="cli",
        )

    if json_output:
        print_json(result.to_dict())
        return

    if not result.lessons:
        console.print("[dim]No applicable lessons.[/dim]")
        return

    console.print(create_lessons_table(result.lessons))
    summary = result.confidence_summary
    console.print(
        f"Confidence: [green]{summary.high} high[/green], "
        f"[yellow]{summary.medium} medium[/yellow], [red]{summary.low} low[/red]"
    )


def apply(
    lesson_id: Annotated[int, typer.Argument(help="ID of the lesson that was applied")],
    outcome: Annotated[str, typer.Argument(help="success, failure or partial")],
    notes: Annotated[
        str | None, typer.Option("--notes", help="Notes about the application")
    ] = None,
    json_output: bool = typer.Option(
        False, "--json", "-j", help="Output as JSON for machine parsing"
    ),
) -> None:
    """Record that a lesson was applied and how it went.

    Examples:
        experience apply 3 success
        experience apply 3 failure --notes "did not help on arm64"
    """
    with handle_errors(json_output):
        result = get_service().apply_lesson(
            {"lesson_id": lesson_id, "outcome": outcome, "notes": notes},
            source="cli",
        )

    if json_output:
        print_json(result.to_dict())
        return

    table = create_simple_table()
    table.add_column("Field", style="dim", width=22)
    table.add_column("Value", style="bold")
    table.add_row("Previous confidence", format_confidence(result.previous_confidence))
    table.add_row("New confidence", format_confidence(result.new_confidence))
    table.add_row("Applications", str(result.total_applications))
    table.add_row("Success rate", f"{result.success_rate:.1%}")
    console.print(Panel(table, title=f"Lesson {result.lesson_id}", border_style="cyan"))
    if result.deprecated:
        console.print("[yellow]Lesson is deprecated.[/yellow]")


def learn(
    pattern_description: Annotated[
        str, typer.Argument(help="Description of the observed pattern")
    ],
    statement: Annotated[
        str, typer.Option("--statement", "-s", help="The lesson to record")
    ],
    episode_ids: Annotated[
        list[int],
        typer.Option("--episode", "-e", help="Supporting episode id (repeatable)"),
    ],
    json_output: bool = typer.Option(
        False, "--json", "-j", help="Output as JSON for machine parsing"
    ),
) -> None:
    """Extract a lesson from at least three supporting episodes.

    Examples:
        experience learn "build: npm install first" -s "Run npm install before build" \\
            -e 1 -e 2 -e 3
    """
    with handle_errors(json_output):
        result = get_service().learn_from_pattern(
            {
                "pattern_description": pattern_description,
                "episode_ids": episode_ids,
                "lesson_statement": statement,
            },
            source="cli",
        )

    if json_output:
        print_json(result.to_dict())
        return

    console.print(
        f"[green]Created lesson {result.lesson_id}[/green] "
        f"from pattern {result.pattern_id} "
        f"(confidence {format_confidence(result.initial_confidence)})"
    )


def deprecate(
    lesson_id: Annotated[int, typer.Argument(help="ID of the lesson to retire")],
    json_output: bool = typer.Option(
        False, "--json", "-j", help="Output as JSON for machine parsing"
    ),
) -> None:
    """Permanently exclude a lesson from active queries."""
    with handle_errors(json_output):
        lesson = get_service().deprecate_lesson(lesson_id, source="cli")

    if json_output:
        print_json(lesson.to_dict())
        return
    console.print(f"[yellow]Deprecated lesson {lesson.id}:[/yellow] {escape(lesson.statement)}")
