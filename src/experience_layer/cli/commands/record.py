"""Record command: store one experience from the command line."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.markup import escape

from ..helpers import get_service, handle_errors, parse_json_option
from ..output import console, print_json


def record(
    operation_type: Annotated[
        str, typer.Argument(help="Operation type (build, search, verify, ...)")
    ],
    outcome: Annotated[
        str, typer.Argument(help="Outcome: success, failure or partial")
    ],
    server: Annotated[
        str | None, typer.Option("--server", "-s", help="Server that performed it")
    ] = None,
    query: Annotated[
        str | None,
        typer.Option("--query", "-q", help="Problem query (shortcut for problem.query)"),
    ] = None,
    problem: Annotated[
        str | None, typer.Option("--problem", help="Problem context as a JSON object")
    ] = None,
    solution: Annotated[
        str | None, typer.Option("--solution", help="Solution applied as a JSON object")
    ] = None,
    metadata: Annotated[
        str | None,
        typer.Option("--metadata", help="Environment, dependencies, triggers as JSON"),
    ] = None,
    quality: Annotated[
        float | None, typer.Option("--quality", help="Quality score from 0 to 1")
    ] = None,
    duration_ms: Annotated[
        float | None, typer.Option("--duration-ms", help="Duration in milliseconds")
    ] = None,
    notes: Annotated[str | None, typer.Option("--notes", help="Free-form notes")] = None,
    json_output: bool = typer.Option(
        False, "--json", "-j", help="Output as JSON for machine parsing"
    ),
) -> None:
    """Record an experience and run pattern detection.

    Examples:
        experience record build success --server builder-1
        experience record search failure -q "find config" --json
        experience record deploy partial --metadata '{"environment": "staging"}'
    """
    problem_data = parse_json_option(problem, "--problem")
    if query is not None:
        problem_data = {**(problem_data or {}), "query": query}

    with handle_errors(json_output):
        service = get_service()
        result = service.record_experience(
            {
                "operation_type": operation_type,
                "outcome": outcome,
                "server_name": server,
                "problem": problem_data,
                "solution": parse_json_option(solution, "--solution"),
                "metadata": parse_json_option(metadata, "--metadata"),
                "quality_score": quality,
                "duration_ms": duration_ms,
                "notes": notes,
            },
            source="cli",
        )

    if json_output:
        print_json(result.to_dict())
        return

    console.print(
        f"[green]Recorded episode {result.episode_id}[/green] "
        f"(utility [bold]{result.utility_score:.2f}[/bold])"
    )
    for description in result.patterns_triggered:
        console.print(f"  [cyan]Pattern:[/cyan] {escape(description)}")
