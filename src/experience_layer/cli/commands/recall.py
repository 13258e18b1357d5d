"""Recall commands.

Commands:
- recall-type: Past episodes of one operation type
- recall-outcome: Past episodes with one outcome
"""

from __future__ import annotations

from typing import Annotated

import typer

from experience_layer.core import constants as c
from experience_layer.learning.models import RecallResult

from ..helpers import get_service, handle_errors
from ..output import console, create_episodes_table, create_patterns_table, print_json


def _print_recall(result: RecallResult, title: str) -> None:
    if not result.episodes:
        console.print(f"[dim]No episodes found for {title}.[/dim]")
    else:
        console.print(create_episodes_table(result.episodes, title=title))
        console.print(
            f"[bold]{result.count}[/bold] episodes, "
            f"average utility [bold]{result.avg_utility:.2f}[/bold]"
        )
    if result.patterns_detected:
        console.print(create_patterns_table(result.patterns_detected, title="Related Patterns"))


def recall_type(
    operation_type: Annotated[str, typer.Argument(help="Operation type to recall")],
    outcome: Annotated[
        str | None, typer.Option("--outcome", "-o", help="Only this outcome")
    ] = None,
    limit: Annotated[
        int, typer.Option("--limit", "-n", help="Maximum episodes to return")
    ] = c.DEFAULT_RECALL_LIMIT,
    json_output: bool = typer.Option(
        False, "--json", "-j", help="Output as JSON for machine parsing"
    ),
) -> None:
    """Show past experiences for an operation type, newest first.

    Examples:
        experience recall-type build
        experience recall-type build --outcome failure -n 10
    """
    with handle_errors(json_output):
        result = get_service().recall_by_type(
            {"operation_type": operation_type, "outcome_filter": outcome, "limit": limit},
            source="cli",
        )

    if json_output:
        print_json(result.to_dict())
        return
    _print_recall(result, title=f"'{operation_type}' episodes")


def recall_outcome(
    outcome: Annotated[str, typer.Argument(help="success, failure or partial")],
    operation_type: Annotated[
        str | None, typer.Option("--type", "-t", help="Only this operation type")
    ] = None,
    limit: Annotated[
        int, typer.Option("--limit", "-n", help="Maximum episodes to return")
    ] = c.DEFAULT_RECALL_LIMIT,
    json_output: bool = typer.Option(
        False, "--json", "-j", help="Output as JSON for machine parsing"
    ),
) -> None:
    """Show past experiences with a given outcome, newest first.

    Examples:
        experience recall-outcome failure
        experience recall-outcome success --type build --json
    """
    with handle_errors(json_output):
        result = get_service().recall_by_outcome(
            {"outcome": outcome, "operation_type": operation_type, "limit": limit},
            source="cli",
        )

    if json_output:
        print_json(result.to_dict())
        return
    _print_recall(result, title=f"{outcome} episodes")
