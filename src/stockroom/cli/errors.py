"""
Standardized error handling and exit codes for the Stockroom CLI.

This module provides consistent error messaging with actionable guidance
and standardized exit codes across all CLI commands.
"""

from enum import IntEnum

from rich.console import Console

from stockroom.core.errors import (
    AggregateError,
    CorruptionError,
    FetchFailed,
    GitError,
    MergeConflict,
    NotFoundError,
    PolicyViolation,
    StockroomError,
    ValidationError,
)

console = Console()


class ExitCode(IntEnum):
    """Standard exit codes for Stockroom CLI operations."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """Generic error (git failure, corrupt metadata, partial update)."""

    USER_ERROR = 2
    """User input error (bad name, unknown cabinet, module or workspace)."""

    SIGINT = 130
    """Terminated by SIGINT (Ctrl+C) - Unix standard."""


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it

    Example:
        >>> print_error(
        ...     "Unknown cabinet: nw",
        ...     solution="stockroom cabinet list",
        ... )
    """
    console.print(f"[red]Error:[/red] {problem}")

    if reason:
        console.print(f"[dim]{reason}[/dim]")

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {solution}")


def print_aggregate_error(error: AggregateError) -> None:
    """Print every failure of a batch operation, one per line."""
    leaves = list(error.leaves())
    console.print(f"[red]Error:[/red] {error.message} ({len(leaves)} failure(s))")
    for leaf in leaves:
        first_line, *rest = str(leaf).splitlines() or [type(leaf).__name__]
        console.print(f"  [yellow]•[/yellow] {first_line}")
        for line in rest:
            console.print(f"    [dim]{line}[/dim]")


def report_error(error: StockroomError) -> ExitCode:
    """
    Print a stockroom error and pick the matching exit code.

    Returns:
        ExitCode to exit with
    """
    if isinstance(error, AggregateError):
        print_aggregate_error(error)
        return ExitCode.GENERAL_ERROR

    if isinstance(error, NotFoundError):
        print_error(str(error), solution="stockroom cabinet list  # to see what is available")
        return ExitCode.USER_ERROR

    if isinstance(error, ValidationError):
        print_error(str(error))
        return ExitCode.USER_ERROR

    if isinstance(error, MergeConflict):
        print_error(
            "Merge left conflicts",
            reason="Conflicted paths: " + ", ".join(error.paths),
            solution="resolve the conflicts in the module repository and commit",
        )
        return ExitCode.GENERAL_ERROR

    if isinstance(error, PolicyViolation):
        print_error(
            str(error),
            reason="The repository sets merge.ff=only",
            solution="rebase local commits onto upstream, or unset merge.ff",
        )
        return ExitCode.GENERAL_ERROR

    if isinstance(error, FetchFailed):
        print_error(str(error), reason="The remote may be unreachable")
        return ExitCode.GENERAL_ERROR

    if isinstance(error, GitError):
        print_error(str(error), reason=error.stderr or None)
        return ExitCode.GENERAL_ERROR

    if isinstance(error, CorruptionError):
        print_error(str(error), reason="Stored metadata is missing or malformed")
        return ExitCode.GENERAL_ERROR

    print_error(str(error))
    return ExitCode.GENERAL_ERROR
