"""
Standardized error handling and exit codes for the artefact-sync CLI.

This module provides consistent error messaging with actionable guidance
and standardized exit codes across all CLI commands.
"""

from enum import IntEnum

from rich.console import Console

from artefact_sync.core.exceptions import ConfigError, RefConflictError, SyncError

console = Console(stderr=True)


class ExitCode(IntEnum):
    """Standard exit codes for artefact-sync CLI operations."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """Upstream failure or unexpected error."""

    USER_ERROR = 2
    """Configuration or input error (actionable by user)."""


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
        ...     "GitHub token not configured",
        ...     solution="Add a Personal Access Token in Settings",
        ... )
    """
    console.print(f"[red]Error:[/red] {problem}")

    if reason:
        console.print(f"[dim]{reason}[/dim]")

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {solution}")


def report_sync_error(error: SyncError) -> ExitCode:
    """Print a sync failure and return the exit code it maps to."""
    if isinstance(error, ConfigError):
        print_error(error.message, reason="The sync settings need attention")
        return ExitCode.USER_ERROR

    if isinstance(error, RefConflictError):
        print_error(
            error.message,
            reason="Another sync advanced the branch while this one was running",
            solution="artefact-sync sync  # run it again",
        )
        return ExitCode.GENERAL_ERROR

    print_error(
        str(error),
        solution="Retry the sync" if error.retryable else None,
    )
    return ExitCode.GENERAL_ERROR
