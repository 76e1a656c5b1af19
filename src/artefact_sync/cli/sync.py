"""
artefact-sync CLI - Sync command.

Runs one sync for a user or team against the configured store, or shows
which files a sync would write.
"""

import asyncio

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from artefact_sync.cli.errors import ExitCode, print_error, report_sync_error
from artefact_sync.core.config import AppConfig, load_config
from artefact_sync.core.exceptions import SyncError
from artefact_sync.core.store import create_store
from artefact_sync.core.sync import Principal, SyncResult, SyncScope, SyncService

console = Console()


def build_service(config: AppConfig) -> SyncService:
    """Create the sync service for the configured store."""
    return SyncService(create_store(config.store), config)


async def _close(service: SyncService) -> None:
    aclose = getattr(service.store, "aclose", None)
    if aclose is not None:
        await aclose()


async def _run_sync(service: SyncService, principal: Principal, scope: SyncScope) -> SyncResult:
    try:
        return await service.sync(principal, scope)
    finally:
        await _close(service)


async def _run_check(service: SyncService, principal: Principal, scope: SyncScope) -> str:
    try:
        check = await service.test_connection(principal, scope)
    finally:
        await _close(service)
    return f"{check.message} ({check.repository})"


async def _run_plan(service: SyncService, principal: Principal, scope: SyncScope) -> None:
    try:
        target, files = await service.plan(principal, scope)
    finally:
        await _close(service)

    if not files:
        console.print("[blue]No artefacts to sync[/blue]")
        return

    table = Table(title=f"Planned files for {target.describe()}")
    table.add_column("Path", style="cyan")
    table.add_column("Kind")
    table.add_column("Record", style="dim")
    table.add_column("Bytes", justify="right")
    for file in files:
        table.add_row(file.path, file.kind.value, file.record_id, str(len(file.content.encode())))
    console.print(table)


def sync(
    user_id: str = typer.Option(
        ...,
        "--user-id",
        help="User triggering the sync",
    ),
    email: str | None = typer.Option(
        None,
        "--email",
        help="Email shown in the commit message (defaults to the user id)",
    ),
    team: str | None = typer.Option(
        None,
        "--team",
        "-t",
        help="Sync a team's artefacts instead of the user's own",
    ),
    test_connection: bool = typer.Option(
        False,
        "--test-connection",
        help="Only check that the repository is reachable",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Show the files a sync would write without touching GitHub",
    ),
) -> None:
    """
    Publish prompts, skills and workflows to the configured repository.

    Examples:
        artefact-sync sync --user-id u1                  # Personal artefacts
        artefact-sync sync --user-id u1 --team t1        # Team artefacts
        artefact-sync sync --user-id u1 --dry-run        # Show planned files
        artefact-sync sync --user-id u1 --test-connection
    """
    try:
        config = load_config()
        service = build_service(config)
    except ValidationError as e:
        print_error("Invalid configuration", reason=str(e))
        raise typer.Exit(ExitCode.USER_ERROR)
    except SyncError as e:
        raise typer.Exit(report_sync_error(e))

    principal = Principal(user_id=user_id, email=email)
    scope = SyncScope.team(team) if team else SyncScope.personal()

    try:
        if test_connection:
            message = asyncio.run(_run_check(service, principal, scope))
            console.print(f"[green]✓[/green] {message}")
            return

        if dry_run:
            asyncio.run(_run_plan(service, principal, scope))
            return

        result = asyncio.run(_run_sync(service, principal, scope))
    except SyncError as e:
        raise typer.Exit(report_sync_error(e))

    if not result.commit_sha:
        console.print(f"[blue]{result.message}[/blue]")
        return

    console.print(f"[green]✓[/green] {result.message}: {result.commit_sha[:8]}")
    if result.bootstrapped:
        console.print("[dim]Repository was empty and has been initialized[/dim]")
    if result.files_deleted:
        console.print(f"[dim]Removed {result.files_deleted} stale files[/dim]")
