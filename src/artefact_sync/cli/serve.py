"""
artefact-sync CLI - Serve command.

Runs the sync trigger API with uvicorn.
"""

import typer
import uvicorn
from rich.console import Console

from artefact_sync.cli.errors import report_sync_error
from artefact_sync.core.api import create_app
from artefact_sync.core.exceptions import SyncError

console = Console()


def serve(
    host: str = typer.Option(
        "127.0.0.1",
        "--host",
        help="Interface to bind",
    ),
    port: int = typer.Option(
        8000,
        "--port",
        "-p",
        help="Port to listen on",
    ),
) -> None:
    """
    Serve the sync trigger API.

    Examples:
        artefact-sync serve                      # http://127.0.0.1:8000
        artefact-sync serve --host 0.0.0.0 -p 9000
    """
    try:
        app = create_app()
    except SyncError as e:
        raise typer.Exit(report_sync_error(e))

    console.print(f"[blue]Serving sync API on http://{host}:{port}[/blue]")
    uvicorn.run(app, host=host, port=port, log_level="info")
