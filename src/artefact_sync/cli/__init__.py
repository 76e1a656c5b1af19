"""
artefact-sync CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import logging

import typer
from rich.console import Console

from artefact_sync import __version__
from artefact_sync.cli import serve, sync
from artefact_sync.core.config.env import load_layered_env

app = typer.Typer(
    name="artefact-sync",
    help="Publish prompts, skills and workflows to a GitHub repository",
    no_args_is_help=True,
    add_completion=False,
    context_settings={"help_option_names": ["--help", "-h"]},
)

console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
) -> None:
    """
    artefact-sync - publish a prompt library to GitHub.

    Every sync writes all of a user's (or team's) prompts, skills and
    workflows to the configured repository as a single commit.

    Quick Start:
        artefact-sync sync --user-id <id> --dry-run   # See what would be written
        artefact-sync sync --user-id <id>             # Publish
        artefact-sync serve                           # Run the HTTP trigger
    """
    # Load layered env files early so store keys are available to all commands.
    # Precedence: OS env > project .env > user .env
    load_layered_env()

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    ctx.obj = {"debug": debug}


app.command(name="sync")(sync.sync)
app.command(name="serve")(serve.serve)


@app.command()
def version() -> None:
    """Show artefact-sync version and exit."""
    console.print(f"artefact-sync version {__version__}")
    raise typer.Exit(0)


def cli_main() -> None:
    """Main CLI entry point."""
    app()


__all__ = ["app", "cli_main"]
