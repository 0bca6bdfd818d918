"""
Stockroom CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError as ConfigValidationError
from rich.console import Console

from stockroom import __version__
from stockroom.cli import cabinet, module, workspace
from stockroom.cli.errors import ExitCode, print_error
from stockroom.core.config import load_config, load_layered_env, resolve_home

app = typer.Typer(
    name="stockroom",
    help="Keep catalogs of git modules up to date and link them into workspaces",
    no_args_is_help=True,
    context_settings={"help_option_names": ["--help", "-h"]},
)

console = Console()


def setup_logging(debug: bool = False, level: str = "WARNING") -> None:
    """
    Configure logging for stockroom commands.

    Args:
        debug: If True, enable DEBUG level logging regardless of level
        level: Level name from configuration
    """
    logging.basicConfig(
        level=logging.DEBUG if debug else getattr(logging, level, logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


@app.callback()
def main(
    ctx: typer.Context,
    home: Optional[Path] = typer.Option(
        None,
        "--home",
        help="Warehouse home directory (default: STOCKROOM_HOME or current directory)",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
) -> None:
    """
    Stockroom - git module catalogs and workspaces.

    A cabinet is a git repository listing modules (other git repositories)
    under a namespace. Stockroom imports cabinets, keeps them and their
    modules up to date, and links modules into workspaces, pulling in
    their dependencies.

    Quick Start:
        stockroom cabinet import https://example.com/cabinet.git
        stockroom workspace create game nw.render --in-tree nw.core
        stockroom cabinet update
    """
    # Precedence: OS env > <home>/.env > user .env
    load_layered_env(resolve_home(home))

    try:
        config = load_config(home, use_cache=False)
    except ConfigValidationError as e:
        print_error("Invalid configuration", reason=str(e))
        raise typer.Exit(ExitCode.USER_ERROR)

    setup_logging(debug, config.log_level)
    ctx.obj = {"debug": debug, "config": config}


app.add_typer(cabinet.app, name="cabinet")
app.add_typer(module.app, name="module")
app.add_typer(workspace.app, name="workspace")


@app.command()
def version() -> None:
    """Show stockroom version and exit."""
    console.print(f"stockroom version {__version__}")
    raise typer.Exit(0)


def cli_main() -> None:
    """Main CLI entry point."""
    try:
        app()
    except KeyboardInterrupt:
        sys.exit(ExitCode.SIGINT)


__all__ = ["app", "cli_main", "setup_logging"]
