"""
Stockroom CLI - Module command.
"""

import typer
from rich.console import Console

from stockroom.cli.common import open_warehouse

app = typer.Typer(
    name="module",
    help="Work with single modules",
    no_args_is_help=True,
)

console = Console()


@app.command()
def update(
    ctx: typer.Context,
    reference: str = typer.Argument(..., help="Module reference, <namespace>.<id>"),
) -> None:
    """
    Pull one module from upstream, cloning it first if needed.

    Examples:
        stockroom module update nw.core
    """
    with open_warehouse(ctx) as warehouse:
        outcome = warehouse.update_module(reference)
        console.print(f"[green]{reference}[/green]: {outcome.summary()}")
