"""
Stockroom CLI - Workspace command.

Create and manage workspaces: named sets of module links.
"""

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from stockroom.cli.common import open_warehouse
from stockroom.core.workspace import CheckoutArgs, CheckoutRequest

app = typer.Typer(
    name="workspace",
    help="Manage workspaces",
    no_args_is_help=True,
)

console = Console()


@app.command()
def create(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Workspace name"),
    references: Optional[list[str]] = typer.Argument(
        None,
        help="Modules to link, as <namespace>.<id>",
    ),
    in_tree: Optional[list[str]] = typer.Option(
        None,
        "--in-tree",
        "-t",
        help="Module to link into the visible project root (repeatable)",
    ),
) -> None:
    """
    Create a workspace.

    Requested modules and everything they depend on are cloned if needed
    and linked. Modules given with --in-tree are linked under <home>/<name>;
    everything else goes to the private workspace area.

    Examples:
        stockroom workspace create game nw.render --in-tree nw.core
    """
    in_tree_refs = list(in_tree or [])
    requests = [
        CheckoutRequest(reference=reference, in_tree=reference in in_tree_refs)
        for reference in references or []
    ]
    requested = {request.reference for request in requests}
    requests.extend(
        CheckoutRequest(reference=reference, in_tree=True)
        for reference in in_tree_refs
        if reference not in requested
    )

    with open_warehouse(ctx) as warehouse:
        workspace = warehouse.create_workspace(CheckoutArgs(name=name, modules=requests))
        console.print(
            f"[green]Created workspace[/green] [bold]{workspace.name}[/bold] "
            f"with {len(workspace.modules)} module(s) at {workspace.root}"
        )


@app.command(name="list")
def list_workspaces(ctx: typer.Context) -> None:
    """Show all workspaces."""
    with open_warehouse(ctx) as warehouse:
        workspaces = warehouse.workspaces
        if not workspaces:
            console.print("[yellow]No workspaces[/yellow]")
            return

        table = Table(title="Workspaces")
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Modules", justify="right")
        table.add_column("Root", style="dim")
        for name, workspace in sorted(workspaces.items()):
            table.add_row(name, str(len(workspace.modules)), str(workspace.root))
        console.print(table)


@app.command()
def show(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Workspace name"),
) -> None:
    """Show the modules linked in a workspace."""
    with open_warehouse(ctx) as warehouse:
        workspace = warehouse.require_workspace(name)
        roots = workspace.roots

        table = Table(title=f"Workspace {workspace.name}")
        table.add_column("Module", style="cyan", no_wrap=True)
        table.add_column("Link")
        table.add_column("Requested")
        for reference, link in workspace.checkout.items():
            if reference not in roots:
                requested = "[dim]dependency[/dim]"
            else:
                requested = "in-tree" if roots[reference] else "yes"
            table.add_row(reference, str(link), requested)
        console.print(table)


@app.command()
def update(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Workspace name"),
) -> None:
    """Pull every module of a workspace from upstream."""
    with open_warehouse(ctx) as warehouse:
        outcomes = warehouse.update_workspace(name)
        for reference, outcome in outcomes.items():
            console.print(f"[cyan]{reference}[/cyan]: {outcome.summary()}")


@app.command()
def remove(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Workspace name"),
) -> None:
    """Remove a workspace. Module repositories are kept."""
    with open_warehouse(ctx) as warehouse:
        warehouse.require_workspace(name)
        warehouse.remove_workspace(name)
        console.print(f"[green]Removed workspace {name}[/green]")
