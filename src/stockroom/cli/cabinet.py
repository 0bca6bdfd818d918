"""
Stockroom CLI - Cabinet command.

Import, inspect, update and edit cabinets.
"""

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from stockroom.cli.common import open_warehouse
from stockroom.core.catalog import Module

app = typer.Typer(
    name="cabinet",
    help="Manage cabinets (catalogs of modules)",
    no_args_is_help=True,
)

console = Console()


def _format_module_state(module: Module) -> str:
    if not module.is_full:
        return "[dim]not fetched[/dim]"
    if module.last_update is None:
        return "fetched"
    return f"updated {module.last_update:%Y-%m-%d %H:%M}"


@app.command(name="import")
def import_cabinet(
    ctx: typer.Context,
    uri: str = typer.Argument(..., help="Clone URI of the cabinet repository"),
) -> None:
    """
    Import a cabinet.

    The cabinet repository is cloned and its modules registered. Module
    repositories are cloned on demand.

    Examples:
        stockroom cabinet import https://example.com/cabinet.git
    """
    with open_warehouse(ctx) as warehouse:
        cabinet = warehouse.import_cabinet(uri)
        console.print(
            f"[green]Imported cabinet[/green] [bold]{cabinet.namespace}[/bold] "
            f"({len(cabinet)} module(s))"
        )


@app.command(name="list")
def list_cabinets(ctx: typer.Context) -> None:
    """Show all imported cabinets."""
    with open_warehouse(ctx) as warehouse:
        cabinets = warehouse.cabinets
        if not cabinets:
            console.print("[yellow]No cabinets imported[/yellow]")
            return

        table = Table(title="Cabinets")
        table.add_column("Namespace", style="cyan", no_wrap=True)
        table.add_column("Modules", justify="right")
        table.add_column("Path", style="dim")
        for namespace, cabinet in sorted(cabinets.items()):
            table.add_row(namespace, str(len(cabinet)), str(cabinet.home))
        console.print(table)


@app.command()
def show(
    ctx: typer.Context,
    namespace: str = typer.Argument(..., help="Cabinet namespace"),
) -> None:
    """Show the modules of a cabinet."""
    with open_warehouse(ctx) as warehouse:
        cabinet = warehouse.require_cabinet(namespace)

        table = Table(title=f"Cabinet {cabinet.namespace}")
        table.add_column("Id", style="cyan", no_wrap=True)
        table.add_column("Name")
        table.add_column("Uri", style="blue")
        table.add_column("State")
        for module in cabinet:
            table.add_row(module.id, module.display, module.uri, _format_module_state(module))
        console.print(table)


@app.command()
def update(
    ctx: typer.Context,
    namespace: Optional[str] = typer.Argument(None, help="Cabinet to update (default: all)"),
) -> None:
    """
    Pull cabinets and their modules from upstream.

    Every cabinet and module is attempted; failures are reported together
    at the end.

    Examples:
        stockroom cabinet update        # Update everything
        stockroom cabinet update nw     # Update one cabinet
    """
    with open_warehouse(ctx) as warehouse:
        if namespace is None:
            warehouse.update_cabinets()
            console.print(f"[green]Updated {len(warehouse.cabinets)} cabinet(s)[/green]")
        else:
            warehouse.update_cabinet(namespace)
            console.print(f"[green]Updated cabinet {namespace}[/green]")


@app.command()
def remove(
    ctx: typer.Context,
    namespace: str = typer.Argument(..., help="Cabinet namespace"),
) -> None:
    """Remove a cabinet and every module it fetched."""
    with open_warehouse(ctx) as warehouse:
        warehouse.require_cabinet(namespace)
        warehouse.remove_cabinet(namespace)
        console.print(f"[green]Removed cabinet {namespace}[/green]")


@app.command(name="add-module")
def add_module(
    ctx: typer.Context,
    namespace: str = typer.Argument(..., help="Cabinet namespace"),
    name: str = typer.Argument(..., help="Module id"),
    uri: str = typer.Argument(..., help="Clone URI of the module repository"),
    display: str = typer.Option("", "--display", help="Human readable module name"),
) -> None:
    """Add a module to a cabinet."""
    with open_warehouse(ctx) as warehouse:
        module = warehouse.require_cabinet(namespace).add(name, uri, display)
        console.print(f"[green]Added module[/green] {namespace}.{module.id}")


@app.command(name="remove-module")
def remove_module(
    ctx: typer.Context,
    namespace: str = typer.Argument(..., help="Cabinet namespace"),
    name: str = typer.Argument(..., help="Module id"),
) -> None:
    """Remove a module from a cabinet."""
    with open_warehouse(ctx) as warehouse:
        cabinet = warehouse.require_cabinet(namespace)
        if name not in cabinet:
            console.print(f"[yellow]No module {name} in cabinet {namespace}[/yellow]")
            return
        cabinet.remove(name)
        console.print(f"[green]Removed module[/green] {namespace}.{name}")
