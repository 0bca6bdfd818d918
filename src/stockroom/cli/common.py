"""
Shared helpers for CLI commands.
"""

from collections.abc import Iterator
from contextlib import contextmanager

import typer

from stockroom.cli.errors import report_error
from stockroom.core.config import StockroomConfig
from stockroom.core.errors import StockroomError
from stockroom.core.vcs import GitBackend
from stockroom.core.warehouse import Warehouse


def get_config(ctx: typer.Context) -> StockroomConfig:
    """Return the configuration loaded by the main callback."""
    obj = ctx.find_root().obj or {}
    config = obj.get("config")
    if config is None:
        raise RuntimeError("Configuration not loaded")
    return config


@contextmanager
def open_warehouse(ctx: typer.Context) -> Iterator[Warehouse]:
    """
    Open the configured warehouse for the duration of a command.

    Stockroom errors raised inside the block are reported and turned into
    the matching exit code.

    Example:
        >>> with open_warehouse(ctx) as warehouse:
        ...     warehouse.update_cabinets()
    """
    config = get_config(ctx)
    try:
        with GitBackend() as backend:
            yield Warehouse.from_config(config, backend)
    except StockroomError as e:
        raise typer.Exit(report_error(e))
