"""
On-disk layout tokens and identifier validation.

A warehouse home looks like::

    <home>/
        .stockroom/
            Temp/FetchProgress/       cabinet being imported
            Stock/<namespace>/        one directory per cabinet
                Repo/                 cabinet repository (holds info.json)
                Modules/<id>/         one directory per module
                    info.json         module metadata
                    Repo/             module repository, cloned on demand
            Ws/<workspace>/           private workspace area
                info.json             workspace manifest
        <workspace>/                  visible project root (in-tree links)
"""

from __future__ import annotations

from pathlib import Path

from stockroom.core.errors import ValidationError

REPO_DIR = "Repo"
INFO_FILE = "info.json"
DEPENDENCY_FILE = "module.json"
MODULES_DIR = "Modules"
WAREHOUSE_DIR = ".stockroom"
TEMP_DIR = "Temp"
STOCK_DIR = "Stock"
WORKSPACE_DIR = "Ws"
FETCH_PROGRESS_DIR = "FetchProgress"

# Joins a cabinet namespace and a module id into a module reference.
REFERENCE_SEPARATOR = "."

DISALLOWED_CHARACTERS = "#<$+%>!`&*'\"|{?=}/\\: @"


def validate_name(name: str) -> str:
    """
    Reject identifiers that cannot be used as directory or reference names.

    Args:
        name: Identifier to check

    Returns:
        The identifier, unchanged

    Raises:
        ValidationError: Naming the first disallowed character found
    """
    for char in name:
        if char in DISALLOWED_CHARACTERS:
            raise ValidationError(f"Invalid character '{char}' found in '{name}'")
    return name


def require_value(value: str, field: str) -> str:
    """Reject an empty required field."""
    if not value:
        raise ValidationError(f"{field} cannot be empty")
    return value


def make_reference(namespace: str, module_id: str) -> str:
    """Build the catalog-wide reference of a module."""
    return f"{namespace}{REFERENCE_SEPARATOR}{module_id}"


def warehouse_dir(home: Path) -> Path:
    return home / WAREHOUSE_DIR


def temp_dir(home: Path) -> Path:
    return warehouse_dir(home) / TEMP_DIR


def stock_dir(home: Path) -> Path:
    return warehouse_dir(home) / STOCK_DIR


def workspaces_dir(home: Path) -> Path:
    return warehouse_dir(home) / WORKSPACE_DIR
