"""
Module catalogs: cabinets and the modules they track.
"""

from stockroom.core.catalog.cabinet import Cabinet
from stockroom.core.catalog.models import (
    CabinetManifest,
    DependencyDocument,
    ModuleInfo,
    WorkspaceManifest,
)
from stockroom.core.catalog.module import Module

__all__ = [
    "Cabinet",
    "CabinetManifest",
    "DependencyDocument",
    "Module",
    "ModuleInfo",
    "WorkspaceManifest",
]
