"""
Workspace: a named set of module links.

A workspace keeps its manifest and its private links under
`.stockroom/Ws/<name>/`. Modules requested in-tree are linked under the
visible project root `<home>/<name>/` instead.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Mapping
from pathlib import Path

from stockroom.core.catalog.models import WorkspaceManifest
from stockroom.core.catalog.module import Module
from stockroom.core.documents import load_document
from stockroom.core.errors import AggregateError, CorruptionError
from stockroom.core.layout import INFO_FILE, workspaces_dir
from stockroom.core.sync import SyncEngine, SyncOutcome
from stockroom.core.vcs import AuthorIdentity

logger = logging.getLogger(__name__)


def bind_modules(manifest: WorkspaceManifest, index: Mapping[str, Module]) -> dict[str, Module]:
    """
    Resolve every checkout reference of a manifest.

    Raises:
        CorruptionError: If a reference is not in the index
    """
    missing = [reference for reference in manifest.checkout if reference not in index]
    if missing:
        raise CorruptionError(f"Workspace references unknown modules: {', '.join(missing)}")
    return {reference: index[reference] for reference in manifest.checkout}


class Workspace:
    """
    A materialized workspace.

    Example:
        >>> workspace = Workspace.load(home, "game", warehouse.module_index())
        >>> sorted(workspace.modules)
        ['nw.core', 'nw.render']
    """

    def __init__(
        self,
        name: str,
        warehouse_home: Path,
        manifest: WorkspaceManifest,
        modules: dict[str, Module],
    ) -> None:
        self.name = name
        self.warehouse_home = warehouse_home.absolute()
        self._manifest = manifest
        self._modules = modules

    @classmethod
    def load(cls, warehouse_home: Path, name: str, index: Mapping[str, Module]) -> Workspace:
        """
        Load a persisted workspace.

        Raises:
            CorruptionError: If the manifest is missing or invalid, or names
                modules that no longer exist
        """
        info_path = workspaces_dir(warehouse_home) / name / INFO_FILE
        manifest = load_document(info_path, WorkspaceManifest, what="Workspace manifest")
        return cls(name, warehouse_home, manifest, bind_modules(manifest, index))

    @property
    def private_path(self) -> Path:
        return workspaces_dir(self.warehouse_home) / self.name

    @property
    def project_path(self) -> Path:
        """Visible project root; only exists when something was requested in-tree."""
        return self.warehouse_home / self.name

    @property
    def info_path(self) -> Path:
        return self.private_path / INFO_FILE

    @property
    def root(self) -> Path:
        if any(self._manifest.roots.values()):
            return self.project_path
        return self.private_path

    @property
    def modules(self) -> dict[str, Module]:
        return dict(self._modules)

    @property
    def roots(self) -> dict[str, bool]:
        return dict(self._manifest.roots)

    @property
    def checkout(self) -> dict[str, Path]:
        """Module reference -> absolute link path."""
        return {
            reference: self.warehouse_home / relative
            for reference, relative in self._manifest.checkout.items()
        }

    def reload(self, index: Mapping[str, Module]) -> None:
        """
        Re-read the manifest and re-bind its modules against index.

        Links that went missing are recreated.

        Raises:
            CorruptionError: If the manifest is invalid or a module is gone
        """
        manifest = load_document(self.info_path, WorkspaceManifest, what="Workspace manifest")
        modules = bind_modules(manifest, index)
        self._manifest = manifest
        self._modules = modules

        for reference, link in self.checkout.items():
            if link.is_symlink():
                continue
            link.parent.mkdir(parents=True, exist_ok=True)
            link.symlink_to(modules[reference].content_path, target_is_directory=True)
            logger.info("Relinked %s in workspace %s", reference, self.name)

    def update(
        self,
        author: AuthorIdentity | None = None,
        remote: str = SyncEngine.DEFAULT_REMOTE,
    ) -> dict[str, SyncOutcome]:
        """
        Update every module of the workspace.

        Returns:
            Sync outcome per module reference

        Raises:
            AggregateError: If one or more modules failed to update
        """
        outcomes: dict[str, SyncOutcome] = {}
        errors: list[Exception] = []
        for reference, module in self._modules.items():
            try:
                outcomes[reference] = module.update(author, remote)
            except Exception as e:
                logger.warning("Failed to update %s in workspace %s: %s", reference, self.name, e)
                errors.append(e)
        if errors:
            raise AggregateError(f"Failures updating workspace '{self.name}'", errors)
        return outcomes

    def destruct(self) -> None:
        """
        Remove the workspace.

        Only the links are removed from the visible project root; the root
        itself goes away once empty.
        """
        for link in self.checkout.values():
            if link.is_symlink():
                link.unlink()

        project = self.project_path
        if project.is_dir() and not any(project.iterdir()):
            project.rmdir()
        if self.private_path.exists():
            shutil.rmtree(self.private_path)
        logger.info("Removed workspace %s", self.name)

    def __repr__(self) -> str:
        return f"Workspace(name={self.name!r}, modules={len(self._modules)})"
