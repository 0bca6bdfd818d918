"""
Workspace materialization.

Turns a list of requested module references into a workspace on disk:
resolves the requests, walks the dependency documents of the requested
modules, links every module found and writes the workspace manifest.
"""

from __future__ import annotations

import logging
import os
from collections import deque
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING

from stockroom.core.catalog.models import WorkspaceManifest
from stockroom.core.catalog.module import Module
from stockroom.core.documents import save_document
from stockroom.core.errors import NotFoundError, ValidationError
from stockroom.core.layout import INFO_FILE, require_value, validate_name, workspaces_dir
from stockroom.core.workspace.models import CheckoutArgs
from stockroom.core.workspace.workspace import Workspace

if TYPE_CHECKING:
    from stockroom.core.warehouse import Warehouse

logger = logging.getLogger(__name__)


class WorkspaceMaterializer:
    """
    Builds workspaces from checkout requests.

    Example:
        >>> args = CheckoutArgs(name="game", modules=[CheckoutRequest(reference="nw.core", in_tree=True)])
        >>> workspace = WorkspaceMaterializer().materialize(warehouse, home, args)
        >>> workspace.root
        PosixPath('/home/ada/stock/game')
    """

    def materialize(self, warehouse: Warehouse, home: Path, args: CheckoutArgs) -> Workspace:
        """
        Create the workspace described by args.

        Requests and the target directory are checked before anything is
        written. Linking itself is not atomic: a failure part way leaves the
        links created so far in place.

        Raises:
            ValidationError: If the name is invalid, a module is requested
                twice, two in-tree modules share an id, an in-tree link
                target or the workspace directory already exists
            NotFoundError: If a requested reference does not resolve
        """
        home = home.absolute()
        name = validate_name(require_value(args.name, "Workspace name"))
        index = warehouse.module_index()

        project_root = home / name
        private_root = workspaces_dir(home) / name
        scheduled = self._resolve_requests(args, index, project_root, private_root)

        if private_root.exists():
            raise ValidationError(f"Workspace directory already exists: {private_root}")
        for link in scheduled.values():
            if link.exists() or link.is_symlink():
                raise ValidationError(f"Link target already exists: {link}")

        self._close_dependencies(scheduled, index, private_root)
        self._link(scheduled, index, private_root)

        manifest = WorkspaceManifest(
            checkout={reference: os.path.relpath(path, home) for reference, path in scheduled.items()},
            roots={request.reference: request.in_tree for request in args.modules},
        )
        save_document(private_root / INFO_FILE, manifest)
        logger.info("Created workspace %s with %d module(s)", name, len(scheduled))
        return Workspace(name, home, manifest, {reference: index[reference] for reference in scheduled})

    @staticmethod
    def _resolve_requests(
        args: CheckoutArgs,
        index: Mapping[str, Module],
        project_root: Path,
        private_root: Path,
    ) -> dict[str, Path]:
        scheduled: dict[str, Path] = {}
        for request in args.modules:
            reference = request.reference
            if reference in scheduled:
                raise ValidationError(f"Module requested twice: {reference}")
            module = index.get(reference)
            if module is None:
                raise NotFoundError(f"Unknown module: {reference}")

            if request.in_tree:
                target = project_root / module.id
                if target in scheduled.values():
                    raise ValidationError(f"Two in-tree modules would share the path {target}")
            else:
                target = private_root / reference
            scheduled[reference] = target
        return scheduled

    @staticmethod
    def _close_dependencies(
        scheduled: dict[str, Path],
        index: Mapping[str, Module],
        private_root: Path,
    ) -> None:
        """Add every module reachable through dependency documents, breadth first."""
        queue = deque(scheduled)
        visited: set[str] = set()
        while queue:
            reference = queue.popleft()
            if reference in visited:
                continue
            visited.add(reference)

            module = index[reference]
            module.ensure_content()
            for dependency in module.dependency_document().resolved_depends():
                if dependency not in index:
                    logger.debug("Dropping unresolved dependency %s of %s", dependency, reference)
                    continue
                if dependency not in scheduled:
                    scheduled[dependency] = private_root / dependency
                queue.append(dependency)

    @staticmethod
    def _link(scheduled: Mapping[str, Path], index: Mapping[str, Module], private_root: Path) -> None:
        private_root.mkdir(parents=True)
        for reference, link in scheduled.items():
            link.parent.mkdir(parents=True, exist_ok=True)
            try:
                link.symlink_to(index[reference].content_path, target_is_directory=True)
            except FileExistsError as e:
                raise ValidationError(f"Link target already exists: {link}") from e
            logger.debug("Linked %s -> %s", link, index[reference].content_path)
