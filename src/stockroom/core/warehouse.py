"""
Warehouse: the top-level store of cabinets and workspaces.

Usage:
    >>> from stockroom.core.warehouse import Warehouse
    >>> with GitBackend() as backend:
    ...     warehouse = Warehouse.from_config(load_config(), backend)
    ...     cabinet = warehouse.import_cabinet("https://example.com/cabinet.git")
    ...     warehouse.update_cabinets()
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from stockroom.core.catalog import Cabinet, Module
from stockroom.core.config.models import StockroomConfig
from stockroom.core.errors import (
    AggregateError,
    NotFoundError,
    StockroomError,
    ValidationError,
)
from stockroom.core.layout import (
    FETCH_PROGRESS_DIR,
    INFO_FILE,
    make_reference,
    require_value,
    stock_dir,
    temp_dir,
    validate_name,
    warehouse_dir,
    workspaces_dir,
)
from stockroom.core.sync import SyncEngine, SyncOutcome
from stockroom.core.vcs import AuthorIdentity, GitBackend
from stockroom.core.workspace import CheckoutArgs, Workspace, WorkspaceMaterializer

logger = logging.getLogger(__name__)


class Warehouse:
    """
    Store of cabinets and workspaces rooted at a home directory.

    Construction creates the on-disk layout if needed and loads every cabinet
    and workspace found there. Entries that fail to load are logged and
    skipped so one corrupt cabinet does not make the warehouse unusable.

    Example:
        >>> warehouse = Warehouse(Path.home() / "stock", backend)
        >>> sorted(warehouse.cabinets)
        ['nw']
        >>> warehouse.module_index()["nw.core"].uri
        'https://example.com/core.git'
    """

    def __init__(
        self,
        home: Path,
        backend: GitBackend,
        author: AuthorIdentity | None = None,
        remote: str = SyncEngine.DEFAULT_REMOTE,
    ) -> None:
        """
        Open (or create) the warehouse at home.

        Args:
            home: Warehouse home directory
            backend: Started git backend
            author: Identity for merge commits
            remote: Remote every repository pulls from
        """
        self.home = home.absolute()
        self.backend = backend
        self.author = author
        self.remote = remote
        self._cabinets: dict[str, Cabinet] = {}
        self._workspaces: dict[str, Workspace] = {}

        layout = (
            warehouse_dir(self.home),
            temp_dir(self.home),
            stock_dir(self.home),
            workspaces_dir(self.home),
        )
        for path in layout:
            path.mkdir(parents=True, exist_ok=True)

        for path in sorted(stock_dir(self.home).iterdir()):
            if not path.is_dir():
                continue
            try:
                self._register_cabinet(Cabinet.open(path, backend))
            except (StockroomError, OSError) as e:
                logger.warning("Skipping cabinet %s: %s", path.name, e)

        self._load_workspaces()

    @classmethod
    def from_config(cls, config: StockroomConfig, backend: GitBackend) -> Warehouse:
        """Create a warehouse from loaded configuration."""
        author = config.author.identity() if config.author else None
        return cls(config.home, backend, author=author, remote=config.remote)

    # ============================================================================
    # Cabinets
    # ============================================================================

    @property
    def cabinets(self) -> dict[str, Cabinet]:
        return dict(self._cabinets)

    def _register_cabinet(self, cabinet: Cabinet) -> Cabinet:
        if cabinet.namespace in self._cabinets:
            raise ValidationError(f"Cabinet with the same name already exists: {cabinet.namespace}")
        self._cabinets[cabinet.namespace] = cabinet
        return cabinet

    def get_cabinet(self, name: str) -> Cabinet | None:
        return self._cabinets.get(name)

    def require_cabinet(self, name: str) -> Cabinet:
        """
        Get a cabinet by namespace.

        Raises:
            NotFoundError: If no cabinet has that namespace
        """
        cabinet = self._cabinets.get(name)
        if cabinet is None:
            raise NotFoundError(f"Unknown cabinet: {name}")
        return cabinet

    def import_cabinet(self, uri: str) -> Cabinet:
        """
        Fetch the cabinet at uri and add it to the warehouse.

        The cabinet is staged under `Temp/FetchProgress` and only moved into
        `Stock/<namespace>` once fully fetched. Any failure removes the
        staging directory, leaving the warehouse as it was.

        Raises:
            ValidationError: If the uri is empty or the namespace is taken
            GitError: If the cabinet cannot be cloned
            CorruptionError: If the cabinet manifest is invalid
        """
        require_value(uri, "Uri")
        staging = temp_dir(self.home) / FETCH_PROGRESS_DIR
        if staging.exists():
            logger.debug("Removing leftover staging directory %s", staging)
            shutil.rmtree(staging)

        try:
            namespace = Cabinet.fetch(staging, uri, self.backend).namespace
            if namespace in self._cabinets:
                raise ValidationError(f"Cabinet with the same name already exists: {namespace}")
            target = stock_dir(self.home) / namespace
            if target.exists():
                raise ValidationError(f"Cabinet directory already exists: {target}")
            staging.rename(target)
        except Exception:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        cabinet = self._register_cabinet(Cabinet.open(target, self.backend))
        logger.info("Imported cabinet %s", namespace)
        return cabinet

    def remove_cabinet(self, name: str) -> None:
        """Remove a cabinet and its files. Unknown names are ignored."""
        cabinet = self._cabinets.pop(name, None)
        if cabinet is None:
            return
        cabinet.destruct()

    def update_cabinet(self, name: str) -> None:
        """
        Update one cabinet, then reload every workspace.

        Raises:
            NotFoundError: If the cabinet is unknown
            AggregateError: If the update or a workspace reload failed
        """
        self._update([self.require_cabinet(name)])

    def update_cabinets(self) -> None:
        """
        Update every cabinet, then reload every workspace.

        Every cabinet is attempted even when an earlier one fails.

        Raises:
            AggregateError: If any update or workspace reload failed
        """
        self._update(list(self._cabinets.values()))

    def _update(self, cabinets: list[Cabinet]) -> None:
        failures: list[Exception] = []

        update_errors: list[Exception] = []
        for cabinet in cabinets:
            try:
                cabinet.update(self.author, self.remote)
            except Exception as e:
                logger.warning("Failed to update cabinet %s: %s", cabinet.namespace, e)
                update_errors.append(e)
        if update_errors:
            failures.append(AggregateError("Failures during update", update_errors))

        try:
            self.reload_workspaces()
        except AggregateError as e:
            failures.append(e)

        if failures:
            raise AggregateError("Update incomplete", failures)

    # ============================================================================
    # Modules
    # ============================================================================

    def module_index(self) -> dict[str, Module]:
        """
        Map `<namespace>.<id>` to every module of every cabinet.

        Names may contain the separator, so two modules can end up with the
        same reference (`x` + `y.z` and `x.y` + `z`). Such references are
        left out of the index rather than resolved to either module.
        """
        index: dict[str, Module] = {}
        for reference in self._build_index(index):
            index.pop(reference)
        return index

    def _build_index(self, index: dict[str, Module]) -> set[str]:
        """Fill index and return the ambiguous references."""
        ambiguous: set[str] = set()
        for cabinet in self._cabinets.values():
            for module in cabinet:
                reference = make_reference(cabinet.namespace, module.id)
                existing = index.get(reference)
                if existing is not None:
                    logger.warning(
                        "Module reference %s is ambiguous (%s, %s); ignoring it",
                        reference,
                        existing.home,
                        module.home,
                    )
                    ambiguous.add(reference)
                    continue
                index[reference] = module
        return ambiguous

    def find_module(self, reference: str) -> Module:
        """
        Get a module by reference.

        Raises:
            NotFoundError: If no module, or more than one, has that reference
        """
        index: dict[str, Module] = {}
        if reference in self._build_index(index):
            raise NotFoundError(f"Ambiguous module reference: {reference}")
        module = index.get(reference)
        if module is None:
            raise NotFoundError(f"Unknown module: {reference}")
        return module

    def update_module(self, reference: str) -> SyncOutcome:
        """
        Update a single module.

        Raises:
            NotFoundError: If the reference does not resolve
            GitError: If the module cannot be cloned
            SyncError: If synchronizing fails
        """
        return self.find_module(reference).update(self.author, self.remote)

    # ============================================================================
    # Workspaces
    # ============================================================================

    @property
    def workspaces(self) -> dict[str, Workspace]:
        return dict(self._workspaces)

    def _load_workspaces(self) -> None:
        index = self.module_index()
        for path in sorted(workspaces_dir(self.home).iterdir()):
            if not (path / INFO_FILE).is_file():
                continue
            try:
                self._workspaces[path.name] = Workspace.load(self.home, path.name, index)
            except (StockroomError, OSError) as e:
                logger.warning("Skipping workspace %s: %s", path.name, e)

    def create_workspace(self, args: CheckoutArgs) -> Workspace:
        """
        Create a workspace.

        Raises:
            ValidationError: If the name is invalid or taken, or the requests
                are inconsistent
            NotFoundError: If a requested module does not exist
            GitError: If a module cannot be cloned
        """
        validate_name(require_value(args.name, "Workspace name"))
        if args.name in self._workspaces:
            raise ValidationError(f"Workspace already exists: {args.name}")

        workspace = WorkspaceMaterializer().materialize(self, self.home, args)
        self._workspaces[workspace.name] = workspace
        return workspace

    def get_workspace(self, name: str) -> Workspace | None:
        return self._workspaces.get(name)

    def require_workspace(self, name: str) -> Workspace:
        """
        Get a workspace by name.

        Raises:
            NotFoundError: If no workspace has that name
        """
        workspace = self._workspaces.get(name)
        if workspace is None:
            raise NotFoundError(f"Unknown workspace: {name}")
        return workspace

    def remove_workspace(self, name: str) -> None:
        """Remove a workspace. Unknown names are ignored."""
        workspace = self._workspaces.pop(name, None)
        if workspace is None:
            return
        workspace.destruct()

    def update_workspace(self, name: str) -> dict[str, SyncOutcome]:
        """
        Update every module of a workspace.

        Raises:
            NotFoundError: If the workspace is unknown
            AggregateError: If one or more modules failed to update
        """
        return self.require_workspace(name).update(self.author, self.remote)

    def reload_workspaces(self) -> None:
        """
        Re-validate every workspace against the current modules.

        Raises:
            AggregateError: If one or more workspaces failed to reload
        """
        index = self.module_index()
        errors: list[Exception] = []
        for name, workspace in self._workspaces.items():
            try:
                workspace.reload(index)
            except (StockroomError, OSError) as e:
                logger.warning("Failed to reload workspace %s: %s", name, e)
                errors.append(e)
        if errors:
            raise AggregateError("Failures during reload", errors)

    def __repr__(self) -> str:
        return f"Warehouse(home={str(self.home)!r}, cabinets={len(self._cabinets)})"
