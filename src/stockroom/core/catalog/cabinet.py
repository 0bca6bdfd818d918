"""
Cabinet: a namespaced catalog of modules, distributed as a git repository.

The cabinet repository carries a manifest (`info.json`) naming the cabinet
namespace and describing its modules. Fetching a cabinet clones the
repository and writes one metadata document per declared module; modules
themselves are cloned on demand.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterator
from pathlib import Path

from stockroom.core.catalog.models import CabinetManifest, ModuleInfo
from stockroom.core.catalog.module import Module
from stockroom.core.documents import load_document, save_document
from stockroom.core.errors import AggregateError, CorruptionError, ValidationError
from stockroom.core.layout import INFO_FILE, MODULES_DIR, REPO_DIR, require_value, validate_name
from stockroom.core.sync import SyncEngine, SyncOutcome
from stockroom.core.vcs import AuthorIdentity, GitBackend

logger = logging.getLogger(__name__)


def read_manifest(home: Path) -> CabinetManifest:
    """
    Read and validate the manifest of the cabinet at home.

    Raises:
        CorruptionError: If the manifest is missing, malformed, uses invalid
            names or declares the same module twice
    """
    manifest = load_document(home / REPO_DIR / INFO_FILE, CabinetManifest, what="Cabinet manifest")
    seen: set[str] = set()
    try:
        validate_name(manifest.namespace)
        for info in manifest.modules:
            validate_name(info.id)
            if info.id in seen:
                raise CorruptionError(f"Duplicated module name in module list: {info.id}")
            seen.add(info.id)
    except ValidationError as e:
        raise CorruptionError(f"Cabinet corrupted: {e}") from e
    return manifest


class Cabinet:
    """
    A namespaced catalog of modules.

    Example:
        >>> cabinet = Cabinet.fetch(Path("/tmp/stage"), "https://example.com/cabinet.git", backend)
        >>> cabinet.namespace
        'nw'
        >>> [module.id for module in cabinet]
        ['core', 'render']
    """

    def __init__(
        self,
        home: Path,
        namespace: str,
        backend: GitBackend,
        modules: dict[str, Module] | None = None,
    ) -> None:
        self.home = home.absolute()
        self.namespace = namespace
        self.backend = backend
        self._modules: dict[str, Module] = dict(modules or {})

    @property
    def modules_path(self) -> Path:
        return self.home / MODULES_DIR

    @property
    def content_path(self) -> Path:
        """Directory holding the cabinet repository."""
        return self.home / REPO_DIR

    # -- loading -------------------------------------------------------------

    @classmethod
    def fetch(cls, home: Path, uri: str, backend: GitBackend) -> Cabinet:
        """
        Fetch the cabinet at uri into home.

        All or nothing: if any step fails, home is removed before the error
        propagates.

        Raises:
            GitError: If the cabinet repository cannot be cloned
            CorruptionError: If its manifest is missing or invalid
        """
        try:
            home.mkdir(parents=True, exist_ok=True)
            if not (home / REPO_DIR).exists():
                backend.clone(home / REPO_DIR, uri)
            manifest = read_manifest(home)
            for info in manifest.modules:
                save_document(home / MODULES_DIR / info.id / INFO_FILE, info)
            cabinet = cls.open(home, backend)
        except Exception:
            shutil.rmtree(home, ignore_errors=True)
            raise
        logger.info("Fetched cabinet %s from %s", cabinet.namespace, uri)
        return cabinet

    @classmethod
    def open(cls, home: Path, backend: GitBackend) -> Cabinet:
        """
        Open a fetched cabinet.

        Declared modules whose directory was removed are skipped; module
        directories added locally are picked up.

        Raises:
            CorruptionError: If the manifest or a module's metadata is invalid
        """
        manifest = read_manifest(home)
        modules_path = home / MODULES_DIR
        modules: dict[str, Module] = {}

        for info in manifest.modules:
            module_home = modules_path / info.id
            if not module_home.exists():
                logger.debug("Module %s of %s is not installed", info.id, manifest.namespace)
                continue
            modules[info.id] = Module(module_home, backend)

        if modules_path.is_dir():
            for entry in sorted(modules_path.iterdir()):
                if entry.name in modules or not (entry / INFO_FILE).is_file():
                    continue
                modules[entry.name] = Module(entry, backend)

        return cls(home, manifest.namespace, backend, modules)

    def refresh(self) -> list[Module]:
        """
        Register modules the manifest declares but which are not installed.

        Returns:
            The newly registered modules

        Raises:
            CorruptionError: If the manifest is invalid or renames the cabinet
        """
        manifest = read_manifest(self.home)
        if manifest.namespace != self.namespace:
            raise CorruptionError(
                f"Cabinet namespace changed upstream: {self.namespace} -> {manifest.namespace}"
            )

        added: list[Module] = []
        for info in manifest.modules:
            if info.id in self._modules:
                continue
            module_home = self.modules_path / info.id
            if not (module_home / INFO_FILE).exists():
                save_document(module_home / INFO_FILE, info)
            module = Module(module_home, self.backend)
            self._modules[info.id] = module
            added.append(module)
            logger.info("Registered module %s in cabinet %s", info.id, self.namespace)
        return added

    # -- modules ---------------------------------------------------------------

    def get(self, name: str) -> Module | None:
        return self._modules.get(name)

    def __iter__(self) -> Iterator[Module]:
        return iter(list(self._modules.values()))

    def __len__(self) -> int:
        return len(self._modules)

    def __contains__(self, name: object) -> bool:
        return name in self._modules

    def add(self, name: str, uri: str, display: str = "") -> Module:
        """
        Register a module that is not declared by the cabinet manifest.

        Raises:
            ValidationError: If the name is invalid or used, or the uri is empty
        """
        validate_name(require_value(name, "Name"))
        require_value(uri, "Uri")
        if name in self._modules:
            raise ValidationError(f"Name is already used: {name}")

        module_home = self.modules_path / name
        save_document(module_home / INFO_FILE, ModuleInfo(id=name, uri=uri, display=display or name))
        module = Module(module_home, self.backend)
        self._modules[name] = module
        logger.info("Added module %s to cabinet %s", name, self.namespace)
        return module

    def remove(self, name: str) -> None:
        """Remove a module and its files. Unknown names are ignored."""
        module = self._modules.pop(name, None)
        if module is None:
            return
        module.destruct()

    # -- updates ---------------------------------------------------------------

    def update(
        self,
        author: AuthorIdentity | None = None,
        remote: str = SyncEngine.DEFAULT_REMOTE,
    ) -> dict[str, SyncOutcome]:
        """
        Pull the cabinet repository, then every module.

        A failure to pull the cabinet itself stops the update. Module failures
        do not: every module is attempted and the failures are reported
        together.

        Returns:
            Sync outcome per module id

        Raises:
            SyncError: If the cabinet repository cannot be synchronized
            AggregateError: If one or more modules failed to update
        """
        repo = self.backend.open(self.content_path)
        outcome = SyncEngine(self.backend).synchronize(repo, remote, author)
        logger.info("Updated cabinet %s: %s", self.namespace, outcome.summary())
        self.refresh()

        outcomes: dict[str, SyncOutcome] = {}
        errors: list[Exception] = []
        for module in self:
            try:
                outcomes[module.id] = module.update(author, remote)
            except Exception as e:
                logger.warning("Failed to update module %s.%s: %s", self.namespace, module.id, e)
                errors.append(e)

        if errors:
            raise AggregateError(f"Failures updating cabinet '{self.namespace}'", errors)
        return outcomes

    def destruct(self) -> None:
        """Remove the cabinet directory. Idempotent."""
        if self.home.exists():
            shutil.rmtree(self.home)
            logger.info("Removed cabinet %s", self.home)

    def __repr__(self) -> str:
        return f"Cabinet(namespace={self.namespace!r}, modules={len(self._modules)})"
