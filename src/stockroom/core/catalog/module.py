"""
Module: one tracked repository plus its metadata.
"""

from __future__ import annotations

import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path

from stockroom.core.catalog.models import DependencyDocument, ModuleInfo, truncate_timestamp
from stockroom.core.documents import load_document, save_document
from stockroom.core.errors import CorruptionError
from stockroom.core.layout import DEPENDENCY_FILE, INFO_FILE, REPO_DIR
from stockroom.core.sync import SyncEngine, SyncOutcome
from stockroom.core.vcs import AuthorIdentity, GitBackend

logger = logging.getLogger(__name__)


class Module:
    """
    A module tracked by a cabinet.

    The module directory holds `info.json` (metadata) and, once the module
    has been fetched, `Repo/` (the clone of the module repository).

    Example:
        >>> module = Module(cabinet_home / "Modules" / "core", backend)
        >>> module.update(AuthorIdentity(name="Ada", email="ada@example.com"))
        >>> module.is_full
        True
    """

    def __init__(self, home: Path, backend: GitBackend) -> None:
        """
        Load a module from its directory.

        Raises:
            CorruptionError: If the directory or its metadata is missing or invalid
        """
        self.home = home.absolute()
        self.backend = backend
        if not self.home.is_dir():
            raise CorruptionError(f"Module directory missing: {self.home}")
        self._info = load_document(self.info_path, ModuleInfo, what="Module info")

    @property
    def info_path(self) -> Path:
        return self.home / INFO_FILE

    @property
    def content_path(self) -> Path:
        """Directory holding the module repository."""
        return self.home / REPO_DIR

    @property
    def id(self) -> str:
        return self._info.id

    @property
    def uri(self) -> str:
        return self._info.uri

    @property
    def display(self) -> str:
        return self._info.display

    @property
    def is_full(self) -> bool:
        """Whether the module repository has been cloned."""
        return self.content_path.exists()

    @property
    def last_update(self) -> datetime | None:
        return self._info.last_update

    @property
    def last_commit(self) -> datetime | None:
        return self._info.last_commit

    @property
    def info(self) -> ModuleInfo:
        return self._info.model_copy()

    def save(self) -> None:
        """Persist the module metadata."""
        save_document(self.info_path, self._info)

    def ensure_content(self) -> None:
        """Clone the module repository if it is not there yet."""
        if self.content_path.exists():
            return
        self.backend.clone(self.content_path, self.uri)

    def update(
        self,
        author: AuthorIdentity | None = None,
        remote: str = SyncEngine.DEFAULT_REMOTE,
    ) -> SyncOutcome:
        """
        Bring the module repository to the latest upstream state.

        Clones the repository first if needed, then synchronizes it and
        records the time of the update.

        Args:
            author: Identity for merge commits
            remote: Remote to pull from

        Returns:
            The sync outcome

        Raises:
            GitError: If cloning fails
            SyncError: If synchronizing fails
        """
        self.ensure_content()
        repo = self.backend.open(self.content_path)
        outcome = SyncEngine(self.backend).synchronize(repo, remote, author)

        self._info.last_update = truncate_timestamp(datetime.now(timezone.utc))
        self.save()
        logger.info("Updated module %s: %s", self.id, outcome.summary())
        return outcome

    def dependency_document(self) -> DependencyDocument:
        """
        Load the module's dependency document.

        Returns:
            The document, or an empty one when the module declares none

        Raises:
            CorruptionError: If the document is malformed
        """
        path = self.content_path / DEPENDENCY_FILE
        if not path.exists():
            logger.debug("Module %s has no %s", self.id, DEPENDENCY_FILE)
            return DependencyDocument()
        return load_document(path, DependencyDocument, what="Dependency document")

    def destruct(self) -> None:
        """Remove the module directory. Idempotent."""
        if self.home.exists():
            shutil.rmtree(self.home)
            logger.info("Removed module %s", self.home)

    def __repr__(self) -> str:
        return f"Module(id={self.id!r}, uri={self.uri!r}, full={self.is_full})"
