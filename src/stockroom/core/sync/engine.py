"""
Repository synchronization.

Brings a repository to the latest upstream state the way `git pull` would,
but with every decision explicit:

1. fetch the remote
2. pick the FETCH_HEAD entry flagged for merge
3. run merge analysis and follow the decision table:
   up to date -> nothing; unborn or fast-forwardable -> fast-forward;
   otherwise merge (applied over local edits), then commit, stage or
   report conflicts
4. clean up merge bookkeeping (except when conflicts are left for the user)
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from git import Repo

from stockroom.core.errors import FetchFailed, GitError, MergeConflict, PolicyViolation
from stockroom.core.sync.models import SyncOutcome, SyncOutcomeKind
from stockroom.core.vcs import (
    AuthorIdentity,
    FetchHeadEntry,
    GitBackend,
    MergeAnalysis,
    MergePreference,
    ResolvedRef,
)

logger = logging.getLogger(__name__)


class SyncEngine:
    """
    Pulls upstream changes into a repository.

    Example:
        >>> engine = SyncEngine(backend)
        >>> outcome = engine.synchronize(repo, "origin", AuthorIdentity(name="Ada", email="ada@example.com"))
        >>> print(outcome.summary())
    """

    DEFAULT_REMOTE = "origin"
    CONFLICT_STYLE = "diff3"

    def __init__(self, backend: GitBackend) -> None:
        self.backend = backend

    def synchronize(
        self,
        repo: Repo,
        remote: str = DEFAULT_REMOTE,
        author: AuthorIdentity | None = None,
    ) -> SyncOutcome:
        """
        Synchronize repo with remote.

        Args:
            repo: Repository to update
            remote: Remote to fetch from
            author: Identity for merge commits; without one a clean merge is
                left staged instead of committed

        Returns:
            SyncOutcome describing what happened

        Raises:
            FetchFailed: If the remote cannot be fetched
            PolicyViolation: If only fast-forwards are allowed but a merge is needed
            MergeConflict: If the merge left conflicts (merge state is kept)
        """
        keep_merge_state = False
        try:
            return self._synchronize(repo, remote, author)
        except MergeConflict:
            keep_merge_state = True
            raise
        finally:
            if not keep_merge_state:
                self.backend.cleanup_merge_state(repo)

    def _synchronize(
        self,
        repo: Repo,
        remote: str,
        author: AuthorIdentity | None,
    ) -> SyncOutcome:
        logger.info("Fetching %s in %s", remote, repo.working_dir)
        try:
            self.backend.fetch(repo, remote)
        except GitError as e:
            raise FetchFailed(f"Failed to fetch '{remote}': {e.stderr or e}") from e

        candidate = self.select_candidate(self.backend.fetch_candidates(repo))
        if candidate is None:
            logger.info("Remote %s has nothing to merge", remote)
            return SyncOutcome(
                kind=SyncOutcomeKind.NO_CHANGE,
                commit=self.backend.head_commit(repo),
                message="Nothing to merge from remote",
            )

        source = self.source_name(remote, candidate)
        analysis, preference = self.backend.merge_analysis(repo, [candidate])
        logger.debug("Merge analysis for %s: %s (preference %s)", source, analysis, preference)

        if MergeAnalysis.UP_TO_DATE in analysis:
            return SyncOutcome(
                kind=SyncOutcomeKind.NO_CHANGE,
                commit=self.backend.head_commit(repo),
                source=source,
                message="Already up to date",
            )

        unborn = MergeAnalysis.UNBORN in analysis
        if unborn or (
            MergeAnalysis.FASTFORWARD in analysis
            and MergePreference.NO_FASTFORWARD not in preference
        ):
            self.backend.fast_forward(repo, candidate.commit, unborn=unborn)
            return SyncOutcome(
                kind=SyncOutcomeKind.FAST_FORWARDED,
                commit=candidate.commit,
                source=source,
                message=f"Fast-forwarded to {source}",
            )

        if MergeAnalysis.NORMAL not in analysis:
            logger.warning("Unexpected merge analysis %s for %s", analysis, source)
            return SyncOutcome(kind=SyncOutcomeKind.NO_CHANGE, source=source)

        if MergePreference.FASTFORWARD_ONLY in preference:
            raise PolicyViolation("Fast-forward is preferred, but only a merge is possible")

        # Resolve before touching the index so a bad name leaves the repo untouched
        resolved = self.backend.resolve_refish(repo, source)

        self.backend.merge(repo, [candidate], self.CONFLICT_STYLE, force=True)
        if self.backend.index_has_conflicts(repo):
            paths = self.backend.conflicted_paths(repo)
            logger.warning("Merging %s left %d conflicted path(s)", source, len(paths))
            raise MergeConflict(
                "Conflict with upstream. Please resolve externally: " + ", ".join(paths),
                paths,
            )

        if author is None or not author.is_complete:
            logger.info("Merged %s into the index; no author identity, not committing", source)
            return SyncOutcome(
                kind=SyncOutcomeKind.MERGE_STAGED_NO_COMMIT,
                commit=self.backend.head_commit(repo),
                source=source,
                message="Merge staged, no author identity to commit it",
            )

        commit = self._commit_merge(repo, [candidate], resolved, author)
        return SyncOutcome(
            kind=SyncOutcomeKind.MERGED,
            commit=commit,
            source=source,
            message=f"Merged {source}",
        )

    @staticmethod
    def select_candidate(entries: Sequence[FetchHeadEntry]) -> FetchHeadEntry | None:
        """Return the last entry flagged for merge, or None."""
        candidate = None
        for entry in entries:
            if entry.is_merge:
                candidate = entry
        return candidate

    @staticmethod
    def source_name(remote: str, entry: FetchHeadEntry) -> str:
        """Name a fetched entry the way it can be resolved locally."""
        if entry.kind == "branch" and entry.name:
            return f"{remote}/{entry.name}"
        if entry.kind == "tag" and entry.name:
            return entry.name
        return entry.commit

    def _commit_merge(
        self,
        repo: Repo,
        candidates: Sequence[FetchHeadEntry],
        resolved: ResolvedRef,
        author: AuthorIdentity,
    ) -> str:
        head = self.backend.head_commit(repo)
        if head is None:
            raise GitError("Cannot create a merge commit on an unborn branch")
        parents = (head, *(candidate.commit for candidate in candidates))

        if resolved.is_branch:
            message = f"Merge branch '{resolved.name}'"
        else:
            message = f"Merge commit '{self.backend.short_id(repo, resolved.commit)}'"

        tree = self.backend.write_index_as_tree(repo)
        commit = self.backend.create_commit(repo, parents, tree, author, message)
        logger.info("Created merge commit %s (%s)", commit[:8], message)
        return commit
