"""
Git backend.

Wraps GitPython for repository handles and drives git plumbing commands
(`read-tree`, `write-tree`, `commit-tree`, `update-ref`) for the operations
the sync engine needs, so that every step of a pull is explicit:

- `fetch` + `FETCH_HEAD` parsing to find the commit to merge
- `merge-base --is-ancestor` for merge analysis
- `read-tree -m -u` + `update-ref` for fast-forwards
- `reset` + `checkout HEAD -- <paths>` to drop local edits a merge would hit
- `merge --no-commit` to merge into index and working tree
- `write-tree` + `commit-tree` + `update-ref` for merge commits
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from pathlib import Path
from types import TracebackType

from git import Git, Repo
from git.exc import GitCommandError, GitCommandNotFound, InvalidGitRepositoryError, NoSuchPathError

from stockroom.core.errors import GitError
from stockroom.core.vcs.models import (
    AuthorIdentity,
    FetchHeadEntry,
    MergeAnalysis,
    MergePreference,
    ResolvedRef,
)

logger = logging.getLogger(__name__)

# "branch 'main' of https://example.com/repo" / "tag 'v1.0' of ..."
_FETCH_HEAD_DESCRIPTION = re.compile(r"^(?P<kind>branch|tag) '(?P<name>.+)' of (?P<url>.*)$")

# Files git keeps while a merge (or similar operation) is in progress.
_MERGE_STATE_FILES = (
    "MERGE_HEAD",
    "MERGE_MODE",
    "MERGE_MSG",
    "AUTO_MERGE",
    "CHERRY_PICK_HEAD",
    "REVERT_HEAD",
)

_SHORT_REF_PREFIXES = ("refs/heads/", "refs/remotes/", "refs/tags/")


def _split_paths(output: str) -> list[str]:
    """Split NUL-separated path output (`-z`)."""
    return [path for path in output.split("\0") if path]


class GitBackend:
    """
    Version control backend driving the git executable through GitPython.

    The backend has an explicit lifecycle: `start()` checks the git
    executable once before first use, `shutdown()` closes every repository
    handle the backend opened. It can be used as a context manager.

    Example:
        >>> with GitBackend() as backend:
        ...     repo = backend.clone(Path("/tmp/core"), "https://example.com/core.git")
        ...     backend.fetch(repo, "origin")
    """

    def __init__(self) -> None:
        self._started = False
        self._repos: list[Repo] = []
        self.version: tuple[int, ...] | None = None

    # -- lifecycle -----------------------------------------------------------

    @property
    def started(self) -> bool:
        return self._started

    def start(self) -> None:
        """
        Initialize the backend. Calling it again is a no-op.

        Raises:
            GitError: If git is not installed
        """
        if self._started:
            return
        try:
            self.version = tuple(Git().version_info)
        except (GitCommandNotFound, GitCommandError) as e:
            raise GitError("git not found in PATH") from e
        logger.debug("Git backend started (git %s)", ".".join(str(v) for v in self.version))
        self._started = True

    def shutdown(self) -> None:
        """Release every repository handle. Calling it again is a no-op."""
        if not self._started:
            return
        for repo in self._repos:
            repo.close()
        self._repos.clear()
        self._started = False
        logger.debug("Git backend shut down")

    def __enter__(self) -> GitBackend:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.shutdown()

    def _require_started(self) -> None:
        if not self._started:
            raise GitError("Git backend used before start()")

    def _track(self, repo: Repo) -> Repo:
        self._repos.append(repo)
        return repo

    def _run(
        self,
        repo: Repo,
        *args: str,
        check: bool = True,
        env: Mapping[str, str] | None = None,
    ) -> tuple[int, str, str]:
        """
        Run a git command inside repo.

        Args:
            repo: Repository to run in
            *args: Git command arguments (without "git" prefix)
            check: Whether to raise on non-zero exit code
            env: Extra environment variables

        Returns:
            Tuple of (exit status, stdout, stderr), output stripped

        Raises:
            GitError: If the command fails and check=True
        """
        cmd = ["git", *args]
        logger.debug("Running git command: %s (cwd=%s)", " ".join(cmd), repo.working_dir)
        status, stdout, stderr = repo.git.execute(
            cmd,
            with_extended_output=True,
            with_exceptions=False,
            env=env,
        )
        if check and status != 0:
            raise GitError(
                f"Git command failed: {' '.join(cmd)}",
                command=cmd,
                stderr=stderr.strip(),
            )
        return status, stdout.strip(), stderr.strip()

    # -- repositories ----------------------------------------------------------

    def open(self, path: Path) -> Repo:
        """
        Open an existing repository.

        Raises:
            GitError: If path is not a git repository
        """
        self._require_started()
        try:
            return self._track(Repo(path.absolute()))
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise GitError(f"Not a git repository: {path}") from e

    def create(self, path: Path, bare: bool = False) -> Repo:
        """Initialize a new repository at path."""
        self._require_started()
        try:
            return self._track(Repo.init(path.absolute(), mkdir=True, bare=bare))
        except GitCommandError as e:
            raise GitError(f"Failed to create repository at {path}", stderr=str(e.stderr)) from e

    def clone(self, path: Path, uri: str) -> Repo:
        """
        Clone uri into path.

        Raises:
            GitError: If the clone fails
        """
        self._require_started()
        logger.info("Cloning %s -> %s", uri, path)
        try:
            return self._track(Repo.clone_from(uri, path.absolute()))
        except GitCommandError as e:
            raise GitError(
                f"Failed to clone {uri}",
                command=[str(part) for part in e.command] if isinstance(e.command, list) else None,
                stderr=str(e.stderr).strip(),
            ) from e

    # -- fetch -----------------------------------------------------------------

    def fetch(self, repo: Repo, remote: str) -> None:
        """Fetch remote, recording the fetched heads in FETCH_HEAD."""
        self._require_started()
        self._run(repo, "fetch", remote)

    def fetch_candidates(self, repo: Repo) -> list[FetchHeadEntry]:
        """
        Parse the entries of the last fetch.

        Returns:
            FETCH_HEAD entries in file order (empty if nothing was fetched)
        """
        fetch_head = Path(repo.git_dir) / "FETCH_HEAD"
        if not fetch_head.exists():
            return []

        entries: list[FetchHeadEntry] = []
        for line in fetch_head.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            parts = line.split("\t", 2)
            commit = parts[0].strip()
            flag = parts[1] if len(parts) > 1 else ""
            description = parts[2] if len(parts) > 2 else ""

            match = _FETCH_HEAD_DESCRIPTION.match(description)
            if match:
                entries.append(
                    FetchHeadEntry(
                        commit=commit,
                        is_merge=flag != "not-for-merge",
                        kind=match.group("kind"),
                        name=match.group("name"),
                        url=match.group("url"),
                    )
                )
            else:
                url = description.rsplit(" of ", 1)[-1] if " of " in description else description
                entries.append(FetchHeadEntry(commit=commit, is_merge=flag != "not-for-merge", url=url))
        return entries

    # -- analysis --------------------------------------------------------------

    def head_commit(self, repo: Repo) -> str | None:
        """Return the commit HEAD points to, or None when HEAD is unborn."""
        status, stdout, _ = self._run(repo, "rev-parse", "--verify", "-q", "HEAD^{commit}", check=False)
        if status != 0 or not stdout:
            return None
        return stdout

    def _is_ancestor(self, repo: Repo, ancestor: str, descendant: str) -> bool:
        status, _, stderr = self._run(
            repo, "merge-base", "--is-ancestor", ancestor, descendant, check=False
        )
        if status == 0:
            return True
        if status == 1:
            return False
        raise GitError(
            f"Failed to compare {ancestor[:8]} with {descendant[:8]}",
            command=["git", "merge-base", "--is-ancestor", ancestor, descendant],
            stderr=stderr,
        )

    def merge_preference(self, repo: Repo) -> MergePreference:
        """Read the repository's `merge.ff` policy."""
        status, stdout, _ = self._run(repo, "config", "--get", "merge.ff", check=False)
        if status != 0:
            return MergePreference.NONE
        value = stdout.lower()
        if value == "only":
            return MergePreference.FASTFORWARD_ONLY
        if value in ("false", "no", "off", "0"):
            return MergePreference.NO_FASTFORWARD
        return MergePreference.NONE

    def merge_analysis(
        self,
        repo: Repo,
        candidates: Sequence[FetchHeadEntry],
    ) -> tuple[MergeAnalysis, MergePreference]:
        """
        Classify how the candidates relate to HEAD.

        Returns:
            Tuple of (analysis flags, preference flags)
        """
        preference = self.merge_preference(repo)
        head = self.head_commit(repo)
        if head is None:
            return MergeAnalysis.UNBORN | MergeAnalysis.FASTFORWARD, preference

        commits = [candidate.commit for candidate in candidates]
        if all(self._is_ancestor(repo, commit, head) for commit in commits):
            return MergeAnalysis.UP_TO_DATE, preference
        if len(commits) == 1 and self._is_ancestor(repo, head, commits[0]):
            return MergeAnalysis.FASTFORWARD | MergeAnalysis.NORMAL, preference
        return MergeAnalysis.NORMAL, preference

    # -- fast-forward / merge ----------------------------------------------------

    def fast_forward(self, repo: Repo, target: str, unborn: bool) -> str:
        """
        Move the current branch to target and check the working tree out.

        The checkout refuses to overwrite local modifications. When HEAD is
        unborn, the branch HEAD symbolically points to is created.

        Returns:
            The full name of the updated reference
        """
        self._require_started()
        if unborn:
            _, branch_ref, _ = self._run(repo, "symbolic-ref", "HEAD")
            self._run(repo, "read-tree", "-u", "-m", target)
        else:
            status, branch_ref, _ = self._run(repo, "symbolic-ref", "-q", "HEAD", check=False)
            if status != 0 or not branch_ref:
                branch_ref = "HEAD"
            self._run(repo, "read-tree", "-u", "-m", "HEAD", target)

        self._run(repo, "update-ref", "-m", f"fast-forward to {target}", branch_ref, target)
        logger.info("Fast-forwarded %s to %s", branch_ref, target[:8])
        return branch_ref

    def merge(
        self,
        repo: Repo,
        candidates: Sequence[FetchHeadEntry],
        conflict_style: str = "diff3",
        force: bool = True,
    ) -> None:
        """
        Merge the candidates into index and working tree without committing.

        With force, the merge result is applied over local modifications:
        staged changes are unstaged and local edits to paths the merge brings
        in are dropped first. Local edits to other paths are kept. A merge
        that stops on conflicts is not an error here; the caller inspects the
        index afterwards.

        Raises:
            GitError: If git refuses to merge for another reason
        """
        self._require_started()
        commits = [candidate.commit for candidate in candidates]
        if force:
            self.discard_local_changes(repo, commits)

        status, _, stderr = self._run(
            repo,
            "-c",
            f"merge.conflictStyle={conflict_style}",
            "merge",
            "--no-commit",
            "--no-ff",
            *commits,
            check=False,
        )
        if status != 0 and not self.index_has_conflicts(repo):
            raise GitError(
                f"Failed to merge {', '.join(c[:8] for c in commits)}",
                command=["git", "merge", "--no-commit", "--no-ff", *commits],
                stderr=stderr,
            )

    def discard_local_changes(self, repo: Repo, commits: Sequence[str]) -> list[str]:
        """
        Make the working tree safe to merge commits into.

        The index is reset to HEAD, then every locally modified or untracked
        path that one of the commits changes since the merge base is restored
        from HEAD (or deleted when HEAD does not have it).

        Returns:
            The paths whose local changes were dropped
        """
        self._run(repo, "reset", "-q")

        incoming: set[str] = set()
        for commit in commits:
            # Changes since the merge base; a plain diff when there is none
            status, stdout, _ = self._run(
                repo, "diff", "--name-only", "-z", "--no-renames", f"HEAD...{commit}", check=False
            )
            if status != 0:
                _, stdout, _ = self._run(
                    repo, "diff", "--name-only", "-z", "--no-renames", "HEAD", commit
                )
            incoming.update(_split_paths(stdout))

        _, modified, _ = self._run(repo, "diff", "--name-only", "-z", "--no-renames", "HEAD")
        _, untracked, _ = self._run(repo, "ls-files", "-z", "--others", "--exclude-standard")
        dropped = sorted(incoming & {*_split_paths(modified), *_split_paths(untracked)})
        if not dropped:
            return []

        _, in_head, _ = self._run(
            repo, "--literal-pathspecs", "ls-tree", "-r", "-z", "--name-only", "HEAD", "--", *dropped
        )
        tracked = [path for path in dropped if path in set(_split_paths(in_head))]
        if tracked:
            self._run(repo, "--literal-pathspecs", "checkout", "HEAD", "--", *tracked)
        for path in dropped:
            if path not in tracked:
                (Path(repo.working_dir) / path).unlink(missing_ok=True)

        logger.warning(
            "Dropped local changes to %d path(s) before merging: %s",
            len(dropped),
            ", ".join(dropped),
        )
        return dropped

    def conflicted_paths(self, repo: Repo) -> list[str]:
        """Paths with unmerged entries in the index."""
        _, stdout, _ = self._run(repo, "ls-files", "-u")
        paths: list[str] = []
        for line in stdout.splitlines():
            if "\t" not in line:
                continue
            path = line.split("\t", 1)[1]
            if path not in paths:
                paths.append(path)
        return paths

    def index_has_conflicts(self, repo: Repo) -> bool:
        return bool(self.conflicted_paths(repo))

    # -- commits -------------------------------------------------------------------

    def write_index_as_tree(self, repo: Repo) -> str:
        """Write the index as a tree object and return its SHA."""
        _, tree_sha, _ = self._run(repo, "write-tree")
        return tree_sha

    def create_commit(
        self,
        repo: Repo,
        parents: Sequence[str],
        tree: str,
        author: AuthorIdentity,
        message: str,
        update_ref: str | None = "HEAD",
    ) -> str:
        """
        Create a commit object and optionally move a reference to it.

        Args:
            repo: Repository
            parents: Parent commit SHAs, in order
            tree: Tree SHA
            author: Author and committer of the commit
            message: Commit message
            update_ref: Reference to move to the new commit (None to leave refs alone)

        Returns:
            SHA of the created commit
        """
        self._require_started()
        args = ["commit-tree", tree]
        for parent in parents:
            args.extend(["-p", parent])
        args.extend(["-m", message])
        _, commit_sha, _ = self._run(repo, *args, env=author.as_env())
        logger.debug("Created commit: %s", commit_sha)

        if update_ref:
            self._run(repo, "update-ref", "-m", message, update_ref, commit_sha)
        return commit_sha

    def short_id(self, repo: Repo, commit: str) -> str:
        _, stdout, _ = self._run(repo, "rev-parse", "--short", commit)
        return stdout

    # -- references ------------------------------------------------------------------

    def _resolve_reference(self, repo: Repo, text: str) -> ResolvedRef | None:
        status, full_name, _ = self._run(repo, "rev-parse", "--symbolic-full-name", text, check=False)
        if status != 0 or not full_name.startswith("refs/"):
            return None
        status, commit, _ = self._run(
            repo, "rev-parse", "--verify", "-q", f"{full_name}^{{commit}}", check=False
        )
        if status != 0 or not commit:
            return None

        name = full_name
        for prefix in _SHORT_REF_PREFIXES:
            if full_name.startswith(prefix):
                name = full_name[len(prefix):]
                break
        return ResolvedRef(commit=commit, ref=full_name, name=name)

    def _resolve_revision(self, repo: Repo, text: str) -> ResolvedRef:
        _, commit, _ = self._run(repo, "rev-parse", "--verify", "-q", f"{text}^{{commit}}")
        return ResolvedRef(commit=commit)

    def resolve_refish(self, repo: Repo, text: str) -> ResolvedRef:
        """
        Resolve text to a commit.

        Symbolic resolution (branch, remote branch, tag) is tried first; when
        it fails, text is parsed as an arbitrary revision expression.

        Raises:
            GitError: If neither attempt resolves text
        """
        return self._resolve_reference(repo, text) or self._resolve_revision(repo, text)

    def cleanup_merge_state(self, repo: Repo) -> None:
        """Remove in-progress merge bookkeeping. Idempotent."""
        git_dir = Path(repo.git_dir)
        for name in _MERGE_STATE_FILES:
            (git_dir / name).unlink(missing_ok=True)
