"""
Value types exchanged with the git backend.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Flag, auto

from pydantic import BaseModel, Field


class MergeAnalysis(Flag):
    """How the fetched history relates to HEAD."""

    NONE = 0
    UP_TO_DATE = auto()
    UNBORN = auto()
    FASTFORWARD = auto()
    NORMAL = auto()


class MergePreference(Flag):
    """Merge policy configured in the repository (`merge.ff`)."""

    NONE = 0
    NO_FASTFORWARD = auto()
    FASTFORWARD_ONLY = auto()


@dataclass(frozen=True)
class FetchHeadEntry:
    """
    One line of `.git/FETCH_HEAD`.

    Attributes:
        commit: Fetched commit SHA
        is_merge: Whether git flagged the entry for merging into the current branch
        kind: "branch", "tag" or None for entries fetched by object name
        name: Remote branch or tag name, when kind is set
        url: Remote URL the entry was fetched from
    """

    commit: str
    is_merge: bool
    kind: str | None = None
    name: str | None = None
    url: str = ""


@dataclass(frozen=True)
class ResolvedRef:
    """
    A revision resolved to a commit.

    Attributes:
        commit: Commit SHA
        ref: Full reference name when resolved symbolically, else None
        name: Short reference name (e.g. "origin/main"), else None
    """

    commit: str
    ref: str | None = None
    name: str | None = None

    @property
    def is_branch(self) -> bool:
        if self.ref is None:
            return False
        return self.ref.startswith(("refs/heads/", "refs/remotes/"))


class AuthorIdentity(BaseModel):
    """
    Identity used to author merge commits.

    Example:
        >>> AuthorIdentity(name="Ada", email="ada@example.com").is_complete
        True
    """

    name: str = Field(default="", description="Author name")
    email: str = Field(default="", description="Author email")

    @property
    def is_complete(self) -> bool:
        return bool(self.name and self.email)

    def as_env(self) -> dict[str, str]:
        """Environment variables making git author and commit as this identity."""
        return {
            "GIT_AUTHOR_NAME": self.name,
            "GIT_AUTHOR_EMAIL": self.email,
            "GIT_COMMITTER_NAME": self.name,
            "GIT_COMMITTER_EMAIL": self.email,
        }
