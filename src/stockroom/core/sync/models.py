"""
Data models for the sync engine.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class SyncOutcomeKind(str, Enum):
    """What a synchronization did to the repository."""

    NO_CHANGE = "no_change"
    FAST_FORWARDED = "fast_forwarded"
    MERGED = "merged"
    MERGE_STAGED_NO_COMMIT = "merge_staged_no_commit"
    CONFLICTS_PENDING = "conflicts_pending"


class SyncOutcome(BaseModel):
    """
    Result of synchronizing a repository with its upstream.

    CONFLICTS_PENDING never comes back as a value: it is reported by raising
    MergeConflict.
    """

    kind: SyncOutcomeKind = Field(description="What happened")

    commit: str | None = Field(
        default=None,
        description="Commit HEAD now points to (fast-forward target or merge commit)",
    )

    source: str | None = Field(
        default=None,
        description="Name of the merged upstream (branch name or commit id)",
    )

    message: str = Field(
        default="",
        description="Human-readable result message",
    )

    @property
    def changed(self) -> bool:
        return self.kind != SyncOutcomeKind.NO_CHANGE

    def summary(self) -> str:
        """Generate a human-readable summary of the outcome."""
        parts = [self.kind.value.replace("_", " ")]
        if self.commit:
            parts.append(f"commit {self.commit[:8]}")
        if self.message:
            parts.append(self.message)
        return ", ".join(parts)
