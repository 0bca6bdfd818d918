"""
Version control backend.

Example:
    >>> from stockroom.core.vcs import GitBackend
    >>> with GitBackend() as backend:
    ...     repo = backend.open(Path("."))
    ...     backend.head_commit(repo)
"""

from .backend import GitBackend
from .models import (
    AuthorIdentity,
    FetchHeadEntry,
    MergeAnalysis,
    MergePreference,
    ResolvedRef,
)

__all__ = [
    "GitBackend",
    "AuthorIdentity",
    "FetchHeadEntry",
    "MergeAnalysis",
    "MergePreference",
    "ResolvedRef",
]
