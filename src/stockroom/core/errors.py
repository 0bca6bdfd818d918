"""
Exception hierarchy for stockroom.

Single-target operations raise the specific error straight away. Operations
that walk several targets (updating every cabinet, every module of a
workspace) keep going past failures and raise one AggregateError holding
every individual cause.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence


class StockroomError(Exception):
    """Base exception for all stockroom errors."""

    pass


class ValidationError(StockroomError):
    """Raised for bad identifiers, empty required fields or duplicate names."""

    pass


class NotFoundError(StockroomError):
    """Raised when a cabinet, module or workspace cannot be found."""

    pass


class CorruptionError(StockroomError):
    """Raised when persisted metadata is missing or malformed."""

    pass


class GitError(StockroomError):
    """Exception raised when a git operation fails."""

    def __init__(self, message: str, command: list[str] | None = None, stderr: str = ""):
        super().__init__(message)
        self.command = command
        self.stderr = stderr


class SyncError(StockroomError):
    """Base exception for repository synchronization failures."""

    pass


class FetchFailed(SyncError):
    """Raised when the remote cannot be fetched."""

    pass


class PolicyViolation(SyncError):
    """Raised when the repository only allows fast-forwards but a merge is needed."""

    pass


class MergeConflict(SyncError):
    """
    Raised when merging upstream left conflicts in the index.

    The merge state is deliberately left in place so the conflicts can be
    resolved by hand.
    """

    def __init__(self, message: str, paths: Sequence[str] = ()):
        super().__init__(message)
        self.paths = list(paths)


class AggregateError(StockroomError):
    """
    Wraps a batch of independent failures.

    Example:
        >>> err = AggregateError("Failures during update", [FetchFailed("a")])
        >>> len(err.errors)
        1
    """

    def __init__(self, message: str, errors: Sequence[BaseException]):
        self.message = message
        self.errors = list(errors)
        super().__init__(self._render())

    def _render(self) -> str:
        lines = [f"{self.message} ({len(self.errors)} failure(s))"]
        for error in self.errors:
            for line in str(error).splitlines() or [type(error).__name__]:
                lines.append(f"\t{line}")
        return "\n".join(lines)

    def leaves(self) -> Iterator[BaseException]:
        """Yield every non-aggregate failure, descending into nested aggregates."""
        for error in self.errors:
            if isinstance(error, AggregateError):
                yield from error.leaves()
            else:
                yield error
