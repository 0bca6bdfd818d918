"""
Repository synchronization with upstream.

Example:
    >>> from stockroom.core.sync import SyncEngine, SyncOutcomeKind
    >>> outcome = SyncEngine(backend).synchronize(repo)
    >>> outcome.kind is SyncOutcomeKind.NO_CHANGE
"""

from stockroom.core.sync.engine import SyncEngine
from stockroom.core.sync.models import SyncOutcome, SyncOutcomeKind

__all__ = [
    "SyncEngine",
    "SyncOutcome",
    "SyncOutcomeKind",
]
