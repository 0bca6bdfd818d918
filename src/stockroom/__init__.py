"""
Stockroom - git module catalogs and workspaces

A CLI tool that keeps catalogs of git modules up to date and links them
into workspaces.
"""

__version__ = "0.1.0"

# Re-export core models for convenience
from stockroom.core.config.models import StockroomConfig
from stockroom.core.sync.models import SyncOutcome, SyncOutcomeKind

__all__ = ["StockroomConfig", "SyncOutcome", "SyncOutcomeKind", "__version__"]
