"""
Workspaces: named sets of module links.

Example:
    >>> from stockroom.core.workspace import CheckoutArgs, CheckoutRequest, WorkspaceMaterializer
    >>> args = CheckoutArgs(name="game", modules=[CheckoutRequest(reference="nw.core")])
    >>> workspace = WorkspaceMaterializer().materialize(warehouse, home, args)
"""

from stockroom.core.workspace.materializer import WorkspaceMaterializer
from stockroom.core.workspace.models import CheckoutArgs, CheckoutRequest
from stockroom.core.workspace.workspace import Workspace

__all__ = [
    "CheckoutArgs",
    "CheckoutRequest",
    "Workspace",
    "WorkspaceMaterializer",
]
