"""
Data models for creating workspaces.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class CheckoutRequest(BaseModel):
    """One module requested in a workspace."""

    reference: str = Field(description="Module reference, <namespace>.<module id>")
    in_tree: bool = Field(
        default=False,
        description="Link the module into the visible project root instead of the private area",
    )


class CheckoutArgs(BaseModel):
    """
    Arguments for creating a workspace.

    Example:
        >>> args = CheckoutArgs(
        ...     name="game",
        ...     modules=[CheckoutRequest(reference="nw.core", in_tree=True)],
        ... )
    """

    name: str = Field(description="Workspace name")
    modules: list[CheckoutRequest] = Field(
        default_factory=list,
        description="Requested modules, in order",
    )
