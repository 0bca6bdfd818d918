"""
Data models for the documents stockroom keeps on disk.

Defines Pydantic models for module metadata, cabinet manifests, module
dependency documents and workspace manifests. Field aliases are the keys
written to disk.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_serializer, field_validator

# e.g. "Mon,-19-Oct-2026-08:30:00-+0000"
TIMESTAMP_FORMAT = "%a,-%d-%b-%Y-%H:%M:%S-%z"


def truncate_timestamp(value: datetime) -> datetime:
    """Normalize a timestamp to UTC whole seconds (naive values are taken as UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).replace(microsecond=0)


def format_timestamp(value: datetime) -> str:
    return truncate_timestamp(value).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(text: str) -> datetime:
    """
    Parse a timestamp written by format_timestamp.

    Raises:
        ValueError: If the text does not match TIMESTAMP_FORMAT
    """
    return truncate_timestamp(datetime.strptime(text, TIMESTAMP_FORMAT))


class ModuleInfo(BaseModel):
    """
    Metadata of one module, stored in `Modules/<id>/info.json`.

    The same shape describes modules inside a cabinet manifest.

    Example:
        >>> info = ModuleInfo(id="core", uri="https://example.com/core.git", display="Core")
        >>> info.model_dump(by_alias=True, exclude_none=True)
        {'id': 'core', 'uri': 'https://example.com/core.git', 'usr': 'Core'}
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1, description="Module id, unique within its cabinet")
    uri: str = Field(min_length=1, description="Clone URI of the module repository")
    display: str = Field(alias="usr", description="Human readable module name")
    last_update: datetime | None = Field(
        default=None,
        alias="lup",
        description="When the module was last pulled",
    )
    last_commit: datetime | None = Field(
        default=None,
        alias="lcm",
        description="Timestamp of the last upstream commit",
    )

    @field_validator("last_update", "last_commit", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_timestamp(value)
        if isinstance(value, datetime):
            return truncate_timestamp(value)
        return value

    @field_serializer("last_update", "last_commit")
    def _format_timestamp(self, value: datetime | None) -> str | None:
        if value is None:
            return None
        return format_timestamp(value)


class CabinetManifest(BaseModel):
    """Cabinet manifest, stored as `info.json` at the root of the cabinet repository."""

    model_config = ConfigDict(populate_by_name=True)

    namespace: str = Field(alias="ns", min_length=1, description="Cabinet namespace")
    modules: list[ModuleInfo] = Field(
        default_factory=list,
        description="Ordered module descriptors",
    )


class DependencyDocument(BaseModel):
    """
    Dependency document (`module.json`) at the root of a module's content.

    Example:
        >>> doc = DependencyDocument(imports={"ns.": "ns2."}, depends=["ns.x"])
        >>> doc.resolved_depends()
        ['ns2.x']
    """

    imports: dict[str, str] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("imports", "import"),
        description="Literal reference prefix -> replacement prefix",
    )
    depends: list[str] = Field(
        default_factory=list,
        description="Ordered dependency references",
    )

    def rewrite(self, reference: str) -> str:
        """Replace the longest `imports` prefix of reference; unchanged if none matches."""
        best = ""
        for prefix in self.imports:
            if reference.startswith(prefix) and len(prefix) > len(best):
                best = prefix
        if not best:
            return reference
        return self.imports[best] + reference[len(best):]

    def resolved_depends(self) -> list[str]:
        return [self.rewrite(reference) for reference in self.depends]


class WorkspaceManifest(BaseModel):
    """Workspace manifest, stored in `Ws/<name>/info.json`."""

    checkout: dict[str, str] = Field(
        default_factory=dict,
        description="Module reference -> link path relative to the warehouse home",
    )
    roots: dict[str, bool] = Field(
        default_factory=dict,
        description="Requested module reference -> linked into the visible project root",
    )
