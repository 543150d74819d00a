"""
Pydantic models for the provider registry.

This module defines the data exchanged between the storage layer, the
registry engine and the HTTP API:
- ProviderPath, the (host, namespace, type) key of a provider directory
- The two index tiers persisted as JSON (VersionIndex, ArchiveIndex)
- Results returned by registry operations
"""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Storage location
# ---------------------------------------------------------------------------


class ProviderPath(BaseModel):
    """
    Location of one provider: <root>/<host>/<namespace>/<type>.

    Instances are frozen so they can be used as dictionary keys (see
    provider_registry.storage.locks). Use provider_registry.domain.paths.provider_path
    to build a validated instance.
    """

    model_config = ConfigDict(frozen=True)

    host: str
    namespace: str
    type: str

    @property
    def parts(self) -> tuple[str, str, str]:
        return (self.host, self.namespace, self.type)

    def __str__(self) -> str:
        return "/".join(self.parts)


# ---------------------------------------------------------------------------
# Index documents
# ---------------------------------------------------------------------------


class VersionInfo(BaseModel):
    """Per-version entry of index.json. Currently always serialized as {}."""

    model_config = ConfigDict(extra="allow")


class VersionIndex(BaseModel):
    """
    Contents of index.json: the versions that have at least one stored archive.

    Persisted at: <root>/<host>/<namespace>/<type>/index.json
    """

    versions: Dict[str, VersionInfo] = Field(default_factory=dict)

    def add(self, version: str) -> bool:
        """Add a version. Returns False if it was already listed."""
        if version in self.versions:
            return False
        self.versions[version] = VersionInfo()
        return True

    def discard(self, version: str) -> bool:
        """Remove a version. Returns False if it was not listed."""
        return self.versions.pop(version, None) is not None

    def is_empty(self) -> bool:
        return not self.versions


class ArchiveEntry(BaseModel):
    """One uploaded archive, stored as {"url": <filename>, "hashes": [...]}."""

    model_config = ConfigDict(populate_by_name=True)

    filename: str = Field(alias="url")
    hashes: Optional[List[str]] = None

    @field_validator("hashes")
    @classmethod
    def _empty_hashes_as_none(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        # An empty list is omitted from the document like a missing one.
        return value or None


class ArchiveIndex(BaseModel):
    """
    Contents of <version>.json: the os_arch variants available for one version.

    Persisted at: <root>/<host>/<namespace>/<type>/<version>.json
    """

    archives: Dict[str, ArchiveEntry] = Field(default_factory=dict)

    def is_empty(self) -> bool:
        return not self.archives


# ---------------------------------------------------------------------------
# Operation results
# ---------------------------------------------------------------------------


class UploadResult(BaseModel):
    provider: ProviderPath
    version: str
    arch: str
    filename: str
    size: int
    hashes: Optional[List[str]] = None


class DeleteResult(BaseModel):
    provider: ProviderPath
    version: str
    arch: str
    filename: str
    directory_removed: bool = False


class ReconcileResult(BaseModel):
    """Summary of a reconciliation pass over one provider directory."""

    provider: ProviderPath
    added: List[str] = Field(
        default_factory=list,
        description="Archive files found on disk that had no index entry.",
    )
    dropped: List[str] = Field(
        default_factory=list,
        description="Index entries whose archive file was missing.",
    )
    versions: List[str] = Field(default_factory=list)
    directory_removed: bool = False
