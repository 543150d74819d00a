from abc import ABC, abstractmethod
from typing import List

from provider_registry.domain.models import ArchiveIndex, ProviderPath, VersionIndex


class MetadataStore(ABC):
    """
    Abstract base class for the two index tiers of a provider:
    the version index (index.json) and one archive index per version
    (<version>.json).

    Implementations must make saves atomic: a reader sees either the previous
    document or the new one, never a partial write. Read-modify-write
    sequences are serialized by the caller (see provider_registry.storage.locks).
    """

    @abstractmethod
    def load_version_index(self, provider: ProviderPath) -> VersionIndex:
        """Return the version index, or an empty one if the document is absent."""
        pass

    @abstractmethod
    def save_version_index(self, provider: ProviderPath, index: VersionIndex) -> None:
        """Persist the version index."""
        pass

    @abstractmethod
    def delete_version_index(self, provider: ProviderPath) -> None:
        """Remove the version index document. No-op if absent."""
        pass

    @abstractmethod
    def load_archive_index(self, provider: ProviderPath, version: str) -> ArchiveIndex:
        """Return the archive index of a version, or an empty one if absent."""
        pass

    @abstractmethod
    def save_archive_index(self, provider: ProviderPath, version: str, index: ArchiveIndex) -> None:
        """Persist the archive index of a version."""
        pass

    @abstractmethod
    def delete_archive_index(self, provider: ProviderPath, version: str) -> None:
        """Remove the archive index document of a version. No-op if absent."""
        pass

    @abstractmethod
    def list_archive_index_versions(self, provider: ProviderPath) -> List[str]:
        """Versions that currently have an archive index document."""
        pass
