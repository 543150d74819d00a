"""
Registry engine: keeps provider archives on disk and their two index tiers
(index.json and <version>.json) consistent across uploads and deletes.

Every mutating operation holds the lock of its ProviderPath for the whole
read-modify-write sequence. Archive bytes are written before any metadata
references them, and a delete checks the archive is present on disk before
touching metadata.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import AsyncIterable, List, Optional

from provider_registry.core.config import DEFAULT_ARCHIVE_PREFIX
from provider_registry.core.errors import CorruptIndex, NotFound
from provider_registry.domain.models import (
    ArchiveEntry,
    ArchiveIndex,
    DeleteResult,
    ProviderPath,
    ReconcileResult,
    UploadResult,
    VersionIndex,
)
from provider_registry.domain.paths import (
    ParsedFilename,
    is_archive_filename,
    is_version,
    parse_archive_filename,
    resolve_path,
    validate_arch,
    validate_archive_filename,
    validate_version,
)
from provider_registry.storage.archive_transfer import ArchiveTransfer, file_sha256
from provider_registry.storage.locks import PathLocks
from provider_registry.storage.metadata_store import MetadataStore

logger = logging.getLogger(__name__)

HASH_SCHEME = "zh"


def archive_hashes(sha256: str) -> List[str]:
    """Hash list recorded for an archive: the zip's SHA256 in 'zh:' form."""
    return [f"{HASH_SCHEME}:{sha256}"]


class RegistryEngine:
    def __init__(
        self,
        data_dir: Path,
        store: MetadataStore,
        transfer: Optional[ArchiveTransfer] = None,
        locks: Optional[PathLocks] = None,
        archive_prefix: str = DEFAULT_ARCHIVE_PREFIX,
        record_hashes: bool = True,
    ):
        self.data_dir = Path(data_dir)
        self.store = store
        self.transfer = transfer or ArchiveTransfer(prefix=archive_prefix)
        self.locks = locks or PathLocks()
        self.archive_prefix = archive_prefix
        self.record_hashes = record_hashes

    def directory(self, provider: ProviderPath) -> Path:
        return resolve_path(self.data_dir, provider)

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def validate_upload(self, provider: ProviderPath, filename: str) -> ParsedFilename:
        return validate_archive_filename(filename, expected_name=provider.type, prefix=self.archive_prefix)

    async def upload(
        self,
        provider: ProviderPath,
        filename: str,
        chunks: AsyncIterable[bytes],
    ) -> UploadResult:
        """
        Store an archive and register it in both index tiers.

        Uploading the same version/arch again replaces the previous entry
        and file.
        """
        parsed = self.validate_upload(provider, filename)
        directory = self.directory(provider)
        logger.debug(
            f"Uploading provider {parsed.name} to {directory}, version {parsed.version}, arch {parsed.arch}..."
        )

        async with self.locks.hold(provider):
            # Read both tiers first so a corrupt document aborts before any write.
            archives = self.store.load_archive_index(provider, parsed.version)
            versions = self.store.load_version_index(provider)

            created = self._missing_dirs(directory)
            try:
                stored = await self.transfer.store(directory, filename, chunks)
            except BaseException:
                self._prune_created_dirs(created)
                raise

            hashes = archive_hashes(stored.sha256) if self.record_hashes else None
            previous = archives.archives.get(parsed.arch)
            archives.archives[parsed.arch] = ArchiveEntry(filename=filename, hashes=hashes)
            self.store.save_archive_index(provider, parsed.version, archives)

            if versions.add(parsed.version):
                self.store.save_version_index(provider, versions)

            if (
                previous is not None
                and previous.filename != filename
                and is_archive_filename(previous.filename, prefix=self.archive_prefix)
                and (directory / previous.filename).is_file()
            ):
                logger.debug(f"Removing superseded archive {previous.filename}")
                self.transfer.remove(directory, previous.filename)

        logger.debug("Provider uploaded")
        return UploadResult(
            provider=provider,
            version=parsed.version,
            arch=parsed.arch,
            filename=filename,
            size=stored.size,
            hashes=hashes,
        )

    def _missing_dirs(self, directory: Path) -> List[Path]:
        """Directories between data_dir and directory that do not exist yet, deepest first."""
        missing = []
        current = directory
        while current != self.data_dir and self.data_dir in current.parents and not current.exists():
            missing.append(current)
            current = current.parent
        return missing

    def _prune_created_dirs(self, created: List[Path]) -> None:
        """Remove directories a failed upload created, if still empty."""
        for directory in created:
            if not self.transfer.remove_if_empty(directory):
                break

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete(self, provider: ProviderPath, version: str, arch: str) -> DeleteResult:
        """
        Remove one version/arch archive and cascade: drop the version when its
        last arch goes, drop index.json when its last version goes, and remove
        the whole provider directory when the last archive file goes.
        """
        validate_version(version)
        validate_arch(arch)
        directory = self.directory(provider)
        logger.debug(f"Deleting provider {provider}, version {version}, arch {arch}...")

        async with self.locks.hold(provider):
            archives = self.store.load_archive_index(provider, version)
            entry = archives.archives.get(arch)
            if entry is None:
                raise NotFound(f"Provider {provider} version {version} arch {arch} not found")

            # The filesystem, not the index, decides whether the archive
            # exists and whether it is the last one in the directory.
            present = self.transfer.list_archives(directory)
            logger.debug(f"Provider archives: {sorted(present)}")
            if entry.filename not in present:
                raise NotFound(
                    f"Archive file {entry.filename} for version {version} arch {arch} not found",
                    details={"filename": entry.filename},
                )

            del archives.archives[arch]
            if not archives.is_empty():
                self.store.save_archive_index(provider, version, archives)
            else:
                versions = self.store.load_version_index(provider)
                versions.discard(version)
                if versions.is_empty():
                    self.store.delete_version_index(provider)
                else:
                    self.store.save_version_index(provider, versions)
                self.store.delete_archive_index(provider, version)

            directory_removed = present == {entry.filename}
            if directory_removed:
                self.transfer.remove_all(directory)
            else:
                self.transfer.remove(directory, entry.filename)

        logger.debug("Provider deleted")
        return DeleteResult(
            provider=provider,
            version=version,
            arch=arch,
            filename=entry.filename,
            directory_removed=directory_removed,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_versions(self, provider: ProviderPath) -> VersionIndex:
        return self.store.load_version_index(provider)

    def get_archives(self, provider: ProviderPath, version: str) -> ArchiveIndex:
        validate_version(version)
        archives = self.store.load_archive_index(provider, version)
        if archives.is_empty():
            raise NotFound(f"Provider {provider} version {version} not found")
        return archives

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def reconcile(self, provider: ProviderPath) -> ReconcileResult:
        """
        Rebuild both index tiers of a provider from the archive files on disk.

        Entries whose file is gone are dropped, files without an entry are
        added, and empty documents (and an empty directory) are removed.
        """
        directory = self.directory(provider)

        async with self.locks.hold(provider):
            present = self.transfer.list_archives(directory)
            old_versions = self._load_for_repair(self.store.load_version_index, VersionIndex, provider)

            rebuilt: dict[str, ArchiveIndex] = {}
            for filename in sorted(present):
                parsed = parse_archive_filename(filename, expected_name=provider.type, prefix=self.archive_prefix)
                if not isinstance(parsed, ParsedFilename):
                    logger.warning(f"Ignoring archive {directory / filename}: {parsed.message}")
                    continue
                rebuilt.setdefault(parsed.version, ArchiveIndex()).archives[parsed.arch] = ArchiveEntry(
                    filename=filename
                )

            known = (
                {v for v in old_versions.versions if is_version(v)}
                | set(self.store.list_archive_index_versions(provider))
                | set(rebuilt)
            )
            result = ReconcileResult(provider=provider)
            for version in sorted(known):
                old = self._load_for_repair(self.store.load_archive_index, ArchiveIndex, provider, version)
                new = rebuilt.get(version, ArchiveIndex())
                for arch, entry in old.archives.items():
                    replacement = new.archives.get(arch)
                    if replacement is None or replacement.filename != entry.filename:
                        result.dropped.append(entry.filename)
                for arch, entry in new.archives.items():
                    existing = old.archives.get(arch)
                    if existing is not None and existing.filename == entry.filename:
                        entry.hashes = existing.hashes
                    else:
                        result.added.append(entry.filename)
                    if self.record_hashes and not entry.hashes:
                        entry.hashes = archive_hashes(file_sha256(directory / entry.filename))

                if new.is_empty():
                    self.store.delete_archive_index(provider, version)
                elif new != old:
                    self.store.save_archive_index(provider, version, new)

            versions = VersionIndex()
            for version in sorted(rebuilt):
                versions.add(version)
            if versions.is_empty():
                self.store.delete_version_index(provider)
            elif versions.versions.keys() != old_versions.versions.keys():
                self.store.save_version_index(provider, versions)

            result.versions = sorted(versions.versions)
            result.added.sort()
            result.dropped.sort()
            if versions.is_empty():
                result.directory_removed = self.transfer.remove_if_empty(directory)

        if result.added or result.dropped:
            logger.info(
                f"Reconciled {provider}: added {len(result.added)}, dropped {len(result.dropped)} archive(s)"
            )
        return result

    @staticmethod
    def _load_for_repair(load, empty, *args):
        """Load a document, treating a corrupt one as empty so it gets rewritten."""
        try:
            return load(*args)
        except CorruptIndex as e:
            logger.warning(f"{e.message}; rebuilding it")
            return empty()
