"""
Moving archive bytes in and out of provider directories.

Uploads are streamed chunk by chunk into a temporary file next to the
target and renamed into place only once fully written, so a failed or
interrupted upload never leaves a truncated archive under its final name.
"""
from __future__ import annotations

import hashlib
import logging
import os
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterable, Set

import aiofiles

from provider_registry.core.config import DEFAULT_ARCHIVE_PREFIX
from provider_registry.core.errors import StorageIOError, StorageWriteError
from provider_registry.domain.paths import is_archive_filename

logger = logging.getLogger(__name__)

HASH_CHUNK_SIZE = 65536


@dataclass
class StoredArchive:
    path: Path
    size: int
    sha256: str


def file_sha256(path: Path) -> str:
    """Compute the SHA256 of a file on disk."""
    hasher = hashlib.sha256()
    try:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
                hasher.update(chunk)
    except OSError as e:
        raise StorageIOError(f"Failed to read {path}: {e}") from e
    return hasher.hexdigest()


class ArchiveTransfer:
    """Stores, removes and lists archive files."""

    def __init__(self, prefix: str = DEFAULT_ARCHIVE_PREFIX):
        self.prefix = prefix

    async def store(self, directory: Path, filename: str, chunks: AsyncIterable[bytes]) -> StoredArchive:
        """
        Stream chunks to directory/filename, replacing any existing file of
        that name. Parent directories are created as needed.
        """
        target = directory / filename
        tmp_path = directory / f".{filename}.{uuid.uuid4().hex}.part"
        hasher = hashlib.sha256()
        size = 0

        try:
            directory.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(tmp_path, "wb") as f:
                async for chunk in chunks:
                    if not chunk:
                        continue
                    hasher.update(chunk)
                    size += len(chunk)
                    await f.write(chunk)
                await f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, target)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StorageWriteError(f"Failed to write archive {target}: {e}") from e
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

        logger.debug(f"Wrote {size} bytes to {target}")
        return StoredArchive(path=target, size=size, sha256=hasher.hexdigest())

    def remove(self, directory: Path, filename: str) -> None:
        path = directory / filename
        try:
            path.unlink()
        except OSError as e:
            raise StorageIOError(f"Failed to remove archive {path}: {e}") from e
        logger.debug(f"Removed archive {path}")

    def remove_all(self, directory: Path) -> None:
        try:
            shutil.rmtree(directory)
        except OSError as e:
            raise StorageIOError(f"Failed to remove directory {directory}: {e}") from e
        logger.debug(f"Removed provider directory {directory}")

    def remove_if_empty(self, directory: Path) -> bool:
        """Remove directory if it holds no entries. Returns True if removed."""
        try:
            directory.rmdir()
        except FileNotFoundError:
            return False
        except OSError:
            # Not empty (or not removable): leave it in place.
            return False
        logger.debug(f"Removed empty directory {directory}")
        return True

    def list_archives(self, directory: Path) -> Set[str]:
        """
        Names of the archive files present in directory. This reads the
        filesystem and ignores the index documents entirely.
        """
        try:
            entries = list(directory.iterdir())
        except FileNotFoundError:
            return set()
        except OSError as e:
            raise StorageIOError(f"Failed to list {directory}: {e}") from e

        return {
            entry.name
            for entry in entries
            if entry.is_file() and is_archive_filename(entry.name, prefix=self.prefix)
        }
