import json
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Type, TypeVar

from pydantic import BaseModel, ValidationError

from provider_registry.core.errors import CorruptIndex, StorageIOError, StorageWriteError
from provider_registry.domain.models import ArchiveIndex, ProviderPath, VersionIndex
from provider_registry.domain.paths import (
    VERSION_INDEX_FILENAME,
    archive_index_filename,
    is_version,
    resolve_path,
)
from provider_registry.storage.metadata_store import MetadataStore

logger = logging.getLogger(__name__)

_Model = TypeVar("_Model", bound=BaseModel)


def dump_document(model: BaseModel) -> str:
    """Serialize an index document with stable key ordering."""
    data = model.model_dump(mode="json", by_alias=True, exclude_none=True)
    return json.dumps(data, indent=2, sort_keys=True) + "\n"


def write_atomic(path: Path, content: str) -> None:
    """
    Write content to path via a temporary file in the same directory that is
    fsynced and renamed into place.
    """
    tmp_name = None
    try:
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as e:
        raise StorageWriteError(f"Failed to write {path}: {e}") from e
    finally:
        if tmp_name is not None:
            Path(tmp_name).unlink(missing_ok=True)


class JsonMetadataStore(MetadataStore):
    def __init__(self, data_dir: Path):
        self._data_dir = Path(data_dir)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def directory(self, provider: ProviderPath) -> Path:
        return resolve_path(self._data_dir, provider)

    def version_index_path(self, provider: ProviderPath) -> Path:
        return self.directory(provider) / VERSION_INDEX_FILENAME

    def archive_index_path(self, provider: ProviderPath, version: str) -> Path:
        return self.directory(provider) / archive_index_filename(version)

    def load_version_index(self, provider: ProviderPath) -> VersionIndex:
        return self._load(self.version_index_path(provider), VersionIndex)

    def save_version_index(self, provider: ProviderPath, index: VersionIndex) -> None:
        self._save(self.version_index_path(provider), index)

    def delete_version_index(self, provider: ProviderPath) -> None:
        self._delete(self.version_index_path(provider))

    def load_archive_index(self, provider: ProviderPath, version: str) -> ArchiveIndex:
        return self._load(self.archive_index_path(provider, version), ArchiveIndex)

    def save_archive_index(self, provider: ProviderPath, version: str, index: ArchiveIndex) -> None:
        self._save(self.archive_index_path(provider, version), index)

    def delete_archive_index(self, provider: ProviderPath, version: str) -> None:
        self._delete(self.archive_index_path(provider, version))

    def list_archive_index_versions(self, provider: ProviderPath) -> List[str]:
        directory = self.directory(provider)
        try:
            names = [p.name for p in directory.iterdir() if p.is_file()]
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StorageIOError(f"Failed to list {directory}: {e}") from e

        versions = []
        for name in names:
            if name == VERSION_INDEX_FILENAME or not name.endswith(".json"):
                continue
            version = name[: -len(".json")]
            if is_version(version):
                versions.append(version)
        return sorted(versions)

    def _load(self, path: Path, model: Type[_Model]) -> _Model:
        try:
            raw_text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return model()
        except OSError as e:
            raise StorageIOError(f"Failed to read {path}: {e}") from e

        try:
            raw = json.loads(raw_text)
        except json.JSONDecodeError as e:
            raise CorruptIndex(path, f"invalid JSON ({e})") from e
        if not isinstance(raw, dict):
            raise CorruptIndex(path, "expected a JSON object")
        try:
            return model.model_validate(raw)
        except ValidationError as e:
            raise CorruptIndex(path, str(e)) from e

    def _save(self, path: Path, document: BaseModel) -> None:
        write_atomic(path, dump_document(document))
        logger.debug(f"Updated {path}")

    def _delete(self, path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise StorageIOError(f"Failed to remove {path}: {e}") from e
        logger.debug(f"Removed {path}")
