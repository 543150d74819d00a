from typing import Optional

from fastapi import Request

from provider_registry.core.config import RegistrySettings
from provider_registry.services.registry import RegistryEngine
from provider_registry.storage.archive_transfer import ArchiveTransfer
from provider_registry.storage.json_metadata_store import JsonMetadataStore
from provider_registry.storage.locks import PathLocks

_settings: Optional[RegistrySettings] = None


def get_settings() -> RegistrySettings:
    global _settings
    if _settings is None:
        _settings = RegistrySettings.from_env()
    return _settings


def set_settings(settings: RegistrySettings) -> None:
    global _settings
    _settings = settings


def build_registry(settings: RegistrySettings) -> RegistryEngine:
    data_dir = settings.data_dir
    data_dir.mkdir(parents=True, exist_ok=True)
    return RegistryEngine(
        data_dir=data_dir,
        store=JsonMetadataStore(data_dir),
        transfer=ArchiveTransfer(prefix=settings.archive_prefix),
        locks=PathLocks(),
        archive_prefix=settings.archive_prefix,
        record_hashes=settings.record_hashes,
    )


def get_registry(request: Request) -> RegistryEngine:
    """The RegistryEngine attached to the running application."""
    return request.app.state.registry


def get_request_settings(request: Request) -> RegistrySettings:
    return request.app.state.settings
