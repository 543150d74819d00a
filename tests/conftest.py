"""Shared fixtures for provider registry tests."""

import json
from pathlib import Path
from typing import AsyncIterator, Iterable

import pytest

from provider_registry.core.config import RegistrySettings
from provider_registry.core.dependencies import build_registry
from provider_registry.domain.paths import provider_path

HOST = "registry.example.com"
NAMESPACE = "acme"
TYPE = "foo"


def archive_name(version: str = "1.2.3", arch: str = "linux_amd64", name: str = TYPE) -> str:
    return f"terraform-provider-{name}_{version}_{arch}.zip"


async def chunks_of(*parts: bytes) -> AsyncIterator[bytes]:
    """Async byte stream yielding each part in turn."""
    for part in parts:
        yield part


async def failing_stream(parts: Iterable[bytes]) -> AsyncIterator[bytes]:
    """Async byte stream that breaks after yielding parts."""
    for part in parts:
        yield part
    raise OSError("connection reset")


def read_json(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


def snapshot(root: Path) -> dict:
    """Map of relative path -> bytes for every file under root."""
    return {
        str(p.relative_to(root)): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


@pytest.fixture
def data_dir(tmp_path):
    d = tmp_path / "providers"
    d.mkdir()
    return d


@pytest.fixture
def settings(data_dir):
    return RegistrySettings(data_dir=data_dir)


@pytest.fixture
def registry(settings):
    return build_registry(settings)


@pytest.fixture
def provider():
    return provider_path(HOST, NAMESPACE, TYPE)


@pytest.fixture
def provider_dir(data_dir):
    return data_dir / HOST / NAMESPACE / TYPE
