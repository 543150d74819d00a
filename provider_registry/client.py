"""
Async client for the provider registry HTTP API.

Usage:
    async with RegistryClient("http://localhost:8080") as client:
        await client.upload("registry.example.com", "acme", "foo",
                            "terraform-provider-foo_1.2.3_linux_amd64.zip")
        versions = await client.list_versions("registry.example.com", "acme", "foo")
        await client.delete("registry.example.com", "acme", "foo", "1.2.3", "linux_amd64")
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import httpx

from provider_registry.domain.models import ArchiveIndex, ReconcileResult, VersionIndex

logger = logging.getLogger(__name__)


class RegistryClientError(Exception):
    """Non-2xx response from the registry."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


class RegistryClient:
    """
    Client for the provider registry.

    Args:
        base_url: Server URL (e.g., "http://localhost:8080")
        timeout: Request timeout in seconds
        transport: Optional httpx transport (e.g. httpx.ASGITransport for an in-process app)
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8080",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "RegistryClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def upload(self, host: str, namespace: str, type: str, archive: Path | str) -> None:
        path = Path(archive)
        logger.debug(f"Uploading {path.name} to {host}/{namespace}/{type}")
        with path.open("rb") as f:
            response = await self._client.post(
                f"/providers/{host}/{namespace}/{type}/upload/",
                files={"file": (path.name, f, "application/zip")},
            )
        self._raise_for_status(response)

    async def delete(self, host: str, namespace: str, type: str, version: str, arch: str) -> None:
        response = await self._client.delete(f"/providers/{host}/{namespace}/{type}/{version}/{arch}")
        self._raise_for_status(response)

    async def reconcile(self, host: str, namespace: str, type: str) -> ReconcileResult:
        response = await self._client.post(f"/providers/{host}/{namespace}/{type}/reconcile/")
        self._raise_for_status(response)
        return ReconcileResult.model_validate(response.json())

    async def list_versions(self, host: str, namespace: str, type: str) -> VersionIndex:
        """Fetch index.json. A provider with no archives has no versions."""
        response = await self._client.get(f"/providers/{host}/{namespace}/{type}/index.json")
        if response.status_code == 404:
            return VersionIndex()
        self._raise_for_status(response)
        return VersionIndex.model_validate(response.json())

    async def get_archives(self, host: str, namespace: str, type: str, version: str) -> ArchiveIndex:
        """Fetch <version>.json."""
        response = await self._client.get(f"/providers/{host}/{namespace}/{type}/{version}.json")
        self._raise_for_status(response)
        return ArchiveIndex.model_validate(response.json())

    async def download(self, host: str, namespace: str, type: str, filename: str, target: Path | str) -> Path:
        """Stream an archive to target and return its path."""
        target = Path(target)
        async with self._client.stream("GET", f"/providers/{host}/{namespace}/{type}/{filename}") as response:
            if response.is_error:
                await response.aread()
                self._raise_for_status(response)
            with target.open("wb") as f:
                async for chunk in response.aiter_bytes():
                    f.write(chunk)
        return target

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return
        try:
            message = response.json().get("message") or response.text
        except ValueError:
            message = response.text
        raise RegistryClientError(response.status_code, message)
