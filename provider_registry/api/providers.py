from __future__ import annotations

import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends, File, Response, UploadFile, status

from provider_registry.core.config import RegistrySettings
from provider_registry.core.dependencies import get_registry, get_request_settings
from provider_registry.domain.models import ReconcileResult
from provider_registry.domain.paths import provider_path
from provider_registry.services.registry import RegistryEngine

logger = logging.getLogger(__name__)
router = APIRouter()


async def _iter_upload(upload: UploadFile, chunk_size: int) -> AsyncIterator[bytes]:
    while True:
        chunk = await upload.read(chunk_size)
        if not chunk:
            break
        yield chunk


# ---------------------------------------------------------------------------
# POST /providers/{hostname}/{namespace}/{type}/upload/
# ---------------------------------------------------------------------------


@router.post("/providers/{hostname}/{namespace}/{type}/upload/")
async def upload_provider(
    hostname: str,
    namespace: str,
    type: str,
    file: UploadFile = File(...),
    registry: RegistryEngine = Depends(get_registry),
    settings: RegistrySettings = Depends(get_request_settings),
) -> Response:
    """
    Upload a provider archive (multipart field "file").

    The filename must be <prefix>-<type>_<version>_<arch>.zip.
    """
    provider = provider_path(hostname, namespace, type)
    try:
        await registry.upload(provider, file.filename or "", _iter_upload(file, settings.upload_chunk_size))
    finally:
        await file.close()
    return Response(status_code=status.HTTP_200_OK)


# ---------------------------------------------------------------------------
# POST /providers/{hostname}/{namespace}/{type}/reconcile/
# ---------------------------------------------------------------------------


@router.post("/providers/{hostname}/{namespace}/{type}/reconcile/")
async def reconcile_provider(
    hostname: str,
    namespace: str,
    type: str,
    registry: RegistryEngine = Depends(get_registry),
) -> ReconcileResult:
    """Rebuild index.json and <version>.json from the archives on disk."""
    provider = provider_path(hostname, namespace, type)
    return await registry.reconcile(provider)


# ---------------------------------------------------------------------------
# DELETE /providers/{hostname}/{namespace}/{type}/{version}/{arch}
# ---------------------------------------------------------------------------


@router.delete("/providers/{hostname}/{namespace}/{type}/{version}/{arch}")
async def delete_provider(
    hostname: str,
    namespace: str,
    type: str,
    version: str,
    arch: str,
    registry: RegistryEngine = Depends(get_registry),
) -> Response:
    """Delete one version/arch archive, cascading to the index documents."""
    provider = provider_path(hostname, namespace, type)
    await registry.delete(provider, version, arch)
    return Response(status_code=status.HTTP_200_OK)
