from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, Field


DATA_ROOT_ENV_VAR = "PROVIDER_REGISTRY_DATA_DIR"
ARCHIVE_PREFIX_ENV_VAR = "PROVIDER_REGISTRY_ARCHIVE_PREFIX"
RECORD_HASHES_ENV_VAR = "PROVIDER_REGISTRY_RECORD_HASHES"
CHUNK_SIZE_ENV_VAR = "PROVIDER_REGISTRY_CHUNK_SIZE"
DEBUG_ENV_VAR = "PROVIDER_REGISTRY_DEBUG"

DEFAULT_ARCHIVE_PREFIX = "terraform-provider"

_TRUE_VALUES = {"1", "true", "yes", "on"}


class RegistrySettings(BaseModel):
    """
    Runtime configuration for the provider registry.

    Values come from PROVIDER_REGISTRY_* environment variables and may be
    overridden by command-line flags (see provider_registry.main).
    """

    data_dir: Path = Field(
        default=Path("providers"),
        description="Root directory holding <host>/<namespace>/<type> trees.",
    )
    archive_prefix: str = Field(
        default=DEFAULT_ARCHIVE_PREFIX,
        pattern=r"^[A-Za-z0-9]+(-[A-Za-z0-9]+)*$",
        description="Prefix every archive filename must start with, e.g. 'terraform-provider'.",
    )
    record_hashes: bool = Field(
        default=True,
        description="Record a 'zh:<sha256>' hash for each uploaded archive.",
    )
    upload_chunk_size: int = Field(
        default=1024 * 1024,
        ge=1024,
        description="Size of the chunks read from an upload stream, in bytes.",
    )
    debug: bool = Field(
        default=False,
        description="Enable DEBUG logging.",
    )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RegistrySettings":
        """
        Build settings from environment variables, using defaults for any
        variable that is not set.
        """
        env = os.environ if environ is None else environ
        values: dict = {}

        data_dir = env.get(DATA_ROOT_ENV_VAR)
        if data_dir:
            values["data_dir"] = Path(data_dir).expanduser()
        prefix = env.get(ARCHIVE_PREFIX_ENV_VAR)
        if prefix:
            values["archive_prefix"] = prefix
        if RECORD_HASHES_ENV_VAR in env:
            values["record_hashes"] = env[RECORD_HASHES_ENV_VAR].strip().lower() in _TRUE_VALUES
        chunk_size = env.get(CHUNK_SIZE_ENV_VAR)
        if chunk_size:
            values["upload_chunk_size"] = int(chunk_size)
        if DEBUG_ENV_VAR in env:
            values["debug"] = env[DEBUG_ENV_VAR].strip().lower() in _TRUE_VALUES

        return cls(**values)
