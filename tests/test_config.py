"""Tests for settings and command-line parsing."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from provider_registry.core.config import (
    ARCHIVE_PREFIX_ENV_VAR,
    CHUNK_SIZE_ENV_VAR,
    DATA_ROOT_ENV_VAR,
    DEBUG_ENV_VAR,
    RECORD_HASHES_ENV_VAR,
    RegistrySettings,
)
from provider_registry.main import parse_args


class TestSettings:
    def test_defaults(self):
        settings = RegistrySettings.from_env({})
        assert settings.data_dir == Path("providers")
        assert settings.archive_prefix == "terraform-provider"
        assert settings.record_hashes is True
        assert settings.debug is False

    def test_from_env(self, tmp_path):
        settings = RegistrySettings.from_env(
            {
                DATA_ROOT_ENV_VAR: str(tmp_path),
                ARCHIVE_PREFIX_ENV_VAR: "opentofu-provider",
                RECORD_HASHES_ENV_VAR: "false",
                CHUNK_SIZE_ENV_VAR: "4096",
                DEBUG_ENV_VAR: "yes",
            }
        )
        assert settings.data_dir == tmp_path
        assert settings.archive_prefix == "opentofu-provider"
        assert settings.record_hashes is False
        assert settings.upload_chunk_size == 4096
        assert settings.debug is True

    @pytest.mark.parametrize("prefix", ["bad prefix", "-leading", "a/b"])
    def test_rejects_unsafe_prefix(self, prefix):
        with pytest.raises(ValidationError):
            RegistrySettings(archive_prefix=prefix)

    def test_rejects_tiny_chunk_size(self):
        with pytest.raises(ValidationError):
            RegistrySettings.from_env({CHUNK_SIZE_ENV_VAR: "10"})


class TestArgs:
    def test_defaults(self):
        args = parse_args([])
        assert args.host == "0.0.0.0"
        assert args.port == 8080
        assert args.dir is None
        assert not args.debug
        assert not args.production

    def test_flags(self):
        args = parse_args(["--debug", "--dir", "/srv/providers", "--port", "8443", "--production", "--cert", "c.pem", "--key", "k.pem"])
        assert args.debug
        assert args.dir == Path("/srv/providers")
        assert args.port == 8443
        assert args.production
        assert (args.cert, args.key) == ("c.pem", "k.pem")
