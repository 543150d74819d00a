"""
Exceptions raised by the provider registry.

All errors inherit from RegistryError so the HTTP layer can map them to a
status code in one place.
"""

from typing import Optional


class RegistryError(Exception):
    """Base exception for all registry errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict] = None,
    ):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert error to dictionary for API response."""
        data = {
            "error": self.__class__.__name__,
            "message": self.message,
        }
        if self.details:
            data["details"] = self.details
        return data


# ---------------------------------------------------------------------------
# Validation errors (raised before any mutation)
# ---------------------------------------------------------------------------


class MalformedFilename(RegistryError):
    """Archive filename does not follow <prefix>-<name>_<version>_<arch>.zip."""

    status_code = 400


class NameMismatch(RegistryError):
    """Provider name in the filename differs from the type in the upload path."""

    status_code = 400


class UnsupportedMediaType(RegistryError):
    """Archive is not a .zip file."""

    status_code = 415


class InvalidPathSegment(RegistryError):
    """Host, namespace, type, version or arch cannot be used as a path segment."""

    status_code = 400

    def __init__(self, field: str, value: str):
        super().__init__(
            f"Invalid {field}: {value!r}",
            details={"field": field},
        )
        self.field = field
        self.value = value


class NotFound(RegistryError):
    """Requested version/arch (or its archive file) does not exist."""

    status_code = 404


# ---------------------------------------------------------------------------
# Storage errors
# ---------------------------------------------------------------------------


class CorruptIndex(RegistryError):
    """An index document exists but is not valid JSON of the expected shape."""

    status_code = 500

    def __init__(self, path, reason: str):
        super().__init__(f"Corrupt index document {path}: {reason}")
        self.path = path


class StorageWriteError(RegistryError):
    """Writing an archive or index document failed."""

    status_code = 500


class StorageIOError(RegistryError):
    """Reading, listing or removing files failed."""

    status_code = 500
