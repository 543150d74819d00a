"""
Path and filename rules for provider archives.

Archives are named <prefix>-<name>_<version>_<arch>.zip, for example
terraform-provider-external_2.2.2_linux_amd64.zip, and live in
<root>/<host>/<namespace>/<type>/.
"""

from __future__ import annotations

import enum
import functools
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from provider_registry.core.config import DEFAULT_ARCHIVE_PREFIX
from provider_registry.core.errors import (
    InvalidPathSegment,
    MalformedFilename,
    NameMismatch,
    UnsupportedMediaType,
)
from provider_registry.domain.models import ProviderPath

ARCHIVE_EXTENSION = ".zip"
VERSION_INDEX_FILENAME = "index.json"

_SEGMENT_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9._-]*")
_VERSION_RE = re.compile(r"[0-9][0-9.]*")
_ARCH_RE = re.compile(r"[A-Za-z0-9_]+")

# Name and arch may both contain underscores; the version in between
# (digits and dots) anchors the split.
_FILENAME_BODY = r"(?P<name>[A-Za-z0-9_]+)_(?P<version>[0-9][0-9.]*)_(?P<arch>[A-Za-z0-9_]+)"


@functools.lru_cache(maxsize=None)
def _filename_re(prefix: str) -> re.Pattern:
    return re.compile(
        re.escape(prefix) + "-" + _FILENAME_BODY + r"(?P<extension>\.[A-Za-z0-9.]*)?"
    )


# ---------------------------------------------------------------------------
# Provider directories
# ---------------------------------------------------------------------------


def validate_segment(field: str, value: str) -> str:
    if not isinstance(value, str) or not _SEGMENT_RE.fullmatch(value):
        raise InvalidPathSegment(field, value)
    return value


def is_version(value: str) -> bool:
    return isinstance(value, str) and _VERSION_RE.fullmatch(value) is not None


def validate_version(version: str) -> str:
    if not is_version(version):
        raise InvalidPathSegment("version", version)
    return version


def validate_arch(arch: str) -> str:
    if not isinstance(arch, str) or not _ARCH_RE.fullmatch(arch):
        raise InvalidPathSegment("arch", arch)
    return arch


def provider_path(host: str, namespace: str, type: str) -> ProviderPath:
    """
    Build a ProviderPath after checking every segment is safe to join onto
    the data directory (no separators, no '.' or '..', not empty).
    """
    return ProviderPath(
        host=validate_segment("hostname", host),
        namespace=validate_segment("namespace", namespace),
        type=validate_segment("type", type),
    )


def resolve_path(root: Path, provider: ProviderPath) -> Path:
    """
    Directory holding the archives and index documents of a provider.

    Segments are checked again here since a ProviderPath can be built
    without going through provider_path().
    """
    segments = [
        validate_segment(field, value)
        for field, value in zip(("hostname", "namespace", "type"), provider.parts)
    ]
    return Path(root).joinpath(*segments)


def archive_index_filename(version: str) -> str:
    return f"{version}.json"


# ---------------------------------------------------------------------------
# Archive filenames
# ---------------------------------------------------------------------------


class InvalidReason(str, enum.Enum):
    MALFORMED = "malformed"
    NAME_MISMATCH = "name_mismatch"
    UNSUPPORTED_MEDIA_TYPE = "unsupported_media_type"


@dataclass(frozen=True)
class ParsedFilename:
    filename: str
    prefix: str
    name: str
    version: str
    arch: str
    extension: str


@dataclass(frozen=True)
class InvalidFilename:
    filename: str
    reason: InvalidReason
    message: str


ParseResult = Union[ParsedFilename, InvalidFilename]


def parse_archive_filename(
    filename: str,
    expected_name: Optional[str] = None,
    prefix: str = DEFAULT_ARCHIVE_PREFIX,
) -> ParseResult:
    """
    Parse an archive filename into its parts.

    Checks run in this order: overall pattern, provider name against
    expected_name (when given), then the .zip extension.
    """
    match = _filename_re(prefix).fullmatch(filename or "")
    if match is None:
        return InvalidFilename(
            filename=filename,
            reason=InvalidReason.MALFORMED,
            message=f"Filename {filename!r} does not match {prefix}-<name>_<version>_<arch>{ARCHIVE_EXTENSION}",
        )

    name = match.group("name")
    if expected_name is not None and name != expected_name:
        return InvalidFilename(
            filename=filename,
            reason=InvalidReason.NAME_MISMATCH,
            message=f"Provider name {name!r} does not match upload path type {expected_name!r}",
        )

    extension = match.group("extension") or ""
    if extension != ARCHIVE_EXTENSION:
        return InvalidFilename(
            filename=filename,
            reason=InvalidReason.UNSUPPORTED_MEDIA_TYPE,
            message=f"Provider should be in ZIP archive, got {extension or 'no extension'!r}",
        )

    return ParsedFilename(
        filename=filename,
        prefix=prefix,
        name=name,
        version=match.group("version"),
        arch=match.group("arch"),
        extension=extension,
    )


_ERRORS = {
    InvalidReason.MALFORMED: MalformedFilename,
    InvalidReason.NAME_MISMATCH: NameMismatch,
    InvalidReason.UNSUPPORTED_MEDIA_TYPE: UnsupportedMediaType,
}


def validate_archive_filename(
    filename: str,
    expected_name: Optional[str] = None,
    prefix: str = DEFAULT_ARCHIVE_PREFIX,
) -> ParsedFilename:
    """Like parse_archive_filename, but raises the matching RegistryError."""
    result = parse_archive_filename(filename, expected_name=expected_name, prefix=prefix)
    if isinstance(result, InvalidFilename):
        raise _ERRORS[result.reason](result.message, details={"filename": filename})
    return result


def is_archive_filename(filename: str, prefix: str = DEFAULT_ARCHIVE_PREFIX) -> bool:
    """True for any well-formed .zip archive name, whatever the provider name."""
    return isinstance(parse_archive_filename(filename, prefix=prefix), ParsedFilename)
