"""
Archive codec detection.

A release archive's format is decided from what the server says about it,
never from its bytes: first the Content-Type header, then (for generic binary
types) the Content-Disposition filename, then the suffix of the request path.

The lookup tables are plain data so every mapping can be tested directly.
"""

import logging
import re
from enum import Enum
from typing import Mapping, Optional, Tuple
from urllib.parse import unquote

from zigsync.core.exceptions import CodecError

logger = logging.getLogger(__name__)


class ArchiveCodec(Enum):
    """Compression/container format of a release archive."""

    TAR = "tar"
    GZIP_TAR = "tar.gz"
    XZ_TAR = "tar.xz"
    ZSTD_TAR = "tar.zst"
    ZIP = "zip"

    @property
    def extension(self) -> str:
        """Canonical file extension, e.g. '.tar.xz'."""
        return f".{self.value}"

    @property
    def streamable(self) -> bool:
        """False for codecs that need random access to the whole archive."""
        return self is not ArchiveCodec.ZIP


MIME_TABLE: Mapping[str, ArchiveCodec] = {
    "application/x-tar": ArchiveCodec.TAR,
    "application/gzip": ArchiveCodec.GZIP_TAR,
    "application/x-gzip": ArchiveCodec.GZIP_TAR,
    "application/tar+gzip": ArchiveCodec.GZIP_TAR,
    "application/x-tar-gz": ArchiveCodec.GZIP_TAR,
    "application/x-gtar-compressed": ArchiveCodec.GZIP_TAR,
    "application/x-xz": ArchiveCodec.XZ_TAR,
    "application/zstd": ArchiveCodec.ZSTD_TAR,
    "application/zip": ArchiveCodec.ZIP,
    "application/x-zip-compressed": ArchiveCodec.ZIP,
    "application/java-archive": ArchiveCodec.ZIP,
}

# MIME types that say nothing about the format; fall back to names
GENERIC_MIME_TYPES = frozenset(["application/octet-stream", "application/x-compressed"])

SUFFIX_TABLE: Tuple[Tuple[str, ArchiveCodec], ...] = (
    (".tar", ArchiveCodec.TAR),
    (".tgz", ArchiveCodec.GZIP_TAR),
    (".tar.gz", ArchiveCodec.GZIP_TAR),
    (".txz", ArchiveCodec.XZ_TAR),
    (".tar.xz", ArchiveCodec.XZ_TAR),
    (".tzst", ArchiveCodec.ZSTD_TAR),
    (".tar.zst", ArchiveCodec.ZSTD_TAR),
    (".zip", ArchiveCodec.ZIP),
    (".jar", ArchiveCodec.ZIP),
)

# Quoted values may contain ";"
_FILENAME_PARAM = re.compile(r'filename\*?\s*=\s*("[^"]*"|[^;]*)', re.IGNORECASE)


def mime_type(content_type: str) -> str:
    """MIME type portion of a Content-Type value, parameters stripped, lowercased."""
    return content_type.split(";", 1)[0].strip().lower()


def codec_from_mime(content_type: str) -> Optional[ArchiveCodec]:
    """Classify a Content-Type value by exact MIME type match."""
    return MIME_TABLE.get(mime_type(content_type))


def codec_from_path(path: str) -> Optional[ArchiveCodec]:
    """
    Classify a filename or URL path by its suffix (case-insensitive).

    Example:
        >>> codec_from_path("/download/0.14.1/zig-linux-x86_64-0.14.1.tar.xz")
        <ArchiveCodec.XZ_TAR: 'tar.xz'>
    """
    lowered = path.lower()
    for suffix, codec in SUFFIX_TABLE:
        if lowered.endswith(suffix):
            return codec
    return None


def disposition_filename(content_disposition: str) -> Optional[str]:
    """
    Extract the ``filename`` / ``filename*`` parameter of a Content-Disposition value.

    Surrounding quotes are removed and an RFC 5987 ``charset''`` prefix is decoded.
    """
    match = _FILENAME_PARAM.search(content_disposition)
    if not match:
        return None

    value = match.group(1).strip()
    if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
        value = value[1:-1]
    elif value.endswith('"'):
        value = value[:-1]

    if "''" in value:
        value = unquote(value.split("''", 1)[1])
    return value or None


def codec_from_disposition(content_disposition: str) -> Optional[ArchiveCodec]:
    """Classify by the filename carried in a Content-Disposition header."""
    filename = disposition_filename(content_disposition)
    return codec_from_path(filename) if filename else None


def detect_codec(headers: Mapping[str, str], url_path: str) -> ArchiveCodec:
    """
    Decide the codec of a response from its headers and request path.

    Args:
        headers: Response headers (case-insensitive mapping)
        url_path: Path component of the request URL

    Returns:
        The detected codec

    Raises:
        CodecError: If the content type is unknown, or no source names a format
    """
    content_type = headers.get("Content-Type")
    if content_type:
        codec = codec_from_mime(content_type)
        if codec is not None:
            logger.debug(f"Codec {codec.value} from Content-Type '{content_type}'")
            return codec
        if mime_type(content_type) not in GENERIC_MIME_TYPES:
            raise CodecError(f"Unknown content type: {content_type}")

    disposition = headers.get("Content-Disposition")
    if disposition:
        codec = codec_from_disposition(disposition)
        if codec is not None:
            logger.debug(f"Codec {codec.value} from Content-Disposition '{disposition}'")
            return codec

    codec = codec_from_path(url_path)
    if codec is not None:
        logger.debug(f"Codec {codec.value} from request path '{url_path}'")
        return codec

    raise CodecError(
        f"Cannot determine archive type (Content-Type: {content_type or 'missing'}, "
        f"path: {url_path})"
    )


def extraction_dir_name(filename: str) -> str:
    """
    Directory name an archive unpacks into: its filename minus the archive suffix.

    Depends on the filename alone, so the reuse check and a fresh extraction
    agree even when the server reports a different codec than the suffix.

    Example:
        >>> extraction_dir_name("zig-linux-x86_64-0.14.1.tar.xz")
        'zig-linux-x86_64-0.14.1'
    """
    lowered = filename.lower()
    for suffix in sorted((s for s, _ in SUFFIX_TABLE), key=len, reverse=True):
        if lowered.endswith(suffix) and len(filename) > len(suffix):
            return filename[: -len(suffix)]
    return filename
