"""
Release index resolution.

The upstream index is one large JSON object keyed by version alias
('master', '0.14.1', ...). Each value holds an optional "version" string and
one object per platform key with the archive URL, digest and size.

The resolver walks the document as an ijson event stream: it never builds the
whole document in memory, skips unrelated values event by event, and only
materializes the few strings it needs from the matching entry.
"""

import logging
import posixpath
import re
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple
from urllib.parse import unquote, urlsplit

import ijson
import requests

from zigsync.config.parser import ZIG_DOWNLOAD_INDEX_URL
from zigsync.core.download import body_reader, open_response
from zigsync.core.exceptions import IndexLookupError, MalformedIndexError

logger = logging.getLogger(__name__)

_DECIMAL = re.compile(r"[0-9]+")
_RESOURCE_FIELDS = ("tarball", "shasum", "size")


@dataclass(frozen=True)
class ResourceDescriptor:
    """Downloadable archive for one version/platform pair."""

    archive_url: str
    """URL of the release archive"""

    checksum_hex: str
    """SHA256 digest published by the index (hex)"""

    declared_size_bytes: int
    """Archive size published by the index"""

    @classmethod
    def from_fields(cls, tarball: str, shasum: str, size: str) -> "ResourceDescriptor":
        """
        Build a descriptor from the raw string fields of an index entry.

        Raises:
            MalformedIndexError: If the URL or size cannot be parsed
        """
        parts = urlsplit(tarball)
        if not parts.scheme or not parts.netloc:
            raise MalformedIndexError(f"Invalid archive URL in index: {tarball!r}")
        if not _DECIMAL.fullmatch(size):
            raise MalformedIndexError(f"Invalid archive size in index: {size!r}")
        return cls(archive_url=tarball, checksum_hex=shasum, declared_size_bytes=int(size))

    @property
    def url_path(self) -> str:
        """Percent-decoded path component of the archive URL."""
        return unquote(urlsplit(self.archive_url).path)

    @property
    def filename(self) -> str:
        """Basename of the archive URL path."""
        return posixpath.basename(self.url_path)


@dataclass(frozen=True)
class ResolvedTarget:
    """Result of looking up a version alias and platform key in the index."""

    canonical_version: str
    """Version string local installations are compared against"""

    resource: ResourceDescriptor
    """Archive to download for the requested platform"""


class _EventCursor:
    """Pull-style access to an ijson event stream."""

    def __init__(self, events: Iterator[Tuple[str, str, object]]):
        self._events = events

    def next(self) -> Tuple[str, object]:
        try:
            _prefix, event, value = next(self._events)
        except StopIteration:
            raise MalformedIndexError("Unexpected end of index document")
        except ijson.JSONError as e:
            raise MalformedIndexError(f"Invalid JSON in index: {e}") from e
        return event, value

    def next_key(self) -> Optional[str]:
        """Next key of the current object, or None at its end."""
        event, value = self.next()
        if event == "map_key":
            return value
        if event == "end_map":
            return None
        raise MalformedIndexError(f"Expected object key, got {event}")

    def expect_object(self, what: str) -> None:
        event, _ = self.next()
        if event != "start_map":
            raise MalformedIndexError(f"Expected {what} to be an object, got {event}")

    def string_value(self, what: str) -> str:
        event, value = self.next()
        if event != "string":
            raise MalformedIndexError(f"Expected {what} to be a string, got {event}")
        return value

    def skip_value(self) -> None:
        """Consume the next value, however deeply nested, without keeping it."""
        event, _ = self.next()
        if event not in ("start_map", "start_array"):
            return
        depth = 1
        while depth:
            event, _ = self.next()
            if event in ("start_map", "start_array"):
                depth += 1
            elif event in ("end_map", "end_array"):
                depth -= 1


def resolve_from_stream(stream, version_alias: str, platform_key: str) -> ResolvedTarget:
    """
    Find the entry for ``version_alias``/``platform_key`` in an index stream.

    Both keys are matched case-insensitively. Keys may appear in any order
    and unknown fields are skipped.

    Args:
        stream: Binary file-like object positioned at the start of the index
        version_alias: Top-level key to look up (e.g. 'master', '0.14.1')
        platform_key: Platform key inside the entry (e.g. 'x86_64-linux')

    Returns:
        ResolvedTarget for the match

    Raises:
        MalformedIndexError: If the document shape is not as expected
        IndexLookupError: If the alias or platform key is absent
    """
    cursor = _EventCursor(ijson.parse(stream))
    cursor.expect_object("index document")

    wanted = version_alias.casefold()
    while True:
        key = cursor.next_key()
        if key is None:
            raise IndexLookupError(version_alias)
        if key.casefold() == wanted:
            return _parse_version_entry(cursor, key, platform_key)
        cursor.skip_value()


def _parse_version_entry(
    cursor: _EventCursor, index_key: str, platform_key: str
) -> ResolvedTarget:
    cursor.expect_object(f"entry '{index_key}'")

    wanted_platform = platform_key.casefold()
    version = None
    resource = None
    while True:
        field = cursor.next_key()
        if field is None:
            break
        folded = field.casefold()
        if folded == "version":
            version = cursor.string_value(f"'{index_key}.version'")
        elif folded == wanted_platform:
            resource = _parse_resource(cursor, f"{index_key}.{field}")
        else:
            cursor.skip_value()

    if resource is None:
        raise IndexLookupError(index_key, platform_key)

    # Aliases like 'master' publish an explicit version; releases are their own key
    canonical = index_key if version is None else version
    if not canonical.strip():
        raise MalformedIndexError(f"Entry '{index_key}' has an empty version")

    return ResolvedTarget(canonical_version=canonical, resource=resource)


def _parse_resource(cursor: _EventCursor, where: str) -> ResourceDescriptor:
    cursor.expect_object(f"'{where}'")

    values = {}
    while True:
        field = cursor.next_key()
        if field is None:
            break
        if field in _RESOURCE_FIELDS:
            values[field] = cursor.string_value(f"'{where}.{field}'")
        else:
            cursor.skip_value()

    missing = [name for name in _RESOURCE_FIELDS if name not in values]
    if missing:
        raise MalformedIndexError(f"'{where}' is missing field(s): {', '.join(missing)}")

    return ResourceDescriptor.from_fields(**values)


class IndexResolver:
    """
    Resolves version aliases against the remote release index.

    Example:
        >>> resolver = IndexResolver(requests.Session())
        >>> target = resolver.resolve("master", "x86_64-linux")
        >>> print(target.canonical_version, target.resource.archive_url)
    """

    def __init__(
        self,
        session: requests.Session,
        index_url: str = ZIG_DOWNLOAD_INDEX_URL,
        timeout: Optional[float] = None,
    ):
        self.session = session
        self.index_url = index_url
        self.timeout = timeout

    def resolve(self, version_alias: str, platform_key: str) -> ResolvedTarget:
        """
        Fetch the index and resolve ``version_alias`` for ``platform_key``.

        Raises:
            NetworkError: If the index cannot be fetched
            MalformedIndexError: If the index is not shaped as expected
            IndexLookupError: If the alias or platform key is absent
        """
        logger.debug(f"Resolving '{version_alias}' for '{platform_key}' from {self.index_url}")
        response = open_response(self.session, self.index_url, self.timeout)
        with response:
            target = resolve_from_stream(body_reader(response), version_alias, platform_key)

        logger.info(f"Found remote version: {target.canonical_version}")
        return target
