"""
Streaming HTTP primitives for zigsync.

This module provides the pieces the pipeline uses to talk to the network:
- Issuing a streaming GET and mapping transport/status failures to NetworkError
- Exposing a response body as a forward-only binary file object
- Computing a digest incrementally while bytes flow through a reader

Nothing here retries: one attempt per request, failures surface to the caller.
"""

import hashlib
import io
import logging
from typing import Optional

import requests
from requests.exceptions import RequestException

from zigsync.core.exceptions import ChecksumError, NetworkError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def open_response(
    session: requests.Session, url: str, timeout: Optional[float] = None
) -> requests.Response:
    """
    Issue a streaming GET and return the response with its body unread.

    Args:
        session: HTTP session to use
        url: URL to fetch
        timeout: Request timeout in seconds (None blocks indefinitely)

    Returns:
        Response whose headers are available and whose body is unconsumed

    Raises:
        NetworkError: On connection failure or a 4xx/5xx status
    """
    logger.debug(f"GET {url}")
    try:
        response = session.get(url, stream=True, timeout=timeout, allow_redirects=True)
    except RequestException as e:
        raise NetworkError(f"Request to {url} failed: {e}", url=url) from e

    if response.status_code >= 400:
        status = response.status_code
        reason = response.reason or ""
        response.close()
        raise NetworkError(
            f"GET {url} returned HTTP {status} {reason}".rstrip(),
            url=url,
            status_code=status,
        )

    return response


class ResponseStream(io.RawIOBase):
    """Forward-only raw reader over a streaming response body."""

    def __init__(self, response: requests.Response, chunk_size: int = CHUNK_SIZE):
        self._url = response.url
        self._chunks = response.iter_content(chunk_size=chunk_size)
        self._pending = memoryview(b"")

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        while not self._pending:
            try:
                chunk = next(self._chunks)
            except StopIteration:
                return 0
            except RequestException as e:
                raise NetworkError(f"Reading {self._url} failed: {e}", url=self._url) from e
            self._pending = memoryview(chunk)

        count = min(len(buffer), len(self._pending))
        buffer[:count] = self._pending[:count]
        self._pending = self._pending[count:]
        return count


def body_reader(response: requests.Response) -> io.BufferedReader:
    """Wrap a response body as a buffered binary file object."""
    return io.BufferedReader(ResponseStream(response), buffer_size=CHUNK_SIZE)


class StreamingHasher:
    """Compute a SHA-256 digest incrementally for streaming downloads."""

    def __init__(self):
        self.hasher = hashlib.sha256()

    def update(self, data: bytes):
        """Add data to hash computation."""
        self.hasher.update(data)

    def finalize(self) -> str:
        """Get final hash value as hex string."""
        return self.hasher.hexdigest()

    def verify(self, expected_hash: str) -> bool:
        """Check if computed hash matches expected value (case-insensitive)."""
        return self.finalize().lower() == expected_hash.strip().lower()


class HashingReader(io.RawIOBase):
    """Raw reader that feeds every byte it passes through into a hasher."""

    def __init__(self, source, hasher: StreamingHasher):
        self._source = source
        self._hasher = hasher
        self.bytes_read = 0

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        data = self._source.read(len(buffer))
        if not data:
            return 0
        count = len(data)
        buffer[:count] = data
        self._hasher.update(data)
        self.bytes_read += count
        return count


class IntegrityCheck:
    """
    Opt-in verification of an artifact against the digest and size in the index.

    Example:
        >>> check = IntegrityCheck(resource.checksum_hex, resource.declared_size_bytes)
        >>> stream = check.wrap(stream)
        >>> ...  # consume stream
        >>> check.verify(stream)
    """

    def __init__(self, expected_sha256: str, expected_size: Optional[int] = None):
        self.expected_sha256 = expected_sha256
        self.expected_size = expected_size
        self._hasher = StreamingHasher()
        self._reader: Optional[HashingReader] = None

    def wrap(self, stream) -> io.BufferedReader:
        """Return a reader over ``stream`` that hashes everything read from it."""
        self._reader = HashingReader(stream, self._hasher)
        return io.BufferedReader(self._reader, buffer_size=CHUNK_SIZE)

    def verify(self, wrapped) -> None:
        """
        Drain what is left of ``wrapped`` and compare digest and size.

        Raises:
            ChecksumError: If the digest or byte count does not match
        """
        while wrapped.read(CHUNK_SIZE):
            pass

        size = self._reader.bytes_read if self._reader else 0
        if self.expected_size is not None and size != self.expected_size:
            raise ChecksumError(
                f"Size mismatch: expected {self.expected_size} bytes, got {size}"
            )

        if not self._hasher.verify(self.expected_sha256):
            raise ChecksumError(
                f"Checksum mismatch: expected {self.expected_sha256}, "
                f"got {self._hasher.finalize()}"
            )
        logger.info("Checksum verified successfully")
