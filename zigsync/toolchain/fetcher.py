"""
Release artifact retrieval.

Opens a streaming response for a release archive and works out its codec from
the response headers and the request path, leaving the body untouched so the
extractor can consume it directly.
"""

import logging
from dataclasses import dataclass, field
from typing import BinaryIO, Optional

import requests

from zigsync.core.download import body_reader, open_response
from zigsync.core.exceptions import CodecError
from zigsync.toolchain.codec import ArchiveCodec, detect_codec
from zigsync.toolchain.index import ResourceDescriptor

logger = logging.getLogger(__name__)


@dataclass
class FetchedArtifact:
    """An open release download whose codec is known and body is unread."""

    resource: ResourceDescriptor
    """What was requested"""

    codec: ArchiveCodec
    """Detected archive codec"""

    stream: BinaryIO
    """Forward-only reader over the response body"""

    response: requests.Response = field(repr=False)

    def close(self) -> None:
        self.response.close()

    def __enter__(self) -> "FetchedArtifact":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class ArtifactFetcher:
    """
    Opens release archives for streaming extraction.

    Example:
        >>> fetcher = ArtifactFetcher(requests.Session())
        >>> with fetcher.open_artifact_stream(target.resource) as artifact:
        ...     print(artifact.codec)
    """

    def __init__(self, session: requests.Session, timeout: Optional[float] = None):
        self.session = session
        self.timeout = timeout

    def open_artifact_stream(self, resource: ResourceDescriptor) -> FetchedArtifact:
        """
        Start downloading ``resource`` and detect its codec.

        The caller owns the returned artifact and must close it (it is a
        context manager).

        Raises:
            NetworkError: On connection failure or a 4xx/5xx status
            CodecError: If the archive format cannot be determined
        """
        response = open_response(self.session, resource.archive_url, self.timeout)

        try:
            codec = detect_codec(response.headers, resource.url_path)
        except CodecError:
            response.close()
            raise

        logger.debug(f"{resource.filename}: detected {codec.value} archive")
        return FetchedArtifact(
            resource=resource,
            codec=codec,
            stream=body_reader(response),
            response=response,
        )
