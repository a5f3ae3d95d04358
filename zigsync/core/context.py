"""
Per-run resource ownership.

A RunContext owns the HTTP session shared by every request of one update run
and closes it when the run ends, whichever way it ends. Responses, archive
streams and temporary files are still scoped individually by the code that
opens them.
"""

import logging
from typing import Optional

import requests

from zigsync import __version__

logger = logging.getLogger(__name__)


def create_session() -> requests.Session:
    """Create the HTTP session used for index and artifact requests."""
    session = requests.Session()
    session.headers["User-Agent"] = f"zigsync/{__version__}"
    return session


class RunContext:
    """
    Owns the transient resources of a single run.

    Example:
        >>> with RunContext(timeout=30) as ctx:
        ...     resolver = IndexResolver(ctx.session, timeout=ctx.timeout)
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ):
        self._owns_session = session is None
        self.session = session or create_session()
        self.timeout = timeout

    def close(self) -> None:
        """Close the session if this context created it."""
        if self._owns_session:
            self.session.close()
            logger.debug("Closed HTTP session")

    def __enter__(self) -> "RunContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
