"""
Centralized exception hierarchy for zigsync.

Every failure the update pipeline can surface derives from ZigSyncError so
the CLI can report it by kind and exit non-zero.
"""

from dataclasses import dataclass
from typing import List


# ============================================================================
# Base Exceptions
# ============================================================================


class ZigSyncError(Exception):
    """Base exception for all zigsync errors."""

    pass


class ConfigError(ZigSyncError):
    """Configuration file or environment value is invalid."""

    pass


# ============================================================================
# Network / Index Exceptions
# ============================================================================


class NetworkError(ZigSyncError):
    """Connection failure or HTTP status in the 4xx/5xx class."""

    def __init__(self, message: str, url: str = "", status_code: int = 0):
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class MalformedIndexError(ZigSyncError):
    """The version index does not have the expected document shape."""

    pass


class IndexLookupError(ZigSyncError, LookupError):
    """Requested version alias or platform key is absent from the index."""

    def __init__(self, version: str, platform_key: str = ""):
        self.version = version
        self.platform_key = platform_key
        if platform_key:
            msg = f"Platform '{platform_key}' not found for version '{version}'"
        else:
            msg = f"Version '{version}' not found in index"
        super().__init__(msg)


# ============================================================================
# Artifact Exceptions
# ============================================================================


class CodecError(ZigSyncError):
    """Archive content type or extension is unrecognized."""

    pass


@dataclass(frozen=True)
class ExtractionFailure:
    """A single problem found while walking an archive."""

    kind: str
    """One of 'unable_to_create_file', 'unable_to_create_symlink', 'unsupported_file_type'"""

    name: str
    """Member name inside the archive"""

    detail: str = ""

    def __str__(self) -> str:
        if self.kind == "unable_to_create_file":
            return f"Unable to create file ({self.detail}): {self.name}"
        if self.kind == "unable_to_create_symlink":
            return f"Unable to create symlink ({self.detail}): {self.name}"
        if self.kind == "unsupported_file_type":
            return f"Unsupported file type: {self.name} type: {self.detail}"
        return f"{self.kind}: {self.name} {self.detail}".rstrip()


class ExtractionError(ZigSyncError):
    """Archive could not be unpacked, or did not contain the expected compiler."""

    def __init__(self, message: str, failures: List[ExtractionFailure] = None):
        self.failures = list(failures or [])
        if self.failures:
            details = "\n".join(f"  {failure}" for failure in self.failures)
            message = f"{message}\n{details}"
        super().__init__(message)


class ChecksumError(ZigSyncError):
    """Downloaded artifact does not match the digest or size from the index."""

    pass


# ============================================================================
# Filesystem / Process Exceptions
# ============================================================================


class FilesystemError(ZigSyncError):
    """Directory or symlink operation failed."""

    pass


class ToolchainExecutionError(ZigSyncError):
    """The installed compiler could not be invoked."""

    pass
