"""
Core utilities for zigsync.

Provides the exception hierarchy, platform detection, streaming HTTP
primitives, filesystem helpers and per-run resource ownership used by the
update pipeline.
"""

from zigsync.core.exceptions import (
    ZigSyncError,
    ConfigError,
    NetworkError,
    MalformedIndexError,
    IndexLookupError,
    CodecError,
    ExtractionError,
    ExtractionFailure,
    ChecksumError,
    FilesystemError,
    ToolchainExecutionError,
)
from zigsync.core.platform import (
    PlatformInfo,
    detect_platform,
    host_platform_key,
    entry_point_name,
    is_windows_target,
)

__all__ = [
    # Exceptions
    "ZigSyncError",
    "ConfigError",
    "NetworkError",
    "MalformedIndexError",
    "IndexLookupError",
    "CodecError",
    "ExtractionError",
    "ExtractionFailure",
    "ChecksumError",
    "FilesystemError",
    "ToolchainExecutionError",
    # Platform
    "PlatformInfo",
    "detect_platform",
    "host_platform_key",
    "entry_point_name",
    "is_windows_target",
]
