"""
Toolchain update pipeline for zigsync.

This module provides functionality for:
- Resolving releases from the upstream version index
- Checking the version of an installed compiler
- Downloading release archives and detecting their codec
- Streaming archive extraction
- Reusing prior extractions and swapping the entry point
"""

from zigsync.toolchain.codec import (
    ArchiveCodec,
    detect_codec,
    extraction_dir_name,
)
from zigsync.toolchain.extractor import ArchiveExtractor, ExtractedDirectory
from zigsync.toolchain.fetcher import ArtifactFetcher, FetchedArtifact
from zigsync.toolchain.index import (
    IndexResolver,
    ResolvedTarget,
    ResourceDescriptor,
    resolve_from_stream,
)
from zigsync.toolchain.installer import InstallSwapper
from zigsync.toolchain.updater import UpdateResult, ZigUpdater
from zigsync.toolchain.verifier import needs_update, query_version

__all__ = [
    # Index
    "IndexResolver",
    "ResolvedTarget",
    "ResourceDescriptor",
    "resolve_from_stream",
    # Version check
    "needs_update",
    "query_version",
    # Fetch
    "ArchiveCodec",
    "ArtifactFetcher",
    "FetchedArtifact",
    "detect_codec",
    "extraction_dir_name",
    # Extract / install
    "ArchiveExtractor",
    "ExtractedDirectory",
    "InstallSwapper",
    # Pipeline
    "UpdateResult",
    "ZigUpdater",
]
