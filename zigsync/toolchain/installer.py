"""
Install reconciliation and entry-point swapping.

Given a resolved release, either reuses a matching extraction that is already
on disk or downloads and unpacks the archive, then points the ``zig`` entry
point in the install directory at the new compiler.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from zigsync.core.download import IntegrityCheck
from zigsync.core.exceptions import ExtractionError, FilesystemError, ZigSyncError
from zigsync.core.filesystem import remove_tree_quietly, replace_symlink
from zigsync.core.platform import entry_point_name
from zigsync.toolchain.codec import extraction_dir_name
from zigsync.toolchain.extractor import ArchiveExtractor, ExtractedDirectory
from zigsync.toolchain.fetcher import ArtifactFetcher
from zigsync.toolchain.index import ResolvedTarget
from zigsync.toolchain.verifier import needs_update

logger = logging.getLogger(__name__)


class InstallSwapper:
    """
    Reconciles the install directory with a resolved release.

    Example:
        >>> swapper = InstallSwapper(fetcher, ArchiveExtractor(), "x86_64-linux")
        >>> result = swapper.reconcile(target, Path("/opt/zig"))
        >>> result.reused
        False
    """

    def __init__(
        self,
        fetcher: ArtifactFetcher,
        extractor: ArchiveExtractor,
        platform_key: str,
        verify_checksum: bool = False,
    ):
        self.fetcher = fetcher
        self.extractor = extractor
        self.platform_key = platform_key
        self.verify_checksum = verify_checksum

    @property
    def entry_point(self) -> str:
        """Compiler executable name for the target platform."""
        return entry_point_name(self.platform_key)

    def reconcile(self, target: ResolvedTarget, destination: Path) -> ExtractedDirectory:
        """
        Make sure an extraction of ``target`` exists under ``destination``.

        Args:
            target: Release resolved from the index
            destination: Install directory

        Returns:
            The reused or freshly extracted toolchain directory, with the
            entry point in ``destination`` already pointing into it

        Raises:
            NetworkError, CodecError: From fetching the archive
            ExtractionError: If unpacking fails or the compiler is missing
            FilesystemError: On disk errors
        """
        destination = Path(destination)

        result = self.existing_extraction(target, destination)
        if result is not None:
            logger.info(f"Reusing existing extraction: {result.path}")
        else:
            result = self._fetch_and_extract(target, destination)

        self.swap_entry_point(result, destination)
        return result

    def _fetch_and_extract(
        self, target: ResolvedTarget, destination: Path
    ) -> ExtractedDirectory:
        resource = target.resource
        with self.fetcher.open_artifact_stream(resource) as artifact:
            dir_name = extraction_dir_name(resource.filename)
            logger.info(f"Downloading and extracting `{resource.filename}`...")

            integrity = None
            if self.verify_checksum:
                integrity = IntegrityCheck(resource.checksum_hex, resource.declared_size_bytes)

            result = self.extractor.extract(
                artifact.codec, artifact.stream, destination, dir_name, integrity
            )

        if not result.entry_point(self.platform_key).is_file():
            raise ExtractionError(
                f"Failed to extract the new Zig compiler: '{self.entry_point}' "
                f"not found in {result.path}"
            )
        return result

    def existing_extraction(
        self, target: ResolvedTarget, destination: Path
    ) -> Optional[ExtractedDirectory]:
        """
        Return a prior extraction of ``target`` if it is already up to date.

        A directory that exists but cannot confirm the resolved version is
        removed (best effort) so the fresh extraction starts clean.
        """
        dir_name = extraction_dir_name(target.resource.filename)
        candidate = destination / dir_name
        if not candidate.is_dir():
            return None

        try:
            binary = (candidate / self.entry_point).resolve(strict=True)
            if not needs_update(binary, target.canonical_version):
                return ExtractedDirectory(path=candidate, reused=True)
            logger.debug(f"Existing extraction {candidate} is out of date")
        except (OSError, ZigSyncError) as e:
            logger.debug(f"Cannot use existing extraction {candidate}: {e}")

        if not remove_tree_quietly(candidate, require_prefix=destination):
            logger.warning(f"Could not remove stale directory: {candidate}")
        return None

    def swap_entry_point(self, extracted: ExtractedDirectory, destination: Path) -> Path:
        """
        Point ``destination/<entry point>`` at the compiler inside ``extracted``.

        Raises:
            FilesystemError: If the binary cannot be resolved or the link replaced
        """
        destination = Path(destination)
        try:
            real_binary = Path(os.path.realpath(extracted.entry_point(self.platform_key)))
        except OSError as e:
            raise FilesystemError(f"Cannot resolve {extracted.path}: {e}") from e

        logger.info(f"Creating symlink at: `{destination}`")
        return replace_symlink(destination / self.entry_point, real_binary)
