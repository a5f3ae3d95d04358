"""
End-to-end toolchain update.

Runs the pipeline in order: resolve the requested release from the index,
check the active entry point, then reuse or download an extraction and point
the entry point at it. Every step is blocking and sequential.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from zigsync.config.parser import UpdaterConfig
from zigsync.core.context import RunContext
from zigsync.core.exceptions import FilesystemError
from zigsync.core.platform import entry_point_name
from zigsync.toolchain.extractor import ArchiveExtractor
from zigsync.toolchain.fetcher import ArtifactFetcher
from zigsync.toolchain.index import IndexResolver, ResolvedTarget
from zigsync.toolchain.installer import InstallSwapper
from zigsync.toolchain.verifier import needs_update

logger = logging.getLogger(__name__)


@dataclass
class UpdateResult:
    """Outcome of an update run."""

    target: ResolvedTarget
    """Release the run resolved"""

    entry_point: Path
    """Entry point managed by the run"""

    updated: bool
    """Whether the entry point was (re)linked"""

    toolchain_path: Optional[Path] = None
    """Directory the entry point now refers to, if it was linked"""

    reused: bool = False
    """Whether a prior extraction was reused instead of downloading"""


class ZigUpdater:
    """
    Keeps the entry point in an install directory on the requested release.

    Example:
        >>> with RunContext() as ctx:
        ...     result = ZigUpdater(ctx, load_config()).update("master", "x86_64-linux")
        >>> result.updated
        True
    """

    def __init__(self, context: RunContext, config: UpdaterConfig):
        self.context = context
        self.config = config
        self.resolver = IndexResolver(context.session, config.index_url, context.timeout)
        self.fetcher = ArtifactFetcher(context.session, context.timeout)
        self.extractor = ArchiveExtractor()

    def update(
        self,
        version_alias: str,
        platform_key: str,
        install_dir: Optional[Path] = None,
    ) -> UpdateResult:
        """
        Bring ``install_dir`` up to date with ``version_alias``.

        Raises:
            ZigSyncError: Any pipeline failure, unrecovered
        """
        install_dir = Path(install_dir) if install_dir else self.config.resolve_install_dir()
        target = self.resolver.resolve(version_alias, platform_key)

        entry_point = install_dir / entry_point_name(platform_key)
        if not needs_update(entry_point, target.canonical_version):
            logger.info("Zig is up-to-date.")
            return UpdateResult(target=target, entry_point=entry_point, updated=False)

        try:
            install_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"Cannot create install directory {install_dir}: {e}") from e

        swapper = InstallSwapper(
            self.fetcher,
            self.extractor,
            platform_key,
            verify_checksum=self.config.verify_checksum,
        )
        extracted = swapper.reconcile(target, install_dir)

        logger.info("Successfully updated zig!")
        return UpdateResult(
            target=target,
            entry_point=entry_point,
            updated=True,
            toolchain_path=extracted.path,
            reused=extracted.reused,
        )
