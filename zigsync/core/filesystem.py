"""
File system utilities for zigsync.

This module provides the disk operations the installer relies on:
- Path containment checks for archive members
- Safe directory removal, strict and best-effort
- Replacing the compiler entry-point symlink
"""

import logging
import os
import shutil
import stat
from pathlib import Path
from typing import Optional, Union

from zigsync.core.exceptions import FilesystemError

logger = logging.getLogger(__name__)

IS_WINDOWS = os.name == "nt"


# ============================================================================
# Path Utilities
# ============================================================================


def is_relative_to(path: Path, parent: Path) -> bool:
    """
    Check if a path is relative to (inside) another path.

    Example:
        >>> is_relative_to(Path('/home/user/file'), Path('/home'))
        True
        >>> is_relative_to(Path('/etc/passwd'), Path('/home'))
        False
    """
    try:
        path.relative_to(parent)
        return True
    except ValueError:
        return False


def member_destination(destination: Path, member_name: str) -> Optional[Path]:
    """
    Map an archive member name onto a path under ``destination``.

    Returns None if the member would land outside the destination
    (absolute names, '..' traversal) or names the destination itself.
    """
    name = member_name.replace("\\", "/")
    if name.startswith("/") or (len(name) > 1 and name[1] == ":"):
        return None

    parts = [part for part in name.split("/") if part not in ("", ".")]
    if not parts or ".." in parts:
        return None

    target = destination.joinpath(*parts)
    if not is_relative_to(Path(os.path.abspath(target)), Path(os.path.abspath(destination))):
        return None
    return target


# ============================================================================
# Safe File Operations
# ============================================================================


def safe_rmtree(
    path: Union[str, Path], require_prefix: Optional[Union[str, Path]] = None
) -> None:
    """
    Safely remove a directory tree with safeguards.

    Args:
        path: Directory to remove
        require_prefix: If specified, path must be under this directory

    Raises:
        ValueError: If path is not under require_prefix
        FilesystemError: If deletion fails
    """
    path = Path(os.path.abspath(path))

    if require_prefix is not None:
        require_prefix = Path(os.path.abspath(require_prefix))
        if not is_relative_to(path, require_prefix) or path == require_prefix:
            raise ValueError(
                f"Refusing to delete '{path}': not under required prefix '{require_prefix}'"
            )

    if not path.exists() and not path.is_symlink():
        return  # Already gone, nothing to do

    if path.is_symlink() or not path.is_dir():
        raise FilesystemError(f"Path is not a directory: {path}")

    def handle_remove_readonly(func, failed_path, exc_info):
        """Retry once after clearing the read-only bit."""
        if not os.access(failed_path, os.W_OK):
            os.chmod(failed_path, stat.S_IWUSR | stat.S_IRUSR | stat.S_IXUSR)
            func(failed_path)
        else:
            raise exc_info[1]

    try:
        shutil.rmtree(path, onerror=handle_remove_readonly)
    except Exception as e:
        raise FilesystemError(f"Failed to remove directory '{path}': {e}") from e


def remove_tree_quietly(path: Path, require_prefix: Optional[Path] = None) -> bool:
    """
    Best-effort removal of a directory tree.

    Returns:
        True if the directory is gone afterwards
    """
    try:
        safe_rmtree(path, require_prefix=require_prefix)
        return True
    except (FilesystemError, ValueError) as e:
        logger.debug(f"Ignoring failure to remove {path}: {e}")
        return False


def remove_file_quietly(path: Path) -> None:
    """Best-effort removal of a single file; absence and errors are ignored."""
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.debug(f"Ignoring failure to remove {path}: {e}")


# ============================================================================
# Entry Point Link
# ============================================================================


def replace_symlink(link_path: Path, target_path: Path) -> Path:
    """
    Point ``link_path`` at ``target_path``, replacing whatever was there.

    The existing file or link is deleted first and the new link created
    afterwards, so a concurrent reader can briefly observe no entry point.

    Args:
        link_path: Path of the link to (re)create
        target_path: Real path the link should point to

    Returns:
        The created link path

    Raises:
        FilesystemError: If deleting the old entry or creating the link fails
    """
    try:
        link_path.unlink()
        logger.debug(f"Removed previous entry point: {link_path}")
    except FileNotFoundError:
        pass
    except OSError as e:
        raise FilesystemError(f"Failed to remove existing entry point '{link_path}': {e}") from e

    try:
        os.symlink(target_path, link_path)
    except OSError as e:
        raise FilesystemError(
            f"Failed to create symlink {link_path} -> {target_path}: {e}"
        ) from e

    logger.debug(f"Created symlink: {link_path} -> {target_path}")
    return link_path


__all__ = [
    "IS_WINDOWS",
    "is_relative_to",
    "member_destination",
    "safe_rmtree",
    "remove_tree_quietly",
    "remove_file_quietly",
    "replace_symlink",
]
