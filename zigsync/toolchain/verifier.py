"""
Installed compiler version checks.

Asks an installed ``zig`` binary for its version and decides whether it
already matches the version resolved from the index. A missing binary is the
normal first-run case and simply means an update is needed.
"""

import logging
import subprocess
from pathlib import Path
from typing import Optional, Union

from zigsync.core.exceptions import ToolchainExecutionError

logger = logging.getLogger(__name__)

VERSION_ARGUMENT = "version"


def query_version(executable: Union[str, Path]) -> Optional[str]:
    """
    Run ``<executable> version`` and return its trimmed standard output.

    Args:
        executable: Path to the binary, or a bare name looked up on PATH

    Undecodable output bytes are replaced rather than rejected, so such a
    binary simply reports a version that matches nothing.

    Returns:
        Reported version, or None if the executable does not exist or
        exits with a non-zero status

    Raises:
        ToolchainExecutionError: If the process cannot be started for any
            other reason (permissions, bad format, ...)
    """
    try:
        result = subprocess.run(
            [str(executable), VERSION_ARGUMENT],
            capture_output=True,
            text=True,
            errors="replace",
        )
    except FileNotFoundError:
        logger.debug(f"Executable not found: {executable}")
        return None
    except OSError as e:
        raise ToolchainExecutionError(f"Failed to run '{executable}': {e}") from e

    if result.returncode != 0:
        logger.warning(
            f"'{executable} {VERSION_ARGUMENT}' exited with code {result.returncode}: "
            f"{result.stderr.strip()}"
        )
        return None

    return result.stdout.strip()


def needs_update(executable: Union[str, Path], resolved_version: str) -> bool:
    """
    Decide whether the compiler at ``executable`` must be replaced.

    The reported and resolved versions are compared after trimming
    surrounding whitespace, ignoring case.

    Returns:
        True if the executable is missing or reports a different version

    Example:
        >>> needs_update("zig", "0.14.1")
        False
    """
    current = query_version(executable)
    if current is None:
        return True

    logger.debug(f"Local version of {executable}: {current}")
    return current.casefold() != resolved_version.strip().casefold()
