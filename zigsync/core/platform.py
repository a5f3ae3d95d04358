"""
Platform detection for zigsync.

Release indexes key their artifacts by an ``<arch>-<os>`` pair using Zig's own
names (e.g. 'x86_64-linux', 'aarch64-macos'). This module maps the running
host onto that naming and decides the name of the compiler entry point.

Usage:
    from zigsync.core.platform import host_platform_key, entry_point_name

    key = host_platform_key()          # 'x86_64-linux'
    exe = entry_point_name(key)        # 'zig'
"""

import functools
import platform
from dataclasses import dataclass


@dataclass(frozen=True)
class PlatformInfo:
    """
    Host platform in release-index naming.

    Attributes:
        os: Operating system ('linux', 'macos', 'windows', 'freebsd', ...)
        arch: CPU architecture ('x86_64', 'aarch64', 'x86', 'arm', ...)
    """

    os: str
    arch: str

    def platform_key(self) -> str:
        """
        Get the index platform key.

        Example:
            >>> PlatformInfo('linux', 'x86_64').platform_key()
            'x86_64-linux'
        """
        return f"{self.arch}-{self.os}"


@functools.lru_cache(maxsize=1)
def detect_platform() -> PlatformInfo:
    """
    Detect current platform information.

    This function is cached - it only runs detection once per process.
    """
    return PlatformInfo(os=_detect_os(), arch=_detect_architecture())


def host_platform_key() -> str:
    """Platform key of the running host, e.g. 'x86_64-linux'."""
    return detect_platform().platform_key()


def is_windows_target(platform_key: str) -> bool:
    """True if the platform key names a Windows target (case-insensitive)."""
    return "windows" in platform_key.lower()


def entry_point_name(platform_key: str) -> str:
    """Name of the compiler executable for a platform key."""
    return "zig.exe" if is_windows_target(platform_key) else "zig"


def _detect_os() -> str:
    """
    Detect operating system.

    Returns:
        Normalized OS name: 'windows', 'linux', 'macos', 'freebsd', ...
    """
    system = platform.system().lower()

    if system == "windows":
        return "windows"
    elif system == "darwin":
        return "macos"
    elif system.startswith(("cygwin", "msys", "mingw")):
        return "windows"
    # linux, freebsd, netbsd, openbsd, dragonfly share Zig's spelling
    return system


def _detect_architecture() -> str:
    """
    Detect CPU architecture.

    Returns:
        Zig architecture name: 'x86_64', 'aarch64', 'x86', 'arm', ...
    """
    machine = platform.machine().lower()

    if machine in ("x86_64", "amd64", "x64"):
        return "x86_64"
    elif machine in ("aarch64", "arm64"):
        return "aarch64"
    elif machine in ("i386", "i486", "i586", "i686", "x86"):
        return "x86"
    elif machine.startswith("arm"):
        return "arm"
    elif machine in ("ppc64le", "powerpc64le"):
        return "powerpc64le"
    elif machine in ("loongarch64", "riscv64", "s390x"):
        return machine
    # Unknown architectures pass through unchanged
    return machine
