"""
zigsync - keep a local Zig toolchain in sync with the upstream release index.
"""

__version__ = "0.1.0"
