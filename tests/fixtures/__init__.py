"""Test fixtures for zigsync tests.

- archives: in-memory tar/zip builders and a fake `zig` executable
- index: a sample release index document
"""

__all__ = [
    "archives",
    "index",
]
