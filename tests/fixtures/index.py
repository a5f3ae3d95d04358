"""Release index fixtures.

A trimmed-down copy of the shape of ziglang.org/download/index.json.
"""

import json

import pytest

INDEX_URL = "https://ziglang.org/download/index.json"
DOWNLOAD_BASE = "https://ziglang.org/builds"


def resource(filename: str, shasum: str = "ab" * 32, size: int = 1024) -> dict:
    return {
        "tarball": f"{DOWNLOAD_BASE}/{filename}",
        "shasum": shasum,
        "size": str(size),
    }


SAMPLE_INDEX = {
    "master": {
        "version": "0.15.0-dev.1034+bd97b6618",
        "date": "2025-07-01",
        "docs": "https://ziglang.org/documentation/master/",
        "src": resource("zig-0.15.0-dev.1034+bd97b6618.tar.xz"),
        "x86_64-linux": resource("zig-x86_64-linux-0.15.0-dev.1034+bd97b6618.tar.xz"),
        "aarch64-macos": resource("zig-aarch64-macos-0.15.0-dev.1034+bd97b6618.tar.xz"),
        "x86_64-windows": resource("zig-x86_64-windows-0.15.0-dev.1034+bd97b6618.zip"),
    },
    "0.14.1": {
        "date": "2025-05-21",
        "notes": "https://ziglang.org/download/0.14.1/release-notes.html",
        "bootstrap": resource("zig-bootstrap-0.14.1.tar.xz"),
        "x86_64-linux": resource("zig-x86_64-linux-0.14.1.tar.xz", size=49086504),
        "x86_64-windows": resource("zig-x86_64-windows-0.14.1.zip"),
    },
    "0.13.0": {
        "date": "2024-06-07",
        "x86_64-linux": resource("zig-linux-x86_64-0.13.0.tar.xz"),
    },
}


def index_bytes(document=None) -> bytes:
    return json.dumps(SAMPLE_INDEX if document is None else document).encode()


@pytest.fixture
def sample_index() -> dict:
    """Sample index document as a dict (serialize with index_bytes)."""
    return json.loads(index_bytes())
