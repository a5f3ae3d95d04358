"""
Pytest configuration and shared fixtures for zigsync tests.
"""

import os
import stat
from pathlib import Path

import pytest
import requests

# ruff: noqa: F401
from tests.fixtures.archives import zig_tarball, fake_zig_script
from tests.fixtures.index import sample_index

IS_WINDOWS = os.name == "nt"


def pytest_collection_modifyitems(config, items):
    """Skip POSIX-only tests on Windows."""
    if not IS_WINDOWS:
        return
    skip_unix = pytest.mark.skip(reason="requires POSIX symlinks and shell scripts")
    for item in items:
        if "unix_only" in item.keywords:
            item.add_marker(skip_unix)


@pytest.fixture
def session():
    """HTTP session closed after the test."""
    with requests.Session() as s:
        yield s


@pytest.fixture
def install_dir(tmp_path) -> Path:
    """Empty install directory."""
    path = tmp_path / "install"
    path.mkdir()
    return path


@pytest.fixture
def make_fake_zig():
    """Factory: write an executable that reports a given version."""

    def _make(path: Path, version: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(fake_zig_script(version))
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return _make
