"""
End-to-end tests for ZigUpdater over mocked HTTP.
"""

import pytest
import responses

from tests.fixtures.index import INDEX_URL, SAMPLE_INDEX, index_bytes, resource
from zigsync.config.parser import UpdaterConfig
from zigsync.core.context import RunContext
from zigsync.core.exceptions import IndexLookupError, NetworkError
from zigsync.toolchain.updater import ZigUpdater
from zigsync.toolchain.verifier import needs_update

pytestmark = pytest.mark.unix_only

MASTER_VERSION = "0.15.0-dev.1034+bd97b6618"
MASTER_DIR = f"zig-x86_64-linux-{MASTER_VERSION}"


@pytest.fixture
def updater(session, install_dir):
    with RunContext(session=session) as ctx:
        yield ZigUpdater(ctx, UpdaterConfig(install_dir=install_dir))


@pytest.fixture
def serve_master(zig_tarball):
    """Register the index and the master Linux archive."""

    def _serve():
        responses.add(responses.GET, INDEX_URL, body=index_bytes())
        responses.add(
            responses.GET,
            SAMPLE_INDEX["master"]["x86_64-linux"]["tarball"],
            body=zig_tarball(MASTER_DIR, MASTER_VERSION),
            content_type="application/x-xz",
        )

    return _serve


class TestZigUpdater:
    """Test the complete update pipeline."""

    @responses.activate
    def test_fresh_install(self, updater, install_dir, serve_master):
        serve_master()

        result = updater.update("master", "x86_64-linux")

        assert result.updated is True
        assert result.reused is False
        assert result.target.canonical_version == MASTER_VERSION
        assert result.entry_point == install_dir / "zig"
        assert result.toolchain_path == install_dir / MASTER_DIR
        assert needs_update(install_dir / "zig", MASTER_VERSION) is False

    @responses.activate
    def test_second_run_is_up_to_date(self, updater, install_dir, serve_master):
        """Test a repeated run only fetches the index."""
        serve_master()
        updater.update("master", "x86_64-linux")

        result = updater.update("MASTER", "X86_64-LINUX")

        assert result.updated is False
        assert [call.request.url for call in responses.calls][-1] == INDEX_URL
        assert len(responses.calls) == 3

    @responses.activate
    def test_matching_entry_point_skips_download(self, updater, install_dir, make_fake_zig):
        responses.add(responses.GET, INDEX_URL, body=index_bytes())
        make_fake_zig(install_dir / "zig", "0.14.1")

        result = updater.update("0.14.1", "x86_64-linux")

        assert result.updated is False
        assert len(responses.calls) == 1

    @responses.activate
    def test_relinks_existing_extraction(self, updater, install_dir, make_fake_zig):
        """Test a matching extraction on disk is relinked without downloading."""
        responses.add(responses.GET, INDEX_URL, body=index_bytes())
        make_fake_zig(install_dir / MASTER_DIR / "zig", MASTER_VERSION)
        make_fake_zig(install_dir / "zig", "0.13.0")

        result = updater.update("master", "x86_64-linux")

        assert result.updated is True
        assert result.reused is True
        assert len(responses.calls) == 1
        assert (install_dir / "zig").is_symlink()

    @responses.activate
    def test_creates_missing_install_dir(self, session, tmp_path, serve_master):
        serve_master()
        install_dir = tmp_path / "new" / "zig"

        with RunContext(session=session) as ctx:
            ZigUpdater(ctx, UpdaterConfig()).update("master", "x86_64-linux", install_dir)

        assert (install_dir / "zig").is_symlink()

    @responses.activate
    def test_unknown_version(self, updater, install_dir):
        responses.add(responses.GET, INDEX_URL, body=index_bytes())

        with pytest.raises(IndexLookupError):
            updater.update("9.9.9", "x86_64-linux")

        assert list(install_dir.iterdir()) == []

    @responses.activate
    def test_missing_archive(self, updater, install_dir):
        document = {"master": {"version": "1.0.0", "x86_64-linux": resource("zig-1.0.0.tar.xz")}}
        responses.add(responses.GET, INDEX_URL, body=index_bytes(document))
        responses.add(responses.GET, document["master"]["x86_64-linux"]["tarball"], status=404)

        with pytest.raises(NetworkError):
            updater.update("master", "x86_64-linux")

        assert not (install_dir / "zig").exists()
