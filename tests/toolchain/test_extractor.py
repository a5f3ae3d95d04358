"""
Unit tests for streaming archive extraction.

Tests cover:
- Every tar codec decoded as a stream
- Collected per-entry diagnostics
- Zip spooling and temporary file cleanup
- Opt-in integrity checking
"""

import hashlib
import io
import re
import tarfile

import pytest

from tests.fixtures.archives import (
    Entry,
    build_tar,
    build_zip,
    compress,
    zig_entries,
)
from zigsync.core.download import IntegrityCheck
from zigsync.core.exceptions import ChecksumError, ExtractionError
from zigsync.toolchain.codec import ArchiveCodec
from zigsync.toolchain.extractor import (
    UNABLE_TO_CREATE_FILE,
    UNABLE_TO_CREATE_SYMLINK,
    UNSUPPORTED_FILE_TYPE,
    ArchiveExtractor,
    decompressed,
    temp_zip_name,
    unpack_tarball,
)

DIR_NAME = "zig-x86_64-linux-0.14.1"


def extract(codec, data, destination, dir_name=DIR_NAME, integrity=None):
    return ArchiveExtractor().extract(
        codec, io.BytesIO(data), destination, dir_name, integrity
    )


def temp_zips(directory):
    return sorted(directory.glob("tmp_*.zip"))


# ============================================================================
# Tar
# ============================================================================


class TestTarExtraction:
    """Test extraction of tar-based archives."""

    @pytest.mark.parametrize(
        "codec",
        [ArchiveCodec.TAR, ArchiveCodec.GZIP_TAR, ArchiveCodec.XZ_TAR, ArchiveCodec.ZSTD_TAR],
    )
    def test_each_codec(self, tmp_path, codec):
        data = compress(build_tar(zig_entries(DIR_NAME, "0.14.1")), codec.value)

        result = extract(codec, data, tmp_path)

        assert result.path == tmp_path / DIR_NAME
        assert result.reused is False
        assert (result.path / "lib" / "std" / "std.zig").read_bytes() == b"pub const x = 1;\n"
        assert (result.path / "LICENSE").read_bytes() == b"MIT\n"
        assert result.entry_point("x86_64-linux").is_file()

    @pytest.mark.unix_only
    def test_preserves_executable_bit(self, tmp_path):
        data = build_tar(zig_entries(DIR_NAME, "0.14.1"))

        result = extract(ArchiveCodec.TAR, data, tmp_path)

        assert (result.path / "zig").stat().st_mode & 0o111

    def test_empty_directories_are_skipped(self, tmp_path):
        """Test directory entries alone do not create directories."""
        entries = zig_entries(DIR_NAME, "0.14.1", [Entry(f"{DIR_NAME}/empty/", type=tarfile.DIRTYPE)])

        result = extract(ArchiveCodec.TAR, build_tar(entries), tmp_path)

        assert not (result.path / "empty").exists()

    @pytest.mark.unix_only
    def test_symlink_members(self, tmp_path):
        entries = zig_entries(
            DIR_NAME,
            "0.14.1",
            [Entry(f"{DIR_NAME}/lib/std.zig", type=tarfile.SYMTYPE, linkname="std/std.zig")],
        )

        result = extract(ArchiveCodec.TAR, build_tar(entries), tmp_path)

        link = result.path / "lib" / "std.zig"
        assert link.is_symlink()
        assert link.read_bytes() == b"pub const x = 1;\n"

    def test_device_entries_are_collected(self, tmp_path):
        """Test N files and M unsupported entries give one error with M failures."""
        files = [Entry(f"{DIR_NAME}/file{i}.txt", f"content {i}".encode()) for i in range(5)]
        devices = [
            Entry(f"{DIR_NAME}/dev/tty", type=tarfile.CHRTYPE),
            Entry(f"{DIR_NAME}/dev/sda", type=tarfile.BLKTYPE),
            Entry(f"{DIR_NAME}/dev/pipe", type=tarfile.FIFOTYPE),
        ]
        data = build_tar([files[0], devices[0], *files[1:3], devices[1], *files[3:], devices[2]])

        with pytest.raises(ExtractionError) as exc_info:
            extract(ArchiveCodec.TAR, data, tmp_path)

        failures = exc_info.value.failures
        assert [f.kind for f in failures] == [UNSUPPORTED_FILE_TYPE] * 3
        assert [f.name for f in failures] == [d.name for d in devices]
        assert "character device" in str(exc_info.value)
        for i in range(5):
            assert (tmp_path / DIR_NAME / f"file{i}.txt").read_bytes() == f"content {i}".encode()

    def test_traversal_member_is_reported(self, tmp_path):
        """Test members escaping the destination are refused, not written."""
        entries = zig_entries(DIR_NAME, "0.14.1", [Entry("../escaped.txt", b"evil")])
        destination = tmp_path / "install"

        with pytest.raises(ExtractionError) as exc_info:
            extract(ArchiveCodec.TAR, build_tar(entries), destination)

        assert [f.kind for f in exc_info.value.failures] == [UNABLE_TO_CREATE_FILE]
        assert not (tmp_path / "escaped.txt").exists()
        assert (destination / DIR_NAME / "LICENSE").is_file()

    @pytest.mark.unix_only
    def test_write_through_symlink_is_refused(self, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        entries = [
            Entry(f"{DIR_NAME}/link", type=tarfile.SYMTYPE, linkname=str(outside)),
            Entry(f"{DIR_NAME}/link/evil.txt", b"evil"),
        ]
        destination = tmp_path / "install"

        with pytest.raises(ExtractionError) as exc_info:
            extract(ArchiveCodec.TAR, build_tar(entries), destination)

        assert [f.kind for f in exc_info.value.failures] == [UNABLE_TO_CREATE_FILE]
        assert not (outside / "evil.txt").exists()

    @pytest.mark.unix_only
    def test_symlink_failure_is_collected(self, tmp_path):
        """Test a symlink that cannot be created is reported as such."""
        entries = [
            Entry(f"{DIR_NAME}/blocker", b"file"),
            Entry(f"{DIR_NAME}/blocker/link", type=tarfile.SYMTYPE, linkname="x"),
        ]

        with pytest.raises(ExtractionError) as exc_info:
            extract(ArchiveCodec.TAR, build_tar(entries), tmp_path)

        assert [f.kind for f in exc_info.value.failures] == [UNABLE_TO_CREATE_SYMLINK]

    @pytest.mark.parametrize(
        "codec", [ArchiveCodec.GZIP_TAR, ArchiveCodec.XZ_TAR, ArchiveCodec.ZSTD_TAR]
    )
    def test_corrupt_stream(self, tmp_path, codec):
        with pytest.raises(ExtractionError):
            extract(codec, b"this is not compressed data" * 10, tmp_path)

    def test_missing_top_level_directory(self, tmp_path):
        data = build_tar([Entry("other/zig", b"x")])

        with pytest.raises(ExtractionError, match="expected directory"):
            extract(ArchiveCodec.TAR, data, tmp_path)

    def test_unpack_tarball_appends_to_diagnostics(self, tmp_path):
        diagnostics = []
        data = build_tar([Entry("a/fifo", type=tarfile.FIFOTYPE), Entry("a/b", b"b")])

        unpack_tarball(io.BytesIO(data), tmp_path, diagnostics)

        assert len(diagnostics) == 1
        assert (tmp_path / "a" / "b").read_bytes() == b"b"


class TestDecompressed:
    """Test decompressed context manager."""

    def test_zip_is_not_streamable(self):
        with pytest.raises(ValueError, match="zip"):
            with decompressed(ArchiveCodec.ZIP, io.BytesIO()):
                pass

    def test_zstd_multiple_frames(self):
        """Test concatenated zstd frames decode as one stream."""
        data = compress(b"first ", "tar.zst") + compress(b"second", "tar.zst")

        with decompressed(ArchiveCodec.ZSTD_TAR, io.BytesIO(data)) as stream:
            assert stream.read() == b"first second"


# ============================================================================
# Zip
# ============================================================================


class TestZipExtraction:
    """Test zip spooling and extraction."""

    def test_extracts_and_removes_spool_file(self, tmp_path):
        dir_name = "zig-x86_64-windows-0.14.1"
        data = build_zip(zig_entries(dir_name, "0.14.1"))

        result = extract(ArchiveCodec.ZIP, data, tmp_path, dir_name)

        assert (result.path / "lib" / "std" / "std.zig").is_file()
        assert temp_zips(tmp_path) == []

    def test_backslash_separators(self, tmp_path):
        dir_name = "zig-x86_64-windows-0.14.1"
        data = build_zip(zig_entries(dir_name, "0.14.1"), separator="\\")

        result = extract(ArchiveCodec.ZIP, data, tmp_path, dir_name)

        assert (result.path / "lib" / "std" / "std.zig").read_bytes() == b"pub const x = 1;\n"
        assert temp_zips(tmp_path) == []

    def test_invalid_zip_removes_spool_file(self, tmp_path):
        with pytest.raises(ExtractionError):
            extract(ArchiveCodec.ZIP, b"not a zip archive", tmp_path, "zig")

        assert temp_zips(tmp_path) == []

    def test_traversal_is_rejected(self, tmp_path):
        destination = tmp_path / "install"
        data = build_zip([Entry("../evil.txt", b"evil")])

        with pytest.raises(ExtractionError, match="traversal"):
            extract(ArchiveCodec.ZIP, data, destination, "zig")

        assert not (tmp_path / "evil.txt").exists()
        assert temp_zips(destination) == []

    def test_temp_zip_name(self):
        names = {temp_zip_name() for _ in range(50)}

        assert len(names) == 50
        for name in names:
            assert re.fullmatch(r"tmp_[A-Za-z0-9_-]{27}\.zip", name)


# ============================================================================
# Integrity
# ============================================================================


class TestIntegrity:
    """Test optional digest and size verification during extraction."""

    @pytest.mark.parametrize("codec", [ArchiveCodec.XZ_TAR, ArchiveCodec.ZIP])
    def test_matching_digest(self, tmp_path, codec):
        entries = zig_entries(DIR_NAME, "0.14.1")
        data = build_zip(entries) if codec is ArchiveCodec.ZIP else compress(build_tar(entries), codec.value)
        check = IntegrityCheck(hashlib.sha256(data).hexdigest(), len(data))

        result = extract(codec, data, tmp_path, integrity=check)

        assert result.path.is_dir()

    def test_mismatch_removes_extraction(self, tmp_path):
        data = compress(build_tar(zig_entries(DIR_NAME, "0.14.1")), "tar.gz")
        check = IntegrityCheck("0" * 64, len(data))

        with pytest.raises(ChecksumError):
            extract(ArchiveCodec.GZIP_TAR, data, tmp_path, integrity=check)

        assert not (tmp_path / DIR_NAME).exists()
