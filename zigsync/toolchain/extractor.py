"""
Streaming archive extraction.

Tar-based archives are decoded on the fly: the download stream is wrapped in
the codec's decompressor and fed to tarfile in forward-only stream mode, so
nothing is written to disk except the extracted files themselves.

Zip needs random access to its central directory, so it is spooled to a
uniquely named temporary file next to the destination first and extracted
from there.

Tar extraction does not stop at the first bad entry. Every problem is
collected and reported together once the whole archive has been walked.
"""

import base64
import contextlib
import gzip
import logging
import lzma
import os
import secrets
import shutil
import stat
import tarfile
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, Dict, List, Optional

import zstandard

from zigsync.core.download import CHUNK_SIZE, IntegrityCheck
from zigsync.core.exceptions import (
    ChecksumError,
    ExtractionError,
    ExtractionFailure,
    FilesystemError,
)
from zigsync.core.filesystem import (
    IS_WINDOWS,
    is_relative_to,
    member_destination,
    remove_file_quietly,
    remove_tree_quietly,
)
from zigsync.core.platform import entry_point_name
from zigsync.toolchain.codec import ArchiveCodec

logger = logging.getLogger(__name__)

# Largest zstd window the decoder will allocate (8 MiB)
ZSTD_MAX_WINDOW = 1 << 23

TEMP_ZIP_PREFIX = "tmp_"
TEMP_ZIP_SUFFIX = ".zip"
TEMP_ZIP_RANDOM_BYTES = 20

UNABLE_TO_CREATE_FILE = "unable_to_create_file"
UNABLE_TO_CREATE_SYMLINK = "unable_to_create_symlink"
UNSUPPORTED_FILE_TYPE = "unsupported_file_type"

_TAR_TYPE_NAMES = {
    tarfile.LNKTYPE: "hard link",
    tarfile.CHRTYPE: "character device",
    tarfile.BLKTYPE: "block device",
    tarfile.FIFOTYPE: "fifo",
}


@dataclass
class ExtractedDirectory:
    """Handle to an unpacked toolchain directory."""

    path: Path
    """Directory containing the toolchain"""

    reused: bool = False
    """Whether an existing extraction was kept instead of downloading"""

    def entry_point(self, platform_key: str) -> Path:
        """Path of the compiler binary inside this directory."""
        return self.path / entry_point_name(platform_key)


# ============================================================================
# Decompression
# ============================================================================


def _identity(stream: BinaryIO) -> BinaryIO:
    return stream


def _gzip(stream: BinaryIO) -> BinaryIO:
    return gzip.GzipFile(fileobj=stream, mode="rb")


def _xz(stream: BinaryIO) -> BinaryIO:
    return lzma.LZMAFile(stream, mode="rb")


def _zstd(stream: BinaryIO) -> BinaryIO:
    decompressor = zstandard.ZstdDecompressor(max_window_size=ZSTD_MAX_WINDOW)
    return decompressor.stream_reader(
        stream, read_size=CHUNK_SIZE, read_across_frames=True, closefd=False
    )


DECOMPRESSORS: Dict[ArchiveCodec, Callable[[BinaryIO], BinaryIO]] = {
    ArchiveCodec.TAR: _identity,
    ArchiveCodec.GZIP_TAR: _gzip,
    ArchiveCodec.XZ_TAR: _xz,
    ArchiveCodec.ZSTD_TAR: _zstd,
}

_STREAM_ERRORS = (
    tarfile.TarError,
    EOFError,
    OSError,
    zlib.error,
    lzma.LZMAError,
    zstandard.ZstdError,
)


@contextlib.contextmanager
def decompressed(codec: ArchiveCodec, stream: BinaryIO):
    """
    Wrap ``stream`` in the decompression filter for ``codec``.

    The filter is closed on exit; the underlying stream is left open.
    """
    try:
        factory = DECOMPRESSORS[codec]
    except KeyError:
        raise ValueError(f"{codec.value} archives cannot be decoded as a stream")

    decoded = factory(stream)
    try:
        yield decoded
    finally:
        if decoded is not stream:
            decoded.close()


# ============================================================================
# Tar
# ============================================================================


def unpack_tarball(
    stream: BinaryIO, destination: Path, diagnostics: List[ExtractionFailure]
) -> None:
    """
    Extract a decoded tar stream into ``destination``.

    Directory entries are not created on their own, so empty directories are
    skipped. Per-entry problems are appended to ``diagnostics`` and the walk
    continues; the caller decides what to do with them afterwards.

    Raises:
        ExtractionError: If the tar stream itself is unreadable
    """
    try:
        with tarfile.open(fileobj=stream, mode="r|") as tar:
            for member in tar:
                _unpack_member(tar, member, destination, diagnostics)
    except _STREAM_ERRORS as e:
        raise ExtractionError(f"Failed to read tar stream: {e}", diagnostics) from e


def _unpack_member(
    tar: tarfile.TarFile,
    member: tarfile.TarInfo,
    destination: Path,
    diagnostics: List[ExtractionFailure],
) -> None:
    target = member_destination(destination, member.name)
    if target is None:
        if not member.isdir():
            diagnostics.append(
                ExtractionFailure(UNABLE_TO_CREATE_FILE, member.name, "path escapes destination")
            )
        return

    if member.isdir():
        return

    if member.isreg():
        try:
            _write_member_file(tar, member, target, destination)
        except OSError as e:
            diagnostics.append(
                ExtractionFailure(UNABLE_TO_CREATE_FILE, member.name, e.strerror or str(e))
            )
        return

    if member.issym():
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            if target.is_symlink() or target.is_file():
                target.unlink()
            os.symlink(member.linkname, target)
        except OSError as e:
            diagnostics.append(
                ExtractionFailure(
                    UNABLE_TO_CREATE_SYMLINK,
                    member.name,
                    f"{e.strerror or e}; as {member.linkname}",
                )
            )
        return

    type_name = _TAR_TYPE_NAMES.get(member.type, repr(member.type))
    diagnostics.append(ExtractionFailure(UNSUPPORTED_FILE_TYPE, member.name, type_name))


def _write_member_file(
    tar: tarfile.TarFile, member: tarfile.TarInfo, target: Path, destination: Path
) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)

    # A symlink extracted earlier must not redirect writes outside the tree
    real_parent = Path(os.path.realpath(target.parent))
    if not is_relative_to(real_parent, Path(os.path.realpath(destination))):
        raise OSError(0, "path escapes destination through a symlink")

    if target.is_symlink():
        target.unlink()

    source = tar.extractfile(member)
    with open(target, "wb") as out:
        shutil.copyfileobj(source, out, CHUNK_SIZE)

    if not IS_WINDOWS:
        os.chmod(target, (member.mode & 0o777) | stat.S_IRUSR | stat.S_IWUSR)


# ============================================================================
# Zip
# ============================================================================


def temp_zip_name() -> str:
    """Collision-resistant spool filename, e.g. 'tmp_3q2-...Zw.zip'."""
    token = base64.urlsafe_b64encode(secrets.token_bytes(TEMP_ZIP_RANDOM_BYTES))
    return f"{TEMP_ZIP_PREFIX}{token.rstrip(b'=').decode('ascii')}{TEMP_ZIP_SUFFIX}"


def unzip(stream: BinaryIO, destination: Path) -> None:
    """
    Spool a zip stream to a temporary file in ``destination`` and extract it.

    The temporary file is removed whether or not extraction succeeds;
    failure to remove it is ignored.

    Raises:
        FilesystemError: If the spool file cannot be written
        ExtractionError: If the archive is invalid or a member cannot be written
    """
    zip_path = destination / temp_zip_name()
    try:
        try:
            with open(zip_path, "wb") as spool:
                shutil.copyfileobj(stream, spool, CHUNK_SIZE)
        except OSError as e:
            raise FilesystemError(f"Failed to write {zip_path}: {e}") from e

        _extract_zip(zip_path, destination)
        remove_file_quietly(zip_path)
    finally:
        remove_file_quietly(zip_path)


def _extract_zip(zip_path: Path, destination: Path) -> None:
    try:
        with zipfile.ZipFile(zip_path, "r") as archive:
            for info in archive.infolist():
                # Archives produced on Windows may use backslash separators
                name = info.filename.replace("\\", "/")
                target = member_destination(destination, name)
                if target is None:
                    raise ExtractionError(
                        f"Zip member '{info.filename}' attempts directory traversal"
                    )

                if name.endswith("/"):
                    target.mkdir(parents=True, exist_ok=True)
                    continue

                target.parent.mkdir(parents=True, exist_ok=True)
                with archive.open(info) as src, open(target, "wb") as dst:
                    shutil.copyfileobj(src, dst, CHUNK_SIZE)

                mode = (info.external_attr >> 16) & 0o777
                if mode and not IS_WINDOWS:
                    os.chmod(target, mode | stat.S_IRUSR | stat.S_IWUSR)
    except ExtractionError:
        raise
    except (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError, RuntimeError) as e:
        raise ExtractionError(f"Failed to extract zip archive: {e}") from e
    except OSError as e:
        raise ExtractionError(f"Failed to extract zip archive: {e}") from e


# ============================================================================
# Public API
# ============================================================================


class ArchiveExtractor:
    """
    Unpacks a downloaded archive stream into a destination directory.

    Example:
        >>> extractor = ArchiveExtractor()
        >>> with fetcher.open_artifact_stream(resource) as artifact:
        ...     result = extractor.extract(
        ...         artifact.codec, artifact.stream, install_dir, "zig-linux-x86_64-0.14.1"
        ...     )
        >>> print(result.path)
    """

    def extract(
        self,
        codec: ArchiveCodec,
        stream: BinaryIO,
        destination: Path,
        dir_name: str,
        integrity: Optional[IntegrityCheck] = None,
    ) -> ExtractedDirectory:
        """
        Extract ``stream`` into ``destination`` and return the unpacked directory.

        Args:
            codec: Archive codec of the stream
            stream: Binary stream positioned at the start of the archive
            destination: Directory to extract into
            dir_name: Name of the top-level directory the archive unpacks to
            integrity: Optional digest/size check applied to the raw stream

        Returns:
            Handle to ``destination / dir_name``

        Raises:
            ExtractionError: If any entry failed, or the expected directory is missing
            ChecksumError: If ``integrity`` is given and does not match
            FilesystemError: If the destination cannot be prepared
        """
        destination = Path(destination)
        try:
            destination.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"Cannot create destination {destination}: {e}") from e

        source = integrity.wrap(stream) if integrity is not None else stream

        if codec.streamable:
            diagnostics: List[ExtractionFailure] = []
            with decompressed(codec, source) as decoded:
                unpack_tarball(decoded, destination, diagnostics)
            if diagnostics:
                raise ExtractionError(
                    f"Failed to unpack tar archive ({len(diagnostics)} problem(s))",
                    diagnostics,
                )
        else:
            unzip(source, destination)

        extracted = destination / dir_name

        if integrity is not None:
            try:
                integrity.verify(source)
            except ChecksumError:
                remove_tree_quietly(extracted, require_prefix=destination)
                raise

        if not extracted.is_dir():
            raise ExtractionError(
                f"Archive did not unpack into the expected directory '{dir_name}'"
            )

        logger.debug(f"Extracted {codec.value} archive to {extracted}")
        return ExtractedDirectory(path=extracted)
