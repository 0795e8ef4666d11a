"""Build context assembly.

A build context is a gzip-compressed tar archive of a build directory,
together with a digest of the files it contains. The digest covers file
contents only, so it stays stable when timestamps or permissions change and
can be compared across runs to skip redundant image builds.
"""

import gzip
import hashlib
import io
import logging
import os
import tarfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Tuple

from .digests import DIGESTS_FILENAME
from .errors import BuildError

COMPRESSION_LEVEL = 6
CHUNK_SIZE = 4096


@dataclass(frozen=True)
class BuildContext:
    """Compressed build context and the digest of its files."""

    archive: bytes
    digest: str


def _raise(error: OSError) -> None:
    raise error


def _collect_files(
    directory: Path, excluded_filenames: Iterable[str]
) -> List[Tuple[str, Path]]:
    """Return (relative path, path) of every file below directory, sorted."""
    excluded = set(excluded_filenames)
    files = []
    for root, dirs, filenames in os.walk(directory, onerror=_raise):
        for filename in filenames:
            if filename in excluded:
                continue
            path = Path(root) / filename
            if not path.is_file():
                continue
            files.append((path.relative_to(directory).as_posix(), path))
    # Filesystem listing order is not stable across hosts
    files.sort(key=lambda item: item[0])
    return files


def _add_file(archive: tarfile.TarFile, hasher, relative_path: str, path: Path) -> None:
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            hasher.update(chunk)
        stat = os.fstat(f.fileno())
        f.seek(0)

        info = tarfile.TarInfo(name=relative_path)
        info.size = stat.st_size
        info.mode = stat.st_mode & 0o7777
        info.mtime = int(stat.st_mtime)
        archive.addfile(info, f)


def create_build_context(
    directory: Path, excluded_filenames: Iterable[str] = (DIGESTS_FILENAME,)
) -> BuildContext:
    """Package `directory` into a build context.

    Files are visited in relative-path order. Each file is hashed into a
    single SHA-256 digest and appended to the archive with its relative
    path, permission bits and modification time. Files whose name is in
    `excluded_filenames` are neither hashed nor archived.

    Args:
        directory: Build directory (the Dockerfile lives inside it)
        excluded_filenames: File names skipped at any depth

    Returns:
        BuildContext with the gzip archive and a ``sha256:<hex>`` digest

    Raises:
        BuildError: If any file cannot be read or the directory is missing
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise BuildError(f"Build directory not found: {directory}")

    hasher = hashlib.sha256()
    buffer = io.BytesIO()
    try:
        files = _collect_files(directory, excluded_filenames)
        with tarfile.open(fileobj=buffer, mode="w", format=tarfile.GNU_FORMAT) as archive:
            for relative_path, path in files:
                logging.debug(f"  Adding to build context: {relative_path}")
                _add_file(archive, hasher, relative_path, path)
    except (OSError, tarfile.TarError) as e:
        raise BuildError(f"Failed to assemble build context from {directory}: {e}") from e

    compressed = gzip.compress(buffer.getvalue(), compresslevel=COMPRESSION_LEVEL, mtime=0)
    digest = f"sha256:{hasher.hexdigest()}"
    logging.debug(f"Build context for {directory}: {len(files)} files, digest {digest}")
    return BuildContext(archive=compressed, digest=digest)
