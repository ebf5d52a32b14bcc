"""Walk a dataset directory and compute the SHA-1 of each file."""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Final

from .config import MAX_FILES_TO_ARCHIVE
from .errors import (
    CacheInfoError,
    ConfigurationError,
    FileCountExceededError,
    SourceDirectoryNotFoundError,
)
from .progress import Phase, ProgressReporter

# The first line of a file with this suffix names a remote file archived beside it
CACHE_INFO_SUFFIX: Final[str] = "_CacheInfo.txt"

_CHUNK_SIZE: Final[int] = 1 << 20

log = logging.getLogger("dmsarchive/scanner")


@dataclass(frozen=True, kw_only=True)
class LocalFileRecord:
    """
    A local file with its content digest.

    Attributes:
        relative_directory: directory relative to the dataset base, using
            forward slashes, empty for files in the base directory
        file_name: the file name
        size_bytes: the file size
        sha1: lower-case hex SHA-1 of the content
        creation_time: UTC creation (or change) time
        absolute_path: where to read the content from
    """

    relative_directory: str
    file_name: str
    size_bytes: int
    sha1: str
    creation_time: datetime
    absolute_path: Path

    @property
    def item_address(self) -> str:
        """Dataset-relative path without a leading separator."""
        if not self.relative_directory:
            return self.file_name
        return f"{self.relative_directory}/{self.file_name}"


@dataclass(frozen=True)
class _Candidate:
    path: Path
    directory: Path
    size: int


def compute_sha1(path: Path) -> str:
    """Compute the SHA-1 hex digest of a file."""
    h = hashlib.sha1()
    with open(path, "rb") as fp:
        while chunk := fp.read(_CHUNK_SIZE):
            h.update(chunk)
    return h.hexdigest()


def relative_directory(directory: Path, base_dir: Path) -> str:
    """Return directory relative to base_dir using forward slashes."""
    try:
        rel = directory.relative_to(base_dir)
    except ValueError as exc:
        raise ConfigurationError(f"{directory} is not below the dataset directory {base_dir}") from exc
    posix = rel.as_posix()
    return "" if posix == "." else posix


def _resolve_cache_info(path: Path) -> Path:
    """Return the remote file a cache info file points to."""
    with path.open() as fp:
        target = fp.readline().strip()
    if not target:
        raise CacheInfoError(f"cache info file {path} does not name a file")
    remote = Path(target)
    if not remote.is_file():
        raise CacheInfoError(f"cache info file {path} points to missing file {remote}")
    return remote


def _collect(source_dir: Path, recurse: bool) -> list[_Candidate]:
    entries = source_dir.rglob("*") if recurse else source_dir.glob("*")
    candidates: list[_Candidate] = []
    for path in (p for p in entries if p.is_file()):
        candidates.append(_Candidate(path, path.parent, path.stat().st_size))
        if path.name.endswith(CACHE_INFO_SUFFIX):
            remote = _resolve_cache_info(path)
            candidates.append(_Candidate(remote, path.parent, remote.stat().st_size))
    candidates.sort(key=lambda c: (c.directory / c.path.name).as_posix().lower())
    return candidates


def _hash_all(
    candidates: list[_Candidate],
    base_dir: Path,
    progress: ProgressReporter | None,
) -> Iterator[LocalFileRecord]:
    total = sum(c.size for c in candidates)
    done = 0
    log.info("hashing %d files (%d bytes)... start", len(candidates), total)
    for candidate in candidates:
        sha1 = compute_sha1(candidate.path)
        stat = candidate.path.stat()
        created = getattr(stat, "st_birthtime", stat.st_ctime)
        done += candidate.size
        yield LocalFileRecord(
            relative_directory=relative_directory(candidate.directory, base_dir),
            file_name=candidate.path.name,
            size_bytes=candidate.size,
            sha1=sha1,
            creation_time=datetime.fromtimestamp(created, tz=timezone.utc),
            absolute_path=candidate.path,
        )
        if progress is not None:
            percent = 100.0 * done / total if total else 100.0
            progress.report(Phase.HASHING, percent, f"Hashing files: {candidate.path.name}")
    log.info("hashing %d files (%d bytes)... ok", len(candidates), total)


def scan_dataset(
    source_dir: str | Path,
    *,
    base_dir: str | Path | None = None,
    recurse: bool = True,
    max_files: int | None = MAX_FILES_TO_ARCHIVE,
    progress: ProgressReporter | None = None,
) -> Iterator[LocalFileRecord]:
    """
    Scan source_dir and lazily yield one LocalFileRecord per file.

    Paths are relative to base_dir (default: source_dir), so scanning a
    sub-folder of a dataset still reports dataset-relative paths. The
    directory check and the max_files ceiling (None disables it) are
    enforced by this call, before the first file gets hashed. Files
    are yielded in case-insensitive path order. A cache info file is
    yielded together with the remote file it names, which is placed in
    the cache info file's directory.

    Raises:
        SourceDirectoryNotFoundError: source_dir does not exist.
        FileCountExceededError: more than max_files files were found.
        CacheInfoError: a cache info file is empty or its remote file is missing.
    """
    source = Path(source_dir)
    base = Path(base_dir) if base_dir is not None else source
    if not source.is_dir():
        raise SourceDirectoryNotFoundError(f"source directory not found: {source}")
    relative_directory(source, base)
    candidates = _collect(source, recurse)
    if max_files is not None and len(candidates) > max_files:
        raise FileCountExceededError(len(candidates), max_files)
    return _hash_all(candidates, base, progress)
