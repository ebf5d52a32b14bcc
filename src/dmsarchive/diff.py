"""Diff between the local dataset files and the archive index."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum

from .archive.index import RemoteFileRecord
from .scanner import LocalFileRecord

log = logging.getLogger("dmsarchive/diff")


class DiffState(str, Enum):
    """State of a local file compared with the archive."""

    NEW = "new"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass(frozen=True, kw_only=True)
class DiffEntry:
    """Single entry in a local-vs-archive diff."""

    record: LocalFileRecord
    remote_sha1: str | None
    state: DiffState


@dataclass(frozen=True, kw_only=True)
class DiffResult:
    """
    Files that must be uploaded.

    Attributes:
        new_files: files the archive does not have
        updated_files: files the archive has with different content
        upload_set: new and updated files, in scan order
        unchanged_count: files skipped because the archive has them
    """

    new_files: tuple[LocalFileRecord, ...]
    updated_files: tuple[LocalFileRecord, ...]
    upload_set: tuple[LocalFileRecord, ...]
    unchanged_count: int = 0

    @property
    def count_new(self) -> int:
        return len(self.new_files)

    @property
    def count_updated(self) -> int:
        return len(self.updated_files)

    @property
    def total_bytes_to_upload(self) -> int:
        return sum(record.size_bytes for record in self.upload_set)

    def is_empty(self) -> bool:
        return not self.upload_set


def _path_key(path: str, ignore_case: bool) -> str:
    return path.lower() if ignore_case else path


def _index(remote: Iterable[RemoteFileRecord], ignore_case: bool) -> dict[str, str]:
    index: dict[str, str] = {}
    for entry in remote:
        key = _path_key(entry.relative_path, ignore_case)
        if key in index:
            log.warning("duplicate archive entry ignored: %s", entry.relative_path)
            continue
        index[key] = entry.sha1.lower()
    return index


def classify(
    local: Iterable[LocalFileRecord],
    remote: Iterable[RemoteFileRecord],
    *,
    ignore_case: bool = True,
) -> Iterator[DiffEntry]:
    """
    Classify each local file against the archive index.

    Yields one ``DiffEntry`` per local record, in input order. A file
    missing from the index is ``NEW``; a file whose digest differs is
    ``UPDATED``; otherwise it is ``UNCHANGED``. Paths are compared
    case-insensitively unless ignore_case is False.
    """
    index = _index(remote, ignore_case)
    for record in local:
        remote_sha1 = index.get(_path_key(record.item_address, ignore_case))
        if remote_sha1 is None:
            state = DiffState.NEW
        elif remote_sha1 != record.sha1.lower():
            state = DiffState.UPDATED
        else:
            state = DiffState.UNCHANGED
        yield DiffEntry(record=record, remote_sha1=remote_sha1, state=state)


def summarize(entries: Iterable[DiffEntry]) -> DiffResult:
    """Collect the output of classify into a DiffResult."""
    new_files: list[LocalFileRecord] = []
    updated_files: list[LocalFileRecord] = []
    upload_set: list[LocalFileRecord] = []
    unchanged = 0
    for entry in entries:
        if entry.state == DiffState.NEW:
            new_files.append(entry.record)
        elif entry.state == DiffState.UPDATED:
            updated_files.append(entry.record)
        else:
            unchanged += 1
            continue
        upload_set.append(entry.record)
    result = DiffResult(
        new_files=tuple(new_files),
        updated_files=tuple(updated_files),
        upload_set=tuple(upload_set),
        unchanged_count=unchanged,
    )
    log.info(
        "diff: %d new, %d updated, %d unchanged, %d bytes to upload",
        result.count_new,
        result.count_updated,
        unchanged,
        result.total_bytes_to_upload,
    )
    return result


def diff(
    local: Iterable[LocalFileRecord],
    remote: Iterable[RemoteFileRecord],
    *,
    ignore_case: bool = True,
) -> DiffResult:
    """Classify local against remote and return the files to upload."""
    return summarize(classify(local, remote, ignore_case=ignore_case))
