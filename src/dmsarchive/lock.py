"""Advisory per-dataset lock held while an upload is in flight."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Final

from filelock import FileLock, Timeout

from .errors import DatasetLockedError

LOCK_SUFFIX: Final[str] = ".lock"

log = logging.getLogger("dmsarchive/lock")


def dataset_lock_key(dataset_id: int, dataset_name: str) -> str:
    """Return a file-system friendly key identifying a dataset."""
    safe_name = re.sub(r"[^A-Za-z0-9_.-]", "_", dataset_name)
    return f"{dataset_id}_{safe_name}"


class DatasetLock:
    """
    Scoped lock marker keyed by dataset identity.

    Use as a context manager:

        with DatasetLock(lock_dir, key):
            upload()

    Entering creates the marker and fails with DatasetLockedError if
    another process on this host holds it. Exiting, normally or through
    any exception (including KeyboardInterrupt and SystemExit), releases
    the lock and removes the marker.

    This is a same-host advisory lock only. Removing the marker on
    release is not atomic with dropping the lock: a process that opened
    the old marker may acquire it while another process creates a new
    one, and both then hold the lock. Callers must not start two runs
    for the same dataset at once.
    """

    def __init__(self, lock_dir: Path, key: str, *, timeout: float = 0):
        self.path = Path(lock_dir) / f"{key}{LOCK_SUFFIX}"
        self._lock = FileLock(self.path, timeout=timeout)

    @property
    def is_locked(self) -> bool:
        return self._lock.is_locked

    def acquire(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._lock.acquire()
        except Timeout as exc:
            raise DatasetLockedError(f"dataset is locked: {self.path}") from exc
        log.debug("lock %s... acquired", self.path)

    def release(self) -> None:
        if not self._lock.is_locked:
            return
        self._lock.release()
        self.path.unlink(missing_ok=True)
        log.debug("lock %s... released", self.path)

    def __enter__(self) -> DatasetLock:
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> bool:
        self.release()
        return False
