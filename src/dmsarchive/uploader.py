"""State machine driving one upload from metadata to verification."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Final

from .archive.ingest import IngestClient
from .archive.status import IngestStatus
from .bundle import bundle_file_name, write_bundle
from .config import ArchiveConfig
from .errors import DatasetLockedError, FailureKind, UploadFailedError
from .lock import DatasetLock
from .metadata import MetadataBundle
from .progress import Phase, ProgressReporter

log = logging.getLogger("dmsarchive/uploader")


class UploadState(str, Enum):
    """State of an UploadSession."""

    IDLE = "idle"
    METADATA_READY = "metadata_ready"
    BUNDLING = "bundling"
    SUBMITTING = "submitting"
    AWAITING_VERIFICATION = "awaiting_verification"
    VERIFIED = "verified"
    FAILED = "failed"
    BUNDLED_LOCALLY = "bundled_locally"


class UploadMode(str, Enum):
    """How far an upload goes."""

    NORMAL = "normal"
    CREATE_TAR_LOCAL = "create-tar-local"
    OFFLINE = "offline"


TERMINAL_STATES: Final[frozenset[UploadState]] = frozenset(
    {UploadState.VERIFIED, UploadState.FAILED, UploadState.BUNDLED_LOCALLY}
)

_TRANSITIONS: Final[dict[UploadState, frozenset[UploadState]]] = {
    UploadState.IDLE: frozenset({UploadState.METADATA_READY}),
    UploadState.METADATA_READY: frozenset({UploadState.BUNDLING, UploadState.VERIFIED}),
    UploadState.BUNDLING: frozenset({UploadState.SUBMITTING, UploadState.BUNDLED_LOCALLY}),
    UploadState.SUBMITTING: frozenset({UploadState.AWAITING_VERIFICATION}),
    UploadState.AWAITING_VERIFICATION: frozenset({UploadState.VERIFIED}),
}


@dataclass(kw_only=True)
class UploadSession:
    """
    Mutable record of an upload in flight.

    Attributes:
        state: the current state
        status_uri: status URI returned by the ingest host
        bytes_total: bytes to transmit
        bytes_sent: bytes transmitted so far
        bundle_path: the transport tar, once written
        failure_kind: classification of the failure, if any
        error_message: message of the failure, if any
        allow_retry: whether another upload attempt may succeed
    """

    state: UploadState = UploadState.IDLE
    status_uri: str = ""
    bytes_total: int = 0
    bytes_sent: int = 0
    bundle_path: Path | None = None
    failure_kind: FailureKind | None = None
    error_message: str = ""
    allow_retry: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


class UploadOrchestrator:
    """
    Drive a MetadataBundle through bundling, submission and verification.

    Each orchestrator runs a single upload. The dataset lock is held
    from before bundling until a terminal state is reached and is
    released on every exit path. The transport tar is deleted only
    once the archive verified the upload.

    Expected failures (UploadFailedError, DatasetLockedError) end the
    session in the FAILED state. Any other exception also marks the
    session FAILED and then propagates, after the lock is released.
    """

    def __init__(
        self,
        config: ArchiveConfig,
        *,
        ingest: IngestClient | None = None,
        mode: UploadMode = UploadMode.NORMAL,
        progress: ProgressReporter | None = None,
    ):
        self.config = config
        self.ingest = ingest if ingest is not None else IngestClient(config)
        self.mode = mode
        self.progress = progress or ProgressReporter()
        self.session = UploadSession()

    def _transition(self, state: UploadState) -> None:
        current = self.session.state
        if current in TERMINAL_STATES:
            raise RuntimeError(f"upload already terminated in {current.value}")
        if state != UploadState.FAILED and state not in _TRANSITIONS.get(current, frozenset()):
            raise RuntimeError(f"invalid upload transition: {current.value} -> {state.value}")
        log.info("upload state: %s -> %s", current.value, state.value)
        self.session.state = state

    def _fail(self, kind: FailureKind, message: str, *, allow_retry: bool) -> None:
        log.error("upload failed (%s): %s", kind.value, message)
        if self.session.is_terminal:
            return
        self.session.failure_kind = kind
        self.session.error_message = message
        self.session.allow_retry = allow_retry
        self._transition(UploadState.FAILED)

    def _on_bytes(self, sent: int, total: int) -> None:
        self.session.bytes_sent = sent
        self.session.bytes_total = total
        percent = 100.0 * sent / total if total else 100.0
        self.progress.report(
            Phase.UPLOADING,
            percent,
            "Uploading bundle",
            bytes_sent=sent,
            bytes_total=total,
        )

    def _on_status(self, status: IngestStatus) -> None:
        self.progress.report(
            Phase.VERIFYING,
            status.percent,
            f"Archive status: {status.message or 'pending'}",
            bytes_sent=self.session.bytes_sent,
            bytes_total=self.session.bytes_total,
        )

    def run(self, bundle: MetadataBundle, *, lock_key: str) -> UploadSession:
        """Run the upload of bundle and return the terminal session."""
        if self.session.state != UploadState.IDLE:
            raise RuntimeError("an orchestrator runs a single upload")
        self.session.bytes_total = bundle.total_bytes
        self._transition(UploadState.METADATA_READY)
        if not bundle.files:
            log.info("upload set is empty; nothing to submit")
            self._transition(UploadState.VERIFIED)
            self.progress.complete("Nothing to upload")
            return self.session
        try:
            with DatasetLock(self.config.lock_dir_path(), lock_key):
                self._upload(bundle, lock_key)
        except UploadFailedError as exc:
            self._fail(exc.kind, str(exc), allow_retry=exc.allow_retry)
        except DatasetLockedError as exc:
            self._fail(FailureKind.LOCKED, str(exc), allow_retry=True)
        except BaseException as exc:
            self._fail(FailureKind.UNEXPECTED, str(exc), allow_retry=False)
            raise
        return self.session

    def _upload(self, bundle: MetadataBundle, lock_key: str) -> None:
        self._transition(UploadState.BUNDLING)
        tar_path = Path(self.config.work_dir) / bundle_file_name(lock_key)
        write_bundle(bundle, tar_path, progress=self.progress)
        self.session.bundle_path = tar_path
        self.session.bytes_total = tar_path.stat().st_size

        if self.mode != UploadMode.NORMAL:
            log.warning("mode %s: bundle left at %s, not submitted", self.mode.value, tar_path)
            self._transition(UploadState.BUNDLED_LOCALLY)
            return

        self._transition(UploadState.SUBMITTING)
        self.session.status_uri = self.ingest.submit(tar_path, on_bytes=self._on_bytes)
        self._transition(UploadState.AWAITING_VERIFICATION)
        self.ingest.wait_for_verification(self.session.status_uri, on_status=self._on_status)
        self._transition(UploadState.VERIFIED)
        tar_path.unlink(missing_ok=True)
        self.progress.complete("Upload verified")
