"""End-to-end archive run: scan, diff, describe, upload."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .archive.index import RemoteFileRecord, RemoteIndexReader
from .archive.ingest import IngestClient
from .config import ArchiveConfig
from .diff import DiffEntry, DiffResult, classify, summarize
from .errors import ConfigurationError, FailureKind
from .metadata import MetadataBundle, build_metadata
from .params import JobParameters
from .progress import ProgressCallback, ProgressReporter
from .scanner import scan_dataset
from .uploader import UploadMode, UploadOrchestrator, UploadSession, UploadState

# Uploads larger than this are never attempted twice
LARGE_DATASET_NO_RETRY_BYTES: Final[int] = 15 * 1024**3

log = logging.getLogger("dmsarchive/engine")


@dataclass(frozen=True, kw_only=True)
class ArchivePlan:
    """What a run is going to upload."""

    job: JobParameters
    entries: tuple[DiffEntry, ...]
    diff: DiffResult
    bundle: MetadataBundle


@dataclass(frozen=True, kw_only=True)
class ArchiveOutcome:
    """
    Result of an archive run.

    Attributes:
        plan: the plan that was executed
        session: the session of the last upload attempt
        attempts: number of upload attempts
    """

    plan: ArchivePlan
    session: UploadSession
    attempts: int

    @property
    def state(self) -> UploadState:
        return self.session.state

    @property
    def succeeded(self) -> bool:
        return self.session.state == UploadState.VERIFIED


def metadata_copy_path(job: JobParameters) -> Path | None:
    """Where to drop a copy of the metadata for the capture job, if anywhere."""
    if job.transfer_dir is None:
        return None
    return job.transfer_dir / job.dataset_name / f"MyEMSL_metadata_CaptureJob_{job.job}.txt"


class ArchiveEngine:
    """
    Archive a dataset differentially.

    Use plan() for a dry run and run() to upload. Both read the local
    files and the archive index afresh.
    """

    def __init__(
        self,
        config: ArchiveConfig,
        *,
        index_reader: RemoteIndexReader | None = None,
        ingest: IngestClient | None = None,
        mode: UploadMode = UploadMode.NORMAL,
        progress_callback: ProgressCallback | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.mode = mode
        self.index_reader = index_reader
        self.ingest = ingest
        self.progress = ProgressReporter(progress_callback)
        self._sleep = sleep

    def _remote_index(self, job: JobParameters) -> list[RemoteFileRecord]:
        if self.mode == UploadMode.OFFLINE:
            log.warning("offline mode: not querying the archive index")
            return []
        if self.index_reader is None:
            self.index_reader = RemoteIndexReader(self.config)
        return self.index_reader.read(job.dataset_id, subfolder=job.subfolder)

    def plan(self, job: JobParameters) -> ArchivePlan:
        """
        Scan the dataset, diff it against the archive and build the metadata.

        Raises:
            ConfigurationError: invalid job, missing directory or too many files.
        """
        if job.dataset_id <= 0:
            raise ConfigurationError(f"invalid dataset ID for {job.dataset_name}: {job.dataset_id}")
        log.info("planning job %d for dataset %s... start", job.job, job.dataset_name)
        max_files = None if job.ignore_max_file_limit else self.config.max_files
        records = list(
            scan_dataset(
                job.source_dir,
                base_dir=job.base_dir,
                recurse=job.recurse,
                max_files=max_files,
                progress=self.progress,
            )
        )
        entries = tuple(classify(records, self._remote_index(job)))
        result = summarize(entries)
        bundle = build_metadata(result, job.identity())
        log.info("planning job %d for dataset %s... ok", job.job, job.dataset_name)
        return ArchivePlan(job=job, entries=entries, diff=result, bundle=bundle)

    def _write_metadata_copy(self, plan: ArchivePlan) -> None:
        dest = metadata_copy_path(plan.job)
        if dest is None:
            return
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_text(plan.bundle.to_json())
        log.info("metadata copied to %s", dest)

    def _upload(self, plan: ArchivePlan) -> UploadSession:
        orchestrator = UploadOrchestrator(
            self.config,
            ingest=self.ingest,
            mode=self.mode,
            progress=self.progress,
        )
        self.ingest = orchestrator.ingest
        return orchestrator.run(plan.bundle, lock_key=plan.job.lock_key)

    def run(self, job: JobParameters) -> ArchiveOutcome:
        """
        Plan and upload a dataset.

        A failed upload is attempted again, after the configured delay,
        when its failure allows it, up to upload_attempts times. Uploads
        larger than 15 GB are attempted once.
        """
        plan = self.plan(job)
        if plan.bundle.files:
            self._write_metadata_copy(plan)
        max_attempts = max(1, self.config.upload_attempts)
        if plan.bundle.total_bytes > LARGE_DATASET_NO_RETRY_BYTES:
            max_attempts = 1
        attempt = 0
        while True:
            attempt += 1
            session = self._upload(plan)
            if session.state != UploadState.FAILED:
                break
            if session.failure_kind == FailureKind.CONFIGURATION or not session.allow_retry:
                break
            if attempt >= max_attempts:
                break
            log.warning(
                "upload attempt %d/%d failed: %s; retrying in %.0fs",
                attempt,
                max_attempts,
                session.error_message,
                self.config.retry_delay_seconds,
            )
            self._sleep(self.config.retry_delay_seconds)
        outcome = ArchiveOutcome(plan=plan, session=session, attempts=attempt)
        if session.state == UploadState.FAILED:
            log.error(
                "job %d for dataset %s failed on manager %s (operator %s): %s",
                job.job,
                job.dataset_name,
                job.manager_name or "-",
                job.operator_username,
                session.error_message,
            )
        log.info(
            "job %d: %s after %d attempt(s), %d new, %d updated",
            job.job,
            outcome.state.value,
            attempt,
            plan.diff.count_new,
            plan.diff.count_updated,
        )
        return outcome
