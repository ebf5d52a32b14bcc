"""Submit bundles to the ingest host and poll their status."""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable
from pathlib import Path
from typing import BinaryIO, Final

import requests

from ..config import ArchiveConfig
from ..errors import FailureKind, UploadFailedError, VerificationFailedError
from ..retry import RetryPolicy, is_known_transient_failure
from .session import create_session
from .status import IngestStatus, parse_status_xml, status_xml_url

# Status URI suffix the ingest host hands out when it failed internally
ERROR_STATUS_SUFFIX: Final[str] = "/1323420608"

_ACCEPTED = re.compile(r"(?:^Status:(?P<url>.*)\n)?^Accepted\n", re.MULTILINE)
_ERRNO = re.compile(r"\[Errno -?\d+")

BytesCallback = Callable[[int, int], None]

log = logging.getLogger("dmsarchive/ingest")


def parse_submit_response(text: str) -> str:
    """
    Return the status URI from the body answering an upload.

    A successful body reads:

        Status:https://ingest.example.org/myemsl/cgi-bin/status/1234
        Accepted

    Raises:
        UploadFailedError: the upload was not accepted.
    """
    body = text.replace("\r\n", "\n")
    if not body.endswith("\n"):
        body += "\n"
    if _ERRNO.search(body):
        raise UploadFailedError(
            f"ingest host reported an I/O error: {body.strip()}",
            kind=FailureKind.REJECTED,
            allow_retry=True,
        )
    match = _ACCEPTED.search(body)
    if match is None:
        raise UploadFailedError(
            f"upload not accepted: {body.strip()[:200]}",
            kind=FailureKind.REJECTED,
            allow_retry=True,
        )
    status_uri = (match.group("url") or "").strip()
    if not status_uri:
        raise UploadFailedError(
            "upload accepted without a status URI",
            kind=FailureKind.REJECTED,
            allow_retry=True,
        )
    if status_uri.rstrip("/").endswith(ERROR_STATUS_SUFFIX):
        raise UploadFailedError(
            f"ingest host returned the error status URI {status_uri}",
            kind=FailureKind.REJECTED,
            allow_retry=True,
        )
    return status_uri


class _ProgressReader:
    """Wraps a file object to report the bytes read so far."""

    def __init__(self, fp: BinaryIO, size: int, callback: BytesCallback | None) -> None:
        self._fp = fp
        self._size = size
        self._callback = callback
        self._sent = 0

    def __len__(self) -> int:
        return self._size

    def read(self, size: int = -1) -> bytes:
        data = self._fp.read(size)
        if data:
            self._sent += len(data)
            if self._callback is not None:
                self._callback(self._sent, self._size)
        return data


class IngestClient:
    """
    Client of the ingest host.

    The submit and poll calls retry the errors whose message matches a
    known transient signature. Other failures raise UploadFailedError.
    """

    def __init__(
        self,
        config: ArchiveConfig,
        *,
        session: requests.Session | None = None,
        retry: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.session = session if session is not None else create_session(config)
        self.retry = retry or RetryPolicy(
            max_attempts=config.retry_attempts,
            delay_seconds=config.retry_delay_seconds,
            retryable=is_known_transient_failure,
            sleep=sleep,
        )
        self._sleep = sleep
        self._clock = clock

    def upload_url(self) -> str:
        return f"{self.config.ingest_uri()}/{self.config.ingest_route.strip('/')}"

    def _post(self, tar_path: Path, on_bytes: BytesCallback | None) -> str:
        size = tar_path.stat().st_size
        with open(tar_path, "rb") as fp:
            resp = self.session.post(
                self.upload_url(),
                data=_ProgressReader(fp, size, on_bytes),
                headers={"Content-Type": "application/x-tar", "Content-Length": str(size)},
                timeout=self.config.request_timeout_seconds,
            )
        resp.raise_for_status()
        return parse_submit_response(resp.text)

    def submit(self, tar_path: Path, *, on_bytes: BytesCallback | None = None) -> str:
        """Upload the tar at tar_path and return the status URI."""
        url = self.upload_url()
        log.info("submitting %s to %s... start", tar_path.name, url)
        try:
            status_uri = self.retry.call(lambda: self._post(tar_path, on_bytes), label="submit")
        except requests.RequestException as exc:
            log.warning("submitting %s to %s... failure: %s", tar_path.name, url, exc)
            kind = (
                FailureKind.TRANSIENT_NETWORK
                if is_known_transient_failure(exc)
                else FailureKind.REJECTED
            )
            raise UploadFailedError(str(exc), kind=kind, allow_retry=True) from exc
        log.info("submitting %s to %s... ok: %s", tar_path.name, url, status_uri)
        return status_uri

    def _get_status(self, status_uri: str) -> IngestStatus:
        resp = self.session.get(
            status_xml_url(status_uri),
            timeout=self.config.request_timeout_seconds,
        )
        resp.raise_for_status()
        return parse_status_xml(resp.text)

    def poll(self, status_uri: str) -> IngestStatus:
        """Fetch and parse the status document once."""
        try:
            return self.retry.call(lambda: self._get_status(status_uri), label="status")
        except requests.RequestException as exc:
            raise UploadFailedError(
                f"cannot read status {status_uri}: {exc}",
                kind=FailureKind.TRANSIENT_NETWORK,
                allow_retry=True,
            ) from exc
        except ValueError as exc:
            raise UploadFailedError(
                f"cannot parse status {status_uri}: {exc}",
                kind=FailureKind.REJECTED,
                allow_retry=True,
            ) from exc

    def wait_for_verification(
        self,
        status_uri: str,
        *,
        on_status: Callable[[IngestStatus], None] | None = None,
    ) -> IngestStatus:
        """
        Poll status_uri until the archive verifies or rejects the upload.

        Raises:
            VerificationFailedError: the archive reported a failure or
                did not verify within the configured timeout.
        """
        deadline = self._clock() + self.config.poll_timeout_seconds
        log.info("waiting for verification of %s... start", status_uri)
        while True:
            status = self.poll(status_uri)
            if on_status is not None:
                on_status(status)
            if status.failed:
                log.warning("waiting for verification of %s... failure: %s", status_uri, status.message)
                raise VerificationFailedError(
                    f"archive reported a failure for {status_uri}: {status.message}",
                    kind=status.failure_kind or FailureKind.VERIFICATION,
                )
            if status.verified:
                log.info("waiting for verification of %s... ok", status_uri)
                return status
            if self._clock() >= deadline:
                raise VerificationFailedError(
                    f"{status_uri} not verified after {self.config.poll_timeout_seconds:.0f}s"
                )
            self._sleep(self.config.poll_interval_seconds)
