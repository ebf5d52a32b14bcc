"""Parse the ingest status document of an upload."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass
from enum import IntEnum
from typing import Final

from ..errors import FailureKind

STEP_COUNT: Final[int] = 7
PERMISSIONS_MARKER: Final[str] = "do not have upload permissions"


class IngestStep(IntEnum):
    """Steps the archive goes through while ingesting a bundle."""

    SUBMITTED = 0
    RECEIVED = 1
    PROCESSING = 2
    VERIFIED = 3
    STORED = 4
    AVAILABLE = 5
    ARCHIVED = 6


@dataclass(frozen=True, kw_only=True)
class IngestStatus:
    """
    Snapshot of the ingest status of an upload.

    Attributes:
        transaction_id: archive transaction, None when not yet assigned
        steps_completed: number of steps reported as successful
        percent: steps_completed over the total steps, as a percentage
        verified: the archive validated every byte it received
        failed: the archive gave up on the upload
        message: the message of the last reported step
        failure_kind: classification when failed is True
    """

    transaction_id: int | None
    steps_completed: int
    percent: float
    verified: bool
    failed: bool
    message: str = ""
    failure_kind: FailureKind | None = None


def status_xml_url(status_uri: str) -> str:
    """Return the URL of the XML status document."""
    uri = status_uri.rstrip("/")
    return uri if uri.endswith("/xml") else f"{uri}/xml"


def _classify_message(message: str) -> FailureKind | None:
    lowered = message.lower()
    if PERMISSIONS_MARKER in lowered:
        return FailureKind.PERMISSIONS
    if "exceptions." in lowered:
        return FailureKind.VERIFICATION
    return None


def parse_status_xml(text: str) -> IngestStatus:
    """
    Parse a status document such as:

        <myemsl>
          <status username="svc-dms">
            <transaction id="1234" />
            <step id="0" message="completed" status="SUCCESS" />
            <step id="3" message="verified" status="SUCCESS" />
          </status>
        </myemsl>

    Raises:
        ValueError: the document is not well formed XML.
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise ValueError(f"malformed status document: {exc}") from exc
    transaction = root.find(".//transaction")
    transaction_id = None
    if transaction is not None and transaction.get("id", "").isdigit():
        transaction_id = int(transaction.get("id", ""))
    completed = 0
    verified = False
    failed = False
    message = ""
    kind: FailureKind | None = None
    for step in root.iter("step"):
        status = step.get("status", "").upper()
        message = step.get("message", "")
        try:
            step_id = int(step.get("id", "-1"))
        except ValueError:
            step_id = -1
        classified = _classify_message(message)
        if status == "ERROR" or classified is not None:
            failed = True
            kind = classified or FailureKind.VERIFICATION
            break
        if status == "SUCCESS":
            completed += 1
            if step_id == IngestStep.VERIFIED:
                verified = True
    completed = min(completed, STEP_COUNT)
    return IngestStatus(
        transaction_id=transaction_id,
        steps_completed=completed,
        percent=100.0 * completed / STEP_COUNT,
        verified=verified and not failed,
        failed=failed,
        message=message,
        failure_kind=kind,
    )
