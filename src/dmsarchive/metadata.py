"""Metadata bundle describing one upload."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Final

import dacite

from .diff import DiffResult
from .scanner import LocalFileRecord

BUNDLE_NAME: Final[str] = "omics_dms"
SCHEMA_VERSION: Final[str] = "1.2.0"

# Used when the dataset has no EUS linkage
UNKNOWN_EUS_INSTRUMENT_ID: Final[str] = "34127"
DEFAULT_EUS_PROPOSAL_ID: Final[str] = "17797"
DEFAULT_EUS_OPERATOR_ID: Final[int] = 43428

log = logging.getLogger("dmsarchive/metadata")


class GroupType(str, Enum):
    """Type of a group tag linking a bundle to DMS entities."""

    INSTRUMENT = "omics.dms.instrument"
    INSTRUMENT_ID = "omics.dms.instrument_id"
    DATE_CODE = "omics.dms.date_code"
    DATASET = "omics.dms.dataset"
    DATASET_ID = "omics.dms.dataset_id"


@dataclass(frozen=True, kw_only=True)
class DatasetIdentity:
    """
    Fields identifying the dataset being archived.

    Attributes:
        name: the dataset name
        dataset_id: the numeric dataset ID (must be positive)
        instrument_name: name of the acquiring instrument
        created: the dataset creation date
        eus_instrument_id: EUS instrument ID, empty when unknown
        eus_proposal_id: EUS proposal ID, empty when unknown
        eus_operator_id: EUS ID of the uploader, 0 when unknown
    """

    name: str
    dataset_id: int
    instrument_name: str
    created: datetime
    eus_instrument_id: str = ""
    eus_proposal_id: str = ""
    eus_operator_id: int = 0


@dataclass(frozen=True, kw_only=True)
class GroupTag:
    name: str
    type: str


@dataclass(frozen=True, kw_only=True)
class EUSInfo:
    instrument_id: str
    instrument_name: str
    proposal_id: str
    uploader_eus_id: str
    groups: list[GroupTag] = field(default_factory=list)


@dataclass(frozen=True, kw_only=True)
class FileEntry:
    """
    One file of the upload set.

    The local_path is where the bundler reads the content from; it is
    not part of the wire format.
    """

    path: str
    sha1_hash: str
    size_in_bytes: int
    destination_directory: str
    file_name: str
    creation_date: int
    local_path: Path | None = field(default=None, compare=False)


@dataclass(frozen=True, kw_only=True)
class MetadataBundle:
    """The exact payload transmitted to the archive."""

    bundle_name: str
    creation_date: int
    version: str
    eus_info: EUSInfo
    files: list[FileEntry] = field(default_factory=list)

    @property
    def total_bytes(self) -> int:
        return sum(entry.size_in_bytes for entry in self.files)

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON-ready representation."""
        return {
            "bundleName": self.bundle_name,
            "creationDate": str(self.creation_date),
            "version": self.version,
            "eusInfo": {
                "instrumentId": self.eus_info.instrument_id,
                "instrumentName": self.eus_info.instrument_name,
                "proposalID": self.eus_info.proposal_id,
                "uploaderEusId": self.eus_info.uploader_eus_id,
                "groups": [{"name": g.name, "type": g.type} for g in self.eus_info.groups],
            },
            "file": [
                {
                    "path": f.path,
                    "sha1Hash": f.sha1_hash,
                    "sizeInBytes": f.size_in_bytes,
                    "destinationDirectory": f.destination_directory,
                    "fileName": f.file_name,
                    "creationDate": str(f.creation_date),
                }
                for f in self.files
            ],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_wire(), indent=2)

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> MetadataBundle:
        """Parse the representation produced by to_wire."""
        eus = data["eusInfo"]
        return dacite.from_dict(
            cls,
            {
                "bundle_name": data["bundleName"],
                "creation_date": data["creationDate"],
                "version": data["version"],
                "eus_info": {
                    "instrument_id": eus["instrumentId"],
                    "instrument_name": eus["instrumentName"],
                    "proposal_id": eus["proposalID"],
                    "uploader_eus_id": eus.get("uploaderEusId", ""),
                    "groups": eus.get("groups", []),
                },
                "files": [
                    {
                        "path": f["path"],
                        "sha1_hash": f["sha1Hash"],
                        "size_in_bytes": f["sizeInBytes"],
                        "destination_directory": f.get("destinationDirectory", ""),
                        "file_name": f.get("fileName", f["path"].rsplit("/", 1)[-1]),
                        "creation_date": f.get("creationDate", 0),
                    }
                    for f in data.get("file", [])
                ],
            },
            config=dacite.Config(cast=[int]),
        )

    @classmethod
    def from_json(cls, text: str) -> MetadataBundle:
        return cls.from_wire(json.loads(text))


def year_quarter(created: datetime) -> str:
    """Return the "{year}_{quarter}" bucket of a date."""
    quarter = (created.month + 2) // 3
    return f"{created.year}_{quarter}"


def _epoch_seconds(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


def _file_entry(record: LocalFileRecord) -> FileEntry:
    return FileEntry(
        path=record.item_address,
        sha1_hash=record.sha1,
        size_in_bytes=record.size_bytes,
        destination_directory=record.relative_directory,
        file_name=record.file_name,
        creation_date=_epoch_seconds(record.creation_time),
        local_path=record.absolute_path,
    )


def build_metadata(
    result: DiffResult,
    identity: DatasetIdentity,
    *,
    now: datetime | None = None,
) -> MetadataBundle:
    """
    Build the bundle for the upload set of a diff.

    Absent EUS IDs are replaced with the documented fallbacks. Never
    performs network I/O.

    Raises:
        ValueError: the dataset ID is not positive.
    """
    if identity.dataset_id <= 0:
        raise ValueError(f"invalid dataset ID: {identity.dataset_id}")
    instrument_id = identity.eus_instrument_id.strip()
    if not instrument_id:
        log.warning("no EUS instrument ID for %s; using %s", identity.name, UNKNOWN_EUS_INSTRUMENT_ID)
        instrument_id = UNKNOWN_EUS_INSTRUMENT_ID
    proposal_id = identity.eus_proposal_id.strip()
    if not proposal_id:
        log.warning("no EUS proposal ID for %s; using %s", identity.name, DEFAULT_EUS_PROPOSAL_ID)
        proposal_id = DEFAULT_EUS_PROPOSAL_ID
    operator_id = identity.eus_operator_id or DEFAULT_EUS_OPERATOR_ID
    groups = [
        GroupTag(name=identity.instrument_name, type=GroupType.INSTRUMENT.value),
        GroupTag(name=instrument_id, type=GroupType.INSTRUMENT_ID.value),
        GroupTag(name=year_quarter(identity.created), type=GroupType.DATE_CODE.value),
        GroupTag(name=identity.name, type=GroupType.DATASET.value),
        GroupTag(name=str(identity.dataset_id), type=GroupType.DATASET_ID.value),
    ]
    return MetadataBundle(
        bundle_name=BUNDLE_NAME,
        creation_date=_epoch_seconds(now or datetime.now(timezone.utc)),
        version=SCHEMA_VERSION,
        eus_info=EUSInfo(
            instrument_id=instrument_id,
            instrument_name=identity.instrument_name,
            proposal_id=proposal_id,
            uploader_eus_id=str(operator_id),
            groups=groups,
        ),
        files=[_file_entry(record) for record in result.upload_set],
    )
