"""Tests for the dmsarchive.metadata module."""

import hashlib
import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from dmsarchive.diff import diff
from dmsarchive.metadata import (
    BUNDLE_NAME,
    DEFAULT_EUS_OPERATOR_ID,
    DEFAULT_EUS_PROPOSAL_ID,
    SCHEMA_VERSION,
    UNKNOWN_EUS_INSTRUMENT_ID,
    DatasetIdentity,
    GroupType,
    MetadataBundle,
    build_metadata,
    year_quarter,
)
from dmsarchive.scanner import LocalFileRecord

_CREATED = datetime(2024, 3, 2, 8, 0, tzinfo=timezone.utc)


def _record(address: str, content: bytes) -> LocalFileRecord:
    directory, _, name = address.rpartition("/")
    return LocalFileRecord(
        relative_directory=directory,
        file_name=name,
        size_bytes=len(content),
        sha1=hashlib.sha1(content).hexdigest(),
        creation_time=_CREATED,
        absolute_path=Path("/data") / address,
    )


def _identity(**changes) -> DatasetIdentity:
    fields = {
        "name": "QC_Mam_24_01",
        "dataset_id": 1234567,
        "instrument_name": "QExactP04",
        "created": datetime(2024, 4, 15, tzinfo=timezone.utc),
        "eus_instrument_id": "34111",
        "eus_proposal_id": "60328",
        "eus_operator_id": 52259,
    }
    fields.update(changes)
    return DatasetIdentity(**fields)


_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class TestYearQuarter:
    @pytest.mark.parametrize(
        ("month", "expected"),
        [(1, "2024_1"), (3, "2024_1"), (4, "2024_2"), (6, "2024_2"), (7, "2024_3"), (12, "2024_4")],
    )
    def test_quarter(self, month: int, expected: str):
        assert year_quarter(datetime(2024, month, 1)) == expected

    def test_mid_month(self):
        assert year_quarter(datetime(2024, 4, 15)) == "2024_2"
        assert year_quarter(datetime(2024, 1, 1)) == "2024_1"


class TestBuildMetadata:
    def test_bundle_fields(self):
        result = diff([_record("a.raw", b"aaaa"), _record("SIC/b.png", b"bb")], [])

        bundle = build_metadata(result, _identity(), now=_NOW)

        assert bundle.bundle_name == BUNDLE_NAME
        assert bundle.version == SCHEMA_VERSION
        assert bundle.creation_date == int(_NOW.timestamp())
        assert bundle.eus_info.instrument_id == "34111"
        assert bundle.eus_info.proposal_id == "60328"
        assert bundle.eus_info.uploader_eus_id == "52259"
        assert bundle.total_bytes == 6

    def test_group_tags(self):
        bundle = build_metadata(diff([], []), _identity(), now=_NOW)

        groups = [(g.type, g.name) for g in bundle.eus_info.groups]
        assert groups == [
            (GroupType.INSTRUMENT.value, "QExactP04"),
            (GroupType.INSTRUMENT_ID.value, "34111"),
            (GroupType.DATE_CODE.value, "2024_2"),
            (GroupType.DATASET.value, "QC_Mam_24_01"),
            (GroupType.DATASET_ID.value, "1234567"),
        ]

    def test_file_entries(self):
        record = _record("SIC/b.png", b"bb")
        bundle = build_metadata(diff([record], []), _identity(), now=_NOW)

        (entry,) = bundle.files
        assert entry.path == "SIC/b.png"
        assert entry.sha1_hash == record.sha1
        assert entry.size_in_bytes == 2
        assert entry.destination_directory == "SIC"
        assert entry.file_name == "b.png"
        assert entry.creation_date == int(_CREATED.timestamp())
        assert entry.local_path == Path("/data/SIC/b.png")

    def test_eus_fallbacks(self):
        identity = _identity(eus_instrument_id="", eus_proposal_id=" ", eus_operator_id=0)
        bundle = build_metadata(diff([], []), identity, now=_NOW)

        assert bundle.eus_info.instrument_id == UNKNOWN_EUS_INSTRUMENT_ID
        assert bundle.eus_info.proposal_id == DEFAULT_EUS_PROPOSAL_ID
        assert bundle.eus_info.uploader_eus_id == str(DEFAULT_EUS_OPERATOR_ID)

    def test_invalid_dataset_id(self):
        with pytest.raises(ValueError):
            build_metadata(diff([], []), _identity(dataset_id=0))


class TestSerialization:
    def test_wire_keys(self):
        bundle = build_metadata(diff([_record("a.raw", b"aaaa")], []), _identity(), now=_NOW)

        wire = json.loads(bundle.to_json())

        assert wire["bundleName"] == "omics_dms"
        assert wire["creationDate"] == str(int(_NOW.timestamp()))
        assert set(wire["eusInfo"]) == {
            "instrumentId",
            "instrumentName",
            "proposalID",
            "uploaderEusId",
            "groups",
        }
        assert wire["file"][0]["path"] == "a.raw"
        assert wire["file"][0]["sha1Hash"] == hashlib.sha1(b"aaaa").hexdigest()
        assert wire["file"][0]["sizeInBytes"] == 4
        assert "localPath" not in wire["file"][0]

    def test_round_trip_preserves_file_entries(self):
        records = [_record("a.raw", b"aaaa"), _record("SIC/deep/b.png", b"bb")]
        bundle = build_metadata(diff(records, []), _identity(), now=_NOW)

        parsed = MetadataBundle.from_json(bundle.to_json())

        assert parsed == bundle
        assert [(f.path, f.sha1_hash, f.size_in_bytes) for f in parsed.files] == [
            (f.path, f.sha1_hash, f.size_in_bytes) for f in bundle.files
        ]
        assert parsed.files[0].local_path is None
