"""Tests for the dmsarchive.bundle module."""

import json
import tarfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

from dmsarchive.bundle import METADATA_MEMBER, read_bundle_metadata, write_bundle
from dmsarchive.diff import diff
from dmsarchive.metadata import DatasetIdentity, FileEntry, build_metadata
from dmsarchive.progress import Phase, ProgressEvent, ProgressReporter
from dmsarchive.scanner import scan_dataset


def _bundle(dataset_dir: Path):
    identity = DatasetIdentity(
        name="QC_Mam_24_01",
        dataset_id=1234567,
        instrument_name="QExactP04",
        created=datetime(2024, 4, 15, tzinfo=timezone.utc),
    )
    return build_metadata(diff(scan_dataset(dataset_dir), []), identity)


class TestWriteBundle:
    def test_tar_layout(self, dataset_dir: Path, tmp_path: Path):
        bundle = _bundle(dataset_dir)
        dest = tmp_path / "out" / "bundle.tar"

        write_bundle(bundle, dest)

        with tarfile.open(dest) as tar:
            names = tar.getnames()
            metadata = json.load(tar.extractfile(METADATA_MEMBER))
            raw = tar.extractfile("data/QC_Mam_24_01.raw").read()
        assert names == [
            "metadata.txt",
            "data/QC_Mam_24_01.raw",
            "data/SIC/chromatogram.png",
            "data/SIC/summary.txt",
        ]
        assert metadata["bundleName"] == "omics_dms"
        assert raw == b"raw instrument data"
        assert list(dest.parent.iterdir()) == [dest]

    def test_metadata_can_be_read_back(self, dataset_dir: Path, tmp_path: Path):
        bundle = _bundle(dataset_dir)
        dest = write_bundle(bundle, tmp_path / "bundle.tar")
        assert read_bundle_metadata(dest) == bundle

    def test_progress(self, dataset_dir: Path, tmp_path: Path):
        events: list[ProgressEvent] = []
        write_bundle(
            _bundle(dataset_dir),
            tmp_path / "bundle.tar",
            progress=ProgressReporter(events.append),
        )
        assert {e.phase for e in events} == {Phase.BUNDLING}
        assert events[-1].percent == pytest.approx(40.0)

    def test_entry_without_local_path(self, dataset_dir: Path, tmp_path: Path):
        bundle = _bundle(dataset_dir)
        bundle.files.append(
            FileEntry(
                path="x.txt",
                sha1_hash="0" * 40,
                size_in_bytes=1,
                destination_directory="",
                file_name="x.txt",
                creation_date=0,
            )
        )
        dest = tmp_path / "bundle.tar"
        with pytest.raises(ValueError):
            write_bundle(bundle, dest)
        assert not dest.exists()
