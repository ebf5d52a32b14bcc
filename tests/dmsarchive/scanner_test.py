"""Tests for the dmsarchive.scanner module."""

import hashlib
from pathlib import Path

import pytest

from dmsarchive.errors import (
    CacheInfoError,
    ConfigurationError,
    FileCountExceededError,
    SourceDirectoryNotFoundError,
)
from dmsarchive.progress import Phase, ProgressEvent, ProgressReporter
from dmsarchive.scanner import CACHE_INFO_SUFFIX, compute_sha1, scan_dataset


def _sha1(content: bytes) -> str:
    """Compute SHA-1 hex digest for test data."""
    return hashlib.sha1(content).hexdigest()


def _make_file(base: Path, rel_path: str, content: bytes) -> Path:
    """Create a file under base at the given relative path."""
    full = base / rel_path
    full.parent.mkdir(parents=True, exist_ok=True)
    full.write_bytes(content)
    return full


class TestComputeSha1:
    def test_matches_hashlib(self, tmp_path: Path):
        path = _make_file(tmp_path, "a.bin", b"x" * 3_000_000)
        assert compute_sha1(path) == _sha1(b"x" * 3_000_000)

    def test_empty_file(self, tmp_path: Path):
        path = _make_file(tmp_path, "empty", b"")
        assert compute_sha1(path) == _sha1(b"")


class TestScanDataset:
    def test_records_are_relative_to_base(self, dataset_dir: Path):
        records = list(scan_dataset(dataset_dir))

        addresses = [r.item_address for r in records]
        assert addresses == ["QC_Mam_24_01.raw", "SIC/chromatogram.png", "SIC/summary.txt"]
        raw = records[0]
        assert raw.relative_directory == ""
        assert raw.file_name == "QC_Mam_24_01.raw"
        assert raw.size_bytes == len(b"raw instrument data")
        assert raw.sha1 == _sha1(b"raw instrument data")
        assert raw.absolute_path == dataset_dir / "QC_Mam_24_01.raw"
        assert raw.creation_time.tzinfo is not None

    def test_subfolder_scan_keeps_dataset_relative_paths(self, dataset_dir: Path):
        records = list(scan_dataset(dataset_dir / "SIC", base_dir=dataset_dir))

        assert [r.item_address for r in records] == ["SIC/chromatogram.png", "SIC/summary.txt"]
        assert all(r.relative_directory == "SIC" for r in records)

    def test_no_recursion(self, dataset_dir: Path):
        records = list(scan_dataset(dataset_dir, recurse=False))
        assert [r.item_address for r in records] == ["QC_Mam_24_01.raw"]

    def test_empty_directory(self, tmp_path: Path):
        assert list(scan_dataset(tmp_path)) == []

    def test_missing_directory(self, tmp_path: Path):
        with pytest.raises(SourceDirectoryNotFoundError):
            scan_dataset(tmp_path / "missing")

    def test_scan_root_outside_base(self, tmp_path: Path):
        (tmp_path / "a").mkdir()
        (tmp_path / "b").mkdir()
        with pytest.raises(ConfigurationError):
            scan_dataset(tmp_path / "a", base_dir=tmp_path / "b")

    def test_ceiling_fails_before_hashing(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        for i in range(4):
            _make_file(tmp_path, f"f{i}.txt", b"data")

        def _fail(path):  # noqa: ANN001
            raise AssertionError(f"hashed {path}")

        monkeypatch.setattr("dmsarchive.scanner.compute_sha1", _fail)
        with pytest.raises(FileCountExceededError) as excinfo:
            scan_dataset(tmp_path, max_files=3)
        assert excinfo.value.count == 4
        assert excinfo.value.ceiling == 3

    def test_ceiling_is_inclusive(self, tmp_path: Path):
        for i in range(3):
            _make_file(tmp_path, f"f{i}.txt", b"data")
        assert len(list(scan_dataset(tmp_path, max_files=3))) == 3

    def test_no_ceiling(self, tmp_path: Path):
        for i in range(4):
            _make_file(tmp_path, f"f{i}.txt", b"data")
        assert len(list(scan_dataset(tmp_path, max_files=None))) == 4

    def test_progress_reaches_end_of_hashing(self, tmp_path: Path):
        _make_file(tmp_path, "a.txt", b"a" * 10)
        _make_file(tmp_path, "b.txt", b"b" * 30)
        events: list[ProgressEvent] = []

        list(scan_dataset(tmp_path, progress=ProgressReporter(events.append)))

        assert [e.phase for e in events] == [Phase.HASHING, Phase.HASHING]
        assert events[0].percent == pytest.approx(25.0 * 10 / 40)
        assert events[-1].percent == pytest.approx(25.0)
        assert "b.txt" in events[-1].message

    def test_cache_info_file_is_archived_with_remote_file(self, tmp_path: Path):
        remote = _make_file(tmp_path / "cache", "results.mzid", b"cached results")
        base = tmp_path / "dataset"
        pointer = f"{remote}\n".encode()
        _make_file(base, f"MSGF/results.mzid{CACHE_INFO_SUFFIX}", pointer)

        records = list(scan_dataset(base))

        assert [r.item_address for r in records] == [
            "MSGF/results.mzid",
            f"MSGF/results.mzid{CACHE_INFO_SUFFIX}",
        ]
        assert records[0].sha1 == _sha1(b"cached results")
        assert records[0].absolute_path == remote
        assert records[1].sha1 == _sha1(pointer)
        assert records[1].absolute_path == base / "MSGF" / f"results.mzid{CACHE_INFO_SUFFIX}"

    def test_dangling_cache_info_file(self, tmp_path: Path):
        _make_file(tmp_path, f"x{CACHE_INFO_SUFFIX}", b"/no/such/file\n")
        with pytest.raises(CacheInfoError, match="missing file"):
            scan_dataset(tmp_path)

    def test_empty_cache_info_file(self, tmp_path: Path):
        _make_file(tmp_path, f"x{CACHE_INFO_SUFFIX}", b"\n")
        with pytest.raises(CacheInfoError, match="does not name a file"):
            scan_dataset(tmp_path)
