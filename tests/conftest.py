"""Shared pytest fixtures for dmsarchive tests."""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from dmsarchive.config import ArchiveConfig
from dmsarchive.params import ArchiveMode, JobParameters


@pytest.fixture
def config(tmp_path: Path) -> ArchiveConfig:
    """Return a configuration writing under tmp_path and never sleeping long."""
    return ArchiveConfig(
        work_dir=str(tmp_path / "work"),
        retry_delay_seconds=0.0,
        poll_interval_seconds=0.0,
        poll_timeout_seconds=60.0,
    )


@pytest.fixture
def dataset_dir(tmp_path: Path) -> Path:
    """Return a small dataset directory with a nested sub-folder."""
    base = tmp_path / "storage" / "QExactP04" / "2024_2" / "QC_Mam_24_01"
    (base / "SIC").mkdir(parents=True)
    (base / "QC_Mam_24_01.raw").write_bytes(b"raw instrument data")
    (base / "SIC" / "chromatogram.png").write_bytes(b"png bytes")
    (base / "SIC" / "summary.txt").write_bytes(b"summary")
    return base


@pytest.fixture
def job(dataset_dir: Path) -> JobParameters:
    """Return the job archiving dataset_dir."""
    return JobParameters(
        job=5551212,
        dataset_name="QC_Mam_24_01",
        dataset_id=1234567,
        instrument_name="QExactP04",
        created=datetime(2024, 4, 15, 10, 30, tzinfo=timezone.utc),
        eus_instrument_id="34111",
        eus_proposal_id="60328",
        eus_operator_id=52259,
        base_dir=dataset_dir,
        mode=ArchiveMode.ARCHIVE,
    )
