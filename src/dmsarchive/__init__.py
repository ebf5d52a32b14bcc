"""DMS archive sync library.

This library archives scientific datasets differentially: it hashes
the local files, compares them with the archive catalog, describes the
new and changed files in a metadata bundle, and uploads them, waiting
until the archive verifies the ingestion.
"""

from .config import ArchiveConfig, load_config
from .diff import DiffResult, DiffState, diff
from .engine import ArchiveEngine, ArchiveOutcome, ArchivePlan
from .errors import (
    ArchiveError,
    ConfigurationError,
    DatasetLockedError,
    FailureKind,
    UploadFailedError,
    VerificationFailedError,
)
from .metadata import DatasetIdentity, MetadataBundle, build_metadata, year_quarter
from .params import JobParameters, job_parameters_from_maps
from .progress import Phase, ProgressEvent
from .scanner import LocalFileRecord, scan_dataset
from .uploader import UploadMode, UploadOrchestrator, UploadSession, UploadState

__version__ = "0.1.0"

__all__ = [
    "ArchiveConfig",
    "ArchiveEngine",
    "ArchiveError",
    "ArchiveOutcome",
    "ArchivePlan",
    "ConfigurationError",
    "DatasetIdentity",
    "DatasetLockedError",
    "DiffResult",
    "DiffState",
    "FailureKind",
    "JobParameters",
    "LocalFileRecord",
    "MetadataBundle",
    "Phase",
    "ProgressEvent",
    "UploadFailedError",
    "UploadMode",
    "UploadOrchestrator",
    "UploadSession",
    "UploadState",
    "VerificationFailedError",
    "build_metadata",
    "diff",
    "job_parameters_from_maps",
    "load_config",
    "scan_dataset",
    "year_quarter",
    "__version__",
]
