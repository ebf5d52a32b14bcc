"""Exceptions raised while archiving a dataset."""

from __future__ import annotations

from enum import Enum


class FailureKind(str, Enum):
    """Classification attached to a failed upload."""

    CONFIGURATION = "configuration"
    TRANSIENT_NETWORK = "transient_network"
    REJECTED = "rejected"
    VERIFICATION = "verification"
    PERMISSIONS = "permissions"
    LOCKED = "locked"
    UNEXPECTED = "unexpected"


class ArchiveError(Exception):
    """Base class for all the errors emitted by this package."""


class ConfigurationError(ArchiveError):
    """Missing or invalid parameter. Fatal, never retried."""


class SourceDirectoryNotFoundError(ConfigurationError):
    """The dataset directory to scan does not exist."""


class FileCountExceededError(ConfigurationError):
    """The dataset contains more files than the configured ceiling."""

    def __init__(self, count: int, ceiling: int):
        super().__init__(f"dataset has {count} files, more than the {ceiling} allowed")
        self.count = count
        self.ceiling = ceiling


class CacheInfoError(ArchiveError):
    """A cache info file is empty or names a file that does not exist."""


class DatasetLockedError(ArchiveError):
    """Another run on this host holds the dataset lock."""


class UploadFailedError(ArchiveError):
    """
    The upload could not be completed.

    Attributes:
        kind: the FailureKind classifying the failure
        allow_retry: whether a whole new upload attempt may help
    """

    def __init__(self, message: str, *, kind: FailureKind, allow_retry: bool = False):
        super().__init__(message)
        self.kind = kind
        self.allow_retry = allow_retry


class VerificationFailedError(UploadFailedError):
    """The archive reported an incomplete or corrupt ingestion."""

    def __init__(self, message: str, *, kind: FailureKind = FailureKind.VERIFICATION):
        super().__init__(message, kind=kind, allow_retry=kind != FailureKind.PERMISSIONS)
