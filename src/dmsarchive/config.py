"""Archive endpoints and tunables, loaded from YAML."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Final

import dacite
import yaml

from .errors import ConfigurationError

DEFAULT_INGEST_HOST: Final[str] = "ingest.my.emsl.pnl.gov"
DEFAULT_SEARCH_HOST: Final[str] = "my.emsl.pnl.gov"
TEST_INGEST_HOST: Final[str] = "test3.my.emsl.pnl.gov"
TEST_SEARCH_HOST: Final[str] = "test0.my.emsl.pnl.gov"

# Archives are tarred, so pathological file counts are rejected up front
MAX_FILES_TO_ARCHIVE: Final[int] = 500

DEFAULT_WORK_DIR: Final[str] = ".dmsarchive"

log = logging.getLogger("dmsarchive/config")


@dataclass(frozen=True, kw_only=True)
class ArchiveConfig:
    """
    Explicit configuration threaded through every component.

    Attributes:
        ingest_host: host receiving uploads and serving status documents
        search_host: host serving the catalog of archived files
        use_test_instance: talk to the test hosts instead of production
        use_secure_transfer: use https (True) or http (False)
        client_cert_path: optional client certificate for the HTTP layer
        username: optional basic-auth user name
        password: optional basic-auth password
        proxy: optional proxy URL used for both schemes
        catalog_route: path below the search host listing a dataset's files
        ingest_route: path below the ingest host accepting bundles
        request_timeout_seconds: timeout for a single HTTP request
        retry_attempts: attempts for each network call
        retry_delay_seconds: fixed delay between attempts
        upload_attempts: whole-upload attempts (see ArchiveEngine.run)
        poll_interval_seconds: delay between two status polls
        poll_timeout_seconds: give up verification after this long
        max_files: file count ceiling for a single dataset
        lock_dir: directory containing lock markers (default: work_dir/locks)
        work_dir: directory where bundles are written
    """

    ingest_host: str = DEFAULT_INGEST_HOST
    search_host: str = DEFAULT_SEARCH_HOST
    use_test_instance: bool = False
    use_secure_transfer: bool = True
    client_cert_path: str | None = None
    username: str | None = None
    password: str | None = None
    proxy: str | None = None
    catalog_route: str = "myemsl/api/files/omics.dms.dataset_id"
    ingest_route: str = "myemsl/cgi-bin/upload"
    request_timeout_seconds: float = 100.0
    retry_attempts: int = 3
    retry_delay_seconds: float = 5.0
    upload_attempts: int = 2
    poll_interval_seconds: float = 30.0
    poll_timeout_seconds: float = 4 * 3600.0
    max_files: int = MAX_FILES_TO_ARCHIVE
    lock_dir: str | None = None
    work_dir: str = DEFAULT_WORK_DIR

    @property
    def scheme(self) -> str:
        return "https" if self.use_secure_transfer else "http"

    def ingest_uri(self) -> str:
        """Return the base URI of the ingest host."""
        host = TEST_INGEST_HOST if self.use_test_instance else self.ingest_host
        return f"{self.scheme}://{host}"

    def search_uri(self) -> str:
        """Return the base URI of the search host."""
        host = TEST_SEARCH_HOST if self.use_test_instance else self.search_host
        return f"{self.scheme}://{host}"

    def lock_dir_path(self) -> Path:
        if self.lock_dir:
            return Path(self.lock_dir)
        return Path(self.work_dir) / "locks"

    def replace(self, **changes) -> ArchiveConfig:
        """Return a copy of this configuration with the given fields changed."""
        return dataclasses.replace(self, **changes)


def load_config(path: str | Path | None) -> ArchiveConfig:
    """
    Load the configuration from a YAML file.

    A None path returns the defaults. Keys not matching a field of
    ArchiveConfig are rejected with ConfigurationError.
    """
    if path is None:
        return ArchiveConfig()
    path = Path(path)
    log.debug("loading config %s... start", path)
    try:
        with path.open() as fp:
            data = yaml.safe_load(fp) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"cannot read config {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"config {path} must contain a mapping")
    try:
        config = dacite.from_dict(
            ArchiveConfig,
            data,
            config=dacite.Config(strict=True, cast=[float]),
        )
    except dacite.DaciteError as exc:
        raise ConfigurationError(f"invalid config {path}: {exc}") from exc
    log.debug("loading config %s... ok", path)
    return config
