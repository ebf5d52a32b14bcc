"""Read the catalog of files already archived for a dataset."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

import requests

from ..config import ArchiveConfig
from ..retry import EmptyResponseError, RetryPolicy, is_transient_network_error
from .session import create_session

log = logging.getLogger("dmsarchive/index")


@dataclass(frozen=True, kw_only=True)
class RemoteFileRecord:
    """A file already present in the archive."""

    relative_path: str
    sha1: str


def _normalize_path(path: str) -> str:
    return path.replace("\\", "/").strip("/")


def _iter_items(payload: Any, dataset_id: int) -> Iterator[dict]:
    if isinstance(payload, dict) and str(dataset_id) in payload:
        payload = payload[str(dataset_id)]
    if isinstance(payload, dict) and "files" in payload:
        payload = payload["files"]
    if isinstance(payload, dict):
        items = payload.values()
    elif isinstance(payload, list):
        items = payload
    else:
        raise ValueError(f"unexpected catalog payload type: {type(payload).__name__}")
    for item in items:
        if isinstance(item, dict):
            yield item


def parse_catalog(payload: Any, *, dataset_id: int, subfolder: str = "") -> list[RemoteFileRecord]:
    """
    Extract (relative path, SHA-1) pairs from a catalog payload.

    The payload is keyed by dataset ID and maps item IDs to items:

        {"1234": {"9001": {"subdir": "QC", "name": "a.png",
                           "hashtype": "sha1", "hashsum": "..."}}}

    A list of items, a "files" member, and items that spell the path
    as "relative_path" and the digest as "sha1" are accepted too.
    Items hashed with another algorithm are ignored. A non-empty
    subfolder keeps only the items stored below it.
    """
    prefix = _normalize_path(subfolder).lower()
    records: list[RemoteFileRecord] = []
    for item in _iter_items(payload, dataset_id):
        hashtype = str(item.get("hashtype", "sha1")).lower()
        if hashtype != "sha1":
            continue
        path = item.get("relative_path")
        if not path:
            name = item.get("name")
            if not name:
                continue
            subdir = _normalize_path(str(item.get("subdir") or ""))
            path = f"{subdir}/{name}" if subdir else str(name)
        digest = item.get("sha1") or item.get("hashsum")
        if not digest:
            log.debug("catalog item without digest: %s", path)
            continue
        path = _normalize_path(str(path))
        if prefix and not path.lower().startswith(prefix + "/"):
            continue
        records.append(RemoteFileRecord(relative_path=path, sha1=str(digest).lower()))
    return records


class RemoteIndexReader:
    """
    Query the archive catalog with a single request per dataset.

    Transient network errors are retried according to the retry
    policy. When the catalog cannot be read the reader fails open
    and returns an empty index, so every local file gets uploaded.
    """

    def __init__(
        self,
        config: ArchiveConfig,
        *,
        session: requests.Session | None = None,
        retry: RetryPolicy | None = None,
    ):
        self.config = config
        self.session = session if session is not None else create_session(config)
        self.retry = retry or RetryPolicy(
            max_attempts=config.retry_attempts,
            delay_seconds=config.retry_delay_seconds,
            retryable=is_transient_network_error,
        )

    def catalog_url(self, dataset_id: int) -> str:
        route = self.config.catalog_route.strip("/")
        return f"{self.config.search_uri()}/{route}/{dataset_id}"

    def _fetch(self, url: str) -> Any:
        resp = self.session.get(url, timeout=self.config.request_timeout_seconds)
        if resp.status_code == 404:
            # The archive does not know the dataset yet
            return {}
        resp.raise_for_status()
        if not resp.content or not resp.content.strip():
            raise EmptyResponseError(f"empty response from {url}")
        return resp.json()

    def read(self, dataset_id: int, *, subfolder: str = "") -> list[RemoteFileRecord]:
        """Return the archived files of a dataset, or [] when unreachable."""
        url = self.catalog_url(dataset_id)
        log.info("reading remote index %s... start", url)
        try:
            payload = self.retry.call(lambda: self._fetch(url), label=f"remote index {dataset_id}")
            records = parse_catalog(payload, dataset_id=dataset_id, subfolder=subfolder)
        except (requests.RequestException, ValueError) as exc:
            log.warning("reading remote index %s... failure: %s", url, exc)
            log.warning("assuming no files are archived for dataset %d", dataset_id)
            return []
        log.info("reading remote index %s... ok (%d files)", url, len(records))
        return records
