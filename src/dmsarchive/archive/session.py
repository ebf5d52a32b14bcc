"""HTTP session configured with the archive credentials."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

import requests

from ..config import ArchiveConfig

_PACKAGE_NAME = "dms-archive-sync"


def _user_agent() -> str:
    try:
        return f"dmsarchive/{version(_PACKAGE_NAME)}"
    except PackageNotFoundError:
        return "dmsarchive"


def create_session(config: ArchiveConfig) -> requests.Session:
    """Return a requests.Session using the certificate, auth and proxy of config."""
    session = requests.Session()
    session.headers["User-Agent"] = _user_agent()
    if config.client_cert_path:
        session.cert = config.client_cert_path
    if config.username:
        session.auth = (config.username, config.password or "")
    if config.proxy:
        session.proxies = {"http": config.proxy, "https": config.proxy}
    return session
