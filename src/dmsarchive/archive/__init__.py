"""HTTP clients of the archive: catalog, ingest and status."""

from .index import RemoteFileRecord, RemoteIndexReader, parse_catalog
from .ingest import IngestClient, parse_submit_response
from .session import create_session
from .status import IngestStatus, IngestStep, parse_status_xml, status_xml_url

__all__ = [
    "IngestClient",
    "IngestStatus",
    "IngestStep",
    "RemoteFileRecord",
    "RemoteIndexReader",
    "create_session",
    "parse_catalog",
    "parse_status_xml",
    "parse_submit_response",
    "status_xml_url",
]
