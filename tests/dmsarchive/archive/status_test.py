"""Tests for the dmsarchive.archive.status module."""

import pytest

from dmsarchive.archive.status import parse_status_xml, status_xml_url
from dmsarchive.errors import FailureKind


def _document(*steps: tuple[int, str, str]) -> str:
    body = "".join(
        f'<step id="{sid}" message="{message}" status="{status}" />'
        for sid, message, status in steps
    )
    return f'<myemsl><status username="svc-dms"><transaction id="1234" />{body}</status></myemsl>'


class TestStatusUrls:
    def test_xml_url(self):
        assert status_xml_url("https://h/status/42") == "https://h/status/42/xml"
        assert status_xml_url("https://h/status/42/") == "https://h/status/42/xml"
        assert status_xml_url("https://h/status/42/xml") == "https://h/status/42/xml"


class TestParseStatusXml:
    def test_in_progress(self):
        status = parse_status_xml(
            _document((0, "completed", "SUCCESS"), (1, "completed", "SUCCESS"), (2, "", "UNKNOWN"))
        )
        assert status.transaction_id == 1234
        assert status.steps_completed == 2
        assert status.percent == pytest.approx(200 / 7)
        assert not status.verified
        assert not status.failed

    def test_verified(self):
        status = parse_status_xml(
            _document(
                (0, "completed", "SUCCESS"),
                (1, "completed", "SUCCESS"),
                (2, "completed", "SUCCESS"),
                (3, "verified", "SUCCESS"),
            )
        )
        assert status.verified
        assert not status.failed
        assert status.steps_completed == 4

    def test_error_step(self):
        status = parse_status_xml(
            _document((0, "completed", "SUCCESS"), (1, "checksum mismatch", "ERROR"))
        )
        assert status.failed
        assert not status.verified
        assert status.failure_kind == FailureKind.VERIFICATION
        assert status.message == "checksum mismatch"

    def test_server_exception(self):
        status = parse_status_xml(
            _document((0, "exceptions.IOError: disk full", "UNKNOWN"))
        )
        assert status.failed

    def test_permissions(self):
        status = parse_status_xml(
            _document((0, "You do not have upload permissions to proposal 60328", "ERROR"))
        )
        assert status.failed
        assert status.failure_kind == FailureKind.PERMISSIONS

    def test_no_transaction_yet(self):
        status = parse_status_xml("<myemsl><status /></myemsl>")
        assert status.transaction_id is None
        assert status.percent == 0

    def test_malformed(self):
        with pytest.raises(ValueError):
            parse_status_xml("<myemsl>")
