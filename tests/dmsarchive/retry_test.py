"""Tests for the dmsarchive.retry module."""

from unittest.mock import MagicMock

import pytest
import requests

from dmsarchive.retry import (
    EmptyResponseError,
    RetryPolicy,
    is_known_transient_failure,
    is_transient_network_error,
)


def _http_error(status: int, text: str = "") -> requests.HTTPError:
    resp = MagicMock()
    resp.status_code = status
    resp.reason = ""
    resp.text = text
    return requests.HTTPError(f"{status} error", response=resp)


class TestPredicates:
    def test_transient_network_errors(self):
        assert is_transient_network_error(requests.Timeout())
        assert is_transient_network_error(requests.ConnectionError())
        assert is_transient_network_error(EmptyResponseError())
        assert is_transient_network_error(_http_error(503))
        assert not is_transient_network_error(_http_error(404))
        assert not is_transient_network_error(ValueError("bad json"))

    def test_known_transient_signatures(self):
        assert is_known_transient_failure(RuntimeError("Timeout expired while waiting"))
        assert is_known_transient_failure(_http_error(500, "sqlite3: database is locked"))
        assert is_known_transient_failure(_http_error(504))
        assert not is_known_transient_failure(_http_error(500, "internal error"))
        assert not is_known_transient_failure(_http_error(403))


class TestRetryPolicy:
    def test_returns_first_success(self):
        sleep = MagicMock()
        policy = RetryPolicy(sleep=sleep)
        assert policy.call(lambda: 42, label="test") == 42
        sleep.assert_not_called()

    def test_retries_with_fixed_delay(self):
        sleep = MagicMock()
        func = MagicMock(side_effect=[requests.Timeout(), requests.Timeout(), "ok"])
        policy = RetryPolicy(max_attempts=3, delay_seconds=5.0, sleep=sleep)

        assert policy.call(func, label="test") == "ok"
        assert func.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [5.0, 5.0]

    def test_backoff(self):
        sleep = MagicMock()
        func = MagicMock(side_effect=[requests.Timeout(), requests.Timeout(), "ok"])
        policy = RetryPolicy(max_attempts=3, delay_seconds=1.0, backoff=2.0, sleep=sleep)

        policy.call(func, label="test")
        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 2.0]

    def test_raises_last_error_when_exhausted(self):
        func = MagicMock(side_effect=requests.ConnectionError("down"))
        policy = RetryPolicy(max_attempts=3, sleep=MagicMock())

        with pytest.raises(requests.ConnectionError, match="down"):
            policy.call(func, label="test")
        assert func.call_count == 3

    def test_non_retryable_error_propagates_immediately(self):
        func = MagicMock(side_effect=ValueError("bad"))
        policy = RetryPolicy(max_attempts=3, sleep=MagicMock())

        with pytest.raises(ValueError):
            policy.call(func, label="test")
        assert func.call_count == 1
