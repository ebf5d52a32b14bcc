"""Retry policy shared by every network call site."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Final, TypeVar

import requests

T = TypeVar("T")

# Lower-cased fragments of error messages the archive is known to
# emit when it is temporarily overloaded
TRANSIENT_SIGNATURES: Final[tuple[str, ...]] = (
    "timeout expired",
    "timed out",
    "gateway timeout",
    "bad gateway",
    "service unavailable",
    "database is locked",
    "connection reset",
    "connection aborted",
)

log = logging.getLogger("dmsarchive/retry")


class EmptyResponseError(requests.RequestException):
    """The server answered with an empty body."""


def _http_status(exc: BaseException) -> int | None:
    response = getattr(exc, "response", None)
    if response is None:
        return None
    return getattr(response, "status_code", None)


def is_transient_network_error(exc: BaseException) -> bool:
    """Return True for timeouts, connection errors, empty responses and 5xx."""
    if isinstance(exc, (requests.Timeout, requests.ConnectionError, EmptyResponseError)):
        return True
    if isinstance(exc, requests.HTTPError):
        status = _http_status(exc)
        return status is not None and status >= 500
    return False


def is_known_transient_failure(exc: BaseException) -> bool:
    """Return True when the error message matches a known transient signature."""
    messages = [str(exc)]
    response = getattr(exc, "response", None)
    if response is not None:
        messages.append(getattr(response, "reason", "") or "")
        messages.append(getattr(response, "text", "") or "")
    if _http_status(exc) in (502, 503, 504):
        return True
    text = " ".join(m for m in messages if isinstance(m, str)).lower()
    return any(signature in text for signature in TRANSIENT_SIGNATURES)


@dataclass(frozen=True, kw_only=True)
class RetryPolicy:
    """
    Bounded retry with a fixed (or geometric) delay.

    Attributes:
        max_attempts: total number of attempts, including the first one
        delay_seconds: delay before the second attempt
        backoff: multiplier applied to the delay after each attempt
        retryable: predicate selecting the errors worth retrying
        sleep: function used to wait between attempts
    """

    max_attempts: int = 3
    delay_seconds: float = 5.0
    backoff: float = 1.0
    retryable: Callable[[BaseException], bool] = is_transient_network_error
    sleep: Callable[[float], None] = time.sleep

    def call(self, func: Callable[[], T], *, label: str) -> T:
        """
        Invoke func until it succeeds or the attempts are exhausted.

        Errors rejected by the retryable predicate propagate immediately.
        When all attempts fail, the last error propagates.
        """
        delay = self.delay_seconds
        attempts = max(1, self.max_attempts)
        for attempt in range(1, attempts + 1):
            try:
                return func()
            except Exception as exc:
                if attempt >= attempts or not self.retryable(exc):
                    raise
                log.warning(
                    "%s: %s on attempt %d/%d, retrying in %.1fs",
                    label,
                    exc,
                    attempt,
                    attempts,
                    delay,
                )
                self.sleep(delay)
                delay *= self.backoff
        raise AssertionError("unreachable")
