"""Single 0-100 progress stream spanning hashing and upload."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Final


class Phase(str, Enum):
    """Phase of an archive run."""

    HASHING = "hashing"
    BUNDLING = "bundling"
    UPLOADING = "uploading"
    VERIFYING = "verifying"


# Hashing takes the first quarter; the rest is shared by the upload phases
PHASE_RANGES: Final[dict[Phase, tuple[float, float]]] = {
    Phase.HASHING: (0.0, 25.0),
    Phase.BUNDLING: (25.0, 40.0),
    Phase.UPLOADING: (40.0, 85.0),
    Phase.VERIFYING: (85.0, 100.0),
}

log = logging.getLogger("dmsarchive/progress")


@dataclass(frozen=True, kw_only=True)
class ProgressEvent:
    """
    One value of the progress stream.

    Attributes:
        phase: the phase that emitted the event
        percent: overall completion on the 0-100 scale
        message: human readable description
        bytes_sent: bytes transmitted so far (upload phases only)
        bytes_total: total bytes to transmit (upload phases only)
    """

    phase: Phase
    percent: float
    message: str
    bytes_sent: int = 0
    bytes_total: int = 0


ProgressCallback = Callable[[ProgressEvent], None]


def overall_percent(phase: Phase, phase_percent: float) -> float:
    """Map a percent local to phase onto the overall scale."""
    low, high = PHASE_RANGES[phase]
    clamped = min(max(phase_percent, 0.0), 100.0)
    return low + (high - low) * clamped / 100.0


class ProgressReporter:
    """
    Turns per-phase progress into a monotonic overall stream.

    Each event is logged at DEBUG level and forwarded to the
    optional callback given to the constructor.
    """

    def __init__(self, callback: ProgressCallback | None = None):
        self._callback = callback
        self.last: ProgressEvent | None = None

    def report(
        self,
        phase: Phase,
        phase_percent: float,
        message: str = "",
        *,
        bytes_sent: int = 0,
        bytes_total: int = 0,
    ) -> ProgressEvent:
        percent = overall_percent(phase, phase_percent)
        if self.last is not None and percent < self.last.percent:
            percent = self.last.percent
        event = ProgressEvent(
            phase=phase,
            percent=percent,
            message=message,
            bytes_sent=bytes_sent,
            bytes_total=bytes_total,
        )
        self.last = event
        log.debug("%s %.1f%% %s", phase.value, percent, message)
        if self._callback is not None:
            self._callback(event)
        return event

    def complete(self, message: str = "done") -> ProgressEvent:
        """Emit a final event at 100 percent."""
        return self.report(Phase.VERIFYING, 100.0, message)
