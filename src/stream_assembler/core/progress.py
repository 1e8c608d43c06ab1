"""Progress plumbing: range mapping, monotonic tracking and simple sinks.

The engine reports at fixed checkpoints (manifest fetched, segment list
known, per-segment, merge started, cleanup, done).  Every value passes
through a :class:`ProgressTracker` which guarantees that the sink only
ever sees non-decreasing values within ``[0, 100]``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

from stream_assembler.core.protocols import ProgressSink

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Checkpoints
# ---------------------------------------------------------------------------

MANIFEST_FETCHED: float = 5.0
SEGMENTS_LISTED: float = 10.0
MERGE_STARTED: float = 80.0
MERGE_FINISHED: float = 95.0
COMPLETE: float = 100.0


# ---------------------------------------------------------------------------
# Sub-range mapping
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ProgressRange:
    """A slice of the 0-100 scale owned by one phase."""

    low: float
    high: float

    def at(self, done: int, total: int) -> float:
        """Interpolate *done* of *total* into this range."""
        if total <= 0:
            return self.high
        fraction = min(max(done / total, 0.0), 1.0)
        return self.low + fraction * (self.high - self.low)


# ---------------------------------------------------------------------------
# Monotonic tracker
# ---------------------------------------------------------------------------

class ProgressTracker:
    """Forward progress to a sink, clamped and never going backwards.

    Safe to call from several worker threads at once.
    """

    def __init__(self, sink: ProgressSink | None = None) -> None:
        self._sink: ProgressSink = sink if sink is not None else NullProgressSink()
        self._lock = threading.Lock()
        self._value: float = 0.0

    @property
    def value(self) -> float:
        return self._value

    def report(self, percentage: float, message: str) -> None:
        with self._lock:
            clamped = min(max(percentage, 0.0), 100.0)
            self._value = max(self._value, clamped)
            value = self._value
            try:
                self._sink.report(value, message)
            except Exception:  # noqa: BLE001
                # A broken sink must never abort an acquisition.
                logger.exception("Progress sink raised; ignoring")


# ---------------------------------------------------------------------------
# Simple sinks
# ---------------------------------------------------------------------------

class NullProgressSink:
    """Discard all progress."""

    def report(self, percentage: float, message: str) -> None:
        return None


class CallbackProgressSink:
    """Adapt a plain ``(percentage, message)`` callable to :class:`ProgressSink`."""

    def __init__(self, callback: Callable[[float, str], None]) -> None:
        self._callback = callback

    def report(self, percentage: float, message: str) -> None:
        self._callback(percentage, message)


class LoggingProgressSink:
    """Emit each progress update as a log record."""

    def __init__(self, log: logging.Logger | None = None, level: int = logging.INFO) -> None:
        self._log = log if log is not None else logger
        self._level = level

    def report(self, percentage: float, message: str) -> None:
        self._log.log(self._level, "[%5.1f%%] %s", percentage, message)
