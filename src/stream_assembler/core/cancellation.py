"""Cooperative cancellation for long-running acquisition tasks.

A :class:`CancellationToken` is threaded through the manifest reader,
the scheduler and the segment fetcher.  It is checked before each retry
attempt and before new work is submitted, and backoff sleeps wait on it
so that a cancel wakes sleeping workers immediately.
"""

from __future__ import annotations

import threading

from stream_assembler.exceptions import TaskCancelledError


class CancellationToken:
    """Thread-safe, one-way cancellation flag."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: str = ""

    def cancel(self, reason: str = "Task cancelled.") -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def wait(self, seconds: float) -> bool:
        """Sleep up to *seconds*; return ``True`` if cancelled meanwhile."""
        if seconds <= 0:
            return self._event.is_set()
        return self._event.wait(seconds)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise TaskCancelledError(self._reason or "Task cancelled.")
