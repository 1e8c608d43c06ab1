"""Acquisition scheduler: bounded worker pool with a backfill pass.

The scheduler drives a :class:`~stream_assembler.core.protocols.SegmentTransport`
over every descriptor in two passes:

1. **First pass** - every descriptor, ``concurrency`` workers, at most
   ``retries`` attempts each.
2. **Backfill pass** - only the first-pass failures, at most
   ``min(concurrency, failed)`` workers, with the per-descriptor attempt
   ceiling doubled to ``2 * retries``.

Each pass is a full barrier: the backfill pass does not start until every
first-pass future has resolved.  Anything still failing afterwards is
logged and excluded from the ``succeeded`` partition.  Failures are data
here, never exceptions.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, wait

from stream_assembler.core.cancellation import CancellationToken
from stream_assembler.core.config import DEFAULT_CONCURRENCY, DEFAULT_PROGRESS_RANGE, DEFAULT_RETRIES
from stream_assembler.core.models import AcquisitionOutcome, SegmentDescriptor, SegmentStatus
from stream_assembler.core.progress import ProgressRange, ProgressTracker
from stream_assembler.core.protocols import SegmentTransport

logger = logging.getLogger(__name__)

_DoneCallback = Callable[[SegmentDescriptor, int], None]


class AcquisitionScheduler:
    """Run a segment transport over many descriptors under a worker pool.

    Parameters
    ----------
    transport:
        Any object satisfying :class:`SegmentTransport`.
    progress:
        Tracker that receives per-segment progress inside *progress_range*.
    progress_range:
        ``(low, high)`` slice of the 0-100 scale owned by this phase.
    cancel_token:
        Checked before each submission; a cancelled run raises
        :class:`~stream_assembler.exceptions.TaskCancelledError` once the
        current pass has drained.
    on_backfill:
        Invoked with the failed descriptors just before the backfill pass.
    timeout, backoff:
        Forwarded to every fetch; ``None`` keeps the transport defaults.
    """

    def __init__(
        self,
        transport: SegmentTransport,
        *,
        progress: ProgressTracker | None = None,
        progress_range: tuple[float, float] = DEFAULT_PROGRESS_RANGE,
        cancel_token: CancellationToken | None = None,
        on_backfill: Callable[[Sequence[SegmentDescriptor]], None] | None = None,
        timeout: float | None = None,
        backoff: float | None = None,
    ) -> None:
        self._transport = transport
        self._progress = progress if progress is not None else ProgressTracker()
        self._range = ProgressRange(*progress_range)
        self._cancel = cancel_token if cancel_token is not None else CancellationToken()
        self._on_backfill = on_backfill
        self._timeout = timeout
        self._backoff = backoff

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(
        self,
        descriptors: Sequence[SegmentDescriptor],
        concurrency: int = DEFAULT_CONCURRENCY,
        retries: int = DEFAULT_RETRIES,
    ) -> AcquisitionOutcome:
        """Acquire every descriptor and partition them by final status.

        Raises
        ------
        TaskCancelledError
            If the cancellation token fires during either pass.
        """
        total = len(descriptors)
        if total == 0:
            return AcquisitionOutcome(succeeded=(), failed=())

        logger.info("scheduling-first-pass: %d segments, %d workers", total, concurrency)
        self._run_pass(
            list(descriptors),
            workers=concurrency,
            max_attempts=retries,
            on_done=self._first_pass_progress(total),
        )
        self._cancel.raise_if_cancelled()

        failed = [d for d in descriptors if d.status is not SegmentStatus.SUCCESS]
        logger.info("first-pass-complete: %d ok, %d failed", total - len(failed), len(failed))

        if failed:
            if self._on_backfill is not None:
                self._on_backfill(failed)
            workers = min(concurrency, len(failed))
            logger.info(
                "scheduling-backfill: %d segments, %d workers, up to %d attempts each",
                len(failed), workers, 2 * retries,
            )
            self._run_pass(
                failed,
                workers=workers,
                max_attempts=2 * retries,
                on_done=self._backfill_progress(),
            )
            still_failed = sum(1 for d in failed if d.status is not SegmentStatus.SUCCESS)
            logger.info(
                "backfill-complete: %d recovered, %d still failing",
                len(failed) - still_failed, still_failed,
            )
            self._cancel.raise_if_cancelled()

        return self._partition(descriptors)

    # ------------------------------------------------------------------
    # Pass execution
    # ------------------------------------------------------------------

    def _run_pass(
        self,
        descriptors: list[SegmentDescriptor],
        *,
        workers: int,
        max_attempts: int,
        on_done: _DoneCallback,
    ) -> None:
        lock = threading.Lock()
        completed: list[SegmentDescriptor] = []

        def work(descriptor: SegmentDescriptor) -> None:
            try:
                self._transport.fetch(
                    descriptor,
                    max_attempts,
                    cancel_token=self._cancel,
                    timeout=self._timeout,
                    backoff=self._backoff,
                )
            except Exception as exc:  # noqa: BLE001
                # Transports report failures as data; a raise is recorded as one.
                logger.exception("Transport raised for segment %d", descriptor.index)
                descriptor.mark_failed(f"Unexpected transport error: {exc}")
            with lock:
                completed.append(descriptor)
                done = len(completed)
            on_done(descriptor, done)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="segment") as pool:
            futures = []
            for descriptor in descriptors:
                if self._cancel.cancelled:
                    break
                futures.append(pool.submit(work, descriptor))
            wait(futures)

    # ------------------------------------------------------------------
    # Progress callbacks
    # ------------------------------------------------------------------

    def _first_pass_progress(self, total: int) -> _DoneCallback:
        def report(descriptor: SegmentDescriptor, done: int) -> None:
            state = "done" if descriptor.status is SegmentStatus.SUCCESS else "failed"
            self._progress.report(
                self._range.at(done, total),
                f"Segment {descriptor.index + 1}/{total} {state} ({done}/{total})",
            )

        return report

    def _backfill_progress(self) -> _DoneCallback:
        def report(descriptor: SegmentDescriptor, done: int) -> None:
            if descriptor.status is SegmentStatus.SUCCESS:
                message = f"Recovered segment {descriptor.index + 1} on backfill"
            else:
                message = f"Segment {descriptor.index + 1} failed after backfill"
            self._progress.report(self._range.high, message)

        return report

    # ------------------------------------------------------------------
    # Partitioning
    # ------------------------------------------------------------------

    @staticmethod
    def _partition(descriptors: Sequence[SegmentDescriptor]) -> AcquisitionOutcome:
        ordered = sorted(descriptors, key=lambda d: d.index)
        succeeded = tuple(d for d in ordered if d.status is SegmentStatus.SUCCESS)
        failed = tuple(d for d in ordered if d.status is not SegmentStatus.SUCCESS)
        for descriptor in failed:
            logger.warning(
                "Segment %d permanently failed after %d attempts: %s (%s)",
                descriptor.index,
                descriptor.attempts,
                descriptor.reference,
                descriptor.last_error,
            )
        return AcquisitionOutcome(succeeded=succeeded, failed=failed)
