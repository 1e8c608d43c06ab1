"""Acquisition engine: drives one HLS/DASH task from manifest to file.

Flow:

1. Read the manifest (:class:`ManifestSource`).
2. Extract the ordered segment list (:mod:`manifest_parser`).
3. Create the task's scratch space and assign segment destinations.
4. Acquire segments in two passes (:class:`AcquisitionScheduler`).
5. Merge the survivors in index order (:class:`SegmentAssembler`).

The engine is the only writer of :attr:`AcquisitionTask.state`.  All
collaborators are injected, so the engine itself carries no network or
filesystem code.

Guarantees
----------
* Only :class:`~stream_assembler.exceptions.StreamAssemblerError`
  subclasses escape.
* The scratch space is removed on every exit path.
* Progress is monotonic and reaches 100 only on success.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from pathlib import Path

from stream_assembler.core import progress as checkpoints
from stream_assembler.core.cancellation import CancellationToken
from stream_assembler.core.manifest_parser import parse_manifest
from stream_assembler.core.models import (
    AcquisitionOutcome,
    AcquisitionResult,
    AcquisitionTask,
    SegmentDescriptor,
    TaskState,
)
from stream_assembler.core.progress import ProgressTracker
from stream_assembler.core.protocols import (
    ManifestSource,
    ProgressSink,
    ScratchSpace,
    SegmentAssembler,
    SegmentTransport,
)
from stream_assembler.core.registry import TaskRegistry
from stream_assembler.core.scheduler import AcquisitionScheduler
from stream_assembler.core.stream_kind import detect_stream_kind, sniff_stream_kind
from stream_assembler.exceptions import (
    IncompleteStreamError,
    NoSegmentsFoundError,
    StreamAssemblerError,
)

logger = logging.getLogger(__name__)

ScratchFactory = Callable[[Path, str], ScratchSpace]
"""Builds a scratch space from ``(temp_root, workspace_name)``."""


class AcquisitionEngine:
    """Run :class:`AcquisitionTask` instances end to end.

    Parameters
    ----------
    reader:
        Manifest source (URL or local path).
    transport:
        Per-segment fetcher handed to the scheduler.
    assembler:
        Ordered merge step.
    scratch_factory:
        Creates the per-task working directory.
    registry:
        Optional task registry; tasks are registered when they start.
    """

    def __init__(
        self,
        reader: ManifestSource,
        transport: SegmentTransport,
        assembler: SegmentAssembler,
        scratch_factory: ScratchFactory,
        *,
        registry: TaskRegistry | None = None,
    ) -> None:
        self._reader = reader
        self._transport = transport
        self._assembler = assembler
        self._scratch_factory = scratch_factory
        self._registry = registry

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(
        self,
        task: AcquisitionTask,
        *,
        progress: ProgressSink | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> AcquisitionResult:
        """Drive *task* to a terminal state and return its result.

        Raises
        ------
        ManifestUnavailableError
            The manifest could not be read.
        NoSegmentsFoundError
            The manifest listed no segments.
        MergeFailedError
            Nothing was acquired, or the output could not be written.
        IncompleteStreamError
            Fewer segments survived than ``config.min_completeness``.
        TaskCancelledError
            The cancellation token fired.
        """
        tracker = ProgressTracker(progress)
        token = cancel_token if cancel_token is not None else CancellationToken()
        if self._registry is not None:
            self._registry.register(task)

        try:
            descriptors = self._load_segments(task, tracker, token)

            with self._scratch_factory(task.config.temp_dir, task.workspace_name) as scratch:
                scratch.assign(descriptors, task.kind)

                outcome = self._acquire(task, descriptors, tracker, token)
                self._check_completeness(task, outcome.completeness)

                task.transition(TaskState.MERGING, "Merging segments")
                tracker.report(
                    checkpoints.MERGE_STARTED, f"Merging {len(outcome.succeeded)} segments",
                )
                final_path, size = self._assembler.merge(
                    list(outcome.succeeded),
                    task.output_path,
                    scratch=scratch,
                )
                tracker.report(checkpoints.MERGE_FINISHED, "Merge finished, cleaning up")
        except StreamAssemblerError as exc:
            self._fail(task, str(exc))
            raise
        except Exception as exc:
            self._fail(task, f"Unexpected error: {exc}")
            raise StreamAssemblerError(f"Unexpected acquisition error: {exc}") from exc

        failed_refs = tuple(d.reference for d in outcome.failed)
        message = "Download complete"
        if failed_refs:
            message = (
                f"Download complete with {len(failed_refs)} missing segment(s) "
                f"({len(outcome.succeeded)}/{outcome.total} merged)"
            )
        task.transition(TaskState.DONE, message)
        tracker.report(checkpoints.COMPLETE, message)
        logger.info("Task %s done: %s -> %s (%d bytes)", task.id, task.source, final_path, size)

        return AcquisitionResult(
            success=True,
            source_reference=task.source,
            output_path=final_path,
            byte_size=size,
            segment_count_requested=outcome.total,
            segment_count_merged=len(outcome.succeeded),
            message=message,
            failed_references=failed_refs,
        )

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _load_segments(
        self,
        task: AcquisitionTask,
        tracker: ProgressTracker,
        token: CancellationToken,
    ) -> list[SegmentDescriptor]:
        task.transition(TaskState.FETCHING_MANIFEST, "Fetching manifest")
        logger.info("Fetching manifest: %s", task.source)
        content = self._reader.read(
            task.source,
            task.config.retries,
            cancel_token=token,
            timeout=task.config.manifest_timeout,
            backoff=task.config.backoff,
        )
        tracker.report(checkpoints.MANIFEST_FETCHED, "Manifest fetched")

        kind = task.kind or detect_stream_kind(task.source) or sniff_stream_kind(content)
        if kind is None:
            raise NoSegmentsFoundError(
                f"Could not tell whether {task.source} is an HLS or DASH manifest.",
                hint="Pass the stream kind explicitly.",
            )
        task.kind = kind

        info = parse_manifest(content, kind, task.source, base_url=task.base_url)
        if info.bandwidth is not None:
            logger.info("Chosen representation bandwidth: %d bps", info.bandwidth)
        logger.info("Found %d segments", len(info))
        tracker.report(checkpoints.SEGMENTS_LISTED, f"Found {len(info)} segments")
        return list(info.segments)

    def _acquire(
        self,
        task: AcquisitionTask,
        descriptors: list[SegmentDescriptor],
        tracker: ProgressTracker,
        token: CancellationToken,
    ) -> AcquisitionOutcome:
        task.transition(TaskState.FETCHING_SEGMENTS, "Downloading segments")

        def enter_backfill(failed: Sequence[SegmentDescriptor]) -> None:
            task.transition(TaskState.BACKFILLING, f"Retrying {len(failed)} failed segments")

        scheduler = AcquisitionScheduler(
            self._transport,
            progress=tracker,
            progress_range=task.config.progress_range,
            cancel_token=token,
            on_backfill=enter_backfill,
            timeout=task.config.request_timeout,
            backoff=task.config.backoff,
        )
        return scheduler.run(descriptors, task.config.concurrency, task.config.retries)

    @staticmethod
    def _check_completeness(task: AcquisitionTask, completeness: float) -> None:
        required = task.config.min_completeness
        if required > 0 and completeness < required:
            raise IncompleteStreamError(
                f"Only {completeness:.1%} of segments were acquired; "
                f"{required:.1%} required.",
                hint="Lower min_completeness to accept partial output.",
            )

    @staticmethod
    def _fail(task: AcquisitionTask, message: str) -> None:
        if not task.state.is_terminal:
            task.transition(TaskState.FAILED, message)
        logger.error("Task %s failed: %s", task.id, message)
