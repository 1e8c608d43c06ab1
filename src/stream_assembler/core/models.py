"""Domain models for stream-assembler.

Value objects (sources, manifest info, outcomes, results) are **frozen**
dataclasses.  :class:`SegmentDescriptor` and :class:`AcquisitionTask` are
deliberately mutable: they carry per-run state that is updated by exactly
one owner at a time (a fetch worker, or the engine driving the task).
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from stream_assembler.core.config import AcquisitionConfig
from stream_assembler.exceptions import InvalidStateTransitionError


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class StreamKind(str, Enum):
    """Manifest flavour understood by the segment list extractor."""

    HLS = "hls"
    DASH = "dash"


class SegmentStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class TaskState(str, Enum):
    """Lifecycle of an :class:`AcquisitionTask`."""

    PENDING = "pending"
    FETCHING_MANIFEST = "fetching-manifest"
    FETCHING_SEGMENTS = "fetching-segments"
    BACKFILLING = "backfilling"
    MERGING = "merging"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskState.DONE, TaskState.FAILED)


# ---------------------------------------------------------------------------
# Segment sources
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class RemoteSource:
    """A segment reachable over HTTP(S)."""

    url: str

    def __str__(self) -> str:
        return self.url


@dataclass(frozen=True, slots=True)
class LocalSource:
    """A segment already present on the local filesystem."""

    path: Path

    def __str__(self) -> str:
        return str(self.path)


SegmentSource = RemoteSource | LocalSource
"""Where a segment's bytes come from.  Consumed uniformly by the fetcher."""


# ---------------------------------------------------------------------------
# Segment descriptor
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class SegmentDescriptor:
    """One addressable unit of media within a stream.

    The ``index`` defines the final byte order in the merged output and
    is 0-based and contiguous within a manifest.
    """

    index: int
    source: SegmentSource
    destination: Path | None = None
    status: SegmentStatus = SegmentStatus.PENDING
    attempts: int = 0
    last_error: str | None = None

    @property
    def reference(self) -> str:
        """Human-readable form of :attr:`source` for logs and results."""
        return str(self.source)

    def mark_success(self) -> None:
        self.status = SegmentStatus.SUCCESS
        self.last_error = None

    def mark_failed(self, error: str) -> None:
        self.status = SegmentStatus.FAILED
        self.last_error = error


# ---------------------------------------------------------------------------
# Manifest info
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ManifestInfo:
    """Result of parsing one manifest.  Ephemeral, never persisted."""

    kind: StreamKind
    base_reference: str
    segments: tuple[SegmentDescriptor, ...]
    bandwidth: int | None = None
    """Declared bitrate of the chosen DASH representation (diagnostic)."""

    def __len__(self) -> int:
        return len(self.segments)


# ---------------------------------------------------------------------------
# Scheduler outcome
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class AcquisitionOutcome:
    """Partition of descriptors after both acquisition passes.

    Both tuples are ordered by ascending ``index``.
    """

    succeeded: tuple[SegmentDescriptor, ...]
    failed: tuple[SegmentDescriptor, ...]

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def completeness(self) -> float:
        """Fraction of segments acquired, ``1.0`` for an empty run."""
        if self.total == 0:
            return 1.0
        return len(self.succeeded) / self.total


# ---------------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------------

def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class AcquisitionTask:
    """One end-to-end acquisition run.

    Created at task start and mutated only by the engine driving it.
    Once :attr:`state` is terminal any further transition is rejected.
    """

    source: str
    output_path: Path
    config: AcquisitionConfig = field(default_factory=AcquisitionConfig)
    kind: StreamKind | None = None
    base_url: str | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: int = field(default_factory=_now_ms)
    """Creation time in epoch milliseconds; also names the workspace."""
    state: TaskState = TaskState.PENDING
    message: str = ""

    def transition(self, state: TaskState, message: str = "") -> None:
        """Move to *state*, refusing to leave a terminal state."""
        if self.state.is_terminal:
            raise InvalidStateTransitionError(
                f"Task {self.id} is already {self.state.value}; "
                f"cannot move to {state.value}.",
            )
        self.state = state
        if message:
            self.message = message

    @property
    def workspace_name(self) -> str:
        """Directory name unique to this task, derived from creation time."""
        prefix = self.kind.value if self.kind is not None else "task"
        return f"{prefix}_{self.created_at}_{self.id[:8]}"


# ---------------------------------------------------------------------------
# Terminal result
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class AcquisitionResult:
    """Terminal result handed back to the task-tracking layer."""

    success: bool
    source_reference: str
    output_path: Path
    byte_size: int
    segment_count_requested: int
    segment_count_merged: int
    message: str
    failed_references: tuple[str, ...] = ()
    method: str = "segments"
    """``"segments"`` for HLS/DASH assembly, ``"direct"`` for progressive files."""

    @property
    def is_complete(self) -> bool:
        return self.segment_count_merged == self.segment_count_requested
