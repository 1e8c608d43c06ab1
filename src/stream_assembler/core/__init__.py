"""Core / service layer: pure acquisition logic and data models.

Rules
-----
* No ``print()`` calls.
* No direct network or filesystem I/O; that lives behind the protocols.
* No imports from ``infra`` or ``ui``.
"""

from stream_assembler.core.cancellation import CancellationToken
from stream_assembler.core.config import AcquisitionConfig
from stream_assembler.core.download_service import DownloadService
from stream_assembler.core.engine import AcquisitionEngine
from stream_assembler.core.models import (
    AcquisitionOutcome,
    AcquisitionResult,
    AcquisitionTask,
    LocalSource,
    ManifestInfo,
    RemoteSource,
    SegmentDescriptor,
    SegmentStatus,
    StreamKind,
    TaskState,
)
from stream_assembler.core.progress import (
    CallbackProgressSink,
    LoggingProgressSink,
    NullProgressSink,
    ProgressTracker,
)
from stream_assembler.core.protocols import (
    DirectTransport,
    ManifestSource,
    ProgressSink,
    ScratchSpace,
    SegmentAssembler,
    SegmentTransport,
)
from stream_assembler.core.registry import TaskRegistry
from stream_assembler.core.scheduler import AcquisitionScheduler

__all__: list[str] = [
    "AcquisitionConfig",
    "AcquisitionEngine",
    "AcquisitionOutcome",
    "AcquisitionResult",
    "AcquisitionScheduler",
    "AcquisitionTask",
    "CallbackProgressSink",
    "CancellationToken",
    "DirectTransport",
    "DownloadService",
    "LocalSource",
    "LoggingProgressSink",
    "ManifestInfo",
    "ManifestSource",
    "NullProgressSink",
    "ProgressSink",
    "ProgressTracker",
    "RemoteSource",
    "ScratchSpace",
    "SegmentAssembler",
    "SegmentDescriptor",
    "SegmentStatus",
    "SegmentTransport",
    "StreamKind",
    "TaskRegistry",
    "TaskState",
]
