"""Protocols (interfaces) consumed by the core layer.

These define the contracts that infrastructure adapters must satisfy.
Core code depends ONLY on these protocols, never on concrete
implementations, preserving the dependency inversion principle.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from stream_assembler.core.cancellation import CancellationToken
from stream_assembler.core.models import AcquisitionResult, SegmentDescriptor, StreamKind

if TYPE_CHECKING:
    from stream_assembler.core.progress import ProgressTracker


class ProgressSink(Protocol):
    """Narrow progress channel, decoupled from any transport.

    Implementations may forward to a push channel, a log line or a
    terminal progress bar.  They must not raise.
    """

    def report(self, percentage: float, message: str) -> None:
        """Receive a progress value in ``[0, 100]`` and a status string."""
        ...  # pragma: no cover


class ManifestSource(Protocol):
    """Contract for obtaining raw manifest text."""

    def read(
        self,
        reference: str,
        retries: int = 3,
        *,
        cancel_token: CancellationToken | None = None,
        timeout: float | None = None,
        backoff: float | None = None,
    ) -> str:
        """Return the manifest at *reference* (URL or local path).

        *timeout* and *backoff*, when given, override the source's defaults.

        Raises
        ------
        ManifestUnavailableError
            When the manifest cannot be read within *retries* attempts.
        """
        ...  # pragma: no cover


class SegmentTransport(Protocol):
    """Contract for retrieving one segment's bytes to its destination."""

    def fetch(
        self,
        descriptor: SegmentDescriptor,
        max_attempts: int,
        *,
        cancel_token: CancellationToken | None = None,
        timeout: float | None = None,
        backoff: float | None = None,
    ) -> bool:
        """Fetch *descriptor* until it succeeds or ``attempts`` hits *max_attempts*.

        Per-segment failures are recorded on the descriptor and reported
        through the return value; they are never raised.
        """
        ...  # pragma: no cover


class ScratchSpace(Protocol):
    """A per-task working directory holding segment files."""

    @property
    def path(self) -> Path: ...  # pragma: no cover

    def create(self) -> Path:
        """Create the directory; it must not already exist."""
        ...  # pragma: no cover

    def assign(self, descriptors: list[SegmentDescriptor], kind: StreamKind | None = None) -> None:
        """Set each descriptor's destination inside the directory."""
        ...  # pragma: no cover

    def remove(self) -> None:
        """Delete the directory; failures are logged, never raised."""
        ...  # pragma: no cover

    def __enter__(self) -> ScratchSpace:
        """Create the directory and return the space."""
        ...  # pragma: no cover

    def __exit__(self, *_args: object) -> None:
        """Remove the directory, whether or not the body raised."""
        ...  # pragma: no cover


class SegmentAssembler(Protocol):
    """Contract for merging acquired segments into one output file."""

    def merge(
        self,
        descriptors: list[SegmentDescriptor],
        output_path: Path,
        *,
        scratch: ScratchSpace | None = None,
    ) -> tuple[Path, int]:
        """Concatenate *descriptors* in index order; return final path and size.

        Raises
        ------
        MergeFailedError
            When a segment file is missing or the output cannot be written.

        The scratch space, when given, is removed whether or not the merge
        succeeds.
        """
        ...  # pragma: no cover


class DirectTransport(Protocol):
    """Contract for progressive (single-file) downloads."""

    def download(
        self,
        url: str,
        output_path: Path,
        *,
        retries: int = 3,
        progress: ProgressTracker | None = None,
        cancel_token: CancellationToken | None = None,
        timeout: float | None = None,
        backoff: float | None = None,
    ) -> AcquisitionResult:
        """Download *url* to *output_path*.

        Raises
        ------
        DownloadFailedError
            When every attempt failed.
        """
        ...  # pragma: no cover
