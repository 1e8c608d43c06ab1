"""Custom exception hierarchy for stream-assembler.

All exceptions that cross layer boundaries must inherit from
:class:`StreamAssemblerError`.  Raw third-party exceptions (``requests``,
``lxml``) and filesystem ``OSError`` must NEVER propagate beyond the
infrastructure layer.  They are either caught and re-raised as a typed
subclass defined here, or recorded as data on the segment they belong to.

Hierarchy
---------
StreamAssemblerError
├── InvalidReferenceError
├── InvalidConfigError
├── ManifestUnavailableError
├── NoSegmentsFoundError
├── SegmentFetchFailedError
├── MergeFailedError
├── IncompleteStreamError
├── DownloadFailedError
├── TaskCancelledError
└── InvalidStateTransitionError

CleanupWarning (UserWarning)
"""

from __future__ import annotations


class StreamAssemblerError(Exception):
    """Base exception for all stream-assembler errors.

    Every caller-visible error condition maps to a subclass of this
    exception so that the task-tracking layer can report a clean message
    without inspecting library internals.
    """

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint: str | None = hint
        """Optional actionable guidance shown below the error message."""


# --- Input validation ------------------------------------------------------

class InvalidReferenceError(StreamAssemblerError):
    """Raised when a manifest or media reference is empty or unusable."""


class InvalidConfigError(StreamAssemblerError):
    """Raised when a per-call options bag holds an invalid value."""


# --- Manifest --------------------------------------------------------------

class ManifestUnavailableError(StreamAssemblerError):
    """Raised when the manifest cannot be read after the retry budget."""


class NoSegmentsFoundError(StreamAssemblerError):
    """Raised when a manifest yields zero segment references."""


# --- Segments --------------------------------------------------------------

class SegmentFetchFailedError(StreamAssemblerError):
    """A single fetch attempt for one segment failed.

    Raised and caught inside the segment fetcher only; callers observe the
    outcome through :attr:`SegmentDescriptor.status` instead.
    """


# --- Assembly --------------------------------------------------------------

class MergeFailedError(StreamAssemblerError):
    """Raised when segment files cannot be merged into the output file."""


class IncompleteStreamError(StreamAssemblerError):
    """Raised when fewer segments survived than the configured minimum."""


# --- Direct download -------------------------------------------------------

class DownloadFailedError(StreamAssemblerError):
    """Raised when a progressive (single-file) download is exhausted."""


# --- Task lifecycle --------------------------------------------------------

class TaskCancelledError(StreamAssemblerError):
    """Raised when a running task observes its cancellation token."""


class InvalidStateTransitionError(StreamAssemblerError):
    """Raised when a task is moved out of a terminal state."""


# --- Warnings --------------------------------------------------------------

class CleanupWarning(UserWarning):
    """Non-fatal: the task's scratch directory could not be removed."""
