"""Infrastructure: per-task scratch directory for segment files.

Each task gets exactly one workspace beneath the configured temp root,
named from the task's creation time so that concurrently running tasks
never collide.  Removal is idempotent and never raises; a failure is
reported as a :class:`~stream_assembler.exceptions.CleanupWarning` log
record instead.
"""

from __future__ import annotations

import logging
import shutil
import warnings
from pathlib import Path

from stream_assembler.core.models import SegmentDescriptor, StreamKind
from stream_assembler.exceptions import CleanupWarning

logger = logging.getLogger(__name__)

_SEGMENT_SUFFIX: dict[StreamKind | None, str] = {
    StreamKind.HLS: ".ts",
    StreamKind.DASH: ".m4s",
    None: ".bin",
}


class Workspace:
    """A temporary directory owned by a single acquisition task.

    Usable as a context manager: the directory is created on entry and
    removed on exit, whether or not the body raised.
    """

    def __init__(self, root: Path, name: str) -> None:
        self._path = Path(root) / name

    @property
    def path(self) -> Path:
        return self._path

    @property
    def exists(self) -> bool:
        return self._path.exists()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create(self) -> Path:
        self._path.mkdir(parents=True, exist_ok=False)
        logger.debug("Created workspace %s", self._path)
        return self._path

    def remove(self) -> None:
        """Delete the directory tree; log a cleanup warning on failure."""
        if not self._path.exists():
            return
        try:
            shutil.rmtree(self._path)
        except OSError as exc:
            message = f"Failed to remove workspace {self._path}: {exc}"
            logger.warning(message)
            warnings.warn(message, CleanupWarning, stacklevel=2)
        else:
            logger.debug("Removed workspace %s", self._path)

    def __enter__(self) -> Workspace:
        self.create()
        return self

    def __exit__(self, *_args: object) -> None:
        self.remove()

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def segment_path(self, index: int, kind: StreamKind | None = None) -> Path:
        """Return the destination file for segment *index*."""
        return self._path / f"segment_{index:06d}{_SEGMENT_SUFFIX[kind]}"

    def assign(self, descriptors: list[SegmentDescriptor], kind: StreamKind | None = None) -> None:
        """Give every descriptor its destination inside this workspace."""
        for descriptor in descriptors:
            descriptor.destination = self.segment_path(descriptor.index, kind)
