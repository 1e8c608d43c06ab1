"""Infrastructure: ordered streaming merge of acquired segments.

Implements :class:`~stream_assembler.core.protocols.SegmentAssembler`.

* Segments are written in strictly ascending ``index`` order, streamed
  chunk by chunk with :func:`shutil.copyfileobj`; the whole segment set
  is never held in memory.
* A segment file that should exist but does not is fatal
  (:class:`~stream_assembler.exceptions.MergeFailedError`).  Segments
  that failed acquisition are not passed in at all.
* The output extension is normalised to ``.mp4`` by renaming only; the
  bytes are not transcoded.
* The scratch directory is removed on every exit path.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from stream_assembler.core.models import SegmentDescriptor, SegmentStatus
from stream_assembler.core.protocols import ScratchSpace
from stream_assembler.exceptions import MergeFailedError

logger = logging.getLogger(__name__)

CANONICAL_EXTENSION: str = ".mp4"

_COPY_CHUNK: int = 1024 * 1024


class Assembler:
    """Concatenate segment files into one output file."""

    def __init__(self, chunk_size: int = _COPY_CHUNK) -> None:
        self._chunk_size = chunk_size

    def merge(
        self,
        descriptors: list[SegmentDescriptor],
        output_path: Path,
        *,
        scratch: ScratchSpace | None = None,
    ) -> tuple[Path, int]:
        """Merge *descriptors* into *output_path*.

        Returns
        -------
        tuple[Path, int]
            The final (possibly renamed) path and its size in bytes.

        Raises
        ------
        MergeFailedError
            If there is nothing to merge, a segment file is missing, or the
            destination cannot be written.
        """
        try:
            written = self._write(descriptors, Path(output_path))
            final_path = normalize_extension(Path(output_path))
            logger.info(
                "Merged %d segments into %s (%d bytes)", len(descriptors), final_path, written,
            )
            return final_path, written
        finally:
            if scratch is not None:
                scratch.remove()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _write(self, descriptors: list[SegmentDescriptor], output_path: Path) -> int:
        if not descriptors:
            raise MergeFailedError(
                "No segments were downloaded successfully; nothing to merge.",
            )
        ordered = sorted(descriptors, key=lambda d: d.index)
        for descriptor in ordered:
            if descriptor.status is SegmentStatus.FAILED:
                raise MergeFailedError(
                    f"Segment {descriptor.index} failed acquisition and cannot be merged.",
                )
            if descriptor.destination is None or not descriptor.destination.is_file():
                raise MergeFailedError(
                    f"Segment file missing at merge time: index {descriptor.index} "
                    f"({descriptor.destination})",
                )

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with output_path.open("wb") as out:
                for descriptor in ordered:
                    assert descriptor.destination is not None
                    with descriptor.destination.open("rb") as segment:
                        shutil.copyfileobj(segment, out, self._chunk_size)
            return output_path.stat().st_size
        except OSError as exc:
            _discard_partial(output_path)
            raise MergeFailedError(f"Could not write output {output_path}: {exc}") from exc


def normalize_extension(path: Path) -> Path:
    """Rename *path* to the canonical playable extension if needed.

    This is a metadata-only rename; callers must not assume the container
    is actually MP4.
    """
    if path.suffix.lower() == CANONICAL_EXTENSION:
        return path
    target = path.with_suffix(CANONICAL_EXTENSION)
    try:
        os.replace(path, target)
    except OSError as exc:
        raise MergeFailedError(f"Could not rename {path} to {target}: {exc}") from exc
    logger.debug("Renamed %s -> %s", path.name, target.name)
    return target


def _discard_partial(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Could not remove partial output %s: %s", path, exc)
