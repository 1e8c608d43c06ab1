"""Rich progress bar driven by engine progress reports.

This module bridges :class:`~stream_assembler.core.protocols.ProgressSink`
with a Rich :class:`~rich.progress.Progress` bar.  The engine only ever
calls :meth:`RichProgressSink.report`; rendering happens here.

Design
------
* One Rich task per sink, scaled 0-100.
* Shutdown-safe: reports arriving while the bar is stopped are ignored.
* Safe to call from worker threads; Rich serialises updates internally.
"""

from __future__ import annotations

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

_MAX_LABEL: int = 50


class RichProgressSink:
    """Progress sink rendering a single Rich bar.

    Usage::

        with RichProgressSink("video.m3u8") as sink:
            service.download(url, progress=sink)

    Or explicitly::

        sink = RichProgressSink()
        sink.start()
        service.download(url, progress=sink)
        sink.stop()
    """

    def __init__(self, label: str = "Downloading", *, console: Console | None = None) -> None:
        self._label = _shorten(label)
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TextColumn("{task.fields[status]}"),
            TimeElapsedColumn(),
            console=console if console is not None else Console(stderr=True),
            transient=False,
        )
        self._task_id: TaskID | None = None
        self._started: bool = False

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> RichProgressSink:
        self.start()
        return self

    def __exit__(self, *_args: object) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the Rich progress display."""
        if not self._started:
            self._progress.start()
            self._task_id = self._progress.add_task(self._label, total=100.0, status="")
            self._started = True

    def stop(self) -> None:
        """Stop the Rich progress display (idempotent)."""
        if self._started:
            self._progress.stop()
            self._started = False

    @property
    def completed(self) -> float:
        """Percentage currently shown by the bar."""
        if self._task_id is None:
            return 0.0
        return self._progress.tasks[0].completed

    # ------------------------------------------------------------------
    # ProgressSink
    # ------------------------------------------------------------------

    def report(self, percentage: float, message: str) -> None:
        if not self._started or self._task_id is None:
            return
        self._progress.update(
            self._task_id,
            completed=max(0.0, min(100.0, percentage)),
            status=message,
        )


def _shorten(label: str) -> str:
    """Keep only the base name of a path-like *label*, truncated for display."""
    name = label.rsplit("/", 1)[-1].rsplit("\\", 1)[-1] or label
    if len(name) > _MAX_LABEL:
        name = name[: _MAX_LABEL - 3] + "..."
    return name
