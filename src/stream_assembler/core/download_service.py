"""Core download service: routes a media reference to the right pipeline.

The service decides between:

* the segment pipeline (:class:`~stream_assembler.core.engine.AcquisitionEngine`)
  for HLS playlists, DASH manifests and local manifest files;
* the progressive pipeline (a :class:`~stream_assembler.core.protocols.DirectTransport`)
  for plain remote video files.

Both collaborators are injected at construction time.

Guarantees
----------
* No network or filesystem access of its own.
* Only :class:`~stream_assembler.exceptions.StreamAssemblerError`
  subclasses escape.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from stream_assembler.core.cancellation import CancellationToken
from stream_assembler.core.config import AcquisitionConfig
from stream_assembler.core.engine import AcquisitionEngine
from stream_assembler.core.models import AcquisitionResult, AcquisitionTask, StreamKind, TaskState
from stream_assembler.core.progress import ProgressTracker
from stream_assembler.core.protocols import DirectTransport, ProgressSink
from stream_assembler.core.references import is_remote
from stream_assembler.core.registry import TaskRegistry
from stream_assembler.core.stream_kind import derive_output_filename, detect_stream_kind
from stream_assembler.exceptions import (
    DownloadFailedError,
    InvalidConfigError,
    InvalidReferenceError,
    StreamAssemblerError,
)

logger = logging.getLogger(__name__)


class DownloadService:
    """Entry point that drives one download per call.

    Parameters
    ----------
    engine:
        Segment pipeline for HLS/DASH references.
    direct:
        Any object satisfying the :class:`DirectTransport` protocol.
    config:
        Defaults applied when a call passes no options of its own.
    download_dir:
        Directory used when the caller gives no output path.
    registry:
        Optional task registry shared with the engine.
    """

    def __init__(
        self,
        engine: AcquisitionEngine,
        direct: DirectTransport,
        *,
        config: AcquisitionConfig | None = None,
        download_dir: Path | None = None,
        registry: TaskRegistry | None = None,
    ) -> None:
        self._engine = engine
        self._direct = direct
        self._config = config if config is not None else AcquisitionConfig()
        self._download_dir = Path(download_dir) if download_dir is not None else Path.cwd() / "downloads"
        self._registry = registry

    # ------------------------------------------------------------------
    # Routing (pure)
    # ------------------------------------------------------------------

    @staticmethod
    def route(reference: str, content_type: str = "") -> StreamKind | None:
        """Return the stream kind for *reference*, or ``None`` for a direct file.

        Local paths with no recognisable extension go to the segment
        pipeline, where the manifest body decides the kind.
        """
        kind = detect_stream_kind(reference, content_type)
        if kind is None and not is_remote(reference):
            logger.debug("Local reference without manifest extension: %s", reference)
        return kind

    def resolve_output_path(self, reference: str, output_path: Path | str | None) -> Path:
        if output_path is not None:
            return Path(output_path)
        return self._download_dir / derive_output_filename(reference)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def download(
        self,
        reference: str,
        output_path: Path | str | None = None,
        *,
        options: Mapping[str, Any] | None = None,
        content_type: str = "",
        base_url: str | None = None,
        progress: ProgressSink | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> AcquisitionResult:
        """Download *reference* to *output_path*.

        Parameters
        ----------
        reference:
            Manifest URL, manifest file path, or direct video URL.
        output_path:
            Suggested output file; derived from *reference* when omitted.
        options:
            Configuration bag (``concurrency``, ``retries``, ``tempDir`` ...)
            merged over the service defaults.
        content_type:
            Optional ``Content-Type`` hint from the detection layer.
        base_url:
            Base for relative segment entries of a locally saved manifest.

        Raises
        ------
        InvalidReferenceError
            If *reference* is empty.
        InvalidConfigError
            If *options* hold an invalid value.
        StreamAssemblerError
            Any pipeline failure (see the engine and direct transport).
        """
        reference = (reference or "").strip()
        if not reference:
            raise InvalidReferenceError("No media reference was given.")

        config = self._merge_options(options)
        target = self.resolve_output_path(reference, output_path)
        kind = self.route(reference, content_type)

        try:
            if kind is not None or not is_remote(reference):
                task = AcquisitionTask(
                    source=reference,
                    output_path=target,
                    config=config,
                    kind=kind,
                    base_url=base_url,
                )
                return self._engine.run(task, progress=progress, cancel_token=cancel_token)
            return self._download_direct(reference, target, config, progress, cancel_token)
        except StreamAssemblerError:
            # Already one of ours; propagate unchanged.
            raise
        except Exception as exc:
            raise DownloadFailedError(f"Unexpected download error: {exc}") from exc

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _merge_options(self, options: Mapping[str, Any] | None) -> AcquisitionConfig:
        if not options:
            return self._config
        merged = {
            name: getattr(self._config, name) for name in AcquisitionConfig.__dataclass_fields__
        }
        merged.update(options)
        try:
            return AcquisitionConfig.from_mapping(merged)
        except (TypeError, ValueError) as exc:
            raise InvalidConfigError(f"Invalid download options: {exc}") from exc

    def _download_direct(
        self,
        url: str,
        target: Path,
        config: AcquisitionConfig,
        progress: ProgressSink | None,
        cancel_token: CancellationToken | None,
    ) -> AcquisitionResult:
        task = AcquisitionTask(source=url, output_path=target, config=config)
        if self._registry is not None:
            self._registry.register(task)
        task.transition(TaskState.FETCHING_SEGMENTS, "Downloading file")
        try:
            result = self._direct.download(
                url,
                target,
                retries=config.retries,
                progress=ProgressTracker(progress),
                cancel_token=cancel_token,
                timeout=config.direct_timeout,
                backoff=config.backoff,
            )
        except StreamAssemblerError as exc:
            task.transition(TaskState.FAILED, str(exc))
            logger.error("Task %s failed: %s", task.id, exc)
            raise
        task.transition(TaskState.DONE, result.message)
        return result
