"""Composition root: wires the concrete infra adapters into the services.

Most applications only need :func:`download`.  Callers that run many
downloads should build one service with :func:`create_download_service`
and reuse it, so that the HTTP connection pool and task registry are
shared.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from stream_assembler.core.cancellation import CancellationToken
from stream_assembler.core.config import AcquisitionConfig
from stream_assembler.core.download_service import DownloadService
from stream_assembler.core.engine import AcquisitionEngine
from stream_assembler.core.models import AcquisitionResult
from stream_assembler.core.protocols import ProgressSink
from stream_assembler.core.registry import TaskRegistry
from stream_assembler.exceptions import InvalidConfigError
from stream_assembler.infra.assembler import Assembler
from stream_assembler.infra.direct_download import DirectDownloader
from stream_assembler.infra.http import build_session
from stream_assembler.infra.manifest_reader import ManifestReader
from stream_assembler.infra.segment_fetcher import SegmentFetcher
from stream_assembler.infra.workspace import Workspace


def create_download_service(
    config: AcquisitionConfig | None = None,
    *,
    download_dir: Path | None = None,
    registry: TaskRegistry | None = None,
) -> DownloadService:
    """Build a :class:`DownloadService` backed by ``requests`` and the local disk."""
    config = config if config is not None else AcquisitionConfig()
    # One pooled connection per worker, plus one for the manifest.
    session = build_session(pool_size=config.concurrency + 1)
    engine = AcquisitionEngine(
        ManifestReader(session, timeout=config.manifest_timeout, backoff=config.backoff),
        SegmentFetcher(session, timeout=config.request_timeout, backoff=config.backoff),
        Assembler(),
        Workspace,
        registry=registry,
    )
    direct = DirectDownloader(session, timeout=config.direct_timeout, backoff=config.backoff)
    return DownloadService(
        engine,
        direct,
        config=config,
        download_dir=download_dir,
        registry=registry,
    )


def download(
    reference: str,
    output_path: Path | str | None = None,
    *,
    options: Mapping[str, Any] | None = None,
    base_url: str | None = None,
    progress: ProgressSink | None = None,
    cancel_token: CancellationToken | None = None,
) -> AcquisitionResult:
    """Download one HLS, DASH or progressive reference with a fresh service.

    *options* is the configuration bag (``concurrency``, ``retries``,
    ``tempDir`` ...); see :meth:`AcquisitionConfig.from_mapping`.
    """
    try:
        config = AcquisitionConfig.from_mapping(options)
    except (TypeError, ValueError) as exc:
        raise InvalidConfigError(f"Invalid download options: {exc}") from exc
    service = create_download_service(config)
    return service.download(
        reference,
        output_path,
        base_url=base_url,
        progress=progress,
        cancel_token=cancel_token,
    )
