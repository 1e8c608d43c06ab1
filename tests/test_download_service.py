"""Tests for the routing service (core/download_service.py).

The engine and the direct transport are mocked, mirroring how the
service is exercised in isolation.  The per-call option tests wire the
real adapters over :class:`FakeSession` instead.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from stream_assembler.core.cancellation import CancellationToken
from stream_assembler.core.config import AcquisitionConfig
from stream_assembler.core.download_service import DownloadService
from stream_assembler.core.engine import AcquisitionEngine
from stream_assembler.core.models import AcquisitionResult, AcquisitionTask, StreamKind, TaskState
from stream_assembler.core.registry import TaskRegistry
from stream_assembler.exceptions import (
    DownloadFailedError,
    InvalidConfigError,
    InvalidReferenceError,
    ManifestUnavailableError,
)
from stream_assembler.infra.assembler import Assembler
from stream_assembler.infra.direct_download import DirectDownloader
from stream_assembler.infra.manifest_reader import ManifestReader
from stream_assembler.infra.segment_fetcher import SegmentFetcher
from stream_assembler.infra.workspace import Workspace


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

def _result(**overrides: Any) -> AcquisitionResult:
    defaults: dict[str, Any] = {
        "success": True,
        "source_reference": "ref",
        "output_path": Path("out.mp4"),
        "byte_size": 10,
        "segment_count_requested": 1,
        "segment_count_merged": 1,
        "message": "Download complete",
    }
    defaults.update(overrides)
    return AcquisitionResult(**defaults)


def _service(tmp_path: Path, **kwargs: Any) -> tuple[DownloadService, MagicMock, MagicMock]:
    engine = MagicMock()
    engine.run.return_value = _result()
    direct = MagicMock()
    direct.download.return_value = _result(method="direct")
    service = DownloadService(engine, direct, download_dir=tmp_path / "downloads", **kwargs)
    return service, engine, direct


def _submitted_task(engine: MagicMock) -> AcquisitionTask:
    return engine.run.call_args.args[0]


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------

class TestRouting:
    def test_hls_goes_to_engine(self, tmp_path: Path) -> None:
        service, engine, direct = _service(tmp_path)
        service.download("https://cdn.example.com/live/index.m3u8")
        engine.run.assert_called_once()
        direct.download.assert_not_called()
        assert _submitted_task(engine).kind is StreamKind.HLS

    def test_dash_content_type_goes_to_engine(self, tmp_path: Path) -> None:
        service, engine, _ = _service(tmp_path)
        service.download("https://cdn.example.com/play", content_type="application/dash+xml")
        assert _submitted_task(engine).kind is StreamKind.DASH

    def test_plain_video_goes_direct(self, tmp_path: Path) -> None:
        service, engine, direct = _service(tmp_path)
        result = service.download("https://media.example.com/clip.mp4")
        engine.run.assert_not_called()
        direct.download.assert_called_once()
        assert result.method == "direct"

    def test_local_file_without_extension_goes_to_engine(self, tmp_path: Path) -> None:
        service, engine, _ = _service(tmp_path)
        service.download(str(tmp_path / "saved_manifest"))
        task = _submitted_task(engine)
        assert task.kind is None

    @pytest.mark.parametrize(
        ("reference", "expected"),
        [
            ("https://a/x.m3u8", StreamKind.HLS),
            ("https://a/x.mpd", StreamKind.DASH),
            ("https://a/x.webm", None),
        ],
    )
    def test_route(self, reference: str, expected: StreamKind | None) -> None:
        assert DownloadService.route(reference) is expected


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

class TestInputs:
    @pytest.mark.parametrize("reference", ["", "  "])
    def test_empty_reference(self, tmp_path: Path, reference: str) -> None:
        service, _, _ = _service(tmp_path)
        with pytest.raises(InvalidReferenceError):
            service.download(reference)

    def test_output_derived_from_reference(self, tmp_path: Path) -> None:
        service, engine, _ = _service(tmp_path)
        service.download("https://cdn.example.com/shows/ep1.m3u8?token=x")
        assert _submitted_task(engine).output_path == tmp_path / "downloads" / "ep1.m3u8"

    def test_explicit_output_kept(self, tmp_path: Path) -> None:
        service, engine, _ = _service(tmp_path)
        service.download("https://a/x.m3u8", tmp_path / "mine.ts")
        assert _submitted_task(engine).output_path == tmp_path / "mine.ts"

    def test_options_merged_over_defaults(self, tmp_path: Path) -> None:
        defaults = AcquisitionConfig(concurrency=2, temp_dir=tmp_path / "t", backoff=0.0)
        service, engine, _ = _service(tmp_path, config=defaults)
        service.download("https://a/x.m3u8", options={"retries": 7, "tempDir": str(tmp_path / "o")})
        config = _submitted_task(engine).config
        assert config.retries == 7
        assert config.concurrency == 2
        assert config.backoff == 0.0
        assert config.temp_dir == tmp_path / "o"

    def test_invalid_options(self, tmp_path: Path) -> None:
        service, _, _ = _service(tmp_path)
        with pytest.raises(InvalidConfigError):
            service.download("https://a/x.m3u8", options={"concurrency": 0})

    def test_base_url_forwarded(self, tmp_path: Path) -> None:
        service, engine, _ = _service(tmp_path)
        service.download(str(tmp_path / "x.m3u8"), base_url="https://cdn.example.com/v/")
        assert _submitted_task(engine).base_url == "https://cdn.example.com/v/"


# ---------------------------------------------------------------------------
# Error boundary
# ---------------------------------------------------------------------------

class TestErrorBoundary:
    def test_library_errors_propagate_unchanged(self, tmp_path: Path) -> None:
        service, engine, _ = _service(tmp_path)
        engine.run.side_effect = ManifestUnavailableError("gone")
        with pytest.raises(ManifestUnavailableError, match="gone"):
            service.download("https://a/x.m3u8")

    def test_unexpected_errors_are_wrapped(self, tmp_path: Path) -> None:
        service, engine, _ = _service(tmp_path)
        engine.run.side_effect = KeyError("weird")
        with pytest.raises(DownloadFailedError, match="Unexpected download error"):
            service.download("https://a/x.m3u8")


# ---------------------------------------------------------------------------
# Direct task tracking
# ---------------------------------------------------------------------------

class TestDirectTasks:
    def test_direct_task_registered_and_done(self, tmp_path: Path) -> None:
        registry = TaskRegistry()
        service, _, _ = _service(tmp_path, registry=registry)
        service.download("https://media.example.com/clip.mp4")
        [task] = registry.by_state(TaskState.DONE)
        assert task.source == "https://media.example.com/clip.mp4"

    def test_direct_failure_marks_task_failed(self, tmp_path: Path) -> None:
        registry = TaskRegistry()
        service, _, direct = _service(tmp_path, registry=registry)
        direct.download.side_effect = DownloadFailedError("empty")
        with pytest.raises(DownloadFailedError):
            service.download("https://media.example.com/clip.mp4")
        assert len(registry.by_state(TaskState.FAILED)) == 1

    def test_direct_uses_configured_retries(self, tmp_path: Path) -> None:
        service, _, direct = _service(tmp_path, config=AcquisitionConfig(retries=5))
        service.download("https://media.example.com/clip.mp4")
        assert direct.download.call_args.kwargs["retries"] == 5


# ---------------------------------------------------------------------------
# Per-call transport options
# ---------------------------------------------------------------------------

def _wired_service(session: Any, tmp_path: Path) -> DownloadService:
    engine = AcquisitionEngine(
        ManifestReader(session),
        SegmentFetcher(session),
        Assembler(),
        Workspace,
    )
    return DownloadService(engine, DirectDownloader(session), download_dir=tmp_path / "downloads")


class TestPerCallOptions:
    PLAYLIST = "https://cdn.example.com/vod/index.m3u8"

    def test_timeouts_reach_segment_pipeline(self, tmp_path: Path, fake_session: Any) -> None:
        fake_session.route(self.PLAYLIST, b"#EXTM3U\n#EXTINF:4,\ns0.ts\n#EXTINF:4,\ns1.ts\n")
        fake_session.route("https://cdn.example.com/vod/s0.ts", b"A")
        fake_session.route("https://cdn.example.com/vod/s1.ts", b"B")

        result = _wired_service(fake_session, tmp_path).download(
            self.PLAYLIST,
            tmp_path / "out.ts",
            options={
                "manifestTimeout": 2.0,
                "requestTimeout": 3.0,
                "backoff": 0.0,
                "tempDir": tmp_path / "scratch",
            },
        )

        assert result.output_path.read_bytes() == b"AB"
        timeouts = {url: kwargs["timeout"] for url, kwargs in fake_session.calls}
        assert timeouts == {
            self.PLAYLIST: 2.0,
            "https://cdn.example.com/vod/s0.ts": 3.0,
            "https://cdn.example.com/vod/s1.ts": 3.0,
        }

    def test_backoff_override_applies_to_retries(
        self, tmp_path: Path, fake_session: Any, make_response: Any,
    ) -> None:
        waits: list[float] = []

        class RecordingToken(CancellationToken):
            def wait(self, seconds: float) -> bool:
                waits.append(seconds)
                return False

        fake_session.route(self.PLAYLIST, b"#EXTM3U\ns0.ts\n")
        fake_session.route(
            "https://cdn.example.com/vod/s0.ts",
            [make_response(b"", 503, reason="Service Unavailable"), b"A"],
        )

        _wired_service(fake_session, tmp_path).download(
            self.PLAYLIST,
            tmp_path / "out.ts",
            options={"backoff": 0.25, "tempDir": tmp_path / "scratch"},
            cancel_token=RecordingToken(),
        )

        assert waits == [0.25]

    def test_direct_timeout_reaches_direct_download(self, tmp_path: Path, fake_session: Any) -> None:
        url = "https://cdn.example.com/files/clip.mp4"
        fake_session.route(url, b"movie")

        result = _wired_service(fake_session, tmp_path).download(
            url, tmp_path / "clip.mp4", options={"directTimeout": 4.0},
        )

        assert result.byte_size == 5
        assert [kwargs["timeout"] for _, kwargs in fake_session.calls] == [4.0]
