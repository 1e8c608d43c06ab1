"""Tests for per-segment retrieval (infra/segment_fetcher.py)."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
import requests

from stream_assembler.core.cancellation import CancellationToken
from stream_assembler.core.models import LocalSource, RemoteSource, SegmentDescriptor, SegmentStatus
from stream_assembler.infra.segment_fetcher import SegmentFetcher

URL = "https://cdn.example.com/live/seg0.ts"


def _remote(tmp_path: Path, url: str = URL) -> SegmentDescriptor:
    return SegmentDescriptor(index=0, source=RemoteSource(url), destination=tmp_path / "segment_000000.ts")


def _fetcher(session: Any) -> SegmentFetcher:
    return SegmentFetcher(session, timeout=5.0, backoff=0.0)


# ---------------------------------------------------------------------------
# Remote segments
# ---------------------------------------------------------------------------

class TestRemoteSegments:
    def test_success_writes_bytes(self, tmp_path: Path, fake_session: Any) -> None:
        fake_session.route(URL, b"\x47" * 188)
        d = _remote(tmp_path)
        assert _fetcher(fake_session).fetch(d, 3) is True
        assert d.status is SegmentStatus.SUCCESS
        assert d.attempts == 1
        assert d.destination is not None
        assert d.destination.read_bytes() == b"\x47" * 188

    def test_no_partial_file_left(self, tmp_path: Path, fake_session: Any) -> None:
        fake_session.route(URL, b"data")
        _fetcher(fake_session).fetch(_remote(tmp_path), 1)
        assert not list(tmp_path.glob("*.part"))

    def test_empty_body_is_failure(self, tmp_path: Path, fake_session: Any) -> None:
        fake_session.route(URL, b"")
        d = _remote(tmp_path)
        assert _fetcher(fake_session).fetch(d, 3) is False
        assert d.status is SegmentStatus.FAILED
        assert d.attempts == 3
        assert "Empty response body" in (d.last_error or "")

    @pytest.mark.parametrize("status", [400, 403, 404, 500, 503])
    def test_error_status_is_failure(
        self, status: int, tmp_path: Path, fake_session: Any, make_response: Any,
    ) -> None:
        fake_session.route(URL, make_response(b"body", status, reason="Nope"))
        d = _remote(tmp_path)
        assert _fetcher(fake_session).fetch(d, 2) is False
        assert d.last_error == f"HTTP {status}: Nope"

    def test_recovers_after_transient_failures(
        self, tmp_path: Path, fake_session: Any, make_response: Any,
    ) -> None:
        fake_session.route(
            URL,
            [requests.Timeout("slow"), make_response(b"", 502, reason="Bad Gateway"), b"ok"],
        )
        d = _remote(tmp_path)
        assert _fetcher(fake_session).fetch(d, 3) is True
        assert d.attempts == 3
        assert d.last_error is None

    def test_attempt_ceiling_is_cumulative(self, tmp_path: Path, fake_session: Any) -> None:
        fake_session.route(URL, b"")
        d = _remote(tmp_path)
        fetcher = _fetcher(fake_session)
        fetcher.fetch(d, 3)
        fetcher.fetch(d, 6)
        assert d.attempts == 6
        assert fake_session.count(URL) == 6

    def test_backoff_grows_linearly(self, tmp_path: Path, fake_session: Any) -> None:
        waits: list[float] = []

        class RecordingToken(CancellationToken):
            def wait(self, seconds: float) -> bool:
                waits.append(seconds)
                return False

        fake_session.route(URL, b"")
        SegmentFetcher(fake_session, backoff=1.0).fetch(
            _remote(tmp_path), 3, cancel_token=RecordingToken(),
        )
        assert waits == [1.0, 2.0]

    def test_per_call_timeout_and_backoff_override_defaults(
        self, tmp_path: Path, fake_session: Any,
    ) -> None:
        waits: list[float] = []

        class RecordingToken(CancellationToken):
            def wait(self, seconds: float) -> bool:
                waits.append(seconds)
                return False

        fake_session.route(URL, b"")
        SegmentFetcher(fake_session, timeout=30.0, backoff=1.0).fetch(
            _remote(tmp_path), 2, cancel_token=RecordingToken(), timeout=2.5, backoff=0.5,
        )
        assert waits == [0.5]
        assert [kwargs["timeout"] for _, kwargs in fake_session.calls] == [2.5, 2.5]

    def test_cancelled_token_stops_attempts(self, tmp_path: Path, fake_session: Any) -> None:
        token = CancellationToken()
        token.cancel()
        d = _remote(tmp_path)
        assert _fetcher(fake_session).fetch(d, 3, cancel_token=token) is False
        assert d.last_error == "cancelled"
        assert fake_session.calls == []


# ---------------------------------------------------------------------------
# Local segments
# ---------------------------------------------------------------------------

class TestLocalSegments:
    def test_copies_file(self, tmp_path: Path, fake_session: Any) -> None:
        source = tmp_path / "in.ts"
        source.write_bytes(b"local bytes")
        d = SegmentDescriptor(index=0, source=LocalSource(source), destination=tmp_path / "out.ts")
        assert _fetcher(fake_session).fetch(d, 3) is True
        assert (tmp_path / "out.ts").read_bytes() == b"local bytes"
        assert fake_session.calls == []

    def test_missing_file_uses_attempt_budget(self, tmp_path: Path, fake_session: Any) -> None:
        d = SegmentDescriptor(
            index=0, source=LocalSource(tmp_path / "missing.ts"), destination=tmp_path / "out.ts",
        )
        assert _fetcher(fake_session).fetch(d, 2) is False
        assert d.attempts == 2
        assert "Copy failed" in (d.last_error or "")


class TestPreconditions:
    def test_missing_destination_fails_fast(self, fake_session: Any) -> None:
        d = SegmentDescriptor(index=0, source=RemoteSource(URL))
        assert _fetcher(fake_session).fetch(d, 3) is False
        assert d.attempts == 0
        assert d.status is SegmentStatus.FAILED
