"""Shared pytest fixtures and configuration for the stream-assembler test suite.

Guidelines
----------
* No internet access in any test.
* ``requests`` is replaced by :class:`FakeSession` at the infra boundary.
* Backoff is always zero so retry tests run instantly.
* Filesystem work happens under ``tmp_path`` only.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest

from stream_assembler.core.config import AcquisitionConfig


# ---------------------------------------------------------------------------
# Fake HTTP layer
# ---------------------------------------------------------------------------

class FakeResponse:
    """Just enough of ``requests.Response`` for the infra adapters."""

    def __init__(
        self,
        content: bytes = b"",
        status_code: int = 200,
        *,
        reason: str = "OK",
        headers: dict[str, str] | None = None,
    ) -> None:
        self.content = content
        self.status_code = status_code
        self.reason = reason
        self.headers = headers if headers is not None else {"content-length": str(len(content))}
        self.closed = False

    def iter_content(self, chunk_size: int = 1) -> Iterator[bytes]:
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start : start + chunk_size]

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> FakeResponse:
        return self

    def __exit__(self, *_args: object) -> None:
        self.close()


class FakeSession:
    """Scripted stand-in for ``requests.Session``.

    Each URL maps to a list of outcomes consumed in order; the last one
    repeats.  An outcome is a :class:`FakeResponse`, raw ``bytes`` (a 200
    response) or an exception instance to raise.
    """

    def __init__(self, routes: dict[str, Any] | None = None) -> None:
        self._routes: dict[str, list[Any]] = {}
        self._lock = threading.Lock()
        self.calls: list[tuple[str, dict[str, Any]]] = []
        for url, outcome in (routes or {}).items():
            self.route(url, outcome)

    def route(self, url: str, outcome: Any) -> None:
        outcomes = list(outcome) if isinstance(outcome, list) else [outcome]
        self._routes[url] = outcomes

    def count(self, url: str) -> int:
        return sum(1 for called, _ in self.calls if called == url)

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        with self._lock:
            self.calls.append((url, kwargs))
            outcomes = self._routes.get(url)
            if not outcomes:
                outcome: Any = FakeResponse(b"", 404, reason="Not Found")
            elif len(outcomes) > 1:
                outcome = outcomes.pop(0)
            else:
                outcome = outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, bytes):
            return FakeResponse(outcome)
        return outcome


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def make_response() -> type[FakeResponse]:
    """The :class:`FakeResponse` class, for building scripted outcomes."""
    return FakeResponse


@pytest.fixture
def fast_config(tmp_path: Path) -> AcquisitionConfig:
    """Default config with zero backoff and a temp root under ``tmp_path``."""
    return AcquisitionConfig(temp_dir=tmp_path / "scratch", backoff=0.0)


@pytest.fixture
def segment_files(tmp_path: Path) -> list[Path]:
    """Three local segment files holding ``A``, ``B`` and ``C``."""
    source_dir = tmp_path / "media"
    source_dir.mkdir()
    paths = []
    for name, data in (("seg0.ts", b"A"), ("seg1.ts", b"B"), ("seg2.ts", b"C")):
        path = source_dir / name
        path.write_bytes(data)
        paths.append(path)
    return paths


@pytest.fixture
def local_playlist(segment_files: list[Path]) -> Path:
    """An HLS playlist next to :func:`segment_files` using relative entries."""
    playlist = segment_files[0].parent / "index.m3u8"
    playlist.write_text(
        "#EXTM3U\n#EXT-X-TARGETDURATION:4\n"
        "#EXTINF:4,\nseg0.ts\n#EXTINF:4,\nseg1.ts\n#EXTINF:4,\nseg2.ts\n#EXT-X-ENDLIST\n",
        encoding="utf-8",
    )
    return playlist
