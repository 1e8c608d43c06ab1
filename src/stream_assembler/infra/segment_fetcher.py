"""Infrastructure: fetch one media segment with per-segment retry.

Implements :class:`~stream_assembler.core.protocols.SegmentTransport`.

* :class:`~stream_assembler.core.models.RemoteSource` segments are
  fetched with an HTTP GET carrying browser-like headers.  A status of
  400 or above, a zero-length body, or a transport error each count as
  one failed attempt.
* :class:`~stream_assembler.core.models.LocalSource` segments are copied
  from disk and counted against the same attempt budget.

The attempt ceiling is cumulative on ``descriptor.attempts``, so a
backfill pass called with ``max_attempts = 2 * retries`` adds at most
``retries`` further attempts.  Exhausting the budget marks the descriptor
``FAILED``; nothing is raised to the caller.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

import requests

from stream_assembler.core.cancellation import CancellationToken
from stream_assembler.core.config import DEFAULT_BACKOFF, DEFAULT_REQUEST_TIMEOUT
from stream_assembler.core.models import LocalSource, RemoteSource, SegmentDescriptor
from stream_assembler.exceptions import SegmentFetchFailedError
from stream_assembler.infra.http import FAILURE_STATUS, browser_headers, build_session, describe_status

logger = logging.getLogger(__name__)


class SegmentFetcher:
    """Retrieve segment bytes to each descriptor's destination file.

    Parameters
    ----------
    session:
        Shared ``requests`` session.  Workers of one pass share it.
    timeout:
        Wall-clock timeout per GET; hitting it is one failed attempt.
    backoff:
        Backoff unit; attempt *n* is followed by ``n * backoff`` seconds.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        *,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        backoff: float = DEFAULT_BACKOFF,
    ) -> None:
        self._session = session if session is not None else build_session()
        self._timeout = timeout
        self._backoff = backoff

    # ------------------------------------------------------------------
    # Protocol method
    # ------------------------------------------------------------------

    def fetch(
        self,
        descriptor: SegmentDescriptor,
        max_attempts: int,
        *,
        cancel_token: CancellationToken | None = None,
        timeout: float | None = None,
        backoff: float | None = None,
    ) -> bool:
        """Fetch *descriptor*; return ``True`` on success.

        On failure the descriptor is marked ``FAILED`` with its last error.
        *timeout* and *backoff* override the fetcher defaults for this call.
        """
        if descriptor.destination is None:
            descriptor.mark_failed("Segment has no destination path")
            return False
        token = cancel_token if cancel_token is not None else CancellationToken()
        timeout = self._timeout if timeout is None else timeout
        backoff = self._backoff if backoff is None else backoff

        while descriptor.attempts < max_attempts:
            if token.cancelled:
                descriptor.mark_failed("cancelled")
                return False

            descriptor.attempts += 1
            try:
                self._fetch_once(descriptor, timeout)
            except SegmentFetchFailedError as exc:
                descriptor.last_error = str(exc)
                logger.debug(
                    "Segment %d attempt %d/%d failed: %s",
                    descriptor.index, descriptor.attempts, max_attempts, exc,
                )
                if descriptor.attempts < max_attempts:
                    token.wait(descriptor.attempts * backoff)
                continue

            descriptor.mark_success()
            return True

        descriptor.mark_failed(descriptor.last_error or "attempt budget exhausted")
        return False

    # ------------------------------------------------------------------
    # Single attempt
    # ------------------------------------------------------------------

    def _fetch_once(self, descriptor: SegmentDescriptor, timeout: float) -> None:
        """Run one attempt, raising :class:`SegmentFetchFailedError` on failure."""
        destination = descriptor.destination
        assert destination is not None
        source = descriptor.source

        if isinstance(source, LocalSource):
            try:
                shutil.copyfile(source.path, destination)
            except OSError as exc:
                raise SegmentFetchFailedError(f"Copy failed: {exc}") from exc
            return

        if isinstance(source, RemoteSource):
            data = self._download(source.url, timeout)
            _write_atomic(destination, data)
            return

        raise SegmentFetchFailedError(f"Unsupported segment source: {source!r}")

    def _download(self, url: str, timeout: float) -> bytes:
        try:
            response = self._session.get(
                url,
                headers=browser_headers(url),
                timeout=timeout,
            )
        except requests.RequestException as exc:
            raise SegmentFetchFailedError(f"Request failed: {exc}") from exc

        if response.status_code >= FAILURE_STATUS:
            raise SegmentFetchFailedError(describe_status(response))
        data = response.content
        if not data:
            raise SegmentFetchFailedError(f"Empty response body (HTTP {response.status_code})")
        return data


def _write_atomic(path: Path, data: bytes) -> None:
    tmp = path.with_name(path.name + ".part")
    try:
        tmp.write_bytes(data)
        os.replace(tmp, path)
    except OSError as exc:
        raise SegmentFetchFailedError(f"Could not write {path.name}: {exc}") from exc
