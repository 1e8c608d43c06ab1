"""Infrastructure: progressive (single-file) media download.

Used for plain ``.mp4``/``.webm`` style URLs that need no manifest.  The
same policy as segment fetching applies: browser-like headers, any status
of 400 or above fails, an empty body fails, and attempt *n* is followed by
``n * backoff`` seconds of backoff.  A partially written file is deleted
before the next attempt.
"""

from __future__ import annotations

import logging
from pathlib import Path

import requests

from stream_assembler.core.cancellation import CancellationToken
from stream_assembler.core.config import DEFAULT_BACKOFF, DEFAULT_DIRECT_TIMEOUT, DEFAULT_RETRIES
from stream_assembler.core.models import AcquisitionResult
from stream_assembler.core.progress import ProgressTracker
from stream_assembler.exceptions import DownloadFailedError
from stream_assembler.infra.http import FAILURE_STATUS, browser_headers, build_session, describe_status
from stream_assembler.utils.formatting import format_file_size

logger = logging.getLogger(__name__)

_CHUNK: int = 64 * 1024


class _AttemptFailed(Exception):
    """One direct-download attempt failed; carries a printable reason."""


class DirectDownloader:
    """Stream a single remote file to disk with retry."""

    def __init__(
        self,
        session: requests.Session | None = None,
        *,
        timeout: float = DEFAULT_DIRECT_TIMEOUT,
        backoff: float = DEFAULT_BACKOFF,
    ) -> None:
        self._session = session if session is not None else build_session(1)
        self._timeout = timeout
        self._backoff = backoff

    def download(
        self,
        url: str,
        output_path: Path,
        *,
        retries: int = DEFAULT_RETRIES,
        progress: ProgressTracker | None = None,
        cancel_token: CancellationToken | None = None,
        timeout: float | None = None,
        backoff: float | None = None,
    ) -> AcquisitionResult:
        """Download *url* to *output_path*.

        *timeout* and *backoff* override the downloader defaults for this call.

        Raises
        ------
        DownloadFailedError
            When every attempt failed.
        TaskCancelledError
            If *cancel_token* fires between attempts.
        """
        tracker = progress if progress is not None else ProgressTracker()
        token = cancel_token if cancel_token is not None else CancellationToken()
        timeout = self._timeout if timeout is None else timeout
        backoff = self._backoff if backoff is None else backoff
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        last_error = "no attempt made"
        for attempt in range(1, retries + 1):
            token.raise_if_cancelled()
            if attempt > 1:
                logger.info("Direct download retry %d/%d: %s", attempt, retries, url)
            else:
                logger.info("Direct download: %s", url)
            try:
                size = self._attempt(url, output_path, tracker, timeout)
            except _AttemptFailed as exc:
                last_error = str(exc)
                _discard(output_path)
                if attempt < retries:
                    logger.warning("Direct download failed, retrying %d/%d: %s", attempt, retries, exc)
                    token.wait(attempt * backoff)
                continue

            logger.info("Downloaded %s (%s)", output_path, format_file_size(size))
            tracker.report(100.0, "Download complete")
            return AcquisitionResult(
                success=True,
                source_reference=url,
                output_path=output_path,
                byte_size=size,
                segment_count_requested=1,
                segment_count_merged=1,
                message="Download complete",
                method="direct",
            )

        logger.error("Direct download failed after %d attempts: %s", retries, last_error)
        raise DownloadFailedError(
            f"Download failed after {retries} attempts: {last_error}",
            hint="The server may reject hotlinking or the URL may have expired.",
        )

    def _attempt(
        self, url: str, output_path: Path, tracker: ProgressTracker, timeout: float,
    ) -> int:
        try:
            with self._session.get(
                url,
                headers=browser_headers(url),
                timeout=timeout,
                stream=True,
                allow_redirects=True,
            ) as response:
                if response.status_code >= FAILURE_STATUS:
                    raise _AttemptFailed(describe_status(response))
                total = _content_length(response)
                written = 0
                with output_path.open("wb") as out:
                    for chunk in response.iter_content(chunk_size=_CHUNK):
                        if not chunk:
                            continue
                        out.write(chunk)
                        written += len(chunk)
                        if total:
                            tracker.report(
                                written / total * 100.0,
                                f"Downloading: {written / total * 100.0:.2f}%",
                            )
        except requests.RequestException as exc:
            raise _AttemptFailed(f"Download stream error: {exc}") from exc
        except OSError as exc:
            raise _AttemptFailed(f"Failed to write file: {exc}") from exc

        if written == 0:
            raise _AttemptFailed("Downloaded file is empty")
        return written


def _content_length(response: requests.Response) -> int:
    try:
        return int(response.headers.get("content-length") or 0)
    except ValueError:
        return 0


def _discard(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Could not remove partial download %s: %s", path, exc)
