"""Infrastructure: manifest retrieval with bounded retry.

Implements :class:`~stream_assembler.core.protocols.ManifestSource`.  The
manifest is a single critical request, so it has its own retry loop,
distinct from the per-segment one: attempt *n* is followed by a wait of
``n * backoff`` seconds, and the final failure surfaces the last
underlying error.
"""

from __future__ import annotations

import logging
from pathlib import Path

import requests

from stream_assembler.core.cancellation import CancellationToken
from stream_assembler.core.config import DEFAULT_BACKOFF, DEFAULT_MANIFEST_TIMEOUT, DEFAULT_RETRIES
from stream_assembler.core.references import is_remote
from stream_assembler.exceptions import InvalidReferenceError, ManifestUnavailableError
from stream_assembler.infra.http import FAILURE_STATUS, browser_headers, build_session, describe_status

logger = logging.getLogger(__name__)


class ManifestReader:
    """Read HLS/DASH manifests from URLs or local files.

    Parameters
    ----------
    session:
        ``requests`` session used for remote manifests.  A private one is
        created when omitted.
    timeout:
        Per-request timeout in seconds.
    backoff:
        Backoff unit in seconds between attempts.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        *,
        timeout: float = DEFAULT_MANIFEST_TIMEOUT,
        backoff: float = DEFAULT_BACKOFF,
    ) -> None:
        self._session = session if session is not None else build_session(1)
        self._timeout = timeout
        self._backoff = backoff

    def read(
        self,
        reference: str,
        retries: int = DEFAULT_RETRIES,
        *,
        cancel_token: CancellationToken | None = None,
        timeout: float | None = None,
        backoff: float | None = None,
    ) -> str:
        """Return manifest text for *reference*.

        *timeout* and *backoff* override the reader defaults for this call.

        Raises
        ------
        InvalidReferenceError
            If *reference* is empty.
        ManifestUnavailableError
            When every attempt failed.
        TaskCancelledError
            If *cancel_token* fires between attempts.
        """
        ref = reference.strip()
        if not ref:
            raise InvalidReferenceError("Manifest reference must not be empty.")
        token = cancel_token if cancel_token is not None else CancellationToken()
        timeout = self._timeout if timeout is None else timeout
        backoff = self._backoff if backoff is None else backoff

        last_error = "no attempt made"
        for attempt in range(1, retries + 1):
            token.raise_if_cancelled()
            try:
                return self._read_once(ref, timeout)
            except (requests.RequestException, OSError) as exc:
                last_error = str(exc)
                if attempt == retries:
                    break
                logger.info(
                    "Manifest fetch failed, retrying %d/%d: %s (%s)",
                    attempt, retries, ref, last_error,
                )
                token.wait(attempt * backoff)

        raise ManifestUnavailableError(
            f"Could not fetch manifest after {retries} attempts: {ref} ({last_error})",
            hint="Check that the manifest URL is reachable and not expired.",
        )

    def _read_once(self, reference: str, timeout: float) -> str:
        if not is_remote(reference):
            return Path(reference).read_bytes().decode("utf-8", errors="replace")

        response = self._session.get(
            reference,
            headers=browser_headers(reference),
            timeout=timeout,
        )
        if response.status_code >= FAILURE_STATUS:
            raise requests.HTTPError(describe_status(response), response=response)
        # Decode the raw bytes as UTF-8: requests falls back to ISO-8859-1
        # for text/* responses without a charset.
        return response.content.decode("utf-8", errors="replace")
