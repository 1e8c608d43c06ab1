"""Infrastructure: shared ``requests`` session and browser-like headers.

Origin servers that sit behind CDNs or hotlink protection frequently
reject requests that do not look like a desktop browser.  Every GET made
by the engine carries the header set built here, with ``Referer`` and
``Origin`` derived from the URL being fetched.

Rules
-----
* This module is the only place that constructs a ``requests.Session``.
* Retries are owned by the callers (manifest reader, segment fetcher,
  direct downloader), so the adapter is mounted without urllib3 retries.
"""

from __future__ import annotations

from urllib.parse import urlsplit

import requests
from requests.adapters import HTTPAdapter

DEFAULT_USER_AGENT: str = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

FAILURE_STATUS: int = 400
"""Any response status at or above this value counts as a failed attempt."""


def browser_headers(url: str, extra: dict[str, str] | None = None) -> dict[str, str]:
    """Return desktop-browser request headers appropriate for *url*.

    ``Referer`` is the URL's origin plus its directory; ``Origin`` is the
    bare origin.  *extra* entries override the defaults.
    """
    headers: dict[str, str] = {
        "User-Agent": DEFAULT_USER_AGENT,
        "Accept": "*/*",
        "Accept-Language": "en-US,en;q=0.9",
        "Accept-Encoding": "gzip, deflate",
        "Connection": "keep-alive",
    }
    parts = urlsplit(url)
    if parts.scheme and parts.netloc:
        origin = f"{parts.scheme}://{parts.netloc}"
        directory = parts.path[: parts.path.rfind("/") + 1] or "/"
        headers.update(
            {
                "Referer": f"{origin}{directory}",
                "Origin": origin,
                "Sec-Fetch-Dest": "empty",
                "Sec-Fetch-Mode": "cors",
                "Sec-Fetch-Site": "same-origin",
            },
        )
    if extra:
        headers.update(extra)
    return headers


def build_session(pool_size: int = 10) -> requests.Session:
    """Create a session whose connection pool fits *pool_size* workers."""
    session = requests.Session()
    adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size, max_retries=0)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def describe_status(response: requests.Response) -> str:
    """Render ``HTTP 404: Not Found`` style text for error messages."""
    reason = response.reason or ""
    return f"HTTP {response.status_code}: {reason}".rstrip(": ")
