"""Pure reference resolution for manifest entries.

Every segment reference found in a manifest is resolved with the same
three-way rule:

1. ``http://`` / ``https://`` references are used verbatim.
2. References starting with ``/`` are resolved against the base's origin
   (for a local base: taken as an absolute filesystem path).
3. Anything else is resolved against the base's directory.

No I/O happens here; the functions only inspect strings and paths.
"""

from __future__ import annotations

from pathlib import Path
from urllib.parse import urlsplit

from stream_assembler.core.models import LocalSource, RemoteSource, SegmentSource

_SCHEMES: tuple[str, ...] = ("http://", "https://")


def is_remote(reference: str) -> bool:
    """Return ``True`` when *reference* is an HTTP(S) URL."""
    return reference.strip().lower().startswith(_SCHEMES)


def url_origin(url: str) -> str:
    """Return ``scheme://host[:port]`` for *url*."""
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


def url_directory(url: str) -> str:
    """Return *url* up to and including the last ``/`` of its path.

    Query strings and fragments are dropped, so a signed manifest URL does
    not leak its query into relative segment references.
    """
    parts = urlsplit(url)
    path = parts.path
    directory = path[: path.rfind("/") + 1] if "/" in path else "/"
    return f"{parts.scheme}://{parts.netloc}{directory}"


def resolve_reference(
    reference: str,
    base_reference: str,
    *,
    base_url: str | None = None,
) -> SegmentSource:
    """Resolve one manifest entry into a concrete segment source.

    Parameters
    ----------
    reference:
        The raw entry as written in the manifest.
    base_reference:
        The manifest's own location (URL or local file path).
    base_url:
        Optional remote base used when the manifest was stored locally but
        its relative entries point at a remote origin.
    """
    ref = reference.strip()
    if is_remote(ref):
        return RemoteSource(ref)

    remote_base = base_reference if is_remote(base_reference) else base_url
    if remote_base:
        if ref.startswith("/"):
            return RemoteSource(f"{url_origin(remote_base)}{ref}")
        return RemoteSource(f"{url_directory(remote_base)}{ref}")

    if ref.startswith("/"):
        return LocalSource(Path(ref))
    return LocalSource(local_directory(base_reference) / ref)


def local_directory(base_reference: str) -> Path:
    """Directory of a local base; a trailing separator marks a directory itself."""
    if base_reference.endswith(("/", "\\")):
        return Path(base_reference)
    return Path(base_reference).parent


def join_base(
    base_reference: str,
    relative: str,
    *,
    base_url: str | None = None,
) -> str:
    """Join a DASH ``BaseURL`` value onto an existing base reference.

    Absolute values replace the base; empty values leave it unchanged.
    """
    rel = relative.strip()
    if not rel:
        return base_reference
    source = resolve_reference(rel, base_reference, base_url=base_url)
    resolved = str(source)
    if rel.endswith("/") and not resolved.endswith("/"):
        resolved += "/"
    return resolved
