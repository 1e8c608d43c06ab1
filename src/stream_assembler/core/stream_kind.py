"""Pure helpers for classifying media references.

These mirror what the URL-detection layer hands us: a reference that may
point at an HLS playlist, a DASH MPD, or a plain progressive file.
"""

from __future__ import annotations

from pathlib import PurePosixPath
from urllib.parse import unquote, urlsplit

from stream_assembler.core.models import StreamKind

HLS_CONTENT_TYPES: tuple[str, ...] = (
    "application/vnd.apple.mpegurl",
    "application/x-mpegurl",
    "audio/mpegurl",
)
DASH_CONTENT_TYPES: tuple[str, ...] = ("application/dash+xml",)

VIDEO_EXTENSIONS: tuple[str, ...] = (
    ".m3u8", ".mpd", ".mp4", ".webm", ".flv", ".3gp",
    ".avi", ".wmv", ".mov", ".mkv", ".ts", ".m4v",
)


def is_hls(reference: str, content_type: str = "") -> bool:
    return ".m3u8" in reference.lower() or any(
        ct in content_type.lower() for ct in HLS_CONTENT_TYPES
    )


def is_dash(reference: str, content_type: str = "") -> bool:
    return ".mpd" in reference.lower() or any(
        ct in content_type.lower() for ct in DASH_CONTENT_TYPES
    )


def is_video_reference(reference: str, content_type: str = "") -> bool:
    """Return ``True`` if *reference* looks like any downloadable media."""
    lowered = reference.lower()
    return (
        any(ext in lowered for ext in VIDEO_EXTENSIONS)
        or content_type.lower().startswith("video/")
        or is_hls(reference, content_type)
        or is_dash(reference, content_type)
    )


def detect_stream_kind(reference: str, content_type: str = "") -> StreamKind | None:
    """Classify *reference* as HLS, DASH, or ``None`` for progressive media."""
    if is_hls(reference, content_type):
        return StreamKind.HLS
    if is_dash(reference, content_type):
        return StreamKind.DASH
    return None


def sniff_stream_kind(content: str) -> StreamKind | None:
    """Classify manifest text by its leading bytes."""
    head = content.lstrip("\ufeff \t\r\n")[:512]
    if head.startswith("#EXTM3U"):
        return StreamKind.HLS
    if "<MPD" in head:
        return StreamKind.DASH
    return None


def derive_output_filename(reference: str, default_name: str = "video") -> str:
    """Pick a filename for *reference* from the last path component.

    Falls back to ``<default_name>.mp4`` when the reference has no usable
    name.  Manifests keep their own extension here; the assembler
    normalises the final extension after merging.
    """
    path = urlsplit(reference).path if "://" in reference else reference
    name = PurePosixPath(unquote(path.replace("\\", "/"))).name
    if name and "." in name:
        return name
    if is_hls(reference):
        return f"{default_name}.m3u8"
    if is_dash(reference):
        return f"{default_name}.mpd"
    return f"{default_name}.mp4"
