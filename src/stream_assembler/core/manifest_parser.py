"""Segment list extraction from HLS playlists and DASH MPDs.

Only as much of each grammar is understood as is needed to produce a
flat, ordered list of segment references:

* **HLS**: every non-blank line that does not start with ``#`` is a
  segment.  Tags (keys, byte ranges, discontinuities) are not modelled.
* **DASH**: the video ``Representation`` with the highest declared
  ``bandwidth`` is chosen (first one wins a tie) and its
  ``SegmentList``, ``SegmentTemplate`` or ``BaseURL`` is expanded.

Both paths resolve references with
:func:`~stream_assembler.core.references.resolve_reference`.  The module
performs no I/O: callers pass manifest text in and receive descriptors
out.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterator
from dataclasses import dataclass

from lxml import etree

from stream_assembler.core.models import ManifestInfo, SegmentDescriptor, StreamKind
from stream_assembler.core.references import join_base, resolve_reference
from stream_assembler.exceptions import NoSegmentsFoundError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def extract(
    content: str | bytes,
    kind: StreamKind,
    base_reference: str,
    *,
    base_url: str | None = None,
) -> list[SegmentDescriptor]:
    """Return the ordered segment descriptors listed in *content*.

    Raises
    ------
    NoSegmentsFoundError
        If the manifest is empty, unparseable, or lists no segments.
    """
    return list(parse_manifest(content, kind, base_reference, base_url=base_url).segments)


def parse_manifest(
    content: str | bytes,
    kind: StreamKind,
    base_reference: str,
    *,
    base_url: str | None = None,
) -> ManifestInfo:
    """Parse *content* into a :class:`ManifestInfo`.

    Raises
    ------
    NoSegmentsFoundError
        If the manifest is empty, unparseable, or lists no segments.
    """
    text = content.decode("utf-8", errors="replace") if isinstance(content, bytes) else content
    if not text.strip():
        raise NoSegmentsFoundError(
            f"Manifest is empty: {base_reference}",
            hint="The stream may have ended or the URL may point to an error page.",
        )

    bandwidth: int | None = None
    if kind is StreamKind.HLS:
        references = parse_hls(text)
        effective_base = base_reference
    else:
        selection = select_dash_representation(text, base_reference, base_url=base_url)
        references = selection.references
        effective_base = selection.base
        bandwidth = selection.bandwidth

    descriptors = [
        SegmentDescriptor(
            index=index,
            source=resolve_reference(ref, effective_base, base_url=base_url),
        )
        for index, ref in enumerate(references)
    ]
    if not descriptors:
        raise NoSegmentsFoundError(f"No segments found in {kind.value} manifest: {base_reference}")

    logger.debug("Parsed %d %s segments from %s", len(descriptors), kind.value, base_reference)
    return ManifestInfo(
        kind=kind,
        base_reference=effective_base,
        segments=tuple(descriptors),
        bandwidth=bandwidth,
    )


# ---------------------------------------------------------------------------
# HLS
# ---------------------------------------------------------------------------

def parse_hls(content: str) -> list[str]:
    """Return the raw (unresolved) segment lines of an HLS playlist."""
    references: list[str] = []
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        references.append(stripped)
    return references


# ---------------------------------------------------------------------------
# DASH
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class DashSelection:
    """The chosen representation's segment references and context."""

    bandwidth: int
    representation_id: str
    base: str
    references: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class _Candidate:
    element: etree._Element
    adaptation: etree._Element | None
    bandwidth: int
    base: str


_NON_VIDEO_CONTENT: frozenset[str] = frozenset({"audio", "text", "image"})
_NON_VIDEO_MIME: tuple[str, ...] = ("audio/", "text/", "image/", "application/")

_TEMPLATE_VAR = re.compile(r"\$(RepresentationID|Number|Time|Bandwidth)(?:%0(\d+)d)?\$")

_ISO_DURATION = re.compile(
    r"^P(?:(?P<days>\d+(?:\.\d+)?)D)?"
    r"(?:T(?:(?P<hours>\d+(?:\.\d+)?)H)?"
    r"(?:(?P<minutes>\d+(?:\.\d+)?)M)?"
    r"(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$",
)


def select_dash_representation(
    content: str,
    base_reference: str,
    *,
    base_url: str | None = None,
) -> DashSelection:
    """Pick the highest-bandwidth video representation and list its segments.

    Raises
    ------
    NoSegmentsFoundError
        If the document is not XML or no video representation declares a
        bandwidth.
    """
    root = _parse_xml(content, base_reference)

    base = _apply_base_url(base_reference, root, base_url)
    candidates = list(_iter_candidates(root, base, base_url))
    if not candidates:
        raise NoSegmentsFoundError(
            f"No DASH video representation declares a bandwidth: {base_reference}",
        )

    # max() keeps the first maximal element, which gives the tie-break.
    best = max(candidates, key=lambda c: c.bandwidth)
    rep_id = best.element.get("id", "")
    logger.info("Selected DASH representation %r at %d bps", rep_id, best.bandwidth)

    references = _representation_segments(root, best, rep_id)
    return DashSelection(
        bandwidth=best.bandwidth,
        representation_id=rep_id,
        base=best.base,
        references=tuple(references),
    )


def parse_iso_duration(value: str) -> float | None:
    """Convert an ISO-8601 duration such as ``PT1M30.5S`` to seconds."""
    match = _ISO_DURATION.match(value.strip())
    if match is None:
        return None
    parts = {k: float(v) for k, v in match.groupdict().items() if v is not None}
    return (
        parts.get("days", 0.0) * 86400
        + parts.get("hours", 0.0) * 3600
        + parts.get("minutes", 0.0) * 60
        + parts.get("seconds", 0.0)
    )


def expand_template(
    template: str,
    *,
    representation_id: str,
    bandwidth: int,
    number: int | None = None,
    time: int | None = None,
) -> str:
    """Substitute ``$Identifier$`` placeholders in a SegmentTemplate URL."""
    values: dict[str, int | str | None] = {
        "RepresentationID": representation_id,
        "Bandwidth": bandwidth,
        "Number": number,
        "Time": time,
    }

    def _substitute(match: re.Match[str]) -> str:
        value = values[match.group(1)]
        if value is None:
            return match.group(0)
        width = match.group(2)
        if width and isinstance(value, int):
            return f"{value:0{int(width)}d}"
        return str(value)

    return _TEMPLATE_VAR.sub(_substitute, template).replace("$$", "$")


# ---------------------------------------------------------------------------
# DASH helpers
# ---------------------------------------------------------------------------

def _parse_xml(content: str, base_reference: str) -> etree._Element:
    parser = etree.XMLParser(resolve_entities=False, no_network=True, remove_comments=True)
    try:
        return etree.fromstring(content.strip().encode("utf-8"), parser=parser)
    except etree.XMLSyntaxError as exc:
        raise NoSegmentsFoundError(
            f"Manifest is not a valid MPD document: {base_reference}",
            hint=str(exc),
        ) from exc


def _local(element: etree._Element) -> str:
    return etree.QName(element).localname


def _children(element: etree._Element | None, name: str) -> list[etree._Element]:
    if element is None:
        return []
    return [child for child in element if isinstance(child.tag, str) and _local(child) == name]


def _child(element: etree._Element | None, name: str) -> etree._Element | None:
    found = _children(element, name)
    return found[0] if found else None


def _first_child(name: str, *elements: etree._Element | None) -> etree._Element | None:
    # Element truthiness reflects child count in lxml, so test against None.
    for element in elements:
        found = _child(element, name)
        if found is not None:
            return found
    return None


def _apply_base_url(base: str, element: etree._Element | None, base_url: str | None) -> str:
    node = _child(element, "BaseURL")
    if node is None or not (node.text or "").strip():
        return base
    return join_base(base, node.text or "", base_url=base_url)


def _iter_candidates(
    root: etree._Element,
    mpd_base: str,
    base_url: str | None,
) -> Iterator[_Candidate]:
    periods = _children(root, "Period") or [root]
    for period in periods:
        period_base = _apply_base_url(mpd_base, period, base_url) if period is not root else mpd_base
        for adaptation in _children(period, "AdaptationSet"):
            adaptation_base = _apply_base_url(period_base, adaptation, base_url)
            for rep in _children(adaptation, "Representation"):
                bandwidth = _int_attr(rep, "bandwidth")
                if bandwidth is None or not _is_video(rep, adaptation):
                    continue
                yield _Candidate(
                    element=rep,
                    adaptation=adaptation,
                    bandwidth=bandwidth,
                    base=_apply_base_url(adaptation_base, rep, base_url),
                )


def _is_video(rep: etree._Element, adaptation: etree._Element) -> bool:
    content_type = rep.get("contentType") or adaptation.get("contentType") or ""
    if content_type.lower() in _NON_VIDEO_CONTENT:
        return False
    mime_type = (rep.get("mimeType") or adaptation.get("mimeType") or "").lower()
    return not mime_type.startswith(_NON_VIDEO_MIME)


def _int_attr(element: etree._Element | None, name: str, default: int | None = None) -> int | None:
    if element is None:
        return default
    raw = element.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _representation_segments(
    root: etree._Element,
    candidate: _Candidate,
    rep_id: str,
) -> list[str]:
    rep = candidate.element
    adaptation = candidate.adaptation

    segment_list = _first_child("SegmentList", rep, adaptation)
    if segment_list is not None:
        return _segment_list_references(segment_list)

    rep_template = _child(rep, "SegmentTemplate")
    adaptation_template = _child(adaptation, "SegmentTemplate")
    if rep_template is not None or adaptation_template is not None:
        return _template_references(
            root,
            rep_template,
            adaptation_template,
            rep_id=rep_id,
            bandwidth=candidate.bandwidth,
        )

    # SegmentBase / bare BaseURL: the whole representation is one file.
    if _child(rep, "BaseURL") is not None:
        return [candidate.base]
    return []


def _segment_list_references(segment_list: etree._Element) -> list[str]:
    references: list[str] = []
    init = _child(segment_list, "Initialization")
    if init is not None and init.get("sourceURL"):
        references.append(init.get("sourceURL", ""))
    for segment_url in _children(segment_list, "SegmentURL"):
        media = segment_url.get("media")
        if media:
            references.append(media)
    return references


def _template_references(
    root: etree._Element,
    rep_template: etree._Element | None,
    adaptation_template: etree._Element | None,
    *,
    rep_id: str,
    bandwidth: int,
) -> list[str]:
    attrs: dict[str, str] = {}
    for template in (adaptation_template, rep_template):
        if template is not None:
            attrs.update({str(k): str(v) for k, v in template.attrib.items()})
    timeline = _first_child("SegmentTimeline", rep_template, adaptation_template)

    references: list[str] = []
    initialization = attrs.get("initialization")
    if initialization:
        references.append(
            expand_template(initialization, representation_id=rep_id, bandwidth=bandwidth),
        )

    media = attrs.get("media")
    if not media:
        return references

    number = _safe_int(attrs.get("startNumber"), 1)
    if timeline is not None:
        for seg_number, seg_time in _timeline_entries(timeline, number):
            references.append(
                expand_template(
                    media,
                    representation_id=rep_id,
                    bandwidth=bandwidth,
                    number=seg_number,
                    time=seg_time,
                ),
            )
        return references

    duration = _safe_int(attrs.get("duration"), 0)
    timescale = _safe_int(attrs.get("timescale"), 1) or 1
    total_seconds = _presentation_seconds(root)
    if duration <= 0 or total_seconds is None:
        logger.warning("SegmentTemplate without timeline or usable duration; no segments listed")
        return references

    count = math.ceil(total_seconds * timescale / duration)
    for offset in range(count):
        references.append(
            expand_template(
                media,
                representation_id=rep_id,
                bandwidth=bandwidth,
                number=number + offset,
                time=offset * duration,
            ),
        )
    return references


def _timeline_entries(timeline: etree._Element, start_number: int) -> Iterator[tuple[int, int]]:
    number = start_number
    current = 0
    for entry in _children(timeline, "S"):
        start = _int_attr(entry, "t")
        if start is not None:
            current = start
        duration = _int_attr(entry, "d", 0) or 0
        repeat = _int_attr(entry, "r", 0) or 0
        # Open-ended repeats (r=-1) need live-edge timing, which is not modelled.
        for _ in range(max(repeat, 0) + 1):
            yield number, current
            number += 1
            current += duration


def _presentation_seconds(root: etree._Element) -> float | None:
    raw = root.get("mediaPresentationDuration")
    if raw is None:
        period = _child(root, "Period")
        raw = period.get("duration") if period is not None else None
    return parse_iso_duration(raw) if raw else None


def _safe_int(raw: str | None, default: int) -> int:
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default
