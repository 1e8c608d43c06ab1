"""Infrastructure layer: network, filesystem and XML integration.

Every raw third-party exception (``requests``, ``lxml``) and every
``OSError`` must be caught here and re-raised as a
:class:`~stream_assembler.exceptions.StreamAssemblerError` subclass, or
recorded on the segment it belongs to.

Rules
-----
* No imports from ``ui``.
* No user-facing output (no ``print()``, no Rich rendering).
* Concrete classes satisfy the protocols in :mod:`stream_assembler.core.protocols`.
"""

from stream_assembler.infra.assembler import Assembler, normalize_extension
from stream_assembler.infra.direct_download import DirectDownloader
from stream_assembler.infra.http import browser_headers, build_session
from stream_assembler.infra.manifest_reader import ManifestReader
from stream_assembler.infra.segment_fetcher import SegmentFetcher
from stream_assembler.infra.workspace import Workspace

__all__: list[str] = [
    "Assembler",
    "DirectDownloader",
    "ManifestReader",
    "SegmentFetcher",
    "Workspace",
    "browser_headers",
    "build_session",
    "normalize_extension",
]
