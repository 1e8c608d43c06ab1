"""stream-assembler: HLS/DASH segment acquisition and assembly engine.

Fetches the segments listed in a stream manifest under bounded
concurrency, recovers from transient failures with a two-pass retry
strategy, and concatenates the results into a single media file.
"""

from stream_assembler.api import create_download_service, download
from stream_assembler.core.config import AcquisitionConfig
from stream_assembler.core.models import AcquisitionResult
from stream_assembler.version import __version__

__all__: list[str] = [
    "AcquisitionConfig",
    "AcquisitionResult",
    "__version__",
    "create_download_service",
    "download",
]
