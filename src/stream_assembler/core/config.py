"""Acquisition configuration and its defaults.

Defaults are centralised here so that every component uses a well-known,
tested value rather than magic numbers scattered across the codebase.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

DEFAULT_CONCURRENCY: int = 5
"""Worker-pool size for each acquisition pass."""

DEFAULT_RETRIES: int = 3
"""Per-segment attempt budget for the first pass (doubled for backfill)."""

DEFAULT_REQUEST_TIMEOUT: float = 30.0
"""Wall-clock timeout in seconds for one segment GET."""

DEFAULT_MANIFEST_TIMEOUT: float = 30.0
"""Wall-clock timeout in seconds for one manifest GET."""

DEFAULT_DIRECT_TIMEOUT: float = 120.0
"""Wall-clock timeout in seconds for a progressive-download GET."""

DEFAULT_BACKOFF: float = 1.0
"""Backoff unit in seconds; attempt *n* waits ``n * DEFAULT_BACKOFF``."""

DEFAULT_MIN_COMPLETENESS: float = 0.0
"""Fraction of segments that must survive; ``0.0`` means best effort."""

DEFAULT_PROGRESS_RANGE: tuple[float, float] = (10.0, 80.0)
"""Progress sub-range owned by the acquisition scheduler."""


def _default_temp_dir() -> Path:
    return Path.cwd() / "temp"


# camelCase keys accepted from the upstream configuration bag.
_KEY_ALIASES: dict[str, str] = {
    "tempDir": "temp_dir",
    "requestTimeout": "request_timeout",
    "manifestTimeout": "manifest_timeout",
    "directTimeout": "direct_timeout",
    "timeout": "request_timeout",
    "minCompleteness": "min_completeness",
    "progressRange": "progress_range",
}


@dataclass(frozen=True, slots=True)
class AcquisitionConfig:
    """Tunables for one acquisition task."""

    concurrency: int = DEFAULT_CONCURRENCY
    retries: int = DEFAULT_RETRIES
    temp_dir: Path = field(default_factory=_default_temp_dir)
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    manifest_timeout: float = DEFAULT_MANIFEST_TIMEOUT
    direct_timeout: float = DEFAULT_DIRECT_TIMEOUT
    backoff: float = DEFAULT_BACKOFF
    min_completeness: float = DEFAULT_MIN_COMPLETENESS
    progress_range: tuple[float, float] = DEFAULT_PROGRESS_RANGE

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {self.concurrency}")
        if self.retries < 1:
            raise ValueError(f"retries must be >= 1, got {self.retries}")
        if self.backoff < 0:
            raise ValueError(f"backoff must be >= 0, got {self.backoff}")
        if not 0.0 <= self.min_completeness <= 1.0:
            raise ValueError(
                f"min_completeness must be within [0, 1], got {self.min_completeness}",
            )
        low, high = self.progress_range
        if not 0.0 <= low <= high <= 100.0:
            raise ValueError(f"invalid progress_range {self.progress_range!r}")
        if not isinstance(self.temp_dir, Path):
            object.__setattr__(self, "temp_dir", Path(self.temp_dir))

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any] | None) -> AcquisitionConfig:
        """Build a config from a loose options bag.

        Accepts both the upstream camelCase keys (``tempDir``) and the
        snake_case field names.  Unknown keys are ignored; ``None`` values
        fall back to the defaults.
        """
        if not options:
            return cls()
        known = set(cls.__dataclass_fields__)
        kwargs: dict[str, Any] = {}
        for key, value in options.items():
            name = _KEY_ALIASES.get(key, key)
            if name in known and value is not None:
                kwargs[name] = value
        if "temp_dir" in kwargs:
            kwargs["temp_dir"] = Path(kwargs["temp_dir"])
        if "progress_range" in kwargs:
            kwargs["progress_range"] = tuple(kwargs["progress_range"])
        return cls(**kwargs)
