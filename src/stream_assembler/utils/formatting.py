"""Human-readable rendering helpers shared by log and progress messages."""

from __future__ import annotations

_UNITS: tuple[str, ...] = ("B", "KB", "MB", "GB", "TB")


def format_file_size(size: int | None) -> str:
    """Render a byte count as ``"1.5MB"``; ``None`` or ``0`` gives ``"0B"``."""
    if not size:
        return "0B"
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(_UNITS) - 1:
        value /= 1024
        unit += 1
    rendered = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{rendered}{_UNITS[unit]}"
