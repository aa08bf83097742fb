"""Display formatting for metadata values."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from core.models import DIVERGENT

DISPLAY_DT_FMT = "%Y-%m-%d %H:%M:%S"
MISSING_TEXT = "-"
MULTIPLE_TEXT = "(multiple values)"


def format_file_size(size: int | float) -> str:
    """Human-readable size: bytes, then KB/MB with two decimals."""
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.2f} KB"
    return f"{size / (1024 * 1024):.2f} MB"


def format_exposure_time(value: Any) -> str:
    """Render exposure as a 1/N fraction below one second."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if 0 < value < 1:
            return f"1/{round(1 / value)}s"
        return f"{value}s"
    return str(value)


def format_exif_value(key: str, value: Any) -> str:
    """Format a metadata `value` for display according to its `key`."""
    if value is None:
        return MISSING_TEXT
    if value is DIVERGENT:
        return MULTIPLE_TEXT

    if isinstance(value, datetime):
        return value.strftime(DISPLAY_DT_FMT)
    if key == "FileSize" and isinstance(value, (int, float)):
        return format_file_size(value)
    if key == "FocalLength":
        return f"{value}mm"
    if key == "FNumber":
        return f"f/{value}"
    if key == "ExposureTime":
        return format_exposure_time(value)
    if key in ("latitude", "longitude") and isinstance(value, (int, float)):
        return f"{value:.6f}°"
    if key == "altitude":
        return f"{value}m"
    return str(value)
