"""Helpers for converting raw EXIF tag values into plain Python values.

All helpers are best-effort and will not raise on malformed input; callers
should expect `None` when a value cannot be interpreted.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from loguru import logger

EXIF_DT_FMT = "%Y:%m:%d %H:%M:%S"


def parse_exif_datetime(value: Any) -> datetime | None:
    """Parse an EXIF timestamp such as ``2023:08:01 12:30:00``."""
    if isinstance(value, datetime):
        return value
    text = clean_text(value)
    if not text:
        return None
    try:
        # Common EXIF format: "YYYY:MM:DD HH:MM:SS", sometimes with subseconds
        if len(text) >= 19 and text[4] == ":" and text[7] == ":":
            return datetime.strptime(text[:19], EXIF_DT_FMT)
        return datetime.fromisoformat(text.replace("/", "-"))
    except ValueError as ex:
        logger.debug("Unparseable EXIF datetime {!r}: {}", text, ex)
        return None


def clean_text(value: Any) -> str | None:
    """Decode bytes and strip NUL padding; empty strings become None."""
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")
    text = str(value).replace("\x00", "").strip()
    return text or None


def ratio_to_float(value: Any) -> float | None:
    """Convert rationals, (num, den) pairs and numbers to float."""
    if isinstance(value, tuple) and len(value) == 2:
        num, den = value
        if not den:
            return None
        return float(num) / float(den)
    num = getattr(value, "numerator", None)
    den = getattr(value, "denominator", None)
    if num is not None and den is not None:
        if den == 0:
            return None
        return float(num) / float(den)
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def to_number(value: Any) -> int | float | None:
    """Return an int for integral tag values, float for rationals."""
    if isinstance(value, (list, tuple)):
        if not value:
            return None
        value = value[0]
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    return ratio_to_float(value)


def dms_to_degree(values: Any, ref: Any) -> float | None:
    """Convert (degrees, minutes, seconds) plus hemisphere ref to decimal degrees."""
    if not isinstance(values, (list, tuple)) or len(values) != 3:
        return None
    parts = [ratio_to_float(v) for v in values]
    if any(p is None for p in parts):
        return None
    deg, minutes, seconds = parts
    degree = deg + (minutes / 60.0) + (seconds / 3600.0)  # type: ignore[operator]
    ref_text = clean_text(ref)
    if ref_text and ref_text.upper() in {"S", "W"}:
        degree = -degree
    return degree
