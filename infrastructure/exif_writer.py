"""EXIF write-back.

Binary EXIF mutation is not implemented: the writer hands back the original
file bytes so exports still work, and edited values only live in memory.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from loguru import logger

from core.models import ImageSource


class PassThroughExifWriter:
    """Return the source bytes unchanged regardless of `metadata`."""

    def write(self, source: ImageSource, metadata: Mapping[str, Any]) -> bytes:
        """Return exportable bytes for `source`."""
        logger.info("Writing EXIF for {} ({} fields, pass-through)", source.name, len(metadata))
        return source.read_bytes()
