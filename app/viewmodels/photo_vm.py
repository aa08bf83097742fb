"""Lightweight view model wrapper around `ImageRecord`."""

from __future__ import annotations

from dataclasses import dataclass

from core.models import ImageRecord
from core.services.format_service import format_exif_value, format_file_size


@dataclass
class PhotoVM:
    """Expose convenient properties for bindings/templates."""

    record: ImageRecord

    @property
    def file_name(self) -> str:
        """Name of the uploaded file."""
        return self.record.name

    @property
    def size_text(self) -> str:
        """Human-readable file size."""
        return format_file_size(int(self.record.size or 0))

    @property
    def has_metadata(self) -> bool:
        """False while unparsed or when extraction failed."""
        return self.record.metadata is not None

    @property
    def display_handle(self) -> str | None:
        return self.record.display_handle

    def display_value(self, key: str) -> str:
        """Formatted value of attribute `key`."""
        md = self.record.metadata or {}
        return format_exif_value(key, md.get(key))
