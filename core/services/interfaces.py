"""Core service interfaces, errors and shared data structures.

The protocols here describe the collaborators the application state and the
extraction pipeline depend on, so infrastructure implementations and test
doubles can be swapped freely.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from core.models import ImageRecord, ImageSource, MetadataSet


class MetadataDecodeError(Exception):
    """Raised by decoders for corrupt, unsupported or unreadable images."""


# Errors that degrade a single item's metadata instead of aborting a batch
RECOVERABLE_ERRORS: tuple[type[BaseException], ...] = (
    MetadataDecodeError,
    OSError,
    TimeoutError,
)


@dataclass
class UploadResult:
    """Outcome of adding files to the library.

    Attributes:
        accepted: Records created for supported images.
        failed: Tuples of (name, reason) for rejected inputs.
    """

    accepted: list[ImageRecord] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)


class MetadataDecoder(Protocol):
    """Blocking EXIF decoder returning raw attribute values by name."""

    def decode(self, source: ImageSource) -> Mapping[str, Any]:
        """Decode `source`; raise `MetadataDecodeError` on failure."""
        raise NotImplementedError


class MetadataExtractorProtocol(Protocol):
    """Asynchronous per-image metadata extraction."""

    async def decode(self, source: ImageSource) -> MetadataSet:
        """Return the normalized metadata of `source`.

        Raises one of `RECOVERABLE_ERRORS` when the image cannot be read.
        """
        raise NotImplementedError


class DisplayHandleProvider(Protocol):
    """Issues and releases ephemeral display resources for images."""

    def acquire(self, source: ImageSource) -> str:
        """Create a display resource for `source` and return its handle."""
        raise NotImplementedError

    def release(self, handle: str) -> bool:
        """Release `handle`; return False if it was unknown or already released."""
        raise NotImplementedError


class ExifWriter(Protocol):
    """Produces exportable bytes for an image and its edited metadata."""

    def write(self, source: ImageSource, metadata: Mapping[str, Any]) -> bytes:
        """Return file bytes for `source` carrying `metadata`."""
        raise NotImplementedError
