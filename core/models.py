"""Core domain models for image records and their metadata."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Union

from core.services.coordinate_service import transform_wgs84_to_gcj02

# Container-derived attributes, always present in an extracted set
BASE_KEYS: tuple[str, ...] = ("FileName", "FileSize", "FileType")

ATTRIBUTE_KEYS: tuple[str, ...] = (
    *BASE_KEYS,
    "ImageWidth",
    "ImageHeight",
    "Orientation",
    "ModifyDate",
    "CreateDate",
    "DateTimeOriginal",
    # Camera
    "Make",
    "Model",
    "LensModel",
    "FocalLength",
    "FNumber",
    "ExposureTime",
    "ISO",
    # Location
    "latitude",
    "longitude",
    "altitude",
    "GPSImgDirection",
    "GPSSpeed",
)

MetadataValue = Union[str, int, float, datetime, None]
MetadataSet = dict[str, MetadataValue]


class _Divergent:
    """Marker for aggregate fields whose contributing values disagree."""

    _instance: _Divergent | None = None

    def __new__(cls) -> _Divergent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "DIVERGENT"

    def __reduce__(self) -> str:
        return "DIVERGENT"


DIVERGENT = _Divergent()

AggregateMetadataSet = dict[str, Union[MetadataValue, _Divergent]]


@dataclass(frozen=True)
class ImageSource:
    """A single item handed to the metadata extractor.

    Either `path` or `data` carries the bytes; `data` wins when both are set.
    """

    id: str
    name: str
    size: int
    mime_type: str
    path: Path | None = None
    data: bytes | None = None

    def read_bytes(self) -> bytes:
        """Return the raw bytes of the source."""
        if self.data is not None:
            return self.data
        if self.path is None:
            raise OSError(f"image source {self.id} has neither path nor data")
        return self.path.read_bytes()


@dataclass
class ImageRecord:
    """An uploaded image owned by the application state."""

    id: str
    name: str
    size: int
    mime_type: str
    path: Path | None = None
    data: bytes | None = None
    display_handle: str | None = None
    metadata: MetadataSet | None = None

    def to_source(self) -> ImageSource:
        """Snapshot the record as an extractor input."""
        return ImageSource(
            id=self.id,
            name=self.name,
            size=self.size,
            mime_type=self.mime_type,
            path=self.path,
            data=self.data,
        )


@dataclass(frozen=True)
class ProgressInfo:
    """Snapshot of a batch extraction.

    Attributes:
        total: Number of submitted items.
        completed: Items finished, successfully or not.
        in_progress: Items queued or running at snapshot time.
    """

    total: int
    completed: int
    in_progress: int


@dataclass(frozen=True)
class ExtractionResult:
    """Per-item pipeline outcome; `metadata` is None when extraction failed."""

    id: str
    metadata: MetadataSet | None


@dataclass(frozen=True)
class GeoPoint:
    """Latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float
    system: str = "wgs84"

    def to_gcj02(self) -> GeoPoint:
        """Return this point in the GCJ02 system."""
        if self.system == "gcj02":
            return self
        lat, lon = transform_wgs84_to_gcj02(self.latitude, self.longitude)
        return GeoPoint(lat, lon, "gcj02")
