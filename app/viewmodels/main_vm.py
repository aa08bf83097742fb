"""ViewModel owning the image library, the selection and batch extraction."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import mimetypes
from pathlib import Path
from typing import Any
import uuid

from loguru import logger

from core.models import AggregateMetadataSet, GeoPoint, ImageRecord
from core.services.aggregate_service import aggregate, merge_edits
from core.services.interfaces import DisplayHandleProvider, ExifWriter, UploadResult
from infrastructure.extraction_pipeline import ExtractionPipeline, ProgressCallback


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


class MainVM:
    """Main application view-model.

    Owns the image records for their whole lifetime: every record acquires a
    display handle when added and releases it exactly once when removed or
    when the library is torn down.
    """

    def __init__(
        self,
        pipeline: ExtractionPipeline,
        handles: DisplayHandleProvider,
        writer: ExifWriter,
        map_system: str = "wgs84",
    ) -> None:
        """Create a MainVM.

        Args:
            pipeline: Batch metadata extraction pipeline.
            handles: Provider of display handles for added images.
            writer: EXIF writer used on export.
            map_system: Coordinate system expected by the map ("wgs84" or "gcj02").
        """
        self._pipeline = pipeline
        self._handles = handles
        self._writer = writer
        self._map_system = map_system.lower()
        self.images: list[ImageRecord] = []
        self.selected_ids: list[str] = []

    # Library
    def add_files(self, paths: Iterable[str | Path]) -> UploadResult:
        """Add image files from disk; non-image files are rejected."""
        result = UploadResult()
        for raw in paths:
            path = Path(raw)
            mime_type = mimetypes.guess_type(path.name)[0] or ""
            try:
                size = path.stat().st_size
            except OSError as ex:
                logger.warning("Cannot add {}: {}", path, ex)
                result.failed.append((path.name, str(ex)))
                continue
            record = ImageRecord(
                id=_new_id(), name=path.name, size=size, mime_type=mime_type, path=path
            )
            self._admit(record, result)
        return result

    def add_bytes(self, name: str, data: bytes, mime_type: str) -> UploadResult:
        """Add an in-memory upload."""
        result = UploadResult()
        record = ImageRecord(
            id=_new_id(), name=name, size=len(data), mime_type=mime_type or "", data=data
        )
        self._admit(record, result)
        return result

    def _admit(self, record: ImageRecord, result: UploadResult) -> None:
        if not record.mime_type.startswith("image/"):
            logger.warning("Unsupported file type for {}: {!r}", record.name, record.mime_type)
            reason = f"Unsupported file type: {record.mime_type or 'unknown'}"
            result.failed.append((record.name, reason))
            return
        record.display_handle = self._handles.acquire(record.to_source())
        self.images.append(record)
        result.accepted.append(record)

    def get(self, image_id: str) -> ImageRecord | None:
        """Return the record with `image_id`, if present."""
        for record in self.images:
            if record.id == image_id:
                return record
        return None

    def remove(self, ids: Iterable[str]) -> list[str]:
        """Remove records by id and release their handles; return removed ids."""
        doomed = set(ids)
        removed: list[str] = []
        kept: list[ImageRecord] = []
        for record in self.images:
            if record.id in doomed:
                self._release(record)
                removed.append(record.id)
            else:
                kept.append(record)
        self.images = kept
        self.selected_ids = [i for i in self.selected_ids if i not in doomed]
        if removed:
            logger.info("Removed {} images", len(removed))
        return removed

    def delete_selected(self) -> list[str]:
        """Remove all selected records."""
        removed = self.remove(list(self.selected_ids))
        self.selected_ids = []
        return removed

    def teardown(self) -> None:
        """Release every record's display handle and empty the library."""
        for record in self.images:
            self._release(record)
        self.images = []
        self.selected_ids = []

    def _release(self, record: ImageRecord) -> None:
        if record.display_handle is None:
            return
        self._handles.release(record.display_handle)
        record.display_handle = None

    # Selection
    def select(self, image_id: str) -> None:
        """Add `image_id` to the selection if it is a known record."""
        if image_id not in self.selected_ids and self.get(image_id) is not None:
            self.selected_ids.append(image_id)

    def deselect(self, image_id: str) -> None:
        """Remove `image_id` from the selection."""
        self.selected_ids = [i for i in self.selected_ids if i != image_id]

    def select_all(self) -> None:
        """Select every record in library order."""
        self.selected_ids = [r.id for r in self.images]

    def clear_selection(self) -> None:
        """Empty the selection."""
        self.selected_ids = []

    def selected_records(self) -> list[ImageRecord]:
        """Selected records in selection order."""
        by_id = {r.id: r for r in self.images}
        return [by_id[i] for i in self.selected_ids if i in by_id]

    # Metadata
    async def parse_all(
        self, on_progress: ProgressCallback | None = None, only_missing: bool = False
    ) -> int:
        """Extract metadata for the library and attach it to the records.

        Returns the number of records whose extraction failed.
        """
        targets = [r for r in self.images if not (only_missing and r.metadata is not None)]
        results = await self._pipeline.extract_all([r.to_source() for r in targets], on_progress)
        by_id = {r.id: r for r in targets}
        failed = 0
        for res in results:
            record = by_id.get(res.id)
            if record is None:
                continue
            record.metadata = res.metadata
            if res.metadata is None:
                failed += 1
        return failed

    def selection_metadata(self) -> AggregateMetadataSet:
        """Common view of the selected records' metadata."""
        return aggregate([r.metadata or {} for r in self.selected_records()])

    def apply_edits(self, edits: Mapping[str, Any]) -> int:
        """Merge `edits` into every selected record; return records updated."""
        records = self.selected_records()
        for record in records:
            record.metadata = merge_edits(record.metadata, edits)
        if records:
            logger.info("Applied {} edited fields to {} images", len(edits), len(records))
        return len(records)

    def export_selected(self, dest_dir: str | Path) -> list[Path]:
        """Write the selected images under `dest_dir`; return written paths."""
        out_dir = Path(dest_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        written: list[Path] = []
        for record in self.selected_records():
            blob = self._writer.write(record.to_source(), record.metadata or {})
            target = out_dir / record.name
            target.write_bytes(blob)
            written.append(target)
        return written

    def map_points(self) -> list[tuple[str, GeoPoint]]:
        """GPS positions of records, in the map's coordinate system."""
        points: list[tuple[str, GeoPoint]] = []
        for record in self.images:
            md = record.metadata or {}
            lat, lon = md.get("latitude"), md.get("longitude")
            if not isinstance(lat, (int, float)) or not isinstance(lon, (int, float)):
                continue
            point = GeoPoint(float(lat), float(lon))
            if self._map_system == "gcj02":
                point = point.to_gcj02()
            points.append((record.id, point))
        return points

    @property
    def image_count(self) -> int:
        """Number of records currently loaded."""
        return len(self.images)
