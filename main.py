from __future__ import annotations

import asyncio
import sys
from pathlib import Path

from loguru import logger

from app.viewmodels.main_vm import MainVM
from app.viewmodels.photo_vm import PhotoVM
from core.models import ProgressInfo
from core.services.format_service import format_exif_value
from infrastructure.display_handles import ThumbnailHandleStore
from infrastructure.exif_writer import PassThroughExifWriter
from infrastructure.extraction_pipeline import ExtractionPipeline
from infrastructure.logging import init_logging
from infrastructure.metadata_extractor import MetadataExtractor
from infrastructure.settings import JsonSettings


BASE_DIR = Path(__file__).parent

SUMMARY_KEYS = ("Make", "Model", "ISO", "FNumber", "ExposureTime", "CreateDate", "latitude", "longitude")


def build_vm(settings: JsonSettings) -> MainVM:
    """Wire the view-model with its infrastructure services from `settings`."""
    timeout = settings.get_number("extraction.decode_timeout")
    workers = settings.get_number("extraction.workers")
    extractor = MetadataExtractor(decode_timeout=timeout)
    pipeline = ExtractionPipeline(extractor, concurrency=int(workers) if workers else None)
    side = settings.get_number("display.thumbnail_side")
    handles = ThumbnailHandleStore(settings.get("display.handle_dir"), int(side) if side else None)
    return MainVM(
        pipeline,
        handles,
        PassThroughExifWriter(),
        map_system=str(settings.get("map.coordinate_system", "wgs84")),
    )


def _print_progress(info: ProgressInfo) -> None:
    print(f"\rParsing {info.completed}/{info.total} ({info.in_progress} pending)", end="", flush=True)


def main(argv: list[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    settings_path = BASE_DIR / "settings.json"
    settings = JsonSettings(settings_path) if settings_path.exists() else JsonSettings()
    init_logging(settings.get("logging.dir"), str(settings.get("logging.level", "INFO")))

    if not args:
        print("usage: main.py IMAGE [IMAGE ...]")
        return 2

    vm = build_vm(settings)
    try:
        upload = vm.add_files(args)
        for name, reason in upload.failed:
            print(f"skipped {name}: {reason}")
        if not vm.images:
            return 1

        failed = asyncio.run(vm.parse_all(_print_progress))
        print()
        for record in vm.images:
            photo = PhotoVM(record)
            print(f"{photo.file_name} ({photo.size_text})")
            if not photo.has_metadata:
                print("  metadata unavailable")
                continue
            for key in SUMMARY_KEYS:
                print(f"  {key:<14} {photo.display_value(key)}")

        vm.select_all()
        common = vm.selection_metadata()
        print("Common metadata:")
        for key in SUMMARY_KEYS:
            print(f"  {key:<14} {format_exif_value(key, common.get(key))}")

        for image_id, point in vm.map_points():
            logger.info("Map point {}: {:.6f}, {:.6f} ({})", image_id, point.latitude, point.longitude, point.system)
        return 1 if failed else 0
    finally:
        vm.teardown()


if __name__ == "__main__":
    raise SystemExit(main())
