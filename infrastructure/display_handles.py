"""Display handles backed by on-disk preview thumbnails.

Each acquired handle owns one JPEG preview in the cache directory. Handles
must be released when their image leaves the library; releasing deletes the
preview file.
"""

from __future__ import annotations

import hashlib
import io
from pathlib import Path
import tempfile
import uuid

from PIL import Image, ImageOps
from loguru import logger

from core.models import ImageSource

DEFAULT_THUMBNAIL_SIDE = 512


def _ensure_dir(p: Path) -> None:
    """Create directory `p` if missing (including parents)."""
    p.mkdir(parents=True, exist_ok=True)


def _handle_name(source: ImageSource) -> str:
    """Unique file stem for a preview of `source`."""
    sig = f"{source.id}|{source.name}|{source.size}|{uuid.uuid4().hex}".encode(
        "utf-8", errors="ignore"
    )
    return hashlib.sha1(sig).hexdigest()


class ThumbnailHandleStore:
    """Issues display handles and tracks which ones are still live."""

    def __init__(self, cache_dir: str | Path | None = None, side: int | None = None) -> None:
        if cache_dir is None:
            cache_dir = Path(tempfile.gettempdir()) / "exif_viewer" / "previews"
        self._dir = Path(cache_dir)
        _ensure_dir(self._dir)
        self._side = int(side or DEFAULT_THUMBNAIL_SIDE)
        # handle -> preview path, or None when no preview could be rendered
        self._live: dict[str, Path | None] = {}

    @property
    def live_count(self) -> int:
        """Number of handles acquired and not yet released."""
        return len(self._live)

    def path_for(self, handle: str) -> Path | None:
        """Preview file behind `handle`, if one was rendered."""
        return self._live.get(handle)

    def acquire(self, source: ImageSource) -> str:
        """Render a preview for `source` and return a new handle."""
        handle = _handle_name(source)
        self._live[handle] = self._render(source, self._dir / f"{handle}.jpg")
        return handle

    def release(self, handle: str) -> bool:
        """Drop `handle` and delete its preview; False if it is not live."""
        if handle not in self._live:
            logger.warning("Release of unknown display handle: {}", handle)
            return False
        path = self._live.pop(handle)
        if path is not None:
            try:
                path.unlink(missing_ok=True)
            except OSError as ex:
                logger.debug("Preview cleanup failed for {}: {}", path, ex)
        return True

    def release_all(self) -> int:
        """Release every live handle; return how many were released."""
        handles = list(self._live)
        for handle in handles:
            self.release(handle)
        return len(handles)

    def _render(self, source: ImageSource, target: Path) -> Path | None:
        try:
            raw = io.BytesIO(source.data) if source.data is not None else source.path
            if raw is None:
                return None
            with Image.open(raw) as im:
                try:
                    im = ImageOps.exif_transpose(im)
                except (OSError, ValueError, AttributeError) as ex:
                    logger.debug("EXIF transpose failed for {}: {}", source.name, ex)
                resample = Image.Resampling.LANCZOS
                im.thumbnail((self._side, self._side), resample)
                if im.mode not in ("RGB", "L"):
                    im = im.convert("RGB")
                im.save(target, "JPEG", quality=85)
            return target
        except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as ex:
            logger.debug("Preview render failed for {}: {}", source.name, ex)
            return None
