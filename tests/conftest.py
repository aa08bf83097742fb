"""Shared fixtures: in-memory JPEGs and test doubles for collaborators."""

from __future__ import annotations

import io

from PIL import Image
import pytest

from core.models import ImageSource


def make_jpeg(
    make: str | None = "Canon",
    model: str | None = "EOS R5",
    when: str | None = "2023:08:01 12:30:00",
    size: tuple[int, int] = (32, 24),
) -> bytes:
    """Encode a small JPEG carrying a few base-IFD EXIF tags."""
    im = Image.new("RGB", size, color="red")
    exif = Image.Exif()
    if make is not None:
        exif[271] = make
    if model is not None:
        exif[272] = model
    if when is not None:
        exif[306] = when
    exif[274] = 1
    buf = io.BytesIO()
    im.save(buf, "JPEG", exif=exif)
    return buf.getvalue()


def make_source(image_id: str, data: bytes, name: str | None = None) -> ImageSource:
    return ImageSource(
        id=image_id,
        name=name or f"{image_id}.jpg",
        size=len(data),
        mime_type="image/jpeg",
        data=data,
    )


class TrackingHandles:
    """Display handle provider that records every acquire/release."""

    def __init__(self) -> None:
        self.acquired: list[str] = []
        self.released: list[str] = []

    def acquire(self, source: ImageSource) -> str:
        handle = f"handle-{source.id}"
        self.acquired.append(handle)
        return handle

    def release(self, handle: str) -> bool:
        if handle not in self.acquired or handle in self.released:
            return False
        self.released.append(handle)
        return True


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_jpeg()


@pytest.fixture
def handles() -> TrackingHandles:
    return TrackingHandles()
