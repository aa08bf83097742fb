"""Asynchronous metadata extraction adapter.

Wraps a blocking decoder and normalizes its output into a `MetadataSet`
restricted to the known attribute vocabulary. Decode failures degrade to the
container-derived attributes instead of raising.
"""

from __future__ import annotations

import asyncio

from loguru import logger

from core.models import ATTRIBUTE_KEYS, ImageSource, MetadataSet
from core.services.interfaces import RECOVERABLE_ERRORS, MetadataDecoder
from infrastructure.exif_decoder import PillowExifDecoder


def base_attributes(source: ImageSource) -> MetadataSet:
    """Attributes known without decoding: name, size and MIME type."""
    return {"FileName": source.name, "FileSize": source.size, "FileType": source.mime_type}


def normalize(attrs: dict) -> MetadataSet:
    """Project `attrs` onto the vocabulary; missing keys become None."""
    return {key: attrs.get(key) for key in ATTRIBUTE_KEYS}


class MetadataExtractor:
    """Extract normalized metadata for one image at a time."""

    def __init__(
        self, decoder: MetadataDecoder | None = None, decode_timeout: float | None = None
    ) -> None:
        """Create an extractor.

        Args:
            decoder: Blocking decoder (defaults to `PillowExifDecoder`).
            decode_timeout: Seconds to wait for a decode; None waits forever.
        """
        self._decoder = decoder or PillowExifDecoder()
        self._timeout = decode_timeout if decode_timeout and decode_timeout > 0 else None

    async def decode(self, source: ImageSource) -> MetadataSet:
        """Decode `source` without fallback; recoverable errors propagate.

        A decode that overruns the timeout raises `TimeoutError` once its
        thread has returned; the thread cannot be interrupted.
        """
        work = asyncio.ensure_future(asyncio.to_thread(self._decoder.decode, source))
        try:
            decoded = await asyncio.wait_for(asyncio.shield(work), self._timeout)
        except TimeoutError:
            logger.debug("Decode of {} overran {}s, waiting for it", source.name, self._timeout)
            await asyncio.gather(work, return_exceptions=True)
            raise
        merged = base_attributes(source)
        merged.update(decoded)
        return normalize(merged)

    async def extract(self, source: ImageSource) -> MetadataSet:
        """Return metadata for `source`, or only its base attributes on failure."""
        try:
            metadata = await self.decode(source)
        except RECOVERABLE_ERRORS as ex:
            logger.warning("EXIF read failed for {}: {}", source.name, ex)
            return normalize(base_attributes(source))
        logger.debug("Parsed EXIF for {}: {}", source.name, metadata)
        return metadata
