"""Bounded-concurrency batch metadata extraction.

Items are admitted to a single asyncio queue in submission order and drained
by a fixed number of workers, so no more than `concurrency` extractions are
in flight at once. Completion order is unspecified; results are assembled in
submission order once every item has finished.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
import os
import threading

from loguru import logger

from core.models import ExtractionResult, ImageSource, MetadataSet, ProgressInfo
from core.services.interfaces import RECOVERABLE_ERRORS, MetadataExtractorProtocol

DEFAULT_CONCURRENCY = 4

ProgressCallback = Callable[[ProgressInfo], None]


def default_concurrency() -> int:
    """Host processor count, or `DEFAULT_CONCURRENCY` when unknown."""
    return os.cpu_count() or DEFAULT_CONCURRENCY


class ExtractionPipeline:
    """Run a metadata extractor over many images with a concurrency cap.

    An instance serves one `extract_all` call at a time, from any thread;
    use one pipeline per concurrent batch.
    """

    def __init__(
        self, extractor: MetadataExtractorProtocol, concurrency: int | None = None
    ) -> None:
        self._extractor = extractor
        self._concurrency = max(1, int(concurrency or default_concurrency()))
        self._busy = threading.Lock()

    @property
    def concurrency(self) -> int:
        """Maximum number of extractions in flight."""
        return self._concurrency

    async def extract_all(
        self, items: Iterable[ImageSource], on_progress: ProgressCallback | None = None
    ) -> list[ExtractionResult]:
        """Extract metadata for every item.

        Args:
            items: Sources to extract, queued in iteration order.
            on_progress: Called with a snapshot before work starts and once
                after each item terminates.

        Returns:
            One `ExtractionResult` per item, in submission order. Items whose
            extraction failed carry `metadata=None`.

        Raises:
            RuntimeError: The pipeline is already running a batch.
        """
        if not self._busy.acquire(blocking=False):
            raise RuntimeError("extraction pipeline is already running a batch")
        try:
            return await self._run(list(items), on_progress)
        finally:
            self._busy.release()

    async def _run(
        self, sources: list[ImageSource], on_progress: ProgressCallback | None
    ) -> list[ExtractionResult]:
        total = len(sources)
        queue: asyncio.Queue[tuple[int, ImageSource]] = asyncio.Queue()
        for index, source in enumerate(sources):
            queue.put_nowait((index, source))

        results: list[ExtractionResult | None] = [None] * total
        running = 0
        completed = 0

        def report() -> None:
            if on_progress is not None:
                on_progress(
                    ProgressInfo(
                        total=total, completed=completed, in_progress=queue.qsize() + running
                    )
                )

        async def worker() -> None:
            nonlocal running, completed
            while True:
                try:
                    index, source = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return

                running += 1
                try:
                    metadata = await self._extract_one(source)
                finally:
                    running -= 1

                completed += 1
                report()
                results[index] = ExtractionResult(id=source.id, metadata=metadata)

        report()
        logger.info("Parsing {} images with up to {} workers", total, self._concurrency)

        workers = [asyncio.create_task(worker()) for _ in range(min(self._concurrency, total))]
        try:
            await asyncio.gather(*workers)
        except BaseException:
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            raise

        failed = sum(1 for r in results if r is not None and r.metadata is None)
        logger.info("Parsed {} images ({} failed)", total, failed)
        return [r for r in results if r is not None]

    async def _extract_one(self, source: ImageSource) -> MetadataSet | None:
        try:
            return await self._extractor.decode(source)
        except RECOVERABLE_ERRORS as ex:
            logger.warning("Error parsing EXIF for {}: {}", source.name, ex)
            return None
