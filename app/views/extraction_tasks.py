from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence

from PySide6.QtCore import QObject, QRunnable, QThreadPool
from loguru import logger

from core.models import ImageSource, ProgressInfo
from infrastructure.extraction_pipeline import ExtractionPipeline


class _ExtractionTask(QRunnable):
    """QRunnable running one batch extraction on its own event loop.

    Emits `receiver.progressChanged(token, ProgressInfo)` for every snapshot
    and `receiver.extractionFinished(token, results)` at the end; `results`
    is None when the batch aborted. The receiver is expected to own Qt
    `Signal(str, object)` attributes with those names.
    """

    def __init__(
        self,
        *,
        sources: Sequence[ImageSource],
        pipeline: ExtractionPipeline,
        receiver: QObject,
        token: str,
    ) -> None:
        super().__init__()
        self._sources = list(sources)
        self._pipeline = pipeline
        self._receiver = receiver
        self._token = token

    def _on_progress(self, info: ProgressInfo) -> None:
        self._receiver.progressChanged.emit(self._token, info)  # type: ignore[attr-defined]

    def run(self) -> None:  # type: ignore[override]
        try:
            results = asyncio.run(self._pipeline.extract_all(self._sources, self._on_progress))
        except Exception as ex:  # pylint: disable=broad-exception-caught
            logger.exception("Extraction batch {} failed: {}", self._token, ex)
            results = None
        self._receiver.extractionFinished.emit(self._token, results)  # type: ignore[attr-defined]


class ExtractionTaskRunner:
    """Dispatches batch extractions to the global thread pool.

    Every task gets its own pipeline from `pipeline_factory`, so batches
    started while others are still running proceed independently.
    Tokens have the form "extract|{n}|{count}" where n increases per request.
    """

    def __init__(
        self, *, pipeline_factory: Callable[[], ExtractionPipeline], receiver: QObject
    ) -> None:
        self._pipeline_factory = pipeline_factory
        self._receiver = receiver
        self._pool = QThreadPool.globalInstance()
        self._seq = 0

    def make_task(self, sources: Sequence[ImageSource]) -> tuple[str, QRunnable]:
        """Build the runnable for `sources` without starting it."""
        self._seq += 1
        token = f"extract|{self._seq}|{len(sources)}"
        task = _ExtractionTask(
            sources=sources,
            pipeline=self._pipeline_factory(),
            receiver=self._receiver,
            token=token,
        )
        return token, task

    def request_extraction(self, sources: Sequence[ImageSource]) -> str:
        """Start extracting `sources` in the background. Returns the token."""
        token, task = self.make_task(sources)
        self._pool.start(task)
        return token

    def wait_for_done(self, msecs: int = -1) -> bool:
        """Block until all started batches finished."""
        return self._pool.waitForDone(msecs)
