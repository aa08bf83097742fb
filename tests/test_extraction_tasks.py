"""Qt bridge tests; skipped when PySide6 is unavailable."""

from __future__ import annotations

import asyncio

import pytest

QtCore = pytest.importorskip("PySide6.QtCore")

from app.views.extraction_tasks import ExtractionTaskRunner  # noqa: E402
from core.models import ImageSource, MetadataSet, ProgressInfo  # noqa: E402
from core.services.interfaces import MetadataDecodeError  # noqa: E402
from infrastructure.extraction_pipeline import ExtractionPipeline  # noqa: E402


class Receiver(QtCore.QObject):
    progressChanged = QtCore.Signal(str, object)
    extractionFinished = QtCore.Signal(str, object)


class _Extractor:
    async def decode(self, source: ImageSource) -> MetadataSet:
        await asyncio.sleep(0.02)
        if source.id == "bad":
            raise MetadataDecodeError("corrupt")
        return {"FileName": source.name}


class _BrokenExtractor:
    async def decode(self, source: ImageSource) -> MetadataSet:
        raise TypeError("decoder bug")


def _sources(*ids: str) -> list[ImageSource]:
    return [ImageSource(id=i, name=f"{i}.jpg", size=1, mime_type="image/jpeg", data=b"") for i in ids]


def _collect(receiver: Receiver) -> tuple[list, list]:
    progress: list = []
    finished: list = []
    receiver.progressChanged.connect(lambda token, info: progress.append((token, info)))
    receiver.extractionFinished.connect(lambda token, results: finished.append((token, results)))
    return progress, finished


def test_task_forwards_progress_and_results() -> None:
    receiver = Receiver()
    progress, finished = _collect(receiver)
    runner = ExtractionTaskRunner(
        pipeline_factory=lambda: ExtractionPipeline(_Extractor(), concurrency=2), receiver=receiver
    )

    token, task = runner.make_task(_sources("ok", "bad"))
    task.run()

    assert token == "extract|1|2"
    assert [info for _, info in progress][-1] == ProgressInfo(total=2, completed=2, in_progress=0)
    assert len(finished) == 1
    results = finished[0][1]
    assert [r.id for r in results] == ["ok", "bad"]
    assert results[1].metadata is None


def test_aborted_batch_reports_none() -> None:
    receiver = Receiver()
    _, finished = _collect(receiver)
    runner = ExtractionTaskRunner(
        pipeline_factory=lambda: ExtractionPipeline(_BrokenExtractor()), receiver=receiver
    )

    token, task = runner.make_task(_sources("x"))
    task.run()

    assert finished == [(token, None)]


def test_overlapping_batches_each_get_a_pipeline() -> None:
    receiver = Receiver()
    finished: list = []
    receiver.extractionFinished.connect(
        lambda token, results: finished.append((token, results)),
        QtCore.Qt.ConnectionType.DirectConnection,
    )
    pipelines: list[ExtractionPipeline] = []

    def factory() -> ExtractionPipeline:
        pipelines.append(ExtractionPipeline(_Extractor(), concurrency=1))
        return pipelines[-1]

    runner = ExtractionTaskRunner(pipeline_factory=factory, receiver=receiver)

    first = runner.request_extraction(_sources("a1", "a2", "a3"))
    second = runner.request_extraction(_sources("b1", "b2", "b3"))
    assert runner.wait_for_done(10_000)

    assert len(pipelines) == 2 and pipelines[0] is not pipelines[1]
    by_token = dict(finished)
    assert set(by_token) == {first, second}
    assert [r.id for r in by_token[first]] == ["a1", "a2", "a3"]
    assert [r.id for r in by_token[second]] == ["b1", "b2", "b3"]
    assert all(r.metadata is not None for results in by_token.values() for r in results)
