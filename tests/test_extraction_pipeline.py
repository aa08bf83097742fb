"""Tests for the bounded-concurrency extraction pipeline.

Most tests use a fake extractor with controllable delays to exercise
scheduling, progress accounting and failure isolation; the rest run the real
Pillow-backed extractor over generated JPEGs.
"""

from __future__ import annotations

import asyncio
import threading
import time

from PIL import Image
from loguru import logger
import pytest

from core.models import ImageSource, MetadataSet, ProgressInfo
from core.services.interfaces import MetadataDecodeError
from infrastructure.extraction_pipeline import DEFAULT_CONCURRENCY, ExtractionPipeline
from infrastructure.metadata_extractor import MetadataExtractor

from conftest import make_jpeg, make_source


def _sources(n: int) -> list[ImageSource]:
    return [
        ImageSource(id=f"img{i}", name=f"img{i}.jpg", size=100 + i, mime_type="image/jpeg", data=b"")
        for i in range(n)
    ]


class FakeExtractor:
    def __init__(
        self,
        delays: dict[str, float] | None = None,
        failing: set[str] | None = None,
        fatal: set[str] | None = None,
    ) -> None:
        self.delays = delays or {}
        self.failing = failing or set()
        self.fatal = fatal or set()
        self.active = 0
        self.peak = 0
        self.finished: list[str] = []

    async def decode(self, source: ImageSource) -> MetadataSet:
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(self.delays.get(source.id, 0.001))
            if source.id in self.failing:
                raise MetadataDecodeError("corrupt data")
            if source.id in self.fatal:
                raise TypeError("decoder bug")
            self.finished.append(source.id)
            return {"FileName": source.name, "FileSize": source.size}
        finally:
            self.active -= 1


def test_never_exceeds_concurrency() -> None:
    extractor = FakeExtractor(delays={f"img{i}": 0.01 for i in range(20)})
    pipeline = ExtractionPipeline(extractor, concurrency=3)

    results = asyncio.run(pipeline.extract_all(_sources(20)))

    assert len(results) == 20
    assert extractor.peak == 3


def test_results_follow_submission_order_despite_completion_order() -> None:
    delays = {"img0": 0.05, "img1": 0.03, "img2": 0.001}
    extractor = FakeExtractor(delays=delays)
    pipeline = ExtractionPipeline(extractor, concurrency=3)

    results = asyncio.run(pipeline.extract_all(_sources(3)))

    assert extractor.finished == ["img2", "img1", "img0"]
    assert [r.id for r in results] == ["img0", "img1", "img2"]
    assert results[0].metadata == {"FileName": "img0.jpg", "FileSize": 100}


def test_progress_snapshots() -> None:
    snapshots: list[ProgressInfo] = []
    pipeline = ExtractionPipeline(FakeExtractor(failing={"img2"}), concurrency=2)

    asyncio.run(pipeline.extract_all(_sources(5), snapshots.append))

    assert snapshots[0] == ProgressInfo(total=5, completed=0, in_progress=5)
    assert [s.completed for s in snapshots] == [0, 1, 2, 3, 4, 5]
    assert all(s.total == 5 and s.completed <= s.total for s in snapshots)
    assert snapshots[-1].in_progress == 0
    in_progress = [s.in_progress for s in snapshots]
    assert in_progress == sorted(in_progress, reverse=True)


def test_failures_are_isolated() -> None:
    pipeline = ExtractionPipeline(FakeExtractor(failing={"img1", "img3"}), concurrency=2)

    results = asyncio.run(pipeline.extract_all(_sources(4)))

    assert [r.id for r in results] == ["img0", "img1", "img2", "img3"]
    assert results[1].metadata is None
    assert results[3].metadata is None
    assert results[0].metadata is not None and results[2].metadata is not None


def test_empty_batch() -> None:
    snapshots: list[ProgressInfo] = []
    pipeline = ExtractionPipeline(FakeExtractor(), concurrency=2)

    assert asyncio.run(pipeline.extract_all([], snapshots.append)) == []
    assert snapshots == [ProgressInfo(total=0, completed=0, in_progress=0)]


def test_unexpected_error_aborts_batch() -> None:
    extractor = FakeExtractor(
        delays={"img0": 0.001, "img1": 0.5, "img2": 0.5}, fatal={"img0"}
    )
    pipeline = ExtractionPipeline(extractor, concurrency=3)

    with pytest.raises(TypeError):
        asyncio.run(pipeline.extract_all(_sources(3)))

    # Siblings were cancelled rather than run to completion
    assert extractor.finished == []
    assert extractor.active == 0


def test_overlapping_runs_rejected() -> None:
    pipeline = ExtractionPipeline(FakeExtractor(delays={"img0": 0.05}), concurrency=1)

    async def overlap() -> None:
        first = asyncio.create_task(pipeline.extract_all(_sources(1)))
        await asyncio.sleep(0)
        with pytest.raises(RuntimeError):
            await pipeline.extract_all(_sources(1))
        await first

    asyncio.run(overlap())
    # Usable again once the batch finished
    assert len(asyncio.run(pipeline.extract_all(_sources(2)))) == 2


def test_default_concurrency_from_host(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("os.cpu_count", lambda: 6)
    assert ExtractionPipeline(FakeExtractor()).concurrency == 6

    monkeypatch.setattr("os.cpu_count", lambda: None)
    assert ExtractionPipeline(FakeExtractor()).concurrency == DEFAULT_CONCURRENCY


def test_undecodable_image_fails_with_real_extractor() -> None:
    """A corrupt file is reported as failed, not as a near-empty metadata set."""
    sources = [make_source("good", make_jpeg(make="Canon")), make_source("bad", b"not a jpeg")]
    pipeline = ExtractionPipeline(MetadataExtractor(), concurrency=2)

    results = asyncio.run(pipeline.extract_all(sources))

    assert results[0].metadata is not None and results[0].metadata["Make"] == "Canon"
    assert results[1].metadata is None


def test_oversized_image_is_an_isolated_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    """Pillow's decompression-bomb guard fails one item without aborting the batch."""
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)
    sources = [
        make_source("small", make_jpeg(size=(8, 8))),
        make_source("huge", make_jpeg(size=(200, 200))),
        make_source("small2", make_jpeg(size=(8, 8))),
    ]
    pipeline = ExtractionPipeline(MetadataExtractor(), concurrency=2)

    results = asyncio.run(pipeline.extract_all(sources))

    assert [r.id for r in results] == ["small", "huge", "small2"]
    assert results[1].metadata is None
    assert results[0].metadata is not None and results[2].metadata is not None


class _SlowDecoder:
    """Blocking decoder that tracks how many calls run at once."""

    def __init__(self, delay: float) -> None:
        self.delay = delay
        self.lock = threading.Lock()
        self.active = 0
        self.peak = 0

    def decode(self, source: ImageSource) -> dict:
        with self.lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            time.sleep(self.delay)
            return {"Make": "Canon"}
        finally:
            with self.lock:
                self.active -= 1


def test_timed_out_decodes_keep_their_slot() -> None:
    decoder = _SlowDecoder(delay=0.1)
    pipeline = ExtractionPipeline(MetadataExtractor(decoder, decode_timeout=0.02), concurrency=1)

    results = asyncio.run(pipeline.extract_all(_sources(4)))

    assert all(r.metadata is None for r in results)
    assert decoder.peak == 1
    assert decoder.active == 0


def test_recoverable_failures_log_at_warning_level() -> None:
    levels: list[str] = []
    sink_id = logger.add(lambda msg: levels.append(msg.record["level"].name), level="DEBUG")
    try:
        pipeline = ExtractionPipeline(FakeExtractor(failing={"img0"}), concurrency=1)
        asyncio.run(pipeline.extract_all(_sources(2)))
    finally:
        logger.remove(sink_id)

    assert "WARNING" in levels
    assert "ERROR" not in levels
