"""Tests for BatchProcessor chunking, progress and cancellation."""

from __future__ import annotations

import threading
import time
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from notionpress.errors import NotionpressBatchNotFoundError
from notionpress.models import BatchStatus, SyncOutcome, SyncResult
from notionpress.sync import BatchProcessor, SyncOrchestrator

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
IDS = [f"{i:032x}" for i in range(1, 7)]


def _wait_for(predicate, timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        time.sleep(0.01)


@pytest.fixture
def orchestrator(source, target, store, config):
    return SyncOrchestrator(source, target, store, config=config)


@pytest.fixture
def processor(orchestrator, config):
    p = BatchProcessor(orchestrator, config)
    yield p
    p.shutdown(wait=True)


@pytest.fixture
def pages(source):
    for page_id in IDS:
        source.add_page(page_id, f"Page {page_id[-1]}", T0)
    return IDS


def _mock_orchestrator(side_effect=None) -> MagicMock:
    orchestrator = MagicMock()
    orchestrator.sync_one.side_effect = side_effect or (
        lambda sid, force=False: SyncResult(source_id=sid, success=True)
    )
    return orchestrator


class TestStartBatch:
    def test_id_format(self, processor, pages):
        batch_id = processor.start_batch(pages)
        assert batch_id.startswith("batch_")
        assert len(batch_id) == len("batch_") + 10

    def test_all_items_completed(self, processor, pages, target):
        batch_id = processor.start_batch(pages, chunk_size=4)
        progress = processor.wait(batch_id, timeout=10)

        assert progress.status is BatchStatus.COMPLETED
        assert progress.total == 6
        assert progress.completed == 6
        assert progress.failed == 0
        assert (progress.completed_count, progress.failed_count) == (6, 0)
        assert progress.percentage == 100.0
        assert progress.chunk_size == 4
        assert progress.started_at is not None
        assert progress.completed_at >= progress.started_at
        assert set(progress.results) == set(pages)
        assert len(target.creates) == 6

    def test_failures_counted(self, processor, pages):
        missing = "f" * 32
        progress = processor.wait(processor.start_batch([*pages[:2], missing]), timeout=10)
        assert progress.completed == 2
        assert progress.failed == 1
        assert progress.results[missing].outcome is SyncOutcome.FAILED
        assert progress.status is BatchStatus.COMPLETED

    def test_duplicates_dropped(self, processor, pages):
        dashed = f"{pages[0][:8]}-{pages[0][8:12]}-{pages[0][12:16]}-{pages[0][16:20]}-{pages[0][20:]}"
        batch_id = processor.start_batch([pages[0], dashed, pages[0]])
        assert processor.wait(batch_id, timeout=10).total == 1

    def test_empty_batch_completes_immediately(self, processor):
        progress = processor.progress(processor.start_batch([]))
        assert progress.status is BatchStatus.COMPLETED
        assert progress.total == 0
        assert progress.percentage == 100.0

    def test_default_chunk_size_from_config(self, processor, config):
        progress = processor.progress(processor.start_batch([]))
        assert progress.chunk_size == config.batch_chunk_size

    @pytest.mark.parametrize("size", [0, -3])
    def test_invalid_chunk_size(self, processor, size):
        with pytest.raises(ValueError, match="chunk_size"):
            processor.start_batch(IDS, chunk_size=size)

    def test_force_forwarded(self, config):
        orchestrator = _mock_orchestrator()
        processor = BatchProcessor(orchestrator, config)
        processor.wait(processor.start_batch(IDS[:2], force=True), timeout=10)
        processor.shutdown()
        assert all(call.kwargs["force"] is True for call in orchestrator.sync_one.call_args_list)

    def test_item_exception_becomes_failure(self, config):
        def boom(sid, force=False):
            raise RuntimeError("boom")

        processor = BatchProcessor(_mock_orchestrator(boom), config)
        progress = processor.wait(processor.start_batch(IDS[:1]), timeout=10)
        processor.shutdown()
        assert progress.failed == 1
        assert progress.results[IDS[0]].error == "RuntimeError: boom"

    def test_metrics(self, config):
        hook = MagicMock()
        config.metrics = hook
        processor = BatchProcessor(_mock_orchestrator(), config)
        processor.wait(processor.start_batch(IDS[:3]), timeout=10)
        processor.shutdown()
        hook.increment.assert_any_call("notionpress.batch_items_total", tags={"result": "completed"})
        assert hook.increment.call_count == 3


class TestChunkOrdering:
    def test_chunks_dispatched_in_order(self, source, target, store, config, pages):
        config.batch_stagger_seconds = 0.3
        processor = BatchProcessor(SyncOrchestrator(source, target, store, config=config), config)
        processor.wait(processor.start_batch(pages, chunk_size=2), timeout=10)
        processor.shutdown()

        fetched = [call[1] for call in source.calls_to("fetch_page")]
        assert set(fetched[:2]) == set(pages[:2])
        assert set(fetched[2:4]) == set(pages[2:4])
        assert set(fetched[4:]) == set(pages[4:])


class TestProgressAndCancel:
    def test_unknown_batch(self, processor):
        with pytest.raises(NotionpressBatchNotFoundError):
            processor.progress("batch_nope")
        with pytest.raises(NotionpressBatchNotFoundError):
            processor.cancel("batch_nope")
        with pytest.raises(NotionpressBatchNotFoundError):
            processor.wait("batch_nope")

    def test_snapshot_is_a_copy(self, processor, pages):
        batch_id = processor.start_batch(pages[:1])
        snapshot = processor.wait(batch_id, timeout=10)
        snapshot.results.clear()
        snapshot.completed = 99
        fresh = processor.progress(batch_id)
        assert fresh.completed == 1
        assert len(fresh.results) == 1

    def test_cancel_stops_later_chunks(self, source, target, store, config, pages):
        config.batch_stagger_seconds = 5.0
        source.gate = threading.Event()
        processor = BatchProcessor(SyncOrchestrator(source, target, store, config=config), config)
        batch_id = processor.start_batch(pages, chunk_size=2)
        _wait_for(lambda: len(source.calls_to("fetch_blocks")) == 2)

        assert processor.progress(batch_id).status is BatchStatus.PROCESSING
        assert processor.cancel(batch_id) is True
        source.gate.set()
        progress = processor.wait(batch_id, timeout=10)
        processor.shutdown()

        assert progress.status is BatchStatus.CANCELLED
        assert progress.processed == 2
        assert progress.total == 6
        assert len(target.creates) == 2

    def test_cancel_finished_batch_returns_false(self, processor, pages):
        batch_id = processor.start_batch(pages[:1])
        processor.wait(batch_id, timeout=10)
        assert processor.cancel(batch_id) is False
        assert processor.progress(batch_id).status is BatchStatus.COMPLETED

    def test_counts_never_exceed_total(self, processor, pages):
        batch_id = processor.start_batch(pages, chunk_size=1)
        while True:
            progress = processor.progress(batch_id)
            assert progress.completed + progress.failed <= progress.total
            if progress.status.is_terminal:
                break
            time.sleep(0.005)


class TestLifecycle:
    def test_start_after_shutdown(self, processor):
        processor.shutdown()
        with pytest.raises(RuntimeError, match="shut down"):
            processor.start_batch(IDS)

    def test_finished_batches_purged_after_retention(self, config):
        config.batch_retention_seconds = 0.05
        processor = BatchProcessor(_mock_orchestrator(), config)
        old = processor.start_batch([])
        time.sleep(0.1)
        processor.start_batch([])
        with pytest.raises(NotionpressBatchNotFoundError):
            processor.progress(old)
        processor.shutdown()

    def test_running_batches_not_purged(self, config):
        config.batch_retention_seconds = 0.01
        release = threading.Event()

        def slow(sid, force=False):
            release.wait(5)
            return SyncResult(source_id=sid, success=True)

        processor = BatchProcessor(_mock_orchestrator(slow), config)
        batch_id = processor.start_batch(IDS[:1])
        time.sleep(0.05)
        processor.start_batch([])
        assert processor.progress(batch_id).batch_id == batch_id
        release.set()
        processor.shutdown()
