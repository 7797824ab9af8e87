"""Chunked, cancellable batch syncs with progress reporting.

:meth:`BatchProcessor.start_batch` returns immediately.  A dispatcher
thread per batch hands the ids to a shared worker pool one chunk at a
time, pausing ``config.batch_stagger_seconds`` between chunks, so chunk
*N + 1* is never submitted before chunk *N*.  Items inside a chunk run in
parallel and finish in any order.

Cancellation is cooperative: the dispatcher checks the flag before and
after submitting each chunk, stops submitting once it is set, lets the
items already submitted finish and then marks the batch ``cancelled``.
"""

from __future__ import annotations

import dataclasses
import threading
import time
import uuid
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from dataclasses import dataclass, field

from notionpress.config import NotionpressConfig
from notionpress.errors import NotionpressBatchNotFoundError
from notionpress.models import (
    BatchProgress,
    BatchStatus,
    SyncOutcome,
    SyncResult,
    utcnow,
)
from notionpress.observability import get_logger, resolve_metrics
from notionpress.utils.chunk import chunk_items
from notionpress.utils.ids import normalize_page_id

from .orchestrator import SyncOrchestrator

log = get_logger("notionpress.batch")


@dataclass
class _Batch:
    progress: BatchProgress
    item_ids: list[str]
    force: bool
    cancelled: threading.Event = field(default_factory=threading.Event)
    done: threading.Event = field(default_factory=threading.Event)
    lock: threading.Lock = field(default_factory=threading.Lock)
    finished_monotonic: float | None = None
    thread: threading.Thread | None = None


class BatchProcessor:
    """Runs :meth:`SyncOrchestrator.sync_one` over many pages.

    Parameters
    ----------
    orchestrator:
        Performs each page sync.
    config:
        Provides chunk size, stagger, worker count and retention.
    """

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        config: NotionpressConfig | None = None,
    ) -> None:
        self._config = config if config is not None else NotionpressConfig()
        self._orchestrator = orchestrator
        self._metrics = resolve_metrics(self._config.metrics)
        self._executor = ThreadPoolExecutor(
            max_workers=self._config.batch_max_workers,
            thread_name_prefix="notionpress-sync",
        )
        self._batches: dict[str, _Batch] = {}
        self._lock = threading.Lock()
        self._closed = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start_batch(
        self,
        source_ids: Sequence[str],
        force: bool = False,
        chunk_size: int | None = None,
    ) -> str:
        """Queue a sync of *source_ids* and return the batch id.

        Duplicate ids (after normalisation) are dropped, keeping the first
        occurrence.

        Raises
        ------
        RuntimeError
            If the processor has been shut down.
        ValueError
            If *chunk_size* is less than 1.
        """
        size = chunk_size if chunk_size is not None else self._config.batch_chunk_size
        if size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {size}")

        seen: set[str] = set()
        item_ids: list[str] = []
        for source_id in source_ids:
            key = normalize_page_id(source_id)
            if key not in seen:
                seen.add(key)
                item_ids.append(source_id)

        batch_id = f"batch_{uuid.uuid4().hex[:10]}"
        batch = _Batch(
            progress=BatchProgress(
                batch_id=batch_id,
                status=BatchStatus.QUEUED,
                total=len(item_ids),
                chunk_size=size,
                started_at=utcnow(),
            ),
            item_ids=item_ids,
            force=force,
        )

        with self._lock:
            if self._closed:
                raise RuntimeError("BatchProcessor has been shut down")
            self._purge_expired()
            self._batches[batch_id] = batch

        log.info(
            "Batch queued",
            extra={
                "extra_fields": {
                    "op": "start_batch",
                    "batch_id": batch_id,
                    "total": len(item_ids),
                    "chunk_size": size,
                    "force": force,
                }
            },
        )

        if not item_ids:
            self._finish(batch)
            return batch_id

        batch.thread = threading.Thread(
            target=self._dispatch,
            args=(batch,),
            name=f"notionpress-{batch_id}",
            daemon=True,
        )
        batch.thread.start()
        return batch_id

    def progress(self, batch_id: str) -> BatchProgress:
        """Return a snapshot of the batch's progress.

        Raises
        ------
        NotionpressBatchNotFoundError
            If *batch_id* is unknown or has been purged.
        """
        batch = self._get(batch_id)
        with batch.lock:
            return dataclasses.replace(batch.progress, results=dict(batch.progress.results))

    def cancel(self, batch_id: str) -> bool:
        """Ask the batch to stop after the chunks already dispatched.

        Returns ``False`` if the batch had already finished.
        """
        batch = self._get(batch_id)
        with batch.lock:
            if batch.progress.status.is_terminal:
                return False
            batch.cancelled.set()
        log.info(
            "Batch cancellation requested",
            extra={"extra_fields": {"op": "cancel", "batch_id": batch_id}},
        )
        return True

    def wait(self, batch_id: str, timeout: float | None = None) -> BatchProgress:
        """Block until the batch is terminal or *timeout* elapses."""
        self._get(batch_id).done.wait(timeout)
        return self.progress(batch_id)

    def shutdown(self, wait: bool = True) -> None:
        """Cancel every running batch and stop the worker pool."""
        with self._lock:
            self._closed = True
            batches = list(self._batches.values())
        for batch in batches:
            batch.cancelled.set()
        if wait:
            for batch in batches:
                if batch.thread is not None:
                    batch.thread.join()
        self._executor.shutdown(wait=wait)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get(self, batch_id: str) -> _Batch:
        with self._lock:
            batch = self._batches.get(batch_id)
        if batch is None:
            raise NotionpressBatchNotFoundError(
                message=f"Unknown batch {batch_id!r}",
                context={"batch_id": batch_id},
            )
        return batch

    def _purge_expired(self) -> None:
        cutoff = time.monotonic() - self._config.batch_retention_seconds
        expired = [
            batch_id
            for batch_id, batch in self._batches.items()
            if batch.finished_monotonic is not None and batch.finished_monotonic < cutoff
        ]
        for batch_id in expired:
            del self._batches[batch_id]

    def _dispatch(self, batch: _Batch) -> None:
        with batch.lock:
            batch.progress.status = BatchStatus.PROCESSING

        futures: list[Future] = []
        chunks = chunk_items(batch.item_ids, batch.progress.chunk_size)
        for index, chunk in enumerate(chunks):
            if index > 0 and batch.cancelled.wait(self._config.batch_stagger_seconds):
                break
            if batch.cancelled.is_set():
                break
            try:
                for source_id in chunk:
                    futures.append(
                        self._executor.submit(self._run_item, batch, source_id, batch.force)
                    )
            except RuntimeError:
                # Pool shut down underneath us.
                batch.cancelled.set()
                break
            log.debug(
                "Chunk dispatched",
                extra={
                    "extra_fields": {
                        "batch_id": batch.progress.batch_id,
                        "chunk": index + 1,
                        "chunks": len(chunks),
                        "items": len(chunk),
                    }
                },
            )
            if batch.cancelled.is_set():
                break

        wait_futures(futures)
        self._finish(batch)

    def _run_item(self, batch: _Batch, source_id: str, force: bool) -> None:
        try:
            result = self._orchestrator.sync_one(source_id, force=force)
        except Exception as exc:
            log.error(
                "Batch item raised",
                extra={
                    "extra_fields": {
                        "batch_id": batch.progress.batch_id,
                        "source_id": source_id,
                        "error": str(exc),
                    }
                },
            )
            result = SyncResult(
                source_id=source_id,
                success=False,
                error=f"{type(exc).__name__}: {exc}",
                outcome=SyncOutcome.FAILED,
            )

        with batch.lock:
            batch.progress.results[normalize_page_id(source_id)] = result
            if result.success:
                batch.progress.completed += 1
            else:
                batch.progress.failed += 1
        self._metrics.increment(
            "notionpress.batch_items_total",
            tags={"result": "completed" if result.success else "failed"},
        )

    def _finish(self, batch: _Batch) -> None:
        with batch.lock:
            progress = batch.progress
            if batch.cancelled.is_set() and progress.processed < progress.total:
                progress.status = BatchStatus.CANCELLED
            else:
                progress.status = BatchStatus.COMPLETED
            progress.completed_at = utcnow()
            batch.finished_monotonic = time.monotonic()
        batch.done.set()
        log.info(
            "Batch finished",
            extra={
                "extra_fields": {
                    "op": "batch",
                    "batch_id": progress.batch_id,
                    "status": progress.status.value,
                    "total": progress.total,
                    "completed": progress.completed,
                    "failed": progress.failed,
                }
            },
        )
