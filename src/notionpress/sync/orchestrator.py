"""Single-page sync: fetch, convert, upsert, record.

Per page the mapping row moves through::

    never_synced -> syncing -> synced | error
    synced -> needs_update -> syncing -> synced | error

``syncing`` doubles as the per-page lock.  It is taken with an atomic
check-and-set on the mapping store and always released by a terminal
write, whatever happens in between.  A row left in ``syncing`` by a
crashed process is re-acquired once it is older than
``config.syncing_stale_after``.

Concurrent calls for the same page inside one process are coalesced: the
later caller waits for and returns the result of the call already running.
A sync held by another process is reported as
:attr:`~notionpress.models.SyncOutcome.CONFLICT`.
"""

from __future__ import annotations

import dataclasses
import threading
import time
from concurrent.futures import Future

from notionpress.config import NotionpressConfig
from notionpress.converter import BlockConversionPipeline
from notionpress.errors import (
    NotionpressConflictError,
    NotionpressFetchError,
    NotionpressValidationError,
)
from notionpress.models import (
    PageSummary,
    SourcePage,
    SyncMapping,
    SyncOutcome,
    SyncResult,
    SyncStatus,
    utcnow,
)
from notionpress.observability import get_logger, resolve_metrics
from notionpress.utils.ids import normalize_page_id, validate_page_id

from .fetcher import fetch_all_blocks
from .links import LinkRewriter
from .protocols import ContentSource, PostTarget
from .store import SyncMappingStore

log = get_logger("notionpress.sync")


class SyncOrchestrator:
    """Keeps one WordPress post in step with one Notion page.

    Parameters
    ----------
    source:
        Content collaborator pages and blocks are read from.
    target:
        Publishing collaborator posts are written to.
    store:
        Mapping store holding the per-page state.
    pipeline:
        Block converter.  Defaults to the built-in converters with
        children fetched from *source*.
    config:
        Shared configuration.
    """

    def __init__(
        self,
        source: ContentSource,
        target: PostTarget,
        store: SyncMappingStore,
        pipeline: BlockConversionPipeline | None = None,
        config: NotionpressConfig | None = None,
    ) -> None:
        self._config = config if config is not None else NotionpressConfig()
        self._source = source
        self._target = target
        self._store = store
        self._pipeline = pipeline if pipeline is not None else BlockConversionPipeline(
            fetch_children=source.fetch_children, config=self._config,
        )
        self._metrics = resolve_metrics(self._config.metrics)
        self._inflight: dict[str, Future[SyncResult]] = {}
        self._inflight_lock = threading.Lock()

    @property
    def store(self) -> SyncMappingStore:
        return self._store

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def sync_one(self, source_id: str, force: bool = False) -> SyncResult:
        """Sync one page and return what happened.

        Parameters
        ----------
        source_id:
            Notion page id, dashed or not.
        force:
            Skip the unchanged-since-last-sync short-circuit.

        Returns
        -------
        SyncResult
            Never raises for fetch, conversion or upsert failures; those
            are reported with ``success=False`` and recorded on the
            mapping row.
        """
        problem = validate_page_id(source_id)
        if problem is not None:
            log.warning(
                "Rejected invalid page id",
                extra={"extra_fields": {"op": "sync_one", "reason": problem}},
            )
            self._metrics.increment("notionpress.sync_total", tags={"outcome": SyncOutcome.FAILED.value})
            return SyncResult(
                source_id=source_id,
                success=False,
                error=problem,
                outcome=SyncOutcome.FAILED,
            )

        source_id = normalize_page_id(source_id)
        with self._inflight_lock:
            running = self._inflight.get(source_id)
            if running is None:
                future: Future[SyncResult] = Future()
                self._inflight[source_id] = future

        if running is not None:
            log.info(
                "Joining sync already in progress",
                extra={"extra_fields": {"op": "sync_one", "source_id": source_id}},
            )
            return running.result()

        try:
            result = self._run(source_id, force)
        except BaseException as exc:
            future.set_exception(exc)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            with self._inflight_lock:
                self._inflight.pop(source_id, None)

    def needs_sync(self, source_id: str) -> bool:
        """Whether :meth:`sync_one` would do any work for *source_id*.

        Reads the mapping and the page metadata only; nothing is written.

        Raises
        ------
        NotionpressValidationError
            If *source_id* is malformed.
        NotionpressFetchError
            If the page metadata cannot be read.
        """
        problem = validate_page_id(source_id)
        if problem is not None:
            raise NotionpressValidationError(
                message=problem, context={"source_id": source_id},
            )
        mapping = self._store.find(source_id)
        if mapping is None or mapping.status is not SyncStatus.SYNCED:
            return True
        page = self._source.fetch_page(normalize_page_id(source_id))
        return not _unchanged(mapping, page)

    def list_pages(self, mark_stale: bool = False) -> list[PageSummary]:
        """Accessible pages, each annotated with ``needs_sync``.

        With *mark_stale*, ``synced`` rows whose page changed since the
        last sync are moved to ``needs_update``.
        """
        pages = self._source.list_accessible_pages()
        for page in pages:
            mapping = self._store.find(page.id)
            if mapping is None or mapping.status is not SyncStatus.SYNCED:
                page.needs_sync = True
                continue
            page.needs_sync = not _unchanged(mapping, page)
            if page.needs_sync and mark_stale:
                self._store.mark_needs_update(page.id)
        return pages

    def unmap(self, source_id: str) -> bool:
        """Forget the post of *source_id*.  The post itself is kept."""
        return self._store.delete(source_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _run(self, source_id: str, force: bool) -> SyncResult:
        started = time.monotonic()
        result = self._attempt(source_id, force)
        elapsed_ms = (time.monotonic() - started) * 1000
        self._metrics.increment("notionpress.sync_total", tags={"outcome": result.outcome.value})
        self._metrics.timing("notionpress.sync_duration_ms", elapsed_ms)
        log.info(
            "Sync finished",
            extra={
                "extra_fields": {
                    "op": "sync_one",
                    "source_id": source_id,
                    "target_id": result.target_id,
                    "outcome": result.outcome.value,
                    "created": result.created,
                    "warnings": len(result.warnings),
                    "duration_ms": round(elapsed_ms, 1),
                }
            },
        )
        return result

    def _attempt(self, source_id: str, force: bool) -> SyncResult:
        mapping = self._store.find(source_id)

        try:
            page = self._source.fetch_page(source_id)
            if page.archived:
                raise NotionpressFetchError(
                    message=f"Page {source_id} is archived",
                    context={"page_id": source_id, "operation": "fetch_page"},
                )
        except Exception as exc:
            return self._fail_before_lock(source_id, exc)

        if not force and mapping is not None and mapping.status is SyncStatus.SYNCED and _unchanged(mapping, page):
            return SyncResult(
                source_id=source_id,
                success=True,
                target_id=mapping.target_id,
                outcome=SyncOutcome.UNCHANGED,
            )

        acquired, current = self._store.try_acquire(
            source_id, page.title, stale_after=self._config.syncing_stale_after,
        )
        if not acquired:
            log.warning(
                "Page is being synced elsewhere",
                extra={
                    "extra_fields": {
                        "op": "sync_one",
                        "source_id": source_id,
                        "last_attempt_at": str(current.last_attempt_at),
                    }
                },
            )
            return SyncResult(
                source_id=source_id,
                success=False,
                target_id=current.target_id,
                error=f"A sync of page {source_id} is already in progress",
                outcome=SyncOutcome.CONFLICT,
            )

        target_id = current.target_id
        created = False
        try:
            blocks = fetch_all_blocks(self._source, source_id, self._config.fetch_max_pages)
            output = self._pipeline.convert(
                blocks, link_resolver=LinkRewriter(self._store, self._config),
            )
            title = page.title or current.source_title
            if target_id:
                self._target.update_post(target_id, output.markup, title)
            else:
                target_id = self._target.create_post(output.markup, title)
                created = True

            self._store.upsert(dataclasses.replace(
                current,
                target_id=target_id,
                source_title=title,
                source_modified_at=page.modified_at,
                target_modified_at=utcnow(),
                status=SyncStatus.SYNCED,
                last_error=None,
            ))
        except Exception as exc:
            if isinstance(exc, NotionpressConflictError) and target_id != current.target_id:
                # The new post id belongs to another page; keep the old one.
                log.warning(
                    "Target post already mapped to another page",
                    extra={
                        "extra_fields": {
                            "op": "sync_one",
                            "source_id": source_id,
                            "orphaned_target_id": target_id,
                        }
                    },
                )
                target_id = current.target_id
            self._record_error(dataclasses.replace(current, target_id=target_id), exc)
            return SyncResult(
                source_id=source_id,
                success=False,
                target_id=target_id,
                error=_describe(exc),
                outcome=SyncOutcome.FAILED,
                created=created,
            )

        return SyncResult(
            source_id=source_id,
            success=True,
            target_id=target_id,
            outcome=SyncOutcome.SYNCED,
            created=created,
            warnings=output.warnings,
        )

    def _fail_before_lock(self, source_id: str, exc: Exception) -> SyncResult:
        """Record a failure that happened before the lock was taken.

        The error is only written when the lock can be acquired, so a sync
        running elsewhere is never overwritten.
        """
        acquired, current = self._store.try_acquire(
            source_id, stale_after=self._config.syncing_stale_after,
        )
        if acquired:
            self._record_error(current, exc)
        return SyncResult(
            source_id=source_id,
            success=False,
            target_id=current.target_id,
            error=_describe(exc),
            outcome=SyncOutcome.FAILED,
        )

    def _record_error(self, current: SyncMapping, exc: Exception) -> None:
        log.warning(
            "Sync failed",
            extra={
                "extra_fields": {
                    "op": "sync_one",
                    "source_id": current.source_id,
                    "target_id": current.target_id,
                    "error_type": type(exc).__name__,
                    "error": _describe(exc),
                }
            },
        )
        try:
            self._store.upsert(dataclasses.replace(
                current,
                status=SyncStatus.ERROR,
                last_error=_describe(exc),
                last_attempt_at=utcnow(),
            ))
        except Exception as store_exc:
            # The row stays ``syncing`` and is re-acquired once stale.
            log.error(
                "Could not record sync failure",
                extra={
                    "extra_fields": {
                        "op": "sync_one",
                        "source_id": current.source_id,
                        "error": str(store_exc),
                    }
                },
            )


def _unchanged(mapping: SyncMapping, page: SourcePage | PageSummary) -> bool:
    return page.modified_at is not None and mapping.source_modified_at == page.modified_at


def _describe(exc: Exception) -> str:
    message = getattr(exc, "message", None)
    return message if isinstance(message, str) and message else f"{type(exc).__name__}: {exc}"
