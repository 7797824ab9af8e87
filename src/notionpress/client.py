"""Synchronous Notion to WordPress sync client.

:class:`SyncClient` wires the HTTP transports, the API wrappers, the
mapping store, the conversion pipeline, the orchestrator and the batch
processor together behind one object.

Usage::

    from notionpress import SyncClient

    with SyncClient(
        token="secret_xxx",
        wp_base_url="https://blog.example.com",
        wp_username="editor",
        wp_app_password="abcd efgh ijkl mnop",
    ) as client:
        result = client.sync_one("75424b1c35d0476b836cbb0e776f3f7c")
        print(result.outcome, result.target_id)
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from notionpress.config import NotionpressConfig
from notionpress.converter import BlockConversionPipeline, Converter, ConverterRegistry
from notionpress.models import BatchProgress, PageSummary, SyncMapping, SyncResult, SyncStatus
from notionpress.notion_api import BlockAPI, NotionTransport, PageAPI
from notionpress.sync import (
    BatchProcessor,
    NotionContentSource,
    SyncMappingStore,
    SyncOrchestrator,
    WordPressPostTarget,
)
from notionpress.wordpress_api import PostAPI, WordPressTransport


class SyncClient:
    """Mirror Notion pages into WordPress posts.

    Parameters
    ----------
    config:
        A ready configuration.  When omitted, one is built from
        *kwargs*.
    converters:
        Extra converters registered on top of the built-in ones.
    store:
        Mapping store to use instead of one opened on
        ``config.database_url``.
    **kwargs:
        Forwarded to :class:`NotionpressConfig`.
    """

    def __init__(
        self,
        config: NotionpressConfig | None = None,
        *,
        converters: Iterable[Converter] = (),
        store: SyncMappingStore | None = None,
        **kwargs: Any,
    ) -> None:
        self._config = config if config is not None else NotionpressConfig(**kwargs)
        self._notion = NotionTransport(self._config)
        self._wordpress = WordPressTransport(self._config)
        self._source = NotionContentSource(
            PageAPI(self._notion), BlockAPI(self._notion), self._config,
        )
        self._target = WordPressPostTarget(
            PostAPI(self._wordpress, post_type=self._config.post_type), self._config,
        )
        self._owns_store = store is None
        self._store = store if store is not None else SyncMappingStore.from_url(
            self._config.database_url
        )
        self._pipeline = BlockConversionPipeline(
            ConverterRegistry.with_defaults(converters),
            fetch_children=self._source.fetch_children,
            config=self._config,
        )
        self._orchestrator = SyncOrchestrator(
            self._source, self._target, self._store, self._pipeline, self._config,
        )
        self._batches = BatchProcessor(self._orchestrator, self._config)

    @property
    def config(self) -> NotionpressConfig:
        return self._config

    # ------------------------------------------------------------------
    # Single pages
    # ------------------------------------------------------------------

    def sync_one(self, source_id: str, force: bool = False) -> SyncResult:
        """Sync one page.  See :meth:`SyncOrchestrator.sync_one`."""
        return self._orchestrator.sync_one(source_id, force=force)

    def needs_sync(self, source_id: str) -> bool:
        return self._orchestrator.needs_sync(source_id)

    def list_pages(self, mark_stale: bool = False) -> list[PageSummary]:
        """Pages visible to the integration, annotated with ``needs_sync``."""
        return self._orchestrator.list_pages(mark_stale=mark_stale)

    def unmap(self, source_id: str) -> bool:
        return self._orchestrator.unmap(source_id)

    def mappings(
        self,
        status: SyncStatus | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> list[SyncMapping]:
        """One page of mapping rows, most recently updated first."""
        return self._store.list(status=status, page=page, page_size=page_size)

    def status_counts(self) -> dict[SyncStatus, int]:
        return self._store.count_by_status()

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    def start_batch(
        self,
        source_ids: Sequence[str],
        force: bool = False,
        chunk_size: int | None = None,
    ) -> str:
        """Start a background batch sync and return its id."""
        return self._batches.start_batch(source_ids, force=force, chunk_size=chunk_size)

    def progress(self, batch_id: str) -> BatchProgress:
        return self._batches.progress(batch_id)

    def cancel(self, batch_id: str) -> bool:
        return self._batches.cancel(batch_id)

    def wait(self, batch_id: str, timeout: float | None = None) -> BatchProgress:
        return self._batches.wait(batch_id, timeout)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Stop running batches and release connections."""
        self._batches.shutdown(wait=True)
        self._notion.close()
        self._wordpress.close()
        if self._owns_store:
            self._store.close()

    def __enter__(self) -> SyncClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
