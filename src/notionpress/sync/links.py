"""Rewrite links between Notion pages to their WordPress counterparts."""

from __future__ import annotations

from notionpress.config import NotionpressConfig
from notionpress.utils.ids import extract_notion_page_id

from .store import SyncMappingStore

NOTION_PAGE_URL = "https://notion.so/{page_id}"


class LinkRewriter:
    """Callable link resolver for :func:`~notionpress.converter.format_rich_text`.

    Links to a page that already has a post point at the post permalink.
    Links to any other Notion page become absolute ``notion.so`` URLs so
    that relative workspace links keep working outside Notion.  Everything
    else passes through unchanged.

    Lookups are cached for the lifetime of the instance; create one per
    page conversion.
    """

    def __init__(self, store: SyncMappingStore, config: NotionpressConfig) -> None:
        self._store = store
        self._config = config
        self._cache: dict[str, str] = {}

    def __call__(self, url: str) -> str:
        page_id = extract_notion_page_id(url)
        if page_id is None:
            return url
        cached = self._cache.get(page_id)
        if cached is None:
            cached = self._resolve(page_id)
            self._cache[page_id] = cached
        return cached

    def _resolve(self, page_id: str) -> str:
        mapping = self._store.find(page_id)
        if mapping is not None and mapping.target_id:
            return self._config.permalink_for(mapping.target_id)
        return NOTION_PAGE_URL.format(page_id=page_id)
