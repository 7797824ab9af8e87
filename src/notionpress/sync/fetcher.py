"""Notion implementation of :class:`~notionpress.sync.protocols.ContentSource`."""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from notionpress.config import NotionpressConfig
from notionpress.errors import NotionpressError, NotionpressFetchError
from notionpress.models import PageSummary, SourceBlock, SourcePage, parse_timestamp
from notionpress.notion_api import BlockAPI, PageAPI, extract_title
from notionpress.observability import get_logger
from notionpress.utils.ids import normalize_page_id

from .protocols import ContentSource

log = get_logger("notionpress.fetcher")

T = TypeVar("T")


def fetch_all_blocks(source: ContentSource, block_id: str, max_pages: int) -> list[SourceBlock]:
    """Follow the ``fetch_blocks`` cursor until the last page or *max_pages*.

    Blocks past the cap are dropped with a warning.
    """
    blocks: list[SourceBlock] = []
    cursor: str | None = None
    for _ in range(max_pages):
        page, cursor = source.fetch_blocks(block_id, cursor)
        blocks.extend(page)
        if cursor is None:
            return blocks
    log.warning(
        "Block fetch cap reached; remaining children ignored",
        extra={
            "extra_fields": {
                "op": "fetch_all_blocks",
                "block_id": block_id,
                "fetched": len(blocks),
                "max_pages": max_pages,
            }
        },
    )
    return blocks


class NotionContentSource:
    """Reads pages and blocks through the Notion API wrappers.

    Transport failures (including rate limiting past the retry budget) and
    malformed responses are re-raised as :class:`NotionpressFetchError`.

    Parameters
    ----------
    pages:
        Page and search wrapper.
    blocks:
        Block children wrapper.
    config:
        Provides ``fetch_max_pages``.
    """

    def __init__(self, pages: PageAPI, blocks: BlockAPI, config: NotionpressConfig) -> None:
        self._pages = pages
        self._blocks = blocks
        self._config = config

    def list_accessible_pages(self) -> list[PageSummary]:
        def load() -> list[PageSummary]:
            return [
                PageSummary(
                    id=normalize_page_id(page["id"]),
                    title=extract_title(page),
                    modified_at=parse_timestamp(page.get("last_edited_time")),
                    url=page.get("url"),
                )
                for page in self._pages.search(max_pages=self._config.fetch_max_pages)
                if not page.get("archived") and not page.get("in_trash")
            ]

        return self._guard("list_accessible_pages", None, load)

    def fetch_page(self, page_id: str) -> SourcePage:
        def load() -> SourcePage:
            page = self._pages.retrieve(page_id)
            return SourcePage(
                id=normalize_page_id(page["id"]),
                title=extract_title(page),
                modified_at=parse_timestamp(page.get("last_edited_time")),
                archived=bool(page.get("archived") or page.get("in_trash")),
            )

        return self._guard("fetch_page", page_id, load)

    def fetch_blocks(
        self, block_id: str, cursor: str | None = None,
    ) -> tuple[list[SourceBlock], str | None]:
        def load() -> tuple[list[SourceBlock], str | None]:
            raw, next_cursor = self._blocks.list_children(block_id, cursor)
            return [SourceBlock.from_api(b) for b in raw], next_cursor

        return self._guard("fetch_blocks", block_id, load)

    def fetch_all_blocks(self, block_id: str) -> list[SourceBlock]:
        return fetch_all_blocks(self, block_id, self._config.fetch_max_pages)

    def fetch_children(self, block_id: str) -> list[SourceBlock]:
        return self.fetch_all_blocks(block_id)

    # ------------------------------------------------------------------

    @staticmethod
    def _guard(operation: str, page_id: str | None, load: Callable[[], T]) -> T:
        try:
            return load()
        except NotionpressFetchError:
            raise
        except NotionpressError as exc:
            raise NotionpressFetchError(
                message=f"{operation} failed: {exc.message}",
                context={"page_id": page_id, "operation": operation, "code": exc.code},
                cause=exc,
            ) from exc
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise NotionpressFetchError(
                message=f"{operation} returned malformed data: {exc!r}",
                context={"page_id": page_id, "operation": operation},
                cause=exc,
            ) from exc
