"""Shared test fixtures for the notionpress test suite."""

from __future__ import annotations

import threading
from datetime import datetime, timezone

import pytest

from notionpress.config import NotionpressConfig
from notionpress.converter import BlockConversionPipeline, ConverterRegistry
from notionpress.errors import NotionpressFetchError, NotionpressUpsertError
from notionpress.models import PageSummary, SourceBlock, SourcePage
from notionpress.sync.store import SyncMappingStore, create_store_engine

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeSource:
    """In-memory ContentSource.

    ``pages`` maps page id to :class:`SourcePage`; ``blocks`` maps a page or
    block id to its children.  Every call is recorded in ``calls``.
    """

    def __init__(self, page_size: int = 100) -> None:
        self.pages: dict[str, SourcePage] = {}
        self.blocks: dict[str, list[SourceBlock]] = {}
        self.page_size = page_size
        self.calls: list[tuple] = []
        self.fail_fetch_blocks: Exception | None = None
        self.fail_fetch_page: Exception | None = None
        self.gate: threading.Event | None = None
        self._lock = threading.Lock()

    def add_page(self, page_id: str, title: str = "Page", modified_at: datetime = T0,
                 blocks: list[SourceBlock] | None = None) -> SourcePage:
        page = SourcePage(id=page_id, title=title, modified_at=modified_at)
        self.pages[page_id] = page
        self.blocks[page_id] = list(blocks or [])
        return page

    def _record(self, *call) -> None:
        with self._lock:
            self.calls.append(call)

    def calls_to(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]

    def list_accessible_pages(self) -> list[PageSummary]:
        self._record("list_accessible_pages")
        return [
            PageSummary(id=p.id, title=p.title, modified_at=p.modified_at)
            for p in self.pages.values()
        ]

    def fetch_page(self, page_id: str) -> SourcePage:
        self._record("fetch_page", page_id)
        if self.fail_fetch_page is not None:
            raise self.fail_fetch_page
        if page_id not in self.pages:
            raise NotionpressFetchError(
                message=f"Page {page_id} not found", context={"page_id": page_id},
            )
        return self.pages[page_id]

    def fetch_blocks(self, block_id: str, cursor: str | None = None):
        self._record("fetch_blocks", block_id, cursor)
        if self.gate is not None:
            self.gate.wait(5)
        if self.fail_fetch_blocks is not None:
            raise self.fail_fetch_blocks
        items = self.blocks.get(block_id, [])
        start = int(cursor or 0)
        end = start + self.page_size
        next_cursor = str(end) if end < len(items) else None
        return items[start:end], next_cursor

    def fetch_children(self, block_id: str) -> list[SourceBlock]:
        self._record("fetch_children", block_id)
        return list(self.blocks.get(block_id, []))


class FakeTarget:
    """In-memory PostTarget that records every write."""

    def __init__(self) -> None:
        self.posts: dict[str, tuple[str, str]] = {}
        self.creates: list[tuple[str, str]] = []
        self.updates: list[tuple[str, str, str]] = []
        self.fail_with: Exception | None = None
        self._next_id = 100
        self._lock = threading.Lock()

    @property
    def writes(self) -> int:
        return len(self.creates) + len(self.updates)

    def create_post(self, markup: str, title: str) -> str:
        if self.fail_with is not None:
            raise self.fail_with
        with self._lock:
            self._next_id += 1
            post_id = str(self._next_id)
            self.creates.append((markup, title))
            self.posts[post_id] = (title, markup)
        return post_id

    def update_post(self, target_id: str, markup: str, title: str) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        if target_id not in self.posts:
            raise NotionpressUpsertError(
                message=f"Post {target_id} does not exist", context={"target_id": target_id},
            )
        with self._lock:
            self.updates.append((target_id, markup, title))
            self.posts[target_id] = (title, markup)


@pytest.fixture
def config() -> NotionpressConfig:
    """Default test configuration with dummy credentials and no pacing."""
    return NotionpressConfig(
        token="test_token_1234",
        wp_base_url="https://blog.example.com",
        wp_username="editor",
        wp_app_password="app-pass-5678",
        database_url="sqlite://",
        batch_stagger_seconds=0.0,
    )


@pytest.fixture
def registry() -> ConverterRegistry:
    return ConverterRegistry.with_defaults()


@pytest.fixture
def pipeline(registry: ConverterRegistry, config: NotionpressConfig) -> BlockConversionPipeline:
    return BlockConversionPipeline(registry, config=config)


@pytest.fixture
def store():
    """Mapping store on a private in-memory SQLite database."""
    s = SyncMappingStore(create_store_engine("sqlite://"))
    yield s
    s.close()


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def target() -> FakeTarget:
    return FakeTarget()
