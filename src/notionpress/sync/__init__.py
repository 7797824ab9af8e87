"""Sync core: mapping store, orchestrator, batch processor and collaborators."""

from __future__ import annotations

from .batch import BatchProcessor
from .fetcher import NotionContentSource
from .links import LinkRewriter
from .orchestrator import SyncOrchestrator
from .protocols import ContentSource, PostTarget
from .publisher import WordPressPostTarget
from .store import SyncMappingStore, create_store_engine

__all__ = [
    "BatchProcessor",
    "ContentSource",
    "LinkRewriter",
    "NotionContentSource",
    "PostTarget",
    "SyncMappingStore",
    "SyncOrchestrator",
    "WordPressPostTarget",
    "create_store_engine",
]
