"""notionpress: mirror Notion pages into WordPress posts.

Public re-exports
-----------------

* **Client:** :class:`SyncClient`
* **Configuration:** :class:`NotionpressConfig`
* **Errors:** Every :class:`NotionpressError` subclass and :class:`ErrorCode`
* **Models:** Result dataclasses, enums, and supporting types
* **Core:** converter registry, conversion pipeline, mapping store,
  orchestrator and batch processor for callers wiring their own
  collaborators

Usage::

    from notionpress import SyncClient

    with SyncClient(token="secret_xxx", wp_base_url="https://blog.example.com",
                    wp_username="editor", wp_app_password="...") as client:
        batch_id = client.start_batch(["<page_id>", "<page_id>"])
        print(client.wait(batch_id).completed)
"""

from __future__ import annotations

# ── Client ──────────────────────────────────────────────────────────────
from notionpress.client import SyncClient

# ── Configuration ───────────────────────────────────────────────────────
from notionpress.config import NotionpressConfig

# ── Core ────────────────────────────────────────────────────────────────
from notionpress.converter import (
    BlockConversionPipeline,
    ConversionContext,
    Converter,
    ConverterRegistry,
    format_rich_text,
)

# ── Errors ──────────────────────────────────────────────────────────────
from notionpress.errors import (
    ErrorCode,
    NotionpressAuthError,
    NotionpressBatchNotFoundError,
    NotionpressConflictError,
    NotionpressConversionError,
    NotionpressError,
    NotionpressFetchError,
    NotionpressNetworkError,
    NotionpressNotFoundError,
    NotionpressPermissionError,
    NotionpressRateLimitError,
    NotionpressRetryExhaustedError,
    NotionpressUpsertError,
    NotionpressValidationError,
)

# ── Models ──────────────────────────────────────────────────────────────
from notionpress.models import (
    Annotation,
    BatchProgress,
    BatchStatus,
    BlockType,
    ConversionWarning,
    PageSummary,
    RichTextRun,
    SourceBlock,
    SourcePage,
    SyncMapping,
    SyncOutcome,
    SyncResult,
    SyncStatus,
)
from notionpress.sync import (
    BatchProcessor,
    ContentSource,
    PostTarget,
    SyncMappingStore,
    SyncOrchestrator,
)

__version__ = "0.1.0"

__all__ = [
    # Client
    "SyncClient",
    # Configuration
    "NotionpressConfig",
    # Core
    "BatchProcessor",
    "BlockConversionPipeline",
    "ContentSource",
    "ConversionContext",
    "Converter",
    "ConverterRegistry",
    "PostTarget",
    "SyncMappingStore",
    "SyncOrchestrator",
    "format_rich_text",
    # Errors
    "ErrorCode",
    "NotionpressAuthError",
    "NotionpressBatchNotFoundError",
    "NotionpressConflictError",
    "NotionpressConversionError",
    "NotionpressError",
    "NotionpressFetchError",
    "NotionpressNetworkError",
    "NotionpressNotFoundError",
    "NotionpressPermissionError",
    "NotionpressRateLimitError",
    "NotionpressRetryExhaustedError",
    "NotionpressUpsertError",
    "NotionpressValidationError",
    # Models
    "Annotation",
    "BatchProgress",
    "BatchStatus",
    "BlockType",
    "ConversionWarning",
    "PageSummary",
    "RichTextRun",
    "SourceBlock",
    "SourcePage",
    "SyncMapping",
    "SyncOutcome",
    "SyncResult",
    "SyncStatus",
    # Version
    "__version__",
]
