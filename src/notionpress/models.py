"""Public data models for notionpress.

This module contains the source-side block and rich-text types, the
mapping row shape, every result type, warning type and enum referenced by
the public API surface.  Apart from the ``from_api`` constructors that
read Notion payloads, the types carry no behaviour beyond what is needed
for structural equality and hashing (where frozen).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class BlockType(str, Enum):
    """Block types the conversion pipeline knows about.

    Anything else the source API returns is mapped to :attr:`UNKNOWN`; the
    original tag is kept on :attr:`SourceBlock.raw_type`.
    """

    PARAGRAPH = "paragraph"
    HEADING_1 = "heading_1"
    HEADING_2 = "heading_2"
    HEADING_3 = "heading_3"
    HEADING_4 = "heading_4"
    HEADING_5 = "heading_5"
    HEADING_6 = "heading_6"
    BULLETED_LIST_ITEM = "bulleted_list_item"
    NUMBERED_LIST_ITEM = "numbered_list_item"
    QUOTE = "quote"
    CALLOUT = "callout"
    TOGGLE = "toggle"
    CODE = "code"
    TABLE = "table"
    TABLE_ROW = "table_row"
    COLUMN_LIST = "column_list"
    COLUMN = "column"
    IMAGE = "image"
    FILE = "file"
    PDF = "pdf"
    EMBED = "embed"
    VIDEO = "video"
    BOOKMARK = "bookmark"
    LINK_PREVIEW = "link_preview"
    DIVIDER = "divider"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> BlockType:
        """Return the member for *value*, or :attr:`UNKNOWN`."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class Annotation(str, Enum):
    """Inline styles a rich-text run may carry."""

    BOLD = "bold"
    ITALIC = "italic"
    STRIKETHROUGH = "strikethrough"
    UNDERLINE = "underline"
    CODE = "code"


class SyncStatus(str, Enum):
    """Per-page sync state stored on the mapping row."""

    NEVER_SYNCED = "never_synced"
    """The page is known but has never been written to the target."""

    SYNCED = "synced"
    """The target post reflects the source as of ``source_modified_at``."""

    NEEDS_UPDATE = "needs_update"
    """The source changed after the last successful sync."""

    SYNCING = "syncing"
    """A sync is in flight.  Never a stable rest state."""

    ERROR = "error"
    """The last attempt failed; ``last_error`` holds the reason."""


class SyncOutcome(str, Enum):
    """What a single ``sync_one`` call ended up doing."""

    SYNCED = "synced"
    """Content was converted and written to the target."""

    UNCHANGED = "unchanged"
    """Delta short-circuit: nothing changed since the last sync."""

    CONFLICT = "conflict"
    """Another process holds the per-page lock; nothing was written."""

    FAILED = "failed"
    """The attempt failed; the mapping row records the error."""


class BatchStatus(str, Enum):
    """Lifecycle states of a batch."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (BatchStatus.COMPLETED, BatchStatus.CANCELLED)


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------

def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp from the Notion API into an aware datetime.

    Returns ``None`` for missing or unparseable values.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Source content
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RichTextRun:
    """A contiguous span of text sharing one set of annotations.

    Attributes
    ----------
    content:
        The raw (unescaped) text.
    annotations:
        Inline styles applied to the whole run.
    color:
        Notion colour name (``"default"``, ``"red"``, ``"blue_background"``...).
    link:
        Target URL, if the run is a hyperlink.
    """

    content: str
    annotations: frozenset[Annotation] = frozenset()
    color: str = "default"
    link: str | None = None

    @classmethod
    def from_api(cls, segment: dict[str, Any]) -> RichTextRun:
        """Build a run from a Notion ``rich_text`` array element.

        ``text``, ``mention`` and ``equation`` segments all yield their
        display text through ``plain_text``.
        """
        seg_type = segment.get("type", "text")
        content = segment.get("plain_text")
        if content is None:
            if seg_type == "text":
                content = segment.get("text", {}).get("content", "")
            elif seg_type == "equation":
                content = segment.get("equation", {}).get("expression", "")
            else:
                content = ""

        raw_ann = segment.get("annotations") or {}
        annotations = frozenset(a for a in Annotation if raw_ann.get(a.value))

        link = segment.get("href")
        if link is None and seg_type == "text":
            link_obj = segment.get("text", {}).get("link")
            if isinstance(link_obj, dict):
                link = link_obj.get("url")

        return cls(
            content=content,
            annotations=annotations,
            color=raw_ann.get("color", "default") or "default",
            link=link,
        )

    @classmethod
    def list_from_api(cls, segments: list[dict[str, Any]] | None) -> list[RichTextRun]:
        return [cls.from_api(seg) for seg in segments or []]


@dataclass(frozen=True)
class SourceBlock:
    """One node of the source block tree.

    Attributes
    ----------
    id:
        Opaque block id.
    type:
        The recognised block type, or :attr:`BlockType.UNKNOWN`.
    payload:
        The type-specific dict from the API (``block[block["type"]]``).
    has_children:
        Whether the source reports nested children.
    children:
        Nested blocks in source order.  ``None`` means the children have
        not been fetched yet.
    raw_type:
        The type tag exactly as the API returned it.
    """

    id: str
    type: BlockType
    payload: dict[str, Any] = field(default_factory=dict)
    has_children: bool = False
    children: tuple[SourceBlock, ...] | None = None
    raw_type: str = ""

    @classmethod
    def from_api(cls, block: dict[str, Any]) -> SourceBlock:
        raw_type = block.get("type") or ""
        payload = block.get(raw_type)
        return cls(
            id=block.get("id", ""),
            type=BlockType.parse(raw_type),
            payload=payload if isinstance(payload, dict) else {},
            has_children=bool(block.get("has_children", False)),
            raw_type=raw_type or "unknown",
        )

    @property
    def type_name(self) -> str:
        """The most specific type name available, for markers and logs."""
        if self.type is BlockType.UNKNOWN:
            return self.raw_type
        return self.type.value

    @property
    def rich_text(self) -> list[RichTextRun]:
        return RichTextRun.list_from_api(self.payload.get("rich_text"))


@dataclass
class PageSummary:
    """A page visible to the integration, as listed by the source API."""

    id: str
    title: str
    modified_at: datetime | None = None
    url: str | None = None
    needs_sync: bool | None = None


@dataclass
class SourcePage:
    """Page metadata needed by the orchestrator."""

    id: str
    title: str
    modified_at: datetime | None = None
    archived: bool = False


# ---------------------------------------------------------------------------
# Conversion warnings
# ---------------------------------------------------------------------------

@dataclass
class ConversionWarning:
    """A non-fatal issue encountered during block conversion.

    Warnings are accumulated by the pipeline and surfaced on
    :class:`SyncResult` so callers can inspect them after the sync.

    Attributes
    ----------
    code:
        A machine-readable warning code (e.g. ``"UNSUPPORTED_BLOCK"``).
    message:
        A human-readable description of the issue.
    context:
        Arbitrary structured data for diagnostics.
    """

    code: str
    message: str
    context: dict = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Sync state
# ---------------------------------------------------------------------------

@dataclass
class SyncMapping:
    """Snapshot of one row of the mapping store."""

    source_id: str
    target_id: str | None = None
    source_title: str = ""
    source_modified_at: datetime | None = None
    target_modified_at: datetime | None = None
    status: SyncStatus = SyncStatus.NEVER_SYNCED
    last_attempt_at: datetime | None = None
    last_error: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class SyncResult:
    """Outcome of syncing one source page.

    Attributes
    ----------
    source_id:
        Normalised id of the page.
    success:
        ``True`` for :attr:`SyncOutcome.SYNCED` and
        :attr:`SyncOutcome.UNCHANGED`.
    target_id:
        The target post id, when one exists.
    error:
        The failure reason for unsuccessful outcomes.
    outcome:
        What the call actually did.
    created:
        ``True`` when this call created the target post.
    warnings:
        Conversion warnings for the page.
    """

    source_id: str
    success: bool
    target_id: str | None = None
    error: str | None = None
    outcome: SyncOutcome = SyncOutcome.SYNCED
    created: bool = False
    warnings: list[ConversionWarning] = field(default_factory=list)


@dataclass
class BatchProgress:
    """Point-in-time view of a batch.

    ``completed + failed <= total`` at every observation and the counts
    never decrease.
    """

    batch_id: str
    status: BatchStatus
    total: int
    completed: int = 0
    failed: int = 0
    chunk_size: int = 10
    started_at: datetime | None = None
    completed_at: datetime | None = None
    results: dict[str, SyncResult] = field(default_factory=dict)

    @property
    def completed_count(self) -> int:
        return self.completed

    @property
    def failed_count(self) -> int:
        return self.failed

    @property
    def processed(self) -> int:
        return self.completed + self.failed

    @property
    def percentage(self) -> float:
        if self.total == 0:
            return 100.0
        return round(self.processed / self.total * 100, 2)
