"""Collaborator contracts used by the sync core.

The orchestrator and the batch processor only ever talk to these
protocols.  :class:`~notionpress.sync.fetcher.NotionContentSource` and
:class:`~notionpress.sync.publisher.WordPressPostTarget` are the shipped
implementations; tests substitute doubles.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from notionpress.models import PageSummary, SourceBlock, SourcePage


@runtime_checkable
class ContentSource(Protocol):
    """Read side: the document API pages are imported from.

    Every method raises :class:`~notionpress.errors.NotionpressFetchError`
    on failure.
    """

    def list_accessible_pages(self) -> list[PageSummary]:
        """Pages visible to the integration."""
        ...

    def fetch_page(self, page_id: str) -> SourcePage:
        """Metadata (title, last modification) of one page."""
        ...

    def fetch_blocks(
        self, block_id: str, cursor: str | None = None,
    ) -> tuple[list[SourceBlock], str | None]:
        """One page (up to 100) of children and the cursor of the next one."""
        ...

    def fetch_children(self, block_id: str) -> Sequence[SourceBlock]:
        """All direct children of a block, in order."""
        ...


@runtime_checkable
class PostTarget(Protocol):
    """Write side: the publishing system posts are written to.

    Both methods raise :class:`~notionpress.errors.NotionpressUpsertError`
    when the target rejects the write.
    """

    def create_post(self, markup: str, title: str) -> str:
        """Create a post and return its id."""
        ...

    def update_post(self, target_id: str, markup: str, title: str) -> None:
        """Replace the title and content of an existing post."""
        ...
