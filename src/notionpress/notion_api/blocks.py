"""Block API wrappers for the Notion API."""

from __future__ import annotations

from typing import Any

from .transport import NotionTransport


class BlockAPI:
    """Wrapper for the Notion ``/blocks/{id}/children`` endpoint.

    Parameters
    ----------
    transport:
        A configured :class:`NotionTransport` instance.
    """

    def __init__(self, transport: NotionTransport) -> None:
        self._transport = transport

    def list_children(
        self, block_id: str, cursor: str | None = None,
    ) -> tuple[list[dict[str, Any]], str | None]:
        """Fetch one page (up to 100) of child blocks.

        Parameters
        ----------
        block_id:
            Parent page or block id.
        cursor:
            ``next_cursor`` of the previous call, or ``None`` for the first
            page.

        Returns
        -------
        tuple
            ``(blocks, next_cursor)``; ``next_cursor`` is ``None`` on the
            last page.
        """
        data = self._transport.list_page(f"/blocks/{block_id}/children", cursor)
        next_cursor = data.get("next_cursor") if data.get("has_more") else None
        return data.get("results", []), next_cursor

