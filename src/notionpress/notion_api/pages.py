"""Page API wrappers for the Notion API.

Thin wrappers around ``/pages`` and ``/search``; every HTTP concern (auth,
retries, rate limiting) is delegated to :class:`NotionTransport`.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from .transport import NotionTransport


class PageAPI:
    """Wrapper for the Notion Pages and Search APIs.

    Parameters
    ----------
    transport:
        A configured :class:`NotionTransport` instance.
    """

    def __init__(self, transport: NotionTransport) -> None:
        self._transport = transport

    def retrieve(self, page_id: str) -> dict[str, Any]:
        """Retrieve a page object by its ID (with or without hyphens)."""
        return self._transport.request("GET", f"/pages/{page_id}")

    def search(
        self,
        query: str | None = None,
        max_pages: int | None = None,
    ) -> Iterator[dict[str, Any]]:
        """Yield every page shared with the integration.

        Parameters
        ----------
        query:
            Optional title filter passed to Notion search.
        max_pages:
            Cap on the number of 100-result responses read.

        Yields
        ------
        dict
            Page objects, most recently edited first.
        """
        body: dict[str, Any] = {
            "filter": {"property": "object", "value": "page"},
            "sort": {"direction": "descending", "timestamp": "last_edited_time"},
        }
        if query:
            body["query"] = query
        yield from self._transport.paginate(
            "/search", method="POST", json=body, max_pages=max_pages,
        )


def extract_title(page: dict[str, Any]) -> str:
    """Return the plain-text title of a Notion page object.

    Pages under a workspace or another page carry a ``title`` property;
    database rows name it freely, so the first property of type ``title``
    wins.  Returns ``"Untitled"`` when nothing is found.
    """
    for prop in (page.get("properties") or {}).values():
        if isinstance(prop, dict) and prop.get("type") == "title":
            text = "".join(seg.get("plain_text", "") for seg in prop.get("title") or [])
            if text.strip():
                return text.strip()
    return "Untitled"
