"""Post API wrappers for the WordPress REST API.

Posts are written under ``/wp/v2/{post_type}``.  WordPress accepts both
``POST`` and ``PUT`` for updates; ``POST`` is used for both operations so
that hosts which block ``PUT`` keep working.
"""

from __future__ import annotations

from typing import Any

from .transport import WordPressTransport


class PostAPI:
    """Wrapper for the WordPress posts collection.

    Parameters
    ----------
    transport:
        A configured :class:`WordPressTransport`.
    post_type:
        REST base of the collection (``posts``, ``pages`` or a custom type).
    """

    def __init__(self, transport: WordPressTransport, post_type: str = "posts") -> None:
        self._transport = transport
        self._base = f"/wp/v2/{post_type}"

    def create(
        self,
        title: str,
        content: str,
        status: str = "draft",
        meta: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Create a post and return the post object (``id``, ``link``...)."""
        body: dict[str, Any] = {"title": title, "content": content, "status": status}
        if meta:
            body["meta"] = meta
        return self._transport.request("POST", self._base, json=body)

    def update(
        self,
        post_id: str | int,
        title: str | None = None,
        content: str | None = None,
    ) -> dict[str, Any]:
        """Update the title and/or content of an existing post.

        The post status is left untouched so editorial decisions made in
        WordPress survive re-syncs.
        """
        body: dict[str, Any] = {}
        if title is not None:
            body["title"] = title
        if content is not None:
            body["content"] = content
        return self._transport.request("POST", f"{self._base}/{post_id}", json=body)
