"""WordPress implementation of :class:`~notionpress.sync.protocols.PostTarget`."""

from __future__ import annotations

from notionpress.config import NotionpressConfig
from notionpress.errors import NotionpressError, NotionpressUpsertError
from notionpress.observability import get_logger
from notionpress.wordpress_api import PostAPI

log = get_logger("notionpress.publisher")


class WordPressPostTarget:
    """Writes converted markup to WordPress posts.

    New posts get ``config.post_status`` (``draft`` by default); updates
    never touch the status.  Any transport error is re-raised as
    :class:`NotionpressUpsertError`.
    """

    def __init__(self, posts: PostAPI, config: NotionpressConfig) -> None:
        self._posts = posts
        self._config = config

    def create_post(self, markup: str, title: str) -> str:
        try:
            post = self._posts.create(title=title, content=markup, status=self._config.post_status)
        except NotionpressError as exc:
            raise NotionpressUpsertError(
                message=f"Creating post {title!r} failed: {exc.message}",
                context={"target_id": None, "operation": "create"},
                cause=exc,
            ) from exc

        post_id = post.get("id") if isinstance(post, dict) else None
        if post_id is None:
            raise NotionpressUpsertError(
                message="WordPress accepted the post but returned no id",
                context={"target_id": None, "operation": "create"},
            )
        log.info(
            "Post created",
            extra={"extra_fields": {"op": "create_post", "target_id": str(post_id)}},
        )
        return str(post_id)

    def update_post(self, target_id: str, markup: str, title: str) -> None:
        try:
            self._posts.update(target_id, title=title, content=markup)
        except NotionpressError as exc:
            raise NotionpressUpsertError(
                message=f"Updating post {target_id} failed: {exc.message}",
                context={"target_id": target_id, "operation": "update"},
                cause=exc,
            ) from exc
