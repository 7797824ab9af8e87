"""notionpress.wordpress_api -- WordPress REST transport and post wrappers."""

from __future__ import annotations

from .posts import PostAPI
from .transport import WordPressTransport

__all__ = [
    "PostAPI",
    "WordPressTransport",
]
