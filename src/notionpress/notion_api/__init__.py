"""notionpress.notion_api -- Notion API transport and endpoint wrappers.

This sub-package provides:

* :mod:`.rate_limit` -- Thread-safe token bucket.
* :mod:`.retries` -- Retry decision logic and exponential backoff.
* :mod:`.transport` -- HTTP transport with auth, retries, and rate limiting.
* :mod:`.pages` -- Page and search wrappers.
* :mod:`.blocks` -- Block children wrappers.
"""

from __future__ import annotations

from .blocks import BlockAPI
from .pages import PageAPI, extract_title
from .rate_limit import TokenBucket
from .retries import compute_backoff, should_retry
from .transport import HttpTransport, NotionTransport

__all__ = [
    "BlockAPI",
    "HttpTransport",
    "NotionTransport",
    "PageAPI",
    "TokenBucket",
    "compute_backoff",
    "extract_title",
    "should_retry",
]
