"""Helpers for Notion page ids.

Notion accepts page ids both as 32 hex characters and in the dashed UUID
form.  Everything stored or compared by notionpress uses the normalised
(dashless, lower-case) form.
"""

from __future__ import annotations

import re

MAX_PAGE_ID_LENGTH = 50

_VALID_ID_RE = re.compile(r"[A-Za-z0-9-]+")

# Relative links inside a workspace: ``/75424b1c35d0476b836cbb0e776f3f7c``
_RELATIVE_LINK_RE = re.compile(r"^/([a-f0-9]{32})(?:[/?#].*)?$", re.IGNORECASE)

# Absolute links, optionally with a title slug or dashes.
_NOTION_URL_RE = re.compile(
    r"notion\.so/(?:[^/?#]*/)?(?:[^/?#]*-)?([a-f0-9]{32}|[a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12})",
    re.IGNORECASE,
)


def normalize_page_id(page_id: str) -> str:
    """Strip surrounding whitespace and dashes, and lower-case *page_id*."""
    return page_id.strip().replace("-", "").lower()


def validate_page_id(page_id: str) -> str | None:
    """Return an error message if *page_id* is malformed, else ``None``.

    A valid id is non-empty, at most 50 characters long and made only of
    ASCII letters, digits and dashes.
    """
    if not page_id or not page_id.strip():
        return "Page ID cannot be empty"
    if len(page_id) > MAX_PAGE_ID_LENGTH:
        return f"Page ID exceeds maximum length of {MAX_PAGE_ID_LENGTH} characters"
    if not _VALID_ID_RE.fullmatch(page_id):
        return "Page ID contains invalid characters"
    return None


def extract_notion_page_id(url: str) -> str | None:
    """Return the normalised page id a Notion link points at, or ``None``.

    Examples
    --------
    >>> extract_notion_page_id("/75424b1c35d0476b836cbb0e776f3f7c")
    '75424b1c35d0476b836cbb0e776f3f7c'
    >>> extract_notion_page_id("https://example.com") is None
    True
    """
    match = _RELATIVE_LINK_RE.match(url)
    if match is None:
        match = _NOTION_URL_RE.search(url)
    if match is None:
        return None
    return normalize_page_id(match.group(1))
