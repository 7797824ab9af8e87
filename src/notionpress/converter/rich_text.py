"""Inline rendering: rich-text runs to Gutenberg-compatible HTML.

Each run is escaped exactly once and then wrapped in its annotation tags.
Wrapping always happens in the same order, outermost first::

    <a href> -> colour <mark> -> <code> -> <strong> -> <em> -> <s> -> <u>

so that the same styles nest identically no matter how the source listed
them.  Line breaks inside a run become ``<br>``.
"""

from __future__ import annotations

import html
from collections.abc import Callable, Iterable
from urllib.parse import urlparse

from notionpress.models import Annotation, RichTextRun

LinkResolver = Callable[[str], str]

# Notion colour names.  ``<name>_background`` variants map to the
# background class of the same base colour.
NOTION_COLORS: frozenset[str] = frozenset({
    "gray",
    "brown",
    "orange",
    "yellow",
    "green",
    "blue",
    "purple",
    "pink",
    "red",
})

# Innermost first.
_ANNOTATION_TAGS: tuple[tuple[Annotation, str], ...] = (
    (Annotation.UNDERLINE, "u"),
    (Annotation.STRIKETHROUGH, "s"),
    (Annotation.ITALIC, "em"),
    (Annotation.BOLD, "strong"),
    (Annotation.CODE, "code"),
)

_SAFE_SCHEMES = frozenset({"http", "https", "mailto", "tel"})


def html_escape(text: str) -> str:
    """Escape ``&``, ``<``, ``>`` and both quote characters."""
    return html.escape(text, quote=True)


def safe_url(url: str | None) -> str | None:
    """Return *url* if it is safe to place in an ``href``/``src``, else ``None``.

    Relative URLs and ``http``, ``https``, ``mailto`` and ``tel`` schemes
    are accepted; ``javascript:``, ``data:`` and friends are refused.
    """
    if not url:
        return None
    url = url.strip()
    scheme = urlparse(url).scheme.lower()
    if scheme and scheme not in _SAFE_SCHEMES:
        return None
    return url


def color_class(color: str | None) -> str | None:
    """Map a Notion colour name to a Gutenberg colour class.

    Returns ``None`` for ``"default"`` and for unknown names.

    Examples
    --------
    >>> color_class("red")
    'has-red-color'
    >>> color_class("blue_background")
    'has-blue-background-color'
    >>> color_class("chartreuse") is None
    True
    """
    if not color or color == "default":
        return None
    if color.endswith("_background"):
        base = color[: -len("_background")]
        if base in NOTION_COLORS:
            return f"has-{base}-background-color"
        return None
    if color in NOTION_COLORS:
        return f"has-{color}-color"
    return None


def format_run(run: RichTextRun, link_resolver: LinkResolver | None = None) -> str:
    """Render a single run."""
    out = html_escape(run.content).replace("\r\n", "\n").replace("\n", "<br>")
    if not out:
        return ""

    for annotation, tag in _ANNOTATION_TAGS:
        if annotation in run.annotations:
            out = f"<{tag}>{out}</{tag}>"

    css = color_class(run.color)
    if css is not None:
        out = f'<mark class="has-inline-color {css}">{out}</mark>'

    href = run.link
    if href and link_resolver is not None:
        href = link_resolver(href)
    href = safe_url(href)
    if href:
        out = f'<a href="{html_escape(href)}">{out}</a>'

    return out


def format_rich_text(
    runs: Iterable[RichTextRun],
    link_resolver: LinkResolver | None = None,
) -> str:
    """Render a sequence of runs to inline HTML.

    Parameters
    ----------
    runs:
        Rich-text runs in source order.
    link_resolver:
        Optional callable applied to every link target before it is
        written, used to point links between synced pages at their
        WordPress posts.

    Returns
    -------
    str
        The concatenated markup; ``""`` for an empty sequence.
    """
    return "".join(format_run(run, link_resolver) for run in runs)


def plain_text(runs: Iterable[RichTextRun]) -> str:
    """Concatenate the unformatted content of *runs*."""
    return "".join(run.content for run in runs)
