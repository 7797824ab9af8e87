"""Built-in block converters.

Each handler renders one :class:`SourceBlock` into Gutenberg block markup
(``<!-- wp:name -->...<!-- /wp:name -->``).  Handlers are pure functions
of ``(block, context)``: rich text goes through ``context.format`` and
nested blocks through ``context.convert_children``.

List items render a single ``wp:list-item``; the pipeline groups
consecutive items into the surrounding ``wp:list`` container.
"""

from __future__ import annotations

import json
import re
from typing import Any
from urllib.parse import urlparse

from notionpress.errors import NotionpressConversionError
from notionpress.models import BlockType, RichTextRun, SourceBlock

from .pipeline import ConversionContext
from .registry import FALLBACK_PRIORITY, Converter
from .rich_text import NOTION_COLORS, color_class, html_escape, plain_text, safe_url

# Notion language names to Prism/Gutenberg language slugs.
CODE_LANGUAGES: dict[str, str] = {
    "abap": "abap",
    "arduino": "arduino",
    "bash": "bash",
    "basic": "basic",
    "c": "c",
    "clojure": "clojure",
    "coffeescript": "coffeescript",
    "c++": "cpp",
    "c#": "csharp",
    "css": "css",
    "dart": "dart",
    "diff": "diff",
    "docker": "docker",
    "elixir": "elixir",
    "elm": "elm",
    "erlang": "erlang",
    "flow": "flow",
    "fortran": "fortran",
    "f#": "fsharp",
    "gherkin": "gherkin",
    "glsl": "glsl",
    "go": "go",
    "graphql": "graphql",
    "groovy": "groovy",
    "haskell": "haskell",
    "html": "markup",
    "java": "java",
    "javascript": "javascript",
    "json": "json",
    "julia": "julia",
    "kotlin": "kotlin",
    "latex": "latex",
    "less": "less",
    "lisp": "lisp",
    "livescript": "livescript",
    "lua": "lua",
    "makefile": "makefile",
    "markdown": "markdown",
    "markup": "markup",
    "matlab": "matlab",
    "mermaid": "mermaid",
    "nix": "nix",
    "objective-c": "objectivec",
    "ocaml": "ocaml",
    "pascal": "pascal",
    "perl": "perl",
    "php": "php",
    "plain text": "plaintext",
    "powershell": "powershell",
    "prolog": "prolog",
    "protobuf": "protobuf",
    "python": "python",
    "r": "r",
    "reason": "reason",
    "ruby": "ruby",
    "rust": "rust",
    "sass": "sass",
    "scala": "scala",
    "scheme": "scheme",
    "scss": "scss",
    "shell": "shell",
    "sql": "sql",
    "swift": "swift",
    "typescript": "typescript",
    "vb.net": "vbnet",
    "verilog": "verilog",
    "vhdl": "vhdl",
    "visual basic": "vbnet",
    "webassembly": "wasm",
    "xml": "markup",
    "yaml": "yaml",
    "java/c/c++/c#": "clike",
}

# Hosts WordPress can embed through oEmbed.
EMBED_PROVIDERS: dict[str, str] = {
    "youtube.com": "youtube",
    "youtu.be": "youtube",
    "vimeo.com": "vimeo",
    "twitter.com": "twitter",
    "x.com": "twitter",
    "instagram.com": "instagram",
    "spotify.com": "spotify",
    "soundcloud.com": "soundcloud",
}

_VIDEO_PROVIDERS = frozenset({"youtube", "vimeo"})

_MARKER_UNSAFE_RE = re.compile(r"[^A-Za-z0-9_.:-]")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _wrap(name: str, inner: str, attrs: dict[str, Any] | None = None) -> str:
    """Wrap *inner* in the ``wp:name`` block delimiters."""
    attr_json = f" {json.dumps(attrs, separators=(',', ':'))}" if attrs else ""
    return f"<!-- wp:{name}{attr_json} -->\n{inner}\n<!-- /wp:{name} -->\n\n"


def _paragraph(inner: str, css_class: str | None = None) -> str:
    if css_class:
        return _wrap(
            "paragraph", f'<p class="{css_class}">{inner}</p>', {"className": css_class},
        )
    return _wrap("paragraph", f"<p>{inner}</p>")


def _caption(block: SourceBlock, ctx: ConversionContext) -> str:
    return ctx.format(RichTextRun.list_from_api(block.payload.get("caption")))


def _media_url(payload: dict[str, Any]) -> str | None:
    """URL of a Notion file object (``external`` or Notion-hosted ``file``)."""
    kind = payload.get("type")
    if kind in ("external", "file", "file_upload"):
        inner = payload.get(kind) or {}
        if isinstance(inner, dict) and inner.get("url"):
            return inner["url"]
    return payload.get("url") or None


def _provider(url: str) -> str | None:
    host = (urlparse(url).hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    for domain, provider in EMBED_PROVIDERS.items():
        if host == domain or host.endswith("." + domain):
            return provider
    return None


def _url_title(url: str) -> str:
    """Readable title for a bare link: the last path segment, or the host."""
    parsed = urlparse(url)
    path = parsed.path.strip("/")
    if path:
        segment = path.rsplit("/", 1)[-1]
        segment = re.sub(r"\.[^.]+$", "", segment)
        title = segment.replace("-", " ").replace("_", " ").strip()
        if title:
            return title.title()
    return parsed.hostname or "Link"


def _color_classes(color: str | None, prefix: str) -> str:
    base = (color or "default").replace("_background", "")
    if base not in NOTION_COLORS:
        base = "default"
    return f"{prefix} {prefix}-{base}"


# ---------------------------------------------------------------------------
# Text blocks
# ---------------------------------------------------------------------------

def convert_paragraph(block: SourceBlock, ctx: ConversionContext) -> str:
    text = ctx.format(block.rich_text)
    css = color_class(block.payload.get("color"))
    return _paragraph(text, css) + ctx.convert_children(block)


def convert_heading(block: SourceBlock, ctx: ConversionContext) -> str:
    level = int(block.type.value[-1])
    text = ctx.format(block.rich_text)
    attrs = {"level": level} if level != 2 else None
    heading = _wrap(
        "heading", f'<h{level} class="wp-block-heading">{text}</h{level}>', attrs,
    )
    # Toggleable headings keep their children visible below the heading.
    return heading + ctx.convert_children(block)


def convert_list_item(block: SourceBlock, ctx: ConversionContext) -> str:
    text = ctx.format(block.rich_text)
    nested = ctx.convert_children(block).strip("\n")
    if nested:
        nested = "\n" + nested
    return _wrap("list-item", f"<li>{text}{nested}</li>")


def convert_quote(block: SourceBlock, ctx: ConversionContext) -> str:
    inner = _paragraph(ctx.format(block.rich_text)) + ctx.convert_children(block)
    return _wrap(
        "quote", f'<blockquote class="wp-block-quote">{inner.strip()}</blockquote>',
    )


def convert_callout(block: SourceBlock, ctx: ConversionContext) -> str:
    icon = block.payload.get("icon") or {}
    icon_html = ""
    if icon.get("type") == "emoji" and icon.get("emoji"):
        icon_html = f'<span class="notionpress-callout-icon">{html_escape(icon["emoji"])}</span>'
    else:
        icon_url = safe_url(_media_url(icon)) if icon else None
        if icon_url:
            icon_html = (
                f'<img class="notionpress-callout-icon" src="{html_escape(icon_url)}" alt=""/>'
            )

    css = _color_classes(block.payload.get("color"), "notionpress-callout")
    body = _paragraph(ctx.format(block.rich_text)) + ctx.convert_children(block)
    return _wrap(
        "group",
        f'<div class="wp-block-group {css}">{icon_html}{body.strip()}</div>',
        {"className": css},
    )


def convert_toggle(block: SourceBlock, ctx: ConversionContext) -> str:
    summary = ctx.format(block.rich_text)
    body = ctx.convert_children(block).strip()
    if body:
        body = "\n" + body + "\n"
    return _wrap(
        "details",
        f'<details class="wp-block-details"><summary>{summary}</summary>{body}</details>',
    )


def convert_code(block: SourceBlock, ctx: ConversionContext) -> str:
    code = plain_text(block.rich_text)
    language = CODE_LANGUAGES.get(str(block.payload.get("language", "")).lower(), "plaintext")
    attrs = {"language": language} if language != "plaintext" else None
    out = _wrap(
        "code",
        f'<pre class="wp-block-code"><code>{html_escape(code)}</code></pre>',
        attrs,
    )
    caption = _caption(block, ctx)
    if caption:
        out += _paragraph(f"<em>{caption}</em>", "notionpress-code-caption")
    return out


# ---------------------------------------------------------------------------
# Structure
# ---------------------------------------------------------------------------

def convert_table(block: SourceBlock, ctx: ConversionContext) -> str:
    has_column_header = bool(block.payload.get("has_column_header"))
    has_row_header = bool(block.payload.get("has_row_header"))
    rows = [c for c in ctx.children(block) if c.type is BlockType.TABLE_ROW]
    if not rows:
        return _paragraph("<em>[Table with no content]</em>")

    def render_row(row: SourceBlock, header: bool) -> str:
        cells = []
        for index, cell in enumerate(row.payload.get("cells") or []):
            tag = "th" if header or (has_row_header and index == 0) else "td"
            cells.append(f"<{tag}>{ctx.format(RichTextRun.list_from_api(cell))}</{tag}>")
        return "<tr>" + "".join(cells) + "</tr>"

    head = ""
    body_rows = rows
    if has_column_header:
        head = f"<thead>{render_row(rows[0], header=True)}</thead>"
        body_rows = rows[1:]
    body = "".join(render_row(row, header=False) for row in body_rows)
    tbody = f"<tbody>{body}</tbody>" if body else ""
    return _wrap("table", f'<figure class="wp-block-table"><table>{head}{tbody}</table></figure>')


def convert_column_list(block: SourceBlock, ctx: ConversionContext) -> str:
    columns = ctx.convert_children(block).strip()
    return _wrap("columns", f'<div class="wp-block-columns">{columns}</div>')


def convert_column(block: SourceBlock, ctx: ConversionContext) -> str:
    body = ctx.convert_children(block).strip()
    return _wrap("column", f'<div class="wp-block-column">{body}</div>')


def convert_divider(block: SourceBlock, ctx: ConversionContext) -> str:
    return _wrap("separator", '<hr class="wp-block-separator has-alpha-channel-opacity"/>')


# ---------------------------------------------------------------------------
# Media and links
# ---------------------------------------------------------------------------

def convert_image(block: SourceBlock, ctx: ConversionContext) -> str:
    url = safe_url(_media_url(block.payload))
    if not url:
        raise NotionpressConversionError(
            message=f"Image block {block.id} has no usable URL",
            context={"block_id": block.id, "block_type": block.type_name},
        )
    caption = _caption(block, ctx)
    alt = html_escape(plain_text(RichTextRun.list_from_api(block.payload.get("caption"))))
    figcaption = f'<figcaption class="wp-element-caption">{caption}</figcaption>' if caption else ""
    return _wrap(
        "image",
        f'<figure class="wp-block-image"><img src="{html_escape(url)}" alt="{alt}"/>{figcaption}</figure>',
    )


def convert_file(block: SourceBlock, ctx: ConversionContext) -> str:
    url = safe_url(_media_url(block.payload))
    if not url:
        raise NotionpressConversionError(
            message=f"{block.type_name} block {block.id} has no usable URL",
            context={"block_id": block.id, "block_type": block.type_name},
        )
    name = (
        plain_text(RichTextRun.list_from_api(block.payload.get("caption"))).strip()
        or block.payload.get("name")
        or urlparse(url).path.rsplit("/", 1)[-1]
        or "Download"
    )
    href = html_escape(url)
    attrs: dict[str, Any] = {"href": url}
    preview = ""
    if block.type is BlockType.PDF:
        attrs["displayPreview"] = True
        preview = (
            f'<object class="wp-block-file__embed" data="{href}" type="application/pdf" '
            f'style="width:100%;height:600px" aria-label="{html_escape(name)}"></object>'
        )
    return _wrap(
        "file",
        f'<div class="wp-block-file">{preview}<a href="{href}">{html_escape(name)}</a>'
        f'<a href="{href}" class="wp-block-file__button wp-element-button" download>Download</a></div>',
        attrs,
    )


def convert_embed(block: SourceBlock, ctx: ConversionContext) -> str:
    raw_url = _media_url(block.payload)
    if not raw_url:
        raise NotionpressConversionError(
            message=f"{block.type_name} block {block.id} has no URL",
            context={"block_id": block.id, "block_type": block.type_name},
        )

    scheme = urlparse(raw_url).scheme.lower()
    if scheme not in ("http", "https"):
        return _paragraph("<em>Invalid embed URL (unsupported scheme)</em>")

    url = html_escape(raw_url)
    provider = _provider(raw_url)
    if provider is not None:
        kind = "video" if provider in _VIDEO_PROVIDERS else "rich"
        classes = f"wp-block-embed is-type-{kind} is-provider-{provider} wp-block-embed-{provider}"
        attrs: dict[str, Any] = {
            "url": raw_url,
            "type": kind,
            "providerNameSlug": provider,
            "responsive": True,
        }
        if kind == "video":
            attrs["className"] = "wp-embed-aspect-16-9 wp-has-aspect-ratio"
            classes += " wp-embed-aspect-16-9 wp-has-aspect-ratio"
        return _wrap(
            "embed",
            f'<figure class="{classes}"><div class="wp-block-embed__wrapper">\n{url}\n</div></figure>',
            attrs,
        )

    if block.type is BlockType.VIDEO and block.payload.get("type") in ("file", "file_upload"):
        return _wrap(
            "video", f'<figure class="wp-block-video"><video controls src="{url}"></video></figure>',
        )

    return _wrap(
        "html",
        f'<div class="notionpress-embed"><iframe src="{url}" width="100%" height="500" '
        'frameborder="0" allowfullscreen '
        'sandbox="allow-scripts allow-same-origin allow-presentation"></iframe></div>',
    )


def convert_bookmark(block: SourceBlock, ctx: ConversionContext) -> str:
    raw_url = safe_url(block.payload.get("url"))
    if not raw_url:
        raise NotionpressConversionError(
            message=f"{block.type_name} block {block.id} has no usable URL",
            context={"block_id": block.id, "block_type": block.type_name},
        )
    caption = _caption(block, ctx)
    title = caption or html_escape(_url_title(raw_url))
    url = html_escape(raw_url)
    return _wrap(
        "html",
        f'<div class="notionpress-bookmark"><a href="{url}" target="_blank" '
        f'rel="noopener noreferrer" class="notionpress-bookmark-link">'
        f'<div class="notionpress-bookmark-title">{title}</div>'
        f'<div class="notionpress-bookmark-url">{url}</div></a></div>',
    )


# ---------------------------------------------------------------------------
# Fallback
# ---------------------------------------------------------------------------

def _marker_value(value: str) -> str:
    cleaned = _MARKER_UNSAFE_RE.sub("", value)
    while "--" in cleaned:
        cleaned = cleaned.replace("--", "-")
    return cleaned or "unknown"


def unsupported_marker(block: SourceBlock, reason: str | None = None) -> str:
    """HTML comment identifying a block whose content could not be converted."""
    extra = f' reason="{_marker_value(reason)}"' if reason else ""
    return (
        f'<!-- notionpress:unsupported type="{_marker_value(block.type_name)}" '
        f'id="{_marker_value(block.id)}"{extra} -->'
    )


def recoverable_text(block: SourceBlock) -> str:
    """Best-effort plain text of any block, for the fallback rendering."""
    payload = block.payload
    for key in ("rich_text", "title", "caption", "text"):
        value = payload.get(key)
        if isinstance(value, list):
            text = plain_text(RichTextRun.list_from_api(value)).strip()
            if text:
                return text
        elif isinstance(value, str) and value.strip():
            return value.strip()
    url = payload.get("url")
    return url.strip() if isinstance(url, str) else ""


def convert_fallback(block: SourceBlock, ctx: ConversionContext) -> str:
    """Render a structurally valid marker, plus any recoverable text."""
    out = unsupported_marker(block, ctx.fallback_reason) + "\n"
    text = recoverable_text(block)
    if text:
        out += _paragraph(html_escape(text), "notionpress-unsupported")
    else:
        out += "\n"
    return out


# ---------------------------------------------------------------------------
# Default set
# ---------------------------------------------------------------------------

FALLBACK = Converter(
    name="fallback",
    block_types=None,
    handler=convert_fallback,
    priority=FALLBACK_PRIORITY,
)


def default_converters() -> list[Converter]:
    """Return the built-in converters, fallback included."""
    headings = frozenset({
        BlockType.HEADING_1,
        BlockType.HEADING_2,
        BlockType.HEADING_3,
        BlockType.HEADING_4,
        BlockType.HEADING_5,
        BlockType.HEADING_6,
    })
    return [
        Converter("paragraph", frozenset({BlockType.PARAGRAPH}), convert_paragraph, 100, True),
        Converter("heading", headings, convert_heading, 100, True),
        Converter(
            "list_item",
            frozenset({BlockType.BULLETED_LIST_ITEM, BlockType.NUMBERED_LIST_ITEM}),
            convert_list_item,
            100,
            True,
        ),
        Converter("quote", frozenset({BlockType.QUOTE}), convert_quote, 100, True),
        Converter("callout", frozenset({BlockType.CALLOUT}), convert_callout, 100, True),
        Converter("toggle", frozenset({BlockType.TOGGLE}), convert_toggle, 100, True),
        Converter("code", frozenset({BlockType.CODE}), convert_code, 100),
        Converter("table", frozenset({BlockType.TABLE}), convert_table, 100, True),
        Converter("column_list", frozenset({BlockType.COLUMN_LIST}), convert_column_list, 100, True),
        Converter("column", frozenset({BlockType.COLUMN}), convert_column, 100, True),
        Converter("image", frozenset({BlockType.IMAGE}), convert_image, 50),
        Converter("file", frozenset({BlockType.FILE, BlockType.PDF}), convert_file, 50),
        Converter("embed", frozenset({BlockType.EMBED, BlockType.VIDEO}), convert_embed, 50),
        Converter(
            "bookmark",
            frozenset({BlockType.BOOKMARK, BlockType.LINK_PREVIEW}),
            convert_bookmark,
            50,
        ),
        Converter("divider", frozenset({BlockType.DIVIDER}), convert_divider, 10),
        FALLBACK,
    ]
