"""Tests for the built-in block converters.

Blocks are converted through the default pipeline so that every handler
sees a real ConversionContext.
"""

from __future__ import annotations

import pytest

from notionpress.converter.blocks import (
    CODE_LANGUAGES,
    recoverable_text,
    unsupported_marker,
)
from notionpress.models import BlockType, SourceBlock


def rt(content: str, **annotations) -> list[dict]:
    return [{"type": "text", "plain_text": content, "annotations": annotations}]


def make(block_type: BlockType, payload: dict, children=None, block_id: str = "b1") -> SourceBlock:
    return SourceBlock(
        id=block_id,
        type=block_type,
        payload=payload,
        has_children=bool(children),
        children=tuple(children) if children is not None else None,
        raw_type=block_type.value,
    )


def row(*cells: str) -> SourceBlock:
    return make(BlockType.TABLE_ROW, {"cells": [rt(c) for c in cells]}, block_id=f"r-{cells[0]}")


class TestTextBlocks:
    def test_paragraph_with_color(self, pipeline):
        markup = pipeline.convert_tree([make(BlockType.PARAGRAPH, {"rich_text": rt("x"), "color": "red"})])
        assert markup.startswith('<!-- wp:paragraph {"className":"has-red-color"} -->')
        assert '<p class="has-red-color">x</p>' in markup

    def test_heading_two_has_no_level_attr(self, pipeline):
        markup = pipeline.convert_tree([make(BlockType.HEADING_2, {"rich_text": rt("Title")})])
        assert markup == (
            '<!-- wp:heading -->\n<h2 class="wp-block-heading">Title</h2>\n<!-- /wp:heading -->\n\n'
        )

    @pytest.mark.parametrize("block_type,level", [
        (BlockType.HEADING_1, 1), (BlockType.HEADING_3, 3), (BlockType.HEADING_6, 6),
    ])
    def test_heading_levels(self, pipeline, block_type, level):
        markup = pipeline.convert_tree([make(block_type, {"rich_text": rt("T")})])
        assert f'<!-- wp:heading {{"level":{level}}} -->' in markup
        assert f"<h{level} " in markup

    def test_toggleable_heading_children_rendered(self, pipeline):
        heading = make(BlockType.HEADING_1, {"rich_text": rt("H"), "is_toggleable": True},
                       [make(BlockType.PARAGRAPH, {"rich_text": rt("body")}, block_id="c")])
        markup = pipeline.convert_tree([heading])
        assert markup.index("</h1>") < markup.index("body")

    def test_quote(self, pipeline):
        markup = pipeline.convert_tree([make(BlockType.QUOTE, {"rich_text": rt("wise", italic=True)})])
        assert markup.startswith("<!-- wp:quote -->")
        assert '<blockquote class="wp-block-quote"><!-- wp:paragraph -->' in markup
        assert "<em>wise</em>" in markup

    def test_callout_emoji_and_color(self, pipeline):
        callout = make(BlockType.CALLOUT, {
            "rich_text": rt("Heads up"),
            "icon": {"type": "emoji", "emoji": "💡"},
            "color": "yellow_background",
        })
        markup = pipeline.convert_tree([callout])
        assert '"className":"notionpress-callout notionpress-callout-yellow"' in markup
        assert '<span class="notionpress-callout-icon">💡</span>' in markup
        assert "Heads up" in markup

    def test_callout_external_icon(self, pipeline):
        callout = make(BlockType.CALLOUT, {
            "rich_text": rt("x"),
            "icon": {"type": "external", "external": {"url": "https://cdn.test/i.png"}},
        })
        assert 'src="https://cdn.test/i.png"' in pipeline.convert_tree([callout])

    def test_toggle(self, pipeline):
        toggle = make(BlockType.TOGGLE, {"rich_text": rt("More")},
                      [make(BlockType.PARAGRAPH, {"rich_text": rt("hidden")}, block_id="c")])
        markup = pipeline.convert_tree([toggle])
        assert markup.startswith("<!-- wp:details -->")
        assert "<summary>More</summary>" in markup
        assert markup.index("</summary>") < markup.index("hidden") < markup.index("</details>")


class TestCode:
    def test_language_mapped(self, pipeline):
        markup = pipeline.convert_tree([make(BlockType.CODE, {"rich_text": rt("x = 1"), "language": "Python"})])
        assert markup.startswith('<!-- wp:code {"language":"python"} -->')

    def test_plain_text_has_no_attrs(self, pipeline):
        markup = pipeline.convert_tree([make(BlockType.CODE, {"rich_text": rt("hi"), "language": "plain text"})])
        assert markup.startswith("<!-- wp:code -->")

    def test_unknown_language_falls_back_to_plaintext(self, pipeline):
        markup = pipeline.convert_tree([make(BlockType.CODE, {"rich_text": rt("hi"), "language": "brainfuck"})])
        assert markup.startswith("<!-- wp:code -->")

    def test_content_escaped_and_annotations_ignored(self, pipeline):
        markup = pipeline.convert_tree([make(BlockType.CODE, {"rich_text": rt("a < b", bold=True)})])
        assert "<code>a &lt; b</code>" in markup
        assert "<strong>" not in markup

    def test_caption(self, pipeline):
        markup = pipeline.convert_tree([make(BlockType.CODE, {"rich_text": rt("x"), "caption": rt("note")})])
        assert "notionpress-code-caption" in markup
        assert "<em>note</em>" in markup

    def test_aliases(self):
        assert CODE_LANGUAGES["c++"] == "cpp"
        assert CODE_LANGUAGES["html"] == "markup"


class TestStructure:
    def test_table_with_column_header(self, pipeline):
        table = make(BlockType.TABLE, {"has_column_header": True}, [row("Name", "Age"), row("Ann", "30")])
        markup = pipeline.convert_tree([table])
        assert "<thead><tr><th>Name</th><th>Age</th></tr></thead>" in markup
        assert "<tbody><tr><td>Ann</td><td>30</td></tr></tbody>" in markup

    def test_table_with_row_header(self, pipeline):
        table = make(BlockType.TABLE, {"has_row_header": True}, [row("Key", "v")])
        assert "<tr><th>Key</th><td>v</td></tr>" in pipeline.convert_tree([table])

    def test_empty_table(self, pipeline):
        markup = pipeline.convert_tree([make(BlockType.TABLE, {}, [])])
        assert "[Table with no content]" in markup

    def test_columns(self, pipeline):
        def col(cid: str, t: str) -> SourceBlock:
            inner = make(BlockType.PARAGRAPH, {"rich_text": rt(t)}, block_id=f"p{cid}")
            return make(BlockType.COLUMN, {}, [inner], block_id=cid)

        markup = pipeline.convert_tree([make(BlockType.COLUMN_LIST, {}, [col("c1", "left"), col("c2", "right")])])
        assert markup.startswith("<!-- wp:columns -->")
        assert markup.count('<div class="wp-block-column">') == 2
        assert markup.index("left") < markup.index("right")

    def test_divider(self, pipeline):
        assert "wp-block-separator" in pipeline.convert_tree([make(BlockType.DIVIDER, {})])


class TestMedia:
    def test_image_external_with_caption(self, pipeline):
        image = make(BlockType.IMAGE, {
            "type": "external", "external": {"url": "https://img.test/a.png"}, "caption": rt("A cat"),
        })
        markup = pipeline.convert_tree([image])
        assert '<img src="https://img.test/a.png" alt="A cat"/>' in markup
        assert '<figcaption class="wp-element-caption">A cat</figcaption>' in markup

    def test_image_notion_hosted(self, pipeline):
        image = make(BlockType.IMAGE, {"type": "file", "file": {"url": "https://s3.test/x.png?sig=1"}})
        assert 'src="https://s3.test/x.png?sig=1"' in pipeline.convert_tree([image])

    def test_image_without_url_falls_back(self, pipeline):
        out = pipeline.convert([make(BlockType.IMAGE, {"type": "external", "external": {}})])
        assert [w.code for w in out.warnings] == ["CONVERSION_FAILED"]
        assert "notionpress:unsupported" in out.markup

    def test_image_javascript_url_rejected(self, pipeline):
        image = make(BlockType.IMAGE, {"type": "external", "external": {"url": "javascript:alert(1)"}})
        out = pipeline.convert([image])
        assert "javascript:" not in out.markup.split("-->", 1)[1]

    def test_file_name_from_caption(self, pipeline):
        file_block = make(BlockType.FILE, {
            "type": "external", "external": {"url": "https://f.test/report.xlsx"}, "caption": rt("Q3 report"),
        })
        markup = pipeline.convert_tree([file_block])
        assert '<a href="https://f.test/report.xlsx">Q3 report</a>' in markup
        assert "download>Download</a>" in markup

    def test_file_name_from_path(self, pipeline):
        file_block = make(BlockType.FILE, {"type": "external", "external": {"url": "https://f.test/a/b.zip"}})
        assert ">b.zip</a>" in pipeline.convert_tree([file_block])

    def test_pdf_preview(self, pipeline):
        pdf = make(BlockType.PDF, {"type": "external", "external": {"url": "https://f.test/doc.pdf"}})
        markup = pipeline.convert_tree([pdf])
        assert '"displayPreview":true' in markup
        assert 'type="application/pdf"' in markup

    def test_youtube_embed(self, pipeline):
        video = make(BlockType.VIDEO, {"type": "external", "external": {"url": "https://www.youtube.com/watch?v=abc"}})
        markup = pipeline.convert_tree([video])
        assert markup.startswith("<!-- wp:embed ")
        assert '"providerNameSlug":"youtube"' in markup
        assert "is-type-video" in markup

    def test_rich_provider_embed(self, pipeline):
        embed = make(BlockType.EMBED, {"url": "https://twitter.com/x/status/1"})
        markup = pipeline.convert_tree([embed])
        assert "is-provider-twitter" in markup
        assert "is-type-rich" in markup

    def test_generic_embed_uses_sandboxed_iframe(self, pipeline):
        markup = pipeline.convert_tree([make(BlockType.EMBED, {"url": "https://maps.example.com/x"})])
        assert markup.startswith("<!-- wp:html -->")
        assert 'sandbox="allow-scripts allow-same-origin allow-presentation"' in markup

    def test_embed_unsupported_scheme(self, pipeline):
        markup = pipeline.convert_tree([make(BlockType.EMBED, {"url": "ftp://files.test/x"})])
        assert "Invalid embed URL" in markup

    def test_uploaded_video(self, pipeline):
        video = make(BlockType.VIDEO, {"type": "file", "file": {"url": "https://s3.test/v.mp4"}})
        markup = pipeline.convert_tree([video])
        assert markup.startswith("<!-- wp:video -->")
        assert '<video controls src="https://s3.test/v.mp4">' in markup

    def test_bookmark_title_from_url(self, pipeline):
        markup = pipeline.convert_tree([make(BlockType.BOOKMARK, {"url": "https://blog.test/posts/my-first_post.html"})])
        assert '<div class="notionpress-bookmark-title">My First Post</div>' in markup
        assert 'rel="noopener noreferrer"' in markup

    def test_bookmark_caption_wins(self, pipeline):
        markup = pipeline.convert_tree([make(BlockType.BOOKMARK, {"url": "https://x.test", "caption": rt("Docs")})])
        assert '<div class="notionpress-bookmark-title">Docs</div>' in markup

    def test_link_preview_uses_bookmark(self, pipeline):
        markup = pipeline.convert_tree([make(BlockType.LINK_PREVIEW, {"url": "https://github.com"})])
        assert "notionpress-bookmark" in markup


class TestFallbackHelpers:
    def test_marker_sanitises_attributes(self):
        blk = SourceBlock(id='x" --><script>', type=BlockType.UNKNOWN, raw_type="a--b c")
        marker = unsupported_marker(blk, reason="why not")
        assert marker == '<!-- notionpress:unsupported type="a-bc" id="x-script" reason="whynot" -->'

    def test_marker_empty_values(self):
        blk = SourceBlock(id="", type=BlockType.UNKNOWN, raw_type="")
        assert 'id="unknown"' in unsupported_marker(blk)

    def test_recoverable_text_prefers_rich_text(self):
        blk = SourceBlock(id="1", type=BlockType.UNKNOWN, payload={"rich_text": rt(" hi "), "url": "u"})
        assert recoverable_text(blk) == "hi"

    def test_recoverable_text_url(self):
        blk = SourceBlock(id="1", type=BlockType.UNKNOWN, payload={"url": "https://x.test"})
        assert recoverable_text(blk) == "https://x.test"

    def test_recoverable_text_string_title(self):
        blk = SourceBlock(id="1", type=BlockType.UNKNOWN, payload={"title": "Child page"})
        assert recoverable_text(blk) == "Child page"

    def test_recoverable_text_nothing(self):
        assert recoverable_text(SourceBlock(id="1", type=BlockType.UNKNOWN)) == ""

    def test_fallback_text_escaped(self, pipeline):
        blk = SourceBlock(id="u", type=BlockType.UNKNOWN, payload={"rich_text": rt("<b>x</b>")}, raw_type="widget")
        markup = pipeline.convert_tree([blk])
        assert "&lt;b&gt;x&lt;/b&gt;" in markup
        assert "notionpress-unsupported" in markup
