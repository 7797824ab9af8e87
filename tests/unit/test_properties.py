"""Property-based tests for notionpress using Hypothesis.

These tests verify invariant properties of the utility helpers and of the
conversion pipeline.  They complement the example-based unit tests by
exercising the code with a wide range of randomly generated inputs.
"""

from __future__ import annotations

import html
import string

from hypothesis import given, settings
from hypothesis import strategies as st

from notionpress.converter import BlockConversionPipeline
from notionpress.converter.rich_text import format_rich_text, safe_url
from notionpress.models import Annotation, BlockType, RichTextRun, SourceBlock
from notionpress.notion_api.retries import compute_backoff
from notionpress.utils.chunk import chunk_items
from notionpress.utils.ids import normalize_page_id, validate_page_id
from notionpress.utils.redact import redact

# ---------------------------------------------------------------------------
# Reusable strategies
# ---------------------------------------------------------------------------

_hex_id_st = st.text(alphabet="0123456789abcdefABCDEF", min_size=32, max_size=32)

_annotations_st = st.frozensets(st.sampled_from(list(Annotation)))

_run_st = st.builds(
    RichTextRun,
    content=st.text(max_size=60),
    annotations=_annotations_st,
    color=st.sampled_from(["default", "red", "blue_background", "nonsense"]),
)

_TEXT_TYPES = [
    BlockType.PARAGRAPH,
    BlockType.HEADING_2,
    BlockType.QUOTE,
    BlockType.BULLETED_LIST_ITEM,
    BlockType.NUMBERED_LIST_ITEM,
    BlockType.UNKNOWN,
]


def _dashed(page_id: str) -> str:
    return f"{page_id[:8]}-{page_id[8:12]}-{page_id[12:16]}-{page_id[16:20]}-{page_id[20:]}"


def _text_block(index: int, block_type: BlockType) -> SourceBlock:
    return SourceBlock(
        id=f"b{index}",
        type=block_type,
        payload={"rich_text": [{"type": "text", "plain_text": f"item {index:03d}"}]},
        raw_type="mystery" if block_type is BlockType.UNKNOWN else block_type.value,
    )


# =========================================================================
# chunk_items
# =========================================================================

class TestChunkItems:
    @given(st.lists(st.integers(), max_size=200), st.integers(min_value=1, max_value=30))
    def test_concatenation_preserves_order(self, items, size):
        chunks = chunk_items(items, size)
        assert [x for chunk in chunks for x in chunk] == items

    @given(st.lists(st.integers(), min_size=1, max_size=200), st.integers(min_value=1, max_value=30))
    def test_only_last_chunk_is_short(self, items, size):
        chunks = chunk_items(items, size)
        assert all(len(chunk) == size for chunk in chunks[:-1])
        assert 1 <= len(chunks[-1]) <= size
        assert len(chunks) == -(-len(items) // size)


# =========================================================================
# Page ids
# =========================================================================

class TestPageIds:
    @given(_hex_id_st)
    def test_normalise_idempotent(self, page_id):
        once = normalize_page_id(page_id)
        assert normalize_page_id(once) == once

    @given(_hex_id_st)
    def test_dashed_and_plain_agree(self, page_id):
        assert normalize_page_id(_dashed(page_id)) == normalize_page_id(page_id)
        assert normalize_page_id(page_id) == page_id.lower()

    @given(_hex_id_st)
    def test_hex_ids_valid_in_both_forms(self, page_id):
        assert validate_page_id(page_id) is None
        assert validate_page_id(_dashed(page_id)) is None

    @given(st.text(min_size=1, max_size=40).filter(
        lambda s: s.strip() and any(c not in string.ascii_letters + string.digits + "-" for c in s)
    ))
    def test_foreign_characters_rejected(self, page_id):
        assert validate_page_id(page_id) is not None


# =========================================================================
# Rich text
# =========================================================================

class TestRichTextEscaping:
    @given(st.text(max_size=200).filter(lambda s: "\n" not in s and "\r" not in s))
    def test_plain_run_round_trips_through_unescape(self, content):
        out = format_rich_text([RichTextRun(content=content)])
        assert "<" not in out
        assert html.unescape(out) == content

    @given(st.lists(_run_st, max_size=8))
    def test_output_is_concatenation_of_runs(self, runs):
        assert format_rich_text(runs) == "".join(format_rich_text([r]) for r in runs)

    @given(_run_st)
    def test_tags_balanced(self, run):
        out = format_rich_text([run])
        for tag in ("strong", "em", "code", "s", "u", "mark"):
            assert out.count(f"<{tag}>") + out.count(f"<{tag} ") == out.count(f"</{tag}>")

    @given(st.text(alphabet=string.ascii_letters + ":/", max_size=30))
    def test_only_safe_schemes_survive(self, url):
        result = safe_url(f"javascript:{url}")
        assert result is None


# =========================================================================
# Backoff
# =========================================================================

class TestBackoff:
    @given(
        st.integers(min_value=0, max_value=40),
        st.floats(min_value=0.01, max_value=10),
        st.floats(min_value=0.1, max_value=120),
    )
    def test_within_bounds(self, attempt, base, maximum):
        delay = compute_backoff(attempt, base=base, maximum=maximum)
        assert 0.0 <= delay <= maximum

    @given(st.integers(min_value=0, max_value=10))
    def test_non_decreasing_without_jitter(self, attempt):
        assert compute_backoff(attempt, jitter=False) <= compute_backoff(attempt + 1, jitter=False)

    @given(st.floats(min_value=-100, max_value=1000))
    def test_retry_after_capped(self, retry_after):
        delay = compute_backoff(0, maximum=30, jitter=False, retry_after=retry_after)
        assert 0.0 <= delay <= 30


# =========================================================================
# Redaction
# =========================================================================

class TestRedact:
    @given(st.text(alphabet=string.digits, min_size=8, max_size=40))
    def test_secret_never_leaks(self, secret):
        payload = {
            "note": f"x{secret}y",
            "nested": [{"value": secret}],
            "headers": {"Authorization": f"Bearer {secret}"},
        }
        assert secret not in repr(redact(payload, secret))

    @given(st.dictionaries(st.sampled_from(["title", "status", "count"]), st.integers()))
    def test_input_not_mutated(self, payload):
        before = dict(payload)
        redact(payload, "some-secret-value")
        assert payload == before


# =========================================================================
# Conversion pipeline
# =========================================================================

class TestPipelineProperties:
    @settings(max_examples=60, deadline=None)
    @given(st.lists(st.sampled_from(_TEXT_TYPES), max_size=25))
    def test_every_block_rendered_once_in_order(self, types):
        blocks = [_text_block(i, t) for i, t in enumerate(types)]
        markup = BlockConversionPipeline().convert_tree(blocks)

        positions = []
        for i in range(len(blocks)):
            label = f"item {i:03d}"
            assert markup.count(label) == 1
            positions.append(markup.index(label))
        assert positions == sorted(positions)

    @settings(max_examples=60, deadline=None)
    @given(st.lists(st.sampled_from(_TEXT_TYPES), max_size=25))
    def test_list_containers_balanced(self, types):
        blocks = [_text_block(i, t) for i, t in enumerate(types)]
        markup = BlockConversionPipeline().convert_tree(blocks)

        assert markup.count("<ul") == markup.count("</ul>")
        assert markup.count("<ol") == markup.count("</ol>")
        assert markup.count("<li>") == sum(
            t in (BlockType.BULLETED_LIST_ITEM, BlockType.NUMBERED_LIST_ITEM) for t in types
        )
