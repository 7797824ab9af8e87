"""Block conversion pipeline: source block tree to Gutenberg markup.

:class:`BlockConversionPipeline` walks a tree of :class:`SourceBlock`
values, resolves a converter for each block through the
:class:`ConverterRegistry`, materialises missing children through a fetch
callable when the converter asks for them, and concatenates the output in
source order.

A failing converter never aborts the page: its output is replaced by the
fallback rendering and a :class:`ConversionWarning` is recorded.  Only
errors raised while *fetching* children escape, because a page whose
content could not be read must not be published half-empty.

Usage::

    pipeline = BlockConversionPipeline(ConverterRegistry.with_defaults(),
                                       fetch_children=source.fetch_children)
    output = pipeline.convert(blocks)
    output.markup, output.warnings
"""

from __future__ import annotations

import dataclasses
from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from notionpress.config import NotionpressConfig
from notionpress.errors import NotionpressConversionError, NotionpressFetchError
from notionpress.models import BlockType, ConversionWarning, RichTextRun, SourceBlock
from notionpress.observability import get_logger, resolve_metrics

from .registry import Converter, ConverterRegistry
from .rich_text import LinkResolver, format_rich_text

log = get_logger("notionpress.converter")

ChildFetcher = Callable[[str], Sequence[SourceBlock]]

LIST_ITEM_TYPES: frozenset[BlockType] = frozenset({
    BlockType.BULLETED_LIST_ITEM,
    BlockType.NUMBERED_LIST_ITEM,
})


@dataclass
class ConversionOutput:
    """Result of converting one block tree."""

    markup: str
    warnings: list[ConversionWarning] = field(default_factory=list)
    stats: Counter = field(default_factory=Counter)


@dataclass
class _RunState:
    warnings: list[ConversionWarning] = field(default_factory=list)
    stats: Counter = field(default_factory=Counter)


@dataclass(frozen=True)
class ConversionContext:
    """Everything a converter handler may use besides its block.

    Handlers never touch the pipeline directly; recursion into children
    and rich-text formatting go through this object so depth bounds and
    link rewriting apply uniformly.
    """

    pipeline: BlockConversionPipeline
    state: _RunState
    depth: int = 0
    list_level: int = 0
    max_list_depth: int = 3
    link_resolver: LinkResolver | None = None
    fallback_reason: str | None = None

    def format(self, runs: Sequence[RichTextRun]) -> str:
        """Render rich text with the run's link resolver."""
        return format_rich_text(runs, self.link_resolver)

    def children(self, block: SourceBlock) -> tuple[SourceBlock, ...]:
        """Return the (already materialised) children of *block*."""
        return block.children or ()

    def convert_children(self, block: SourceBlock) -> str:
        """Convert the children of *block*, honouring the nesting bounds.

        Children of list items count against ``max_list_depth``; children
        of every other block count against ``config.max_nesting_depth``.
        Children beyond the bound are rendered by the fallback converter
        without further recursion.
        """
        children = self.children(block)
        if not children:
            return ""

        is_list_item = block.type in LIST_ITEM_TYPES
        child_ctx = dataclasses.replace(
            self,
            depth=self.depth + 1,
            list_level=self.list_level + 1 if is_list_item else self.list_level,
        )

        if is_list_item:
            too_deep = child_ctx.list_level >= self.max_list_depth
            limit = self.max_list_depth
        else:
            too_deep = child_ctx.depth > self.pipeline.config.max_nesting_depth
            limit = self.pipeline.config.max_nesting_depth

        if too_deep:
            self.warn(
                "DEPTH_LIMIT",
                f"Children of {block.type_name} block {block.id} exceed the "
                f"nesting limit of {limit} and were flattened",
                block,
            )
            return "".join(
                self.pipeline.render_fallback(child, child_ctx, reason="depth_limit")
                for child in children
            )

        return self.pipeline.convert_siblings(children, child_ctx)

    def warn(self, code: str, message: str, block: SourceBlock | None = None, **extra: object) -> None:
        context: dict = dict(extra)
        if block is not None:
            context.update(block_id=block.id, block_type=block.type_name)
        self.state.warnings.append(ConversionWarning(code=code, message=message, context=context))


class BlockConversionPipeline:
    """Recursive block tree converter.

    Parameters
    ----------
    registry:
        Converter lookup.  Defaults to the built-in converters.
    fetch_children:
        Callable returning the children of a block id, in order.  Required
        only when the input tree contains unfetched children.
    config:
        Provides ``max_list_depth`` and ``max_nesting_depth``.
    link_resolver:
        Default link rewriter applied to every rich-text link.
    """

    def __init__(
        self,
        registry: ConverterRegistry | None = None,
        fetch_children: ChildFetcher | None = None,
        config: NotionpressConfig | None = None,
        link_resolver: LinkResolver | None = None,
    ) -> None:
        self.registry = registry if registry is not None else ConverterRegistry.with_defaults()
        self.config = config if config is not None else NotionpressConfig()
        self._fetch_children = fetch_children
        self._link_resolver = link_resolver
        self._metrics = resolve_metrics(self.config.metrics)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def convert_tree(
        self,
        root_blocks: Sequence[SourceBlock],
        max_depth: int | None = None,
    ) -> str:
        """Convert *root_blocks* and return the markup only."""
        return self.convert(root_blocks, max_depth=max_depth).markup

    def convert(
        self,
        root_blocks: Sequence[SourceBlock],
        max_depth: int | None = None,
        link_resolver: LinkResolver | None = None,
    ) -> ConversionOutput:
        """Convert *root_blocks* into Gutenberg markup.

        Parameters
        ----------
        root_blocks:
            Top-level blocks of a page, in order.
        max_depth:
            Nesting bound for list items.  Defaults to
            ``config.max_list_depth``.
        link_resolver:
            Overrides the pipeline's default link rewriter for this call.

        Returns
        -------
        ConversionOutput
            Markup plus the warnings and per-type counts of this call.

        Raises
        ------
        NotionpressFetchError
            If children could not be fetched.
        """
        state = _RunState()
        ctx = ConversionContext(
            pipeline=self,
            state=state,
            max_list_depth=max_depth if max_depth is not None else self.config.max_list_depth,
            link_resolver=link_resolver if link_resolver is not None else self._link_resolver,
        )
        markup = self.convert_siblings(root_blocks, ctx)
        if state.warnings:
            log.info(
                "Conversion finished with warnings",
                extra={
                    "extra_fields": {
                        "op": "convert",
                        "blocks": sum(state.stats.values()),
                        "warnings": len(state.warnings),
                    }
                },
            )
        return ConversionOutput(markup=markup, warnings=state.warnings, stats=state.stats)

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def convert_siblings(self, blocks: Sequence[SourceBlock], ctx: ConversionContext) -> str:
        """Convert an ordered run of sibling blocks, coalescing list items."""
        parts: list[str] = []
        i = 0
        while i < len(blocks):
            block = blocks[i]
            if block.type in LIST_ITEM_TYPES:
                j = i
                while j < len(blocks) and blocks[j].type is block.type:
                    j += 1
                parts.append(self._convert_list(blocks[i:j], ctx))
                i = j
            else:
                parts.append(self.convert_block(block, ctx))
                i += 1
        return "".join(parts)

    def convert_block(self, block: SourceBlock, ctx: ConversionContext) -> str:
        """Convert one block, substituting the fallback on failure."""
        markup, _ = self._convert_one(block, ctx)
        return markup

    def render_fallback(
        self,
        block: SourceBlock,
        ctx: ConversionContext,
        reason: str | None = None,
    ) -> str:
        """Render *block* with the fallback converter."""
        fallback = self.registry.fallback
        self._metrics.increment(
            "notionpress.conversion_fallbacks_total",
            tags={"block_type": block.type_name},
        )
        if reason != ctx.fallback_reason:
            ctx = dataclasses.replace(ctx, fallback_reason=reason)
        return fallback.handler(block, ctx)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _convert_one(self, block: SourceBlock, ctx: ConversionContext) -> tuple[str, bool]:
        """Return ``(markup, ok)``; ``ok`` is ``False`` when the fallback was used."""
        converter = self.registry.resolve(block.type)
        ctx.state.stats[block.type_name] += 1
        self._metrics.increment(
            "notionpress.blocks_converted_total", tags={"block_type": block.type_name},
        )

        if converter.is_fallback:
            ctx.warn(
                "UNSUPPORTED_BLOCK",
                f"Block type {block.type_name!r} is not supported",
                block,
            )
            return self.render_fallback(block, ctx), False

        block = self._materialise(block, converter, ctx)

        try:
            return converter.handler(block, ctx), True
        except NotionpressFetchError:
            raise
        except Exception as exc:
            error = exc if isinstance(exc, NotionpressConversionError) else NotionpressConversionError(
                message=f"Converter {converter.name!r} failed on block {block.id}: {exc}",
                context={"block_id": block.id, "block_type": block.type_name},
                cause=exc,
            )
            log.warning(
                "Block conversion failed",
                extra={
                    "extra_fields": {
                        "op": "convert_block",
                        "block_id": block.id,
                        "block_type": block.type_name,
                        "converter": converter.name,
                        "error": str(exc),
                    }
                },
            )
            ctx.warn(
                "CONVERSION_FAILED",
                error.message,
                block,
                error_type=type(exc).__name__,
            )
            return self.render_fallback(block, ctx, reason="conversion_error"), False

    def _materialise(
        self, block: SourceBlock, converter: Converter, ctx: ConversionContext,
    ) -> SourceBlock:
        if not (converter.needs_children and block.has_children and block.children is None):
            return block
        if self._fetch_children is None:
            ctx.warn(
                "CHILDREN_UNAVAILABLE",
                f"Children of block {block.id} were not fetched and no fetcher is configured",
                block,
            )
            return dataclasses.replace(block, children=())
        children = tuple(self._fetch_children(block.id))
        return dataclasses.replace(block, children=children)

    def _convert_list(self, items: Sequence[SourceBlock], ctx: ConversionContext) -> str:
        """Wrap consecutive same-kind list items into list containers.

        An item that falls back closes the current container so the list
        markup stays well formed.
        """
        ordered = items[0].type is BlockType.NUMBERED_LIST_ITEM
        parts: list[str] = []
        pending: list[str] = []

        for item in items:
            markup, ok = self._convert_one(item, ctx)
            if ok:
                pending.append(markup)
                continue
            if pending:
                parts.append(_list_container(pending, ordered))
                pending = []
            parts.append(markup)

        if pending:
            parts.append(_list_container(pending, ordered))
        return "".join(parts)


def _list_container(items: list[str], ordered: bool) -> str:
    if ordered:
        open_comment, tag = '<!-- wp:list {"ordered":true} -->', "ol"
    else:
        open_comment, tag = "<!-- wp:list -->", "ul"
    body = "\n\n".join(item.strip("\n") for item in items)
    return f'{open_comment}\n<{tag} class="wp-block-list">{body}</{tag}>\n<!-- /wp:list -->\n\n'
