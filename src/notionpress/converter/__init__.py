"""notionpress.converter -- source blocks to Gutenberg markup.

* :mod:`.rich_text` -- inline formatting of rich-text runs.
* :mod:`.registry` -- priority-ordered converter lookup with a fallback.
* :mod:`.blocks` -- the built-in converters.
* :mod:`.pipeline` -- recursive tree conversion.
"""

from __future__ import annotations

from .blocks import FALLBACK, default_converters
from .pipeline import BlockConversionPipeline, ConversionContext, ConversionOutput
from .registry import FALLBACK_PRIORITY, Converter, ConverterRegistry
from .rich_text import color_class, format_rich_text, html_escape

__all__ = [
    "FALLBACK",
    "FALLBACK_PRIORITY",
    "BlockConversionPipeline",
    "ConversionContext",
    "ConversionOutput",
    "Converter",
    "ConverterRegistry",
    "color_class",
    "default_converters",
    "format_rich_text",
    "html_escape",
]
