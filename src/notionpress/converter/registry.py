"""Converter registry: maps a block type to the converter responsible for it.

Converters are immutable values.  The registry is assembled once at start
up from an ordered list (see :func:`notionpress.converter.blocks.default_converters`),
may be extended with :meth:`ConverterRegistry.register` until the first
lookup, and is read-only afterwards.  Lookups are priority ordered and
always succeed because exactly one fallback converter catches everything.
"""

from __future__ import annotations

import dataclasses
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from notionpress.models import BlockType, SourceBlock

if TYPE_CHECKING:
    from .pipeline import ConversionContext

Handler = Callable[[SourceBlock, "ConversionContext"], str]

# Every non-fallback converter must sit strictly above this.
FALLBACK_PRIORITY = -1_000_000


@dataclass(frozen=True)
class Converter:
    """A block converter.

    Attributes
    ----------
    name:
        Identifier used in logs and warnings.
    block_types:
        The types this converter handles.  ``None`` marks the fallback,
        which handles every type.
    handler:
        Pure function rendering ``(block, context)`` to markup.
    priority:
        Higher priorities are consulted first.
    needs_children:
        Whether unfetched children must be materialised before *handler*
        runs.
    """

    name: str
    block_types: frozenset[BlockType] | None
    handler: Handler
    priority: int = 0
    needs_children: bool = False

    @property
    def is_fallback(self) -> bool:
        return self.block_types is None

    def supports(self, block_type: BlockType) -> bool:
        return self.block_types is None or block_type in self.block_types


class ConverterRegistry:
    """Priority-ordered set of converters with a mandatory fallback.

    Parameters
    ----------
    converters:
        Initial converters, registered in order.  One of them must be a
        fallback unless *fallback* is given.
    fallback:
        The catch-all converter.
    """

    def __init__(
        self,
        converters: Iterable[Converter] = (),
        fallback: Converter | None = None,
    ) -> None:
        self._converters: list[Converter] = []
        self._fallback: Converter | None = None
        self._resolved: dict[BlockType, Converter] = {}
        self._sealed = False
        self._lock = threading.Lock()
        for converter in converters:
            self.register(converter)
        if fallback is not None:
            self.register(fallback)

    @classmethod
    def with_defaults(cls, extra: Iterable[Converter] = ()) -> ConverterRegistry:
        """Build a registry holding the built-in converters plus *extra*."""
        from .blocks import default_converters

        return cls([*default_converters(), *extra])

    # -- registration ------------------------------------------------------

    def register(self, converter: Converter) -> None:
        """Add *converter*.

        Registering a type that another converter already handles moves
        that type to *converter*.  Registering a second fallback replaces
        the first.

        Raises
        ------
        RuntimeError
            If the registry has already served a lookup.
        ValueError
            If a non-fallback converter uses the fallback priority band, or
            a fallback converter does not.
        """
        with self._lock:
            if self._sealed:
                raise RuntimeError(
                    f"Cannot register converter {converter.name!r}: "
                    "the registry is sealed after its first lookup"
                )

            if converter.is_fallback:
                if converter.priority != FALLBACK_PRIORITY:
                    raise ValueError(
                        f"Fallback converter {converter.name!r} must use "
                        f"priority {FALLBACK_PRIORITY}, got {converter.priority}"
                    )
                self._fallback = converter
                return

            if converter.priority <= FALLBACK_PRIORITY:
                raise ValueError(
                    f"Converter {converter.name!r} priority must be above "
                    f"{FALLBACK_PRIORITY}, got {converter.priority}"
                )

            taken = converter.block_types or frozenset()
            remaining: list[Converter] = []
            for existing in self._converters:
                if existing.name == converter.name:
                    continue
                left = (existing.block_types or frozenset()) - taken
                if left:
                    remaining.append(
                        existing if left == existing.block_types
                        else dataclasses.replace(existing, block_types=left)
                    )
            remaining.append(converter)
            self._converters = remaining

    # -- lookup ------------------------------------------------------------

    def resolve(self, block_type: BlockType) -> Converter:
        """Return the converter for *block_type*.

        Never fails: types without a specific converter resolve to the
        fallback.
        """
        cached = self._resolved.get(block_type)
        if cached is not None:
            return cached

        with self._lock:
            if self._fallback is None:
                raise RuntimeError("ConverterRegistry has no fallback converter")
            self._sealed = True
            chosen = next(
                (c for c in self.converters if c.supports(block_type)),
                self._fallback,
            )
            self._resolved[block_type] = chosen
            return chosen

    @property
    def fallback(self) -> Converter:
        if self._fallback is None:
            raise RuntimeError("ConverterRegistry has no fallback converter")
        return self._fallback

    @property
    def converters(self) -> list[Converter]:
        """Specific converters, highest priority first."""
        return sorted(self._converters, key=lambda c: c.priority, reverse=True)

    @property
    def sealed(self) -> bool:
        return self._sealed
