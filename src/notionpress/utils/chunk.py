"""Split a sequence of page ids into fixed-size chunks.

Batches are dispatched one chunk at a time so that a large sync job never
floods the source API.  The helper is generic over the item type.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TypeVar

T = TypeVar("T")


def chunk_items(items: Sequence[T], size: int = 10) -> list[list[T]]:
    """Split *items* into consecutive chunks of at most ``size``.

    Parameters
    ----------
    items:
        The full sequence to partition.  Order is preserved.
    size:
        Maximum number of items per chunk.  Defaults to **10**.

    Returns
    -------
    list[list]
        A list of sublists, each containing at most *size* items.
        An empty input returns an empty list (not ``[[]]``).

    Raises
    ------
    ValueError
        If *size* is less than 1.

    Examples
    --------
    >>> chunk_items(list(range(25)), 10)  # doctest: +ELLIPSIS
    [[0, ...], [10, ...], [20, ...]]
    """
    if size < 1:
        raise ValueError(f"size must be >= 1, got {size}")

    if not items:
        return []

    return [list(items[i : i + size]) for i in range(0, len(items), size)]
