"""Metrics hook protocol and no-op default implementation.

notionpress reports counters and timings for HTTP traffic, conversion and
sync activity.  Without configuration a :class:`NoopMetricsHook` swallows
everything.  Any object satisfying :class:`MetricsHook` can be passed as
``NotionpressConfig(metrics=...)`` to forward the data points to StatsD,
Prometheus or similar.

Emitted metric names:

* ``notionpress.requests_total``             -- counter, tags ``api``, ``method``, ``status``
* ``notionpress.retries_total``              -- counter
* ``notionpress.rate_limited_total``         -- counter
* ``notionpress.request_duration_ms``        -- timing
* ``notionpress.rate_limit_wait_ms``         -- timing
* ``notionpress.blocks_converted_total``     -- counter, tag ``block_type``
* ``notionpress.conversion_fallbacks_total`` -- counter, tag ``block_type``
* ``notionpress.sync_total``                 -- counter, tag ``outcome``
* ``notionpress.sync_duration_ms``           -- timing
* ``notionpress.batch_items_total``          -- counter, tag ``result``
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class MetricsHook(Protocol):
    """Protocol that any metrics backend must satisfy.

    *tags* are string key-value pairs; backends translate them into their
    own labelling scheme.
    """

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Increment a counter metric."""
        ...

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Record a duration in milliseconds."""
        ...

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Set a gauge metric to an absolute value."""
        ...


class NoopMetricsHook:
    """Metrics backend that discards every data point."""

    __slots__ = ()

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass


def resolve_metrics(metrics: MetricsHook | None) -> MetricsHook:
    """Return *metrics*, or a shared no-op hook when it is ``None``."""
    return metrics if metrics is not None else _NOOP


_NOOP = NoopMetricsHook()
