"""HTTP transports for the Notion and WordPress REST APIs.

Both remote systems are reached through :class:`HttpTransport`, which runs
the full request lifecycle:

1. Acquire a token-bucket slot (wait if needed).
2. Send the HTTP request with the API's auth headers.
3. On ``2xx`` -- return the parsed JSON response.
4. On ``429`` -- honour ``Retry-After``, sleep, and retry.
5. On ``5xx`` / network error -- exponential backoff and retry.
6. On non-retryable ``4xx`` -- raise the matching typed error immediately.
7. On max attempts exceeded -- raise :class:`NotionpressRetryExhaustedError`.

:class:`NotionTransport` configures it for Notion (bearer token and
``Notion-Version``).  The WordPress flavour lives in
:mod:`notionpress.wordpress_api.transport`.
"""

from __future__ import annotations

import json as _json
import sys
import time
from collections.abc import Iterator
from typing import Any

import httpx

from notionpress.config import NotionpressConfig
from notionpress.errors import (
    NotionpressAuthError,
    NotionpressNetworkError,
    NotionpressNotFoundError,
    NotionpressPermissionError,
    NotionpressRetryExhaustedError,
    NotionpressValidationError,
)
from notionpress.observability import get_logger, resolve_metrics
from notionpress.utils.redact import redact

from .rate_limit import TokenBucket
from .retries import RETRYABLE_STATUSES, compute_backoff, should_retry

log = get_logger("notionpress.transport")

PAGE_SIZE = 100


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _parse_retry_after(response: httpx.Response) -> float | None:
    """Extract the ``Retry-After`` header value as a float, or ``None``."""
    raw = response.headers.get("retry-after")
    if raw is None:
        return None
    try:
        return float(raw)
    except (ValueError, TypeError):
        return None


def _raise_for_status(
    api: str, response: httpx.Response, method: str, path: str,
) -> None:
    """Raise the :class:`NotionpressError` subclass matching a non-retryable
    4xx response.
    """
    status = response.status_code
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    remote_message = body.get("message", response.text[:500])
    remote_code = body.get("code", "")
    where = f"{api} {method} {path}"

    if status == 401:
        raise NotionpressAuthError(
            message=f"Authentication failed on {where}: {remote_message}",
            context={"status_code": status, "remote_code": remote_code},
        )
    if status == 403:
        raise NotionpressPermissionError(
            message=f"Permission denied on {where}: {remote_message}",
            context={
                "status_code": status,
                "remote_code": remote_code,
                "operation": f"{method} {path}",
            },
        )
    if status == 404:
        raise NotionpressNotFoundError(
            message=f"Resource not found on {where}: {remote_message}",
            context={"status_code": status, "remote_code": remote_code, "path": path},
        )

    raise NotionpressValidationError(
        message=f"Client error {status} on {where}: {remote_message}",
        context={"status_code": status, "remote_code": remote_code, "body": body},
    )


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

class HttpTransport:
    """Synchronous JSON-over-HTTP transport with retry and rate limiting.

    Safe to share between batch worker threads: ``httpx.Client`` and
    :class:`TokenBucket` are both thread-safe.

    Parameters
    ----------
    config:
        Shared configuration (retry policy, timeout, proxy, metrics).
    api:
        Short name of the remote API, used in log records, metric tags and
        error messages.
    base_url:
        Root URL every request path is relative to.
    headers:
        Default headers sent with every request.
    rate_rps:
        Sustained request rate for this API.
    auth:
        Optional ``httpx`` auth (used for HTTP basic auth).
    secrets:
        Values scrubbed from debug dumps.
    """

    def __init__(
        self,
        config: NotionpressConfig,
        *,
        api: str,
        base_url: str,
        headers: dict[str, str],
        rate_rps: float,
        auth: httpx.Auth | tuple[str, str] | None = None,
        secrets: tuple[str, ...] = (),
    ) -> None:
        self._config = config
        self.api = api
        self._secrets = secrets
        self._bucket = TokenBucket(rate_rps=rate_rps, burst=10)
        self._metrics = resolve_metrics(config.metrics)
        self._client = httpx.Client(
            base_url=base_url,
            headers={"Content-Type": "application/json", **headers},
            auth=auth,
            timeout=httpx.Timeout(config.timeout_seconds),
            proxy=config.http_proxy,
        )

    # -- public API --------------------------------------------------------

    def request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Execute an HTTP request and return the decoded JSON body.

        Parameters
        ----------
        method:
            HTTP method (``GET``, ``POST``, ``PATCH``, ``PUT``, ``DELETE``).
        path:
            Path relative to the transport's base URL.
        **kwargs:
            Forwarded to :meth:`httpx.Client.request` (``json=``,
            ``params=``, ``headers=``).

        Returns
        -------
        Any
            Parsed JSON body; ``{}`` for empty responses.

        Raises
        ------
        NotionpressAuthError
            On 401 responses.
        NotionpressPermissionError
            On 403 responses.
        NotionpressNotFoundError
            On 404 responses.
        NotionpressValidationError
            On 400 and other non-retryable 4xx responses.
        NotionpressRetryExhaustedError
            When all retry attempts have been exhausted.
        NotionpressNetworkError
            On transport-level failures after exhausting retries.
        """
        max_attempts = self._config.retry_max_attempts
        last_exception: Exception | None = None
        last_status: int | None = None
        tags = {"api": self.api, "method": method}

        for attempt in range(max_attempts):
            wait = self._bucket.acquire()
            if wait > 0:
                self._metrics.timing("notionpress.rate_limit_wait_ms", wait * 1000, tags=tags)

            t0 = time.monotonic()
            try:
                response = self._client.request(method, path, **kwargs)
            except (httpx.TimeoutException, httpx.NetworkError) as exc:
                last_exception = exc
                last_status = None
                time.sleep(self._network_backoff(method, path, exc, attempt))
                continue
            elapsed_ms = (time.monotonic() - t0) * 1000

            last_status = response.status_code
            last_exception = None
            status_tags = {**tags, "status": str(response.status_code)}
            self._metrics.increment("notionpress.requests_total", tags=status_tags)
            self._metrics.timing("notionpress.request_duration_ms", elapsed_ms, tags=status_tags)

            if self._config.debug_dump_payload:
                self._dump(method, response, kwargs.get("json"))

            if 200 <= response.status_code < 300:
                if response.status_code == 204 or not response.content:
                    return {}
                return response.json()

            if response.status_code not in RETRYABLE_STATUSES:
                _raise_for_status(self.api, response, method, path)

            if not should_retry(response.status_code, None, attempt, max_attempts):
                break

            retry_after: float | None = None
            reason = "server_error"
            if response.status_code == 429:
                retry_after = _parse_retry_after(response)
                reason = "rate_limited"
                self._metrics.increment("notionpress.rate_limited_total", tags=tags)
                log.warning(
                    "Rate limited by remote API",
                    extra={
                        "extra_fields": {
                            "op": "request",
                            "api": self.api,
                            "method": method,
                            "path": path,
                            "retry_after": retry_after,
                            "attempt": attempt + 1,
                        }
                    },
                )

            delay = compute_backoff(
                attempt,
                base=self._config.retry_base_delay,
                maximum=self._config.retry_max_delay,
                jitter=self._config.retry_jitter,
                retry_after=retry_after,
            )
            self._metrics.increment("notionpress.retries_total", tags={**tags, "reason": reason})
            time.sleep(delay)

        ctx: dict[str, Any] = {
            "api": self.api,
            "attempts": max_attempts,
            "last_status_code": last_status,
        }
        last = f"last error: {last_exception}" if last_exception else f"last status: {last_status}"
        raise NotionpressRetryExhaustedError(
            message=f"All {max_attempts} attempts exhausted for {self.api} {method} {path} ({last})",
            context=ctx,
            cause=last_exception,
        )

    def close(self) -> None:
        """Close the underlying HTTP client and release resources."""
        self._client.close()

    def __enter__(self) -> HttpTransport:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # -- internals ---------------------------------------------------------

    def _network_backoff(
        self, method: str, path: str, exc: Exception, attempt: int,
    ) -> float:
        """Return the delay before retrying after a network error.

        Raises :class:`NotionpressNetworkError` once retries are exhausted.
        """
        max_attempts = self._config.retry_max_attempts
        self._metrics.increment(
            "notionpress.requests_total",
            tags={"api": self.api, "method": method, "status": "error"},
        )
        log.warning(
            "Request network error",
            extra={
                "extra_fields": {
                    "op": "request",
                    "api": self.api,
                    "method": method,
                    "path": path,
                    "attempt": attempt + 1,
                    "error": str(exc),
                }
            },
        )
        if not should_retry(None, exc, attempt, max_attempts):
            raise NotionpressNetworkError(
                message=f"Network error on {self.api} {method} {path}: {exc}",
                context={"url": path, "attempt": attempt + 1},
                cause=exc,
            ) from exc
        self._metrics.increment(
            "notionpress.retries_total",
            tags={"api": self.api, "method": method, "reason": "network_error"},
        )
        return compute_backoff(
            attempt,
            base=self._config.retry_base_delay,
            maximum=self._config.retry_max_delay,
            jitter=self._config.retry_jitter,
        )

    def _dump(self, method: str, response: httpx.Response, payload: Any) -> None:
        """Write a redacted request/response dump to stderr."""
        try:
            body: Any = response.json()
        except ValueError:
            body = response.text[:1000]
        dump: dict[str, Any] = {
            "api": self.api,
            "method": method,
            "url": str(response.url),
            "response_status": response.status_code,
            "response_body": body,
        }
        if payload is not None:
            dump["request_body"] = payload
        print(
            _json.dumps(redact(dump, *self._secrets), indent=2, default=str),
            file=sys.stderr,
        )


class NotionTransport(HttpTransport):
    """:class:`HttpTransport` configured for the Notion API."""

    def __init__(self, config: NotionpressConfig) -> None:
        super().__init__(
            config,
            api="notion",
            base_url=config.base_url,
            headers={
                "Authorization": f"Bearer {config.token}",
                "Notion-Version": config.notion_version,
            },
            rate_rps=config.rate_limit_rps,
            secrets=(config.token,),
        )

    def paginate(
        self,
        path: str,
        *,
        method: str = "GET",
        max_pages: int | None = None,
        **kwargs: Any,
    ) -> Iterator[dict]:
        """Auto-paginate a Notion list endpoint, yielding each result item.

        Sends ``page_size=100`` with ``start_cursor`` (in the JSON body for
        ``POST``, in the query string otherwise) until ``has_more`` is
        ``False`` or *max_pages* responses have been read.
        """
        for page in self.iter_pages(path, method=method, max_pages=max_pages, **kwargs):
            yield from page.get("results", [])

    def iter_pages(
        self,
        path: str,
        *,
        method: str = "GET",
        max_pages: int | None = None,
        **kwargs: Any,
    ) -> Iterator[dict]:
        """Yield raw list responses, following ``next_cursor``."""
        cursor: str | None = None
        fetched = 0

        while max_pages is None or fetched < max_pages:
            data = self.list_page(path, cursor, method=method, **kwargs)
            yield data
            fetched += 1
            if not data.get("has_more", False):
                return
            cursor = data.get("next_cursor")
            if cursor is None:
                return

        log.warning(
            "Pagination cap reached",
            extra={"extra_fields": {"op": "paginate", "path": path, "max_pages": max_pages}},
        )

    def list_page(
        self,
        path: str,
        cursor: str | None = None,
        *,
        method: str = "GET",
        **kwargs: Any,
    ) -> dict:
        """Fetch one page of a Notion list endpoint starting at *cursor*."""
        if method.upper() in ("POST", "PATCH"):
            body: dict = dict(kwargs.pop("json", None) or {})
            body["page_size"] = PAGE_SIZE
            if cursor is not None:
                body["start_cursor"] = cursor
            kwargs["json"] = body
        else:
            params: dict = dict(kwargs.pop("params", None) or {})
            params["page_size"] = PAGE_SIZE
            if cursor is not None:
                params["start_cursor"] = cursor
            kwargs["params"] = params
        return self.request(method, path, **kwargs)
