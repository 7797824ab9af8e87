"""Configuration for notionpress.

:class:`NotionpressConfig` captures every tuneable knob used by the HTTP
layers, the conversion pipeline, the sync orchestrator and the batch
processor.  A single instance is shared by all of them through
:class:`~notionpress.client.SyncClient`.
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from typing import Any, Literal
from urllib.parse import urlparse

_LOCAL_HOSTS = ("localhost", "127.0.0.1", "::1")

_SECRET_FIELDS = frozenset({"token", "wp_app_password"})


def _require_https(name: str, url: str) -> None:
    parsed = urlparse(url)
    if parsed.scheme == "http" and parsed.hostname not in _LOCAL_HOSTS:
        raise ValueError(
            f"{name} uses insecure HTTP for non-local host '{parsed.hostname}'. "
            "Use HTTPS to protect your credentials, or target localhost for testing."
        )


@dataclass
class NotionpressConfig:
    """Complete configuration for a notionpress sync client.

    Parameters
    ----------
    token:
        Notion integration token.  Never logged.
    notion_version:
        Value of the ``Notion-Version`` header sent with every request.
    base_url:
        Notion API root URL.  Override for proxy or testing environments.
    wp_base_url:
        Site root of the WordPress installation, e.g.
        ``https://blog.example.com``.  The REST API is reached under
        ``{wp_base_url}/wp-json``.
    wp_username:
        WordPress user owning the application password.
    wp_app_password:
        WordPress application password.  Never logged.
    post_type:
        REST collection posts are written to (``posts`` or ``pages``).
    post_status:
        Status given to newly created posts.
    target_permalink_template:
        Format string used to rewrite links between synced pages.  Receives
        ``wp_base_url`` and ``target_id``.
    database_url:
        SQLAlchemy URL of the sync mapping database.
    max_list_depth:
        Nesting bound for list items.  Deeper children are rendered by the
        fallback converter.
    max_nesting_depth:
        Nesting bound for container blocks (toggles, columns, callouts,
        quotes).
    fetch_max_pages:
        Safety cap on the number of 100-block pages fetched per parent.
    syncing_stale_after:
        Seconds after which a ``syncing`` mapping row is considered
        abandoned and may be re-acquired.
    batch_chunk_size:
        Number of pages per batch chunk.
    batch_stagger_seconds:
        Delay between dispatching consecutive chunks.
    batch_max_workers:
        Worker threads used to run page syncs inside a chunk.
    batch_retention_seconds:
        How long finished batches stay queryable before being purged.
    retry_max_attempts:
        Maximum attempts per request for retryable HTTP errors.
    retry_base_delay:
        Base delay (seconds) for exponential backoff.
    retry_max_delay:
        Upper cap (seconds) on computed backoff delay.
    retry_jitter:
        Scale backoff intervals randomly to 50-100 %.
    rate_limit_rps:
        Target requests per second for Notion (token bucket).
    wp_rate_limit_rps:
        Target requests per second for WordPress.
    timeout_seconds:
        HTTP request timeout in seconds.
    http_proxy:
        Optional HTTP/HTTPS proxy URL.
    metrics:
        Optional :class:`~notionpress.observability.MetricsHook` backend.
    debug_dump_payload:
        Write the (redacted) request/response payloads to *stderr*.
    """

    # ── Notion ──────────────────────────────────────────────────────────
    token: str = ""

    notion_version: str = "2022-06-28"

    base_url: str = "https://api.notion.com/v1"

    # ── WordPress ───────────────────────────────────────────────────────
    wp_base_url: str = "http://localhost"

    wp_username: str = ""

    wp_app_password: str = ""

    post_type: str = "posts"

    post_status: Literal["draft", "publish", "pending", "private"] = "draft"

    target_permalink_template: str = "{wp_base_url}/?p={target_id}"

    # ── Mapping store ───────────────────────────────────────────────────
    database_url: str = "sqlite:///notionpress.db"

    # ── Conversion ──────────────────────────────────────────────────────
    max_list_depth: int = 3

    max_nesting_depth: int = 8

    fetch_max_pages: int = 50  # 50 x 100 blocks

    # ── Sync ────────────────────────────────────────────────────────────
    syncing_stale_after: float = 15 * 60

    # ── Batches ─────────────────────────────────────────────────────────
    batch_chunk_size: int = 10

    batch_stagger_seconds: float = 1.0

    batch_max_workers: int = 4

    batch_retention_seconds: float = 24 * 60 * 60

    # ── Retry & rate ────────────────────────────────────────────────────
    retry_max_attempts: int = 5

    retry_base_delay: float = 1.0

    retry_max_delay: float = 60.0

    retry_jitter: bool = True

    rate_limit_rps: float = 3.0

    wp_rate_limit_rps: float = 10.0

    # ── HTTP ────────────────────────────────────────────────────────────
    timeout_seconds: float = 30.0

    http_proxy: str | None = None

    # ── Observability ──────────────────────────────────────────────────
    metrics: Any | None = None

    debug_dump_payload: bool = False

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        _require_https("base_url", self.base_url)
        _require_https("wp_base_url", self.wp_base_url)
        self.wp_base_url = self.wp_base_url.rstrip("/")

        if self.retry_max_attempts < 1:
            raise ValueError(f"retry_max_attempts must be >= 1, got {self.retry_max_attempts}")
        if self.retry_base_delay < 0:
            raise ValueError(f"retry_base_delay must be >= 0, got {self.retry_base_delay}")
        if self.retry_max_delay < 0:
            raise ValueError(f"retry_max_delay must be >= 0, got {self.retry_max_delay}")
        if self.rate_limit_rps <= 0:
            raise ValueError(f"rate_limit_rps must be > 0, got {self.rate_limit_rps}")
        if self.wp_rate_limit_rps <= 0:
            raise ValueError(f"wp_rate_limit_rps must be > 0, got {self.wp_rate_limit_rps}")
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be > 0, got {self.timeout_seconds}")
        if self.max_list_depth < 1:
            raise ValueError(f"max_list_depth must be >= 1, got {self.max_list_depth}")
        if self.max_nesting_depth < 1:
            raise ValueError(f"max_nesting_depth must be >= 1, got {self.max_nesting_depth}")
        if self.fetch_max_pages < 1:
            raise ValueError(f"fetch_max_pages must be >= 1, got {self.fetch_max_pages}")
        if self.syncing_stale_after <= 0:
            raise ValueError(f"syncing_stale_after must be > 0, got {self.syncing_stale_after}")
        if self.batch_chunk_size < 1:
            raise ValueError(f"batch_chunk_size must be >= 1, got {self.batch_chunk_size}")
        if self.batch_stagger_seconds < 0:
            raise ValueError(
                f"batch_stagger_seconds must be >= 0, got {self.batch_stagger_seconds}"
            )
        if self.batch_max_workers < 1:
            raise ValueError(f"batch_max_workers must be >= 1, got {self.batch_max_workers}")
        if self.batch_retention_seconds <= 0:
            raise ValueError(
                f"batch_retention_seconds must be > 0, got {self.batch_retention_seconds}"
            )

    @classmethod
    def from_env(cls, **overrides: Any) -> NotionpressConfig:
        """Build a config from ``NOTION_TOKEN``, ``WP_BASE_URL``,
        ``WP_USERNAME``, ``WP_APP_PASSWORD`` and ``NOTIONPRESS_DATABASE_URL``.

        Explicit *overrides* win over the environment.
        """
        env_map = {
            "token": "NOTION_TOKEN",
            "wp_base_url": "WP_BASE_URL",
            "wp_username": "WP_USERNAME",
            "wp_app_password": "WP_APP_PASSWORD",
            "database_url": "NOTIONPRESS_DATABASE_URL",
        }
        values: dict[str, Any] = {}
        for field_name, var in env_map.items():
            if var in os.environ:
                values[field_name] = os.environ[var]
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def permalink_for(self, target_id: str) -> str:
        """Return the public URL of a synced post."""
        return self.target_permalink_template.format(
            wp_base_url=self.wp_base_url, target_id=target_id,
        )

    def __repr__(self) -> str:
        """Mask secrets to prevent accidental credential leakage."""
        parts: list[str] = []
        for f in dataclasses.fields(self):
            val = getattr(self, f.name)
            if f.name in _SECRET_FIELDS:
                masked = f"...{val[-4:]}" if len(val) >= 4 else "****"
                parts.append(f"{f.name}='{masked}'")
            else:
                parts.append(f"{f.name}={val!r}")
        return f"NotionpressConfig({', '.join(parts)})"
