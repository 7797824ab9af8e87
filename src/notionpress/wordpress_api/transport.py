"""HTTP transport configured for the WordPress REST API."""

from __future__ import annotations

from notionpress.config import NotionpressConfig
from notionpress.notion_api.transport import HttpTransport


class WordPressTransport(HttpTransport):
    """:class:`HttpTransport` for ``{wp_base_url}/wp-json``.

    Authenticates with HTTP basic auth using a WordPress application
    password.
    """

    def __init__(self, config: NotionpressConfig) -> None:
        super().__init__(
            config,
            api="wordpress",
            base_url=f"{config.wp_base_url}/wp-json",
            headers={"Accept": "application/json"},
            rate_rps=config.wp_rate_limit_rps,
            auth=(config.wp_username, config.wp_app_password),
            secrets=(config.wp_app_password,),
        )
