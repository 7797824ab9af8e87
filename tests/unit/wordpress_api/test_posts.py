"""Tests for PostAPI request shapes."""

from __future__ import annotations

from unittest.mock import MagicMock

from notionpress.wordpress_api.posts import PostAPI


def _api(post_type: str = "posts") -> tuple[PostAPI, MagicMock]:
    transport = MagicMock()
    transport.request.return_value = {"id": 101}
    return PostAPI(transport, post_type=post_type), transport


class TestCreate:
    def test_body_and_path(self):
        api, transport = _api()
        assert api.create(title="Hello", content="<p>x</p>") == {"id": 101}
        transport.request.assert_called_once_with(
            "POST", "/wp/v2/posts",
            json={"title": "Hello", "content": "<p>x</p>", "status": "draft"},
        )

    def test_custom_status_and_meta(self):
        api, transport = _api()
        api.create(title="T", content="", status="publish", meta={"notion_id": "abc"})
        body = transport.request.call_args.kwargs["json"]
        assert body["status"] == "publish"
        assert body["meta"] == {"notion_id": "abc"}

    def test_custom_post_type(self):
        api, transport = _api("pages")
        api.create(title="T", content="")
        assert transport.request.call_args.args == ("POST", "/wp/v2/pages")


class TestUpdate:
    def test_title_and_content(self):
        api, transport = _api()
        api.update("7", title="New", content="<p>y</p>")
        transport.request.assert_called_once_with(
            "POST", "/wp/v2/posts/7", json={"title": "New", "content": "<p>y</p>"},
        )

    def test_status_never_sent(self):
        api, transport = _api()
        api.update(7, content="c")
        assert transport.request.call_args.kwargs["json"] == {"content": "c"}
