"""Tests for SyncClient wiring and delegation.

Remote calls are replaced by mocks on the client's collaborators so these
tests run entirely offline.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from notionpress import SyncClient
from notionpress.converter import Converter
from notionpress.models import BlockType, SyncMapping, SyncResult, SyncStatus
from notionpress.sync import BatchProcessor, SyncOrchestrator

PAGE = "75424b1c35d0476b836cbb0e776f3f7c"


def _make_client(store=None, **kwargs) -> SyncClient:
    return SyncClient(
        token="test_token_1234",
        wp_base_url="https://blog.example.com",
        wp_username="editor",
        wp_app_password="app-pass-5678",
        database_url="sqlite://",
        store=store,
        **kwargs,
    )


# ===========================================================================
# Construction
# ===========================================================================

class TestConstruction:
    def test_kwargs_build_config(self):
        client = _make_client(post_status="publish")
        try:
            assert client.config.post_status == "publish"
            assert client.config.wp_base_url == "https://blog.example.com"
        finally:
            client.close()

    def test_explicit_config(self, config):
        client = SyncClient(config)
        try:
            assert client.config is config
        finally:
            client.close()

    def test_invalid_kwargs_rejected(self):
        with pytest.raises(ValueError, match="insecure HTTP"):
            SyncClient(wp_base_url="http://remote.example.com")

    def test_extra_converters_registered(self, config):
        custom = Converter(
            name="custom-paragraph",
            block_types=frozenset({BlockType.PARAGRAPH}),
            handler=lambda block, ctx: "<p>custom</p>",
            priority=50,
        )
        client = SyncClient(config, converters=[custom])
        try:
            assert client._pipeline.registry.resolve(BlockType.PARAGRAPH) is custom
        finally:
            client.close()


# ===========================================================================
# Delegation
# ===========================================================================

class TestDelegation:
    def test_sync_one(self, config):
        client = SyncClient(config)
        expected = SyncResult(source_id=PAGE, success=True, target_id="9")
        with patch.object(SyncOrchestrator, "sync_one", return_value=expected) as mock:
            assert client.sync_one(PAGE, force=True) is expected
        mock.assert_called_once_with(PAGE, force=True)
        client.close()

    def test_page_queries(self, config):
        client = SyncClient(config)
        with patch.object(SyncOrchestrator, "needs_sync", return_value=True), \
                patch.object(SyncOrchestrator, "list_pages", return_value=[]) as list_pages, \
                patch.object(SyncOrchestrator, "unmap", return_value=False):
            assert client.needs_sync(PAGE) is True
            assert client.list_pages(mark_stale=True) == []
            assert client.unmap(PAGE) is False
        list_pages.assert_called_once_with(mark_stale=True)
        client.close()

    def test_batches(self, config):
        client = SyncClient(config)
        with patch.object(BatchProcessor, "start_batch", return_value="batch_x") as start, \
                patch.object(BatchProcessor, "cancel", return_value=True) as cancel:
            assert client.start_batch([PAGE], chunk_size=3) == "batch_x"
            assert client.cancel("batch_x") is True
        start.assert_called_once_with([PAGE], force=False, chunk_size=3)
        cancel.assert_called_once_with("batch_x")
        client.close()

    def test_mappings_read_from_store(self, store):
        store.upsert(SyncMapping(source_id=PAGE, target_id="3", status=SyncStatus.SYNCED))
        client = _make_client(store=store)
        try:
            assert [m.source_id for m in client.mappings()] == [PAGE]
            assert client.mappings(status=SyncStatus.ERROR) == []
            assert client.status_counts()[SyncStatus.SYNCED] == 1
        finally:
            client.close()


# ===========================================================================
# Lifecycle
# ===========================================================================

class TestLifecycle:
    def test_injected_store_left_open(self, store):
        with _make_client(store=store):
            pass
        store.upsert(SyncMapping(source_id=PAGE))
        assert store.find(PAGE) is not None

    def test_owned_store_closed(self):
        client = _make_client()
        with patch.object(client._store, "close") as close:
            client.close()
        close.assert_called_once_with()

    def test_context_manager_closes_transports(self):
        client = _make_client()
        client._notion = MagicMock(wraps=client._notion)
        client._wordpress = MagicMock(wraps=client._wordpress)
        with client:
            pass
        client._notion.close.assert_called_once_with()
        client._wordpress.close.assert_called_once_with()

    def test_batches_refused_after_close(self):
        client = _make_client()
        client.close()
        with pytest.raises(RuntimeError, match="shut down"):
            client.start_batch([PAGE])
