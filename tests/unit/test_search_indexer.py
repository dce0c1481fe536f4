"""Unit tests for search text generation, indexing and cache invalidation."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from packages.syncworker.services.cache_manager import CacheManager
from packages.syncworker.services.search_indexer import SearchIndexer, api_spec_search_text, generate_search_text


def test_title_is_weighted_and_markdown_stripped():
    text = generate_search_text("Setup", "## Install\n\n**Run** `make`", "Quick setup", ["ops"])

    assert text.startswith("Setup Setup Setup Quick setup")
    assert "#" not in text
    assert "*" not in text
    assert "`" not in text
    assert text.endswith("ops")
    assert "  " not in text


def test_api_spec_text_indexes_paths():
    spec = "info:\n  title: Orders\npaths:\n  /orders/{id}:\n    get:\n      summary: Fetch order\n"

    text = api_spec_search_text("Orders", spec, "Order API", "1.2.0")

    assert "/orders/" in text
    assert "Fetch order" in text
    assert "1.2.0" in text
    assert '"' not in text


class TestCacheManager:
    @pytest.mark.asyncio()
    async def test_delete_by_pattern(self, fake_redis):
        await fake_redis.set("search:a", "1")
        await fake_redis.set("search:b", "2")
        await fake_redis.set("session:x", "3")

        deleted = await CacheManager(fake_redis).invalidate_search()

        assert deleted == 2
        assert await fake_redis.get("session:x") == "3"
        assert await fake_redis.keys("search:*") == []

    @pytest.mark.asyncio()
    async def test_redis_errors_are_swallowed(self):
        client = AsyncMock()
        client.scan.side_effect = ConnectionError("redis down")

        assert await CacheManager(client).delete("search:*") == 0


class TestSearchIndexer:
    @pytest.mark.asyncio()
    async def test_index_content_item_updates_vector_and_invalidates(self, fake_redis):
        await fake_redis.set("search:q", "cached")
        store = AsyncMock()
        item = SimpleNamespace(id="doc-1", title="Intro", content="Body", excerpt=None, tags=["a"])
        indexer = SearchIndexer(CacheManager(fake_redis))

        await indexer.index_content_item(store, item)

        store.update_search_vector.assert_awaited_once_with("doc-1", "Intro Intro Intro Body a")
        assert indexer.vectors_updated == 1
        assert await fake_redis.get("search:q") is None

    @pytest.mark.asyncio()
    async def test_index_api_spec_without_cache(self):
        store = AsyncMock()
        spec = SimpleNamespace(id="spec-1", name="Orders", spec_content="openapi: 3.0.0", description=None, version="1.0.0")

        await SearchIndexer().index_api_spec(store, spec)

        store.update_search_vector.assert_awaited_once()
        assert store.update_search_vector.await_args.args[0] == "spec-1"
