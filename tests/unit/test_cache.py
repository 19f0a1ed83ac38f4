"""
Unit tests for the cache layer: hashing, store deadlines, coalescing and SWR
"""

import asyncio

import pytest
from cache.cache import Cache
from cache.hashing import create_cache_key, stable_hash
from cache.keys import compute_data_hash, forecast_key, warmup_status_key
from cache.store import MemoryStore


class TestHashing:

    def test_stable_hash_ignores_key_order(self):
        assert stable_hash({"a": 1, "b": {"x": 1, "y": 2}}) == stable_hash({"b": {"y": 2, "x": 1}, "a": 1})

    def test_stable_hash_length(self):
        assert len(stable_hash("anything")) == 16

    def test_stable_hash_distinguishes_types(self):
        assert stable_hash(1) != stable_hash("1")

    def test_create_cache_key(self):
        assert create_cache_key("forecast", "a-vs-b", 12) == "forecast:a-vs-b:12"

    def test_create_cache_key_hashes_structured_parts(self):
        key = create_cache_key("forecast", {"geo": "US"})
        prefix, digest = key.split(":")
        assert prefix == "forecast"
        assert digest == stable_hash({"geo": "US"})


class TestMemoryStore:

    def test_set_and_get(self):
        store = MemoryStore()
        store.set("k", "v", ttl=60)

        hit = store.get("k")
        assert hit.value == "v"
        assert hit.is_stale is False

    def test_missing_key(self):
        assert MemoryStore().get("missing") is None

    def test_stale_window(self):
        store = MemoryStore()
        store.set("k", "v", ttl=0, stale_ttl=60)

        hit = store.get("k")
        assert hit.value == "v"
        assert hit.is_stale is True

    def test_expired_entry_is_removed(self):
        store = MemoryStore()
        store.set("k", "v", ttl=0)

        assert store.get("k") is None
        assert store.size() == 0

    def test_delete_by_tag(self):
        store = MemoryStore()
        store.set("a", 1, ttl=60, tags=["slug:x"])
        store.set("b", 2, ttl=60, tags=["slug:x", "slug:y"])
        store.set("c", 3, ttl=60, tags=["slug:y"])

        assert store.delete_by_tag("slug:x") == 2
        assert store.get("a") is None
        assert store.get("b") is None
        assert store.get("c").value == 3

    def test_overwrite_drops_old_tags(self):
        store = MemoryStore()
        store.set("a", 1, ttl=60, tags=["old"])
        store.set("a", 2, ttl=60, tags=["new"])

        assert store.delete_by_tag("old") == 0
        assert store.get("a").value == 2

    def test_lock_is_exclusive_until_released(self):
        store = MemoryStore()
        assert store.acquire_lock("lock:k", 30) is True
        assert store.acquire_lock("lock:k", 30) is False

        store.release_lock("lock:k")
        assert store.acquire_lock("lock:k", 30) is True

    def test_expired_lock_can_be_taken(self):
        store = MemoryStore()
        store.acquire_lock("lock:k", 0)
        assert store.acquire_lock("lock:k", 30) is True


class TestCache:

    @pytest.mark.asyncio
    async def test_get_or_set_computes_once(self):
        cache = Cache(default_ttl=60, default_stale_ttl=120)
        calls = 0

        async def compute():
            nonlocal calls
            calls += 1
            return {"value": 42}

        first = await cache.get_or_set("k", compute)
        second = await cache.get_or_set("k", compute)

        assert first == second == {"value": 42}
        assert calls == 1

    @pytest.mark.asyncio
    async def test_concurrent_calls_are_coalesced(self):
        cache = Cache(default_ttl=60, default_stale_ttl=120)
        calls = 0

        async def slow_compute():
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.05)
            return "done"

        results = await asyncio.gather(*[cache.get_or_set("k", slow_compute) for _ in range(5)])

        assert results == ["done"] * 5
        assert calls == 1

    @pytest.mark.asyncio
    async def test_stale_value_served_and_refreshed(self):
        cache = Cache(default_ttl=60, default_stale_ttl=120)
        await cache.set("k", "old", ttl=0, stale_ttl=60)

        async def compute():
            return "new"

        assert await cache.get_or_set("k", compute, ttl=60, stale_ttl=120) == "old"

        await cache.wait_for_background()
        assert await cache.get("k") == "new"

    @pytest.mark.asyncio
    async def test_force_refresh_recomputes(self):
        cache = Cache(default_ttl=60, default_stale_ttl=120)
        await cache.set("k", "old")

        async def compute():
            return "new"

        assert await cache.get_or_set("k", compute, force_refresh=True) == "new"

    @pytest.mark.asyncio
    async def test_errors_propagate_and_clear_pending(self):
        cache = Cache(default_ttl=60, default_stale_ttl=120)

        async def failing():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            await cache.get_or_set("k", failing)

        assert cache.get_stats()["pending"] == 0
        assert await cache.get("k") is None
        # Lock released after the failure
        assert cache.store.acquire_lock("lock:k", 1) is True

    @pytest.mark.asyncio
    async def test_computes_when_lock_held_elsewhere(self):
        cache = Cache(default_ttl=60, default_stale_ttl=120)
        cache.store.acquire_lock("lock:k", 30)

        async def compute():
            return "value"

        assert await cache.get_or_set("k", compute) == "value"

    @pytest.mark.asyncio
    async def test_stats(self):
        cache = Cache(default_ttl=60, default_stale_ttl=120)
        await cache.set("a", 1)
        await cache.set("b", 2)

        stats = cache.get_stats()
        assert stats["provider"] == "memory"
        assert stats["memory_size"] == 2


class TestKeys:

    def test_forecast_key_includes_every_part(self):
        key = forecast_key("chatgpt-vs-gemini", "chatgpt", "12m", "US", "abc123", "v9")
        assert key == "forecast:chatgpt-vs-gemini:chatgpt:12m:US:abc123:v9"

    def test_warmup_keys_differ_per_hash(self):
        assert warmup_status_key("a-vs-b", "12m", "", "h1") != warmup_status_key("a-vs-b", "12m", "", "h2")

    def test_data_hash_is_stable(self, series_factory):
        assert compute_data_hash(series_factory(30), "12m", "chatgpt", "gemini") == \
            compute_data_hash(series_factory(30), "12m", "chatgpt", "gemini")

    def test_data_hash_changes_with_inputs(self, series_factory):
        series = series_factory(30)
        base = compute_data_hash(series, "12m", "chatgpt", "gemini")

        assert compute_data_hash(series, "5y", "chatgpt", "gemini") != base
        assert compute_data_hash(series_factory(31), "12m", "chatgpt", "gemini") != base

    def test_data_hash_ignores_column_order(self, series_factory):
        series = series_factory(30, term_a="chat-gpt", term_b="gemini")
        reordered = [{"date": row["date"], "gemini": row["gemini"], "chat-gpt": row["chat-gpt"]} for row in series]

        assert compute_data_hash(series, "12m", "chat gpt", "gemini") == \
            compute_data_hash(reordered, "12m", "chat gpt", "gemini")

    def test_data_hash_of_empty_series(self):
        assert len(compute_data_hash([], "12m", "a", "b")) == 16
