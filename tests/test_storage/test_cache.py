"""Unit tests for the result cache (projectgen.storage.cache).

Tests cover:
- Cache key derivation (stability, order independence, excluded fields)
- MemoryTier TTL expiry and bounded eviction
- RedisTier error mapping
- CacheStore two-tier get/set/delete/clear, statistics, background writes
- Concurrent writers of one key
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from projectgen.config import CacheConfig
from projectgen.errors import CacheUnavailable
from projectgen.storage.cache import (
    KEY_LENGTH,
    CacheEntry,
    CacheStore,
    MemoryTier,
    RedisTier,
    make_cache_key,
    normalize_request,
)


def _entry(key: str, created_at: float, ttl: float = 60.0) -> CacheEntry:
    return CacheEntry(key=key, payload={"key": key}, created_at=created_at, ttl_seconds=ttl)


def _mock_redis() -> MagicMock:
    client = MagicMock()
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)
    return client


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------


class TestCacheKey:
    @pytest.mark.unit
    def test_key_is_short_hex(self, make_request):
        key = make_cache_key(make_request())
        assert len(key) == KEY_LENGTH
        int(key, 16)

    @pytest.mark.unit
    def test_identical_requests_share_a_key(self, make_request):
        assert make_cache_key(make_request()) == make_cache_key(make_request())

    @pytest.mark.unit
    def test_integration_order_does_not_matter(self, make_request):
        first = make_request(integrations={"auth": "clerk", "payments": "stripe", "email": "resend"})
        second = make_request(integrations={"email": "resend", "payments": "stripe", "auth": "clerk"})
        assert make_cache_key(first) == make_cache_key(second)

    @pytest.mark.unit
    def test_session_and_credential_excluded(self, make_request):
        first = make_request(sessionId="a")
        second = make_request(sessionId="b", userCredential="token")
        assert make_cache_key(first) == make_cache_key(second)

    @pytest.mark.unit
    def test_none_and_omitted_optional_strings_match(self, make_request):
        assert make_cache_key(make_request(vision=None)) == make_cache_key(make_request())

    @pytest.mark.unit
    def test_seed_changes_key(self, make_request):
        assert make_cache_key(make_request(seed=1)) != make_cache_key(make_request(seed=2))

    @pytest.mark.unit
    def test_whole_float_seed_matches_int(self, make_request):
        assert make_cache_key(make_request(seed=3.0)) == make_cache_key(make_request(seed=3))
        assert make_request(seed=3.0).sampling_seed == 3

    @pytest.mark.unit
    def test_fractional_seed(self, make_request):
        request = make_request(seed=0.5)
        assert make_cache_key(request) != make_cache_key(make_request(seed=0))
        assert request.sampling_seed == make_request(seed=0.5).sampling_seed
        assert 0 <= request.sampling_seed < 2**31

    @pytest.mark.unit
    def test_description_changes_key(self, make_request):
        assert make_cache_key(make_request(description="A blog")) != make_cache_key(
            make_request(description="A shop")
        )

    @pytest.mark.unit
    def test_normalized_fields(self, make_request):
        normalized = normalize_request(make_request(description="  padded  "))
        assert normalized["description"] == "padded"
        assert normalized["vision"] == ""
        assert "sessionId" not in normalized
        assert "userCredential" not in normalized


# ---------------------------------------------------------------------------
# MemoryTier
# ---------------------------------------------------------------------------


class TestMemoryTier:
    @pytest.mark.unit
    def test_get_returns_live_entry(self, clock):
        tier = MemoryTier(clock=clock)
        tier.set(_entry("a", clock()))
        assert tier.get("a").payload == {"key": "a"}

    @pytest.mark.unit
    def test_expired_entry_is_dropped(self, clock):
        tier = MemoryTier(clock=clock)
        tier.set(_entry("a", clock(), ttl=10))
        clock.advance(10)
        assert tier.get("a") is None
        assert len(tier) == 0

    @pytest.mark.unit
    def test_purges_expired_before_evicting(self, clock):
        tier = MemoryTier(max_entries=2, clock=clock)
        tier.set(_entry("old", clock(), ttl=5))
        tier.set(_entry("keep", clock(), ttl=100))
        clock.advance(10)
        tier.set(_entry("new", clock(), ttl=100))
        assert tier.get("old") is None
        assert tier.get("keep") is not None
        assert tier.get("new") is not None

    @pytest.mark.unit
    def test_evicts_oldest_when_nothing_expired(self, clock):
        tier = MemoryTier(max_entries=2, clock=clock)
        for key in ("a", "b", "c"):
            tier.set(_entry(key, clock()))
        assert len(tier) == 2
        assert tier.get("a") is None
        assert tier.get("c") is not None

    @pytest.mark.unit
    def test_clear_returns_count(self, clock):
        tier = MemoryTier(clock=clock)
        tier.set(_entry("a", clock()))
        tier.set(_entry("b", clock()))
        assert tier.clear() == 2
        assert len(tier) == 0


# ---------------------------------------------------------------------------
# RedisTier
# ---------------------------------------------------------------------------


class TestRedisTier:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_set_uses_prefix_and_ttl(self, clock):
        client = _mock_redis()
        tier = RedisTier(client, key_prefix="project:")
        await tier.set(_entry("abc", clock(), ttl=1800))
        args, kwargs = client.set.call_args
        assert args[0] == "project:abc"
        assert kwargs["ex"] == 1800

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_get_decodes_entry(self, clock):
        client = _mock_redis()
        client.get.return_value = _entry("abc", clock()).model_dump_json()
        entry = await RedisTier(client).get("abc")
        assert entry.key == "abc"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_get_miss(self):
        assert await RedisTier(_mock_redis()).get("missing") is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_redis_error_becomes_cache_unavailable(self):
        client = _mock_redis()
        client.get.side_effect = RedisConnectionError("down")
        with pytest.raises(CacheUnavailable):
            await RedisTier(client).get("abc")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_corrupt_payload_becomes_cache_unavailable(self):
        client = _mock_redis()
        client.get.return_value = "not json"
        with pytest.raises(CacheUnavailable):
            await RedisTier(client).get("abc")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_clear_deletes_prefixed_keys(self):
        client = _mock_redis()

        async def scan_iter(match):
            assert match == "project:*"
            for key in ("project:a", "project:b"):
                yield key

        client.scan_iter = scan_iter
        assert await RedisTier(client).clear() == 2
        client.delete.assert_awaited_once_with("project:a", "project:b")


# ---------------------------------------------------------------------------
# CacheStore
# ---------------------------------------------------------------------------


class TestCacheStore:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_miss_then_hit(self, clock):
        store = CacheStore(clock=clock)
        assert await store.get("k") is None
        await store.set("k", {"files": []})
        entry = await store.get("k")
        assert entry.payload == {"files": []}
        stats = store.stats()
        assert (stats.hits, stats.misses, stats.sets) == (1, 1, 1)
        assert stats.hit_rate == 0.5

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_default_ttl_is_thirty_minutes(self, clock):
        store = CacheStore(clock=clock)
        entry = await store.set("k", {})
        assert entry.ttl_seconds == 1800

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_hit_before_ttl_miss_after(self, clock):
        store = CacheStore(clock=clock)
        await store.set("k", {"v": 1})
        clock.advance(29 * 60)
        assert await store.get("k") is not None
        clock.advance(2 * 60)
        assert await store.get("k") is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_custom_ttl(self, clock):
        store = CacheStore(clock=clock)
        await store.set("k", {}, ttl=5)
        clock.advance(6)
        assert await store.get("k") is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_delete(self, clock):
        store = CacheStore(clock=clock)
        await store.set("k", {})
        await store.delete("k")
        assert await store.get("k") is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_distributed_hit_preferred(self, clock):
        client = _mock_redis()
        client.get.return_value = CacheEntry(
            key="k", payload={"source": "redis"}, created_at=clock(), ttl_seconds=60
        ).model_dump_json()
        store = CacheStore(distributed=RedisTier(client), clock=clock)
        entry = await store.get("k")
        assert entry.payload == {"source": "redis"}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_distributed_failure_falls_back_to_memory(self, clock):
        client = _mock_redis()
        client.get.side_effect = RedisConnectionError("down")
        client.set.side_effect = RedisConnectionError("down")
        store = CacheStore(distributed=RedisTier(client), clock=clock)

        await store.set("k", {"source": "memory"})
        await store.flush()
        entry = await store.get("k")

        assert entry.payload == {"source": "memory"}
        assert store.stats().errors == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_distributed_write_runs_in_background(self, clock):
        release = asyncio.Event()
        client = _mock_redis()

        async def slow_set(*args, **kwargs):
            await release.wait()
            return True

        client.set = AsyncMock(side_effect=slow_set)
        store = CacheStore(distributed=RedisTier(client), clock=clock)

        await store.set("k", {"v": 1})
        # The memory tier is readable before Redis has acknowledged the write.
        assert store.memory.get("k") is not None

        release.set()
        await store.flush()
        client.set.assert_awaited_once()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_clear_resets_everything(self, clock):
        store = CacheStore(clock=clock)
        await store.set("a", {})
        await store.get("a")
        await store.clear()
        stats = store.stats()
        assert stats.memory_size == 0
        assert (stats.hits, stats.sets) == (0, 0)

    @pytest.mark.unit
    def test_from_config_without_redis(self):
        store = CacheStore.from_config(CacheConfig(ttl_seconds=60, max_entries=5))
        assert store.ttl_seconds == 60
        assert store.memory.max_entries == 5
        assert store.distributed_available is False


# ---------------------------------------------------------------------------
# Concurrent access
# ---------------------------------------------------------------------------


class TestConcurrentWriters:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_same_key_leaves_one_valid_entry(self, clock):
        store = CacheStore(clock=clock)
        payloads = [{"files": [{"path": f"writer-{i}.ts", "content": ""}]} for i in range(10)]

        await asyncio.gather(*(store.set("k", payload) for payload in payloads))

        entry = await store.get("k")
        assert entry.payload in payloads
        assert store.stats().memory_size == 1
        assert store.stats().sets == 10

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_threaded_writers_share_the_memory_tier(self, clock):
        tier = MemoryTier(max_entries=5, clock=clock)
        entries = [_entry(f"k{i % 8}", clock()) for i in range(200)]

        await asyncio.gather(*(asyncio.to_thread(tier.set, e) for e in entries))

        assert len(tier) == 5
        for key in [f"k{i}" for i in range(8)]:
            entry = tier.get(key)
            assert entry is None or entry.key == key

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_distributed_writes_all_flushed(self, clock):
        client = _mock_redis()
        store = CacheStore(distributed=RedisTier(client), clock=clock)

        await asyncio.gather(*(store.set("k", {"writer": i}) for i in range(5)))
        await store.flush()

        assert client.set.await_count == 5
        assert {call.args[0] for call in client.set.await_args_list} == {"project:k"}
        assert (await store.get("k")).payload["writer"] in range(5)
