"""Two-tier result cache.

``CacheStore`` keeps a bounded, TTL-aware in-process tier that is always
authoritative as a fallback, plus an optional Redis tier shared between
processes. Redis problems are logged and swallowed: a distributed-tier failure
degrades to a cache miss (or a memory-only write), never to a caller-visible
error. Distributed writes run as background tasks so a slow Redis never delays
the response.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional

import redis.asyncio as aioredis
from pydantic import BaseModel, ValidationError
from redis.exceptions import RedisError

from projectgen.config import CacheConfig
from projectgen.errors import CacheUnavailable
from projectgen.models import GenerationRequest
from projectgen.utils import canonical_json

logger = logging.getLogger(__name__)

KEY_LENGTH = 16


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------


def normalize_request(request: GenerationRequest) -> dict[str, Any]:
    """Reduce a request to the fields that determine its output.

    Session id and credential are excluded: they affect quota, not content.
    Optional strings are normalised to ``""`` so ``None`` and an omitted
    field hash the same.
    """
    return {
        "description": request.description.strip(),
        "projectName": request.project_name or "",
        "template": request.template or "",
        "vision": request.vision or "",
        "mission": request.mission or "",
        "inspirations": [{"type": i.type, "value": i.value} for i in request.inspirations],
        "integrations": {k: v for k, v in request.integrations.items()},
        "branding": request.branding.model_dump(mode="json"),
        "modelTier": request.model_tier.value,
        "seed": request.seed,
    }


def make_cache_key(request: GenerationRequest) -> str:
    """Derive the deterministic cache key for a request.

    The normalised fields are serialised with sorted keys, so the result does
    not depend on mapping insertion order, and hashed with SHA-256.
    """
    digest = hashlib.sha256(canonical_json(normalize_request(request)).encode("utf-8"))
    return digest.hexdigest()[:KEY_LENGTH]


# ---------------------------------------------------------------------------
# Entries & statistics
# ---------------------------------------------------------------------------


class CacheEntry(BaseModel):
    """A cached generation result."""

    key: str
    payload: dict[str, Any]
    created_at: float
    ttl_seconds: float

    @property
    def expires_at(self) -> float:
        return self.created_at + self.ttl_seconds

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    sets: int = 0
    errors: int = 0
    memory_size: int = 0
    distributed_available: bool = False

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


# ---------------------------------------------------------------------------
# Tiers
# ---------------------------------------------------------------------------


class MemoryTier:
    """Bounded in-process tier.

    When a write pushes the entry count over ``max_entries``, expired entries
    are purged first; if the tier is still over the ceiling the oldest
    entries are evicted.
    """

    def __init__(self, max_entries: int = 100, clock: Callable[[], float] = time.time) -> None:
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return None
            return entry

    def set(self, entry: CacheEntry) -> None:
        with self._lock:
            self._entries[entry.key] = entry
            self._entries.move_to_end(entry.key)
            if len(self._entries) > self.max_entries:
                self._purge_expired()
                while len(self._entries) > self.max_entries:
                    self._entries.popitem(last=False)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count

    def _purge_expired(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Purged %d expired cache entries", len(expired))
        return len(expired)


class RedisTier:
    """Distributed tier backed by ``redis.asyncio``.

    Every operation raises ``CacheUnavailable`` on any Redis or decoding
    problem; ``CacheStore`` decides what to do with it.
    """

    def __init__(self, client: aioredis.Redis, key_prefix: str = "project:") -> None:
        self.client = client
        self.key_prefix = key_prefix

    @classmethod
    def from_url(cls, url: str, key_prefix: str = "project:") -> "RedisTier":
        return cls(aioredis.from_url(url, decode_responses=True), key_prefix=key_prefix)

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def get(self, key: str) -> Optional[CacheEntry]:
        try:
            raw = await self.client.get(self._key(key))
            if raw is None:
                return None
            return CacheEntry.model_validate_json(raw)
        except (RedisError, OSError, ValidationError) as exc:
            raise CacheUnavailable(f"Redis get failed for {key}: {exc}") from exc

    async def set(self, entry: CacheEntry) -> None:
        try:
            await self.client.set(
                self._key(entry.key),
                entry.model_dump_json(),
                ex=max(1, int(entry.ttl_seconds)),
            )
        except (RedisError, OSError) as exc:
            raise CacheUnavailable(f"Redis set failed for {entry.key}: {exc}") from exc

    async def delete(self, key: str) -> None:
        try:
            await self.client.delete(self._key(key))
        except (RedisError, OSError) as exc:
            raise CacheUnavailable(f"Redis delete failed for {key}: {exc}") from exc

    async def clear(self) -> int:
        try:
            keys = [k async for k in self.client.scan_iter(match=f"{self.key_prefix}*")]
            if keys:
                await self.client.delete(*keys)
            return len(keys)
        except (RedisError, OSError) as exc:
            raise CacheUnavailable(f"Redis clear failed: {exc}") from exc


# ---------------------------------------------------------------------------
# CacheStore
# ---------------------------------------------------------------------------


class CacheStore:
    """Deterministic-key get/set/evict over the two tiers.

    Safe to share between concurrently running orchestrators: memory-tier
    operations are lock-guarded and concurrent writers of the same key simply
    overwrite each other.
    """

    def __init__(
        self,
        max_entries: int = 100,
        ttl_seconds: float = 30 * 60,
        distributed: Optional[RedisTier] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.memory = MemoryTier(max_entries=max_entries, clock=clock)
        self.distributed = distributed
        self._clock = clock
        self._stats = CacheStats()
        self._pending: set[asyncio.Task] = set()

    @classmethod
    def from_config(cls, config: CacheConfig) -> "CacheStore":
        distributed = None
        if config.redis_url:
            distributed = RedisTier.from_url(config.redis_url, key_prefix=config.key_prefix)
        return cls(
            max_entries=config.max_entries,
            ttl_seconds=config.ttl_seconds,
            distributed=distributed,
        )

    @property
    def distributed_available(self) -> bool:
        return self.distributed is not None

    async def get(self, key: str) -> Optional[CacheEntry]:
        """Return the live entry for *key*, or ``None`` on a miss."""
        if self.distributed is not None:
            try:
                entry = await self.distributed.get(key)
                if entry is not None and not entry.is_expired(self._clock()):
                    self._stats.hits += 1
                    logger.debug("Redis hit: %s", key)
                    return entry
            except CacheUnavailable as exc:
                self._stats.errors += 1
                logger.warning("%s; falling back to memory tier", exc.message)

        entry = self.memory.get(key)
        if entry is not None:
            self._stats.hits += 1
            logger.debug("Memory hit: %s", key)
            return entry

        self._stats.misses += 1
        return None

    async def set(
        self, key: str, payload: dict[str, Any], ttl: Optional[float] = None
    ) -> CacheEntry:
        """Store *payload* under *key*.

        The memory tier is written before returning; the distributed write is
        scheduled in the background.
        """
        entry = CacheEntry(
            key=key,
            payload=payload,
            created_at=self._clock(),
            ttl_seconds=ttl if ttl is not None else self.ttl_seconds,
        )
        self.memory.set(entry)
        self._stats.sets += 1

        if self.distributed is not None:
            task = asyncio.create_task(self._write_distributed(entry))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        return entry

    async def delete(self, key: str) -> None:
        if self.distributed is not None:
            try:
                await self.distributed.delete(key)
            except CacheUnavailable as exc:
                self._stats.errors += 1
                logger.warning(exc.message)
        self.memory.delete(key)

    async def clear(self) -> None:
        """Drop every entry from both tiers and reset statistics."""
        await self.flush()
        if self.distributed is not None:
            try:
                removed = await self.distributed.clear()
                logger.info("Cleared %d Redis cache entries", removed)
            except CacheUnavailable as exc:
                logger.warning(exc.message)
        removed = self.memory.clear()
        logger.info("Cleared %d memory cache entries", removed)
        self._stats = CacheStats()

    async def flush(self) -> None:
        """Wait for all in-flight distributed writes to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def stats(self) -> CacheStats:
        return CacheStats(
            hits=self._stats.hits,
            misses=self._stats.misses,
            sets=self._stats.sets,
            errors=self._stats.errors,
            memory_size=len(self.memory),
            distributed_available=self.distributed_available,
        )

    async def _write_distributed(self, entry: CacheEntry) -> None:
        assert self.distributed is not None
        try:
            await self.distributed.set(entry)
        except CacheUnavailable as exc:
            self._stats.errors += 1
            logger.warning("%s; entry kept in memory only", exc.message)
