"""Shared state for the generation pipeline: result cache and session quotas.

Key classes:
    CacheStore            - Two-tier (memory + optional Redis) result cache
    InMemoryRateLimiter   - Per-session fixed-window quota in process memory
    RedisRateLimiter      - Same quota shared across processes via Redis
"""

from .cache import CacheEntry, CacheStats, CacheStore, MemoryTier, RedisTier, make_cache_key
from .rate_limiter import (
    InMemoryRateLimiter,
    RateLimiter,
    RedisRateLimiter,
    rate_limiter_from_config,
)

__all__ = [
    # Cache
    "CacheStore",
    "CacheEntry",
    "CacheStats",
    "MemoryTier",
    "RedisTier",
    "make_cache_key",
    # Rate limiting
    "RateLimiter",
    "InMemoryRateLimiter",
    "RedisRateLimiter",
    "rate_limiter_from_config",
]
