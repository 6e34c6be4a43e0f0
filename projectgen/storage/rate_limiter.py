"""Session-scoped generation quotas.

Uncredentialed callers get a fixed number of generations per window; a
caller-supplied credential exempts them entirely. Two implementations share
the ``RateLimiter`` protocol: an in-process limiter with lock-guarded
counters, and a Redis limiter whose ``INCR``/``EXPIRE`` pipeline is atomic
across processes and falls back to the in-process limiter when Redis is
unreachable.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Optional, Protocol

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from projectgen.config import RateLimitConfig
from projectgen.models import RateLimitDecision

logger = logging.getLogger(__name__)


class RateLimiter(Protocol):
    async def check(
        self, session_id: str, credential: Optional[str] = None
    ) -> RateLimitDecision: ...


def _exempt() -> RateLimitDecision:
    return RateLimitDecision(allowed=True, remaining=None, reset_at=0.0)


class InMemoryRateLimiter:
    """Fixed-window counter per session, held in process memory.

    Once ``max_sessions`` windows are tracked, expired ones are dropped before
    the next request is counted. Live windows are never evicted.
    """

    def __init__(
        self,
        max_requests: int = 3,
        window_seconds: float = 24 * 60 * 60,
        max_sessions: int = 10_000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.max_sessions = max_sessions
        self._clock = clock
        # session_id -> (count, window_reset_at)
        self._windows: dict[str, tuple[int, float]] = {}
        self._lock = threading.Lock()

    async def check(
        self, session_id: str, credential: Optional[str] = None
    ) -> RateLimitDecision:
        if credential:
            return _exempt()
        return self.consume(session_id)

    def consume(self, session_id: str) -> RateLimitDecision:
        """Count one request against *session_id* and return the decision."""
        now = self._clock()
        with self._lock:
            if len(self._windows) >= self.max_sessions:
                self._purge_expired(now)
            count, reset_at = self._windows.get(session_id, (0, 0.0))
            if now >= reset_at:
                count, reset_at = 0, now + self.window_seconds
            if count >= self.max_requests:
                self._windows[session_id] = (count, reset_at)
                return RateLimitDecision(allowed=False, remaining=0, reset_at=reset_at)
            count += 1
            self._windows[session_id] = (count, reset_at)
        return RateLimitDecision(
            allowed=True, remaining=self.max_requests - count, reset_at=reset_at
        )

    def __len__(self) -> int:
        return len(self._windows)

    def _purge_expired(self, now: float) -> int:
        expired = [k for k, (_, reset_at) in self._windows.items() if now >= reset_at]
        for key in expired:
            del self._windows[key]
        if expired:
            logger.debug("Purged %d expired rate-limit windows", len(expired))
        return len(expired)


class RedisRateLimiter:
    """Fixed-window counter stored in Redis, shared by every process."""

    def __init__(
        self,
        client: aioredis.Redis,
        max_requests: int = 3,
        window_seconds: int = 24 * 60 * 60,
        key_prefix: str = "ratelimit:",
        fallback: Optional[InMemoryRateLimiter] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client = client
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.key_prefix = key_prefix
        self._clock = clock
        self.fallback = fallback or InMemoryRateLimiter(
            max_requests=max_requests, window_seconds=window_seconds, clock=clock
        )

    async def check(
        self, session_id: str, credential: Optional[str] = None
    ) -> RateLimitDecision:
        if credential:
            return _exempt()

        key = f"{self.key_prefix}{session_id}"
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.incr(key)
                pipe.expire(key, self.window_seconds, nx=True)
                pipe.ttl(key)
                count, _, ttl = await pipe.execute()
        except (RedisError, OSError) as exc:
            logger.warning("Redis rate limiter unavailable (%s); using in-memory limiter", exc)
            return self.fallback.consume(session_id)

        ttl_seconds = ttl if ttl and ttl > 0 else self.window_seconds
        reset_at = self._clock() + ttl_seconds
        if count > self.max_requests:
            return RateLimitDecision(allowed=False, remaining=0, reset_at=reset_at)
        return RateLimitDecision(
            allowed=True, remaining=self.max_requests - count, reset_at=reset_at
        )


def rate_limiter_from_config(config: RateLimitConfig) -> RateLimiter:
    """Build the limiter the configuration asks for."""
    if config.redis_url:
        return RedisRateLimiter(
            aioredis.from_url(config.redis_url, decode_responses=True),
            max_requests=config.max_requests,
            window_seconds=config.window_seconds,
            key_prefix=config.key_prefix,
        )
    return InMemoryRateLimiter(
        max_requests=config.max_requests,
        window_seconds=config.window_seconds,
        max_sessions=config.max_sessions,
    )
