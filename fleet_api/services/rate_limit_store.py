"""Counter stores for fixed-window rate limiting.

RedisRateLimitStore shares counters across every API instance.
MemoryRateLimitStore keeps them in-process. FallbackRateLimitStore serves
from Redis and switches to memory while Redis is unreachable, trading the
global quota for availability.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

import redis.asyncio as redis
from redis.exceptions import RedisError

from fleet_api.core.errors import StoreUnavailable
from fleet_api.core.redis import get_redis_client

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitHit:
    """Counter state right after an increment."""

    total_hits: int
    reset_time: datetime


class RateLimitStore(ABC):
    """Interface shared by the counter stores."""

    @abstractmethod
    async def increment(self, key: str, window_seconds: int) -> RateLimitHit:
        """Count one request and return the post-increment state."""

    @abstractmethod
    async def decrement(self, key: str) -> None:
        """Give back one request (never below zero)."""

    @abstractmethod
    async def reset_key(self, key: str) -> None:
        """Drop the counter for a key."""


class RedisRateLimitStore(RateLimitStore):
    """INCR / EXPIRE / TTL counters in Redis."""

    def __init__(
        self,
        client_getter: Callable[[], redis.Redis] = get_redis_client,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client_getter = client_getter
        self._clock = clock

    async def increment(self, key: str, window_seconds: int) -> RateLimitHit:
        client = self._client_getter()
        current = int(await client.incr(key))
        if current == 1:
            await client.expire(key, window_seconds)

        # INCR and TTL are separate round trips; the reading may be slightly stale
        ttl = int(await client.ttl(key))
        if ttl < 0:
            # -1: expiry never set (crash between INCR and EXPIRE); -2: key just expired
            await client.expire(key, window_seconds)
            ttl = window_seconds

        reset_time = datetime.fromtimestamp(self._clock() + ttl, tz=UTC)
        return RateLimitHit(total_hits=current, reset_time=reset_time)

    async def decrement(self, key: str) -> None:
        client = self._client_getter()
        value = int(await client.decr(key))
        if value < 0:
            # Window already expired or empty; a missing key counts as zero
            await client.delete(key)

    async def reset_key(self, key: str) -> None:
        await self._client_getter().delete(key)


@dataclass
class _Window:
    count: int
    reset_at: float


class MemoryRateLimitStore(RateLimitStore):
    """Per-process fixed windows.

    Counts are local to this process: behind a load balancer each instance
    enforces its own quota.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = asyncio.Lock()

    async def increment(self, key: str, window_seconds: int) -> RateLimitHit:
        async with self._lock:
            now = self._clock()
            window = self._windows.get(key)
            if window is None or now >= window.reset_at:
                window = _Window(count=0, reset_at=now + window_seconds)
                self._windows[key] = window
            window.count += 1
            return RateLimitHit(
                total_hits=window.count,
                reset_time=datetime.fromtimestamp(window.reset_at, tz=UTC),
            )

    async def decrement(self, key: str) -> None:
        async with self._lock:
            window = self._windows.get(key)
            if window is not None and window.count > 0 and self._clock() < window.reset_at:
                window.count -= 1

    async def reset_key(self, key: str) -> None:
        async with self._lock:
            self._windows.pop(key, None)

    async def cleanup_expired(self) -> int:
        """Remove windows that have already ended. Returns count removed."""
        async with self._lock:
            now = self._clock()
            expired = [key for key, window in self._windows.items() if now >= window.reset_at]
            for key in expired:
                del self._windows[key]
            return len(expired)

    def __len__(self) -> int:
        return len(self._windows)


_STORE_ERRORS = (RedisError, OSError, StoreUnavailable)


class FallbackRateLimitStore(RateLimitStore):
    """Redis first, in-process counters while Redis is unreachable."""

    def __init__(self, primary: RateLimitStore, fallback: MemoryRateLimitStore) -> None:
        self.primary = primary
        self.fallback = fallback
        self._degraded = False

    @property
    def degraded(self) -> bool:
        return self._degraded

    def _mark_degraded(self, error: Exception) -> None:
        if not self._degraded:
            logger.warning(
                f"Rate limit store unavailable ({error}); "
                "falling back to per-process counters"
            )
        self._degraded = True

    def _mark_recovered(self) -> None:
        if self._degraded:
            logger.info("Rate limit store recovered; using shared counters again")
        self._degraded = False

    async def increment(self, key: str, window_seconds: int) -> RateLimitHit:
        try:
            hit = await self.primary.increment(key, window_seconds)
        except _STORE_ERRORS as e:
            self._mark_degraded(e)
            return await self.fallback.increment(key, window_seconds)
        self._mark_recovered()
        return hit

    async def decrement(self, key: str) -> None:
        if self._degraded:
            await self.fallback.decrement(key)
            return
        try:
            await self.primary.decrement(key)
        except _STORE_ERRORS as e:
            self._mark_degraded(e)
            await self.fallback.decrement(key)

    async def reset_key(self, key: str) -> None:
        # Clear both so an administrative reset holds regardless of mode
        await self.fallback.reset_key(key)
        try:
            await self.primary.reset_key(key)
        except _STORE_ERRORS as e:
            self._mark_degraded(e)


def build_rate_limit_store(redis_enabled: bool) -> RateLimitStore:
    """Pick the store for the configured deployment mode."""
    if not redis_enabled:
        logger.info("Rate limiting uses per-process counters (Redis disabled)")
        return MemoryRateLimitStore()
    return FallbackRateLimitStore(RedisRateLimitStore(), MemoryRateLimitStore())
