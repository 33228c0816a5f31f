"""Rate limiting middleware for API protection."""

import logging
import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from fleet_api.core.config import settings
from fleet_api.core.errors import RateLimited, error_response
from fleet_api.core.request_utils import get_rate_limit_key
from fleet_api.services.rate_limit_store import (
    MemoryRateLimitStore,
    RateLimitStore,
    build_rate_limit_store,
)

logger = logging.getLogger(__name__)

KEY_PREFIX = "rate_limit:"


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of counting one request."""

    allowed: bool
    limit: int
    remaining: int
    reset_time: datetime

    def retry_after(self, now: float | None = None) -> int:
        now = time.time() if now is None else now
        return max(1, math.ceil(self.reset_time.timestamp() - now))

    def headers(self) -> dict[str, str]:
        return {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.retry_after()),
        }


class RateLimiter:
    """Fixed-window request quota for one route group."""

    def __init__(
        self,
        name: str,
        window_seconds: int,
        max_requests: int,
        store: RateLimitStore,
        message: str = "Too many requests, please try again later.",
        skip_successful_requests: bool = False,
        skip_failed_requests: bool = False,
    ) -> None:
        self.name = name
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.store = store
        self.message = message
        self.skip_successful_requests = skip_successful_requests
        self.skip_failed_requests = skip_failed_requests

    def _key(self, client_key: str) -> str:
        return f"{KEY_PREFIX}{self.name}:{client_key}"

    async def hit(self, client_key: str) -> RateLimitDecision:
        """Count a request and decide whether it may proceed."""
        result = await self.store.increment(self._key(client_key), self.window_seconds)
        return RateLimitDecision(
            allowed=result.total_hits <= self.max_requests,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - result.total_hits),
            reset_time=result.reset_time,
        )

    async def undo(self, client_key: str) -> None:
        """Compensate a request that should not count against the quota."""
        await self.store.decrement(self._key(client_key))

    async def reset(self, client_key: str) -> None:
        """Administrative clear of a client's counter."""
        await self.store.reset_key(self._key(client_key))
        logger.info(f"Rate limit reset for {client_key} in group {self.name}")

    def should_undo(self, status_code: int) -> bool:
        if self.skip_successful_requests and status_code < 400:
            return True
        if self.skip_failed_requests and status_code >= 400:
            return True
        return False

    def describe(self) -> dict[str, object]:
        return {
            "name": self.name,
            "window_seconds": self.window_seconds,
            "max_requests": self.max_requests,
            "skip_successful_requests": self.skip_successful_requests,
            "skip_failed_requests": self.skip_failed_requests,
        }


@dataclass(frozen=True)
class RateLimitRule:
    """Routes a set of path prefixes to a limiter."""

    limiter: RateLimiter
    path_prefixes: tuple[str, ...]

    def matches(self, path: str) -> bool:
        # Segment-boundary match: /api/authx must not match /api/auth
        return any(path == prefix or path.startswith(prefix + "/") for prefix in self.path_prefixes)


class RateLimitRegistry:
    """Process-wide limiters and the rules that select them.

    Rules are evaluated in order; the first match wins, so narrower groups
    come before broader ones.
    """

    _instance: Optional["RateLimitRegistry"] = None
    _instance_lock: threading.Lock = threading.Lock()

    def __init__(self, store: RateLimitStore | None = None) -> None:
        self.store = store if store is not None else build_rate_limit_store(settings.redis_enabled)
        window = settings.rate_limit_window_seconds

        auth_limiter = RateLimiter(
            name="auth",
            window_seconds=window,
            max_requests=settings.auth_rate_limit_max_requests,
            store=self.store,
            message=(
                f"Too many login attempts, please try again after {window // 60} minutes."
            ),
            skip_successful_requests=True,
        )
        api_limiter = RateLimiter(
            name="api",
            window_seconds=window,
            max_requests=settings.rate_limit_max_requests,
            store=self.store,
            message="Too many requests from this IP, please try again later.",
        )

        self.limiters: dict[str, RateLimiter] = {
            auth_limiter.name: auth_limiter,
            api_limiter.name: api_limiter,
        }
        self.rules: list[RateLimitRule] = [
            RateLimitRule(auth_limiter, ("/api/auth/login", "/api/auth/register")),
            RateLimitRule(api_limiter, ("/api",)),
        ]

    @classmethod
    def get_instance(cls) -> "RateLimitRegistry":
        """Get the singleton instance (thread-safe)."""
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def get(self, name: str) -> RateLimiter | None:
        return self.limiters.get(name)

    def match(self, path: str) -> RateLimiter | None:
        for rule in self.rules:
            if rule.matches(path):
                return rule.limiter
        return None

    def memory_store(self) -> MemoryRateLimitStore | None:
        """The in-process store in use, if any (for periodic cleanup)."""
        if isinstance(self.store, MemoryRateLimitStore):
            return self.store
        fallback = getattr(self.store, "fallback", None)
        return fallback if isinstance(fallback, MemoryRateLimitStore) else None


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limiting middleware with per-route-group quotas.

    Features:
    - Counters per client key (API key or source IP) and route group
    - Fixed window shared through Redis, per-process fallback
    - Compensation of requests that should not count (e.g. successful logins)
    - RateLimit-* headers on responses, Retry-After on rejection
    """

    def __init__(
        self,
        app: ASGIApp,
        registry: RateLimitRegistry | None = None,
        exclude_paths: list[str] | None = None,
        key_func: Callable[[Request], str] = get_rate_limit_key,
        enabled: bool = True,
    ) -> None:
        super().__init__(app)
        self._registry = registry
        self.exclude_paths = exclude_paths if exclude_paths is not None else ["/health"]
        self.key_func = key_func
        self.enabled = enabled

    @property
    def registry(self) -> RateLimitRegistry:
        # Resolved per request so a reset singleton is picked up
        return self._registry or RateLimitRegistry.get_instance()

    def _is_excluded(self, path: str) -> bool:
        return any(path == p or path.startswith(p + "/") for p in self.exclude_paths)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Process request with rate limiting."""
        if not self.enabled or request.method == "OPTIONS":
            return await call_next(request)

        path = request.url.path
        if self._is_excluded(path):
            return await call_next(request)

        limiter = self.registry.match(path)
        if limiter is None:
            return await call_next(request)

        client_key = self.key_func(request)
        decision = await limiter.hit(client_key)

        if not decision.allowed:
            logger.warning(
                f"Rate limit exceeded for {client_key} on {path} ({limiter.name})",
                extra={"rate_limit_group": limiter.name, "client_key": client_key, "path": path},
            )
            response = error_response(
                RateLimited(
                    limiter.message,
                    reset_time=decision.reset_time,
                    retry_after=decision.retry_after(),
                )
            )
            response.headers.update(decision.headers())
            return response

        response = await call_next(request)

        if limiter.should_undo(response.status_code):
            await limiter.undo(client_key)

        for key, value in decision.headers().items():
            response.headers[key] = value

        return response


def get_rate_limit_registry() -> RateLimitRegistry:
    """Get the rate limit registry for stats/management."""
    return RateLimitRegistry.get_instance()
