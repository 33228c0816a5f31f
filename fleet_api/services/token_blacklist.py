"""Redis-backed blacklist of revoked bearer tokens.

An entry lives exactly as long as the token it revokes would have stayed
valid, so the blacklist never grows beyond the set of live tokens.
"""

import logging
import math
import time
from collections.abc import Callable
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from fleet_api.core.config import settings
from fleet_api.core.errors import StoreUnavailable
from fleet_api.core.redis import get_redis_client

logger = logging.getLogger(__name__)

BLACKLIST_PREFIX = "blacklist_"


class TokenBlacklist:
    """Revocation markers keyed by the raw token string."""

    _instance: Optional["TokenBlacklist"] = None

    def __init__(
        self,
        client_getter: Callable[[], redis.Redis] = get_redis_client,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client_getter = client_getter
        self._clock = clock

    @classmethod
    def get_instance(cls) -> "TokenBlacklist":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @property
    def enabled(self) -> bool:
        """False when the token store is switched off by configuration."""
        return settings.redis_enabled

    @staticmethod
    def _key(token: str) -> str:
        return f"{BLACKLIST_PREFIX}{token}"

    async def revoke(self, token: str, expires_at: float) -> bool:
        """Blacklist a token until its ``exp`` timestamp.

        Returns False when nothing was stored: the store is disabled or the
        token has already expired on its own.
        """
        if not self.enabled:
            logger.warning("Token store disabled; revoked token stays valid until expiry")
            return False

        ttl = math.ceil(expires_at - self._clock())
        if ttl <= 0:
            return False

        try:
            await self._client_getter().set(self._key(token), "true", ex=ttl)
        except (RedisError, OSError) as e:
            logger.error(f"Failed to blacklist token: {e}")
            raise StoreUnavailable("Token store is unavailable") from e
        return True

    async def is_revoked(self, token: str) -> bool:
        """Check the blacklist; always False when the store is disabled.

        Store failures are raised as StoreUnavailable: a revoked token must
        not slip through because Redis is down.
        """
        if not self.enabled:
            return False

        try:
            return bool(await self._client_getter().exists(self._key(token)))
        except (RedisError, OSError) as e:
            logger.error(f"Blacklist lookup failed: {e}")
            raise StoreUnavailable("Token store is unavailable") from e


def get_token_blacklist() -> TokenBlacklist:
    """Dependency returning the shared blacklist."""
    return TokenBlacklist.get_instance()
