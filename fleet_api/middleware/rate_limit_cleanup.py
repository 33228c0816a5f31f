"""Background cleanup of expired in-process rate limit windows."""

import asyncio
import logging

from fleet_api.middleware.rate_limit import get_rate_limit_registry

logger = logging.getLogger(__name__)


async def rate_limit_cleanup_loop(interval_seconds: float = 300) -> None:
    """Drop ended windows from the memory store so idle clients don't leak."""
    while True:
        try:
            await asyncio.sleep(interval_seconds)
            store = get_rate_limit_registry().memory_store()
            if store is None:
                continue
            removed = await store.cleanup_expired()
            if removed > 0:
                logger.debug(f"Rate limiter cleanup: removed {removed} expired windows")
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.warning(f"Rate limiter cleanup error: {e}")
