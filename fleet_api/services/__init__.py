# Fleet API Services
from fleet_api.services.auth import AuthService
from fleet_api.services.rate_limit_store import (
    FallbackRateLimitStore,
    MemoryRateLimitStore,
    RateLimitStore,
    RedisRateLimitStore,
)
from fleet_api.services.session import Session, SessionService
from fleet_api.services.token_blacklist import TokenBlacklist, get_token_blacklist
from fleet_api.services.user_repository import UserRepository

__all__ = [
    "AuthService",
    "FallbackRateLimitStore",
    "MemoryRateLimitStore",
    "RateLimitStore",
    "RedisRateLimitStore",
    "Session",
    "SessionService",
    "TokenBlacklist",
    "UserRepository",
    "get_token_blacklist",
]
