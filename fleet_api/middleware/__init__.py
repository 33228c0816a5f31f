"""Middleware module for the Fleet API."""

from fleet_api.middleware.rate_limit import RateLimitMiddleware
from fleet_api.middleware.rate_limit_cleanup import rate_limit_cleanup_loop
from fleet_api.middleware.request_logging import RequestLoggingMiddleware
from fleet_api.middleware.security_headers import SecurityHeadersMiddleware

__all__ = [
    "RateLimitMiddleware",
    "RequestLoggingMiddleware",
    "SecurityHeadersMiddleware",
    "rate_limit_cleanup_loop",
]
