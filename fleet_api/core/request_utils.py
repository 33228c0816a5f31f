"""Request utility functions for handling common request operations."""

import hashlib
import ipaddress
import logging

from fastapi import Request

from fleet_api.core.config import settings

logger = logging.getLogger(__name__)


def _is_valid_ip(ip_str: str) -> bool:
    """Check if a string is a valid IP address."""
    try:
        ipaddress.ip_address(ip_str)
        return True
    except ValueError:
        return False


def get_client_ip(request: Request) -> str:
    """Get the client IP address from a request.

    X-Forwarded-For and X-Real-IP can be spoofed by clients, so they are
    only honoured when the direct peer is one of TRUSTED_PROXY_IPS.
    """
    direct_ip = request.client.host if request.client else None
    trusted = settings.trusted_proxy_ips_set

    if trusted and direct_ip in trusted:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            client_ip = forwarded.split(",")[0].strip()
            if _is_valid_ip(client_ip):
                return client_ip
            logger.warning(f"Invalid IP in X-Forwarded-For header: {client_ip}")

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            ip = real_ip.strip()
            if _is_valid_ip(ip):
                return ip
            logger.warning(f"Invalid IP in X-Real-IP header: {real_ip}")

    if direct_ip:
        return direct_ip

    return "unknown"


def get_bearer_token(request: Request) -> str | None:
    """Extract the credential from ``Authorization: Bearer <token>``."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header[7:].strip()
    return token or None


def get_rate_limit_key(request: Request) -> str:
    """Derive the client key used to scope rate-limit counters.

    Clients presenting an X-API-Key are counted per key (hashed so the raw
    key never lands in the store); everyone else per source address.
    """
    api_key = request.headers.get("X-API-Key")
    if api_key:
        digest = hashlib.sha256(api_key.encode()).hexdigest()[:16]
        return f"api_key:{digest}"
    return f"ip:{get_client_ip(request)}"
