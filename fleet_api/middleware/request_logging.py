"""One log line per request, in the spirit of an HTTP access log."""

import logging
import time

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from fleet_api.core.request_utils import get_client_ip

logger = logging.getLogger("fleet_api.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - start) * 1000, 1)

        client = get_client_ip(request)
        user_agent = request.headers.get("user-agent", "-")
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            f'{client} "{request.method} {request.url.path}" '
            f'{response.status_code} {duration_ms}ms "{user_agent}"',
            extra={
                "client": client,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "user_agent": user_agent,
            },
        )
        return response
