"""Fleet API - FastAPI Application Factory."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fleet_api.api import api_router
from fleet_api.api.health import router as health_router
from fleet_api.core import engine, settings, setup_logging
from fleet_api.core.database import init_db
from fleet_api.core.errors import StoreUnavailable, register_exception_handlers
from fleet_api.core.logging import get_logger
from fleet_api.core.redis import close_redis, connect_redis
from fleet_api.middleware import (
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    rate_limit_cleanup_loop,
)

logger = get_logger("main")


def task_done_callback(task: asyncio.Task[None]) -> None:
    """Log unhandled exceptions from background tasks."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Background task {task.get_name()} failed: {exc}")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    setup_logging(
        level=settings.log_level,
        format_type="structured" if not settings.debug else "dev",
        access_log=settings.access_log,
    )
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    for warning in settings.check_security_configuration():
        logger.warning(f"SECURITY: {warning}")

    # The database is required; Redis is not
    try:
        await init_db()
    except StoreUnavailable as e:
        logger.critical(f"Database connection failed: {e.message}")
        raise SystemExit(1) from e

    await connect_redis()

    tasks: list[asyncio.Task] = []
    cleanup_task = asyncio.create_task(rate_limit_cleanup_loop())
    cleanup_task.add_done_callback(task_done_callback)
    tasks.append(cleanup_task)

    yield

    logger.info("Shutting down...")
    for task in tasks:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    await close_redis()
    await engine.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Authentication, authorization and rate limiting for the fleet platform",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )

    register_exception_handlers(app)

    # Starlette runs middleware in reverse order of registration. Request flow:
    # security headers -> access log -> CORS -> rate limit -> routes.
    app.add_middleware(
        RateLimitMiddleware,
        exclude_paths=["/health"],
        enabled=settings.rate_limit_enabled,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "Accept",
            "X-API-Key",
            "X-Request-ID",
        ],
    )

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)

    if settings.enable_metrics:
        from prometheus_fastapi_instrumentator import Instrumentator

        Instrumentator(
            excluded_handlers=["/health", "/health/detail", "/metrics"],
        ).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

    app.include_router(health_router)  # Health at root level
    app.include_router(api_router)  # API at /api

    return app


# Application instance
app = create_app()


def run() -> None:
    """Console entry point."""
    uvicorn.run(
        "fleet_api.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
