"""Fleet API Database Configuration - Async SQLAlchemy."""

import asyncio
from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from fleet_api.core.config import settings
from fleet_api.core.errors import StoreUnavailable
from fleet_api.core.logging import get_logger

logger = get_logger("database")

# No connection is opened until the first query
engine = create_async_engine(
    settings.database_url,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_timeout=settings.db_pool_timeout,
    pool_recycle=settings.db_pool_recycle,
    pool_pre_ping=True,
    echo=settings.debug and settings.log_level == "DEBUG",
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


def redacted_database_url(url: str | None = None) -> str:
    """The database URL with the password masked, safe for logs."""
    try:
        return make_url(url or settings.database_url).render_as_string(hide_password=True)
    except ArgumentError:
        return "<invalid database url>"


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session.

    Commits when the request handler returns and rolls back on any error,
    cancellation included.
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except (Exception, BaseException):
            await session.rollback()
            raise
        finally:
            await session.close()


async def check_db_connection() -> bool:
    """Check if database is reachable."""
    try:
        async with async_session_maker() as session:
            await session.execute(text("SELECT 1"))
            return True
    except (OSError, ConnectionError) as e:
        logger.debug(f"Database connection check failed: {e}")
        return False
    except Exception as e:
        logger.warning(f"Unexpected error checking database connection: {e}")
        return False


async def init_db(
    attempts: int | None = None,
    retry_delay: float | None = None,
) -> None:
    """Connect to the user store and create missing tables.

    Retries ``attempts`` times before raising StoreUnavailable; the
    application lifespan treats that as fatal.
    """
    # Register models on Base.metadata
    import fleet_api.models  # noqa: F401

    attempts = attempts if attempts is not None else settings.db_connect_attempts
    retry_delay = retry_delay if retry_delay is not None else settings.db_connect_retry_delay
    target = redacted_database_url()

    for attempt in range(1, attempts + 1):
        logger.info(f"Connecting to database {target} (attempt {attempt}/{attempts})")
        if await check_db_connection():
            break
        if attempt < attempts:
            await asyncio.sleep(retry_delay)
    else:
        raise StoreUnavailable(f"Database is unreachable: {target}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Database connected: {target}")
