"""Tests for database bootstrap and the application lifespan."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from fleet_api.core.database import init_db, redacted_database_url
from fleet_api.core.errors import StoreUnavailable


class TestRedactedUrl:
    def test_password_hidden(self):
        url = redacted_database_url("postgresql+asyncpg://fleet:s3cret@db:5432/fleet")

        assert "s3cret" not in url
        assert "db:5432/fleet" in url

    def test_invalid_url(self):
        assert redacted_database_url("::not a url::") == "<invalid database url>"


class TestInitDb:
    @pytest.mark.asyncio
    async def test_retries_then_gives_up(self):
        check = AsyncMock(return_value=False)
        with patch("fleet_api.core.database.check_db_connection", check):
            with pytest.raises(StoreUnavailable):
                await init_db(attempts=3, retry_delay=0)

        assert check.await_count == 3

    @pytest.mark.asyncio
    async def test_creates_schema_once_reachable(self):
        check = AsyncMock(side_effect=[False, True])
        conn = MagicMock()
        conn.run_sync = AsyncMock()
        begin = MagicMock()
        begin.__aenter__ = AsyncMock(return_value=conn)
        begin.__aexit__ = AsyncMock(return_value=False)
        fake_engine = MagicMock()
        fake_engine.begin.return_value = begin

        with (
            patch("fleet_api.core.database.check_db_connection", check),
            patch("fleet_api.core.database.engine", fake_engine),
        ):
            await init_db(attempts=3, retry_delay=0)

        assert check.await_count == 2
        conn.run_sync.assert_awaited_once()


class TestLifespan:
    @pytest.mark.asyncio
    async def test_exits_when_database_unreachable(self):
        from fleet_api.main import app, lifespan

        with (
            patch("fleet_api.main.setup_logging"),
            patch("fleet_api.main.init_db", AsyncMock(side_effect=StoreUnavailable("down"))),
            patch("fleet_api.main.connect_redis", AsyncMock()) as connect,
        ):
            with pytest.raises(SystemExit) as exc_info:
                async with lifespan(app):
                    pass

        assert exc_info.value.code == 1
        connect.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_starts_without_redis(self):
        from fleet_api.main import app, lifespan

        fake_engine = MagicMock()
        fake_engine.dispose = AsyncMock()

        with (
            patch("fleet_api.main.setup_logging"),
            patch("fleet_api.main.init_db", AsyncMock()),
            patch("fleet_api.main.connect_redis", AsyncMock(return_value=None)),
            patch("fleet_api.main.close_redis", AsyncMock()) as close,
            patch("fleet_api.main.engine", fake_engine),
        ):
            async with lifespan(app):
                pass

        close.assert_awaited_once()
        fake_engine.dispose.assert_awaited_once()
