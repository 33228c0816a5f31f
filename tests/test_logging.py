"""Tests for logging configuration and the access log."""

import json
import logging

import pytest

from fleet_api.core.logging import JSONFormatter, get_logger, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    logging.getLogger("fleet_api.access").disabled = False


class TestJSONFormatter:
    def _record(self, msg="hello", **extra) -> logging.LogRecord:
        record = logging.LogRecord("fleet_api.test", logging.INFO, __file__, 1, msg, None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_basic_fields(self):
        entry = json.loads(JSONFormatter().format(self._record('quote " and \n newline')))

        assert entry["level"] == "INFO"
        assert entry["logger"] == "fleet_api.test"
        assert entry["message"] == 'quote " and \n newline'

    def test_request_context_is_top_level(self):
        record = self._record(method="POST", path="/api/auth/login", status_code=429)

        entry = json.loads(JSONFormatter().format(record))

        assert entry["method"] == "POST"
        assert entry["path"] == "/api/auth/login"
        assert entry["status_code"] == 429

    def test_unrelated_attributes_ignored(self):
        entry = json.loads(JSONFormatter().format(self._record(password="hunter2")))
        assert "password" not in entry


class TestSetupLogging:
    def test_structured_uses_json(self, restore_root_logger):
        setup_logging(level="warning", format_type="structured")

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_access_log_toggle(self, restore_root_logger):
        setup_logging(level="INFO", format_type="dev", access_log=False)
        assert logging.getLogger("fleet_api.access").disabled is True

    def test_get_logger_namespace(self):
        assert get_logger("auth").name == "fleet_api.auth"


class TestAccessLog:
    @pytest.mark.asyncio
    async def test_one_line_per_request(self, async_client, caplog):
        with caplog.at_level(logging.INFO, logger="fleet_api.access"):
            await async_client.get("/health")

        records = [r for r in caplog.records if r.name == "fleet_api.access"]
        assert len(records) == 1
        assert records[0].path == "/health"
        assert records[0].status_code == 200
        assert '"GET /health" 200' in records[0].getMessage()
