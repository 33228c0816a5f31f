"""Fleet API Logging Configuration."""

import json
import logging
import sys
from typing import Any, Literal

DEV_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Attributes passed via ``extra=`` that belong in structured output
CONTEXT_FIELDS = (
    "client",
    "method",
    "path",
    "status_code",
    "duration_ms",
    "user_agent",
    "rate_limit_group",
    "client_key",
)


class JSONFormatter(logging.Formatter):
    """One JSON object per line.

    Request context attached with ``extra={...}`` is emitted as top-level
    keys, so log shippers can index status codes and paths directly.
    """

    def __init__(self):
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(
    level: str = "INFO",
    format_type: Literal["structured", "dev"] = "dev",
    access_log: bool = True,
) -> None:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: 'structured' for JSON lines, 'dev' for readable output
        access_log: Emit one line per request on the ``fleet_api.access`` logger
    """
    numeric_level = getattr(logging, level.upper())
    handler = logging.StreamHandler(sys.stdout)
    if format_type == "structured":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(DEV_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logging.root.handlers = [handler]
    logging.root.setLevel(numeric_level)

    # uvicorn's own access log would duplicate ours
    for logger_name in ["uvicorn", "uvicorn.error", "uvicorn.access"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.DEBUG if level.upper() == "DEBUG" else logging.WARNING
    )

    logging.getLogger("fleet_api.access").disabled = not access_log

    get_logger("logging").info(
        f"Logging configured: level={level}, format={format_type}, access_log={access_log}"
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the fleet_api namespace."""
    return logging.getLogger(f"fleet_api.{name}")
