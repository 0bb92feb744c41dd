"""
Structured JSON logging utilities.

Keepsake stores log through the standard ``logging`` module under the
``keepsake_storage`` namespace. Applications that want machine-readable
logs can install the JSON formatter with ``configure_structured_logging``.

Repository operations tag their lines with the collection they touch:

    {"timestamp": "...", "level": "INFO", "logger": "keepsake_storage.repository",
     "message": "Created 3f2a... with 1 photo(s)", "collection": "journal"}
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

PACKAGE_LOGGER = "keepsake_storage"

# LogRecord attributes that are not caller-supplied context
_RECORD_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


class StructuredJsonFormatter(logging.Formatter):
    """
    One JSON object per line.

    Keys: timestamp (UTC, from the record's creation time), level, logger,
    message, exception when present, then any ``extra`` context.
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "timestamp": created.isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        payload.update(
            (key, _jsonable(value))
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        )
        return json.dumps(payload, ensure_ascii=False)


def configure_structured_logging(
    level: int = logging.INFO,
    logger_name: str | None = PACKAGE_LOGGER,
    stream: Any = None,
) -> logging.Logger:
    """
    Route a logger's output through StructuredJsonFormatter.

    Calling it again replaces the handler rather than adding a second one.

    Args:
        level: Logging level (default: INFO)
        logger_name: Logger to configure (default: the package logger;
            pass None for the root logger)
        stream: Output stream (default: stdout)

    Returns:
        The configured logger
    """
    logger = logging.getLogger(logger_name)
    logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(StructuredJsonFormatter())
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


def get_storage_logger(name: str) -> logging.Logger:
    """Logger named ``keepsake_storage.<name>``."""
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name}")


class StorageLoggerAdapter(logging.LoggerAdapter):
    """
    Adds fixed context (e.g. ``collection``) to every line.

    Context passed per call through ``extra=`` wins over the fixed context.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs
