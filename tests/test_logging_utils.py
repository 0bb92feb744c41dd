"""
Tests for structured logging utilities.
"""

import io
import json
import logging

from keepsake_storage.logging_utils import (
    StorageLoggerAdapter,
    StructuredJsonFormatter,
    configure_structured_logging,
    get_storage_logger,
)


def make_record(message: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord("keepsake_storage.test", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredJsonFormatter:
    """Tests for JSON log formatting."""

    def test_basic_fields(self) -> None:
        output = json.loads(StructuredJsonFormatter().format(make_record("hello")))

        assert output["level"] == "INFO"
        assert output["logger"] == "keepsake_storage.test"
        assert output["message"] == "hello"
        assert "timestamp" in output

    def test_extra_fields_included(self) -> None:
        record = make_record("x", collection="jar", blob=object())
        output = json.loads(StructuredJsonFormatter().format(record))

        assert output["collection"] == "jar"
        assert isinstance(output["blob"], str)


class TestLoggers:
    """Tests for logger helpers."""

    def test_get_storage_logger_namespace(self) -> None:
        assert get_storage_logger("repository").name == "keepsake_storage.repository"

    def test_configure_replaces_handlers(self) -> None:
        logger = configure_structured_logging(logging.DEBUG, "keepsake_storage.test_configure")
        logger = configure_structured_logging(logging.DEBUG, "keepsake_storage.test_configure")

        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, StructuredJsonFormatter)
        assert logger.level == logging.DEBUG

    def test_adapter_adds_context(self, caplog) -> None:
        logger = get_storage_logger("adapter_test")
        adapter = StorageLoggerAdapter(logger, {"collection": "museum"})

        with caplog.at_level(logging.INFO, logger="keepsake_storage.adapter_test"):
            adapter.info("created")

        assert caplog.records[0].collection == "museum"

    def test_configured_logger_writes_json_lines(self) -> None:
        stream = io.StringIO()
        logger = configure_structured_logging(
            logging.INFO, "keepsake_storage.test_stream", stream=stream
        )
        logger.propagate = False

        StorageLoggerAdapter(logger, {"collection": "jar"}).info("hello", extra={"count": 2})

        line = json.loads(stream.getvalue().strip())
        assert line["message"] == "hello"
        assert line["collection"] == "jar"
        assert line["count"] == 2
