"""Tests for log formatting and handler setup."""

import json
import logging
import sys

import pytest

from src.infrastructure.logging_config import (
    NOISY_LOGGERS,
    ContextFormatter,
    StructuredFormatter,
    setup_logging,
)


@pytest.fixture
def restore_root_logger():
    """Put back the root handlers and levels that setup_logging replaces."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    noisy_levels = {name: logging.getLogger(name).level for name in NOISY_LOGGERS}
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)
    for name, noisy_level in noisy_levels.items():
        logging.getLogger(name).setLevel(noisy_level)


def make_record(message="Row 3 failed", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="src.domain.services.ingestion_orchestrator",
        level=logging.WARNING,
        pathname=__file__,
        lineno=42,
        msg=message,
        args=(),
        exc_info=None,
        func="_ingest_row",
    )
    record.__dict__.update(extra)
    return record


class TestStructuredFormatter:

    def test_row_context_is_top_level(self):
        output = StructuredFormatter().format(make_record(ingestion_id="ing-abc", row_number=3))
        payload = json.loads(output)

        assert payload["message"] == "Row 3 failed"
        assert payload["level"] == "WARNING"
        assert payload["ingestion_id"] == "ing-abc"
        assert payload["row_number"] == 3
        assert payload["where"].endswith(":_ingest_row:42")
        assert payload["time"].endswith("Z")

    def test_context_absent_when_not_passed(self):
        payload = json.loads(StructuredFormatter().format(make_record()))
        assert "ingestion_id" not in payload
        assert "row_number" not in payload

    def test_exception_included(self):
        try:
            raise ValueError("bad cell")
        except ValueError:
            record = make_record()
            record.exc_info = sys.exc_info()

        payload = json.loads(StructuredFormatter().format(record))
        assert "ValueError: bad cell" in payload["exception"]


class TestContextFormatter:

    def test_context_appended(self):
        line = ContextFormatter().format(make_record(ingestion_id="ing-abc", row_number=3))
        assert line.endswith("Row 3 failed (ingestion_id=ing-abc row_number=3)")
        assert " WARNING  " in line

    def test_plain_message_without_context(self):
        assert ContextFormatter().format(make_record()).endswith(": Row 3 failed")


class TestSetupLogging:

    def test_single_stderr_handler(self, restore_root_logger):
        handler = setup_logging(log_level="debug")

        assert restore_root_logger.handlers == [handler]
        assert handler.stream is sys.stderr
        assert restore_root_logger.level == logging.DEBUG
        assert isinstance(handler.formatter, ContextFormatter)

    def test_json_formatter(self, restore_root_logger):
        handler = setup_logging(use_json=True)
        assert isinstance(handler.formatter, StructuredFormatter)

    def test_unknown_level_falls_back_to_info(self, restore_root_logger):
        setup_logging(log_level="chatty")
        assert restore_root_logger.level == logging.INFO

    def test_http_loggers_quieted(self, restore_root_logger):
        setup_logging(log_level="DEBUG")
        assert logging.getLogger("urllib3").level == logging.WARNING
