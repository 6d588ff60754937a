"""Logging setup for the CLI and batch runner.

Records go to stderr so CLI tables on stdout stay clean. With JSON enabled
each record is one object per line; the row context the orchestrator passes
through ``extra`` (ingestion id, row number) becomes top-level keys.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

# Attributes copied from ``extra`` into formatted output when present.
INGESTION_CONTEXT = ("ingestion_id", "row_number", "patient_reference")

# HTTP client loggers that are chatty at INFO during sheet fetches.
NOISY_LOGGERS = ("urllib3", "requests", "charset_normalizer")

HUMAN_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
HUMAN_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _context(record: logging.LogRecord) -> Dict[str, Any]:
    return {name: getattr(record, name) for name in INGESTION_CONTEXT if hasattr(record, name)}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, stamped with the record's own creation time."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "where": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        payload.update(_context(record))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class ContextFormatter(logging.Formatter):
    """Terminal format with the row context appended as key=value pairs."""

    def __init__(self):
        super().__init__(HUMAN_FORMAT, datefmt=HUMAN_DATEFMT)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _context(record)
        if not context:
            return line
        # Traceback lines follow the first line; keep context next to the message.
        first, newline, rest = line.partition("\n")
        pairs = " ".join(f"{key}={value}" for key, value in context.items())
        return f"{first} ({pairs}){newline}{rest}"


def _quiet_third_party(level: int) -> None:
    floor = max(level, logging.WARNING)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(floor)


def setup_logging(use_json: bool = False, log_level: str = "INFO") -> logging.Handler:
    """Replace root handlers with a single stderr handler.

    Parameters:
        use_json: Emit JSON lines instead of the terminal format
        log_level: Level name; unknown names fall back to INFO

    Returns:
        The installed handler
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(StructuredFormatter() if use_json else ContextFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    _quiet_third_party(level)
    return handler
