"""Structured JSON logging for the events service."""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

from tally_events.config import settings


class JSONFormatter(logging.Formatter):
    """
    Render each log record as a single-line JSON object.

    Fields: timestamp (UTC, ISO 8601), level, logger, message, plus
    correlation_id and any keys passed as ``extra={"context": {...}}``.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Serialize the record."""
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = getattr(record, "correlation_id", None)
        if correlation_id:
            entry["correlation_id"] = correlation_id

        context = getattr(record, "context", None)
        if isinstance(context, dict):
            entry.update(context)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        if record.levelno == logging.DEBUG:
            entry["location"] = f"{record.pathname}:{record.lineno} ({record.funcName})"

        return json.dumps(entry, default=str)


def configure_logging(level: str | None = None) -> None:
    """
    Route all logging to stdout through the JSON formatter.

    Args:
        level: Log level name; defaults to the LOG_LEVEL setting
    """
    level_name = (level or settings.log_level).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(JSONFormatter())
    root_logger.addHandler(handler)

    root_logger.info(
        "Logging configured",
        extra={"context": {"log_level": level_name}},
    )


def get_logger(name: str) -> logging.Logger:
    """Return the named logger (typically ``__name__``)."""
    return logging.getLogger(name)
