"""
Structured JSON logging.

Logs go to stdout as one JSON object per line so that log collectors can
parse and index the fields. Structured data is attached with

    logger.info("Tool executed", extra={"log_data": {"tool": name, ...}})

and merged into the top-level object. The current correlation ID (see
correlation.py) is added automatically when one is set.
"""

import json
import logging
import sys

from weather_mcp.correlation import get_correlation_id


class JSONLogFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON objects.

    Example output:

        {"timestamp": "2026-02-06 10:30:00,123", "level": "INFO",
         "logger": "weather-mcp.dispatch", "message": "Tool executed",
         "correlation_id": "4f1c...", "tool": "getweatherforecast",
         "duration_ms": 201.4}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        correlation_id = get_correlation_id()
        if correlation_id:
            log_entry["correlation_id"] = correlation_id
        if hasattr(record, "log_data"):
            log_entry.update(record.log_data)
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def configure_logging(level: str) -> None:
    """Install the JSON formatter on the root logger."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONLogFormatter())

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        handlers=[handler],
    )
