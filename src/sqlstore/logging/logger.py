"""Structured JSON logging for the data store.

Records carry the run context from ``ContextFilter`` and the active
OpenTelemetry trace ids. SQL text attached with ``extra={"sql": ...}`` is
truncated to ``MAX_LOGGED_SQL_CHARS`` with its full length kept alongside.
Enum values such as ``ErrorCode`` are written by value.
"""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Set

from opentelemetry import trace

MAX_LOGGED_SQL_CHARS = 2000


def _build_reserved_keys() -> Set[str]:
    """Standard ``LogRecord`` attributes, left out of the JSON payload."""
    template = logging.LogRecord(
        name="sqlstore",
        level=logging.INFO,
        pathname=__file__,
        lineno=0,
        msg="",
        args=(),
        exc_info=None,
    )
    return set(template.__dict__) | {"asctime", "message"}


_RESERVED_LOG_RECORD_KEYS = _build_reserved_keys()


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def _json_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


class CustomJsonFormatter(logging.Formatter):
    """One JSON object per record, with trace ids and truncated SQL."""

    def format(self, record: logging.LogRecord) -> str:
        log_record: Dict[str, Any] = {
            key: _json_value(value)
            for key, value in record.__dict__.items()
            if key not in _RESERVED_LOG_RECORD_KEYS
        }

        sql = log_record.get("sql")
        if isinstance(sql, str) and len(sql) > MAX_LOGGED_SQL_CHARS:
            log_record["sql"] = sql[:MAX_LOGGED_SQL_CHARS] + "..."
            log_record["sql_length"] = len(sql)

        log_record["timestamp"] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["message"] = record.getMessage()

        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            log_record["trace_id"] = format(span_context.trace_id, "032x")
            log_record["span_id"] = format(span_context.span_id, "016x")

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record, default=str)


def setup_logging(level: str = "INFO") -> None:
    """Send JSON records with run context to stderr at ``level``."""
    level = level.upper()
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "sqlstore_json": {"()": "sqlstore.logging.logger.CustomJsonFormatter"},
        },
        "filters": {
            "sqlstore_context": {"()": "sqlstore.logging.filters.ContextFilter"},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "sqlstore_json",
                "filters": ["sqlstore_context"],
                "stream": "ext://sys.stderr",
            },
        },
        "root": {"level": level, "handlers": ["console"]},
    })
