"""Logging infrastructure for sqlstore.

This module provides structured logging with JSON output and run context
tracking.
"""

from sqlstore.logging.filters import (
    ContextFilter,
    clear_run_context,
    set_logging_context,
    set_run_context,
)
from sqlstore.logging.logger import CustomJsonFormatter, get_logger, setup_logging

__all__ = [
    "get_logger",
    "setup_logging",
    "CustomJsonFormatter",
    "ContextFilter",
    "set_logging_context",
    "set_run_context",
    "clear_run_context",
]
