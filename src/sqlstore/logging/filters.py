"""Logging filters for context injection.

This module provides filters that inject context variables into log records,
so every line written while a pipeline run executes SQL can be correlated
with that run.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from typing import Any, Dict, Optional
from sqlstore.__version__ import __version__

run_id_var: ContextVar[Optional[str]] = ContextVar("run_id", default=None)
pipeline_var: ContextVar[Optional[str]] = ContextVar("pipeline", default=None)

_static_environment: Optional[str] = None
_static_extra: Dict[str, Any] = {}


class ContextFilter(logging.Filter):
    """Logging filter that adds context variables to log records.

    Run context comes from context variables; environment and extra fields
    are process-wide and set once through set_logging_context().
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Add context variables to the log record.

        Args:
            record: Log record to enhance

        Returns:
            Always True (doesn't filter out any records)
        """
        setattr(record, "run_id", run_id_var.get())
        setattr(record, "pipeline", pipeline_var.get())
        setattr(record, "sdk_name", "sqlstore")
        setattr(record, "sqlstore_version", __version__)

        if _static_environment is not None:
            setattr(record, "environment", _static_environment)
        for key, value in _static_extra.items():
            if not hasattr(record, key):
                setattr(record, key, value)

        return True


def set_logging_context(
    environment: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    """Set process-wide fields attached to every record.

    Passing None clears the corresponding value.
    """
    global _static_environment, _static_extra
    _static_environment = environment
    _static_extra = dict(extra or {})


def set_run_context(
    run_id: Optional[str] = None,
    pipeline: Optional[str] = None,
) -> None:
    """Set run context variables."""
    if run_id is not None:
        run_id_var.set(run_id)
    if pipeline is not None:
        pipeline_var.set(pipeline)


def clear_run_context() -> None:
    """Clear all run context variables."""
    run_id_var.set(None)
    pipeline_var.set(None)
