"""Constants module for sqlstore.

This module contains all constant values and enumerations used throughout
the package. It has no dependencies on other sqlstore modules.
"""

from sqlstore.constants.backend import (
    BackendSelection,
    BackendType,
    ExecutionMode,
    ExecutorType,
    TransactionState,
)
from sqlstore.constants.namespace import (
    DEFAULT_ENVIRONMENT,
    DEFAULT_POOL_NAME,
    DEFAULT_SQL_COMMAND,
    INTERNAL_TABLE_PREFIX,
    TSV_FALSE,
    TSV_NULL,
    TSV_TRUE,
)

__all__ = [
    "BackendSelection",
    "BackendType",
    "ExecutionMode",
    "ExecutorType",
    "TransactionState",
    "DEFAULT_ENVIRONMENT",
    "DEFAULT_POOL_NAME",
    "DEFAULT_SQL_COMMAND",
    "INTERNAL_TABLE_PREFIX",
    "TSV_FALSE",
    "TSV_NULL",
    "TSV_TRUE",
]
