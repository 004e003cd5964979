"""SQL execution: raw SQL executors and transactional statements."""

from sqlstore.execution.base import SqlExecutor
from sqlstore.execution.driver import DriverSqlExecutor
from sqlstore.execution.process import SqlProcessExecutor
from sqlstore.execution.statement import PreparedStatement, StatementExecutor
from sqlstore.execution.types import render_tsv_field, unwrap_sql_type

__all__ = [
    "SqlExecutor",
    "SqlProcessExecutor",
    "DriverSqlExecutor",
    "StatementExecutor",
    "PreparedStatement",
    "render_tsv_field",
    "unwrap_sql_type",
]
