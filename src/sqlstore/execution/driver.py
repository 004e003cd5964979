"""SQL execution over a pooled DB-API connection.

Alternative to the external SQL program: the same ``SqlExecutor`` contract,
but statements run on a connection borrowed from a named pool. Each call is
its own transaction.
"""

import threading
from typing import Dict, Optional

from sqlalchemy.engine import Connection
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from sqlstore.common.exceptions import sql_cancelled_error, sql_execution_error, sql_timeout_error
from sqlstore.constants import DEFAULT_POOL_NAME
from sqlstore.execution.base import SqlExecutor
from sqlstore.execution.types import render_tsv_field
from sqlstore.logging import get_logger
from sqlstore.pool import ConnectionPoolManager
from sqlstore.utils.decorators import traced
from sqlstore.utils.sql import strip_statement_terminator

logger = get_logger(__name__)

# SQLSTATE query_canceled, raised for both statement_timeout and cancel()
_QUERY_CANCELED = "57014"

# SQL text is sent verbatim; pyformat drivers must not read "%" as a placeholder
_VERBATIM = {"no_parameters": True}


class DriverSqlExecutor(SqlExecutor):
    """Runs SQL text through SQLAlchemy on a pooled connection.

    Args:
        pool_manager: Initialized pool manager to borrow connections from
        pool_name: Named pool to use
        timeout_seconds: Per-statement limit, applied with
            ``SET LOCAL statement_timeout`` on PostgreSQL-family dialects
    """

    def __init__(
        self,
        pool_manager: ConnectionPoolManager,
        pool_name: str = DEFAULT_POOL_NAME,
        timeout_seconds: Optional[float] = None,
    ):
        self.pool_manager = pool_manager
        self.pool_name = pool_name
        self.timeout_seconds = timeout_seconds
        self._lock = threading.Lock()
        self._active: Dict[int, Connection] = {}
        self._cancelled: set = set()

    def _apply_timeout(self, conn: Connection) -> None:
        if self.timeout_seconds is None or conn.dialect.name != "postgresql":
            return
        conn.exec_driver_sql(f"SET LOCAL statement_timeout = {int(self.timeout_seconds * 1000)}")

    def _run(self, sql: str, fetch_first: bool):
        with self.pool_manager.connection(self.pool_name) as conn:
            key = id(conn)
            with self._lock:
                self._active[key] = conn
            try:
                with conn.begin():
                    self._apply_timeout(conn)
                    result = conn.exec_driver_sql(sql, execution_options=_VERBATIM)
                    row = result.first() if fetch_first else None
                return row
            except DBAPIError as e:
                with self._lock:
                    cancelled = key in self._cancelled
                if cancelled:
                    raise sql_cancelled_error(sql, cause=e)
                if getattr(e.orig, "pgcode", None) == _QUERY_CANCELED:
                    raise sql_timeout_error(sql, self.timeout_seconds, cause=e)
                raise sql_execution_error(sql, None, cause=e)
            except SQLAlchemyError as e:
                raise sql_execution_error(sql, None, cause=e)
            finally:
                with self._lock:
                    self._active.pop(key, None)
                    self._cancelled.discard(key)

    @traced(
        span_name="sqlstore.sql.driver.execute",
        attribute_getter=lambda self, sql: self._span_attributes(sql, operation="execute"),
    )
    def execute_sql_queries(self, sql: str) -> None:
        logger.debug("Executing SQL", extra={"sql": sql, "pool": self.pool_name})
        self._run(sql, fetch_first=False)

    @traced(
        span_name="sqlstore.sql.driver.eval",
        attribute_getter=lambda self, sql, index=0: self._span_attributes(
            sql, operation="eval", extra={"sqlstore.tsv.index": index}
        ),
    )
    def execute_sql_query_get_tsv(self, sql: str, index: int) -> str:
        """Return field ``index`` of the first result row, rendered as text."""
        logger.debug("Executing SQL", extra={"sql": sql, "pool": self.pool_name, "mode": "eval"})
        row = self._run(strip_statement_terminator(sql), fetch_first=True)
        fields = [render_tsv_field(v) for v in row] if row is not None else [""]
        return self._select_field(fields, index, sql)

    def cancel(self) -> int:
        """Ask the driver to cancel every in-flight statement."""
        with self._lock:
            active = list(self._active.items())

        count = 0
        for key, conn in active:
            driver_conn = getattr(conn.connection, "driver_connection", None)
            cancel = getattr(driver_conn, "cancel", None)
            if cancel is None:
                logger.warning(
                    "Driver connection does not support cancel",
                    extra={"pool": self.pool_name, "dialect": conn.dialect.name},
                )
                continue
            with self._lock:
                self._cancelled.add(key)
            cancel()
            count += 1
        return count
