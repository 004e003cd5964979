"""Parametrized statements inside an explicit transaction."""

import threading
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, TypeVar

from sqlalchemy import text
from sqlalchemy.engine import Connection

from sqlstore.constants import DEFAULT_POOL_NAME, TransactionState
from sqlstore.logging import get_logger
from sqlstore.pool import ConnectionPoolManager
from sqlstore.utils.decorators import traced

logger = get_logger(__name__)

T = TypeVar("T")


class PreparedStatement:
    """A SQL text bound to a connection, accepting named parameters.

    Parameters use the ``:name`` placeholder style of ``sqlalchemy.text``.

    Example:
        >>> def populate(stmt):
        ...     stmt.add_batch({"id": 1, "val": "a"})
        ...     stmt.add_batch({"id": 2, "val": "b"})
        ...     stmt.execute_batch()
        >>> executor.prepare_statement(
        ...     "INSERT INTO dd_labels (id, val) VALUES (:id, :val)", populate
        ... )
    """

    def __init__(self, conn: Connection, sql: str):
        self.sql = sql
        self._conn = conn
        self._clause = text(sql)
        self._batch: List[Dict[str, Any]] = []

    @property
    def pending(self) -> int:
        return len(self._batch)

    def execute(self, params: Optional[Mapping[str, Any]] = None) -> int:
        """Execute once and return the affected row count."""
        result = self._conn.execute(self._clause, dict(params or {}))
        return result.rowcount

    def add_batch(self, params: Mapping[str, Any]) -> None:
        self._batch.append(dict(params))

    def add_batches(self, rows: Sequence[Mapping[str, Any]]) -> None:
        for row in rows:
            self.add_batch(row)

    def execute_batch(self) -> int:
        """Execute all queued parameter sets in one executemany call.

        Returns:
            Affected row count as reported by the driver; 0 when nothing was queued
        """
        if not self._batch:
            return 0
        batch, self._batch = self._batch, []
        result = self._conn.execute(self._clause, batch)
        return result.rowcount


class StatementExecutor:
    """Runs a ``populate`` callback against a prepared statement in one transaction.

    Transaction states:
        IDLE -> AUTOCOMMIT_OFF -> STATEMENT_BOUND -> COMMITTED | FAILED -> CONNECTION_CLOSED

    On failure the transaction is rolled back explicitly before the
    connection goes back to its pool, and the original error is re-raised.
    """

    def __init__(self, pool_manager: ConnectionPoolManager):
        self.pool_manager = pool_manager
        self._local = threading.local()

    @property
    def last_transition_trail(self) -> List[TransactionState]:
        """States visited by the most recent ``prepare_statement`` on this thread."""
        return list(getattr(self._local, "trail", []))

    def _transition(self, trail: List[TransactionState], state: TransactionState, sql: str) -> None:
        logger.debug(
            "Statement transaction state changed",
            extra={"from_state": trail[-1].value, "to_state": state.value, "sql": sql},
        )
        trail.append(state)

    @traced(
        span_name="sqlstore.statement.prepare",
        attribute_getter=lambda self, sql, populate, pool_name=DEFAULT_POOL_NAME: {
            "db.statement": sql,
            "sqlstore.pool": pool_name,
        },
    )
    def prepare_statement(
        self,
        sql: str,
        populate: Callable[[PreparedStatement], T],
        pool_name: str = DEFAULT_POOL_NAME,
    ) -> T:
        """Borrow a connection, bind ``sql`` and let ``populate`` run it, then commit.

        Args:
            sql: Parametrized SQL text
            populate: Callback binding values and executing the statement
            pool_name: Named pool to borrow from

        Returns:
            Whatever ``populate`` returns

        Raises:
            Any exception raised while borrowing, populating or committing;
            the transaction is rolled back first.
        """
        trail = [TransactionState.IDLE]
        self._local.trail = trail

        try:
            with self.pool_manager.connection(pool_name) as conn:
                transaction = None
                try:
                    transaction = conn.begin()
                    self._transition(trail, TransactionState.AUTOCOMMIT_OFF, sql)

                    statement = PreparedStatement(conn, sql)
                    self._transition(trail, TransactionState.STATEMENT_BOUND, sql)

                    result = populate(statement)
                    transaction.commit()
                    self._transition(trail, TransactionState.COMMITTED, sql)
                    return result
                except Exception as e:
                    logger.error(
                        "Statement execution failed",
                        extra={"sql": sql, "pool": pool_name, "error": str(e)},
                        exc_info=True,
                    )
                    self._transition(trail, TransactionState.FAILED, sql)
                    if transaction is not None and transaction.is_active:
                        try:
                            transaction.rollback()
                        except Exception as rollback_exc:
                            logger.error(
                                "Rollback failed",
                                extra={"sql": sql, "pool": pool_name, "error": str(rollback_exc)},
                            )
                    raise
        finally:
            if trail[-1] in (TransactionState.COMMITTED, TransactionState.FAILED):
                self._transition(trail, TransactionState.CONNECTION_CLOSED, sql)
