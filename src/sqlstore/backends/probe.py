"""Engine variant and feature detection through catalog and version queries."""

from sqlstore.constants import BackendType
from sqlstore.descriptors import LazyField
from sqlstore.execution.base import SqlExecutor
from sqlstore.logging import get_logger
from sqlstore.utils.sql import quote_literal

logger = get_logger(__name__)

UNLOGGED = "UNLOGGED"


class BackendCapabilityProbe:
    """Answers capability questions about the connected engine.

    Caching:
        ``is_using_postgres_xl`` is computed once per probe under a lock and
        never re-evaluated. Every other probe runs its query on each call.

    Example:
        >>> probe = BackendCapabilityProbe(executor)
        >>> probe.exists_language("plpgsql")
        True
        >>> probe.unlogged
        ''
    """

    def __init__(self, executor: SqlExecutor):
        self.executor = executor

    def exists_language(self, name: str) -> bool:
        sql = f"SELECT EXISTS (SELECT 1 FROM pg_language WHERE lanname = {quote_literal(name)});"
        return self.executor.execute_sql_query_get_boolean(sql)

    def exists_function(self, name: str) -> bool:
        sql = (
            "SELECT EXISTS (SELECT 1 FROM information_schema.routines "
            f"WHERE routine_name = {quote_literal(name)});"
        )
        return self.executor.execute_sql_query_get_boolean(sql)

    def is_using_greenplum(self) -> bool:
        return self.executor.execute_sql_query_get_boolean("SELECT version() LIKE '%Greenplum%';")

    @LazyField
    def is_using_postgres_xl(self) -> bool:
        value = self.executor.execute_sql_query_get_boolean("SELECT version() LIKE '%Postgres-XL%';")
        logger.info("Detected Postgres-XL capability", extra={"postgres_xl": value})
        return value

    @property
    def unlogged(self) -> str:
        """Table modifier for internal tables: ``UNLOGGED`` on Postgres-XL, else empty."""
        return UNLOGGED if self.is_using_postgres_xl else ""

    def detect_backend_type(self) -> BackendType:
        if self.is_using_postgres_xl:
            return BackendType.POSTGRES_XL
        if self.is_using_greenplum():
            return BackendType.GREENPLUM
        return BackendType.POSTGRES

    def warm_up(self) -> None:
        """Compute cached flags now instead of on first access."""
        _ = self.is_using_postgres_xl
