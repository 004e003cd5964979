"""Data store facade.

``DataStore`` wires the collaborators together and is what pipeline code
talks to:

    guarded DDL helper -> NamespaceGuard -> SqlExecutor -> parsed result

Parametrized writes go through ``StatementExecutor`` over a pooled
connection. The backend policy and capability probe are consulted while
SQL text is generated.

Example:
    >>> store = DataStore(settings)
    >>> store.init()
    >>> store.drop_and_create_table("dd_labels", "id bigint, val text")
    >>> store.execute_sql_query_get_long("SELECT COUNT(*) FROM dd_labels;")
    0
    >>> store.close()
"""

import threading
from typing import Callable, Optional, Sequence, TypeVar

from sqlalchemy.engine import Connection

from sqlstore.backends import BackendCapabilityProbe, BackendPolicy, create_policy, resolve_backend_type
from sqlstore.common.exceptions import ErrorCode, configuration_error, resource_error
from sqlstore.constants import DEFAULT_POOL_NAME, ExecutorType
from sqlstore.descriptors import LazyField
from sqlstore.execution import (
    DriverSqlExecutor,
    PreparedStatement,
    SqlExecutor,
    SqlProcessExecutor,
    StatementExecutor,
)
from sqlstore.guard import NamespaceGuard
from sqlstore.logging import get_logger, set_logging_context, setup_logging
from sqlstore.pool import ConnectionPoolManager
from sqlstore.settings import DataStoreSettings

logger = get_logger(__name__)

T = TypeVar("T")


class DataStore:
    """Backend-portable access to the pipeline's relational store.

    Collaborators are created from settings unless passed in explicitly.

    Args:
        settings: Data store settings; defaults to ``get_settings()``
        pool_manager: Pool manager to borrow connections from
        executor: Raw SQL executor; defaults to the one named by
            ``settings.executor``
    """

    def __init__(
        self,
        settings: Optional[DataStoreSettings] = None,
        pool_manager: Optional[ConnectionPoolManager] = None,
        executor: Optional[SqlExecutor] = None,
    ):
        if settings is None:
            from sqlstore.settings import get_settings
            settings = get_settings()

        self.settings = settings
        self.pool_manager = pool_manager or ConnectionPoolManager()
        self.executor = executor or self._create_executor()
        self.guard = NamespaceGuard(settings.table_prefix)
        self.probe = BackendCapabilityProbe(self.executor)
        self.statements = StatementExecutor(self.pool_manager)

    def _create_executor(self) -> SqlExecutor:
        if self.settings.executor == ExecutorType.DRIVER:
            return DriverSqlExecutor(
                self.pool_manager,
                DEFAULT_POOL_NAME,
                timeout_seconds=self.settings.sql_runner.timeout_seconds,
            )
        return SqlProcessExecutor(self.settings.sql_runner)

    @LazyField
    def policy(self) -> BackendPolicy:
        backend_type = resolve_backend_type(self.settings.backend, self.probe)
        return create_policy(backend_type, self.executor, self.probe)

    # Lifecycle

    def init(self) -> None:
        """Create the configured pools and optionally warm up capability flags."""
        logger.info("Initializing all data stores", extra={"environment": self.settings.environment})
        needs_pools = self.settings.pools or self.settings.executor == ExecutorType.DRIVER
        if needs_pools and not self.pool_manager.is_initialized:
            self.pool_manager.init(self.settings)
        if self.settings.eager_capability_probe:
            self.probe.warm_up()

    def close(self) -> None:
        logger.info("Closing all data stores", extra={"environment": self.settings.environment})
        if self.pool_manager.is_initialized:
            self.pool_manager.close()

    # Connections and statements

    def borrow_connection(self, name: str = DEFAULT_POOL_NAME) -> Connection:
        return self.pool_manager.borrow_connection(name)

    def with_connection(self, block: Callable[[Connection], T], name: str = DEFAULT_POOL_NAME) -> T:
        return self.pool_manager.with_connection(block, name)

    def prepare_statement(
        self,
        sql: str,
        populate: Callable[[PreparedStatement], T],
        pool_name: str = DEFAULT_POOL_NAME,
    ) -> T:
        return self.statements.prepare_statement(sql, populate, pool_name)

    # Raw SQL

    def _check_raw_sql(self, sql: str) -> None:
        if self.settings.guard_raw_sql:
            self.guard.check_statement(sql)

    def execute_sql_queries(self, sql: str) -> None:
        """Execute SQL text, rejecting DROP TABLE on unprefixed names first."""
        self._check_raw_sql(sql)
        self.executor.execute_sql_queries(sql)

    def query_update(self, sql: str) -> None:
        self.execute_sql_queries(sql)

    def execute_sql_query_get_tsv(self, sql: str, index: int) -> str:
        self._check_raw_sql(sql)
        return self.executor.execute_sql_query_get_tsv(sql, index)

    def execute_sql_query_get_boolean(self, sql: str, index: int = 0) -> bool:
        self._check_raw_sql(sql)
        return self.executor.execute_sql_query_get_boolean(sql, index)

    def execute_sql_query_get_long(self, sql: str, index: int = 0) -> int:
        self._check_raw_sql(sql)
        return self.executor.execute_sql_query_get_long(sql, index)

    def cancel(self) -> int:
        return self.executor.cancel()

    # Guarded DDL

    def check_table_namespace(self, name: str) -> None:
        self.guard.check_table_namespace(name)

    def _create_table_clause(self, name: str) -> str:
        return " ".join(part for part in ("CREATE", self.unlogged, "TABLE", name) if part)

    def drop_and_create_table(self, name: str, schema: str) -> None:
        """Drop ``name`` if it exists and recreate it with column definitions ``schema``.

        Raises:
            DataStoreError: NAMESPACE_VIOLATION before any SQL is issued if
                ``name`` lacks the internal prefix
        """
        self.check_table_namespace(name)
        self.execute_sql_queries(f"DROP TABLE IF EXISTS {name} CASCADE;")
        self.execute_sql_queries(f"{self._create_table_clause(name)} ({schema});")

    def drop_and_create_table_as(self, name: str, query: str) -> None:
        """Drop ``name`` if it exists and recreate it from ``query``."""
        self.check_table_namespace(name)
        self.execute_sql_queries(f"DROP TABLE IF EXISTS {name} CASCADE;")
        self.execute_sql_queries(f"{self._create_table_clause(name)} AS {query};")

    def create_table_if_not_exists(self, name: str, schema: str) -> None:
        self.check_table_namespace(name)
        self.execute_sql_queries(f"CREATE TABLE IF NOT EXISTS {name} ({schema});")

    def create_table_if_not_exists_like(self, name: str, source: str) -> None:
        self.check_table_namespace(name)
        self.execute_sql_queries(f"CREATE TABLE IF NOT EXISTS {name} (LIKE {source});")

    # Capabilities

    def exists_language(self, name: str) -> bool:
        return self.probe.exists_language(name)

    def exists_function(self, name: str) -> bool:
        return self.probe.exists_function(name)

    def is_using_greenplum(self) -> bool:
        return self.probe.is_using_greenplum()

    @property
    def is_using_postgres_xl(self) -> bool:
        return self.probe.is_using_postgres_xl

    @property
    def unlogged(self) -> str:
        return self.probe.unlogged

    # Backend policy

    def create_sequence_function(self, name: str) -> str:
        return self.policy.create_sequence_function(name)

    def cast(self, expr: object, to_type: str) -> str:
        return self.policy.cast(expr, to_type)

    def quote_column(self, name: str) -> str:
        return self.policy.quote_column(name)

    @property
    def random_function(self) -> str:
        return self.policy.random_function

    def concat(self, items: Sequence[str], delimiter: str) -> str:
        return self.policy.concat(items, delimiter)

    def create_special_udfs(self) -> None:
        self.policy.create_special_udfs()

    def analyze_table(self, table: str) -> str:
        return self.policy.analyze_table(table)

    def assign_ids(self, table: str, start_id: int, sequence: str) -> int:
        return self.policy.assign_ids(table, start_id, sequence)

    def exists_table(self, table: str) -> bool:
        return self.policy.exists_table(table)

    def assign_ids_ordered(self, table: str, start_id: int, sequence: str, order_by: str = "") -> int:
        return self.policy.assign_ids_ordered(table, start_id, sequence, order_by)


# Process-wide data store
_datastore: Optional[DataStore] = None
_datastore_lock = threading.Lock()


def init_datastore(
    settings: Optional[DataStoreSettings] = None,
    configure_logging: bool = False,
) -> DataStore:
    """Create, initialize and register the process-wide data store.

    Args:
        settings: Settings to use; defaults to ``get_settings()``
        configure_logging: Install the JSON log handler at ``settings.log_level``
            and tag records with ``settings.environment``
    """
    global _datastore

    if settings is None:
        from sqlstore.settings import get_settings
        settings = get_settings()
    if configure_logging:
        setup_logging(settings.log_level)
        set_logging_context(environment=settings.environment)

    with _datastore_lock:
        if _datastore is not None:
            raise configuration_error(
                "Data store is already initialized; call close_datastore() first",
                config_key="datastore",
            )
        store = DataStore(settings)
        store.init()
        _datastore = store
    return store


def get_datastore() -> DataStore:
    """Return the process-wide data store.

    Raises:
        DataStoreError: POOL_NOT_INITIALIZED if init_datastore() was not called
    """
    store = _datastore
    if store is None:
        raise resource_error(
            "Data store is not initialized; call init_datastore() first",
            error_code=ErrorCode.POOL_NOT_INITIALIZED,
        )
    return store


def close_datastore() -> None:
    global _datastore

    with _datastore_lock:
        store, _datastore = _datastore, None
    if store is not None:
        store.close()
