"""Process-wide connection pool lifecycle.

One SQLAlchemy engine with a ``QueuePool`` is created per named pool in the
settings. Connections handed out by the manager are SQLAlchemy
``Connection`` objects; closing one returns the underlying DB-API
connection to its pool.
"""

import threading
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.pool import QueuePool

from sqlstore.common.exceptions import ErrorCode, configuration_error, resource_error
from sqlstore.constants import DEFAULT_POOL_NAME
from sqlstore.logging import get_logger
from sqlstore.settings import DataStoreSettings, PoolSettings

logger = get_logger(__name__)

T = TypeVar("T")


class ConnectionPoolManager:
    """Owns the pooled connections of every configured named pool.

    Lifecycle:
        ``init(settings)`` creates the pools, ``close()`` disposes them.
        Borrowing before ``init`` or after ``close`` raises a resource error.
        ``init`` is not idempotent: initializing twice without closing is a
        configuration error.

    Thread Safety:
        Borrow and release are safe from many threads (QueuePool is
        thread-safe). ``init`` and ``close`` serialize on an internal lock.

    Example:
        >>> manager = ConnectionPoolManager()
        >>> manager.init(settings)
        >>> count = manager.with_connection(
        ...     lambda conn: conn.exec_driver_sql("SELECT 1").scalar()
        ... )
        >>> manager.close()
    """

    def __init__(self):
        self._engines: Dict[str, Engine] = {}
        self._lock = threading.Lock()

    @property
    def is_initialized(self) -> bool:
        return bool(self._engines)

    @property
    def pool_names(self) -> List[str]:
        return list(self._engines)

    def init(self, settings: DataStoreSettings) -> None:
        """Create every configured named pool.

        Args:
            settings: Data store settings; ``settings.pools`` is consumed once.

        Raises:
            DataStoreError: CONFIG_ERROR if pools are already initialized, none
                are configured, or an engine cannot be created.
        """
        with self._lock:
            if self._engines:
                raise configuration_error(
                    "Connection pools are already initialized; close them before re-initializing",
                    config_key="pools",
                )
            if not settings.pools:
                raise configuration_error(
                    f"No connection pools configured for environment '{settings.environment}'",
                    config_key="pools",
                )

            logger.info(
                "Initializing all data store pools",
                extra={"environment": settings.environment, "pools": sorted(settings.pools)},
            )

            engines: Dict[str, Engine] = {}
            try:
                for name, pool_settings in settings.pools.items():
                    engines[name] = self._create_engine(name, pool_settings)
            except Exception:
                for engine in engines.values():
                    engine.dispose()
                raise

            self._engines = engines

    def _create_engine(self, name: str, pool_settings: PoolSettings) -> Engine:
        """Create a SQLAlchemy engine with connection pooling.

        Raises:
            DataStoreError: CONFIG_ERROR if the engine cannot be created
        """
        try:
            engine = create_engine(
                pool_settings.sqlalchemy_url(),
                poolclass=QueuePool,
                pool_pre_ping=pool_settings.pool_pre_ping,
                pool_size=pool_settings.pool_size,
                max_overflow=pool_settings.max_overflow,
                pool_timeout=pool_settings.pool_timeout,
                connect_args=dict(pool_settings.connect_args),
            )
        except Exception as e:
            raise configuration_error(
                f"Failed to create connection pool '{name}'",
                config_key=f"pools.{name}",
                cause=e,
            )

        logger.info(
            "Created connection pool",
            extra={"pool": name, "url": pool_settings.redacted_url(), "pool_size": pool_settings.pool_size},
        )
        return engine

    def engine(self, name: str = DEFAULT_POOL_NAME) -> Engine:
        """Return the engine behind a named pool.

        Raises:
            DataStoreError: POOL_NOT_INITIALIZED before init/after close,
                CONFIG_ERROR for an unknown pool name.
        """
        engines = self._engines
        if not engines:
            raise resource_error(
                "Connection pools are not initialized",
                error_code=ErrorCode.POOL_NOT_INITIALIZED,
                pool=name,
            )
        try:
            return engines[name]
        except KeyError:
            raise configuration_error(
                f"Unknown connection pool '{name}'",
                config_key=f"pools.{name}",
            ) from None

    def borrow_connection(self, name: str = DEFAULT_POOL_NAME) -> Connection:
        """Borrow a connection from a pool. The caller must close it.

        Raises:
            DataStoreError: CONNECTION_ACQUIRE_FAILED when no connection can be
                obtained (including pool timeouts).
        """
        engine = self.engine(name)
        try:
            return engine.connect()
        except Exception as e:
            raise resource_error(
                f"Failed to borrow a connection from pool '{name}'",
                error_code=ErrorCode.CONNECTION_ACQUIRE_FAILED,
                pool=name,
                cause=e,
            )

    def release_connection(self, conn: Connection, name: str = DEFAULT_POOL_NAME) -> None:
        """Return a borrowed connection to its pool.

        Raises:
            DataStoreError: CONNECTION_RELEASE_FAILED if closing fails.
        """
        try:
            conn.close()
        except Exception as e:
            raise resource_error(
                f"Failed to release a connection to pool '{name}'",
                error_code=ErrorCode.CONNECTION_RELEASE_FAILED,
                pool=name,
                cause=e,
            )

    @contextmanager
    def connection(self, name: str = DEFAULT_POOL_NAME) -> Iterator[Connection]:
        """Scoped acquisition: the connection is released exactly once.

        If the body fails and the release fails too, the release failure is
        logged and the body's exception propagates.
        """
        conn = self.borrow_connection(name)
        try:
            yield conn
        except BaseException:
            try:
                conn.close()
            except Exception as close_exc:
                logger.error(
                    "Failed to release connection after error",
                    extra={"pool": name, "error": str(close_exc)},
                    exc_info=True,
                )
            raise
        else:
            self.release_connection(conn, name)

    def with_connection(self, block: Callable[[Connection], T], name: str = DEFAULT_POOL_NAME) -> T:
        """Run ``block`` with a borrowed connection and return its result."""
        with self.connection(name) as conn:
            return block(conn)

    def close(self) -> None:
        """Dispose every pool and all of its connections.

        Raises:
            DataStoreError: CONNECTION_RELEASE_FAILED if any pool could not be
                disposed. All pools are attempted first.
        """
        with self._lock:
            engines, self._engines = self._engines, {}
            logger.info("Closing all data store pools", extra={"pools": sorted(engines)})

            failures: Dict[str, str] = {}
            for name, engine in engines.items():
                try:
                    engine.dispose()
                except Exception as e:
                    failures[name] = str(e)

            if failures:
                raise resource_error(
                    "Failed to dispose connection pools",
                    error_code=ErrorCode.CONNECTION_RELEASE_FAILED,
                    details={"failures": failures},
                )


# Process-wide manager
_pool_manager: Optional[ConnectionPoolManager] = None
_pool_manager_lock = threading.Lock()


def init_pools(settings: Optional[DataStoreSettings] = None) -> ConnectionPoolManager:
    """Create and initialize the process-wide pool manager.

    Args:
        settings: Settings to use; defaults to ``get_settings()``.
    """
    global _pool_manager

    if settings is None:
        from sqlstore.settings import get_settings
        settings = get_settings()

    with _pool_manager_lock:
        manager = _pool_manager or ConnectionPoolManager()
        manager.init(settings)
        _pool_manager = manager
    return manager


def get_pool_manager() -> ConnectionPoolManager:
    """Return the process-wide pool manager.

    Raises:
        DataStoreError: POOL_NOT_INITIALIZED if init_pools() was not called.
    """
    manager = _pool_manager
    if manager is None or not manager.is_initialized:
        raise resource_error(
            "Connection pools are not initialized; call init_pools() first",
            error_code=ErrorCode.POOL_NOT_INITIALIZED,
        )
    return manager


def close_pools() -> None:
    """Close the process-wide pool manager, if any."""
    global _pool_manager

    with _pool_manager_lock:
        manager, _pool_manager = _pool_manager, None
    if manager is not None:
        manager.close()
