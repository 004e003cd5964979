"""Connection pool lifecycle for sqlstore."""

from sqlstore.pool.manager import (
    ConnectionPoolManager,
    close_pools,
    get_pool_manager,
    init_pools,
)

__all__ = [
    "ConnectionPoolManager",
    "close_pools",
    "get_pool_manager",
    "init_pools",
]
