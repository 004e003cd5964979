"""sqlstore: backend-portable data store for PostgreSQL-family engines.

Quick Start:
    >>> from sqlstore import init_datastore
    >>> store = init_datastore()
    >>> store.drop_and_create_table("dd_labels", "id bigint, val text")
    >>> store.execute_sql_query_get_tsv("SELECT 10, 20;", 1)
    '20'
"""

from sqlstore.__version__ import __version__
from sqlstore.common.exceptions import DataStoreError, ErrorCode
from sqlstore.datastore import DataStore, close_datastore, get_datastore, init_datastore

__all__ = [
    "__version__",
    "DataStore",
    "DataStoreError",
    "ErrorCode",
    "init_datastore",
    "get_datastore",
    "close_datastore",
]
