"""Standard PostgreSQL backend policy."""

from typing import Sequence, Tuple

from sqlstore.backends.policy import BackendPolicy
from sqlstore.constants import BackendType
from sqlstore.logging import get_logger
from sqlstore.utils.sql import quote_literal

logger = get_logger(__name__)


class PostgresPolicy(BackendPolicy):
    """SQL idioms for single-node PostgreSQL.

    The MPP variants subclass this and override only what differs.
    """

    backend_type = BackendType.POSTGRES

    # Columns that identify a physical row for ordered updates
    row_identity_columns: Tuple[str, ...] = ("ctid",)

    def create_sequence_function(self, name: str) -> str:
        return f"DROP SEQUENCE IF EXISTS {name} CASCADE; CREATE SEQUENCE {name} MINVALUE -1 START 0;"

    def cast(self, expr: object, to_type: str) -> str:
        return f"CAST({expr} AS {to_type})"

    def quote_column(self, name: str) -> str:
        return '"' + name.replace('"', '""') + '"'

    @property
    def random_function(self) -> str:
        return "RANDOM()"

    def concat(self, items: Sequence[str], delimiter: str) -> str:
        if not items:
            return "''"
        separator = f" || {quote_literal(delimiter)} || " if delimiter else " || "
        return separator.join(items)

    def create_special_udfs(self) -> None:
        logger.debug("No special UDFs required", extra={"backend": self.backend_type.value})

    def analyze_table(self, table: str) -> str:
        return f"ANALYZE {table};"

    def count_rows(self, table: str) -> int:
        return self.executor.execute_sql_query_get_long(f"SELECT COUNT(*) FROM {table};")

    def assign_ids(self, table: str, start_id: int, sequence: str) -> int:
        self.executor.execute_sql_queries(
            f"ALTER SEQUENCE {sequence} RESTART {start_id}; "
            f"UPDATE {table} SET id = nextval({quote_literal(sequence)});"
        )
        return self.count_rows(table)

    def exists_table(self, table: str) -> bool:
        return self.executor.execute_sql_query_get_boolean(
            "SELECT EXISTS (SELECT 1 FROM information_schema.tables "
            f"WHERE table_name = {quote_literal(table)});"
        )

    def ordered_update_sql(self, table: str, start_id: int, order_by: str = "") -> str:
        """UPDATE numbering rows of ``table`` by ``order_by``, joined on physical row identity."""
        identity = ", ".join(f"{col} AS row_{col}" for col in self.row_identity_columns)
        join = " AND ".join(f"t.{col} = o.row_{col}" for col in self.row_identity_columns)
        window = f"ORDER BY {order_by}" if order_by.strip() else ""
        return (
            f"UPDATE {table} AS t SET id = {start_id} + o.rn - 1 "
            f"FROM (SELECT {identity}, row_number() OVER ({window}) AS rn FROM {table}) AS o "
            f"WHERE {join};"
        )

    def assign_ids_ordered(self, table: str, start_id: int, sequence: str, order_by: str = "") -> int:
        self.executor.execute_sql_queries(self.ordered_update_sql(table, start_id, order_by))
        count = self.count_rows(table)
        self.executor.execute_sql_queries(f"ALTER SEQUENCE {sequence} RESTART {start_id + count};")
        return count
