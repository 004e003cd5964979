"""Postgres-XL backend policy.

Rows are spread over datanodes, and a ``ctid`` is only unique within one
node, so ordered updates join on ``(xc_node_id, ctid)``.
"""

from sqlstore.backends.postgres import PostgresPolicy
from sqlstore.constants import BackendType


class PostgresXLPolicy(PostgresPolicy):
    backend_type = BackendType.POSTGRES_XL

    row_identity_columns = ("xc_node_id", "ctid")

    def assign_ids(self, table: str, start_id: int, sequence: str) -> int:
        return self.assign_ids_ordered(table, start_id, sequence, order_by="xc_node_id, ctid")
