"""Greenplum backend policy.

Rows live on segments, so ``ctid`` alone does not identify a row and
``nextval`` across segments is slow. Ids are assigned by the
``fast_seqassign`` plpgsql function installed by ``create_special_udfs``.
"""

from sqlstore.backends.postgres import PostgresPolicy
from sqlstore.constants import BackendType
from sqlstore.logging import get_logger
from sqlstore.utils.sql import quote_literal

logger = get_logger(__name__)

FAST_SEQASSIGN_SQL = """CREATE OR REPLACE FUNCTION fast_seqassign(tname character varying, startid bigint)
RETURNS TEXT AS
$$
BEGIN
  EXECUTE 'UPDATE ' || quote_ident(tname) || ' AS t SET id = ' || startid || ' + o.rn - 1'
       || ' FROM (SELECT gp_segment_id AS row_gp_segment_id, ctid AS row_ctid,'
       || ' row_number() OVER (ORDER BY gp_segment_id, ctid) AS rn FROM ' || quote_ident(tname) || ') AS o'
       || ' WHERE t.gp_segment_id = o.row_gp_segment_id AND t.ctid = o.row_ctid';
  RETURN '';
END;
$$ LANGUAGE plpgsql;"""


class GreenplumPolicy(PostgresPolicy):
    backend_type = BackendType.GREENPLUM

    row_identity_columns = ("gp_segment_id", "ctid")

    def create_special_udfs(self) -> None:
        if not self.probe.exists_language("plpgsql"):
            logger.info("Installing language plpgsql")
            self.executor.execute_sql_queries("CREATE LANGUAGE plpgsql;")
        logger.info("Installing fast_seqassign", extra={"backend": self.backend_type.value})
        self.executor.execute_sql_queries(FAST_SEQASSIGN_SQL)

    def assign_ids(self, table: str, start_id: int, sequence: str) -> int:
        self.executor.execute_sql_queries(
            f"SELECT fast_seqassign({quote_literal(table.lower())}, {start_id});"
        )
        return self.count_rows(table)
