import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from sqlstore.common.exceptions import conversion_error
from sqlstore.constants import TSV_TRUE

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")
_LONG_MIN, _LONG_MAX = -(2 ** 63), 2 ** 63 - 1


class SqlExecutor(ABC):
    """Capability interface for running raw SQL text.

    Implementations:
        - SqlProcessExecutor: delegates to an external SQL program
        - DriverSqlExecutor: runs over a pooled DB-API connection

    Subclasses implement ``execute_sql_queries``, ``execute_sql_query_get_tsv``
    and ``cancel``; scalar helpers are shared and parse the TSV field.

    Error Handling:
        Failures surface synchronously as DataStoreError. Nothing is retried
        here; retry policy belongs to the pipeline.
    """

    platform: str = "postgresql"

    @abstractmethod
    def execute_sql_queries(self, sql: str) -> None:
        """Execute one or more SQL statements.

        Raises:
            DataStoreError: SQL_EXECUTION_FAILED, SQL_EXECUTION_TIMEOUT or
                SQL_EXECUTION_CANCELLED
        """

    @abstractmethod
    def execute_sql_query_get_tsv(self, sql: str, index: int) -> str:
        """Run a query and return the ``index``-th field of its result line."""

    @abstractmethod
    def cancel(self) -> int:
        """Stop in-flight executions.

        Returns:
            Number of executions that were signalled
        """

    def query_update(self, sql: str) -> None:
        """Run an update statement; same as ``execute_sql_queries``."""
        self.execute_sql_queries(sql)

    def execute_sql_query_get_boolean(self, sql: str, index: int = 0) -> bool:
        """True iff the selected field is exactly ``t``."""
        return self.execute_sql_query_get_tsv(sql, index) == TSV_TRUE

    def execute_sql_query_get_long(self, sql: str, index: int = 0) -> int:
        """Parse the selected field as an integer.

        Raises:
            DataStoreError: CONVERSION_FAILED if the field is not a plain
                ASCII integer within the signed 64-bit range
        """
        value = self.execute_sql_query_get_tsv(sql, index)
        if _INTEGER_RE.fullmatch(value):
            number = int(value)
            if _LONG_MIN <= number <= _LONG_MAX:
                return number
        raise conversion_error(value, "integer", details={"sql": sql, "index": index})

    @staticmethod
    def _select_field(fields: List[str], index: int, sql: str) -> str:
        """Pick one TSV field, raising a conversion error when out of range."""
        if index < 0 or index >= len(fields):
            raise conversion_error(
                "\t".join(fields),
                f"field {index}",
                details={"sql": sql, "index": index, "field_count": len(fields)},
            )
        return fields[index]

    def _span_attributes(
        self,
        sql: str,
        *,
        operation: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Build OpenTelemetry span attributes for SQL operations."""
        sanitized = (sql or "").strip()
        if len(sanitized) > 4096:
            sanitized = f"{sanitized[:4093]}..."

        attributes: Dict[str, Any] = {
            "db.system": self.platform,
            "db.operation": operation,
            "sqlstore.executor": type(self).__name__,
        }
        if sanitized:
            attributes["db.statement"] = sanitized
            attributes["db.statement.length"] = len(sanitized)
        if extra:
            attributes.update(extra)
        return attributes
