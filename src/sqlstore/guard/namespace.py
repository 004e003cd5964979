"""Namespace guard for destructive operations.

Every table the pipeline creates or drops carries a shared prefix
(``dd_`` by default). Names outside that namespace are never dropped.
"""

import re
from typing import List

import sqlglot
from sqlglot import exp
from sqlglot.errors import ParseError, TokenError

from sqlstore.common.exceptions import namespace_violation_error
from sqlstore.constants import INTERNAL_TABLE_PREFIX
from sqlstore.logging import get_logger

logger = get_logger(__name__)

_DROP_TABLE_RE = re.compile(
    r"\bDROP\s+TABLE\s+(?:IF\s+EXISTS\s+)?(?P<names>[^;()]+?)(?:\s+(?:CASCADE|RESTRICT))?\s*(?:;|$)",
    re.IGNORECASE | re.MULTILINE,
)


def _bare_table_name(name: str) -> str:
    """``"public"."dd_x"`` -> ``dd_x``."""
    return name.strip().split(".")[-1].strip().strip('"')


class NamespaceGuard:
    """Rejects destructive statements on tables outside the internal prefix.

    Example:
        >>> guard = NamespaceGuard("dd_")
        >>> guard.check_table_namespace("dd_labels")
        >>> guard.check_table_namespace("raw_input")
        Traceback (most recent call last):
        ...
        DataStoreError: [SECURITY_001] Refusing destructive operation ...
    """

    def __init__(self, prefix: str = INTERNAL_TABLE_PREFIX, dialect: str = "postgres"):
        self.prefix = prefix
        self.dialect = dialect

    def check_table_namespace(self, name: str) -> None:
        """Raise a NAMESPACE_VIOLATION unless ``name`` starts with the prefix."""
        if not name.startswith(self.prefix):
            raise namespace_violation_error(name, self.prefix)

    def dropped_tables(self, sql: str) -> List[str]:
        """Names of every table targeted by a DROP TABLE in ``sql``."""
        try:
            statements = sqlglot.parse(sql, dialect=self.dialect)
        except (ParseError, TokenError) as e:
            logger.debug("Falling back to regex DROP detection", extra={"error": str(e)})
            return self._dropped_tables_regex(sql)

        names: List[str] = []
        for statement in statements:
            if statement is None:
                continue
            if isinstance(statement, exp.Command):
                names.extend(self._dropped_tables_regex(statement.sql(dialect=self.dialect)))
                continue
            for drop in statement.find_all(exp.Drop):
                if str(drop.args.get("kind", "")).upper() != "TABLE":
                    continue
                names.extend(table.name for table in drop.find_all(exp.Table))
        return names

    @staticmethod
    def _dropped_tables_regex(sql: str) -> List[str]:
        names: List[str] = []
        for match in _DROP_TABLE_RE.finditer(sql):
            names.extend(_bare_table_name(n) for n in match.group("names").split(",") if n.strip())
        return names

    def check_statement(self, sql: str) -> None:
        """Apply ``check_table_namespace`` to every table a statement drops."""
        for name in self.dropped_tables(sql):
            self.check_table_namespace(name)
