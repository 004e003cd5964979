"""Small helpers for building and parsing SQL text."""

from typing import List


def quote_literal(value: str) -> str:
    """Render ``value`` as a single-quoted SQL string literal.

    Example:
        >>> quote_literal("O'Brien")
        "'O''Brien'"
    """
    return "'" + str(value).replace("'", "''") + "'"


def strip_statement_terminator(sql: str) -> str:
    """Remove trailing whitespace and at most one trailing ``;``."""
    stripped = sql.rstrip()
    if stripped.endswith(";"):
        stripped = stripped[:-1]
    return stripped


def split_tsv_line(line: str) -> List[str]:
    """Split one TSV output line into its fields."""
    return line.rstrip("\r\n").split("\t")
