"""Utility helpers for sqlstore."""

from sqlstore.utils.decorators import traced
from sqlstore.utils.sql import quote_literal, split_tsv_line, strip_statement_terminator

__all__ = [
    "traced",
    "quote_literal",
    "split_tsv_line",
    "strip_statement_terminator",
]
