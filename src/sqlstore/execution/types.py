"""Text rendering of driver values.

Driver results are rendered the way the SQL program prints them, so that
both executors return identical TSV fields for the same query.
"""

import datetime
import decimal
import json
from typing import Any

from sqlstore.constants import TSV_FALSE, TSV_NULL, TSV_TRUE


def unwrap_sql_type(value: Any) -> Any:
    """Unwrap driver-specific wrappers into plain Python values.

    psycopg2 hands back JSON columns already decoded and text columns as
    ``str``; other drivers may return ``memoryview``/``bytes`` for text or
    objects exposing the raw value through ``getvalue()`` or ``adapted``.
    Anything else is returned unchanged.
    """
    if isinstance(value, memoryview):
        value = value.tobytes()
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    for attr in ("adapted", "obj"):
        inner = getattr(value, attr, None)
        if inner is not None and not callable(inner):
            return unwrap_sql_type(inner)
    getvalue = getattr(value, "getvalue", None)
    if callable(getvalue):
        return unwrap_sql_type(getvalue())
    return value


def _render_array_element(value: Any) -> str:
    if value is None:
        return "NULL"
    text = render_tsv_field(value)
    if text == "" or any(c in text for c in ' ,{}"\\'):
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return text


def render_tsv_field(value: Any) -> str:
    """Render one result value as a PostgreSQL text-format field.

    Example:
        >>> render_tsv_field(True)
        't'
        >>> render_tsv_field([1, 2])
        '{1,2}'
        >>> render_tsv_field({"a": 1})
        '{"a":1}'
    """
    value = unwrap_sql_type(value)
    if value is None:
        return TSV_NULL
    if isinstance(value, bool):
        return TSV_TRUE if value else TSV_FALSE
    if isinstance(value, (list, tuple)):
        return "{" + ",".join(_render_array_element(v) for v in value) + "}"
    if isinstance(value, dict):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    if isinstance(value, decimal.Decimal):
        return format(value, "f")
    if isinstance(value, datetime.datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, (datetime.date, datetime.time)):
        return value.isoformat()
    return str(value)
