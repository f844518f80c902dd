"""
Value and identifier escaping.

Turns raw Python scalars and table/column names into SQL-safe tokens. The
actual quoting of strings and identifiers is delegated to the connection,
because PostgreSQL escaping depends on live connection settings (encoding,
`standard_conforming_strings`).

The `Connection` protocol below is the full contract this package needs from a
database connection; `pgtable.infrastructure.connection.PgConnection` is the
psycopg implementation.
"""

from __future__ import annotations

import datetime
import math
import uuid
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Protocol, runtime_checkable

from pgtable.exceptions import UnsupportedValueType


@runtime_checkable
class Connection(Protocol):
    """
    Minimal database connection contract.

    Methods
    -------
    execute(query)
        Run SQL text and return the rows of the (last) result set as dicts.
    escape_identifier(name)
        Quote a table or column name.
    escape_literal(value)
        Quote a string as a SQL literal.
    column_types(table)
        Map column name to its declared PostgreSQL type name (e.g. ``int4``).
    """

    def execute(self, query: str) -> List[Dict[str, Any]]:
        ...

    def escape_identifier(self, name: str) -> str:
        ...

    def escape_literal(self, value: str) -> str:
        ...

    def column_types(self, table: str) -> Dict[str, str]:
        ...


_NON_FINITE = {"nan": "NaN", "inf": "Infinity", "-inf": "-Infinity"}


def _non_finite_literal(conn: Connection, value: Any) -> str:
    text = str(value).lower()
    if text in ("infinity", "-infinity"):
        text = text.replace("infinity", "inf")
    return conn.escape_literal(_NON_FINITE.get(text, "NaN"))


def escape_value(conn: Connection, value: Any) -> str:
    """
    Render a single Python value as a SQL token.

    ``None`` becomes ``NULL`` and booleans become ``TRUE``/``FALSE``. Numbers
    are emitted as bare literals; strings go through the driver's literal
    quoting. UUIDs and date/time values (as the driver hands them back) are
    rendered as quoted literals of their text form so loaded records can be
    written back.

    Raises
    ------
    UnsupportedValueType
        For any other type, including lists and dicts.
    """
    if value is None:
        return "NULL"
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return _non_finite_literal(conn, value)
        return repr(value)
    if isinstance(value, Decimal):
        if not value.is_finite():
            return _non_finite_literal(conn, value)
        return str(value)
    if isinstance(value, str):
        return conn.escape_literal(value)
    if isinstance(value, uuid.UUID):
        return conn.escape_literal(str(value))
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return conn.escape_literal(value.isoformat())
    raise UnsupportedValueType(value)


def escape_values(conn: Connection, values: Iterable[Any]) -> List[str]:
    """Escape every value in `values`, preserving order."""
    return [escape_value(conn, value) for value in values]


def escape_identifier(conn: Connection, name: str) -> str:
    """Quote a table or column name."""
    return conn.escape_identifier(name)


def escape_identifiers(conn: Connection, names: Iterable[str]) -> List[str]:
    """Quote each table or column name in `names`."""
    return [conn.escape_identifier(name) for name in names]


__all__ = [
    "Connection",
    "escape_value",
    "escape_values",
    "escape_identifier",
    "escape_identifiers",
]
