"""
SQL text builders for single-table statements.

Every builder takes the connection first (escaping needs it) and returns plain
SQL text. Values are escaped into the statement rather than bound as
parameters so that statements can be concatenated into one multi-statement
batch (see `TableHandler.batch_save`).

Usage:
    from pgtable.query_builder import Conjunction, build_select_where

    query = build_select_where(conn, "user", {"email": ["a@x.io", "b@x.io"]}, Conjunction.OR)
    # SELECT * FROM "user" WHERE "email" IN ('a@x.io', 'b@x.io')
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, List, Mapping, Sequence

from pgtable.escaping import Connection, escape_identifier, escape_identifiers, escape_value
from pgtable.exceptions import QueryBuildError


class Conjunction(str, Enum):
    """How the constraints of a WHERE clause combine."""

    AND = "AND"
    OR = "OR"


def _is_value_list(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


def _value_token(conn: Connection, value: Any, escape: bool = True) -> str:
    # NULL is never routed through escaping
    if value is None:
        return "NULL"
    if not escape:
        return str(value)
    return escape_value(conn, value)


def build_where_clause(
    conn: Connection,
    pairs: Mapping[str, Any],
    conjunction: Conjunction = Conjunction.AND,
    escape_values: bool = True,
) -> str:
    """
    Build the body of a WHERE clause (without the ``WHERE`` keyword).

    Parameters
    ----------
    pairs : Mapping[str, Any]
        Column name to value. A list/tuple/set value becomes ``IN (...)``; an
        empty one becomes ``FALSE`` so the clause matches nothing. ``None``
        becomes ``IS NULL``.
    conjunction : Conjunction
        ``AND`` or ``OR`` between the per-column constraints.
    escape_values : bool
        Set to False when the values are already SQL tokens (pre-escaped
        literals, expressions); they are then inserted verbatim.

    Returns
    -------
    str
        The clause body, or ``""`` when `pairs` is empty.
    """
    conjunction = Conjunction(conjunction)
    parts: List[str] = []

    for column, value in pairs.items():
        escaped_column = escape_identifier(conn, column)

        if _is_value_list(value):
            values = list(value)
            if not values:
                parts.append("FALSE")
            else:
                tokens = ", ".join(_value_token(conn, v, escape_values) for v in values)
                parts.append(f"{escaped_column} IN ({tokens})")
        elif value is None:
            parts.append(f"{escaped_column} IS NULL")
        else:
            parts.append(f"{escaped_column} = {_value_token(conn, value, escape_values)}")

    return f" {conjunction.value} ".join(parts)


def _with_where(prefix: str, clause: str) -> str:
    return f"{prefix} WHERE {clause}" if clause else prefix


def build_select_all(conn: Connection, table: str) -> str:
    return f"SELECT * FROM {escape_identifier(conn, table)}"


def build_select_where(
    conn: Connection,
    table: str,
    pairs: Mapping[str, Any],
    conjunction: Conjunction = Conjunction.AND,
) -> str:
    """``SELECT * FROM <table> [WHERE ...]``."""
    clause = build_where_clause(conn, pairs, conjunction)
    return _with_where(build_select_all(conn, table), clause)


def build_select_range(
    conn: Connection, table: str, offset: int, limit: int, order_by: str
) -> str:
    """
    Select a page of rows ordered by `order_by`.

    Offsets are positional and have nothing to do with identifier values.
    """
    if offset < 0 or limit < 0:
        raise QueryBuildError(f"offset and limit must be non-negative, got {offset}, {limit}")
    return (
        f"{build_select_all(conn, table)}"
        f" ORDER BY {escape_identifier(conn, order_by)}"
        f" OFFSET {int(offset)} LIMIT {int(limit)}"
    )


def build_select_not_in(
    conn: Connection, table: str, column: str, values: Sequence[Any]
) -> str:
    """Select rows whose `column` is not one of `values` (all rows when empty)."""
    select = build_select_all(conn, table)
    if not values:
        return select
    tokens = ", ".join(_value_token(conn, v) for v in values)
    return f"{select} WHERE {escape_identifier(conn, column)} NOT IN ({tokens})"


def build_delete_where(
    conn: Connection,
    table: str,
    pairs: Mapping[str, Any],
    conjunction: Conjunction = Conjunction.AND,
) -> str:
    """``DELETE FROM <table> [WHERE ...]``."""
    clause = build_where_clause(conn, pairs, conjunction)
    return _with_where(build_delete_all(conn, table), clause)


def build_delete_not_in(
    conn: Connection, table: str, column: str, values: Sequence[Any]
) -> str:
    """Delete rows whose `column` is not one of `values` (all rows when empty)."""
    delete = build_delete_all(conn, table)
    if not values:
        return delete
    tokens = ", ".join(_value_token(conn, v) for v in values)
    return f"{delete} WHERE {escape_identifier(conn, column)} NOT IN ({tokens})"


def build_delete_all(conn: Connection, table: str) -> str:
    return f"DELETE FROM {escape_identifier(conn, table)}"


def build_truncate(conn: Connection, table: str) -> str:
    return f"TRUNCATE {escape_identifier(conn, table)}"


def build_insert(
    conn: Connection, table: str, row: Mapping[str, Any], returning: bool = False
) -> str:
    """
    Build a single-row INSERT.

    ``None`` values render as a bare ``NULL``. An empty `row` inserts
    ``DEFAULT VALUES``. With `returning`, ``RETURNING *`` is appended so
    database-assigned values come back.
    """
    escaped_table = escape_identifier(conn, table)

    if row:
        columns = ", ".join(escape_identifiers(conn, row.keys()))
        values = ", ".join(_value_token(conn, v) for v in row.values())
        query = f"INSERT INTO {escaped_table} ({columns}) VALUES ({values})"
    else:
        query = f"INSERT INTO {escaped_table} DEFAULT VALUES"

    if returning:
        query += " RETURNING *"
    return query


def build_batch_insert(conn: Connection, table: str, rows: Sequence[Mapping[str, Any]]) -> str:
    """
    Build one INSERT carrying many rows.

    Every row must have the same set of keys, in any order. Keys are sorted
    per row so every VALUES tuple lines up with the column list.

    Raises
    ------
    QueryBuildError
        When `rows` is empty or the rows do not share one key set.
    """
    if not rows:
        raise QueryBuildError("No data to insert.")

    columns: List[str] = []
    value_sets: List[str] = []

    for index, row in enumerate(rows):
        ordered = sorted(row.items(), key=lambda item: item[0])
        keys = [key for key, _ in ordered]

        if index == 0:
            columns = keys
            if not columns:
                raise QueryBuildError("Cannot batch insert rows without columns.")
        elif keys != columns:
            raise QueryBuildError(
                f"Row {index} has columns {keys}, expected {columns}; "
                "every row must share the same columns."
            )

        tokens = ", ".join(_value_token(conn, value) for _, value in ordered)
        value_sets.append(f"({tokens})")

    escaped_columns = ", ".join(escape_identifiers(conn, columns))
    return (
        f"INSERT INTO {escape_identifier(conn, table)}"
        f" ({escaped_columns})"
        f" VALUES {', '.join(value_sets)}"
    )


def build_update_set(conn: Connection, row: Mapping[str, Any], escape_values: bool = True) -> str:
    """Comma-joined ``"col" = value`` fragments for an UPDATE's SET list."""
    return ", ".join(
        f"{escape_identifier(conn, column)} = {_value_token(conn, value, escape_values)}"
        for column, value in row.items()
    )


def build_update(
    conn: Connection,
    table: str,
    row: Mapping[str, Any],
    id_column: str,
    identifier: Any,
) -> str:
    """``UPDATE <table> SET ... WHERE <id_column> = <identifier>``."""
    if not row:
        raise QueryBuildError("Nothing to update: the row is empty.")
    where = build_where_clause(conn, {id_column: identifier})
    return f"UPDATE {escape_identifier(conn, table)} SET {build_update_set(conn, row)} WHERE {where}"


def join_statements(statements: Iterable[str]) -> str:
    """Concatenate statements into one multi-statement query string."""
    return "; ".join(statements) + ";"


__all__ = [
    "Conjunction",
    "build_where_clause",
    "build_select_all",
    "build_select_where",
    "build_select_range",
    "build_select_not_in",
    "build_delete_where",
    "build_delete_not_in",
    "build_delete_all",
    "build_truncate",
    "build_insert",
    "build_batch_insert",
    "build_update_set",
    "build_update",
    "join_statements",
]
