"""
Table constraint DDL.

A `Constraint` holds the ``ALTER TABLE ... ADD CONSTRAINT`` text that creates
it and the matching ``DROP CONSTRAINT`` text. Declaring a unique constraint
deferrable is what lets `TableHandler.batch_save` move rows through transient
duplicates (e.g. swapping two positions) inside one batch.
"""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple, Sequence

from pgtable.escaping import Connection, escape_identifier, escape_identifiers


class DeferConfig(str, Enum):
    """When a constraint is checked."""

    INITIALLY_DEFERRED = "DEFERRABLE INITIALLY DEFERRED"
    INITIALLY_IMMEDIATE = "DEFERRABLE INITIALLY IMMEDIATE"
    NOT_DEFERRABLE = "NOT DEFERRABLE"


class Constraint(NamedTuple):
    name: str
    table_name: str
    sql_create: str
    sql_delete: str

    @classmethod
    def _build(
        cls,
        conn: Connection,
        table_name: str,
        name: str,
        definition: str,
        defer: DeferConfig,
    ) -> "Constraint":
        table = escape_identifier(conn, table_name)
        constraint = escape_identifier(conn, name)
        return cls(
            name=name,
            table_name=table_name,
            sql_create=f"ALTER TABLE {table} ADD CONSTRAINT {constraint} {definition} {defer.value}",
            sql_delete=f"ALTER TABLE {table} DROP CONSTRAINT {constraint}",
        )

    @classmethod
    def primary_key(
        cls,
        conn: Connection,
        table_name: str,
        name: str,
        columns: Sequence[str],
        defer: DeferConfig = DeferConfig.NOT_DEFERRABLE,
    ) -> "Constraint":
        """PRIMARY KEY over `columns`."""
        cols = ", ".join(escape_identifiers(conn, columns))
        return cls._build(conn, table_name, name, f"PRIMARY KEY ({cols})", defer)

    @classmethod
    def unique(
        cls,
        conn: Connection,
        table_name: str,
        name: str,
        columns: Sequence[str],
        defer: DeferConfig = DeferConfig.NOT_DEFERRABLE,
    ) -> "Constraint":
        """UNIQUE over `columns`."""
        cols = ", ".join(escape_identifiers(conn, columns))
        return cls._build(conn, table_name, name, f"UNIQUE ({cols})", defer)

    @classmethod
    def foreign_key(
        cls,
        conn: Connection,
        table_name: str,
        name: str,
        column: str,
        referenced_table: str,
        referenced_column: str,
        defer: DeferConfig = DeferConfig.NOT_DEFERRABLE,
    ) -> "Constraint":
        """
        FOREIGN KEY from `column` to `referenced_table`.`referenced_column`.
        """
        definition = (
            f"FOREIGN KEY ({escape_identifier(conn, column)})"
            f" REFERENCES {escape_identifier(conn, referenced_table)}"
            f" ({escape_identifier(conn, referenced_column)})"
        )
        return cls._build(conn, table_name, name, definition, defer)


__all__ = ["Constraint", "DeferConfig"]
