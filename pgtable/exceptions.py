"""
Exception hierarchy for pgtable.

Every error raised by the library derives from `PgTableError` so callers can
catch the whole family in one place. Each exception keeps the datum that caused
it as an attribute for diagnostics.
"""

from __future__ import annotations

from typing import Any, Optional


class PgTableError(Exception):
    """Base class for all pgtable errors."""


class MissingRequiredField(PgTableError):
    """
    A row or field map lacks a column that is neither nullable nor defaulted.
    """

    def __init__(self, field: str, record_type: str) -> None:
        self.field = field
        self.record_type = record_type
        super().__init__(f"{field} is required but missing for {record_type}")


class UnsupportedValueType(PgTableError, TypeError):
    """
    A value of a type the escaper does not know how to render.

    Pre-escape such values yourself or convert them to a supported type.
    """

    def __init__(self, value: Any) -> None:
        self.value = value
        super().__init__(
            f"Cannot escape value {value!r} of type {type(value).__name__}; "
            "convert it to str, int, float, Decimal, bool or None first."
        )


class InvalidFieldValue(PgTableError, ValueError):
    """A raw column value could not be coerced to its declared type."""

    def __init__(self, field: str, value: Any, type_name: Optional[str] = None) -> None:
        self.field = field
        self.value = value
        self.type_name = type_name
        target = f" as {type_name}" if type_name else ""
        super().__init__(f"Invalid value {value!r} for field {field}{target}")


class NoSuchIdentifier(PgTableError, LookupError):
    """A lookup by identifier found no row."""

    def __init__(self, table: str, identifier: Any, id_column: str = "id") -> None:
        self.table = table
        self.identifier = identifier
        self.id_column = id_column
        super().__init__(f"There is no row in {table} with {id_column}: {identifier}")


class QueryFailed(PgTableError):
    """The database rejected a query. `query` holds the SQL that failed."""

    def __init__(self, query: str, message: str = "") -> None:
        self.query = query
        self.message = message
        super().__init__(f"{message or 'Query failed'} | Query: {query[:200]}")


class QueryBuildError(PgTableError, ValueError):
    """The query builder was given input it cannot turn into SQL."""


class ConnectionFailed(PgTableError):
    """The wrapped database connection is not usable."""


__all__ = [
    "PgTableError",
    "MissingRequiredField",
    "UnsupportedValueType",
    "InvalidFieldValue",
    "NoSuchIdentifier",
    "QueryFailed",
    "QueryBuildError",
    "ConnectionFailed",
]
