"""
Row codec: raw result rows to typed field values and back.

`decode` takes a row as the driver returned it plus an optional map of column
name to PostgreSQL type name (``int4``, ``numeric``, ``bool`` ...) and produces
the identifier and field values for a record class. `encode` goes the other
way, from a record to a column/value map ready for the query builder.

The codec only needs the record class to expose ``field_names()`` and a
record instance to expose ``id`` and ``assigned_fields()``; it does not touch
the table handler or the database.
"""

from __future__ import annotations

import re
import uuid
from decimal import Decimal, InvalidOperation
from typing import Any, Collection, Dict, Mapping, NamedTuple, Optional

from pgtable.exceptions import InvalidFieldValue, MissingRequiredField

INTEGER_TYPES = frozenset(
    {"int2", "int4", "int8", "smallint", "integer", "bigint", "serial", "smallserial", "bigserial"}
)
FLOAT_TYPES = frozenset({"numeric", "decimal", "float4", "float8", "real", "double precision", "money"})
BOOLEAN_TYPES = frozenset({"bool", "boolean"})

_TRUE_TOKENS = frozenset({"t", "true", "y", "yes", "on", "1"})
_FALSE_TOKENS = frozenset({"f", "false", "n", "no", "off", "0"})
_MONEY_NOISE = re.compile(r"[^0-9.\-]")


class DecodedRow(NamedTuple):
    identifier: Any
    values: Dict[str, Any]


def _to_int(field: str, value: Any, type_name: str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    try:
        if isinstance(value, str):
            return int(value.strip())
        if isinstance(value, (float, Decimal)) and value == int(value):
            return int(value)
    except (TypeError, ValueError, OverflowError, InvalidOperation):
        pass
    raise InvalidFieldValue(field, value, type_name)


def _to_float(field: str, value: Any, type_name: str) -> float:
    if isinstance(value, str):
        text = value.strip()
        if type_name == "money":
            negative = text.startswith("(") and text.endswith(")")
            text = _MONEY_NOISE.sub("", text)
            if negative and not text.startswith("-"):
                text = "-" + text
        try:
            return float(text)
        except ValueError:
            raise InvalidFieldValue(field, value, type_name) from None
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return float(value)
    raise InvalidFieldValue(field, value, type_name)


def _to_bool(field: str, value: Any, type_name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        token = value.strip().lower()
        if token in _TRUE_TOKENS:
            return True
        if token in _FALSE_TOKENS:
            return False
    elif isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise InvalidFieldValue(field, value, type_name)


def coerce_value(field: str, value: Any, type_name: Optional[str]) -> Any:
    """
    Coerce one raw column value according to its declared database type.

    Integer types give ``int``, numeric/float/money give ``float`` and
    ``bool`` gives ``bool`` (``'t'``/``'f'`` included). ``None`` and values
    of any other type pass through untouched.

    Raises
    ------
    InvalidFieldValue
        When the value cannot be read as the declared type.
    """
    if value is None or type_name is None:
        return value
    if type_name in INTEGER_TYPES:
        return _to_int(field, value, type_name)
    if type_name in FLOAT_TYPES:
        return _to_float(field, value, type_name)
    if type_name in BOOLEAN_TYPES:
        return _to_bool(field, value, type_name)
    return value


def coerce_identifier(value: Any, type_name: Optional[str] = None) -> Any:
    """
    Normalise an identifier so it can be used as a cache key.

    Integer-typed ids become ``int``. UUID objects, and text in a ``uuid``
    column, become the canonical lowercase hyphenated form the server returns.
    Text that does not parse as a UUID is left for the server to reject;
    everything else is returned unchanged.
    """
    if value is None:
        return None
    if type_name in INTEGER_TYPES:
        return _to_int("id", value, type_name)
    if isinstance(value, uuid.UUID):
        return str(value)
    if type_name == "uuid" and isinstance(value, str):
        try:
            return str(uuid.UUID(value))
        except ValueError:
            return value
    return value


def decode(
    record_cls: Any,
    raw_row: Mapping[str, Any],
    column_types: Optional[Mapping[str, str]] = None,
    *,
    id_column: str = "id",
    nullable_fields: Collection[str] = (),
    fields_with_defaults: Collection[str] = (),
) -> DecodedRow:
    """
    Turn a raw row into the identifier and field values of `record_cls`.

    Parameters
    ----------
    record_cls
        Record class; ``record_cls.field_names()`` lists the settable fields.
    raw_row : Mapping[str, Any]
        Column name to raw value, as returned by the connection.
    column_types : Mapping[str, str] | None
        Column name to PostgreSQL type name. Without it values are not coerced.
    id_column : str
        Name of the identifier column.
    nullable_fields, fields_with_defaults : Collection[str]
        Fields that may be missing from `raw_row`.

    Raises
    ------
    MissingRequiredField
        A field is absent from the row and is neither nullable nor defaulted.
    InvalidFieldValue
        A present value does not match its declared type.
    """
    types = column_types or {}
    values: Dict[str, Any] = {}

    for name in record_cls.field_names():
        if name == id_column:
            continue
        if name not in raw_row:
            if name in nullable_fields or name in fields_with_defaults:
                continue
            raise MissingRequiredField(name, record_cls.__name__)

        value = raw_row[name]
        if column_types is not None:
            value = coerce_value(name, value, types.get(name))
        values[name] = value

    identifier = coerce_identifier(raw_row.get(id_column), types.get(id_column))
    return DecodedRow(identifier, values)


def encode(record: Any, id_column: str = "id") -> Dict[str, Any]:
    """
    Turn a record into a column/value map.

    Only fields that have been assigned are included, so columns left unset
    fall back to their database defaults on insert. The identifier is
    included under `id_column` when it is not ``None``.
    """
    row: Dict[str, Any] = {}
    if record.id is not None:
        row[id_column] = record.id
    for name in record.assigned_fields():
        row[name] = getattr(record, name)
    return row


__all__ = [
    "INTEGER_TYPES",
    "FLOAT_TYPES",
    "BOOLEAN_TYPES",
    "DecodedRow",
    "coerce_value",
    "coerce_identifier",
    "decode",
    "encode",
]
