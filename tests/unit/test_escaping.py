from __future__ import annotations

import datetime
import uuid
from decimal import Decimal

import pytest

from pgtable.escaping import escape_identifier, escape_identifiers, escape_value, escape_values
from pgtable.exceptions import UnsupportedValueType


def test_scalars_render_as_sql_tokens(fake_conn) -> None:
    assert escape_value(fake_conn, None) == "NULL"
    assert escape_value(fake_conn, True) == "TRUE"
    assert escape_value(fake_conn, False) == "FALSE"
    assert escape_value(fake_conn, 42) == "42"
    assert escape_value(fake_conn, -7) == "-7"
    assert escape_value(fake_conn, 1.5) == "1.5"
    assert escape_value(fake_conn, Decimal("10.50")) == "10.50"


def test_strings_go_through_driver_quoting(fake_conn) -> None:
    assert escape_value(fake_conn, "O'Brien") == "'O''Brien'"
    assert escape_value(fake_conn, "") == "''"


def test_non_finite_numbers_become_quoted_special_values(fake_conn) -> None:
    assert escape_value(fake_conn, float("nan")) == "'NaN'"
    assert escape_value(fake_conn, float("inf")) == "'Infinity'"
    assert escape_value(fake_conn, float("-inf")) == "'-Infinity'"
    assert escape_value(fake_conn, Decimal("Infinity")) == "'Infinity'"
    assert escape_value(fake_conn, Decimal("NaN")) == "'NaN'"


def test_driver_native_values_render_as_text_literals(fake_conn) -> None:
    ident = uuid.UUID("12345678-1234-4678-9234-567812345678")

    assert escape_value(fake_conn, ident) == "'12345678-1234-4678-9234-567812345678'"
    assert escape_value(fake_conn, datetime.date(2024, 1, 2)) == "'2024-01-02'"
    assert (
        escape_value(fake_conn, datetime.datetime(2024, 1, 2, 3, 4, 5))
        == "'2024-01-02T03:04:05'"
    )


@pytest.mark.parametrize("value", [[1, 2], {"a": 1}, object(), b"raw"])
def test_unsupported_types_raise(fake_conn, value) -> None:
    with pytest.raises(UnsupportedValueType) as exc_info:
        escape_value(fake_conn, value)

    assert exc_info.value.value is value
    assert isinstance(exc_info.value, TypeError)


def test_plural_helpers_preserve_order(fake_conn) -> None:
    assert escape_values(fake_conn, ["a", None, 3]) == ["'a'", "NULL", "3"]
    assert escape_identifiers(fake_conn, ["name", "e\"mail"]) == ['"name"', '"e""mail"']
    assert escape_identifier(fake_conn, "user") == '"user"'
