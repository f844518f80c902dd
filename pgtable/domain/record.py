"""
Record base model.

A `Record` is the typed in-memory form of one table row. Subclasses declare
their columns as ordinary pydantic fields; that field list is the descriptor
table the codec iterates. The identifier is kept apart from the fields, along
with the persisted flag and the table handler the record belongs to.

Example
-------
    class UserRecord(Record):
        name: str
        email: str
        nickname: Optional[str] = None

    user = users.new_record(name="user1", email="user1@gmail.com")
    user.save()
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ConfigDict, PrivateAttr, ValidationError

from pgtable.codec import DecodedRow, decode, encode
from pgtable.exceptions import InvalidFieldValue, MissingRequiredField, PgTableError
from pgtable.query_builder import build_insert, build_update
from pgtable.utils.logging import get_logger

if TYPE_CHECKING:
    from pgtable.table import TableHandler

log = get_logger(__name__)

R = TypeVar("R", bound="Record")


def _translate_validation_error(exc: ValidationError, record_type: str) -> PgTableError:
    error = exc.errors()[0]
    loc = error.get("loc") or ("<record>",)
    field = str(loc[0])
    if error.get("type") == "missing":
        return MissingRequiredField(field, record_type)
    return InvalidFieldValue(field, error.get("input"))


class Record(BaseModel):
    """
    One row of a table, bound to the `TableHandler` that services it.

    Do not construct records directly for persistence; use
    `TableHandler.new_record` / `Record.new_from_fields` for new rows. Load
    paths build records with `from_database_row`.
    """

    model_config = ConfigDict(
        validate_assignment=True,
        extra="ignore",
        arbitrary_types_allowed=True,
    )

    _id: Any = PrivateAttr(default=None)
    _persisted: bool = PrivateAttr(default=False)
    _handler: Any = PrivateAttr(default=None)

    # Construction

    @classmethod
    def field_names(cls) -> Tuple[str, ...]:
        """Names of the declared columns, in declaration order."""
        return tuple(cls.model_fields)

    @classmethod
    def _from_decoded(
        cls: Type[R], handler: "TableHandler", decoded: DecodedRow, persisted: bool
    ) -> R:
        try:
            record = cls(**decoded.values)
        except ValidationError as exc:
            raise _translate_validation_error(exc, cls.__name__) from exc
        record._id = decoded.identifier
        record._persisted = persisted
        record._handler = handler
        return record

    @classmethod
    def from_database_row(
        cls: Type[R],
        handler: "TableHandler",
        row: Mapping[str, Any],
        column_types: Optional[Mapping[str, str]] = None,
    ) -> R:
        """
        Build a record from a row the database returned.

        Only load paths should call this: the result is flagged as persisted.
        """
        decoded = decode(
            cls,
            row,
            column_types,
            id_column=handler.id_column,
            nullable_fields=handler.nullable_fields,
            fields_with_defaults=handler.fields_with_defaults,
        )
        return cls._from_decoded(handler, decoded, persisted=True)

    @classmethod
    def new_from_fields(cls: Type[R], handler: "TableHandler", data: Mapping[str, Any]) -> R:
        """
        Build a new, unsaved record from field values.

        When `data` carries no identifier one is assigned from the handler's
        id-generation policy (left as ``None`` for database-generated ids).
        Nothing is written until `save()` is called.
        """
        decoded = decode(
            cls,
            data,
            None,
            id_column=handler.id_column,
            nullable_fields=handler.nullable_fields,
            fields_with_defaults=handler.fields_with_defaults,
        )
        identifier = decoded.identifier
        if identifier is None:
            identifier = handler.new_identifier()
        else:
            identifier = handler.normalize_id(identifier)
        return cls._from_decoded(handler, DecodedRow(identifier, decoded.values), persisted=False)

    # State

    @property
    def id(self) -> Any:
        return self._id

    @property
    def persisted(self) -> bool:
        return self._persisted

    @property
    def handler(self) -> Optional["TableHandler"]:
        return self._handler

    def _require_handler(self) -> "TableHandler":
        if self._handler is None:
            raise PgTableError(
                f"{type(self).__name__} is not bound to a table handler; "
                "create it with TableHandler.new_record()."
            )
        return self._handler

    def assigned_fields(self) -> List[str]:
        """Declared fields that have been given a value, in declaration order."""
        assigned = self.model_fields_set
        return [name for name in self.field_names() if name in assigned]

    def to_row(self) -> Dict[str, Any]:
        """Column/value map for persistence (unset fields are left out)."""
        return encode(self, self._require_handler().id_column)

    def to_dict(self) -> Dict[str, Any]:
        """
        The identifier plus every declared field, keyed by column name.

        The identifier goes under the handler's id column, so the record must
        be bound to a handler.
        """
        data: Dict[str, Any] = {self._require_handler().id_column: self._id}
        for name in self.field_names():
            data[name] = getattr(self, name)
        return data

    # Handler-side mutation; callers go through save()/update()

    def _set_field(self, name: str, value: Any) -> None:
        try:
            setattr(self, name, value)
        except ValidationError as exc:
            raise _translate_validation_error(exc, type(self).__name__) from exc

    def _patch(self, values: Mapping[str, Any]) -> None:
        fields = set(self.field_names())
        for name, value in values.items():
            if name in fields:
                self._set_field(name, value)

    def _apply(self, decoded: DecodedRow, persisted: bool) -> None:
        self._patch(decoded.values)
        self._id = decoded.identifier
        self._persisted = persisted

    def _rekey(self, identifier: Any) -> None:
        self._id = identifier

    def _mark_saved(self) -> None:
        self._persisted = True

    # Persistence

    def save(self: R) -> R:
        """
        Write the record: UPDATE when already persisted, INSERT otherwise.
        """
        handler = self._require_handler()
        row = self.to_row()

        if self._persisted:
            handler.update(self._id, row)
        else:
            handler.create(row, record=self)

        self._persisted = True
        return self

    def get_save_query(self) -> str:
        """The INSERT or UPDATE that `save()` would run, without running it."""
        handler = self._require_handler()
        row = self.to_row()

        if self._persisted:
            return build_update(handler.connection, handler.table_name, row, handler.id_column, self._id)
        return build_insert(handler.connection, handler.table_name, row)

    def update(self: R, fields: Mapping[str, Any]) -> R:
        """
        Set the given fields and save.

        Names that are not declared fields are skipped with a warning.
        """
        known = set(self.field_names())
        for name, value in fields.items():
            if name not in known:
                log.warning(
                    f"Missing setter for: {name} when updating: {type(self).__name__}",
                    extra={"field": name, "record_type": type(self).__name__},
                )
                continue
            self._set_field(name, value)

        return self.save()

    def delete(self) -> None:
        """Delete this record's row. A later `save()` inserts it again."""
        self._require_handler().delete(self._id)
        self._persisted = False

    def duplicate(self: R) -> R:
        """
        Copy this record as a brand-new, unsaved row with a fresh identifier.
        """
        clone = self.model_copy()
        clone._id = self._handler.new_identifier() if self._handler is not None else None
        clone._persisted = False
        return clone


__all__ = ["Record"]
