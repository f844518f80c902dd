"""
Table handler: CRUD for one table plus an identity cache.

A `TableHandler` subclass describes one table (name, identifier column,
nullable and defaulted columns, identifier-generation mode, record class) and
is constructed with a connection. Each instance owns a cache mapping
identifier to the single in-memory `Record` for that row, so loading the same
id twice returns the same object without a second round trip.

Usage:
    class UserTable(TableHandler[UserRecord]):
        table_name = "user"
        record_class = UserRecord

    users = UserTable(PgConnection.connect())
    user = users.create({"name": "user1", "email": "user1@gmail.com"})
    assert users.load(user.id) is user

The cache is not thread-safe. Use one handler per thread (or process), or lock
around it.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, FrozenSet, Generic, Iterable, List, Mapping, Optional, Type, TypeVar

from pgtable.codec import coerce_identifier, decode
from pgtable.domain.record import Record
from pgtable.escaping import Connection
from pgtable.exceptions import NoSuchIdentifier, QueryBuildError
from pgtable.ids import generate_uuid
from pgtable.query_builder import (
    Conjunction,
    build_delete_all,
    build_delete_not_in,
    build_delete_where,
    build_insert,
    build_select_all,
    build_select_not_in,
    build_select_range,
    build_select_where,
    build_truncate,
    build_update,
    join_statements,
)
from pgtable.utils.logging import get_logger

log = get_logger(__name__)

RecordT = TypeVar("RecordT", bound=Record)


class IdGeneration(str, Enum):
    """Who assigns identifiers to new rows."""

    CLIENT = "client"
    DATABASE = "database"


class TableHandler(Generic[RecordT]):
    """
    Base class for per-table handlers.

    Subclasses set the class attributes below; instances are created with the
    connection to use.

    Attributes
    ----------
    table_name : str
        Table name as it appears in the database.
    record_class : type[Record]
        Record subclass rows are materialised as.
    id_column : str
        Identifier column name.
    nullable_fields : frozenset[str]
        Columns that may be NULL and so may be absent when building a record.
    fields_with_defaults : frozenset[str]
        Columns with server-side defaults, likewise optional.
    id_generation : IdGeneration
        ``CLIENT`` generates ids before insert (`generate_id`); ``DATABASE``
        leaves the column out and reads the assigned id back.
    """

    table_name: str = ""
    record_class: Type[RecordT]
    id_column: str = "id"
    nullable_fields: FrozenSet[str] = frozenset()
    fields_with_defaults: FrozenSet[str] = frozenset()
    id_generation: IdGeneration = IdGeneration.CLIENT

    def __init__(
        self,
        connection: Connection,
        column_types: Optional[Mapping[str, str]] = None,
    ) -> None:
        if not self.table_name:
            raise TypeError(f"{type(self).__name__} must set table_name")
        if getattr(self, "record_class", None) is None:
            raise TypeError(f"{type(self).__name__} must set record_class")

        self._conn = connection
        self._cache: Dict[Any, RecordT] = {}
        self._column_types: Optional[Dict[str, str]] = (
            dict(column_types) if column_types is not None else None
        )

    # Configuration helpers

    @property
    def connection(self) -> Connection:
        return self._conn

    @property
    def column_types(self) -> Dict[str, str]:
        """Column name to database type name, fetched once on first use."""
        if self._column_types is None:
            self._column_types = dict(self._conn.column_types(self.table_name))
        return self._column_types

    def refresh_column_types(self) -> Dict[str, str]:
        """Re-read column types, e.g. after a migration altered the table."""
        self._column_types = None
        return self.column_types

    def generate_id(self) -> Any:
        """Client-side identifier factory. Override for non-UUID keys."""
        return generate_uuid()

    def new_identifier(self) -> Any:
        """A fresh id under this table's policy, or ``None`` if the database assigns it."""
        if self.id_generation is IdGeneration.CLIENT:
            return self.generate_id()
        return None

    def normalize_id(self, identifier: Any) -> Any:
        """Bring an identifier to the form used as cache key."""
        return coerce_identifier(identifier, self.column_types.get(self.id_column))

    def new_record(self, data: Optional[Mapping[str, Any]] = None, **fields: Any) -> RecordT:
        """Build an unsaved record bound to this handler."""
        values = dict(data or {})
        values.update(fields)
        return self.record_class.new_from_fields(self, values)

    # Cache

    def cached(self, identifier: Any) -> Optional[RecordT]:
        """The cached record for `identifier`, if any. Never hits the database."""
        return self._cache.get(self.normalize_id(identifier))

    def evict(self, identifier: Any) -> None:
        """Drop one cache entry. Missing ids are ignored."""
        self._cache.pop(self.normalize_id(identifier), None)

    def clear_cache(self) -> None:
        """Empty the cache entirely."""
        self._cache.clear()

    def _execute(self, query: str) -> List[Dict[str, Any]]:
        log.debug("Executing query", extra={"table": self.table_name, "query": query})
        return self._conn.execute(query)

    def _materialize(self, rows: Iterable[Mapping[str, Any]]) -> List[RecordT]:
        records: List[RecordT] = []
        column_types = self.column_types
        for row in rows:
            decoded = decode(
                self.record_class,
                row,
                column_types,
                id_column=self.id_column,
                nullable_fields=self.nullable_fields,
                fields_with_defaults=self.fields_with_defaults,
            )
            record = self._cache.get(decoded.identifier)
            if record is None:
                record = self.record_class._from_decoded(self, decoded, persisted=True)
                if record.id is not None:
                    self._cache[record.id] = record
            else:
                # refresh the canonical instance in place
                record._apply(decoded, persisted=True)
            records.append(record)
        return records

    # Loading

    def load(self, identifier: Any, use_cache: bool = True) -> RecordT:
        """
        Load one record by identifier.

        Raises
        ------
        NoSuchIdentifier
            When no row has that identifier.
        """
        key = self.normalize_id(identifier)
        found = self.load_many([key], use_cache=use_cache)
        if key not in found:
            raise NoSuchIdentifier(self.table_name, identifier, self.id_column)
        return found[key]

    def load_many(self, identifiers: Iterable[Any], use_cache: bool = True) -> Dict[Any, RecordT]:
        """
        Load several records, keyed by identifier.

        Cached ids are served from memory; the rest are fetched with a single
        ``SELECT ... IN``. Ids with no row are simply absent from the result.
        """
        found: Dict[Any, RecordT] = {}
        to_fetch: Dict[Any, None] = {}

        for identifier in identifiers:
            key = self.normalize_id(identifier)
            if use_cache and key in self._cache:
                found[key] = self._cache[key]
            else:
                to_fetch[key] = None

        if to_fetch:
            query = build_select_where(
                self._conn, self.table_name, {self.id_column: list(to_fetch)}
            )
            for record in self._materialize(self._execute(query)):
                found[record.id] = record

        return found

    def load_all(self) -> List[RecordT]:
        """Load every row. The cache is cleared and rebuilt from the result."""
        self.clear_cache()
        return self._materialize(self._execute(build_select_all(self._conn, self.table_name)))

    def load_range(self, offset: int, limit: int) -> List[RecordT]:
        """
        Load up to `limit` rows after skipping `offset`, ordered by identifier.

        The offset is positional; it has nothing to do with identifier values.
        """
        query = build_select_range(self._conn, self.table_name, offset, limit, self.id_column)
        return self._materialize(self._execute(query))

    def load_where(
        self, pairs: Mapping[str, Any], conjunction: Conjunction = Conjunction.AND
    ) -> List[RecordT]:
        """
        Load records matching column/value pairs.

        A list value matches any of its members; an empty list matches
        nothing. Returns an empty list when no row matches.
        """
        query = build_select_where(self._conn, self.table_name, pairs, conjunction)
        return self._materialize(self._execute(query))

    def load_ids_not_in(self, identifiers: Iterable[Any]) -> List[RecordT]:
        """Load every record whose id is not listed (all of them for an empty list)."""
        keys = [self.normalize_id(identifier) for identifier in identifiers]
        query = build_select_not_in(self._conn, self.table_name, self.id_column, keys)
        return self._materialize(self._execute(query))

    # Writing

    def create(self, row: Mapping[str, Any], record: Optional[RecordT] = None) -> RecordT:
        """
        Insert a new row and return its record.

        An explicit, non-null identifier in `row` is used as given. Otherwise
        client-generated tables get a new id before the INSERT, and
        database-generated tables leave the column out. The inserted row is
        read back with ``RETURNING *``, so database defaults and generated ids
        end up on the record.

        Parameters
        ----------
        row : Mapping[str, Any]
            Column/value pairs.
        record : Record | None
            An unsaved record to bind to the new row instead of building a
            new one (used by `Record.save`).
        """
        values = dict(row)
        if values.get(self.id_column) is None:
            values.pop(self.id_column, None)
            identifier = self.new_identifier()
            if identifier is not None:
                values[self.id_column] = identifier

        # required fields are checked before the round trip
        decode(
            self.record_class,
            values,
            None,
            id_column=self.id_column,
            nullable_fields=self.nullable_fields,
            fields_with_defaults=self.fields_with_defaults,
        )

        query = build_insert(self._conn, self.table_name, values, returning=True)
        returned = self._execute(query)

        decoded = decode(
            self.record_class,
            returned[0] if returned else values,
            self.column_types,
            id_column=self.id_column,
            nullable_fields=self.nullable_fields,
            fields_with_defaults=self.fields_with_defaults,
        )

        if record is None:
            record = self.record_class._from_decoded(self, decoded, persisted=True)
        else:
            record._apply(decoded, persisted=True)

        if record.id is not None:
            self._cache[record.id] = record
        return record

    def update(self, identifier: Any, row: Mapping[str, Any]) -> RecordT:
        """
        Update the row with `identifier` using the given partial row.

        Runs exactly one UPDATE. A cached record is patched in place; an
        uncached one is loaded fresh afterwards. If `row` changes the
        identifier, the old cache key is dropped and the returned record
        carries the new one.
        """
        # Never load the record and call save() here: Record.save() calls
        # this method.
        values = dict(row)
        if not values:
            return self.load(identifier)

        key = self.normalize_id(identifier)
        query = build_update(self._conn, self.table_name, values, self.id_column, key)
        self._execute(query)

        new_key = key
        if values.get(self.id_column) is not None:
            new_key = self.normalize_id(values[self.id_column])

        cached = self._cache.get(key)
        if cached is None:
            if new_key != key:
                self._cache.pop(key, None)
            return self.load(new_key, use_cache=False)

        try:
            cached._patch({k: v for k, v in values.items() if k != self.id_column})
        except Exception:
            self._cache.pop(key, None)
            raise

        if new_key != key:
            del self._cache[key]
            displaced = self._cache.get(new_key)
            if displaced is not None and displaced is not cached:
                log.warning(
                    f"Evicting cached record {new_key} displaced by identifier change from {key}",
                    extra={"table": self.table_name, "identifier": new_key},
                )
            cached._rekey(new_key)
            self._cache[new_key] = cached
        return cached

    def batch_save(self, records: Iterable[RecordT]) -> None:
        """
        Save many records in one multi-statement round trip.

        Constraint checks are deferred to the end of the batch (only affects
        constraints declared DEFERRABLE), so rows can be renumbered through
        transient unique violations. On success every record is marked
        persisted and cached; on failure neither the records nor the cache
        change.

        Raises
        ------
        QueryBuildError
            When an unsaved record has no identifier (database-generated ids
            cannot be read back from a batch) or belongs to another handler.
        """
        records = list(records)
        if not records:
            return

        for record in records:
            if record.handler is not self:
                raise QueryBuildError(
                    f"{type(record).__name__} {record.id} is not bound to {type(self).__name__}"
                )
            if not record.persisted and record.id is None:
                raise QueryBuildError(
                    f"Unsaved {type(record).__name__} has no identifier; "
                    "save it individually so the database-generated id can be read back."
                )

        statements = ["SET CONSTRAINTS ALL DEFERRED"]
        statements.extend(record.get_save_query() for record in records)
        self._execute(join_statements(statements))

        for record in records:
            record._mark_saved()
            self._cache[record.id] = record

        log.info(
            f"Batch saved {len(records)} records",
            extra={"table": self.table_name, "rows": len(records)},
        )

    # Deleting

    def delete(self, identifier: Any) -> None:
        """Delete one row by identifier. A missing row is not an error."""
        key = self.normalize_id(identifier)
        query = build_delete_where(self._conn, self.table_name, {self.id_column: key})
        self._execute(query)
        self._cache.pop(key, None)

    delete_by_id = delete

    def delete_many(self, identifiers: Iterable[Any]) -> None:
        """
        Delete rows by identifier with one ``DELETE ... IN``.

        Exactly those ids are evicted from the cache. Ids without a row are
        ignored.
        """
        keys = list(dict.fromkeys(self.normalize_id(identifier) for identifier in identifiers))
        if not keys:
            return

        query = build_delete_where(self._conn, self.table_name, {self.id_column: keys})
        self._execute(query)

        for key in keys:
            self._cache.pop(key, None)

    def delete_where(
        self,
        pairs: Mapping[str, Any],
        conjunction: Conjunction = Conjunction.AND,
        clear_cache: bool = True,
    ) -> None:
        """
        Delete rows matching column/value pairs.

        The deleted ids are not known, so the whole cache is cleared
        afterwards unless `clear_cache` is False, in which case keeping the
        cache honest is up to the caller. Prefer `delete_many` when the ids
        are known.
        """
        query = build_delete_where(self._conn, self.table_name, pairs, conjunction)
        self._execute(query)

        if clear_cache:
            self.clear_cache()

        log.info("Deleted rows by filter", extra={"table": self.table_name, "query": query})

    def delete_all_except(self, identifiers: Iterable[Any], clear_cache: bool = True) -> None:
        """
        Delete every row whose id is not listed.

        With `clear_cache`, cached records outside the kept ids are evicted.
        """
        keep = list(dict.fromkeys(self.normalize_id(identifier) for identifier in identifiers))
        query = build_delete_not_in(self._conn, self.table_name, self.id_column, keep)
        self._execute(query)

        if clear_cache:
            kept = set(keep)
            for key in [key for key in self._cache if key not in kept]:
                del self._cache[key]

    def truncate(self) -> None:
        """Empty the table with TRUNCATE (implicit commit) and clear the cache."""
        self._execute(build_truncate(self._conn, self.table_name))
        self.clear_cache()
        log.info("Truncated table", extra={"table": self.table_name})

    def delete_all(self, in_transaction: bool = False) -> None:
        """
        Delete every row and clear the cache.

        Parameters
        ----------
        in_transaction : bool
            Use the slower ``DELETE FROM``, which is safe inside a transaction.
            The default ``TRUNCATE`` is faster but commits implicitly on
            databases where truncation is non-transactional.
        """
        if not in_transaction:
            self.truncate()
            return

        self._execute(build_delete_all(self._conn, self.table_name))
        self.clear_cache()
        log.info("Deleted all rows", extra={"table": self.table_name})


__all__ = ["IdGeneration", "TableHandler"]
