"""
psycopg-backed implementation of the connection the table handlers talk to.

`PgConnection` wraps one psycopg 3 connection and provides plain-text query
execution returning dict rows, server-correct identifier and literal quoting,
and column type discovery from the system catalogue.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Generator, List, Optional

import psycopg
from psycopg import sql
from psycopg.rows import dict_row

from pgtable.config import Settings, get_settings
from pgtable.exceptions import ConnectionFailed, QueryFailed
from pgtable.infrastructure.db_factory import (
    apply_statement_timeout,
    build_dsn,
    get_sync_connection,
)
from pgtable.utils.logging import get_logger

log = get_logger(__name__)

_COLUMN_TYPES_SQL = """
    SELECT a.attname AS column_name, t.typname AS type_name
    FROM pg_catalog.pg_attribute a
    JOIN pg_catalog.pg_type t ON t.oid = a.atttypid
    WHERE a.attrelid = to_regclass(%s)
      AND a.attnum > 0
      AND NOT a.attisdropped
    ORDER BY a.attnum
"""


class PgConnection:
    """
    A live PostgreSQL connection usable by table handlers.

    Parameters
    ----------
    conn : psycopg.Connection
        An open psycopg connection. Ownership passes to this wrapper; `close`
        closes it.

    Raises
    ------
    ConnectionFailed
        If `conn` is already closed.
    """

    def __init__(self, conn: psycopg.Connection) -> None:
        if conn.closed:
            raise ConnectionFailed("Connection provided is not connected to the PostgreSQL database.")
        self._conn = conn

    @classmethod
    def connect(
        cls, settings: Optional[Settings] = None, dsn: Optional[str] = None
    ) -> "PgConnection":
        """
        Open a new connection from settings (or an explicit DSN).

        Applies ``db_statement_timeout_ms`` to the session when it is set.
        """
        settings = settings or get_settings()
        conn = get_sync_connection(dsn or build_dsn(settings), autocommit=settings.db_autocommit)
        if settings.db_statement_timeout_ms > 0:
            with conn.cursor() as cur:
                apply_statement_timeout(cur, settings.db_statement_timeout_ms)
            if not settings.db_autocommit:
                conn.commit()
        return cls(conn)

    @property
    def raw(self) -> psycopg.Connection:
        """The underlying psycopg connection."""
        return self._conn

    @property
    def closed(self) -> bool:
        return self._conn.closed

    def execute(self, query: str) -> List[Dict[str, Any]]:
        """
        Run SQL text and return the rows of its last result set.

        Several statements may be joined with semicolons. Statements that
        return no rows yield an empty list.

        Raises
        ------
        QueryFailed
            The server rejected the query.
        psycopg.OperationalError / psycopg.InterfaceError
            The connection itself failed; these propagate unchanged.
        """
        try:
            with self._conn.cursor(row_factory=dict_row) as cur:
                cur.execute(query)
                rows = cur.fetchall() if cur.description is not None else []
                while cur.nextset():
                    rows = cur.fetchall() if cur.description is not None else []
                return rows
        except psycopg.InterfaceError:
            raise
        except psycopg.Error as exc:
            if self._conn.broken:
                raise
            log.error(
                f"Query failed: {exc}",
                extra={"query": query, "sqlstate": getattr(exc, "sqlstate", None)},
            )
            raise QueryFailed(query, str(exc).strip()) from exc

    def escape_identifier(self, name: str) -> str:
        return sql.Identifier(name).as_string(self._conn)

    def escape_literal(self, value: str) -> str:
        return sql.Literal(value).as_string(self._conn)

    def column_types(self, table: str) -> Dict[str, str]:
        """
        Map each column of `table` to its PostgreSQL type name (``int4``, ``bool`` ...).

        Returns an empty mapping when the table does not exist.
        """
        with self._conn.cursor(row_factory=dict_row) as cur:
            cur.execute(_COLUMN_TYPES_SQL, (self.escape_identifier(table),))
            return {row["column_name"]: row["type_name"] for row in cur.fetchall()}

    @contextmanager
    def transaction(self) -> Generator["PgConnection", None, None]:
        """
        Run the enclosed calls in one transaction (a savepoint when nested).

        Commits on normal exit and rolls back when the block raises. Handler
        caches are not rolled back with it.
        """
        with self._conn.transaction():
            yield self

    def close(self) -> None:
        if not self._conn.closed:
            self._conn.close()

    def __enter__(self) -> "PgConnection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["PgConnection"]
