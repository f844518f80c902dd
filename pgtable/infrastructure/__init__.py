"""
Infrastructure package for pgtable.

Centralizes database connectivity concerns (DSN building, connection
bootstrap with retry, the psycopg-backed connection wrapper). Keep this layer
focused on I/O and resource management, decoupled from SQL composition and the
identity cache.
"""

from pgtable.infrastructure.connection import PgConnection
from pgtable.infrastructure.db_factory import (
    apply_statement_timeout,
    build_dsn,
    get_sync_connection,
)

__all__ = [
    "PgConnection",
    "apply_statement_timeout",
    "build_dsn",
    "get_sync_connection",
]
