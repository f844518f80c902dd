"""
pgtable - table handlers and row mapping for PostgreSQL.

This package maps PostgreSQL rows to typed pydantic records and back:

- Safe SQL composition (escaped identifiers and values, WHERE clauses, IN
  lists, batch inserts)
- A row codec that coerces driver values using declared column types
- Per-table handlers with CRUD operations and an identity cache, so loading
  the same id twice yields the same in-memory record

Connections come from psycopg 3 via `PgConnection`; configuration is read
from the environment with pydantic-settings.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from pgtable.config import Settings, get_settings
from pgtable.constraints import Constraint, DeferConfig
from pgtable.domain.record import Record
from pgtable.exceptions import (
    ConnectionFailed,
    InvalidFieldValue,
    MissingRequiredField,
    NoSuchIdentifier,
    PgTableError,
    QueryBuildError,
    QueryFailed,
    UnsupportedValueType,
)
from pgtable.ids import generate_uuid
from pgtable.infrastructure.connection import PgConnection
from pgtable.query_builder import Conjunction
from pgtable.table import IdGeneration, TableHandler
from pgtable.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Core
    "Conjunction",
    "IdGeneration",
    "Record",
    "TableHandler",
    "generate_uuid",
    # Schema helpers
    "Constraint",
    "DeferConfig",
    # Connection
    "PgConnection",
    # Errors
    "PgTableError",
    "MissingRequiredField",
    "UnsupportedValueType",
    "InvalidFieldValue",
    "NoSuchIdentifier",
    "QueryFailed",
    "QueryBuildError",
    "ConnectionFailed",
    # Logging
    "configure_logging",
    "get_logger",
]
