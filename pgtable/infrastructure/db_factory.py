"""
Database connection factory utilities for pgtable.

Builds DSNs from settings and opens psycopg connections, retrying transient
connection failures with tenacity. Pooling is left to the application: a
table handler works against exactly one connection.
"""

from __future__ import annotations

from typing import Any, Optional

import psycopg
from psycopg import Connection
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from pgtable.config import Settings, get_settings
from pgtable.utils.logging import get_logger

log = get_logger(__name__)


def build_dsn(settings: Optional[Settings] = None) -> str:
    """
    Compose a ``postgresql://`` DSN string.

    Parameters
    ----------
    settings : Settings | None
        Settings to read from; defaults to the cached process settings.
    """
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def get_sync_connection(dsn: Optional[str] = None, autocommit: Optional[bool] = None) -> Connection:
    """
    Open a dedicated synchronous connection with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection errors.

    Parameters
    ----------
    dsn : str | None
        Connection string; built from settings when omitted.
    autocommit : bool | None
        Autocommit mode; ``Settings.db_autocommit`` when omitted.

    Returns
    -------
    Connection
        A new psycopg connection instance.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    if autocommit is None:
        autocommit = get_settings().db_autocommit
    conn = psycopg.connect(dsn or build_dsn(), autocommit=autocommit)
    log.debug("Opened database connection", extra={"autocommit": autocommit})
    return conn


def apply_statement_timeout(cursor: Any, timeout_ms: int) -> None:
    """
    Set ``statement_timeout`` for the cursor's session when `timeout_ms` is positive.
    """
    if timeout_ms and timeout_ms > 0:
        cursor.execute(f"SET statement_timeout = {int(timeout_ms)}")


__all__ = [
    "apply_statement_timeout",
    "build_dsn",
    "get_sync_connection",
]
