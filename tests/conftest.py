"""
Pytest configuration for pgtable.

Provides fixtures for:
- An in-process fake connection that records SQL and returns scripted rows
- Sample record/handler types (`user` with client ids, `task` with serial ids)
- Database connection management and table cleaning for integration tests
"""

from __future__ import annotations

import os
from collections import deque
from typing import Any, Deque, Dict, Generator, List, Optional

import psycopg
import pytest

from pgtable.config import Settings
from pgtable.domain.record import Record
from pgtable.exceptions import QueryFailed
from pgtable.table import IdGeneration, TableHandler

USER_COLUMN_TYPES = {
    "id": "uuid",
    "name": "varchar",
    "email": "varchar",
    "nickname": "varchar",
    "age": "int4",
    "is_active": "bool",
    "balance": "numeric",
}

TASK_COLUMN_TYPES = {
    "id": "int4",
    "title": "text",
    "position": "int4",
    "done": "bool",
}


class UserRecord(Record):
    name: str
    email: str
    nickname: Optional[str] = None
    age: Optional[int] = None
    is_active: bool = True
    balance: float = 0.0


class UserTable(TableHandler[UserRecord]):
    table_name = "user"
    record_class = UserRecord
    nullable_fields = frozenset({"nickname", "age"})
    fields_with_defaults = frozenset({"is_active", "balance"})
    id_generation = IdGeneration.CLIENT


class TaskRecord(Record):
    title: str
    position: int
    done: bool = False


class TaskTable(TableHandler[TaskRecord]):
    table_name = "task"
    record_class = TaskRecord
    fields_with_defaults = frozenset({"done"})
    id_generation = IdGeneration.DATABASE


class FakeConnection:
    """
    Connection double: records every query and answers with queued results.

    Each `execute` pops the next queued result (a list of row dicts); with
    nothing queued it returns ``[]``. A query containing `fail_on` raises
    `QueryFailed` without consuming a result.
    """

    def __init__(self, column_types: Optional[Dict[str, Dict[str, str]]] = None) -> None:
        self.queries: List[str] = []
        self.type_lookups: List[str] = []
        self.fail_on: Optional[str] = None
        self._results: Deque[List[Dict[str, Any]]] = deque()
        self._column_types = column_types or {}

    def queue(self, *results: List[Dict[str, Any]]) -> None:
        self._results.extend(results)

    def execute(self, query: str) -> List[Dict[str, Any]]:
        self.queries.append(query)
        if self.fail_on and self.fail_on in query:
            raise QueryFailed(query, "scripted failure")
        if self._results:
            return [dict(row) for row in self._results.popleft()]
        return []

    def escape_identifier(self, name: str) -> str:
        return '"' + name.replace('"', '""') + '"'

    def escape_literal(self, value: str) -> str:
        return "'" + value.replace("'", "''") + "'"

    def column_types(self, table: str) -> Dict[str, str]:
        self.type_lookups.append(table)
        return dict(self._column_types.get(table, {}))

    @property
    def last_query(self) -> str:
        return self.queries[-1]


@pytest.fixture
def fake_conn() -> FakeConnection:
    return FakeConnection({"user": USER_COLUMN_TYPES, "task": TASK_COLUMN_TYPES})


@pytest.fixture
def users(fake_conn: FakeConnection) -> UserTable:
    return UserTable(fake_conn)


@pytest.fixture
def tasks(fake_conn: FakeConnection) -> TaskTable:
    return TaskTable(fake_conn)


@pytest.fixture
def user_row():
    """Factory for user rows as psycopg would return them."""

    def _make(identifier: str, name: str = "user1", **overrides: Any) -> Dict[str, Any]:
        row = {
            "id": identifier,
            "name": name,
            "email": f"{name}@gmail.com",
            "nickname": None,
            "age": None,
            "is_active": True,
            "balance": 0,
        }
        row.update(overrides)
        return row

    return _make


# Integration fixtures


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "pgtable"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def pg_connection(test_dsn: str, test_settings: Settings, db_connection_available: bool):
    """
    Provide a session-scoped `PgConnection` for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    from pgtable.infrastructure.connection import PgConnection

    conn = PgConnection.connect(test_settings, dsn=test_dsn)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="session")
def db_schema_initialized(pg_connection) -> bool:
    """
    Ensure the sample `user` and `task` tables exist.
    """
    from scripts.seed_data import _create_tables

    _create_tables(pg_connection, drop=True)
    return True


@pytest.fixture(scope="function")
def clean_tables(pg_connection, db_schema_initialized: bool) -> Generator[None, None, None]:
    """
    Empty the sample tables before and after each test function.
    """
    pg_connection.execute('TRUNCATE TABLE "user", "task" RESTART IDENTITY')
    yield
    pg_connection.execute('TRUNCATE TABLE "user", "task" RESTART IDENTITY')
