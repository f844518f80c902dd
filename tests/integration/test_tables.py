"""
Integration tests for table handlers against PostgreSQL.

These tests run against a real PostgreSQL instance and verify that:
1. Records round-trip through INSERT ... RETURNING and SELECT with typed values
2. The identity cache stays consistent across writes and deletes
3. Database-generated ids and deferred constraints behave as expected

Run with: RUN_INTEGRATION_TESTS=1 pytest tests/integration/
"""

from __future__ import annotations

import os
from typing import Optional

import pytest

from pgtable import Conjunction, IdGeneration, NoSuchIdentifier, QueryFailed, Record, TableHandler

pytestmark = pytest.mark.skipif(
    os.getenv("RUN_INTEGRATION_TESTS", "0") != "1",
    reason="Integration tests require RUN_INTEGRATION_TESTS=1 and reachable Postgres",
)

USER_COUNT = 3


class User(Record):
    name: str
    email: str
    nickname: Optional[str] = None
    age: Optional[int] = None
    is_active: bool = True
    balance: float = 0.0


class Users(TableHandler[User]):
    table_name = "user"
    record_class = User
    nullable_fields = frozenset({"nickname", "age"})
    fields_with_defaults = frozenset({"is_active", "balance"})


class Task(Record):
    title: str
    position: int
    done: bool = False


class Tasks(TableHandler[Task]):
    table_name = "task"
    record_class = Task
    fields_with_defaults = frozenset({"done"})
    id_generation = IdGeneration.DATABASE


@pytest.fixture
def users(pg_connection, clean_tables) -> Users:
    return Users(pg_connection)


@pytest.fixture
def tasks(pg_connection, clean_tables) -> Tasks:
    return Tasks(pg_connection)


class TestUsers:
    """Client-generated uuid identifiers."""

    def test_column_types_come_from_catalogue(self, users):
        assert users.column_types["id"] == "uuid"
        assert users.column_types["age"] == "int4"
        assert users.column_types["is_active"] == "bool"

    def test_save_then_load_all(self, users):
        user = users.new_record(name="user1", email="user1@gmail.com")
        assert user.id is not None

        user.save()
        loaded = users.load_all()

        assert len(loaded) == 1
        assert loaded[0].to_dict() == user.to_dict()
        assert loaded[0].balance == 0.0
        assert loaded[0].is_active is True

    def test_load_uses_cache(self, users):
        user = users.create({"name": "user1", "email": "user1@gmail.com", "age": 30})

        assert users.load(user.id) is user
        users.clear_cache()
        fresh = users.load(user.id)
        assert fresh is not user
        assert fresh.age == 30
        assert users.load(user.id) is fresh

    def test_duplicate_saves_second_row(self, users):
        user = users.create({"name": "user1", "email": "user1@gmail.com"})

        clone = user.duplicate()
        clone.save()

        ids = {record.id for record in users.load_all()}
        assert ids == {user.id, clone.id}

    def test_update_and_id_change(self, users):
        user = users.create({"name": "user1", "email": "user1@gmail.com"})
        users.update(user.id, {"name": "new"})
        users.clear_cache()
        assert users.load(user.id).name == "new"

        new_id = users.generate_id()
        moved = users.update(user.id, {"id": new_id})

        assert moved.id == new_id
        with pytest.raises(NoSuchIdentifier):
            users.load(user.id)

    def test_delete_where_and_delete_many(self, users):
        created = [
            users.create({"name": f"user{i}", "email": f"user{i}@gmail.com"}) for i in range(USER_COUNT)
        ]

        users.delete_where({"email": ["user0@gmail.com", "user1@gmail.com"]}, Conjunction.OR)
        assert [record.id for record in users.load_all()] == [created[2].id]

        users.delete_many([created[2].id])
        assert users.load_all() == []

    def test_delete_all_except_and_range(self, users):
        created = [
            users.create({"name": f"user{i}", "email": f"user{i}@gmail.com"}) for i in range(USER_COUNT)
        ]

        assert len(users.load_range(1, 10)) == USER_COUNT - 1

        users.delete_all_except([created[0].id])
        assert [record.id for record in users.load_all()] == [created[0].id]

        users.delete_all(in_transaction=True)
        assert users.load_all() == []

    def test_failed_query_carries_sql(self, users):
        with pytest.raises(QueryFailed) as exc_info:
            users.load_where({"no_such_column": 1})

        assert "no_such_column" in exc_info.value.query


class TestTasks:
    """Database-generated serial identifiers."""

    def test_create_reads_back_serial_id(self, tasks):
        first = tasks.create({"title": "a", "position": 1})
        second = tasks.new_record(title="b", position=2).save()

        assert (first.id, second.id) == (1, 2)
        assert first.done is False
        assert tasks.load("2") is second

    def test_batch_save_swaps_unique_positions(self, tasks):
        first = tasks.create({"title": "a", "position": 1})
        second = tasks.create({"title": "b", "position": 2})
        first.position, second.position = 2, 1

        tasks.batch_save([first, second])
        tasks.clear_cache()

        positions = {task.title: task.position for task in tasks.load_all()}
        assert positions == {"a": 2, "b": 1}

    def test_failed_batch_leaves_rows_unchanged(self, tasks):
        first = tasks.create({"title": "a", "position": 1})
        second = tasks.create({"title": "b", "position": 2})
        first.position = 2

        with pytest.raises(QueryFailed):
            tasks.batch_save([first, second])

        tasks.clear_cache()
        positions = sorted(task.position for task in tasks.load_all())
        assert positions == [1, 2]
