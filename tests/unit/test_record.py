from __future__ import annotations

import logging

import pytest

from pgtable.exceptions import InvalidFieldValue, MissingRequiredField, PgTableError


def test_new_record_gets_client_id_before_any_query(users, fake_conn) -> None:
    record = users.new_record(name="user1", email="user1@gmail.com")

    assert record.id is not None
    assert record.persisted is False
    assert record.handler is users
    assert fake_conn.queries == []
    assert fake_conn.type_lookups == []


def test_new_record_for_database_ids_has_no_id(tasks) -> None:
    record = tasks.new_record(title="write tests", position=1)

    assert record.id is None
    assert record.persisted is False


def test_new_record_validates_fields(users) -> None:
    with pytest.raises(MissingRequiredField):
        users.new_record(name="user1")
    with pytest.raises(InvalidFieldValue) as exc_info:
        users.new_record(name="user1", email="user1@gmail.com", age="not a number")

    assert exc_info.value.field == "age"


def test_save_inserts_then_updates(users, fake_conn, user_row) -> None:
    record = users.new_record(name="user1", email="user1@gmail.com")
    fake_conn.queue([user_row(record.id)])

    assert record.save() is record
    assert record.persisted is True
    assert fake_conn.last_query == (
        f"INSERT INTO \"user\" (\"id\", \"name\", \"email\") "
        f"VALUES ('{record.id}', 'user1', 'user1@gmail.com') RETURNING *"
    )
    assert users.cached(record.id) is record

    record.name = "renamed"
    record.save()

    assert fake_conn.last_query.startswith('UPDATE "user" SET ')
    assert "\"name\" = 'renamed'" in fake_conn.last_query
    assert fake_conn.last_query.endswith(f"WHERE \"id\" = '{record.id}'")
    assert len(fake_conn.queries) == 2
    assert users.cached(record.id) is record


def test_save_reads_back_database_generated_id(tasks, fake_conn) -> None:
    record = tasks.new_record(title="write tests", position=1)
    fake_conn.queue([{"id": 7, "title": "write tests", "position": 1, "done": False}])

    record.save()

    assert fake_conn.last_query == (
        "INSERT INTO \"task\" (\"title\", \"position\") VALUES ('write tests', 1) RETURNING *"
    )
    assert record.id == 7
    assert record.done is False
    assert tasks.cached(7) is record


def test_get_save_query_does_not_execute(users, fake_conn, user_row) -> None:
    record = users.new_record(name="user1", email="user1@gmail.com")

    insert = record.get_save_query()

    assert insert.startswith('INSERT INTO "user"')
    assert "RETURNING" not in insert
    assert fake_conn.queries == []

    fake_conn.queue([user_row(record.id)])
    record.save()
    update = record.get_save_query()

    assert update.startswith('UPDATE "user" SET ')
    assert len(fake_conn.queries) == 1


def test_update_skips_unknown_fields_with_warning(users, fake_conn, user_row, caplog) -> None:
    record = users.new_record(name="user1", email="user1@gmail.com")
    fake_conn.queue([user_row(record.id)])
    record.save()

    with caplog.at_level(logging.WARNING, logger="pgtable.domain.record"):
        record.update({"name": "new", "favourite_colour": "blue"})

    assert record.name == "new"
    assert "Missing setter for: favourite_colour" in caplog.text
    assert "favourite_colour" not in fake_conn.last_query


def test_delete_resets_persisted_and_evicts(users, fake_conn, user_row) -> None:
    record = users.new_record(name="user1", email="user1@gmail.com")
    fake_conn.queue([user_row(record.id)])
    record.save()

    record.delete()

    assert fake_conn.last_query == f"DELETE FROM \"user\" WHERE \"id\" = '{record.id}'"
    assert record.persisted is False
    assert users.cached(record.id) is None


def test_duplicate_is_a_new_unsaved_row(users, fake_conn, user_row) -> None:
    record = users.new_record(name="user1", email="user1@gmail.com", age=30)
    fake_conn.queue([user_row(record.id, age=30)])
    record.save()

    clone = record.duplicate()

    assert clone is not record
    assert clone.id != record.id
    assert clone.id is not None
    assert clone.persisted is False
    assert clone.handler is users
    assert (clone.name, clone.email, clone.age) == ("user1", "user1@gmail.com", 30)

    fake_conn.queue([user_row(clone.id, age=30)])
    clone.save()

    assert fake_conn.last_query.startswith('INSERT INTO "user"')
    assert users.cached(clone.id) is clone
    assert users.cached(record.id) is record


def test_to_dict_includes_identifier_and_defaults(users) -> None:
    record = users.new_record(name="user1", email="user1@gmail.com")

    assert record.to_dict() == {
        "id": record.id,
        "name": "user1",
        "email": "user1@gmail.com",
        "nickname": None,
        "age": None,
        "is_active": True,
        "balance": 0.0,
    }


def test_unbound_record_cannot_be_saved_or_serialised(users) -> None:
    record = users.record_class(name="user1", email="user1@gmail.com")

    with pytest.raises(PgTableError, match="not bound"):
        record.save()
    with pytest.raises(PgTableError, match="not bound"):
        record.to_dict()
