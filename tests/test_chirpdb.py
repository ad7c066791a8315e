import sqlite3
import uuid

import pytest

from sidequests.chirpy.chirpdb import NoRowsError, Queries, initialize_schema


@pytest.fixture
def queries():
    conn = sqlite3.connect(":memory:")
    initialize_schema(conn)
    yield Queries(conn)
    conn.close()


def test_create_user_returns_given_fields(queries):
    user = queries.create_user("walt@example.com", "placeholder")
    assert user.email == "walt@example.com"
    assert user.hashed_password == "placeholder"
    assert user.created_at == user.updated_at


def test_create_and_get_chirp_round_trip(queries):
    user = queries.create_user("walt@example.com", "placeholder")
    chirp = queries.create_chirp("hello world", user.id)
    fetched = queries.get_chirp(chirp.id)
    assert fetched == chirp
    assert fetched.user_id == user.id


def test_get_unknown_chirp_raises(queries):
    with pytest.raises(NoRowsError):
        queries.get_chirp(uuid.uuid4())


def test_get_chirps_in_creation_order(queries):
    user = queries.create_user("walt@example.com", "placeholder")
    bodies = ["first", "second", "third"]
    for body in bodies:
        queries.create_chirp(body, user.id)
    assert [c.body for c in queries.get_chirps()] == bodies


def test_get_chirps_empty(queries):
    assert queries.get_chirps() == []


def test_chirp_for_unknown_user_fails(queries):
    with pytest.raises(sqlite3.IntegrityError):
        queries.create_chirp("orphan", uuid.uuid4())


def test_delete_users_removes_their_chirps(queries):
    user = queries.create_user("walt@example.com", "placeholder")
    chirp = queries.create_chirp("gone soon", user.id)
    queries.delete_users()
    assert queries.get_chirps() == []
    with pytest.raises(NoRowsError):
        queries.get_chirp(chirp.id)