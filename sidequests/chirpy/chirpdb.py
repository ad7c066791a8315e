"""Storage of chirpy users and chirps."""

from __future__ import annotations

import sqlite3
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Sequence

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    email TEXT NOT NULL,
    hashed_password TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS chirps (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    body TEXT NOT NULL,
    user_id TEXT NOT NULL REFERENCES users (id) ON DELETE CASCADE
);
"""


class NoRowsError(LookupError):
    """A query that must return one row found none."""


@dataclass(frozen=True)
class Chirp:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    body: str
    user_id: uuid.UUID


@dataclass(frozen=True)
class User:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    email: str
    hashed_password: str


def initialize_schema(conn: sqlite3.Connection) -> None:
    """Create the chirpy tables if they are not there yet."""
    conn.executescript(SCHEMA)
    conn.commit()


def _time_in(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _chirp(row: Sequence[Any]) -> Chirp:
    return Chirp(
        uuid.UUID(row[0]),
        datetime.fromisoformat(row[1]),
        datetime.fromisoformat(row[2]),
        row[3],
        uuid.UUID(row[4]),
    )


_CHIRP_COLUMNS = "id, created_at, updated_at, body, user_id"


class Queries:
    """The queries chirpy runs against its SQLite database."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.Lock()
        conn.execute("PRAGMA foreign_keys = ON")

    def create_chirp(self, body: str, user_id: uuid.UUID) -> Chirp:
        now = datetime.now(timezone.utc)
        chirp = Chirp(uuid.uuid4(), now, now, body, user_id)
        with self._lock, self._conn:
            self._conn.execute(
                f"INSERT INTO chirps ({_CHIRP_COLUMNS}) VALUES (?, ?, ?, ?, ?)",
                (str(chirp.id), _time_in(now), _time_in(now), body, str(user_id)),
            )
        return chirp

    def get_chirp(self, id: uuid.UUID) -> Chirp:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_CHIRP_COLUMNS} FROM chirps WHERE id = ?", (str(id),)
            ).fetchone()
        if row is None:
            raise NoRowsError("sql: no rows in result set")
        return _chirp(row)

    def get_chirps(self) -> list[Chirp]:
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_CHIRP_COLUMNS} FROM chirps ORDER BY created_at ASC, rowid ASC"
            ).fetchall()
        return [_chirp(row) for row in rows]

    def create_user(self, email: str, hashed_password: str) -> User:
        now = datetime.now(timezone.utc)
        user = User(uuid.uuid4(), now, now, email, hashed_password)
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT INTO users (id, created_at, updated_at, email, hashed_password) "
                "VALUES (?, ?, ?, ?, ?)",
                (str(user.id), _time_in(now), _time_in(now), email, hashed_password),
            )
        return user

    def delete_users(self) -> None:
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM users")