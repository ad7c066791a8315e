"""Storage of users, feeds, follows and posts for the gator aggregator."""

from __future__ import annotations

import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Sequence, TypeVar

T = TypeVar("T")

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    name TEXT NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS feeds (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    name TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    user_id TEXT NOT NULL REFERENCES users (id) ON DELETE CASCADE,
    last_fetched_at TEXT
);
CREATE TABLE IF NOT EXISTS feed_follows (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    user_id TEXT NOT NULL REFERENCES users (id) ON DELETE CASCADE,
    feed_id TEXT NOT NULL REFERENCES feeds (id) ON DELETE CASCADE,
    UNIQUE (user_id, feed_id)
);
CREATE TABLE IF NOT EXISTS posts (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    title TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    description TEXT,
    published_at TEXT,
    feed_id TEXT NOT NULL REFERENCES feeds (id) ON DELETE CASCADE
);
"""


class NoRowsError(LookupError):
    """A query that must return one row found none."""


class UniqueViolationError(Exception):
    """An insert broke a uniqueness constraint."""


@dataclass(frozen=True)
class User:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    name: str


@dataclass(frozen=True)
class Feed:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    name: str
    url: str
    user_id: uuid.UUID
    last_fetched_at: datetime | None = None


@dataclass(frozen=True)
class FeedFollow:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    user_id: uuid.UUID
    feed_id: uuid.UUID


@dataclass(frozen=True)
class Post:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    title: str
    url: str
    description: str | None
    published_at: datetime | None
    feed_id: uuid.UUID


@dataclass(frozen=True)
class FeedFollowRow:
    """A follow together with the names of its user and feed."""

    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    user_id: uuid.UUID
    feed_id: uuid.UUID
    user_name: str
    feed_name: str


@dataclass(frozen=True)
class UserFeedFollowRow:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    user_name: str
    feed_name: str


@dataclass(frozen=True)
class FeedListRow:
    id: uuid.UUID
    feed_name: str
    url: str
    user_name: str


@dataclass(frozen=True)
class UserPostRow:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    title: str
    url: str
    description: str | None
    published_at: datetime | None
    feed_id: uuid.UUID
    feed_name: str


def initialize_schema(conn: sqlite3.Connection) -> None:
    """Create the tables gator needs, if they are not there yet."""
    conn.executescript(SCHEMA)
    conn.commit()


def _time_in(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.astimezone()
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _opt_time_in(value: datetime | None) -> str | None:
    return None if value is None else _time_in(value)


def _time_out(text: str) -> datetime:
    return datetime.fromisoformat(text)


def _opt_time_out(text: str | None) -> datetime | None:
    return None if text is None else _time_out(text)


def _id(text: str) -> uuid.UUID:
    return uuid.UUID(text)


def _user(row: Sequence[Any]) -> User:
    return User(_id(row[0]), _time_out(row[1]), _time_out(row[2]), row[3])


def _feed(row: Sequence[Any]) -> Feed:
    return Feed(
        _id(row[0]),
        _time_out(row[1]),
        _time_out(row[2]),
        row[3],
        row[4],
        _id(row[5]),
        _opt_time_out(row[6]),
    )


def _post(row: Sequence[Any]) -> Post:
    return Post(
        _id(row[0]),
        _time_out(row[1]),
        _time_out(row[2]),
        row[3],
        row[4],
        row[5],
        _opt_time_out(row[6]),
        _id(row[7]),
    )


_FEED_COLUMNS = "id, created_at, updated_at, name, url, user_id, last_fetched_at"
_POST_COLUMNS = "id, created_at, updated_at, title, url, description, published_at, feed_id"


class Queries:
    """The queries gator runs against its SQLite database."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        conn.execute("PRAGMA foreign_keys = ON")

    def _one(self, sql: str, params: Sequence[Any], build: Callable[[Sequence[Any]], T]) -> T:
        row = self._conn.execute(sql, params).fetchone()
        if row is None:
            raise NoRowsError("no rows in result set")
        return build(row)

    def _many(
        self, sql: str, params: Sequence[Any], build: Callable[[Sequence[Any]], T]
    ) -> list[T]:
        return [build(row) for row in self._conn.execute(sql, params).fetchall()]

    def _insert_returning(
        self,
        insert: str,
        params: Sequence[Any],
        select: str,
        key: Sequence[Any],
        build: Callable[[Sequence[Any]], T],
    ) -> T:
        try:
            with self._conn:
                self._conn.execute(insert, params)
                return self._one(select, key, build)
        except sqlite3.IntegrityError as exc:
            if "UNIQUE" in str(exc):
                raise UniqueViolationError(str(exc)) from exc
            raise

    def _exec(self, sql: str, params: Sequence[Any] = ()) -> None:
        with self._conn:
            self._conn.execute(sql, params)

    # users

    def create_user(
        self, id: uuid.UUID, created_at: datetime, updated_at: datetime, name: str
    ) -> User:
        return self._insert_returning(
            "INSERT INTO users (id, created_at, updated_at, name) VALUES (?, ?, ?, ?)",
            (str(id), _time_in(created_at), _time_in(updated_at), name),
            "SELECT id, created_at, updated_at, name FROM users WHERE id = ?",
            (str(id),),
            _user,
        )

    def delete_users(self) -> None:
        self._exec("DELETE FROM users")

    def get_user(self, name: str) -> User:
        return self._one(
            "SELECT id, created_at, updated_at, name FROM users WHERE name = ?", (name,), _user
        )

    def get_users(self) -> list[User]:
        return self._many("SELECT id, created_at, updated_at, name FROM users", (), _user)

    # feeds

    def create_feed(
        self,
        id: uuid.UUID,
        created_at: datetime,
        updated_at: datetime,
        name: str,
        url: str,
        user_id: uuid.UUID,
    ) -> Feed:
        return self._insert_returning(
            "INSERT INTO feeds (id, created_at, updated_at, name, url, user_id) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (str(id), _time_in(created_at), _time_in(updated_at), name, url, str(user_id)),
            f"SELECT {_FEED_COLUMNS} FROM feeds WHERE id = ?",
            (str(id),),
            _feed,
        )

    def get_feed_by_url(self, url: str) -> Feed:
        return self._one(f"SELECT {_FEED_COLUMNS} FROM feeds WHERE url = ?", (url,), _feed)

    def get_feeds(self) -> list[FeedListRow]:
        return self._many(
            "SELECT f.id, f.name, f.url, u.name FROM feeds f "
            "JOIN users u ON f.user_id = u.id ORDER BY f.created_at DESC",
            (),
            lambda row: FeedListRow(_id(row[0]), row[1], row[2], row[3]),
        )

    def get_next_feed_to_fetch(self) -> Feed:
        # SQLite sorts NULLs first in ascending order.
        return self._one(
            f"SELECT {_FEED_COLUMNS} FROM feeds ORDER BY last_fetched_at ASC LIMIT 1",
            (),
            _feed,
        )

    def mark_feed_fetched(self, id: uuid.UUID) -> None:
        now = _time_in(datetime.now(timezone.utc))
        self._exec(
            "UPDATE feeds SET updated_at = ?, last_fetched_at = ? WHERE id = ?",
            (now, now, str(id)),
        )

    # follows

    def create_feed_follow(
        self,
        id: uuid.UUID,
        created_at: datetime,
        updated_at: datetime,
        user_id: uuid.UUID,
        feed_id: uuid.UUID,
    ) -> FeedFollowRow:
        """Follow a feed; an existing follow of the same pair is returned unchanged."""
        return self._insert_returning(
            "INSERT OR IGNORE INTO feed_follows (id, created_at, updated_at, user_id, feed_id) "
            "VALUES (?, ?, ?, ?, ?)",
            (str(id), _time_in(created_at), _time_in(updated_at), str(user_id), str(feed_id)),
            "SELECT ff.id, ff.created_at, ff.updated_at, ff.user_id, ff.feed_id, "
            "u.name, f.name FROM feed_follows ff "
            "JOIN users u ON ff.user_id = u.id JOIN feeds f ON ff.feed_id = f.id "
            "WHERE ff.user_id = ? AND ff.feed_id = ? LIMIT 1",
            (str(user_id), str(feed_id)),
            lambda row: FeedFollowRow(
                _id(row[0]),
                _time_out(row[1]),
                _time_out(row[2]),
                _id(row[3]),
                _id(row[4]),
                row[5],
                row[6],
            ),
        )

    def get_feed_follows_for_user(self, user_id: uuid.UUID) -> list[UserFeedFollowRow]:
        return self._many(
            "SELECT ff.id, ff.created_at, ff.updated_at, u.name, f.name FROM feed_follows ff "
            "JOIN users u ON ff.user_id = u.id JOIN feeds f ON ff.feed_id = f.id "
            "WHERE ff.user_id = ? ORDER BY ff.created_at DESC",
            (str(user_id),),
            lambda row: UserFeedFollowRow(
                _id(row[0]), _time_out(row[1]), _time_out(row[2]), row[3], row[4]
            ),
        )

    def unfollow_feed(self, user_id: uuid.UUID, feed_id: uuid.UUID) -> None:
        self._exec(
            "DELETE FROM feed_follows WHERE user_id = ? AND feed_id = ?",
            (str(user_id), str(feed_id)),
        )

    # posts

    def create_post(
        self,
        id: uuid.UUID,
        created_at: datetime,
        updated_at: datetime,
        title: str,
        url: str,
        description: str | None,
        published_at: datetime | None,
        feed_id: uuid.UUID,
    ) -> Post:
        return self._insert_returning(
            f"INSERT INTO posts ({_POST_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                str(id),
                _time_in(created_at),
                _time_in(updated_at),
                title,
                url,
                description,
                _opt_time_in(published_at),
                str(feed_id),
            ),
            f"SELECT {_POST_COLUMNS} FROM posts WHERE id = ?",
            (str(id),),
            _post,
        )

    def get_posts_for_user(self, user_id: uuid.UUID, limit: int) -> list[UserPostRow]:
        # SQLite sorts NULLs last in descending order.
        return self._many(
            "SELECT p.id, p.created_at, p.updated_at, p.title, p.url, p.description, "
            "p.published_at, p.feed_id, f.name FROM posts p "
            "JOIN feed_follows ff ON p.feed_id = ff.feed_id "
            "JOIN feeds f ON p.feed_id = f.id "
            "WHERE ff.user_id = ? ORDER BY p.published_at DESC LIMIT ?",
            (str(user_id), int(limit)),
            lambda row: UserPostRow(*_post(row[:8]).__dict__.values(), row[8]),
        )