import sqlite3
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from sidequests.gator.gatordb import (
    NoRowsError,
    Queries,
    UniqueViolationError,
    initialize_schema,
)

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def queries():
    conn = sqlite3.connect(":memory:")
    initialize_schema(conn)
    yield Queries(conn)
    conn.close()


def make_user(queries, name, at=T0):
    return queries.create_user(uuid.uuid4(), at, at, name)


def make_feed(queries, user, name, url, at=T0):
    return queries.create_feed(uuid.uuid4(), at, at, name, url, user.id)


def test_create_and_get_user(queries):
    user_id = uuid.uuid4()
    user = queries.create_user(user_id, T0, T0, "alice")
    assert user.id == user_id
    assert user.name == "alice"
    assert user.created_at == T0
    assert queries.get_user("alice") == user


def test_get_missing_user_raises(queries):
    with pytest.raises(NoRowsError):
        queries.get_user("nobody")


def test_duplicate_user_name_raises(queries):
    make_user(queries, "alice")
    with pytest.raises(UniqueViolationError):
        make_user(queries, "alice")


def test_get_users_and_delete(queries):
    alice = make_user(queries, "alice")
    bob = make_user(queries, "bob")
    assert queries.get_users() == [alice, bob]
    queries.delete_users()
    assert queries.get_users() == []


def test_delete_users_cascades_to_feeds(queries):
    alice = make_user(queries, "alice")
    make_feed(queries, alice, "Blog", "https://blog.example.com/rss")
    queries.delete_users()
    assert queries.get_feeds() == []


def test_create_and_get_feed(queries):
    alice = make_user(queries, "alice")
    feed = make_feed(queries, alice, "Blog", "https://blog.example.com/rss")
    assert feed.last_fetched_at is None
    assert feed.user_id == alice.id
    assert queries.get_feed_by_url("https://blog.example.com/rss") == feed


def test_get_feed_by_unknown_url_raises(queries):
    with pytest.raises(NoRowsError):
        queries.get_feed_by_url("https://missing.example.com/rss")


def test_duplicate_feed_url_raises(queries):
    alice = make_user(queries, "alice")
    make_feed(queries, alice, "Blog", "https://blog.example.com/rss")
    with pytest.raises(UniqueViolationError):
        make_feed(queries, alice, "Again", "https://blog.example.com/rss")


def test_get_feeds_newest_first_with_owner(queries):
    alice = make_user(queries, "alice")
    bob = make_user(queries, "bob")
    old = make_feed(queries, alice, "Old", "https://old.example.com/rss", T0)
    new = make_feed(queries, bob, "New", "https://new.example.com/rss", T0 + timedelta(hours=1))
    rows = queries.get_feeds()
    assert [row.id for row in rows] == [new.id, old.id]
    assert [(row.feed_name, row.user_name) for row in rows] == [("New", "bob"), ("Old", "alice")]
    assert rows[0].url == "https://new.example.com/rss"


def test_next_feed_to_fetch_prefers_never_fetched(queries):
    alice = make_user(queries, "alice")
    first = make_feed(queries, alice, "A", "https://a.example.com/rss")
    second = make_feed(queries, alice, "B", "https://b.example.com/rss")
    queries.mark_feed_fetched(first.id)
    assert queries.get_next_feed_to_fetch().id == second.id
    queries.mark_feed_fetched(second.id)
    assert queries.get_next_feed_to_fetch().id == first.id


def test_next_feed_to_fetch_without_feeds_raises(queries):
    with pytest.raises(NoRowsError):
        queries.get_next_feed_to_fetch()


def test_mark_feed_fetched_sets_timestamps(queries):
    alice = make_user(queries, "alice")
    feed = make_feed(queries, alice, "A", "https://a.example.com/rss")
    before = datetime.now(timezone.utc)
    queries.mark_feed_fetched(feed.id)
    fetched = queries.get_feed_by_url(feed.url)
    assert fetched.last_fetched_at is not None and fetched.last_fetched_at >= before
    assert fetched.updated_at == fetched.last_fetched_at


def test_create_feed_follow_returns_names(queries):
    alice = make_user(queries, "alice")
    feed = make_feed(queries, alice, "Blog", "https://blog.example.com/rss")
    follow_id = uuid.uuid4()
    row = queries.create_feed_follow(follow_id, T0, T0, alice.id, feed.id)
    assert row.id == follow_id
    assert (row.user_name, row.feed_name) == ("alice", "Blog")
    assert (row.user_id, row.feed_id) == (alice.id, feed.id)


def test_repeated_follow_returns_existing(queries):
    alice = make_user(queries, "alice")
    feed = make_feed(queries, alice, "Blog", "https://blog.example.com/rss")
    first = queries.create_feed_follow(uuid.uuid4(), T0, T0, alice.id, feed.id)
    again = queries.create_feed_follow(uuid.uuid4(), T0, T0, alice.id, feed.id)
    assert again == first
    assert len(queries.get_feed_follows_for_user(alice.id)) == 1


def test_follow_unknown_user_raises(queries):
    alice = make_user(queries, "alice")
    feed = make_feed(queries, alice, "Blog", "https://blog.example.com/rss")
    with pytest.raises(sqlite3.IntegrityError):
        queries.create_feed_follow(uuid.uuid4(), T0, T0, uuid.uuid4(), feed.id)


def test_follows_for_user_newest_first_and_unfollow(queries):
    alice = make_user(queries, "alice")
    a = make_feed(queries, alice, "A", "https://a.example.com/rss")
    b = make_feed(queries, alice, "B", "https://b.example.com/rss")
    queries.create_feed_follow(uuid.uuid4(), T0, T0, alice.id, a.id)
    later = T0 + timedelta(minutes=5)
    queries.create_feed_follow(uuid.uuid4(), later, later, alice.id, b.id)
    assert [row.feed_name for row in queries.get_feed_follows_for_user(alice.id)] == ["B", "A"]
    queries.unfollow_feed(alice.id, b.id)
    rows = queries.get_feed_follows_for_user(alice.id)
    assert [row.feed_name for row in rows] == ["A"]
    assert rows[0].user_name == "alice"


def test_create_post_round_trip(queries):
    alice = make_user(queries, "alice")
    feed = make_feed(queries, alice, "Blog", "https://blog.example.com/rss")
    post_id = uuid.uuid4()
    post = queries.create_post(
        post_id, T0, T0, "Hello", "https://blog.example.com/hello", None, None, feed.id
    )
    assert post.id == post_id
    assert post.title == "Hello"
    assert post.description is None
    assert post.published_at is None
    assert post.feed_id == feed.id


def test_duplicate_post_url_raises(queries):
    alice = make_user(queries, "alice")
    feed = make_feed(queries, alice, "Blog", "https://blog.example.com/rss")
    url = "https://blog.example.com/hello"
    queries.create_post(uuid.uuid4(), T0, T0, "Hello", url, None, T0, feed.id)
    with pytest.raises(UniqueViolationError):
        queries.create_post(uuid.uuid4(), T0, T0, "Hello again", url, None, T0, feed.id)


def test_posts_for_user_order_limit_and_follows(queries):
    alice = make_user(queries, "alice")
    followed = make_feed(queries, alice, "Followed", "https://f.example.com/rss")
    other = make_feed(queries, alice, "Other", "https://o.example.com/rss")
    queries.create_feed_follow(uuid.uuid4(), T0, T0, alice.id, followed.id)

    undated = queries.create_post(
        uuid.uuid4(), T0, T0, "Undated", "https://f.example.com/u", "text", None, followed.id
    )
    older = queries.create_post(
        uuid.uuid4(), T0, T0, "Older", "https://f.example.com/1", None, T0, followed.id
    )
    newer = queries.create_post(
        uuid.uuid4(), T0, T0, "Newer", "https://f.example.com/2", None,
        T0 + timedelta(days=1), followed.id,
    )
    queries.create_post(
        uuid.uuid4(), T0, T0, "Hidden", "https://o.example.com/1", None, T0, other.id
    )

    rows = queries.get_posts_for_user(alice.id, 10)
    assert [row.id for row in rows] == [newer.id, older.id, undated.id]
    assert {row.feed_name for row in rows} == {"Followed"}
    assert rows[2].description == "text"
    assert rows[0].published_at == T0 + timedelta(days=1)

    limited = queries.get_posts_for_user(alice.id, 2)
    assert [row.id for row in limited] == [newer.id, older.id]


def test_initialize_schema_is_idempotent():
    conn = sqlite3.connect(":memory:")
    initialize_schema(conn)
    queries = Queries(conn)
    user = make_user(queries, "alice")
    initialize_schema(conn)
    assert queries.get_users() == [user]
    conn.close()