"""The gator commands and the registry that dispatches them."""

from __future__ import annotations

import html
import re
import sqlite3
import sys
import time
import uuid
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Callable, TextIO

from sidequests.gator.gatorconfig import Config
from sidequests.gator.gatordb import (
    Feed,
    NoRowsError,
    Queries,
    UniqueViolationError,
    User,
)
from sidequests.gator.gatorfeeds import RSSFeed, fetch_feed, parse_published_time

DEFAULT_BROWSE_LIMIT = 2


class CommandError(Exception):
    """A command failed; the message is meant for the user."""


@dataclass
class State:
    """What every command works on."""

    db: Queries
    config: Config
    out: TextIO = field(default_factory=lambda: sys.stdout)
    fetch: Callable[[str], RSSFeed] = fetch_feed


@dataclass(frozen=True)
class Command:
    name: str
    args: list[str] = field(default_factory=list)


Handler = Callable[[State, Command], None]


class Commands:
    """A registry of named command handlers."""

    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}

    def register(self, name: str, handler: Handler) -> None:
        self._handlers[name] = handler

    def run(self, state: State, cmd: Command) -> None:
        handler = self._handlers.get(cmd.name)
        if handler is None:
            raise CommandError(f"unknown command: {cmd.name}")
        handler(state, cmd)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers


def _say(state: State, *parts: object) -> None:
    print(*parts, file=state.out)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _describe(record: Any) -> str:
    values = (getattr(record, f.name) for f in fields(record))
    return "{" + " ".join("<nil>" if v is None else str(v) for v in values) + "}"


_UNITS = {
    "ns": 1,
    "us": 1_000,
    "\u00b5s": 1_000,
    "\u03bcs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60_000_000_000,
    "h": 3_600_000_000_000,
}
_NUMBER = re.compile(r"(\d*)(?:\.(\d*))?")
_UNIT = re.compile(r"[^\d.]*")
_MAX_NS = (1 << 63) - 1


def _parse_duration_ns(text: str) -> int:
    invalid = ValueError(f'time: invalid duration "{text}"')
    s = text
    negative = False
    if s and s[0] in "+-":
        negative = s[0] == "-"
        s = s[1:]
    if s == "0":
        return 0
    if not s:
        raise invalid

    total = 0
    pos = 0
    while pos < len(s):
        number = _NUMBER.match(s, pos)
        whole, frac = number.group(1), number.group(2)
        if not whole and not frac:
            raise invalid
        pos = number.end()

        unit = _UNIT.match(s, pos).group()
        if not unit:
            raise ValueError(f'time: missing unit in duration "{text}"')
        scale = _UNITS.get(unit)
        if scale is None:
            raise ValueError(f'time: unknown unit "{unit}" in duration "{text}"')
        pos += len(unit)

        total += int(whole or 0) * scale
        if frac:
            total += int(frac) * scale // 10 ** len(frac)
        if total > _MAX_NS:
            raise invalid
    return -total if negative else total


def parse_duration(text: str) -> float:
    """Parse a duration such as ``30s``, ``1h30m`` or ``1.5h`` into seconds."""
    return _parse_duration_ns(text) / 1e9


def _fraction(value: int, digits: int) -> str:
    whole, rest = divmod(value, 10**digits)
    tail = f"{rest:0{digits}d}".rstrip("0")
    return f"{whole}.{tail}" if tail else str(whole)


def _format_duration(ns: int) -> str:
    if ns == 0:
        return "0s"
    sign = "-" if ns < 0 else ""
    u = abs(ns)
    if u < 1_000:
        return f"{sign}{u}ns"
    if u < 1_000_000:
        return f"{sign}{_fraction(u, 3)}\u00b5s"
    if u < 1_000_000_000:
        return f"{sign}{_fraction(u, 6)}ms"
    text = _fraction(u % 60_000_000_000, 9) + "s"
    if u >= 60_000_000_000:
        text = f"{(u // 60_000_000_000) % 60}m" + text
    if u >= 3_600_000_000_000:
        text = f"{u // 3_600_000_000_000}h" + text
    return sign + text


# users


def handler_login(state: State, cmd: Command) -> None:
    if not cmd.args:
        raise CommandError("the login handler expects a single argument, the username")
    user = state.db.get_user(cmd.args[0])
    state.config.set_user(user.name)
    _say(state, f"login success. Logged in as {user.name}")


def handler_register(state: State, cmd: Command) -> None:
    if not cmd.args:
        raise CommandError("missing required argument, the username")
    now = _now()
    user = state.db.create_user(uuid.uuid4(), now, now, cmd.args[0])
    try:
        state.config.set_user(user.name)
    except OSError as exc:
        raise CommandError(f"could not set user: {exc}") from exc
    _say(state, f"user successfuly created: {_describe(user)}")


def handler_get_users(state: State, cmd: Command) -> None:
    for user in state.db.get_users():
        if user.name == state.config.current_user_name:
            _say(state, f"* {user.name} (current)")
        else:
            _say(state, f"* {user.name}")


def handler_reset(state: State, cmd: Command) -> None:
    state.db.delete_users()
    _say(state, "database reset successfuly")


# feeds


def handler_aggregate(state: State, cmd: Command) -> None:
    """Scrape the stalest feed, then again every interval, until interrupted."""
    if len(cmd.args) != 1:
        raise CommandError("usage: gator agg <duration> (e.g. 30s, 5m, 1h)")
    try:
        interval_ns = _parse_duration_ns(cmd.args[0])
    except ValueError as exc:
        raise CommandError(f"invalid time duration: {exc}") from exc
    if interval_ns <= 0:
        raise CommandError("non-positive interval for agg")

    interval = interval_ns / 1e9
    _say(state, f"⏳ Collecting feeds every {_format_duration(interval_ns)}")
    while True:
        started = time.monotonic()
        try:
            scrape_feeds(state)
        except (CommandError, NoRowsError, UniqueViolationError, sqlite3.Error) as exc:
            _say(state, "⚠️", exc)
        time.sleep(max(0.0, interval - (time.monotonic() - started)))


def handler_add_feed(state: State, cmd: Command, user: User) -> None:
    if not cmd.args:
        raise CommandError("missing name and url.\nusage: gator add <name> <url>")
    if len(cmd.args) == 1:
        raise CommandError("missing url.\nusage: gator add <name> <url>")

    name, url = cmd.args[0], cmd.args[1]
    now = _now()
    feed = state.db.create_feed(uuid.uuid4(), now, now, name, url, user.id)
    _say(state, "✅ Feed added successfully")
    _say(state, _describe(feed))

    try:
        handler_follow_feed(state, Command("follow", [feed.url]), user)
    except Exception:
        _say(state, "❌ Could not follow feed")
        raise
    _say(state, "✅ Feed followed successfully")


def handler_get_feeds(state: State, cmd: Command) -> None:
    try:
        feeds = state.db.get_feeds()
    except sqlite3.Error as exc:
        raise CommandError(f"could not get feeds: {exc}") from exc

    if not feeds:
        _say(state, "No feeds found.")
    for feed in feeds:
        _say(state, _describe(feed))


def _get_feed_by_url(state: State, feed_url: str) -> Feed:
    try:
        return state.db.get_feed_by_url(feed_url)
    except (NoRowsError, sqlite3.Error) as exc:
        raise CommandError(f"error finding feed: {exc}") from exc


def handler_follow_feed(state: State, cmd: Command, user: User) -> None:
    if not cmd.args:
        raise CommandError("missing url.\nusage: gator follow <url>")

    feed = _get_feed_by_url(state, cmd.args[0])
    now = _now()
    try:
        follow = state.db.create_feed_follow(uuid.uuid4(), now, now, user.id, feed.id)
    except UniqueViolationError:
        _say(state, f"ℹ️  {user.name} is already following {feed.name}")
        return
    except (NoRowsError, sqlite3.Error) as exc:
        raise CommandError(f"could not save follow: {exc}") from exc
    _say(state, f"✅ {follow.user_name} now follows {follow.feed_name}")


def handler_following(state: State, cmd: Command, user: User) -> None:
    try:
        follows = state.db.get_feed_follows_for_user(user.id)
    except sqlite3.Error as exc:
        raise CommandError(f"error getting user feeds: {exc}") from exc

    if not follows:
        _say(state, "You are not following any feeds yet")
        return
    _say(state, "You are following:")
    for follow in follows:
        _say(state, f"- {follow.feed_name}")


def handler_unfollow_feed(state: State, cmd: Command, user: User) -> None:
    if not cmd.args:
        raise CommandError("missing url.\nusage: gator unfollow <url>")

    feed = _get_feed_by_url(state, cmd.args[0])
    try:
        state.db.unfollow_feed(user.id, feed.id)
    except sqlite3.Error as exc:
        raise CommandError(f"could not unfollow feed: {exc}") from exc
    _say(state, f"you have unfollowed {feed.name}")


_INTEGER = re.compile(r"[+-]?\d+")


def handler_browse(state: State, cmd: Command, user: User) -> None:
    limit = DEFAULT_BROWSE_LIMIT
    if len(cmd.args) == 1:
        text = cmd.args[0]
        if not _INTEGER.fullmatch(text) or int(text) < 1:
            raise CommandError("invalid limit\nusage: gator browse [limit]")
        limit = int(text)

    posts = state.db.get_posts_for_user(user.id, limit)
    if not posts:
        _say(state, "no posts yet - try running gator agg 1m")
        return
    for post in posts:
        _say(state, f"\n📌 {post.feed_name}\n🔗 {post.url}\n📰 {post.title}")


def scrape_feeds(state: State) -> None:
    """Fetch the feed fetched longest ago and store its new posts."""
    try:
        feed = state.db.get_next_feed_to_fetch()
    except (NoRowsError, sqlite3.Error) as exc:
        raise CommandError(f"no feeds to fetch: {exc}") from exc

    _say(state, f"🪐 fetching {feed.name} ({feed.url})")
    state.db.mark_feed_fetched(feed.id)

    try:
        rss = state.fetch(feed.url)
    except (OSError, ValueError) as exc:
        raise CommandError(f"failed fetching feed url: {exc}") from exc

    for item in rss.items:
        now = _now()
        try:
            # The description is parsed but not stored.
            state.db.create_post(
                uuid.uuid4(),
                now,
                now,
                html.unescape(item.title),
                item.link,
                None,
                parse_published_time(item.pub_date),
                feed.id,
            )
        except UniqueViolationError:
            continue
        except (NoRowsError, sqlite3.Error) as exc:
            raise CommandError(f"failed saving post: {exc}") from exc
    _say(state, f"✅ fetched and stored posts from {feed.name}")