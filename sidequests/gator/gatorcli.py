"""Command-line entry point of the gator feed aggregator."""

from __future__ import annotations

import sqlite3
import sys
from contextlib import closing
from typing import Callable

from sidequests.gator import gatorconfig
from sidequests.gator.gatorcommands import (
    Command,
    CommandError,
    Commands,
    Handler,
    State,
    handler_add_feed,
    handler_aggregate,
    handler_browse,
    handler_follow_feed,
    handler_following,
    handler_get_feeds,
    handler_get_users,
    handler_login,
    handler_register,
    handler_reset,
    handler_unfollow_feed,
)
from sidequests.gator.gatordb import NoRowsError, Queries, UniqueViolationError, User, initialize_schema

_FAILURES = (CommandError, NoRowsError, UniqueViolationError, sqlite3.Error, OSError, ValueError)


def middleware_logged_in(handler: Callable[[State, Command, User], None]) -> Handler:
    """Wrap ``handler`` so that it receives the current user, or fails when there is none."""

    def wrapper(state: State, cmd: Command) -> None:
        try:
            user = state.db.get_user(state.config.current_user_name)
        except (NoRowsError, sqlite3.Error) as exc:
            raise CommandError(f"not logged in: {exc}") from exc
        handler(state, cmd, user)

    return wrapper


def build_commands() -> Commands:
    commands = Commands()
    commands.register("login", handler_login)
    commands.register("register", handler_register)
    commands.register("reset", handler_reset)
    commands.register("users", handler_get_users)
    commands.register("agg", handler_aggregate)
    commands.register("addfeed", middleware_logged_in(handler_add_feed))
    commands.register("feeds", handler_get_feeds)
    commands.register("follow", middleware_logged_in(handler_follow_feed))
    commands.register("following", middleware_logged_in(handler_following))
    commands.register("unfollow", middleware_logged_in(handler_unfollow_feed))
    commands.register("browse", middleware_logged_in(handler_browse))
    return commands


def _database_path(db_url: str) -> str:
    return db_url.removeprefix("sqlite:///")


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)

    try:
        config = gatorconfig.read()
    except (OSError, ValueError) as exc:
        print(f"error reading config: {exc}", file=sys.stderr)
        return 1

    try:
        conn = sqlite3.connect(_database_path(config.db_url))
        initialize_schema(conn)
    except sqlite3.Error as exc:
        print(f"error opening db connection: {exc}", file=sys.stderr)
        return 1

    with closing(conn):
        state = State(db=Queries(conn), config=config)
        if not args:
            print("Error: no command provided")
            return 1
        try:
            build_commands().run(state, Command(args[0], args[1:]))
        except _FAILURES as exc:
            print("Error: ", exc)
            return 1
        except KeyboardInterrupt:
            return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())