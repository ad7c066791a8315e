"""A consumer that pops and prints values from a Redis list as they arrive."""

from __future__ import annotations

import argparse
import sys
from typing import Any, Iterator

import redis

LIST_NAME = "demo-list"
DEFAULT_TIMEOUT = 2
REDIS_HOST = "localhost"
REDIS_PORT = 6379


def iter_list(client: Any, list_name: str = LIST_NAME, timeout: float = DEFAULT_TIMEOUT) -> Iterator[str]:
    """Block on the right end of ``list_name`` and yield each value popped, forever."""
    while True:
        result = client.brpop([list_name], timeout=timeout)
        if result is None:
            continue
        value = result[1]
        if isinstance(value, (bytes, bytearray)):
            value = bytes(value).decode("utf-8", errors="replace")
        yield value


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="list-consumer", description="Consume a Redis list.")
    parser.parse_args(argv)
    print("list consumer application started")

    client = redis.Redis(host=REDIS_HOST, port=REDIS_PORT)
    try:
        client.ping()
    except redis.RedisError as exc:
        print("failed to connect", exc, file=sys.stderr)
        return 1

    try:
        for value in iter_list(client):
            print("received data from the list - ", value)
    except redis.RedisError as exc:
        print("brpop operation failed", exc, file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 0
    return 0


if __name__ == "__main__":
    sys.exit(main())