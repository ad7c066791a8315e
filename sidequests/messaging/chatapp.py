"""A websocket chat room whose messages travel through a Redis pub/sub channel."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from typing import Any

import redis
import redis.asyncio
import websockets
from websockets.exceptions import ConnectionClosed

CHANNEL_NAME = "demo-chat"
CHAT_PREFIX = "/chat/"
REDIS_HOST = "localhost"
REDIS_PORT = 6379
PORT = 8080

_log = logging.getLogger(__name__)


def parse_payload(payload: str) -> tuple[str, str]:
    """Split a channel payload ``sender:text`` into its sender and text.

    Only the part of the text up to a further colon is kept.
    """
    parts = payload.split(":")
    if len(parts) < 2:
        raise ValueError(f"malformed chat payload: {payload!r}")
    return parts[0], parts[1]


def format_message(sender: str, text: str) -> str:
    """Render a message as it is shown to the other users."""
    return "[" + sender + " says]: " + text


def _request_path(websocket: Any) -> str:
    request = getattr(websocket, "request", None)
    if request is not None:
        return request.path
    return getattr(websocket, "path", "")


def _as_text(data: str | bytes) -> str:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data).decode("utf-8", errors="replace")
    return data


class ChatServer:
    """Connected users by name, and the Redis client that relays their messages."""

    def __init__(self, redis_client: Any) -> None:
        self.redis = redis_client
        self.users: dict[str, Any] = {}

    async def broadcast(self, payload: str) -> None:
        """Send a channel payload to every connected user except its sender."""
        sender, text = parse_payload(payload)
        message = format_message(sender, text)
        for user, peer in list(self.users.items()):
            if user == sender:
                continue
            try:
                await peer.send(message)
            except ConnectionClosed as exc:
                _log.error("error writing the message to %s: %s", user, exc)
                if self.users.get(user) is peer:
                    del self.users[user]

    async def handle(self, websocket: Any) -> None:
        """Serve one user: register them and publish everything they send."""
        path = _request_path(websocket)
        if not path.startswith(CHAT_PREFIX):
            await websocket.close(1008, "not found")
            return

        user = path[len(CHAT_PREFIX):]
        self.users[user] = websocket
        print(user, "joined the chat")
        try:
            async for message in websocket:
                try:
                    await self.redis.publish(CHANNEL_NAME, user + ":" + _as_text(message))
                except redis.RedisError as exc:
                    print("publish error", exc)
        except ConnectionClosed:
            pass
        finally:
            print("connection closed by:", user)
            if self.users.get(user) is websocket:
                del self.users[user]
            print("connection and user session closed")

    async def _listen(self, pubsub: Any) -> None:
        async for message in pubsub.listen():
            if message.get("type") != "message":
                continue
            try:
                await self.broadcast(_as_text(message["data"]))
            except ValueError as exc:
                _log.error("%s", exc)

    async def serve(self, host: str = "", port: int = PORT) -> None:
        """Relay chat messages until SIGINT or SIGTERM arrives."""
        await self.redis.ping()

        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError, ValueError):
                loop.add_signal_handler(sig, stop.set)

        pubsub = self.redis.pubsub()
        await pubsub.subscribe(CHANNEL_NAME)
        listener = asyncio.create_task(self._listen(pubsub))
        try:
            async with websockets.serve(self.handle, host or None, port):
                print("chat server started")
                await stop.wait()
                print("exit signalled")
                for conn in list(self.users.values()):
                    await conn.close()
        finally:
            listener.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await listener
            await pubsub.unsubscribe(CHANNEL_NAME)
            await pubsub.reset()
        print("chat application closed")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="chat-app", description="Run the websocket chat room.")
    parser.add_argument("--port", type=int, default=PORT)
    args = parser.parse_args(argv)

    client = redis.asyncio.Redis(host=REDIS_HOST, port=REDIS_PORT)
    server = ChatServer(client)
    try:
        asyncio.run(server.serve("", args.port))
    except redis.RedisError as exc:
        print("ping failed. could not connect", exc, file=sys.stderr)
        return 1
    except OSError as exc:
        print("failed to start the server", exc, file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 0
    return 0


if __name__ == "__main__":
    sys.exit(main())