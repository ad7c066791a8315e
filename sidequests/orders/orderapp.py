"""The orders service: configuration, routes and the server that runs them."""

from __future__ import annotations

import argparse
import logging
import os
import re
import sys
from dataclasses import dataclass
from typing import Any, Mapping

import redis
from flask import Flask, Response, request

from sidequests.orders.orderhandlers import create_orders_blueprint
from sidequests.orders.orderrepo import RedisRepo

_log = logging.getLogger(__name__)
_DIGITS = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class AppConfig:
    redis_address: str = "localhost:6379"
    server_port: int = 3000


def load_config(environ: Mapping[str, str] | None = None) -> AppConfig:
    """Read REDIS_ADDR and SERVER_PORT; an unusable port keeps the default."""
    env = os.environ if environ is None else environ
    defaults = AppConfig()
    address = env.get("REDIS_ADDR", defaults.redis_address)
    port = defaults.server_port
    text = env.get("SERVER_PORT")
    if text is not None and _DIGITS.fullmatch(text) and int(text) <= 0xFFFF:
        port = int(text)
    return AppConfig(redis_address=address, server_port=port)


def create_app(repo: RedisRepo) -> Flask:
    """Build the orders application around ``repo``."""
    app = Flask(__name__)

    @app.get("/")
    def root() -> Response:
        return Response(b"", 200)

    @app.after_request
    def log_request(response: Response) -> Response:
        _log.info('"%s %s" %s', request.method, request.full_path.rstrip("?"), response.status_code)
        return response

    app.register_blueprint(create_orders_blueprint(repo), url_prefix="/orders")
    return app


def _redis_client(address: str) -> Any:
    host, _, port = address.rpartition(":")
    return redis.Redis(host=host or "localhost", port=int(port or 6379))


def run(config: AppConfig) -> None:
    """Connect to Redis and serve until interrupted."""
    client = _redis_client(config.redis_address)
    try:
        client.ping()
    except redis.RedisError as exc:
        raise redis.ConnectionError(f"failed to connect to redis: {exc}") from exc

    try:
        app = create_app(RedisRepo(client))
        print("Starting server")
        try:
            app.run(host="0.0.0.0", port=config.server_port, threaded=True)
        except KeyboardInterrupt:
            pass
    finally:
        try:
            client.close()
        except redis.RedisError as exc:
            print("failed to close redis", exc)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="orders-api", description="Run the orders service.")
    parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)
    try:
        run(load_config())
    except (redis.RedisError, OSError) as exc:
        print("failed to start app: ", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())