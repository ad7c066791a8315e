"""The chirpy HTTP server: users, chirps, admin metrics and static files."""

from __future__ import annotations

import argparse
import html
import json
import os
import posixpath
import re
import sqlite3
import sys
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import quote

from dotenv import load_dotenv
from flask import Flask, Response, request, send_file

from sidequests.chirpy.chirpauth import hash_password
from sidequests.chirpy.chirpdb import Chirp, NoRowsError, Queries, User, initialize_schema

MAX_CHIRP_LENGTH = 140
PORT = 8080
PROFANITIES = {"kerfuffle": "****", "sharbert": "****", "fornax": "****"}

_BAD_REQUEST = '{"error":"Bad Request"}'
_JSON = "application/json"


class _BadRequest(Exception):
    pass


def replace_case_insensitive(text: str, replacements: Mapping[str, str]) -> str:
    """Replace every occurrence of each key, in any case, with its value."""
    result = text
    for old, new in replacements.items():
        result = re.sub(re.escape(old), lambda _m, new=new: new, result, flags=re.IGNORECASE)
    return result


def validate_chirp(text: str) -> str:
    """Check a chirp's length in bytes and mask its profanities."""
    length = len(text.encode("utf-8"))
    if length > MAX_CHIRP_LENGTH:
        raise ValueError(
            f"chirp is too long. got {length} characters max is {MAX_CHIRP_LENGTH} characters"
        )
    return replace_case_insensitive(text, PROFANITIES)


def _rfc3339(value: datetime) -> str:
    value = value.astimezone(timezone.utc)
    text = value.strftime("%Y-%m-%dT%H:%M:%S")
    if value.microsecond:
        text += "." + f"{value.microsecond:06d}".rstrip("0")
    return text + "Z"


def _chirp_json(chirp: Chirp) -> dict[str, Any]:
    return {
        "id": str(chirp.id),
        "created_at": _rfc3339(chirp.created_at),
        "updated_at": _rfc3339(chirp.updated_at),
        "body": chirp.body,
        "user_id": str(chirp.user_id),
    }


def _user_json(user: User) -> dict[str, Any]:
    # The hash is never sent back to the client.
    return {
        "id": str(user.id),
        "created_at": _rfc3339(user.created_at),
        "updated_at": _rfc3339(user.updated_at),
        "email": user.email,
        "hashed_password": "",
    }


def _decode_body(raw: bytes, allowed: tuple[str, ...]) -> dict[str, str]:
    """Read one JSON object of string fields, refusing fields not in ``allowed``."""
    try:
        data, _ = json.JSONDecoder().raw_decode(raw.decode("utf-8").lstrip())
    except (UnicodeDecodeError, ValueError) as exc:
        raise _BadRequest from exc
    if data is None:
        return {}
    if not isinstance(data, dict) or not set(data) <= set(allowed):
        raise _BadRequest
    fields = {key: value for key, value in data.items() if value is not None}
    if not all(isinstance(value, str) for value in fields.values()):
        raise _BadRequest
    return fields


def _json(payload: Any, status: int) -> Response:
    return Response(json.dumps(payload, separators=(",", ":")), status, content_type=_JSON)


def _text(body: str, status: int, content_type: str = "text/plain; charset=utf-8") -> Response:
    return Response(body, status, content_type=content_type)


def _listing(directory: Path) -> Response:
    lines = ['<!doctype html>\n<meta name="viewport" content="width=device-width">\n<pre>\n']
    for entry in sorted(directory.iterdir(), key=lambda p: p.name):
        name = entry.name + ("/" if entry.is_dir() else "")
        lines.append(f'<a href="{html.escape(quote(name))}">{html.escape(name)}</a>\n')
    lines.append("</pre>\n")
    return _text("".join(lines), 200, "text/html; charset=utf-8")


def _safe_join(base: Path, rel: str) -> Path | None:
    """Join ``rel`` under ``base``, or return None if it would leave ``base``."""
    if "\\" in rel or "\x00" in rel:
        return None
    cleaned = posixpath.normpath(rel)
    if cleaned.startswith("/") or cleaned == ".." or cleaned.startswith("../"):
        return None
    if cleaned == ".":
        return base
    return base.joinpath(*cleaned.split("/"))


def _serve(base: Path, rel: str) -> Response:
    rel = rel.strip("/")
    path = _safe_join(base, rel) if rel else base
    if path is None:
        return _text("404 page not found\n", 404)
    if path.is_dir():
        index = path / "index.html"
        if index.is_file():
            return send_file(index)
        return _listing(path)
    if path.is_file():
        return send_file(path)
    return _text("404 page not found\n", 404)


def create_app(
    queries: Queries,
    platform: str = "",
    root_dir: str | os.PathLike[str] = ".",
    assets_dir: str | os.PathLike[str] = "./assets",
) -> Flask:
    """Build the chirpy application around ``queries``."""
    app = Flask(__name__)
    root = Path(root_dir).resolve()
    assets = Path(assets_dir).resolve()
    hits_lock = threading.Lock()
    hits = [0]

    def count_hit() -> None:
        with hits_lock:
            hits[0] += 1

    @app.get("/admin/metrics")
    def metrics() -> Response:
        with hits_lock:
            count = hits[0]
        page = (
            "<html><body><h1>Welcome, Chirpy Admin</h1>"
            f"<p>Chirpy has been visited {count} times!</p></body></html>"
        )
        return _text(page, 200, "text/html")

    @app.post("/admin/reset")
    def reset() -> Response:
        if platform != "dev":
            return _text("Forbidden", 403)
        try:
            queries.delete_users()
        except sqlite3.Error as exc:
            return _text(str(exc), 500)
        with hits_lock:
            hits[0] = 0
        return Response('{"message": "users deleted"}', 200, content_type=_JSON)

    @app.post("/api/users")
    def register() -> Response:
        try:
            fields = _decode_body(request.get_data(), ("email", "password"))
        except _BadRequest:
            return Response(_BAD_REQUEST, 400, content_type=_JSON)
        try:
            hashed = hash_password(fields.get("password", ""))
            user = queries.create_user(fields.get("email", ""), hashed)
        except (sqlite3.Error, ValueError) as exc:
            return _text(str(exc), 400)
        return _json(_user_json(user), 201)

    @app.post("/api/chirps")
    def create_chirp() -> Response:
        try:
            fields = _decode_body(request.get_data(), ("body", "user_id"))
            user_id = uuid.UUID(fields["user_id"]) if "user_id" in fields else uuid.UUID(int=0)
        except (_BadRequest, ValueError):
            return Response(_BAD_REQUEST, 400, content_type=_JSON)
        try:
            cleaned = validate_chirp(fields.get("body", ""))
        except ValueError as exc:
            return _text(str(exc), 400, "text/plain")
        try:
            chirp = queries.create_chirp(cleaned, user_id)
        except sqlite3.Error as exc:
            return _text(str(exc), 400)
        return _json(_chirp_json(chirp), 201)

    @app.get("/api/chirps")
    def list_chirps() -> Response:
        try:
            chirps = queries.get_chirps()
        except sqlite3.Error as exc:
            return _text(str(exc), 200)
        return _json([_chirp_json(chirp) for chirp in chirps], 200)

    @app.get("/api/chirps/<chirp_id>")
    def get_chirp(chirp_id: str) -> Response:
        try:
            parsed = uuid.UUID(chirp_id)
        except ValueError:
            return Response('{"error": "Bad Request"}', 400, content_type=_JSON)
        try:
            chirp = queries.get_chirp(parsed)
        except NoRowsError:
            return Response('{"error": "Chirp not found"}', 404, content_type=_JSON)
        except sqlite3.Error:
            return Response('{"error": "Internal Server Error"}', 500, content_type=_JSON)
        return _json(_chirp_json(chirp), 200)

    @app.get("/api/healthz")
    def healthz() -> Response:
        return _text("OK", 200)

    @app.route("/app/", strict_slashes=False, methods=["GET", "HEAD"])
    @app.route("/app/<path:subpath>", methods=["GET", "HEAD"])
    def app_files(subpath: str = "") -> Response:
        count_hit()
        return _serve(root, subpath)

    @app.route("/assets/", methods=["GET", "HEAD"])
    @app.route("/assets/<path:subpath>", methods=["GET", "HEAD"])
    def asset_files(subpath: str = "") -> Response:
        count_hit()
        return _serve(assets, subpath)

    return app


def _database_path(db_url: str) -> str:
    return db_url.removeprefix("sqlite:///")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="chirpy", description="Run the chirpy server.")
    parser.parse_args(argv)

    load_dotenv()
    db_url = os.environ.get("DB_URL", "")
    platform = os.environ.get("PLATFORM", "")

    try:
        conn = sqlite3.connect(_database_path(db_url) or ":memory:", check_same_thread=False)
        initialize_schema(conn)
    except sqlite3.Error as exc:
        print(f"Failed to connect to DB: {exc}", file=sys.stderr)
        return 1

    try:
        app = create_app(Queries(conn), platform, ".", "./assets")
        app.run(host="0.0.0.0", port=PORT, threaded=True)
    finally:
        conn.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())