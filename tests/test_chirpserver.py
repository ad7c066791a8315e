import json
import sqlite3
import uuid

import pytest

from sidequests.chirpy.chirpdb import Queries, initialize_schema
from sidequests.chirpy.chirpserver import (
    create_app,
    replace_case_insensitive,
    validate_chirp,
)


@pytest.fixture
def queries():
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    initialize_schema(conn)
    yield Queries(conn)
    conn.close()


@pytest.fixture
def dirs(tmp_path):
    root = tmp_path / "root"
    assets = tmp_path / "assets"
    root.mkdir()
    assets.mkdir()
    (root / "index.html").write_text("<h1>home</h1>")
    (assets / "logo.txt").write_text("logo-bytes")
    return root, assets


def make_client(queries, dirs, platform="dev"):
    root, assets = dirs
    return create_app(queries, platform, root, assets).test_client()


def test_validate_chirp_masks_profanity_any_case():
    assert validate_chirp("I had a Kerfuffle with SHARBERT") == "I had a **** with ****"


def test_validate_chirp_accepts_max_length():
    text = "a" * 140
    assert validate_chirp(text) == text


def test_validate_chirp_too_long():
    with pytest.raises(ValueError) as info:
        validate_chirp("a" * 141)
    assert str(info.value) == "chirp is too long. got 141 characters max is 140 characters"


def test_replace_case_insensitive_custom_map():
    assert replace_case_insensitive("Foo.bar FOO", {"foo": "x", ".": "!"}) == "x!bar x"


def test_healthz(queries, dirs):
    response = make_client(queries, dirs).get("/api/healthz")
    assert response.status_code == 200
    assert response.get_data(as_text=True) == "OK"


def test_metrics_count_file_server_hits(queries, dirs):
    client = make_client(queries, dirs)
    assert client.get("/app/").get_data(as_text=True) == "<h1>home</h1>"
    assert client.get("/assets/logo.txt").get_data(as_text=True) == "logo-bytes"
    page = client.get("/admin/metrics").get_data(as_text=True)
    assert "Chirpy has been visited 2 times!" in page


def test_asset_path_traversal_is_not_found(queries, dirs):
    response = make_client(queries, dirs).get("/assets/../root/index.html")
    assert response.status_code == 404


def test_reset_forbidden_outside_dev(queries, dirs):
    response = make_client(queries, dirs, platform="prod").post("/admin/reset")
    assert response.status_code == 403
    assert response.get_data(as_text=True) == "Forbidden"


def test_reset_in_dev_clears_users_and_hits(queries, dirs):
    user = queries.create_user("walt@example.com", "placeholder")
    queries.create_chirp("hello", user.id)
    client = make_client(queries, dirs)
    client.get("/app/")
    response = client.post("/admin/reset")
    assert response.status_code == 200
    assert json.loads(response.get_data()) == {"message": "users deleted"}
    assert queries.get_chirps() == []
    assert "visited 0 times" in client.get("/admin/metrics").get_data(as_text=True)


def test_register_returns_user_without_hash(queries, dirs):
    password = "password"
    response = make_client(queries, dirs).post(
        "/api/users", json={"email": "walt@example.com", "password": password}
    )
    assert response.status_code == 201
    body = response.get_json()
    assert body["email"] == "walt@example.com"
    assert body["hashed_password"] == ""
    uuid.UUID(body["id"])


def test_register_rejects_unknown_fields(queries, dirs):
    response = make_client(queries, dirs).post(
        "/api/users", json={"email": "walt@example.com", "nickname": "walt"}
    )
    assert response.status_code == 400
    assert response.get_json() == {"error": "Bad Request"}


def test_create_and_fetch_chirp(queries, dirs):
    user = queries.create_user("walt@example.com", "placeholder")
    client = make_client(queries, dirs)
    created = client.post("/api/chirps", json={"body": "what a fornax", "user_id": str(user.id)})
    assert created.status_code == 201
    chirp = created.get_json()
    assert chirp["body"] == "what a ****"
    assert chirp["user_id"] == str(user.id)

    fetched = client.get(f"/api/chirps/{chirp['id']}")
    assert fetched.status_code == 200
    assert fetched.get_json() == chirp
    assert client.get("/api/chirps").get_json() == [chirp]


def test_create_chirp_too_long(queries, dirs):
    user = queries.create_user("walt@example.com", "placeholder")
    response = make_client(queries, dirs).post(
        "/api/chirps", json={"body": "a" * 141, "user_id": str(user.id)}
    )
    assert response.status_code == 400
    assert response.get_data(as_text=True).startswith("chirp is too long")
    assert queries.get_chirps() == []


def test_create_chirp_for_unknown_user_is_bad_request(queries, dirs):
    response = make_client(queries, dirs).post(
        "/api/chirps", json={"body": "hi", "user_id": str(uuid.uuid4())}
    )
    assert response.status_code == 400


def test_get_chirp_bad_id(queries, dirs):
    response = make_client(queries, dirs).get("/api/chirps/not-a-uuid")
    assert response.status_code == 400
    assert response.get_json() == {"error": "Bad Request"}


def test_get_chirp_not_found(queries, dirs):
    response = make_client(queries, dirs).get(f"/api/chirps/{uuid.uuid4()}")
    assert response.status_code == 404
    assert response.get_json() == {"error": "Chirp not found"}