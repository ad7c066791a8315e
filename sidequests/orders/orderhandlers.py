"""HTTP handlers for creating, listing, reading, updating and deleting orders."""

from __future__ import annotations

import json
import logging
import random
import re
from datetime import datetime, timezone
from typing import Any

import redis
from flask import Blueprint, Response, request

from sidequests.orders.ordermodel import Order
from sidequests.orders.orderrepo import FindAllPage, OrderNotFound, RedisRepo

PAGE_SIZE = 50
SHIPPED = "shipped"
COMPLETED = "completed"

_log = logging.getLogger(__name__)
_DIGITS = re.compile(r"[0-9]+")
_MAX_UINT64 = (1 << 64) - 1
_FAILURES = (redis.RedisError, ValueError)


def _parse_uint64(text: str) -> int | None:
    if not _DIGITS.fullmatch(text):
        return None
    value = int(text)
    return value if value <= _MAX_UINT64 else None


def _decode_object(raw: bytes) -> dict[str, Any]:
    data, _ = json.JSONDecoder().raw_decode(raw.decode("utf-8").lstrip())
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    return data


def _empty(status: int) -> Response:
    return Response(b"", status)


def _json(payload: Any, status: int = 200) -> Response:
    return Response(
        json.dumps(payload, separators=(",", ":")) + "\n", status, content_type="application/json"
    )


def create_orders_blueprint(repo: RedisRepo) -> Blueprint:
    """Build the order routes on top of ``repo``."""
    bp = Blueprint("orders", __name__)

    @bp.post("/", strict_slashes=False)
    def create() -> Response:
        try:
            body = _decode_object(request.get_data())
            order = Order.from_dict(
                {"customer_id": body.get("customer_id"), "line_items": body.get("line_items")}
            )
        except (ValueError, UnicodeDecodeError):
            return _empty(400)

        order.order_id = random.getrandbits(64)
        order.created_at = datetime.now(timezone.utc)
        try:
            repo.insert(order)
        except _FAILURES as exc:
            _log.error("failed to insert: %s", exc)
            return _empty(500)
        return _json(order.to_dict(), 201)

    @bp.get("/", strict_slashes=False)
    def list_orders() -> Response:
        cursor = _parse_uint64(request.args.get("cursor") or "0")
        if cursor is None:
            return _empty(400)
        try:
            result = repo.find_all(FindAllPage(size=PAGE_SIZE, offset=cursor))
        except _FAILURES as exc:
            _log.error("failed to findall: %s", exc)
            return _empty(500)

        payload: dict[str, Any] = {"items": [order.to_dict() for order in result.orders]}
        if result.cursor:
            payload["next"] = result.cursor
        return _json(payload)

    @bp.get("/<order_id>")
    def get_by_id(order_id: str) -> Response:
        parsed = _parse_uint64(order_id)
        if parsed is None:
            return _empty(400)
        try:
            order = repo.find_by_id(parsed)
        except OrderNotFound as exc:
            return Response(f"failed to find by id: {exc}", 404)
        except _FAILURES as exc:
            return Response(f"failed to find by id: {exc}", 500)
        return _json(order.to_dict())

    @bp.put("/<order_id>")
    def update_by_id(order_id: str) -> Response:
        try:
            status = _decode_object(request.get_data()).get("status") or ""
        except (ValueError, UnicodeDecodeError):
            return _empty(400)
        if not isinstance(status, str):
            return _empty(400)

        parsed = _parse_uint64(order_id)
        if parsed is None:
            return _empty(400)
        try:
            order = repo.find_by_id(parsed)
        except OrderNotFound:
            return _empty(404)
        except _FAILURES as exc:
            _log.error("failed to find by id: %s", exc)
            return _empty(500)

        now = datetime.now(timezone.utc)
        if status == SHIPPED:
            if order.shipped_at is not None:
                return _empty(400)
            order.shipped_at = now
        elif status == COMPLETED:
            if order.completed_at is not None or order.shipped_at is None:
                return _empty(400)
            order.completed_at = now
        else:
            return _empty(400)

        try:
            repo.update(order)
        except OrderNotFound:
            return _empty(404)
        except _FAILURES as exc:
            _log.error("failed to update: %s", exc)
            return _empty(500)
        return _json(order.to_dict())

    @bp.delete("/<order_id>")
    def delete_by_id(order_id: str) -> Response:
        parsed = _parse_uint64(order_id)
        if parsed is None:
            return _empty(400)
        try:
            repo.delete_by_id(parsed)
        except OrderNotFound:
            return _empty(404)
        except _FAILURES as exc:
            _log.error("failed to delete by id: %s", exc)
            return _empty(500)
        return _empty(200)

    return bp