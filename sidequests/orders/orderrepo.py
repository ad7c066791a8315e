"""Storing orders in Redis, each under its own key and indexed in one set."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sidequests.orders.ordermodel import Order

ORDERS_SET = "orders"


class OrderNotFound(LookupError):
    """No order is stored under the requested id."""

    def __init__(self, message: str = "order does not exist") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class FindAllPage:
    size: int = 50
    offset: int = 0


@dataclass
class FindResult:
    orders: list[Order] = field(default_factory=list)
    cursor: int = 0


def order_id_key(id: int) -> str:
    """Return the Redis key an order with ``id`` is stored under."""
    return f"order:{id}"


def _decode(value: Any) -> Order:
    if value is None:
        raise ValueError("failed to decode order json: missing value")
    try:
        return Order.from_json(value)
    except (ValueError, UnicodeDecodeError) as exc:
        raise ValueError(f"failed to decode order json: {exc}") from exc


class RedisRepo:
    """Orders kept in a Redis database reached through ``client``."""

    def __init__(self, client: Any) -> None:
        self.client = client

    def insert(self, order: Order) -> None:
        """Store a new order; an existing order under the same id is left as it is."""
        key = order_id_key(order.order_id)
        with self.client.pipeline(transaction=True) as pipe:
            pipe.set(key, order.to_json(), nx=True)
            pipe.sadd(ORDERS_SET, key)
            pipe.execute()

    def find_by_id(self, id: int) -> Order:
        value = self.client.get(order_id_key(id))
        if value is None:
            raise OrderNotFound()
        return _decode(value)

    def delete_by_id(self, id: int) -> None:
        key = order_id_key(id)
        with self.client.pipeline(transaction=True) as pipe:
            pipe.delete(key)
            pipe.srem(ORDERS_SET, key)
            deleted, _ = pipe.execute()
        if not deleted:
            raise OrderNotFound()

    def update(self, order: Order) -> None:
        """Replace a stored order; the order must already exist."""
        if self.client.set(order_id_key(order.order_id), order.to_json(), xx=True) is None:
            raise OrderNotFound()

    def find_all(self, page: FindAllPage) -> FindResult:
        """Return one page of orders; the cursor is 0 once the set is exhausted."""
        cursor, keys = self.client.sscan(
            ORDERS_SET, cursor=page.offset, match="*", count=page.size
        )
        if not keys:
            return FindResult()
        values = self.client.mget(list(keys))
        return FindResult(orders=[_decode(value) for value in values], cursor=int(cursor))