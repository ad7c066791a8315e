"""Orders and their line items, with their JSON form."""

from __future__ import annotations

import json
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

_MAX_UINT64 = (1 << 64) - 1
_NIL_UUID = uuid.UUID(int=0)

_RFC3339 = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})"
)


def _format_time(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.strftime("%Y-%m-%dT%H:%M:%S")
    if value.microsecond:
        text += "." + f"{value.microsecond:06d}".rstrip("0")
    offset = value.utcoffset() or timedelta(0)
    if offset == timedelta(0):
        return text + "Z"
    sign = "-" if offset < timedelta(0) else "+"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def _parse_time(value: Any, name: str) -> datetime | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"{name}: expected a time string")
    match = _RFC3339.fullmatch(value)
    if match is None:
        raise ValueError(f"{name}: cannot parse {value!r} as RFC 3339 time")
    year, month, day, hour, minute, second, frac, zone = match.groups()
    if zone in ("Z", "z"):
        tz = timezone.utc
    else:
        sign = -1 if zone[0] == "-" else 1
        tz = timezone(sign * timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6])))
    micro = int((frac + "000000")[:6]) if frac else 0
    try:
        return datetime(
            int(year), int(month), int(day), int(hour), int(minute), int(second), micro, tzinfo=tz
        )
    except ValueError as exc:
        raise ValueError(f"{name}: {exc}") from exc


def _uint(value: Any, name: str, maximum: int = _MAX_UINT64) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= maximum:
        raise ValueError(f"{name}: expected an unsigned integer")
    return value


def _uuid(value: Any, name: str) -> uuid.UUID:
    if value is None:
        return _NIL_UUID
    if not isinstance(value, str):
        raise ValueError(f"{name}: expected a UUID string")
    try:
        return uuid.UUID(value)
    except ValueError as exc:
        raise ValueError(f"{name}: invalid UUID {value!r}") from exc


def _mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what}: expected a JSON object")
    return data


@dataclass(frozen=True)
class LineItem:
    item_id: uuid.UUID = _NIL_UUID
    quantity: int = 0
    price: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"item_id": str(self.item_id), "quantity": self.quantity, "price": self.price}

    @classmethod
    def from_dict(cls, data: Any) -> LineItem:
        data = _mapping(data, "line item")
        return cls(
            item_id=_uuid(data.get("item_id"), "item_id"),
            quantity=_uint(data.get("quantity"), "quantity"),
            price=_uint(data.get("price"), "price"),
        )


@dataclass
class Order:
    """An order of a customer and the times it moved through its states."""

    order_id: int = 0
    customer_id: uuid.UUID = _NIL_UUID
    line_items: list[LineItem] = field(default_factory=list)
    created_at: datetime | None = None
    shipped_at: datetime | None = None
    completed_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "customer_id": str(self.customer_id),
            "line_items": [item.to_dict() for item in self.line_items],
            "created_at": _format_time(self.created_at),
            "shipped_at": _format_time(self.shipped_at),
            "completed_at": _format_time(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: Any) -> Order:
        data = _mapping(data, "order")
        items = data.get("line_items")
        if items is not None and not isinstance(items, list):
            raise ValueError("line_items: expected a list")
        return cls(
            order_id=_uint(data.get("order_id"), "order_id"),
            customer_id=_uuid(data.get("customer_id"), "customer_id"),
            line_items=[LineItem.from_dict(item) for item in items or []],
            created_at=_parse_time(data.get("created_at"), "created_at"),
            shipped_at=_parse_time(data.get("shipped_at"), "shipped_at"),
            completed_at=_parse_time(data.get("completed_at"), "completed_at"),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_json(cls, text: str | bytes) -> Order:
        if isinstance(text, (bytes, bytearray)):
            text = bytes(text).decode("utf-8")
        return cls.from_dict(json.loads(text))