"""Fetching and parsing RSS feeds, and reading their publication dates."""

from __future__ import annotations

import html
import re
import urllib.error
import urllib.request
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Pattern

USER_AGENT = "gator"
DEFAULT_TIMEOUT = 5.0


@dataclass(frozen=True)
class RSSItem:
    title: str = ""
    link: str = ""
    description: str = ""
    pub_date: str = ""


@dataclass
class RSSFeed:
    """The channel of an RSS document with its items."""

    title: str = ""
    link: str = ""
    description: str = ""
    items: list[RSSItem] = field(default_factory=list)


def _local_name(tag: object) -> str | None:
    if not isinstance(tag, str):
        return None
    return tag.rsplit("}", 1)[-1]


def _child(elem: ET.Element, name: str) -> ET.Element | None:
    return next((c for c in elem if _local_name(c.tag) == name), None)


def _text(elem: ET.Element | None) -> str:
    """Character data directly inside ``elem``, without that of nested elements."""
    if elem is None:
        return ""
    return (elem.text or "") + "".join(child.tail or "" for child in elem)


def parse_feed(data: bytes | str) -> RSSFeed:
    """Parse an RSS document; entities left in titles and descriptions are unescaped."""
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise ValueError(f"failed to unmarshal: {exc}") from exc

    channel = _child(root, "channel")
    if channel is None:
        return RSSFeed()

    items = [
        RSSItem(
            title=html.unescape(_text(_child(elem, "title"))),
            link=_text(_child(elem, "link")),
            description=html.unescape(_text(_child(elem, "description"))),
            pub_date=_text(_child(elem, "pubDate")),
        )
        for elem in channel
        if _local_name(elem.tag) == "item"
    ]
    return RSSFeed(
        title=html.unescape(_text(_child(channel, "title"))),
        link=_text(_child(channel, "link")),
        description=html.unescape(_text(_child(channel, "description"))),
        items=items,
    )


def fetch_feed(feed_url: str, timeout: float = DEFAULT_TIMEOUT) -> RSSFeed:
    """Download ``feed_url`` and parse it, whatever the HTTP status."""
    request = urllib.request.Request(feed_url, headers={"User-Agent": USER_AGENT})
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            data = response.read()
    except urllib.error.HTTPError as exc:
        with exc:
            data = exc.read()
    return parse_feed(data)


_MONTHS = {
    name.lower(): number
    for number, name in enumerate(
        ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"],
        start=1,
    )
}
_LONG_DAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
_SHORT_WEEKDAYS = frozenset(day[:3].lower() for day in _LONG_DAYS)
_LONG_WEEKDAYS = frozenset(day.lower() for day in _LONG_DAYS)

_CLOCK = r"(?P<h>\d{1,2}):(?P<mi>\d{2}):(?P<s>\d{2})(?P<frac>\.\d+)?"

# Tried in order: RFC 1123 with numeric zone, RFC 1123, RFC 822 with numeric zone,
# RFC 850 and RFC 3339.
_LAYOUTS: list[tuple[Pattern[str], frozenset[str] | None]] = [
    (
        re.compile(
            r"(?P<wd>[A-Za-z]{3}), (?P<day>\d{2}) (?P<mon>[A-Za-z]{3}) (?P<year>\d{4}) "
            + _CLOCK
            + r" (?P<off>[+-]\d{4})"
        ),
        _SHORT_WEEKDAYS,
    ),
    (
        re.compile(
            r"(?P<wd>[A-Za-z]{3}), (?P<day>\d{2}) (?P<mon>[A-Za-z]{3}) (?P<year>\d{4}) "
            + _CLOCK
            + r" (?P<abbr>[A-Z]{3,5})"
        ),
        _SHORT_WEEKDAYS,
    ),
    (
        re.compile(
            r"(?P<day>\d{2}) (?P<mon>[A-Za-z]{3}) (?P<year>\d{2}) "
            r"(?P<h>\d{1,2}):(?P<mi>\d{2}) (?P<off>[+-]\d{4})"
        ),
        None,
    ),
    (
        re.compile(
            r"(?P<wd>[A-Za-z]+), (?P<day>\d{2})-(?P<mon>[A-Za-z]{3})-(?P<year>\d{2}) "
            + _CLOCK
            + r" (?P<abbr>[A-Z]{3,5})"
        ),
        _LONG_WEEKDAYS,
    ),
    (
        re.compile(
            r"(?P<year>\d{4})-(?P<monnum>\d{2})-(?P<day>\d{2})T"
            + _CLOCK
            + r"(?P<z>Z|[+-]\d{2}:\d{2})"
        ),
        None,
    ),
]


def _zone(groups: dict[str, str | None]) -> timezone:
    offset = groups.get("off")
    if offset:
        sign = -1 if offset[0] == "-" else 1
        return timezone(sign * timedelta(hours=int(offset[1:3]), minutes=int(offset[3:5])))
    z = groups.get("z")
    if z and z != "Z":
        sign = -1 if z[0] == "-" else 1
        return timezone(sign * timedelta(hours=int(z[1:3]), minutes=int(z[4:6])))
    # Zone abbreviations carry no offset of their own; they are read as UTC.
    return timezone.utc


def _build(groups: dict[str, str | None], weekdays: frozenset[str] | None) -> datetime | None:
    weekday = groups.get("wd")
    if weekdays is not None and (weekday is None or weekday.lower() not in weekdays):
        return None

    year_text = groups["year"] or ""
    year = int(year_text)
    if len(year_text) == 2:
        year += 1900 if year >= 69 else 2000

    month_name = groups.get("mon")
    if month_name:
        month = _MONTHS.get(month_name.lower())
        if month is None:
            return None
    else:
        month = int(groups["monnum"] or 0)

    frac = (groups.get("frac") or ".")[1:]
    micro = int((frac + "000000")[:6]) if frac else 0
    try:
        return datetime(
            year,
            month,
            int(groups["day"] or 0),
            int(groups["h"] or 0),
            int(groups["mi"] or 0),
            int(groups.get("s") or 0),
            micro,
            tzinfo=_zone(groups),
        )
    except ValueError:
        return None


def parse_published_time(text: str) -> datetime | None:
    """Parse a feed date in one of the usual RSS layouts; None when none fits."""
    for pattern, weekdays in _LAYOUTS:
        match = pattern.fullmatch(text)
        if match is None:
            continue
        parsed = _build(match.groupdict(), weekdays)
        if parsed is not None:
            return parsed
    return None