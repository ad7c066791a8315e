import threading
from datetime import datetime, timedelta, timezone
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest

from sidequests.gator.gatorfeeds import (
    RSSFeed,
    fetch_feed,
    parse_feed,
    parse_published_time,
)

FEED_XML = (
    b'<?xml version="1.0" encoding="UTF-8"?>'
    b'<rss version="2.0"><channel>'
    b"<title>News &amp;amp; Views</title>"
    b"<link>https://example.com/</link>"
    b"<description>Daily &amp;lt;news&amp;gt;</description>"
    b"<item><title>First</title><link>https://example.com/1</link>"
    b"<description>One</description>"
    b"<pubDate>Mon, 02 Jan 2006 15:04:05 -0700</pubDate></item>"
    b"<item><title>Second &amp;quot;post&amp;quot;</title>"
    b"<link>https://example.com/2</link><description>Two</description></item>"
    b"</channel></rss>"
)


def test_parse_feed_reads_channel_and_items():
    feed = parse_feed(FEED_XML)
    assert feed.title == "News & Views"
    assert feed.link == "https://example.com/"
    assert feed.description == "Daily <news>"
    assert [item.link for item in feed.items] == ["https://example.com/1", "https://example.com/2"]
    assert feed.items[0].pub_date == "Mon, 02 Jan 2006 15:04:05 -0700"
    assert feed.items[1].title == 'Second "post"'
    assert feed.items[1].pub_date == ""


def test_parse_feed_without_channel_is_empty():
    assert parse_feed(b"<rss></rss>") == RSSFeed()


@pytest.mark.parametrize("data", [b"", b"<rss><channel>", b"not xml at all"])
def test_parse_feed_rejects_bad_xml(data):
    with pytest.raises(ValueError, match="^failed to unmarshal"):
        parse_feed(data)


def test_parse_rfc1123z():
    assert parse_published_time("Mon, 02 Jan 2006 15:04:05 -0700") == datetime(
        2006, 1, 2, 15, 4, 5, tzinfo=timezone(timedelta(hours=-7))
    )


def test_parse_rfc1123_with_zone_name():
    assert parse_published_time("Mon, 02 Jan 2006 15:04:05 GMT") == datetime(
        2006, 1, 2, 15, 4, 5, tzinfo=timezone.utc
    )


def test_parse_rfc822z():
    assert parse_published_time("02 Jan 06 15:04 -0700") == datetime(
        2006, 1, 2, 15, 4, tzinfo=timezone(timedelta(hours=-7))
    )


def test_parse_rfc850():
    assert parse_published_time("Monday, 02-Jan-06 15:04:05 UTC") == datetime(
        2006, 1, 2, 15, 4, 5, tzinfo=timezone.utc
    )


def test_rfc3339_and_rfc1123z_agree_on_the_instant():
    assert parse_published_time("2006-01-02T15:04:05-07:00") == parse_published_time(
        "Mon, 02 Jan 2006 15:04:05 -0700"
    )
    assert parse_published_time("2006-01-02T15:04:05Z") == parse_published_time(
        "Mon, 02 Jan 2006 15:04:05 UTC"
    )


@pytest.mark.parametrize(
    "text",
    ["", "yesterday", "Mon, 31 Feb 2006 15:04:05 -0700", "Xyz, 02 Jan 2006 15:04:05 -0700"],
)
def test_unparseable_dates_give_none(text):
    assert parse_published_time(text) is None


class _FeedHandler(BaseHTTPRequestHandler):
    def do_GET(self):
        self.server.seen_agent = self.headers.get("User-Agent")
        self.send_response(200)
        self.send_header("Content-Type", "application/rss+xml")
        self.send_header("Content-Length", str(len(FEED_XML)))
        self.end_headers()
        self.wfile.write(FEED_XML)

    def log_message(self, *args):
        pass


@pytest.fixture
def feed_server():
    server = HTTPServer(("127.0.0.1", 0), _FeedHandler)
    server.seen_agent = None
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()
    thread.join()


def test_fetch_feed_downloads_and_parses(feed_server):
    host, port = feed_server.server_address
    feed = fetch_feed(f"http://{host}:{port}/feed.xml")
    assert feed == parse_feed(FEED_XML)
    assert feed_server.seen_agent == "gator"