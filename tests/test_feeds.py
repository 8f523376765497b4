import threading
import types

import pytest
import requests

import feed_trigger.feeds as feeds
from feed_trigger.errors import FetchError
from feed_trigger.models import Feed, Person
from feed_trigger.poller import Poller
from feed_trigger.store import open_store

ATOM = b"""<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Recent Commits</title>
  <id>tag:example.com,2024:commits</id>
  <updated>2024-01-02T10:00:00Z</updated>
  <entry>
    <id>tag:example.com,2024:2</id>
    <title>Add detection rule</title>
    <link href="https://example.com/commit/2"/>
    <author><name>Ann</name><email>ann@example.com</email></author>
    <published>2024-01-02T09:00:00Z</published>
    <updated>2024-01-02T10:00:00Z</updated>
  </entry>
  <entry>
    <id>tag:example.com,2024:1</id>
    <title>Initial import</title>
    <link href="https://example.com/commit/1"/>
    <published>2024-01-01T09:00:00Z</published>
    <updated>2024-01-01T10:00:00Z</updated>
  </entry>
</feed>
"""

EMPTY_RSS = b"""<?xml version="1.0"?>
<rss version="2.0"><channel><title>Quiet</title><link>https://example.com</link>
<description>Nothing yet</description></channel></rss>
"""


def _serve(monkeypatch, content=b"", error=None):
    calls = []

    def fake_get(url, timeout=None):
        calls.append((url, timeout))
        if error is not None:
            raise error
        return types.SimpleNamespace(content=content, raise_for_status=lambda: None)

    monkeypatch.setattr(feeds.requests, "get", fake_get)
    return calls


def test_fetch_feed_items_keeps_document_order(monkeypatch):
    calls = _serve(monkeypatch, ATOM)

    items = feeds.fetch_feed_items("https://example.com/commits.atom", timeout=3.0)

    assert calls == [("https://example.com/commits.atom", 3.0)]
    assert [item.title for item in items] == ["Add detection rule", "Initial import"]
    first = items[0]
    assert first.link == "https://example.com/commit/2"
    assert first.published == "2024-01-02T09:00:00Z"
    assert first.updated == "2024-01-02T10:00:00Z"
    assert first.author == Person(name="Ann", email="ann@example.com")
    assert items[1].author is None


def test_fetch_feed_items_returns_empty_list_for_empty_feed(monkeypatch):
    _serve(monkeypatch, EMPTY_RSS)

    assert feeds.fetch_feed_items("https://example.com/rss") == []


def test_fetch_feed_items_wraps_network_errors(monkeypatch):
    _serve(monkeypatch, error=requests.ConnectionError("connection refused"))

    with pytest.raises(FetchError) as excinfo:
        feeds.fetch_feed_items("https://example.com/rss")

    assert excinfo.value.phase == "fetch"
    assert isinstance(excinfo.value.__cause__, requests.ConnectionError)


def test_fetch_feed_items_wraps_http_errors(monkeypatch):
    def raise_for_status():
        raise requests.HTTPError("404 Client Error")

    monkeypatch.setattr(
        feeds.requests,
        "get",
        lambda url, timeout=None: types.SimpleNamespace(
            content=b"", raise_for_status=raise_for_status
        ),
    )

    with pytest.raises(FetchError, match="404"):
        feeds.fetch_feed_items("https://example.com/missing")


def test_fetch_feed_items_rejects_content_that_is_not_a_feed(monkeypatch):
    _serve(monkeypatch, b"this is not a feed at all")

    with pytest.raises(FetchError) as excinfo:
        feeds.fetch_feed_items("https://example.com/page")

    assert excinfo.value.phase == "parse"


def test_fetch_feed_items_skips_download_when_cancelled(monkeypatch):
    calls = _serve(monkeypatch, ATOM)
    cancelled = threading.Event()
    cancelled.set()

    with pytest.raises(FetchError):
        feeds.fetch_feed_items("https://example.com/commits.atom", cancelled)

    assert calls == []


UNTITLED_RSS = b"""<?xml version="1.0"?>
<rss version="2.0"><channel><title>Status</title><link>https://example.com</link>
<description>Status updates</description>
<item><link>https://example.com/status/2</link><pubDate>Tue, 02 Jan 2024 09:00:00 GMT</pubDate></item>
<item><link>https://example.com/status/1</link><pubDate>Mon, 01 Jan 2024 09:00:00 GMT</pubDate></item>
</channel></rss>
"""


def test_untitled_items_are_not_redelivered_through_sql_store(monkeypatch, tmp_path):
    _serve(monkeypatch, UNTITLED_RSS)
    url = "https://example.com/status.rss"
    heads = open_store(f"sqlite:///{tmp_path / 'heads.db'}")
    delivered = []
    poller = Poller(
        Feed(url=url, on_new_item=delivered.append),
        heads,
        threading.Lock(),
        feeds.fetch_feed_items,
    )

    try:
        assert [item.title for item in feeds.fetch_feed_items(url)] == ["", ""]
        assert poller.poll() == 0
        assert poller.poll() == 0
        assert poller.poll() == 0
        assert delivered == []
        assert heads.get(url).title == ""
    finally:
        heads.close()
