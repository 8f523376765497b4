import threading
from typing import Dict, List, Optional

import pytest

from feed_trigger.models import FeedItem
from feed_trigger.store import MemoryHeadStore


def make_items(*titles: str) -> List[FeedItem]:
    return [
        FeedItem(
            title=title,
            link=f"https://example.com/{title}",
            published=f"2024-01-0{index + 1}T00:00:00Z",
            updated=f"2024-01-0{index + 1}T12:00:00Z",
        )
        for index, title in enumerate(titles)
    ]


class FakeFetcher:
    """Serves canned item lists per URL and counts calls."""

    def __init__(self, responses: Optional[Dict[str, object]] = None):
        self.responses: Dict[str, object] = dict(responses or {})
        self.calls: Dict[str, int] = {}
        self._lock = threading.Lock()

    def __call__(self, url, cancel_event=None):
        with self._lock:
            self.calls[url] = self.calls.get(url, 0) + 1
        response = self.responses[url]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response()
        return list(response)

    def count(self, url):
        with self._lock:
            return self.calls.get(url, 0)


class Recorder:
    """Action that records the titles it receives."""

    def __init__(self, fail_on: Optional[str] = None):
        self.titles: List[str] = []
        self.fail_on = fail_on

    def __call__(self, item):
        if item.title == self.fail_on:
            raise RuntimeError(f"cannot handle {item.title}")
        self.titles.append(item.title)


@pytest.fixture
def store():
    return MemoryHeadStore()


@pytest.fixture
def write_lock():
    return threading.Lock()
