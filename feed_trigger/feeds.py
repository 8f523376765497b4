"""Feed download and parsing."""

from __future__ import annotations

import logging
import threading
from typing import Any, List, Optional

import feedparser
import requests

from .errors import FetchError
from .models import FeedItem, Person

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


def fetch_feed_items(
    url: str,
    cancel_event: Optional[threading.Event] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> List[FeedItem]:
    """Fetch a feed and return its items in document order (newest first).

    Raises FetchError when the feed cannot be downloaded or is not a feed at
    all. A well-formed feed without entries yields an empty list.
    """
    if cancel_event is not None and cancel_event.is_set():
        raise FetchError("cancelled before download", url=url, phase="fetch")

    logger.debug("Fetching feed %s", url)
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
        content = response.content
    except requests.RequestException as exc:
        raise FetchError(str(exc), url=url, phase="fetch") from exc

    parsed = feedparser.parse(content)
    if not parsed.get("version"):
        reason = parsed.get("bozo_exception") or "unrecognised feed format"
        raise FetchError(str(reason), url=url, phase="parse")

    items = [_to_item(entry) for entry in parsed.entries]
    logger.debug("Collected %d items from feed %s", len(items), url)
    return items


def _to_item(entry: Any) -> FeedItem:
    return FeedItem(
        title=entry.get("title", ""),
        link=entry.get("link", ""),
        author=_to_person(entry),
        published=entry.get("published"),
        updated=entry.get("updated"),
    )


def _to_person(entry: Any) -> Optional[Person]:
    detail = entry.get("author_detail")
    if detail:
        return Person(name=detail.get("name"), email=detail.get("email"))
    name = entry.get("author")
    if name:
        return Person(name=name)
    return None
