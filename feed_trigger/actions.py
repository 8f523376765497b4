"""Ready-made actions for new feed items."""

from __future__ import annotations

import logging

from .models import FeedItem

logger = logging.getLogger(__name__)


def describe_author(item: FeedItem) -> str:
    """Return a printable author for item, falling back to 'unknown author'."""
    if item.author is not None:
        text = str(item.author)
        if text:
            return text
    return "unknown author"


def log_author_and_link(item: FeedItem) -> None:
    """Log the author and link of a new item."""
    logger.info("%s: %s", describe_author(item), item.link)
