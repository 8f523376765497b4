"""One poll cycle for a single feed: fetch, diff against the stored head,
trigger the action for new items, then move the head forward."""

from __future__ import annotations

import logging
import threading
from itertools import takewhile
from typing import Callable, List, Optional, Sequence

from .errors import CallbackError, FeedTriggerError, FetchError, StoreAccessError
from .feeds import fetch_feed_items
from .models import Feed, FeedHead, FeedItem
from .store import HeadStore

logger = logging.getLogger(__name__)

Fetcher = Callable[[str, Optional[threading.Event]], List[FeedItem]]


def select_new_items(items: Sequence[FeedItem], head: FeedHead) -> List[FeedItem]:
    """Return the leading items whose title differs from the head's.

    Items are compared by title only. When the head title is no longer
    present every item counts as new.
    """
    return list(takewhile(lambda item: item.title != head.title, items))


class Poller:
    """Polls one feed against a shared head store."""

    def __init__(
        self,
        feed: Feed,
        store: HeadStore,
        write_lock: threading.Lock,
        fetcher: Optional[Fetcher] = None,
    ) -> None:
        self.feed = feed
        self.store = store
        self.write_lock = write_lock
        self.fetcher = fetcher or fetch_feed_items

    def poll(self, cancel_event: Optional[threading.Event] = None) -> int:
        """Run one cycle and return how many items were handed to the action.

        The head is only written once every new item was processed, so a
        failing action leaves it untouched and the items are offered again
        on the next cycle.
        """
        url = self.feed.url
        items = self._fetch(cancel_event)
        if not items:
            logger.info("Feed %s returned no items; keeping stored head", url)
            return 0

        newest = items[0]
        head = self._load_head()
        if head is None:
            logger.info("First poll of %s; recording head %r", url, newest.title)
            self._save_head(FeedHead.from_item(newest))
            return 0

        new_items = select_new_items(items, head)
        if len(new_items) == len(items):
            logger.warning(
                "Head %r not found in %s; treating all %d items as new",
                head.title,
                url,
                len(items),
            )
        for item in new_items:
            self._trigger(item)

        self._save_head(FeedHead.from_item(newest))
        if new_items:
            logger.info("Processed %d new items from %s", len(new_items), url)
        else:
            logger.debug("No new items in %s", url)
        return len(new_items)

    def _fetch(self, cancel_event: Optional[threading.Event]) -> List[FeedItem]:
        try:
            return list(self.fetcher(self.feed.url, cancel_event))
        except FeedTriggerError:
            raise
        except Exception as exc:
            raise FetchError(str(exc), url=self.feed.url, phase="fetching feed") from exc

    def _load_head(self) -> Optional[FeedHead]:
        try:
            return self.store.get(self.feed.url)
        except StoreAccessError:
            raise
        except Exception as exc:
            raise StoreAccessError(
                str(exc), url=self.feed.url, phase="get from store"
            ) from exc

    def _save_head(self, head: FeedHead) -> None:
        with self.write_lock:
            try:
                self.store.set(self.feed.url, head)
            except StoreAccessError:
                raise
            except Exception as exc:
                raise StoreAccessError(
                    str(exc), url=self.feed.url, phase="storing head"
                ) from exc

    def _trigger(self, item: FeedItem) -> None:
        try:
            self.feed.on_new_item(item)
        except Exception as exc:
            raise CallbackError(
                f"action failed for {item.title!r}: {exc}",
                url=self.feed.url,
                phase="trigger func",
            ) from exc
