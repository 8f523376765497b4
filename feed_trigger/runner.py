"""Scheduling of one poller per feed with fail-fast shutdown."""

from __future__ import annotations

import concurrent.futures
import functools
import logging
import threading
import time
from typing import Iterator, List, Optional, Sequence

from .feeds import DEFAULT_TIMEOUT, fetch_feed_items
from .models import Feed
from .poller import Fetcher, Poller
from .store import HeadStore, open_store

logger = logging.getLogger(__name__)

# How often the run loop checks the caller's cancellation event.
CANCEL_CHECK_INTERVAL = 0.1


class RunState:
    """Stop signal, first failure and live worker count of a single run."""

    def __init__(self) -> None:
        self.stopped = threading.Event()
        self.error: Optional[BaseException] = None
        self.active = 0
        self._lock = threading.Lock()

    def fail(self, exc: BaseException) -> None:
        with self._lock:
            if self.error is None:
                self.error = exc
        self.stopped.set()

    def enter(self) -> None:
        with self._lock:
            self.active += 1

    def leave(self) -> None:
        with self._lock:
            self.active -= 1


def ticks(period: float, stopped: threading.Event) -> Iterator[None]:
    """Yield every ``period`` seconds until ``stopped`` is set.

    Fixed rate: when a poll overruns, the missed ticks are dropped instead
    of firing back to back.
    """
    next_tick = time.monotonic() + period
    while not stopped.wait(max(0.0, next_tick - time.monotonic())):
        yield
        now = time.monotonic()
        next_tick += period
        if next_tick <= now:
            next_tick += period * ((now - next_tick) // period + 1)


class FeedTrigger:
    """Polls every configured feed on its own schedule until cancelled or
    until the first failure."""

    def __init__(
        self,
        feeds: Sequence[Feed],
        store: Optional[HeadStore] = None,
        fetcher: Optional[Fetcher] = None,
        connection_string: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        urls = [feed.url for feed in feeds]
        duplicates = sorted({url for url in urls if urls.count(url) > 1})
        if duplicates:
            raise ValueError(f"Duplicate feed URLs: {', '.join(duplicates)}")

        self.feeds: List[Feed] = list(feeds)
        self.store = store if store is not None else open_store(connection_string)
        self.fetcher = fetcher or functools.partial(fetch_feed_items, timeout=timeout)
        self._write_lock = threading.Lock()
        self._state: Optional[RunState] = None
        self._store_closed = False

    @property
    def active_pollers(self) -> int:
        return self._state.active if self._state is not None else 0

    def run(self, cancel_event: Optional[threading.Event] = None) -> None:
        """Poll all feeds until ``cancel_event`` is set or a poll fails.

        Returns normally on cancellation. Otherwise re-raises the first
        failure once every worker has exited. The store is closed either way.
        """
        if self._state is not None:
            raise RuntimeError("FeedTrigger.run() may only be called once.")
        state = self._state = RunState()

        try:
            if not self.feeds:
                logger.warning("No feeds configured; nothing to poll.")
                return

            logger.info("Starting %d feed pollers", len(self.feeds))
            with concurrent.futures.ThreadPoolExecutor(
                max_workers=len(self.feeds), thread_name_prefix="feed-poller"
            ) as executor:
                try:
                    for feed in self.feeds:
                        executor.submit(self._work, feed, state)
                    while not state.stopped.wait(CANCEL_CHECK_INTERVAL):
                        if cancel_event is not None and cancel_event.is_set():
                            logger.info("Cancellation requested; stopping pollers")
                            break
                finally:
                    state.stopped.set()

            if state.error is not None:
                raise state.error
            logger.info("All feed pollers stopped")
        finally:
            self._close_store()

    def _work(self, feed: Feed, state: RunState) -> None:
        poller = Poller(feed, self.store, self._write_lock, self.fetcher)
        state.enter()
        try:
            logger.debug("Start polling %s every %ss", feed.url, feed.refresh_period)
            if state.stopped.is_set():
                return
            poller.poll(state.stopped)
            for _ in ticks(feed.refresh_period, state.stopped):
                logger.debug("Tick for %s", feed.url)
                poller.poll(state.stopped)
        except Exception as exc:
            if state.stopped.is_set():
                logger.debug("Poller for %s stopped during shutdown: %s", feed.url, exc)
            else:
                logger.error("Polling %s failed: %s", feed.url, exc)
                state.fail(exc)
        except BaseException as exc:
            logger.error("Poller for %s aborted: %r", feed.url, exc)
            state.fail(exc)
            raise
        finally:
            state.leave()

    def _close_store(self) -> None:
        if self._store_closed:
            return
        self._store_closed = True
        try:
            self.store.close()
        except Exception:
            logger.exception("Failed to close head store")
