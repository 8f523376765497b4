"""Exceptions raised while polling feeds."""

from __future__ import annotations

from typing import Optional


class FeedTriggerError(Exception):
    """Base error; records which feed and which phase of a poll failed."""

    def __init__(
        self, message: str, url: Optional[str] = None, phase: Optional[str] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.url = url
        self.phase = phase

    def __str__(self) -> str:
        prefix = ""
        if self.url:
            prefix += f"[{self.url}] "
        if self.phase:
            prefix += f"{self.phase}: "
        return prefix + self.message


class StoreInitError(FeedTriggerError):
    """The head store could not be opened."""

    def __init__(self, message: str) -> None:
        super().__init__(message, phase="open store")


class FetchError(FeedTriggerError):
    """The feed could not be downloaded or parsed."""


class StoreAccessError(FeedTriggerError):
    """Reading or writing a head marker failed."""


class CallbackError(FeedTriggerError):
    """The new-item action raised."""
