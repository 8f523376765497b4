"""Shared data models for feed_trigger."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

DEFAULT_REFRESH_PERIOD = 60.0
MIN_REFRESH_PERIOD = 0.1


@dataclass
class Person:
    """Author of a feed item."""

    name: Optional[str] = None
    email: Optional[str] = None

    def __str__(self) -> str:
        parts = [part for part in (self.name, self.email) if part and part.strip()]
        return " ".join(parts)


@dataclass
class FeedItem:
    """Single entry of a fetched feed."""

    title: str
    link: str = ""
    author: Optional[Person] = None
    published: Optional[str] = None
    updated: Optional[str] = None


NewItemAction = Callable[[FeedItem], Any]


@dataclass(frozen=True)
class Feed:
    """A feed to poll and the action to trigger for every new item."""

    url: str
    on_new_item: NewItemAction
    refresh_period: float = DEFAULT_REFRESH_PERIOD

    def __post_init__(self) -> None:
        if not self.url or not self.url.strip():
            raise ValueError("Feed URL must not be empty.")
        if self.refresh_period < MIN_REFRESH_PERIOD:
            raise ValueError(
                f"Refresh period for {self.url} must be at least "
                f"{MIN_REFRESH_PERIOD} seconds (got {self.refresh_period})."
            )


@dataclass(frozen=True)
class FeedHead:
    """The newest item seen at the end of the last successful poll."""

    title: Optional[str] = None
    updated: Optional[str] = None
    published: Optional[str] = None

    @classmethod
    def from_item(cls, item: FeedItem) -> "FeedHead":
        return cls(title=item.title, updated=item.updated, published=item.published)

    def to_dict(self) -> Dict[str, str]:
        """Serialisable form; empty fields are left out."""
        payload = {
            "title": self.title,
            "last_updated": self.updated,
            "published": self.published,
        }
        return {key: value for key, value in payload.items() if value}

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "FeedHead":
        # Empty titles are not serialised; they read back as "".
        return cls(
            title=payload.get("title", ""),
            updated=payload.get("last_updated"),
            published=payload.get("published"),
        )


@dataclass
class FeedSource:
    """Feed definition loaded from configuration."""

    title: str
    url: str
    refresh_period: Optional[float] = None
