"""Persistence of per-feed head markers."""

from __future__ import annotations

import abc
import json
import logging
import threading
from datetime import datetime, timezone
from typing import Dict, Optional

from sqlalchemy import Column, DateTime, String, Text, create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .errors import StoreAccessError, StoreInitError
from .models import FeedHead

logger = logging.getLogger(__name__)

DEFAULT_CONNECTION_STRING = "sqlite:///feed_trigger.db"


class HeadStore(abc.ABC):
    """Key/value store mapping a feed URL to its last seen head."""

    @abc.abstractmethod
    def get(self, key: str) -> Optional[FeedHead]:
        """Return the stored head, or None if the key was never written."""

    @abc.abstractmethod
    def set(self, key: str, head: FeedHead) -> None:
        """Replace the stored head for key."""

    def close(self) -> None:
        """Release any resources held by the store."""


class MemoryHeadStore(HeadStore):
    """Non-durable store, handy for embedding and tests."""

    def __init__(self, heads: Optional[Dict[str, FeedHead]] = None) -> None:
        self._heads: Dict[str, FeedHead] = dict(heads or {})
        self._lock = threading.Lock()
        self.closed = False

    def get(self, key: str) -> Optional[FeedHead]:
        with self._lock:
            return self._heads.get(key)

    def set(self, key: str, head: FeedHead) -> None:
        with self._lock:
            self._heads[key] = head

    def close(self) -> None:
        self.closed = True


class Base(DeclarativeBase):
    pass


class HeadModel(Base):
    """Serialised head marker for one feed."""

    __tablename__ = "feed_heads"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))


class SqlHeadStore(HeadStore):
    """Durable store backed by a SQLAlchemy engine."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._session_factory: sessionmaker[Session] = sessionmaker(bind=engine)

    def get(self, key: str) -> Optional[FeedHead]:
        try:
            with self._session_factory() as session:
                stmt = select(HeadModel).where(HeadModel.key == key)
                row = session.execute(stmt).scalar_one_or_none()
                value = row.value if row is not None else None
        except SQLAlchemyError as exc:
            raise StoreAccessError(str(exc), url=key, phase="get from store") from exc

        if value is None:
            return None
        try:
            return FeedHead.from_dict(json.loads(value))
        except (ValueError, AttributeError) as exc:
            raise StoreAccessError(
                f"stored head is not valid JSON: {exc}", url=key, phase="get from store"
            ) from exc

    def set(self, key: str, head: FeedHead) -> None:
        value = json.dumps(head.to_dict(), ensure_ascii=False)
        with self._session_factory() as session:
            try:
                stmt = select(HeadModel).where(HeadModel.key == key)
                existing = session.execute(stmt).scalar_one_or_none()
                if existing:
                    existing.value = value
                    existing.updated_at = datetime.now(timezone.utc)
                else:
                    session.add(
                        HeadModel(
                            key=key,
                            value=value,
                            updated_at=datetime.now(timezone.utc),
                        )
                    )
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise StoreAccessError(str(exc), url=key, phase="storing head") from exc

    def close(self) -> None:
        logger.debug("Disposing database engine %s", self.engine.url)
        self.engine.dispose()


def open_store(connection_string: Optional[str] = None) -> SqlHeadStore:
    """Open the default durable store, creating its table if needed."""
    connection_string = connection_string or DEFAULT_CONNECTION_STRING
    logger.info("Opening head store: %s", connection_string)
    try:
        engine = create_engine(connection_string)
        Base.metadata.create_all(engine)
    except (SQLAlchemyError, ImportError) as exc:
        raise StoreInitError(f"cannot open {connection_string}: {exc}") from exc
    return SqlHeadStore(engine)
