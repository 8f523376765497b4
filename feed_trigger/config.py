"""Configuration loading for polled feeds."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
from xml.etree import ElementTree as ET

from .feeds import DEFAULT_TIMEOUT
from .models import DEFAULT_REFRESH_PERIOD, FeedSource
from .store import DEFAULT_CONNECTION_STRING

logger = logging.getLogger(__name__)


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class DatabaseConfig:
    connection_string: str = DEFAULT_CONNECTION_STRING


@dataclass
class AppConfig:
    feeds_file: Optional[str] = None
    refresh_period: float = DEFAULT_REFRESH_PERIOD
    timeout: float = DEFAULT_TIMEOUT
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)


def _parse_seconds(raw: Optional[str], what: str) -> Optional[float]:
    if raw is None or not raw.strip():
        return None
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"Invalid {what}: {raw!r} is not a number of seconds.")


def parse_feeds_config(path: str) -> List[FeedSource]:
    """Parse an OPML file and return the feeds it lists."""
    logger.info("Loading feed configuration from %s", path)
    tree = ET.parse(path)
    root = tree.getroot()
    body = root.find("body")
    feeds: List[FeedSource] = []

    def walk(outline: ET.Element) -> None:
        title = outline.attrib.get("title") or outline.attrib.get("text")
        feed_url = outline.attrib.get("xmlUrl")

        if feed_url:
            refresh_period = _parse_seconds(
                outline.attrib.get("refreshPeriod"), f"refreshPeriod for {feed_url}"
            )
            feeds.append(
                FeedSource(
                    title=title or feed_url,
                    url=feed_url,
                    refresh_period=refresh_period,
                )
            )
            logger.debug("Registered feed '%s'", feed_url)
            return

        for child in outline.findall("outline"):
            walk(child)

    if body is None:
        raise ValueError(f"{path} is missing the <body> section.")

    for outline in body.findall("outline"):
        walk(outline)

    logger.info("Loaded %d feeds from configuration", len(feeds))
    return feeds


def _resolve_path(base_path: Path, target_path: str) -> str:
    """Resolve a path relative to the base config file if it's not absolute."""
    target = Path(target_path)
    if target.is_absolute():
        return str(target)
    return str((base_path.parent / target).resolve())


def parse_app_config(path: str) -> AppConfig:
    """Parse the main application configuration XML."""
    config_path = Path(path).resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    logger.info("Loading application configuration from %s", config_path)
    tree = ET.parse(config_path)
    root = tree.getroot()
    config = AppConfig()

    feeds_text = root.findtext("feeds")
    if feeds_text and feeds_text.strip():
        config.feeds_file = _resolve_path(config_path, feeds_text.strip())

    refresh_period = _parse_seconds(root.findtext("refresh-period"), "refresh-period")
    if refresh_period is not None:
        config.refresh_period = refresh_period

    timeout = _parse_seconds(root.findtext("timeout"), "timeout")
    if timeout is not None:
        config.timeout = timeout

    db_node = root.find("database")
    if db_node is not None:
        connection_string = db_node.findtext("connection-string")
        if connection_string and connection_string.strip():
            config.database.connection_string = connection_string.strip()

    log_node = root.find("logging")
    if log_node is not None:
        config.logging.level = log_node.findtext("level", "INFO")
        log_file = log_node.findtext("file")
        if log_file:
            config.logging.file = _resolve_path(config_path, log_file)

    return config
