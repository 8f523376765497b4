"""Command-line interface for feed_trigger."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from .actions import log_author_and_link
from .config import AppConfig, parse_app_config, parse_feeds_config
from .errors import FeedTriggerError, StoreInitError
from .models import Feed, FeedSource
from .runner import FeedTrigger

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Poll RSS/Atom feeds and log every new item."
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the main configuration XML file.",
    )
    parser.add_argument(
        "--feed",
        action="append",
        default=[],
        metavar="URL",
        help="Feed URL to poll. May be repeated; added to feeds from the config.",
    )
    parser.add_argument(
        "--refresh-period",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Default refresh period for feeds. Overrides config.",
    )
    parser.add_argument(
        "--database",
        default=None,
        metavar="URL",
        help="SQLAlchemy connection string for the head store. Overrides config.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (e.g. DEBUG, INFO, WARNING). Overrides config.",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Optional path to a log file. Overrides config.",
    )
    return parser


def configure_logging(level_name: str, log_file: Optional[str] = None) -> None:
    """Initialise logging according to options."""
    log_level = getattr(logging, level_name.upper(), None)
    if not isinstance(log_level, int):
        raise ValueError(f"Unsupported log level: {level_name}")

    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    root_logger.setLevel(log_level)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    if log_file:
        log_path = Path(log_file)
        if log_path.parent and not log_path.parent.exists():
            log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def build_feeds(
    sources: List[FeedSource], extra_urls: List[str], refresh_period: float
) -> List[Feed]:
    """Turn configured sources and ad-hoc URLs into feeds that log new items."""
    feeds: List[Feed] = []
    seen = set()
    for source in sources + [FeedSource(title=url, url=url) for url in extra_urls]:
        if source.url in seen:
            logger.debug("Ignoring duplicate feed %s", source.url)
            continue
        seen.add(source.url)
        feeds.append(
            Feed(
                url=source.url,
                on_new_item=log_author_and_link,
                refresh_period=source.refresh_period or refresh_period,
            )
        )
    return feeds


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        app_config = parse_app_config(args.config) if args.config else AppConfig()

        log_level = args.log_level or app_config.logging.level
        log_file = args.log_file or app_config.logging.file
        configure_logging(log_level, log_file)

        sources = (
            parse_feeds_config(app_config.feeds_file) if app_config.feeds_file else []
        )
        refresh_period = args.refresh_period or app_config.refresh_period
        feeds = build_feeds(sources, args.feed, refresh_period)
        if not feeds:
            raise ValueError("No feeds configured; pass --feed or --config.")

        trigger = FeedTrigger(
            feeds,
            connection_string=args.database or app_config.database.connection_string,
            timeout=app_config.timeout,
        )
        logger.info("Polling %d feeds", len(feeds))
        trigger.run()
    except ValueError as exc:
        parser.error(str(exc))
    except KeyboardInterrupt:
        logger.info("Interrupted; all pollers stopped.")
        return 0
    except StoreInitError as exc:
        logger.error("Cannot start: %s", exc)
        return 1
    except FeedTriggerError as exc:
        logger.error("Polling stopped: %s", exc)
        return 1
    except (RuntimeError, FileNotFoundError) as exc:
        logger.error("%s", exc)
        return 1
    except Exception:  # noqa: BLE001
        logger.exception("Unexpected error during execution.")
        return 1

    return 0
