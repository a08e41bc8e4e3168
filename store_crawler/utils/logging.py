from __future__ import annotations

import logging
import os

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}


def setup_logging(level: str | int | None = None) -> None:
    """
    Configure application logging once, for the CLI and the API server alike.
    """
    if level is None:
        level = os.getenv("STORE_CRAWLER_LOG_LEVEL", "INFO")

    if isinstance(level, str):
        level = _LEVELS.get(level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )
    # aiohttp logs every connection hiccup at DEBUG; keep it out of crawl logs.
    logging.getLogger("aiohttp").setLevel(max(level, logging.INFO))
