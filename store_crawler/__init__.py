"""Bounded, de-duplicating product crawler for online stores."""

from .adapters.base import ContactInfo, Product, StoreInfo
from .config import Auth, ScrapeOptions
from .engines.base import CrawlState, ScrapeResult
from .engines.simple_engine import SimpleCrawlEngine, run_crawl
from .version import __version__

__all__ = [
    "Auth",
    "ContactInfo",
    "CrawlState",
    "Product",
    "ScrapeOptions",
    "ScrapeResult",
    "SimpleCrawlEngine",
    "StoreInfo",
    "__version__",
    "run_crawl",
]
