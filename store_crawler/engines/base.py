from __future__ import annotations

import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from ..adapters.base import ContactInfo, Product, StoreInfo

logger = logging.getLogger(__name__)


class CrawlState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    COMPLETED_PARTIAL = "completed_partial"
    FAILED = "failed"


class StopReason(str, enum.Enum):
    EXHAUSTED = "exhausted"
    LIMIT = "limit"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ScrapeResult:
    success: bool
    last_updated: str
    products: List[Product] = field(default_factory=list)
    store_info: Optional[StoreInfo] = None
    contact_info: Optional[ContactInfo] = None
    total_products_estimate: int = 0
    has_more_products: bool = False
    error: Optional[str] = None
    state: CrawlState = CrawlState.COMPLETED
    seed_url: Optional[str] = None
    pages_visited: int = 0
    pages_failed: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "last_updated": self.last_updated,
            "products": [p.to_dict() for p in self.products],
            "store_info": self.store_info.to_dict() if self.store_info else None,
            "contact_info": self.contact_info.to_dict() if self.contact_info else None,
            "total_products_estimate": self.total_products_estimate,
            "has_more_products": self.has_more_products,
            "error": self.error,
            "state": self.state.value,
            "seed_url": self.seed_url,
            "pages_visited": self.pages_visited,
            "pages_failed": self.pages_failed,
        }
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScrapeResult":
        store = data.get("store_info")
        contact = data.get("contact_info")
        return cls(
            success=data["success"],
            last_updated=data["last_updated"],
            products=[Product.from_dict(p) for p in data.get("products", [])],
            store_info=StoreInfo(**store) if store else None,
            contact_info=ContactInfo(**contact) if contact else None,
            total_products_estimate=data.get("total_products_estimate", 0),
            has_more_products=data.get("has_more_products", False),
            error=data.get("error"),
            state=CrawlState(data.get("state", CrawlState.COMPLETED.value)),
            seed_url=data.get("seed_url"),
            pages_visited=data.get("pages_visited", 0),
            pages_failed=data.get("pages_failed", 0),
        )


class ProgressListener(Protocol):
    """Receives crawl notifications. Implementations must not block."""

    def on_progress(self, pages_visited: int, products_found: int) -> None:
        ...

    def on_complete(self, result: ScrapeResult) -> None:
        ...

    def on_error(self, message: str) -> None:
        ...


class LoggingProgress:
    """Default listener: reports progress through the module logger."""

    def on_progress(self, pages_visited: int, products_found: int) -> None:
        logger.info("Crawled %s pages | %s products so far", pages_visited, products_found)

    def on_complete(self, result: ScrapeResult) -> None:
        logger.info(
            "Crawl %s: %s products from %s pages (%s failed)%s",
            result.state.value,
            len(result.products),
            result.pages_visited,
            result.pages_failed,
            " | more available" if result.has_more_products else "",
        )
        if result.error:
            logger.warning("%s", result.error)

    def on_error(self, message: str) -> None:
        logger.error("Crawl failed: %s", message)


class CrawlEngine(ABC):
    """
    Abstract engine interface. Implementations own the crawl lifecycle.
    """
    state: CrawlState = CrawlState.IDLE

    @abstractmethod
    async def crawl(self) -> ScrapeResult:  # pragma: no cover - interface
        ...
