from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Set

from .base import CrawlState, ScrapeResult, StopReason
from ..adapters.base import ContactInfo, Product, StoreInfo

logger = logging.getLogger(__name__)

NO_PRODUCTS_NOTE = (
    "No products were found on the site. It may block crawlers or build its catalog "
    "with scripts that are not run here."
)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class Aggregator:
    """
    Collects products across pages. The first product seen for an id wins;
    later duplicates are discarded, not merged.
    """

    def __init__(self, max_products: int) -> None:
        self.max_products = max_products
        self._products: Dict[str, Product] = {}
        self._taxonomy: Dict[str, Set[str]] = {}
        self.pages_failed = 0
        self.dropped = 0

    def __len__(self) -> int:
        return len(self._products)

    @property
    def full(self) -> bool:
        return len(self._products) >= self.max_products

    @property
    def products(self) -> List[Product]:
        return list(self._products.values())

    def add(self, products: Iterable[Product]) -> int:
        """Accept new products up to max_products; returns how many were new."""
        added = 0
        for product in products:
            if product.id in self._products:
                continue
            if self.full:
                self.dropped += 1
                continue
            self._products[product.id] = product
            if product.category:
                subs = self._taxonomy.setdefault(product.category, set())
                if product.subcategory:
                    subs.add(product.subcategory)
            added += 1
        return added

    def record_failure(self) -> None:
        self.pages_failed += 1

    @property
    def taxonomy(self) -> Dict[str, List[str]]:
        return {cat: sorted(subs) for cat, subs in sorted(self._taxonomy.items())}

    def estimate_total(self, visited: int, pending: int, stop: StopReason) -> int:
        count = len(self._products)
        if stop is StopReason.EXHAUSTED:
            return count
        # Extrapolate the per-page yield over the pages we know about but never fetched.
        if visited:
            estimate = math.ceil(count * (visited + pending) / visited)
        else:
            estimate = count
        return max(estimate, count + self.dropped, count + 1)

    def build(
        self,
        *,
        seed_url: str,
        stop: StopReason,
        visited: int,
        pending: int,
        store_info: Optional[StoreInfo] = None,
        contact_info: Optional[ContactInfo] = None,
    ) -> ScrapeResult:
        partial = stop is not StopReason.EXHAUSTED
        if store_info is not None:
            categories = list(store_info.categories)
            for cat in self.taxonomy:
                if cat not in categories:
                    categories.append(cat)
            store_info = StoreInfo(
                name=store_info.name,
                url=store_info.url,
                categories=categories,
                subcategories=self.taxonomy,
                logo=store_info.logo,
                description=store_info.description,
            )
        return ScrapeResult(
            success=True,
            last_updated=utc_now_iso(),
            products=self.products,
            store_info=store_info,
            contact_info=contact_info,
            total_products_estimate=self.estimate_total(visited, pending, stop),
            has_more_products=partial,
            state=CrawlState.COMPLETED_PARTIAL if partial else CrawlState.COMPLETED,
            seed_url=seed_url,
            pages_visited=visited,
            pages_failed=self.pages_failed,
            # A finished crawl with nothing to show still succeeds, but says why.
            error=None if self._products else NO_PRODUCTS_NOTE,
        )


def failed_result(seed_url: str, message: str) -> ScrapeResult:
    return ScrapeResult(
        success=False,
        last_updated=utc_now_iso(),
        error=message,
        state=CrawlState.FAILED,
        seed_url=seed_url,
    )
