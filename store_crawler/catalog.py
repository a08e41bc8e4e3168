"""Read-side helpers over a crawled product list: categories, search and paging."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Generic, Iterable, List, Optional, Sequence, TypeVar

from .adapters.base import Product

T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    items: List[T]
    page: int
    per_page: int
    total: int

    @property
    def pages(self) -> int:
        return max(1, math.ceil(self.total / self.per_page))

    @property
    def first_index(self) -> int:
        """1-based index of the first item on this page (0 when empty)."""
        return (self.page - 1) * self.per_page + 1 if self.items else 0

    @property
    def last_index(self) -> int:
        return min(self.page * self.per_page, self.total) if self.items else 0


def extract_categories(products: Iterable[Product]) -> List[str]:
    return sorted({p.category for p in products if p.category})


def filter_products(
    products: Iterable[Product],
    category: Optional[str] = None,
    query: Optional[str] = None,
) -> List[Product]:
    """Case-insensitive search over name, description, category and SKU, then an exact category filter."""
    out = list(products)
    if query:
        q = query.lower()
        out = [
            p for p in out
            if any(q in (field or "").lower() for field in (p.name, p.description, p.category, p.sku))
        ]
    if category:
        out = [p for p in out if p.category == category]
    return out


def paginate(items: Sequence[T], page: int = 1, per_page: int = 10) -> Page[T]:
    if per_page <= 0:
        raise ValueError("per_page must be > 0")
    total = len(items)
    last_page = max(1, math.ceil(total / per_page))
    page = min(max(page, 1), last_page)
    start = (page - 1) * per_page
    return Page(items=list(items[start:start + per_page]), page=page, per_page=per_page, total=total)


def catalog_stats(products: Sequence[Product]) -> Dict[str, int]:
    return {
        "products": len(products),
        "categories": len(extract_categories(products)),
        "discounted": sum(1 for p in products if p.discount),
        # Unknown stock counts as available.
        "in_stock": sum(
            1 for p in products
            if not p.stock_status or ("stock" in p.stock_status.lower() and "out of" not in p.stock_status.lower())
        ),
    }
