from __future__ import annotations

from typing import Dict, List

from bs4 import BeautifulSoup

from .base import ParseResult, Product
from ..utils.parsing import (
    extract_contact_info,
    extract_links,
    extract_listing_products,
    extract_product_detail,
    extract_product_metadata,
    extract_store_info,
    is_product_like,
    site_name,
)


class GenericAdapter:
    """
    A generic, domain-agnostic adapter that uses simple heuristics.
    Acts as a safe fallback when no specific adapter matches a URL.
    """
    name = "generic"

    def matches(self, url: str) -> bool:  # pragma: no cover - trivial
        return True

    def parse(self, url: str, html: str) -> ParseResult:
        soup = BeautifulSoup(html, "html.parser")
        source = site_name(soup, url)

        # JSON-LD is the most reliable source; listing cards and detail markup are fallbacks.
        products = extract_product_metadata(soup, url)
        if not products:
            products = extract_listing_products(soup, url, source)
        if not products and is_product_like(url):
            detail = extract_product_detail(soup, url, source)
            if detail:
                products = [detail]

        return ParseResult(
            products=_unique(products),
            next_links=extract_links(soup, url),
            store_info=extract_store_info(soup, url),
            contact_info=extract_contact_info(soup),
        )


def _unique(products: List[Product]) -> List[Product]:
    seen: Dict[str, Product] = {}
    for product in products:
        seen.setdefault(product.id, product)
    return list(seen.values())
