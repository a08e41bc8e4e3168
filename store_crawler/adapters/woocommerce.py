from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from .base import ParseResult, Product
from .generic import GenericAdapter
from ..utils.parsing import normalize_url

# Default WooCommerce permalink bases (English and Spanish installs).
_WOO_PATHS = ("/product/", "/producto/", "/product-category/", "/categoria-producto/")

_META_LABELS = {
    "ean": "ean",
    "barcode": "ean",
    "código de barras": "ean",
    "weight": "weight",
    "peso": "weight",
    "dimensions": "dimensions",
    "dimensiones": "dimensions",
    "manufacturer": "manufacturer_code",
    "fabricante": "manufacturer_code",
}


class WooCommerceAdapter(GenericAdapter):
    """Adapter for WooCommerce stores: reads sku, stock and attribute tables of detail pages."""

    name = "woocommerce"

    def __init__(self, domains: Optional[Iterable[str]] = None) -> None:
        self.domains: List[str] = [d.lower() for d in (domains or [])]

    def matches(self, url: str) -> bool:
        parsed = urlparse(url)
        host = (parsed.hostname or "").lower()
        if any(host == d or host.endswith("." + d) for d in self.domains):
            return True
        path = parsed.path.lower() + "/"
        return any(p in path for p in _WOO_PATHS)

    def parse(self, url: str, html: str) -> ParseResult:
        result = super().parse(url, html)
        page = normalize_url(url)
        if len(result.products) == 1 and result.products[0].url == page:
            soup = BeautifulSoup(html, "html.parser")
            result.products = [self._enrich_detail(result.products[0], soup)]
        return result

    def _enrich_detail(self, product: Product, soup: BeautifulSoup) -> Product:
        changes: Dict[str, object] = {}

        sku = soup.select_one(".sku_wrapper .sku")
        if sku and sku.get_text(strip=True):
            changes["sku"] = sku.get_text(strip=True)

        price = soup.select_one(".summary .price ins .woocommerce-Price-amount, .summary .price .woocommerce-Price-amount")
        if price and price.get_text(strip=True):
            changes["price"] = price.get_text(strip=True)

        stock = soup.select_one(".summary .stock, p.stock")
        if stock and stock.get_text(strip=True):
            changes["stock_status"] = stock.get_text(strip=True)

        specs: Dict[str, str] = dict(product.specifications or {})
        for row in soup.select(".product_meta .detail-container"):
            label = row.select_one(".detail-label")
            value = row.select_one(".detail-content")
            if not (label and value):
                continue
            label_text = label.get_text(strip=True).rstrip(":").lower()
            value_text = value.get_text(strip=True)
            if not (label_text and value_text):
                continue
            specs[label_text] = value_text
            for needle, key in _META_LABELS.items():
                if needle in label_text:
                    specs.setdefault(key, value_text)
                    break

        for row in soup.select(".woocommerce-product-attributes tr"):
            th, td = row.select_one("th"), row.select_one("td")
            if th and td and th.get_text(strip=True):
                specs[th.get_text(strip=True)] = td.get_text(" ", strip=True)

        if specs:
            changes["specifications"] = specs
        return replace(product, **changes) if changes else product
