from __future__ import annotations

import csv
import io
from datetime import date
from pathlib import Path
from typing import Iterable, List, TextIO

from ..adapters.base import Product
from ..engines.base import ScrapeResult


def default_filename(day: date | None = None) -> str:
    return f"products_{(day or date.today()).isoformat()}.csv"


class CSVExporter:
    """
    Writes one row per product, the columns of the catalog admin table.
    """

    headers = [
        "ID",
        "Name",
        "Price",
        "Category",
        "Subcategory",
        "URL",
        "Description",
        "Original price",
        "Discount",
        "SKU",
        "Stock status",
        "Brand",
    ]

    def export(self, result: ScrapeResult, path: str) -> None:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8", newline="") as f:
            self.write(result.products, f)

    def render(self, products: Iterable[Product]) -> str:
        buf = io.StringIO()
        self.write(products, buf)
        return buf.getvalue()

    def write(self, products: Iterable[Product], f: TextIO) -> None:
        w = csv.writer(f, quoting=csv.QUOTE_ALL)
        w.writerow(self.headers)
        for product in products:
            w.writerow(self._row(product))

    def _row(self, product: Product) -> List[str]:
        return [
            product.id,
            product.name,
            product.price,
            product.category or "",
            product.subcategory or "",
            product.url,
            product.description or "",
            product.original_price or "",
            product.discount or "",
            product.sku or "",
            product.stock_status or "",
            product.brand or "",
        ]
