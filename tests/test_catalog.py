"""Tests for catalog browsing helpers."""

import unittest

from store_crawler.adapters.base import Product
from store_crawler.catalog import catalog_stats, extract_categories, filter_products, paginate


def make_product(pid, name, category=None, **kwargs):
    return Product(id=pid, name=name, price="1 €", url=f"https://s.test/{pid}", category=category, **kwargs)


PRODUCTS = [
    make_product("1", "Garden rake", "Tools", sku="RK-1"),
    make_product("2", "Tomato seeds", "Seeds", description="Cherry tomatoes", discount="-10%"),
    make_product("3", "Spade", "Tools", stock_status="Out of stock"),
    make_product("4", "Mystery box"),
]


class TestCatalog(unittest.TestCase):

    def test_categories_sorted_unique(self):
        self.assertEqual(extract_categories(PRODUCTS), ["Seeds", "Tools"])

    def test_search_is_case_insensitive_across_fields(self):
        self.assertEqual([p.id for p in filter_products(PRODUCTS, query="CHERRY")], ["2"])
        self.assertEqual([p.id for p in filter_products(PRODUCTS, query="rk-1")], ["1"])
        self.assertEqual([p.id for p in filter_products(PRODUCTS, query="tools")], ["1", "3"])

    def test_category_filter(self):
        self.assertEqual([p.id for p in filter_products(PRODUCTS, category="Tools", query="spade")], ["3"])
        self.assertEqual(len(filter_products(PRODUCTS)), 4)

    def test_paginate(self):
        items = list(range(23))
        page = paginate(items, page=3, per_page=10)
        self.assertEqual(page.items, [20, 21, 22])
        self.assertEqual(page.pages, 3)
        self.assertEqual((page.first_index, page.last_index), (21, 23))

    def test_paginate_clamps_page(self):
        self.assertEqual(paginate(list(range(5)), page=9, per_page=2).page, 3)
        empty = paginate([], page=2)
        self.assertEqual((empty.page, empty.pages, empty.items), (1, 1, []))
        with self.assertRaises(ValueError):
            paginate([1], per_page=0)

    def test_stats(self):
        self.assertEqual(
            catalog_stats(PRODUCTS),
            {"products": 4, "categories": 2, "discounted": 1, "in_stock": 3},
        )


if __name__ == "__main__":
    unittest.main()
