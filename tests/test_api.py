"""Tests for the REST API over stored crawl results."""

import csv
import dataclasses
import io
import unittest
from unittest import mock

from fastapi.testclient import TestClient

from store_crawler.adapters.base import Product, StoreInfo
from store_crawler.adapters.registry import AdapterRegistry
from store_crawler.apis.app import app, get_registry, get_store
from store_crawler.engines.base import ScrapeResult
from store_crawler.storage import MemoryResultStore


def catalog():
    products = [
        Product(id=f"prod-{i}", name=f"Rake {i}", price=f"{i} €", url=f"https://s.test/product/rake-{i}",
                category="garden", subcategory="rakes")
        for i in range(12)
    ]
    products.append(Product(id="prod-hoe", name="Hoe", price="7 €", url="https://s.test/product/hoe",
                            category="tools", discount="-10%", stock_status="Out of stock"))
    return ScrapeResult(
        success=True,
        last_updated="2026-10-18T10:00:00+00:00",
        products=products,
        store_info=StoreInfo(name="S", url="https://s.test/"),
        total_products_estimate=13,
        seed_url="https://s.test/",
        pages_visited=4,
    )


class FakeEngine:
    """Stands in for the crawl engine so no network is touched."""

    calls = []

    def __init__(self, seed_url, options, registry=None):
        FakeEngine.calls.append((seed_url, options))

    async def crawl(self):
        return catalog()


class EchoSeedEngine(FakeEngine):
    """Returns the canned catalog under whatever seed it was given."""

    def __init__(self, seed_url, options, registry=None):
        super().__init__(seed_url, options, registry)
        self.seed_url = seed_url

    async def crawl(self):
        return dataclasses.replace(catalog(), seed_url=self.seed_url)


class TestAPI(unittest.TestCase):

    def setUp(self):
        self.store = MemoryResultStore()
        self.store.save("s.test", catalog())
        app.dependency_overrides[get_store] = lambda: self.store
        app.dependency_overrides[get_registry] = lambda: AdapterRegistry()
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()

    def test_health(self):
        self.assertEqual(self.client.get("/health").json(), {"status": "ok"})

    def test_list_and_summary(self):
        self.assertEqual(self.client.get("/results").json(), ["s.test"])
        data = self.client.get("/results/s.test").json()
        self.assertNotIn("products", data)
        self.assertEqual(data["stats"], {"products": 13, "categories": 2, "discounted": 1, "in_stock": 12})

    def test_missing_result(self):
        self.assertEqual(self.client.get("/results/nope.test").status_code, 404)

    def test_categories(self):
        self.assertEqual(self.client.get("/results/s.test/categories").json(), ["garden", "tools"])

    def test_products_paging(self):
        page = self.client.get("/results/s.test/products", params={"page": 2, "per_page": 5}).json()
        self.assertEqual(page["total"], 13)
        self.assertEqual(page["pages"], 3)
        self.assertEqual([p["id"] for p in page["items"]], [f"prod-{i}" for i in range(5, 10)])

    def test_products_filters(self):
        page = self.client.get("/results/s.test/products", params={"category": "tools"}).json()
        self.assertEqual([p["id"] for p in page["items"]], ["prod-hoe"])
        page = self.client.get("/results/s.test/products", params={"q": "RAKE 1"}).json()
        self.assertEqual({p["id"] for p in page["items"]}, {"prod-1", "prod-10", "prod-11"})

    def test_products_rejects_bad_paging(self):
        self.assertEqual(self.client.get("/results/s.test/products", params={"page": 0}).status_code, 422)
        self.assertEqual(self.client.get("/results/s.test/products", params={"per_page": 500}).status_code, 422)

    def test_single_product(self):
        self.assertEqual(self.client.get("/results/s.test/products/prod-hoe").json()["discount"], "-10%")
        self.assertEqual(self.client.get("/results/s.test/products/prod-zzz").status_code, 404)

    def test_export_csv(self):
        resp = self.client.get("/results/s.test/export.csv")
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.headers["content-type"].startswith("text/csv"))
        self.assertIn("attachment", resp.headers["content-disposition"])
        rows = list(csv.reader(io.StringIO(resp.text)))
        self.assertEqual(rows[0][:3], ["ID", "Name", "Price"])
        self.assertEqual(len(rows), 14)

    def test_delete(self):
        self.assertEqual(self.client.delete("/results/s.test").json(), {"deleted": True})
        self.assertEqual(self.client.get("/results").json(), [])
        self.assertEqual(self.client.delete("/results/s.test").status_code, 404)

    def test_crawl_rejects_invalid_url(self):
        resp = self.client.post("/crawl", json={"url": "ftp://x"})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("Invalid URL", resp.json()["detail"])

    def test_crawl_rejects_invalid_options(self):
        resp = self.client.post("/crawl", json={"url": "https://s.test", "max_depth": -1})
        self.assertEqual(resp.status_code, 422)

    def test_crawl_saves_result(self):
        self.store.delete("s.test")
        FakeEngine.calls = []
        with mock.patch("store_crawler.apis.app.SimpleCrawlEngine", FakeEngine):
            resp = self.client.post("/crawl", json={
                "url": "https://www.s.test",
                "max_depth": 1,
                "auth": {"username": "shop", "password": "secret"},
            })
        self.assertEqual(resp.status_code, 200)
        summary = resp.json()
        self.assertEqual(summary["key"], "s.test")
        self.assertEqual(summary["products"], 13)
        self.assertEqual(self.store.keys(), ["s.test"])
        _, options = FakeEngine.calls[0]
        self.assertEqual(options.max_depth, 1)
        self.assertEqual(options.auth.username, "shop")


    def test_crawl_of_internationalized_store_is_saved(self):
        with mock.patch("store_crawler.apis.app.SimpleCrawlEngine", EchoSeedEngine):
            resp = self.client.post("/crawl", json={"url": "https://jardinería.es"})
        self.assertEqual(resp.status_code, 200)
        key = resp.json()["key"]
        self.assertTrue(key.startswith("xn--"))
        self.assertIn(key, self.store.keys())
        self.assertEqual(self.client.get(f"/results/{key}/categories").json(), ["garden", "tools"])

    def test_crawl_accepts_fallback_paths(self):
        FakeEngine.calls = []
        with mock.patch("store_crawler.apis.app.SimpleCrawlEngine", FakeEngine):
            resp = self.client.post("/crawl", json={"url": "https://s.test", "fallback_paths": []})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(FakeEngine.calls[0][1].fallback_paths, [])


if __name__ == "__main__":
    unittest.main()
