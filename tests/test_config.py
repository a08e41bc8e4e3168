"""Tests for scrape options loading and validation."""

import json
import os
import tempfile
import unittest
from unittest import mock

from store_crawler.config import DEFAULT_FALLBACK_PATHS, Auth, ScrapeOptions, migrate_config
from store_crawler.errors import ConfigError
from store_crawler.version import CONFIG_SCHEMA_VERSION


class TestScrapeOptions(unittest.TestCase):

    def test_defaults(self):
        opts = ScrapeOptions()
        self.assertTrue(opts.recursive)
        self.assertEqual(opts.max_depth, 2)
        self.assertEqual(opts.max_products, 15000)
        self.assertEqual(opts.max_pages_to_visit, 500)
        self.assertFalse(opts.include_subdomains)
        self.assertIsNone(opts.auth)
        opts.validate()

    def test_from_env(self):
        env = {
            "STORE_CRAWLER_MAX_DEPTH": "1",
            "STORE_CRAWLER_RECURSIVE": "no",
            "STORE_CRAWLER_INCLUDE_SUBDOMAINS": "1",
            "STORE_CRAWLER_AUTH_USERNAME": "shop",
            "STORE_CRAWLER_AUTH_PASSWORD": "secret",
        }
        with mock.patch.dict(os.environ, env):
            opts = ScrapeOptions.from_env()
        self.assertEqual(opts.max_depth, 1)
        self.assertFalse(opts.recursive)
        self.assertTrue(opts.include_subdomains)
        self.assertEqual(opts.auth, Auth("shop", "secret"))

    def test_from_env_rejects_garbage(self):
        with mock.patch.dict(os.environ, {"STORE_CRAWLER_RECURSIVE": "maybe"}):
            with self.assertRaises(ConfigError):
                ScrapeOptions.from_env()

    def test_from_file_migrates_v1(self):
        v1 = {"start_urls": ["https://store.test"], "max_depth": 3, "retries": 2}
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "options.json")
            with open(path, "w", encoding="utf-8") as f:
                json.dump(v1, f)
            opts = ScrapeOptions.from_file(path)
        self.assertEqual(opts.max_depth, 3)
        self.assertEqual(opts.schema_version, CONFIG_SCHEMA_VERSION)

    def test_from_dict_auth_and_unknown_keys(self):
        opts = ScrapeOptions.from_dict({"auth": {"username": "u", "password": "p"}})
        self.assertEqual(opts.auth.username, "u")
        with self.assertRaises(ConfigError):
            ScrapeOptions.from_dict({"schema_version": 2, "max_deph": 3})

    def test_validate(self):
        for field, value in (("max_depth", -1), ("max_pages_to_visit", 0),
                             ("max_products", 0), ("max_concurrency", 0)):
            with self.subTest(field=field):
                with self.assertRaises(ConfigError):
                    ScrapeOptions(**{field: value}).validate()

    def test_mistyped_values_are_config_errors(self):
        for data in ({"max_depth": "3"}, {"recursive": "yes"}, {"max_products": True},
                     {"request_timeout": "15"}, {"auth": "u:p"}, {"fallback_paths": "/shop/"}):
            with self.subTest(data=data):
                with self.assertRaises(ConfigError):
                    ScrapeOptions.from_dict(dict(data, schema_version=2)).validate()

    def test_fallback_paths(self):
        self.assertEqual(ScrapeOptions().fallback_paths, list(DEFAULT_FALLBACK_PATHS))
        self.assertIn("/todos-los-productos/", DEFAULT_FALLBACK_PATHS)
        with mock.patch.dict(os.environ, {"STORE_CRAWLER_FALLBACK_PATHS": "/shop/, /catalogo/"}):
            self.assertEqual(ScrapeOptions.from_env().fallback_paths, ["/shop/", "/catalogo/"])
        with mock.patch.dict(os.environ, {"STORE_CRAWLER_FALLBACK_PATHS": ""}):
            self.assertEqual(ScrapeOptions.from_env().fallback_paths, [])

    def test_password_never_shown(self):
        opts = ScrapeOptions(auth=Auth("u", "hunter2"))
        self.assertNotIn("hunter2", repr(opts))
        self.assertEqual(opts.to_dict()["auth"]["password"], "***")

    def test_migrate_is_idempotent(self):
        raw = migrate_config({"max_depth": 1})
        self.assertEqual(migrate_config(dict(raw)), raw)


if __name__ == "__main__":
    unittest.main()
