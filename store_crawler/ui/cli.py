from __future__ import annotations

import argparse
import asyncio
import logging
from typing import List

from ..adapters.registry import AdapterRegistry
from ..config import AppConfig, Auth, ScrapeOptions
from ..engines.base import ScrapeResult
from ..engines.simple_engine import SimpleCrawlEngine
from ..errors import ConfigError
from ..export.base import Exporter
from ..storage import JSONFileResultStore, key_for
from ..utils.loader import load_symbol
from ..utils.logging import setup_logging
from ..utils.scheduler import ScheduledTask

logger = logging.getLogger(__name__)

_EXPORTERS = {
    "json": "store_crawler.export.json_exporter:JSONExporter",
    "csv": "store_crawler.export.csv_exporter:CSVExporter",
}


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="store-crawler", description="Online store product crawler")
    p.add_argument("url", nargs="?", help="Store URL to crawl")
    p.add_argument("--config", type=str, help="Path to scrape options JSON", default=None)
    p.add_argument("--max-depth", type=int, default=None, help="Max link depth from the store URL")
    p.add_argument("--max-pages", type=int, default=None, help="Max number of pages to fetch")
    p.add_argument("--max-products", type=int, default=None, help="Max number of products to keep")
    p.add_argument("--max-concurrency", type=int, default=None, help="Number of concurrent fetches")
    p.add_argument("--no-recursive", action="store_true", help="Only crawl the store URL itself")
    p.add_argument("--skip-product-pages", action="store_true", help="Do not fetch individual product pages")
    p.add_argument("--include-subdomains", action="store_true", help="Follow links to subdomains of the store")
    p.add_argument("--no-categories", action="store_true", help="Disable URL-based category detection")
    p.add_argument("--no-fallback", action="store_true",
                   help="Do not try common catalog paths when the store URL yields few products")
    p.add_argument("--username", type=str, default=None, help="HTTP basic auth username")
    p.add_argument("--password", type=str, default=None, help="HTTP basic auth password")
    p.add_argument("--format", choices=sorted(_EXPORTERS), default=None, help="Output format (default json)")
    p.add_argument("--exporter", type=str, default=None, help="Exporter dotted path (module:ClassName)")
    p.add_argument("--extra-adapters", type=str, default=None,
                   help="Comma-separated dotted paths for additional adapters")
    p.add_argument("--output", type=str, default=None, help="Output file path")
    p.add_argument("--save", action="store_true", help="Also keep the result in the result store")
    p.add_argument("--every", type=float, default=None, metavar="MINUTES",
                   help="Re-run the crawl every MINUTES until interrupted")
    p.add_argument("--timeout", type=float, default=None, metavar="SECONDS",
                   help="Stop the crawl after SECONDS and keep what was found")
    p.add_argument("--log-level", type=str, default=None, help="Log level (DEBUG, INFO, WARNING, ERROR)")
    p.add_argument("--serve", action="store_true", help="Run REST API server instead of CLI crawl")
    p.add_argument("--host", type=str, default="127.0.0.1", help="API host (when --serve)")
    p.add_argument("--port", type=int, default=8000, help="API port (when --serve)")
    return p


def _load_options(args: argparse.Namespace) -> ScrapeOptions:
    if args.config:
        opts = ScrapeOptions.from_file(args.config)
    else:
        opts = ScrapeOptions.from_env()

    if args.max_depth is not None:
        opts.max_depth = args.max_depth
    if args.max_pages is not None:
        opts.max_pages_to_visit = args.max_pages
    if args.max_products is not None:
        opts.max_products = args.max_products
    if args.max_concurrency is not None:
        opts.max_concurrency = args.max_concurrency
    if args.no_recursive:
        opts.recursive = False
    if args.skip_product_pages:
        opts.include_product_pages = False
    if args.include_subdomains:
        opts.include_subdomains = True
    if args.no_categories:
        opts.detect_categories = False
    if args.no_fallback:
        opts.fallback_paths = []
    if args.username:
        opts.auth = Auth(args.username, args.password or "")

    opts.validate()
    return opts


def _load_app_config(args: argparse.Namespace) -> AppConfig:
    cfg = AppConfig.from_env()
    if args.format:
        cfg.exporter = _EXPORTERS[args.format]
        if not args.output:
            cfg.output_path = f"output/products.{args.format}"
    if args.exporter:
        cfg.exporter = args.exporter
    if args.extra_adapters:
        cfg.extra_adapters = [a.strip() for a in args.extra_adapters.split(",") if a.strip()]
    if args.output:
        cfg.output_path = args.output
    cfg.validate()
    return cfg


def run_server(host: str, port: int) -> None:
    import uvicorn

    uvicorn.run("store_crawler.apis.app:app", host=host, port=port)


def run_cli(argv: List[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    if args.serve:
        run_server(args.host, args.port)
        return 0

    if not args.url:
        parser.error("a store URL is required unless --serve is given")

    try:
        opts = _load_options(args)
        cfg = _load_app_config(args)
        exporter: Exporter = load_symbol(cfg.exporter)()
    except ConfigError as exc:
        logger.error("%s", exc)
        return 2

    registry = AdapterRegistry()
    registry.discover_entry_points()
    # Allow runtime registration of additional adapters
    registry.register_dotted(cfg.extra_adapters)

    store = JSONFileResultStore(cfg.store_dir) if args.save else None

    async def _crawl_once() -> ScrapeResult:
        engine = SimpleCrawlEngine(args.url, opts, registry=registry, deadline=args.timeout)
        result = await engine.crawl()
        if result.success:
            exporter.export(result, cfg.output_path)
            if store is not None:
                store.save(key_for(result.seed_url or args.url), result)
            logger.info("Visited: %s | Products: %s | Output: %s",
                        result.pages_visited, len(result.products), cfg.output_path)
        return result

    if args.every:
        return _run_scheduled(_crawl_once, args.every * 60)

    result = asyncio.run(_crawl_once())
    return 0 if result.success else 1


def _run_scheduled(job, interval: float) -> int:
    async def _forever() -> None:
        task = ScheduledTask(job, interval, name="store crawl")
        task.start()
        try:
            await task.wait()
        finally:
            await task.stop()

    try:
        asyncio.run(_forever())
    except KeyboardInterrupt:
        logger.info("Interrupted; schedule cleared")
    return 0
