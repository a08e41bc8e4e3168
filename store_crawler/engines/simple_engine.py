from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import List, Optional, Protocol, Set
from urllib.parse import urlparse

from .aggregator import Aggregator, failed_result
from .base import CrawlEngine, CrawlState, LoggingProgress, ProgressListener, ScrapeResult, StopReason
from .frontier import Frontier
from ..adapters.base import ContactInfo, ParseResult, Product, StoreInfo
from ..adapters.registry import AdapterRegistry
from ..config import Auth, ScrapeOptions
from ..errors import FetchError, InvalidSeedUrl, ScopeError
from ..utils.http import Fetcher, create_session
from ..utils.parsing import classify_url, is_product_like, normalize_url

logger = logging.getLogger(__name__)

_SKIP_EXTENSIONS = (
    ".pdf", ".jpg", ".jpeg", ".png", ".gif", ".svg", ".webp", ".ico",
    ".css", ".js", ".zip", ".gz", ".mp4", ".mp3", ".woff", ".woff2",
)

# Fewer products than this after the first pass triggers the catalog fallbacks.
_FALLBACK_MIN_PRODUCTS = 5


class PageFetcher(Protocol):
    def in_scope(self, url: str) -> bool:
        ...

    async def fetch(self, url: str, auth: Optional[Auth] = None) -> str:
        ...


@dataclass
class _PageOutcome:
    url: str
    depth: int
    parsed: Optional[ParseResult] = None
    error: Optional[str] = None
    out_of_scope: bool = False
    # The body arrived but could not be parsed.
    fetched: bool = False


def resolve_seed(url: str) -> str:
    """
    Turn user input into a normalized seed URL. A missing scheme defaults to
    https; anything else that is not http(s) with a hostname is rejected.
    """
    raw = (url or "").strip()
    if not raw:
        raise InvalidSeedUrl(url, "empty")
    if "://" not in raw:
        raw = f"https://{raw}"
    raw = raw.rstrip("/")
    try:
        parsed = urlparse(raw)
        host = parsed.hostname
    except ValueError as exc:
        raise InvalidSeedUrl(url, str(exc)) from exc
    if parsed.scheme not in ("http", "https"):
        raise InvalidSeedUrl(url, f"unsupported scheme {parsed.scheme!r}")
    if not host or " " in host:
        raise InvalidSeedUrl(url, "missing hostname")
    return normalize_url(raw)


class SimpleCrawlEngine(CrawlEngine):
    """
    A bounded async store crawler.
    - Engine owns HTTP, scoping and the frontier.
    - Adapters own page parsing.
    - Workers only fetch and extract; this coroutine is the single owner of
      the frontier and the aggregator and applies worker results in turn.
    """
    def __init__(
        self,
        seed_url: str,
        options: ScrapeOptions | None = None,
        *,
        registry: AdapterRegistry | None = None,
        fetcher: PageFetcher | None = None,
        progress: ProgressListener | None = None,
        cancel_event: asyncio.Event | None = None,
        deadline: float | None = None,
    ) -> None:
        self.seed_url = seed_url
        self.options = options or ScrapeOptions()
        self.registry = registry or AdapterRegistry()
        self.fetcher = fetcher
        self.progress = progress or LoggingProgress()
        self.cancel_event = cancel_event
        self.deadline = deadline
        self.state = CrawlState.IDLE

    async def crawl(self) -> ScrapeResult:
        opts = self.options
        opts.validate()
        try:
            seed = resolve_seed(self.seed_url)
        except InvalidSeedUrl as exc:
            return self._fail(self.seed_url, str(exc))

        self.state = CrawlState.RUNNING
        logger.info("Starting crawl of %s (depth<=%s, pages<=%s, products<=%s)",
                    seed, opts.max_depth, opts.max_pages_to_visit, opts.max_products)

        session = None
        fetcher = self.fetcher
        if fetcher is None:
            session = create_session()
            fetcher = Fetcher(
                session,
                urlparse(seed).hostname or "",
                include_subdomains=opts.include_subdomains,
                timeout=opts.request_timeout,
                user_agent=opts.user_agent,
            )
        try:
            result = await self._run(seed, fetcher)
        finally:
            if session is not None:
                await session.close()

        self.state = result.state
        if result.success:
            self._notify("on_complete", result)
        else:
            self._notify("on_error", result.error or "crawl failed")
        return result

    # ---- Coordinator ------------------------------------------------------

    async def _run(self, seed: str, fetcher: PageFetcher) -> ScrapeResult:
        opts = self.options
        max_depth = opts.max_depth if opts.recursive else 0
        frontier = Frontier(max_depth=max_depth, max_pages=opts.max_pages_to_visit)
        aggregator = Aggregator(opts.max_products)
        frontier.enqueue(seed, 0)

        store_info: Optional[StoreInfo] = None
        contact_info: Optional[ContactInfo] = None
        cancelled = False
        tasks: Set[asyncio.Task[_PageOutcome]] = set()
        loop = asyncio.get_running_loop()
        stop_at = loop.time() + self.deadline if self.deadline is not None else None
        cancel_waiter = asyncio.ensure_future(self.cancel_event.wait()) if self.cancel_event else None
        fallback_ready = opts.recursive and bool(opts.fallback_paths)

        try:
            while True:
                while len(tasks) < opts.max_concurrency:
                    item = frontier.next()
                    if item is None:
                        break
                    tasks.add(asyncio.create_task(self._visit(fetcher, *item)))
                if not tasks:
                    if fallback_ready and not frontier.closed and len(aggregator) < _FALLBACK_MIN_PRODUCTS:
                        fallback_ready = False
                        if self._enqueue_fallbacks(frontier, seed, len(aggregator)):
                            continue
                    break

                timeout = None
                if stop_at is not None:
                    timeout = max(stop_at - loop.time(), 0)
                waitables: Set[asyncio.Future] = set(tasks)
                if cancel_waiter is not None:
                    waitables.add(cancel_waiter)
                done, _ = await asyncio.wait(waitables, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)

                for task in done:
                    if task is cancel_waiter:
                        continue
                    tasks.discard(task)
                    outcome = task.result()
                    frontier.mark_visited(outcome.url)

                    if outcome.parsed is None:
                        if outcome.out_of_scope:
                            continue
                        if outcome.url == seed and not outcome.fetched:
                            return failed_result(seed, outcome.error or f"Could not fetch {seed}")
                        aggregator.record_failure()
                        continue

                    parsed = outcome.parsed
                    if outcome.url == seed:
                        store_info = parsed.store_info
                        contact_info = parsed.contact_info
                    added = aggregator.add(parsed.products)
                    logger.debug("%s: %s products (%s new), %s links",
                                 outcome.url, len(parsed.products), added, len(parsed.next_links))
                    if aggregator.full and not frontier.closed:
                        logger.info("Product limit of %s reached; stopping crawl", opts.max_products)
                        frontier.close()
                        if frontier.drain():
                            frontier.limit_reached = True
                    self._follow(frontier, fetcher, parsed.next_links, outcome.depth + 1)
                    self._notify("on_progress", frontier.visited_count, len(aggregator))

                if (cancel_waiter is not None and cancel_waiter.done()) or (
                    stop_at is not None and loop.time() >= stop_at
                ):
                    cancelled = True
                    break
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()
            # Abandon in-flight fetches; their results are never applied.
            for task in tasks:
                task.cancel()
            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)

        if cancelled:
            logger.info("Crawl of %s cancelled with %s pages in flight", seed, frontier.in_flight_count)
            stop = StopReason.CANCELLED
        elif frontier.limit_reached or aggregator.dropped:
            stop = StopReason.LIMIT
        else:
            stop = StopReason.EXHAUSTED

        return aggregator.build(
            seed_url=seed,
            stop=stop,
            visited=frontier.visited_count,
            pending=frontier.pending_count + frontier.in_flight_count,
            store_info=store_info,
            contact_info=contact_info,
        )

    def _follow(self, frontier: Frontier, fetcher: PageFetcher, links: List[str], depth: int) -> None:
        if not self.options.recursive or depth > frontier.max_depth:
            return
        for link in links:
            if not fetcher.in_scope(link):
                continue
            if urlparse(link).path.lower().endswith(_SKIP_EXTENSIONS):
                continue
            if not self.options.include_product_pages and is_product_like(link):
                continue
            frontier.enqueue(link, depth)

    def _enqueue_fallbacks(self, frontier: Frontier, seed: str, found: int) -> int:
        """Queue the usual catalog paths of the seed origin at depth 0; returns how many were queued."""
        origin = urlparse(seed)
        queued = 0
        for path in self.options.fallback_paths:
            # Fallbacks only use spare page budget; they never flag the page limit.
            if len(frontier) >= frontier.max_pages:
                break
            url = normalize_url(f"{origin.scheme}://{origin.netloc}/{path.strip('/')}")
            if frontier.enqueue(url, 0):
                queued += 1
        if queued:
            logger.info("Only %s products found; trying %s catalog paths", found, queued)
        return queued

    # ---- Worker -----------------------------------------------------------

    async def _visit(self, fetcher: PageFetcher, url: str, depth: int) -> _PageOutcome:
        try:
            html = await fetcher.fetch(url, self.options.auth)
        except ScopeError as exc:
            logger.debug("Skipping %s: %s", url, exc)
            return _PageOutcome(url, depth, error=str(exc), out_of_scope=True)
        except FetchError as exc:
            logger.warning("Skipping page %s: %s", url, exc)
            return _PageOutcome(url, depth, error=str(exc))
        except Exception as exc:
            logger.warning("Unexpected error fetching %s: %r", url, exc)
            return _PageOutcome(url, depth, error=f"Could not fetch {url}: {exc!r}")

        adapter = None
        try:
            adapter = self.registry.match(url)
            parsed = adapter.parse(url, html)
            parsed.products = [self._classify(p) for p in parsed.products]
        except Exception as exc:
            logger.warning("Adapter %s failed on %s: %r", getattr(adapter, "name", adapter), url, exc)
            return _PageOutcome(url, depth, error=f"Could not parse {url}: {exc!r}", fetched=True)
        return _PageOutcome(url, depth, parsed=parsed)

    def _classify(self, product: Product) -> Product:
        if not self.options.detect_categories:
            return replace(product, subcategory=None)
        category, subcategory = classify_url(product.url)
        if category is None:
            # Keep whatever the page itself said about the category.
            return replace(product, subcategory=None)
        return replace(product, category=category, subcategory=subcategory)

    # ---- Notifications ----------------------------------------------------

    def _fail(self, seed: str, message: str) -> ScrapeResult:
        result = failed_result(seed, message)
        self.state = result.state
        self._notify("on_error", message)
        return result

    def _notify(self, event: str, *args: object) -> None:
        try:
            getattr(self.progress, event)(*args)
        except Exception as exc:
            logger.warning("Progress listener %s failed: %r", event, exc)


def run_crawl(
    seed_url: str,
    options: ScrapeOptions | None = None,
    **kwargs,
) -> ScrapeResult:
    """Synchronous entry point: run one crawl on a fresh event loop."""
    return asyncio.run(SimpleCrawlEngine(seed_url, options, **kwargs).crawl())
