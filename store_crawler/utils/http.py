from __future__ import annotations

import asyncio
import logging
from typing import Optional
from urllib.parse import urlparse

import aiohttp
from aiohttp import BasicAuth, ClientSession, ClientTimeout

from ..config import Auth
from ..errors import HttpError, NetworkError, ScopeError

logger = logging.getLogger(__name__)


def in_scope(url: str, seed_host: str, include_subdomains: bool = False) -> bool:
    """
    A URL is in scope when its hostname equals the seed hostname, or, with
    include_subdomains, is a subdomain of it.
    """
    host = (urlparse(url).hostname or "").lower()
    seed = seed_host.lower()
    if not host:
        return False
    if host == seed:
        return True
    return include_subdomains and host.endswith("." + seed)


class Fetcher:
    """
    Retrieves page bodies for a single crawl. Scope is checked before any
    network call. Retries are the caller's business.
    """

    def __init__(
        self,
        session: ClientSession,
        seed_host: str,
        *,
        include_subdomains: bool = False,
        timeout: float = 15.0,
        user_agent: Optional[str] = None,
    ) -> None:
        self.session = session
        self.seed_host = seed_host.lower()
        self.include_subdomains = include_subdomains
        self.timeout = timeout
        self.user_agent = user_agent
        self.requests = 0

    def in_scope(self, url: str) -> bool:
        return in_scope(url, self.seed_host, self.include_subdomains)

    async def fetch(self, url: str, auth: Optional[Auth] = None) -> str:
        if not self.in_scope(url):
            raise ScopeError(url, self.seed_host)

        headers = {}
        if self.user_agent:
            headers["User-Agent"] = self.user_agent
        basic = BasicAuth(auth.username, auth.password) if auth else None

        self.requests += 1
        try:
            async with self.session.get(
                url, headers=headers, auth=basic, timeout=ClientTimeout(total=self.timeout)
            ) as resp:
                if resp.status >= 400:
                    raise HttpError(url, resp.status, resp.reason)
                # Undecodable bytes must not cost the whole page.
                return await resp.text(errors="replace")
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.debug("fetch failed for %s: %r", url, exc)
            raise NetworkError(url, f"Could not fetch {url}: {exc!r}") from exc


def create_session() -> ClientSession:
    """
    Create a shared aiohttp ClientSession.
    """
    # Note: caller is responsible for closing the session (await session.close()).
    connector = aiohttp.TCPConnector(limit=0)  # unlimited; concurrency managed by the worker pool
    return aiohttp.ClientSession(connector=connector)
