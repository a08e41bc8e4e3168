from __future__ import annotations

from typing import Optional


class CrawlerError(Exception):
    """Base class for every error raised by the crawler."""


class ConfigError(CrawlerError, ValueError):
    """Invalid scrape options or application settings."""


class InvalidSeedUrl(CrawlerError):
    """The seed URL cannot be parsed into an http(s) URL with a hostname."""

    def __init__(self, url: str, reason: str = "") -> None:
        self.url = url
        self.reason = reason
        msg = f"Invalid URL: {url!r}. It must look like 'https://example.com'"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)


class FetchError(CrawlerError):
    """A single page could not be retrieved."""

    def __init__(self, url: str, message: str) -> None:
        self.url = url
        super().__init__(message)


class NetworkError(FetchError):
    """Connection-level failure (DNS, refused connection, timeout, ...)."""


class HttpError(FetchError):
    """The server answered with a non-success status code."""

    def __init__(self, url: str, status: int, reason: Optional[str] = None) -> None:
        self.status = status
        self.reason = reason
        super().__init__(url, f"HTTP {status} for {url}" + (f" ({reason})" if reason else ""))


class ScopeError(CrawlerError):
    """The URL falls outside the seed's domain scope and was never requested."""

    def __init__(self, url: str, seed_host: str) -> None:
        self.url = url
        self.seed_host = seed_host
        super().__init__(f"{url} is outside the scope of {seed_host}")
