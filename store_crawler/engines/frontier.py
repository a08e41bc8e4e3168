from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Dict, Optional, Set, Tuple

logger = logging.getLogger(__name__)


class Frontier:
    """
    Tracks every URL of a crawl in exactly one of three states: pending,
    in flight or visited. Pending URLs are handed out breadth-first, in
    insertion order within a depth.

    Not thread-safe: the engine mutates it only from the event loop.
    """

    def __init__(self, max_depth: int, max_pages: int) -> None:
        self.max_depth = max_depth
        self.max_pages = max_pages
        self._levels: Dict[int, Deque[str]] = {}
        self._pending: Dict[str, int] = {}
        self._in_flight: Set[str] = set()
        self._visited: Set[str] = set()
        self.limit_reached = False
        self.closed = False

    def __len__(self) -> int:
        return len(self._pending) + len(self._in_flight) + len(self._visited)

    def __contains__(self, url: str) -> bool:
        return url in self._pending or url in self._in_flight or url in self._visited

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    @property
    def visited_count(self) -> int:
        return len(self._visited)

    @property
    def exhausted(self) -> bool:
        return not self._pending and not self._in_flight

    def enqueue(self, url: str, depth: int) -> bool:
        """Add a URL at the given depth. Returns False when it is rejected."""
        if url in self:
            return False
        if depth > self.max_depth:
            return False
        if self.closed:
            self.limit_reached = True
            return False
        if len(self) >= self.max_pages:
            if not self.limit_reached:
                logger.info("Page limit of %s reached; no more pages will be queued", self.max_pages)
            self.limit_reached = True
            return False
        self._pending[url] = depth
        self._levels.setdefault(depth, deque()).append(url)
        return True

    def next(self) -> Optional[Tuple[str, int]]:
        """Pop the shallowest pending URL and move it in flight."""
        if not self._pending:
            return None
        depth = min(d for d, q in self._levels.items() if q)
        url = self._levels[depth].popleft()
        del self._pending[url]
        self._in_flight.add(url)
        return url, depth

    def mark_visited(self, url: str) -> None:
        self._in_flight.discard(url)
        self._visited.add(url)

    def close(self) -> None:
        """Forced termination: in-flight work may finish, nothing new is queued."""
        self.closed = True

    def drain(self) -> int:
        """Drop every pending URL; returns how many were dropped."""
        dropped = len(self._pending)
        self._pending.clear()
        self._levels.clear()
        return dropped
