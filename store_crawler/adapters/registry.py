from __future__ import annotations

import logging
from typing import Iterable, List
from importlib import metadata

from .base import SiteAdapter
from .generic import GenericAdapter
from .woocommerce import WooCommerceAdapter
from ..utils.loader import load_symbol

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """
    Registry for available adapters.
    Supports built-ins, config-defined dotted classes, and entry-point plugins.
    """
    def __init__(self) -> None:
        self._adapters: List[SiteAdapter] = [GenericAdapter(), WooCommerceAdapter()]

    # ---- Introspection / Management ----

    def register(self, adapter: SiteAdapter) -> None:
        # Later registrations win over earlier specific adapters.
        self._adapters.insert(1, adapter)

    @property
    def adapters(self) -> List[SiteAdapter]:
        return list(self._adapters)

    def match(self, url: str) -> SiteAdapter:
        # Prefer specific adapters over generic fallback (kept first in list).
        for a in self._adapters[1:]:
            if a.matches(url):
                return a
        return self._adapters[0]  # generic

    # ---- Discovery ----

    def discover_entry_points(self, group: str = "store_crawler.adapters") -> int:
        """
        Discover third-party adapters installed as entry points.
        Returns count of newly registered adapters.
        """
        added = 0
        for ep in metadata.entry_points(group=group):
            try:
                adapter_cls = ep.load()
                self.register(adapter_cls())
            except Exception as exc:
                # Plugins are optional; a broken one must not stop the crawl.
                logger.warning("Failed to load adapter plugin %s: %r", ep.name, exc)
                continue
            added += 1
        return added

    def register_dotted(self, paths: Iterable[str]) -> int:
        """
        Register adapters given as dotted class paths (config or CLI).
        A path that fails to import or construct is logged and skipped.
        """
        added = 0
        for dotted in paths:
            try:
                adapter_cls = load_symbol(dotted)
                self.register(adapter_cls())
            except Exception as exc:
                logger.warning("Failed to load adapter %s: %r", dotted, exc)
                continue
            added += 1
        return added
