from __future__ import annotations

from typing import Protocol

from ..engines.base import ScrapeResult


class Exporter(Protocol):
    def export(self, result: ScrapeResult, path: str) -> None:
        ...
