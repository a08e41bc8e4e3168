from __future__ import annotations

import json
from pathlib import Path

from ..engines.base import ScrapeResult


class JSONExporter:
    """Writes the whole result (products, store and contact info) as one JSON document."""

    def export(self, result: ScrapeResult, path: str) -> None:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(result.to_dict(), f, indent=2, ensure_ascii=False)
