from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Protocol
from urllib.parse import urlparse

from .engines.base import ScrapeResult

logger = logging.getLogger(__name__)

_KEY_RE = re.compile(r"^[A-Za-z0-9._-]{1,128}$")


def key_for(seed_url: str) -> str:
    """Storage key for a crawl: the seed hostname, without a leading www."""
    host = (urlparse(seed_url).hostname or seed_url).lower()
    if host.startswith("www."):
        host = host[4:]
    try:
        # Internationalized hosts are stored under their ASCII (punycode) form.
        return host.encode("idna").decode("ascii")
    except UnicodeError:
        return re.sub(r"[^a-z0-9._-]", "_", host)[:128]


class ResultStore(Protocol):
    """Keeps completed crawl results under a simple key."""

    def save(self, key: str, result: ScrapeResult) -> None:
        ...

    def load(self, key: str) -> Optional[ScrapeResult]:
        ...

    def delete(self, key: str) -> bool:
        ...

    def keys(self) -> List[str]:
        ...


class MemoryResultStore:
    def __init__(self) -> None:
        self._results: Dict[str, ScrapeResult] = {}

    def save(self, key: str, result: ScrapeResult) -> None:
        self._results[key] = result

    def load(self, key: str) -> Optional[ScrapeResult]:
        return self._results.get(key)

    def delete(self, key: str) -> bool:
        return self._results.pop(key, None) is not None

    def keys(self) -> List[str]:
        return sorted(self._results)


class JSONFileResultStore:
    """One JSON document per key inside a directory."""

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        if not _KEY_RE.match(key) or key.startswith("."):
            raise ValueError(f"Invalid result key: {key!r}")
        return self.directory / f"{key}.json"

    def save(self, key: str, result: ScrapeResult) -> None:
        path = self._path(key)
        # Write to a temp file first so readers never see a half-written result.
        fd, tmp = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(result.to_dict(), f, indent=2, ensure_ascii=False)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        logger.debug("Saved %s products under %r", len(result.products), key)

    def load(self, key: str) -> Optional[ScrapeResult]:
        path = self._path(key)
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return ScrapeResult.from_dict(json.load(f))

    def delete(self, key: str) -> bool:
        path = self._path(key)
        if not path.exists():
            return False
        path.unlink()
        return True

    def keys(self) -> List[str]:
        return sorted(p.stem for p in self.directory.glob("*.json"))
