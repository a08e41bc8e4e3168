from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import List, Optional, Dict, Any
from pathlib import Path
import os
import json

from .errors import ConfigError
from .version import __version__, CONFIG_SCHEMA_VERSION


@dataclass(frozen=True)
class Auth:
    username: str
    password: str

    def __repr__(self) -> str:
        return f"Auth(username={self.username!r}, password='***')"


# Common catalog locations tried when the store URL itself yields few products.
DEFAULT_FALLBACK_PATHS = (
    "/tienda/",
    "/shop/",
    "/productos/",
    "/todos-los-productos/",
    "/catalogo/",
    "/categoria-producto/",
)

_BOOL_FIELDS = ("recursive", "include_product_pages", "include_subdomains", "detect_categories")
_INT_FIELDS = ("schema_version", "max_depth", "max_products", "max_pages_to_visit", "max_concurrency")


@dataclass
class ScrapeOptions:
    """
    Recognized options for a single store crawl.
    Keep it dataclass-only (no heavy deps) so it travels between CLI, API and engine.
    """
    schema_version: int = CONFIG_SCHEMA_VERSION
    recursive: bool = True
    max_depth: int = 2
    include_product_pages: bool = True
    max_products: int = 15000
    max_pages_to_visit: int = 500
    include_subdomains: bool = False
    detect_categories: bool = True
    auth: Optional[Auth] = None
    # Same-origin paths to try when the first pass finds few products; empty disables.
    fallback_paths: List[str] = field(default_factory=lambda: list(DEFAULT_FALLBACK_PATHS))
    # Runtime knobs, not part of the stored result.
    max_concurrency: int = 4
    request_timeout: float = 15.0
    user_agent: str = f"store_crawler/{__version__}"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if self.auth is not None:
            data["auth"] = {"username": self.auth.username, "password": "***"}
        return data

    # ---------- Loaders ----------

    @classmethod
    def from_env(cls) -> "ScrapeOptions":
        """
        Build options from STORE_CRAWLER_* environment variables (all optional).
        """
        def _get(name: str, default: str) -> str:
            return os.getenv(f"STORE_CRAWLER_{name}", default)

        username = _get("AUTH_USERNAME", "")
        auth = Auth(username, _get("AUTH_PASSWORD", "")) if username else None

        try:
            return cls(
                recursive=_as_bool(_get("RECURSIVE", "true")),
                max_depth=int(_get("MAX_DEPTH", "2")),
                include_product_pages=_as_bool(_get("INCLUDE_PRODUCT_PAGES", "true")),
                max_products=int(_get("MAX_PRODUCTS", "15000")),
                max_pages_to_visit=int(_get("MAX_PAGES_TO_VISIT", "500")),
                include_subdomains=_as_bool(_get("INCLUDE_SUBDOMAINS", "false")),
                detect_categories=_as_bool(_get("DETECT_CATEGORIES", "true")),
                auth=auth,
                fallback_paths=[p.strip() for p in _get("FALLBACK_PATHS", ",".join(DEFAULT_FALLBACK_PATHS)).split(",")
                                if p.strip()],
                max_concurrency=int(_get("MAX_CONCURRENCY", "4")),
                request_timeout=float(_get("REQUEST_TIMEOUT", "15.0")),
                user_agent=_get("USER_AGENT", f"store_crawler/{__version__}"),
            )
        except ValueError as exc:
            raise ConfigError(f"Invalid STORE_CRAWLER_* environment value: {exc}") from exc

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScrapeOptions":
        data = migrate_config(dict(data))
        auth = data.pop("auth", None)
        if isinstance(auth, dict):
            auth = Auth(auth.get("username", ""), auth.get("password", ""))
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown scrape options: {', '.join(sorted(unknown))}")
        return cls(auth=auth, **data)

    @classmethod
    def from_file(cls, path: str | os.PathLike[str]) -> "ScrapeOptions":
        """
        Load options from a JSON file. Supports schema migration for older files.
        """
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls.from_dict(data)

    # ---------- Validation ----------

    def validate(self) -> None:
        self._check_types()
        if self.max_depth < 0:
            raise ConfigError("max_depth must be >= 0")
        if self.max_pages_to_visit <= 0:
            raise ConfigError("max_pages_to_visit must be > 0")
        if self.max_products <= 0:
            raise ConfigError("max_products must be > 0")
        if self.max_concurrency <= 0:
            raise ConfigError("max_concurrency must be > 0")
        if self.request_timeout <= 0:
            raise ConfigError("request_timeout must be > 0")

    def _check_types(self) -> None:
        # JSON files and API payloads can carry "3" where 3 is meant.
        for name in _BOOL_FIELDS:
            if not isinstance(getattr(self, name), bool):
                raise ConfigError(f"{name} must be true or false, got {getattr(self, name)!r}")
        for name in _INT_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"{name} must be an integer, got {value!r}")
        if isinstance(self.request_timeout, bool) or not isinstance(self.request_timeout, (int, float)):
            raise ConfigError(f"request_timeout must be a number, got {self.request_timeout!r}")
        if not isinstance(self.user_agent, str):
            raise ConfigError(f"user_agent must be a string, got {self.user_agent!r}")
        if self.auth is not None and not isinstance(self.auth, Auth):
            raise ConfigError("auth must be an object with username and password")
        if not isinstance(self.fallback_paths, (list, tuple)) or not all(
            isinstance(p, str) for p in self.fallback_paths
        ):
            raise ConfigError(f"fallback_paths must be a list of paths, got {self.fallback_paths!r}")


@dataclass
class AppConfig:
    """Settings for the CLI and API layers around the crawl engine."""

    # Dotted path for the exporter to allow runtime swapping without code changes.
    exporter: str = "store_crawler.export.json_exporter:JSONExporter"
    # Extra adapters (dotted class paths) to register at startup
    extra_adapters: List[str] = field(default_factory=list)
    output_path: str = "output/products.json"
    # Directory backing the JSON result store
    store_dir: str = "output/results"

    @classmethod
    def from_env(cls) -> "AppConfig":
        def _get(name: str, default: str) -> str:
            return os.getenv(f"STORE_CRAWLER_{name}", default)

        return cls(
            exporter=_get("EXPORTER", "store_crawler.export.json_exporter:JSONExporter"),
            extra_adapters=[a.strip() for a in _get("EXTRA_ADAPTERS", "").split(",") if a.strip()],
            output_path=_get("OUTPUT_PATH", "output/products.json"),
            store_dir=_get("STORE_DIR", "output/results"),
        )

    def validate(self) -> None:
        # Validate output path parent exists or is creatable
        Path(self.output_path).parent.mkdir(parents=True, exist_ok=True)
        Path(self.store_dir).mkdir(parents=True, exist_ok=True)


def _as_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def migrate_config(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Migrate an options dict to the latest schema version.
    Keep this pure and additive. Add migrations here as you bump schema.
    """
    schema = raw.get("schema_version", 1)

    if schema < 2:
        # v1 files were written for the generic multi-site crawler.
        for dropped in ("start_urls", "allowed_domains", "engine", "exporter",
                        "extra_adapters", "output_path", "retries"):
            raw.pop(dropped, None)
        raw["schema_version"] = 2

    raw.setdefault("schema_version", CONFIG_SCHEMA_VERSION)
    return raw
