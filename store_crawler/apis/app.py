from __future__ import annotations

from typing import Any, Dict, List, Optional
import logging

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.responses import Response
from pydantic import BaseModel, Field

from ..adapters.base import Product
from ..adapters.registry import AdapterRegistry
from ..catalog import catalog_stats, extract_categories, filter_products, paginate
from ..config import AppConfig, Auth, ScrapeOptions
from ..engines.base import ScrapeResult
from ..engines.simple_engine import SimpleCrawlEngine
from ..errors import ConfigError
from ..export.csv_exporter import CSVExporter, default_filename
from ..storage import JSONFileResultStore, ResultStore, key_for
from ..version import __version__

logger = logging.getLogger(__name__)

app = FastAPI(title="store_crawler API", version=__version__)

_store: Optional[ResultStore] = None


def get_store() -> ResultStore:
    global _store
    if _store is None:
        cfg = AppConfig.from_env()
        _store = JSONFileResultStore(cfg.store_dir)
    return _store


def get_registry() -> AdapterRegistry:
    registry = AdapterRegistry()
    registry.discover_entry_points()
    registry.register_dotted(AppConfig.from_env().extra_adapters)
    return registry


class AuthModel(BaseModel):
    username: str
    password: str


class CrawlRequest(BaseModel):
    url: str
    recursive: Optional[bool] = None
    max_depth: Optional[int] = Field(default=None, ge=0)
    include_product_pages: Optional[bool] = None
    max_products: Optional[int] = Field(default=None, gt=0)
    max_pages_to_visit: Optional[int] = Field(default=None, gt=0)
    include_subdomains: Optional[bool] = None
    detect_categories: Optional[bool] = None
    max_concurrency: Optional[int] = Field(default=None, gt=0)
    fallback_paths: Optional[List[str]] = None
    auth: Optional[AuthModel] = None

    def to_options(self) -> ScrapeOptions:
        opts = ScrapeOptions.from_env()
        for name in ("recursive", "max_depth", "include_product_pages", "max_products", "max_pages_to_visit",
                     "include_subdomains", "detect_categories", "max_concurrency", "fallback_paths"):
            value = getattr(self, name)
            if value is not None:
                setattr(opts, name, value)
        if self.auth is not None:
            opts.auth = Auth(self.auth.username, self.auth.password)
        return opts


class CrawlSummary(BaseModel):
    key: str
    success: bool
    state: str
    products: int
    pages_visited: int
    pages_failed: int
    has_more_products: bool
    total_products_estimate: int
    last_updated: str
    error: Optional[str] = None


class ProductPage(BaseModel):
    items: List[Dict[str, Any]]
    page: int
    per_page: int
    total: int
    pages: int


def _summary(key: str, result: ScrapeResult) -> CrawlSummary:
    return CrawlSummary(
        key=key,
        success=result.success,
        state=result.state.value,
        products=len(result.products),
        pages_visited=result.pages_visited,
        pages_failed=result.pages_failed,
        has_more_products=result.has_more_products,
        total_products_estimate=result.total_products_estimate,
        last_updated=result.last_updated,
        error=result.error,
    )


def _load(store: ResultStore, key: str) -> ScrapeResult:
    try:
        result = store.load(key)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if result is None:
        raise HTTPException(status_code=404, detail=f"No crawl result for {key!r}")
    return result


@app.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/crawl", response_model=CrawlSummary)
async def crawl(
    req: CrawlRequest,
    store: ResultStore = Depends(get_store),
    registry: AdapterRegistry = Depends(get_registry),
) -> CrawlSummary:
    try:
        opts = req.to_options()
        opts.validate()
    except ConfigError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    engine = SimpleCrawlEngine(req.url, opts, registry=registry)
    result = await engine.crawl()
    key = key_for(result.seed_url or req.url)
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error or "crawl failed")
    store.save(key, result)
    return _summary(key, result)


@app.get("/results")
async def list_results(store: ResultStore = Depends(get_store)) -> List[str]:
    return store.keys()


@app.get("/results/{key}")
async def get_result(key: str, store: ResultStore = Depends(get_store)) -> Dict[str, Any]:
    result = _load(store, key)
    data = result.to_dict()
    data.pop("products", None)
    data["stats"] = catalog_stats(result.products)
    return data


@app.delete("/results/{key}")
async def delete_result(key: str, store: ResultStore = Depends(get_store)) -> Dict[str, bool]:
    _load(store, key)
    return {"deleted": store.delete(key)}


@app.get("/results/{key}/categories")
async def get_categories(key: str, store: ResultStore = Depends(get_store)) -> List[str]:
    return extract_categories(_load(store, key).products)


@app.get("/results/{key}/products", response_model=ProductPage)
async def list_products(
    key: str,
    category: Optional[str] = None,
    q: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=200),
    store: ResultStore = Depends(get_store),
) -> ProductPage:
    products = filter_products(_load(store, key).products, category=category, query=q)
    result = paginate(products, page=page, per_page=per_page)
    return ProductPage(
        items=[p.to_dict() for p in result.items],
        page=result.page,
        per_page=result.per_page,
        total=result.total,
        pages=result.pages,
    )


@app.get("/results/{key}/products/{product_id}")
async def get_product(key: str, product_id: str, store: ResultStore = Depends(get_store)) -> Dict[str, Any]:
    product: Optional[Product] = next((p for p in _load(store, key).products if p.id == product_id), None)
    if product is None:
        raise HTTPException(status_code=404, detail=f"No product {product_id!r}")
    return product.to_dict()


@app.get("/results/{key}/export.csv")
async def export_csv(key: str, store: ResultStore = Depends(get_store)) -> Response:
    body = CSVExporter().render(_load(store, key).products)
    return Response(
        content=body,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{default_filename()}"'},
    )
