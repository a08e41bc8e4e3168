from __future__ import annotations

import hashlib
import json
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import unquote, urljoin, urlparse, urlunparse

from bs4 import BeautifulSoup, Tag

from ..adapters.base import ContactInfo, Product, StoreInfo

_SKIP_SCHEMES = ("javascript:", "mailto:", "tel:", "data:")

# Listing containers, most specific first.
_CARD_SELECTORS = (
    "ul.products li.product",
    ".products .product",
    ".product-grid .product",
    ".woocommerce-loop-product",
    ".product-item",
    "[data-product-id]",
)
_NAME_SELECTORS = (".woocommerce-loop-product__title", "h2", "h3", ".product-title", ".name",
                   "[class*='title']", "[class*='name']")
_PRICE_SELECTORS = (".price ins .amount", ".price .amount", ".price", ".product-price", ".amount",
                    "[data-product-price]", "[class*='price']")
_ORIGINAL_PRICE_SELECTORS = (".price del", ".regular-price", ".original-price", "del")
_IMAGE_ATTRS = ("src", "data-src", "data-lazy-src", "data-original")
_THUMB_SUFFIX = re.compile(r"-\d+x\d+(?=\.(jpg|jpeg|png|gif|webp)\b)", re.I)

_PHONE_RE = re.compile(r"(?:Tel|Phone|Tel[eé]fono)[^\d+]*([\d\s+\-().]{7,})", re.I)
_EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
_ADDRESS_RE = re.compile(r"(?:Direcci[oó]n|Address)\W*([\w\s,.]+)", re.I)

_PRODUCT_PATHS = ("/product/", "/producto/", "/products/", "/item/")


# ---- URLs -------------------------------------------------------------------

def normalize_url(url: str) -> str:
    """
    Normalize URL for de-duplication: lowercase scheme/host, strip fragment and
    trailing slashes. The bare origin keeps "/" as its path.
    """
    parsed = urlparse(url)
    path = parsed.path.rstrip("/") or "/"
    return urlunparse((parsed.scheme.lower(), parsed.netloc.lower(), path, parsed.params, parsed.query, ""))


def product_id_for(detail_url: str) -> str:
    """Stable product identity: the same detail URL always maps to the same id."""
    digest = hashlib.sha1(normalize_url(detail_url).encode("utf-8")).hexdigest()
    return f"prod-{digest[:16]}"


def resolve_url(base_url: str, href: str) -> Optional[str]:
    """Absolute URL for href, or None when it cannot be parsed (e.g. a broken IPv6 host)."""
    try:
        absolute = urljoin(base_url, href)
        urlparse(absolute)
    except ValueError:
        return None
    return absolute


def extract_links(soup: BeautifulSoup, base_url: str) -> List[str]:
    """
    Extract absolute http(s) links in document order, without duplicates.
    """
    out: Dict[str, None] = {}
    for a in soup.select("a[href]"):
        href = (a.get("href") or "").strip()
        if not href or href.startswith("#") or href.lower().startswith(_SKIP_SCHEMES):
            continue
        absolute = resolve_url(base_url, href)
        if absolute is None or urlparse(absolute).scheme not in ("http", "https"):
            continue
        out.setdefault(normalize_url(absolute), None)
    return list(out)


def is_product_like(url: str) -> bool:
    path = urlparse(url).path.lower() + "/"
    return any(p in path for p in _PRODUCT_PATHS) or re.search(r"/p/[\w-]+/$", path) is not None


def classify_url(url: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Best-effort category heuristic: the second-to-last path segment is the
    category and the last one the subcategory. Fewer than two segments leaves
    both unset.
    """
    segments = [unquote(s) for s in urlparse(url).path.split("/") if s]
    if len(segments) < 2:
        return None, None
    return segments[-2], segments[-1]


# ---- Text helpers -----------------------------------------------------------

def _text(node: Optional[Tag]) -> Optional[str]:
    if node is None:
        return None
    text = " ".join(node.get_text(" ", strip=True).split())
    return text or None


def _first(node: Tag, selectors: Iterable[str]) -> Optional[Tag]:
    for selector in selectors:
        found = node.select_one(selector)
        if found is not None:
            return found
    return None


def _image_url(img: Optional[Tag], base_url: str) -> str:
    if img is None:
        return ""
    src = next((img.get(attr) for attr in _IMAGE_ATTRS if img.get(attr)), None)
    if not src and img.get("srcset"):
        src = img["srcset"].split()[0]
    if not src:
        return ""
    absolute = resolve_url(base_url, src)
    return _THUMB_SUFFIX.sub("", absolute) if absolute else ""


def _spec_pairs(container: Optional[Tag]) -> Dict[str, str]:
    specs: Dict[str, str] = {}
    if container is None:
        return specs
    for row in container.select("tr, li, .spec-item"):
        label = _text(row.select_one("th, dt, .label, .name"))
        value = _text(row.select_one("td, dd, .value"))
        if label and value:
            specs[label] = value
            continue
        content = _text(row)
        if content and content.count(":") == 1:
            key, _, val = content.partition(":")
            if key.strip() and val.strip():
                specs[key.strip()] = val.strip()
    return specs


def _breadcrumb_category(soup: BeautifulSoup) -> Optional[str]:
    crumbs = soup.select_one(".woocommerce-breadcrumb, .breadcrumb, [class*='breadcrumb']")
    if crumbs is None:
        return None
    parts = [p.strip() for p in re.split(r"[/>|»]", crumbs.get_text(" ", strip=True)) if p.strip()]
    return parts[1] if len(parts) > 1 else None


def site_name(soup: BeautifulSoup, url: str) -> str:
    meta = soup.find("meta", attrs={"property": "og:site_name"})
    if meta and meta.get("content"):
        return meta["content"].strip()
    return _text(soup.select_one(".site-title")) or (urlparse(url).hostname or url)


def _build_product(
    *,
    name: Optional[str],
    price: Optional[str],
    detail_url: Optional[str],
    **fields: Any,
) -> Optional[Product]:
    # A candidate without a name, a price and a detail URL is not a product.
    if not (name and price and detail_url):
        return None
    clean = {k: v for k, v in fields.items() if v not in (None, "", {}, ())}
    return Product(id=product_id_for(detail_url), name=name, price=price, url=normalize_url(detail_url), **clean)


# ---- JSON-LD ----------------------------------------------------------------

def extract_product_metadata(soup: BeautifulSoup, base_url: str) -> List[Product]:
    """Extract structured product details from JSON-LD blocks."""
    products: List[Product] = []
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        payload = script.string or ""
        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            continue

        for item in _iter_jsonld_items(data):
            product = _product_from_jsonld(item, base_url)
            if product:
                products.append(product)
    return products


def _iter_jsonld_items(data: Any) -> Iterable[Any]:
    if isinstance(data, list):
        for item in data:
            yield from _iter_jsonld_items(item)
    elif isinstance(data, dict):
        if "@graph" in data:
            yield from _iter_jsonld_items(data["@graph"])
        else:
            yield data


def _product_from_jsonld(item: Any, base_url: str) -> Optional[Product]:
    if not isinstance(item, dict):
        return None

    type_field = item.get("@type")
    types = type_field if isinstance(type_field, list) else [type_field]
    if not any(isinstance(t, str) and t.lower() == "product" for t in types):
        return None

    offers = item.get("offers")
    if isinstance(offers, list):
        offers = offers[0] if offers else None
    if not isinstance(offers, dict):
        offers = {}

    price = offers.get("price") or offers.get("lowPrice")
    currency = offers.get("priceCurrency")
    if price is not None and currency:
        price = f"{price} {currency}"

    availability = offers.get("availability")
    if isinstance(availability, str):
        availability = availability.rsplit("/", 1)[-1]

    brand = item.get("brand")
    if isinstance(brand, dict):
        brand = brand.get("name")

    rating = item.get("aggregateRating")
    rating = rating.get("ratingValue") if isinstance(rating, dict) else None

    image = item.get("image")
    images = image if isinstance(image, list) else [image] if image else []
    images = [resolve_url(base_url, i) for i in images if isinstance(i, str)]
    images = [i for i in images if i]

    return _build_product(
        name=item.get("name"),
        price=str(price) if price is not None else None,
        detail_url=resolve_url(base_url, item.get("url") or base_url),
        image_url=images[0] if images else "",
        additional_images=tuple(images[1:]),
        stock_status=availability,
        brand=brand if isinstance(brand, str) else None,
        sku=str(item["sku"]) if item.get("sku") else None,
        rating=str(rating) if rating is not None else None,
        description=item.get("description"),
        category=item.get("category") if isinstance(item.get("category"), str) else None,
    )


# ---- Listing cards and detail pages -------------------------------------------

def extract_listing_products(soup: BeautifulSoup, base_url: str, source: Optional[str] = None) -> List[Product]:
    """Extract product cards from category/listing pages."""
    cards: List[Tag] = []
    for selector in _CARD_SELECTORS:
        cards = soup.select(selector)
        if cards:
            break

    fallback_category = _breadcrumb_category(soup)
    products: List[Product] = []
    for card in cards:
        link = card.select_one("a.woocommerce-LoopProduct-link, a.product-link, a[href]")
        href = link.get("href") if link else None
        name = _text(_first(card, _NAME_SELECTORS)) or (link.get("title") if link else None)
        price_node = _first(card, _PRICE_SELECTORS)
        original = _first(card, _ORIGINAL_PRICE_SELECTORS)
        sale = card.select_one(".onsale, .sale, [class*='discount']")

        category = next(
            (c[len("product_cat-"):].replace("-", " ").title()
             for c in card.get("class", []) if c.startswith("product_cat-")),
            fallback_category,
        )
        product = _build_product(
            name=name,
            price=_text(price_node),
            detail_url=resolve_url(base_url, href) if href else None,
            image_url=_image_url(card.select_one("img"), base_url),
            original_price=_text(original) if original is not price_node else None,
            discount=(_text(sale) or "On sale") if sale else None,
            sku=_text(card.select_one(".sku, [class*='sku']")),
            stock_status=_text(card.select_one(".stock, .in-stock, .out-of-stock, [class*='stock']")),
            rating=_rating(card),
            brand=_text(card.select_one(".brand, .manufacturer, [class*='brand']")),
            description=_text(card.select_one(".short-description, .excerpt, .description, [class*='excerpt']")),
            specifications=_spec_pairs(card.select_one(".specifications, .specs, .product-specs")) or None,
            site_source=source,
            category=category,
        )
        if product:
            products.append(product)
    return products


def _rating(card: Tag) -> Optional[str]:
    node = card.select_one(".star-rating, .rating, [class*='rating']")
    if node is None:
        return None
    return node.get("data-rating") or node.get("aria-label") or _text(node)


def extract_product_detail(soup: BeautifulSoup, url: str, source: Optional[str] = None) -> Optional[Product]:
    """Extract a single product from a product detail page."""
    title = soup.select_one("h1.product_title, .product-title, h1.entry-title")
    if title is None:
        return None
    summary = soup.select_one(".summary, .product-info, .product-details") or soup
    gallery = [
        _image_url(img, url)
        for img in soup.select(".woocommerce-product-gallery img, .product-gallery img, .thumbnails img")
    ]
    gallery = list(dict.fromkeys(g for g in gallery if g))
    image = _image_url(soup.select_one(".product-image img, .woocommerce-product-gallery img, .product img"), url)
    original = summary.select_one(".price del")
    specs = _spec_pairs(soup.select_one(".woocommerce-product-attributes, .product-attributes, .specifications"))

    return _build_product(
        name=_text(title),
        price=_text(summary.select_one(".price ins .amount, .price .amount, .price, .product-price")),
        detail_url=url,
        image_url=image or (gallery[0] if gallery else ""),
        additional_images=tuple(g for g in gallery if g != image),
        original_price=_text(original),
        discount=_text(soup.select_one(".onsale")),
        sku=_text(soup.select_one(".sku_wrapper .sku, .sku, .product-sku")),
        stock_status=_text(soup.select_one(".stock, .availability, .product-stock")),
        brand=_text(soup.select_one(".brand, [class*='manufacturer']")),
        description=_text(soup.select_one(".woocommerce-product-details__short-description, .description")),
        specifications=specs or None,
        site_source=source,
        category=_breadcrumb_category(soup),
    )


# ---- Store-wide information ---------------------------------------------------

def extract_store_info(soup: BeautifulSoup, url: str) -> StoreInfo:
    categories: Dict[str, None] = {}
    for node in soup.select(".product_cat, .product-category, .cat-item, .product-categories li > a"):
        name = _text(node)
        if name:
            categories.setdefault(name, None)
    logo = soup.select_one("img.logo, .site-logo img, img.site-logo, header img")
    description = soup.find("meta", attrs={"name": "description"})
    return StoreInfo(
        name=site_name(soup, url),
        url=url,
        categories=list(categories),
        logo=_image_url(logo, url) or None,
        description=(description.get("content") or None) if description else None,
    )


def extract_contact_info(soup: BeautifulSoup) -> Optional[ContactInfo]:
    phone = email = address = None
    for node in soup.select(".contact-info, .contact, footer, [class*='contact']"):
        text = node.get_text(" ", strip=True)
        phone_match = _PHONE_RE.search(text)
        email_match = _EMAIL_RE.search(text)
        address_match = _ADDRESS_RE.search(text)
        if phone is None and phone_match:
            phone = phone_match.group(1).strip(" -.")
        if email is None and email_match:
            email = email_match.group(0)
        if address is None and address_match:
            address = address_match.group(1).strip()
    info = ContactInfo(phone=phone, email=email, address=address)
    return None if info.is_empty() else info
