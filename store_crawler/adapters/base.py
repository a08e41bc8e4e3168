from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Protocol, Tuple


@dataclass(frozen=True)
class Product:
    """A product record extracted from a store page."""

    id: str
    name: str
    price: str
    url: str
    image_url: str = ""
    original_price: Optional[str] = None
    discount: Optional[str] = None
    stock_status: Optional[str] = None
    rating: Optional[str] = None
    brand: Optional[str] = None
    sku: Optional[str] = None
    description: Optional[str] = None
    additional_images: Tuple[str, ...] = ()
    specifications: Optional[Dict[str, str]] = None
    site_source: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["additional_images"] = list(self.additional_images)
        # Drop unset keys for a cleaner export; category absence stays distinct from "".
        return {k: v for k, v in data.items() if v is not None and v != []}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Product":
        data = dict(data)
        data["additional_images"] = tuple(data.get("additional_images") or ())
        return cls(**data)


@dataclass(frozen=True)
class StoreInfo:
    name: str
    url: str
    categories: List[str] = field(default_factory=list)
    subcategories: Dict[str, List[str]] = field(default_factory=dict)
    logo: Optional[str] = None
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True)
class ContactInfo:
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.phone or self.email or self.address)

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class ParseResult:
    products: List[Product] = field(default_factory=list)
    next_links: List[str] = field(default_factory=list)
    store_info: Optional[StoreInfo] = None
    contact_info: Optional[ContactInfo] = None


class SiteAdapter(Protocol):
    """
    Interface for site-specific extraction logic.
    Keep this small and stable so adapters rarely break across upgrades.
    """

    name: str

    def matches(self, url: str) -> bool:
        """Return True if this adapter should handle the given URL."""
        ...

    def parse(self, url: str, html: str) -> ParseResult:
        """
        Given page URL and HTML, return product candidates and outbound links.
        Engine owns the HTTP, queueing, scoping and depth control.
        """
        ...
