"""
Catalog ingestion, filtering, sorting and search.

``normalize_product`` is the single boundary where raw API payloads become
canonical Product models. The backend (and older seed data) ships the image
field as a string, a list, or an object with a url-ish key; nothing past this
module needs to know that.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from shop.models import Product
from shop.storage import LocalStorage, StorageKeys

logger = logging.getLogger("catalog")


DEFAULT_IMAGE = "/images/p_img1.png"
IMAGE_OBJECT_KEYS = ("url", "src", "path", "uri")

ALL_CATEGORIES = "All"
SORT_OPTIONS = ("newest", "price-asc", "price-desc", "rating-desc", "name-asc")

MAX_RECENT_SEARCHES = 5
MAX_SEARCH_RESULTS = 6

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# =============================================================================
# Normalization
# =============================================================================

def _normalize_image_url(url: str) -> str:
    if url.startswith(("http", "data:", "/")):
        return url
    return f"/{url}"


def _extract_image_url(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value or None
    if isinstance(value, dict):
        for key in IMAGE_OBJECT_KEYS:
            if value.get(key):
                return value[key]
    return None


def normalize_images(image: Any) -> list[str]:
    """
    Turn any supported image shape into a non-empty list of URLs.

    Accepts a string, a list of strings/objects, or a single object carrying
    one of ``url``, ``src``, ``path`` or ``uri``.
    """
    if isinstance(image, (list, tuple)):
        candidates = [_extract_image_url(entry) for entry in image]
    else:
        candidates = [_extract_image_url(image)]

    urls = [_normalize_image_url(url) for url in candidates if url]
    return urls or [DEFAULT_IMAGE]


def normalize_product(raw: dict[str, Any]) -> Product:
    """Build a canonical Product from a raw API document."""
    data = dict(raw)
    if "_id" not in data and "id" in data:
        data["_id"] = data.pop("id")
    if "_id" in data:
        data["_id"] = str(data["_id"])
    if "date" in data and "createdAt" not in data:
        # Seed data stores creation time as epoch milliseconds under "date"
        date = data.pop("date")
        if isinstance(date, (int, float)):
            data["createdAt"] = datetime.fromtimestamp(date / 1000, tz=timezone.utc)
    data["image"] = normalize_images(data.get("image"))
    if data.get("price") is None:
        data["price"] = 0
    return Product.model_validate(data)


def normalize_products(payload: Any) -> list[Product]:
    """
    Normalize a product listing payload.

    The API returns either a bare list or ``{"products": [...]}``. Documents
    that fail validation are skipped and logged.
    """
    if isinstance(payload, list):
        raw_products = payload
    elif isinstance(payload, dict) and isinstance(payload.get("products"), list):
        raw_products = payload["products"]
    else:
        logger.error(f"Unexpected data format for product listing: {type(payload).__name__}")
        return []

    products = []
    for raw in raw_products:
        if not isinstance(raw, dict):
            continue
        try:
            products.append(normalize_product(raw))
        except ValidationError as e:
            logger.warning(f"Skipping malformed product {raw.get('_id', raw.get('id'))}: {e}")
    return products


# =============================================================================
# Filtering and sorting
# =============================================================================

def categories(products: Iterable[Product]) -> list[str]:
    """Distinct categories in first-seen order."""
    return list(dict.fromkeys(p.category for p in products if p.category))


def _in_category(product: Product, category: Optional[str]) -> bool:
    if not category or category == ALL_CATEGORIES:
        return True
    return bool(product.category) and product.category.lower() == category.lower()


def sub_categories(products: Iterable[Product], category: str = ALL_CATEGORIES) -> list[str]:
    """Distinct sub-categories available within a category (case-insensitive)."""
    return list(dict.fromkeys(
        p.sub_category for p in products if p.sub_category and _in_category(p, category)
    ))


def filter_products(
    products: Iterable[Product],
    category: str = ALL_CATEGORIES,
    sub_category: Optional[str] = None,
) -> list[Product]:
    """
    Filter by category (case-insensitive, ``All`` matches everything) and
    then by exact sub-category.
    """
    filtered = [p for p in products if _in_category(p, category)]
    if sub_category:
        filtered = [p for p in filtered if p.sub_category == sub_category]
    return filtered


def _created_at(product: Product) -> datetime:
    created = product.created_at or _EPOCH
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created


def sort_products(products: Iterable[Product], option: str = "newest") -> list[Product]:
    """Return a sorted copy. Unknown options sort by newest."""
    items = list(products)
    if option == "price-asc":
        return sorted(items, key=lambda p: p.price)
    if option == "price-desc":
        return sorted(items, key=lambda p: p.price, reverse=True)
    if option == "rating-desc":
        return sorted(items, key=lambda p: p.rating, reverse=True)
    if option == "name-asc":
        return sorted(items, key=lambda p: p.name.lower())

    # newest: flagged-new products first, then most recently created
    by_date = sorted(items, key=_created_at, reverse=True)
    return sorted(by_date, key=lambda p: not p.is_new)


def search_products(
    products: Iterable[Product],
    query: str,
    limit: int = MAX_SEARCH_RESULTS,
) -> list[Product]:
    """Case-insensitive match on name, category and sub-category."""
    term = query.strip().lower()
    if not term:
        return []
    matches = [
        p for p in products
        if term in p.name.lower()
        or term in p.category.lower()
        or (p.sub_category and term in p.sub_category.lower())
    ]
    return matches[:limit]


def similar_products(
    products: Iterable[Product],
    product: Product,
    limit: int = 4,
) -> list[Product]:
    """Other products from the same category and sub-category."""
    return [
        p for p in products
        if p.id != product.id
        and p.category == product.category
        and p.sub_category == product.sub_category
    ][:limit]


# =============================================================================
# Recent searches
# =============================================================================

class RecentSearches:
    """
    The last few unique search terms, newest first, persisted under
    ``recentSearches``.
    """

    def __init__(self, storage: LocalStorage):
        self.storage = storage

    def terms(self) -> list[str]:
        saved = self.storage.get_item(StorageKeys.RECENT_SEARCHES) or []
        return [term for term in saved if isinstance(term, str)][:MAX_RECENT_SEARCHES]

    def record(self, term: str) -> list[str]:
        term = term.strip()
        if not term:
            return self.terms()
        searches = list(dict.fromkeys([term, *self.terms()]))[:MAX_RECENT_SEARCHES]
        self.storage.set_item(StorageKeys.RECENT_SEARCHES, searches)
        return searches

    def clear(self) -> None:
        self.storage.remove_item(StorageKeys.RECENT_SEARCHES)
