# fruitfusion/normalize_mod/products.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fruitfusion.normalize_utils import (
    clean_str,
    coerce_non_negative_int,
    coerce_price,
    image_uri,
)
from fruitfusion.schemas import CATEGORY_COLORS, DEFAULT_PRODUCT_CATEGORY


def canonical_product_category(value: Any) -> str:
    """
    Storefront sections are fixed: Recommended / Popular / New.

    Matching is by substring ("Most popular" -> Popular); anything else lands in New.
    """
    s = clean_str(value).lower()
    if not s:
        return DEFAULT_PRODUCT_CATEGORY
    if "recommend" in s:
        return "Recommended"
    if "popular" in s:
        return "Popular"
    return DEFAULT_PRODUCT_CATEGORY


def category_color(category: Any) -> str:
    return CATEGORY_COLORS.get(canonical_product_category(category), CATEGORY_COLORS["Recommended"])


def _as_bool(value: Any, default: bool = True) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    s = str(value).strip().lower()
    if not s:
        return default
    return s not in ("false", "0", "no", "off")


def normalize_product(raw: Optional[Dict[str, Any]], product_id: Optional[str] = None) -> Dict[str, Any]:
    raw = raw if isinstance(raw, dict) else {}
    product = dict(raw)

    pid = product_id if product_id is not None else raw.get("id")
    if pid is not None and str(pid).strip():
        product["id"] = str(pid).strip()

    product["name"] = clean_str(raw.get("name"), "Unnamed")
    product["price"] = coerce_price(raw.get("price"))
    product["stock"] = coerce_non_negative_int(raw.get("stock"), default=0)
    product["category"] = canonical_product_category(raw.get("category"))
    product["categoryColor"] = clean_str(raw.get("categoryColor")) or category_color(product["category"])
    product["image"] = image_uri(raw.get("image"))
    product["description"] = clean_str(raw.get("description"))
    product["isVisible"] = _as_bool(raw.get("isVisible"), default=True)
    return product


def normalize_category(raw: Any, category_id: Optional[str] = None) -> Dict[str, Any]:
    """Categories were written both as bare strings and as {name: ...} records."""
    if isinstance(raw, dict):
        category = dict(raw)
        name = clean_str(raw.get("name"))
    else:
        category = {}
        name = clean_str(raw)

    cid = category_id if category_id is not None else category.get("id")
    if cid is not None and str(cid).strip():
        category["id"] = str(cid).strip()
    category["name"] = name or "Uncategorized"
    return category


def visible_products(products: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [p for p in products if p.get("isVisible") is not False]
