# fruitfusion/normalize.py
"""
Stable, public normalization API.

Everything is implemented in fruitfusion/normalize_mod/.
This file exists so the rest of the app can do:
  from fruitfusion.normalize import normalize_order, ...
"""

from fruitfusion.normalize_mod import (
    canonical_product_category,
    canonical_status,
    category_color,
    get_order_details,
    line_subtotal,
    normalize_category,
    normalize_line,
    normalize_order,
    normalize_orders,
    normalize_product,
    order_subtotal,
    resolve_total,
    visible_products,
)
from fruitfusion.normalize_utils import coerce_price, coerce_quantity, parse_currency

__all__ = [
    "canonical_product_category",
    "canonical_status",
    "category_color",
    "coerce_price",
    "coerce_quantity",
    "get_order_details",
    "line_subtotal",
    "normalize_category",
    "normalize_line",
    "normalize_order",
    "normalize_orders",
    "normalize_product",
    "order_subtotal",
    "parse_currency",
    "resolve_total",
    "visible_products",
]
