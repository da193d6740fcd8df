# fruitfusion/normalize_mod/__init__.py
from .orders import (
    canonical_status,
    get_order_details,
    line_subtotal,
    normalize_line,
    normalize_order,
    normalize_orders,
    order_subtotal,
    resolve_total,
)
from .products import (
    canonical_product_category,
    category_color,
    normalize_category,
    normalize_product,
    visible_products,
)

__all__ = [
    "canonical_status",
    "get_order_details",
    "line_subtotal",
    "normalize_line",
    "normalize_order",
    "normalize_orders",
    "order_subtotal",
    "resolve_total",
    "canonical_product_category",
    "category_color",
    "normalize_category",
    "normalize_product",
    "visible_products",
]
