# fruitfusion/schemas.py
from __future__ import annotations

from dataclasses import dataclass
from typing import List


# -----------------------------
# Core schema objects
# -----------------------------
@dataclass(frozen=True)
class RecordSchema:
    """Defines the canonical fields of a stored record."""
    name: str
    path: str
    required: List[str]
    optional: List[str]


# -----------------------------
# Canonical records
# -----------------------------
ORDER = RecordSchema(
    name="order",
    path="orders",
    required=[
        "id",
        "userId",
        "customerName",
        "phoneNumber",
        "address",
        "email",
        "items",
        "totalAmount",
        "status",
        "paymentMethod",
        "createdAt",
        "updatedAt",
    ],
    optional=[
        "subtotal",
        "deliveryFee",
        "discount",
        # raw aliases some screens wrote instead of the canonical names
        "totalPrice",
        "customerPhone",
        "phone",
        "deliveryAddress",
    ],
)

PRODUCT = RecordSchema(
    name="product",
    path="products",
    required=[
        "id",
        "name",
        "price",
        "stock",
        "category",
        "isVisible",
    ],
    optional=[
        "image",
        "description",
        "categoryColor",
        "createdAt",
        "updatedAt",
    ],
)

CATEGORY = RecordSchema(
    name="category",
    path="categories",
    required=[
        "id",
        "name",
    ],
    optional=[
        "image",
        "color",
    ],
)

USER = RecordSchema(
    name="user",
    path="users",
    required=[
        "id",
    ],
    optional=[
        "name",
        "email",
        "phone",
        "address",
        "createdAt",
    ],
)


# -----------------------------
# Enums / controlled values
# -----------------------------
ORDER_STATUSES = [
    "Order Taken",
    "Processing",
    "Out for Delivery",
    "Delivered",
    "Cancelled",
    "Pending",
]

CATEGORY_COLORS = {
    "Recommended": "#FF7E1E",
    "Popular": "#4CAF50",
    "New": "#2196F3",
}

PAYMENT_METHODS = ["Cash on Delivery"]


# -----------------------------
# Defaults used by normalization
# -----------------------------
DEFAULT_USER_ID = "guest"
DEFAULT_CUSTOMER_NAME = "Guest"
NOT_PROVIDED = "Not provided"
DEFAULT_STATUS = "Order Taken"
DEFAULT_PAYMENT_METHOD = "Cash on Delivery"
DEFAULT_PRODUCT_CATEGORY = "New"


# -----------------------------
# Local cache keys
# -----------------------------
CACHE_ORDERS = "orders"
CACHE_PRODUCTS = "products"
CACHE_CATEGORIES = "categories"
CACHE_USERS = "users"
CACHE_PENDING_OPERATIONS = "pendingOperations"

