# fruitfusion/normalize_mod/orders.py
from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from fruitfusion.normalize_utils import (
    as_record_list,
    clean_str,
    coerce_price,
    coerce_quantity,
    first_present,
    image_uri,
    is_number,
    parse_currency,
)
from fruitfusion.schemas import (
    DEFAULT_CUSTOMER_NAME,
    DEFAULT_PAYMENT_METHOD,
    DEFAULT_STATUS,
    DEFAULT_USER_ID,
    NOT_PROVIDED,
    ORDER_STATUSES,
)
from fruitfusion.time_utils import parse_timestamp, to_iso, utc_now_iso

logger = logging.getLogger(__name__)

PHONE_FIELDS = ["phoneNumber", "customerPhone", "phone"]
ADDRESS_FIELDS = ["address", "deliveryAddress"]
TOTAL_FIELDS = ("totalAmount", "totalPrice")

_STATUS_LOOKUP = {s.lower().replace(" ", ""): s for s in ORDER_STATUSES}


# -------------------------------
# Lines
# -------------------------------
def normalize_line(raw_line: Dict[str, Any]) -> Dict[str, Any]:
    """
    Canonical order line: numeric price >= 0, int quantity >= 1.

    Unknown fields are carried through untouched. `image` is only emitted
    when the raw line had one.
    """
    line = dict(raw_line)
    line["name"] = clean_str(raw_line.get("name") or raw_line.get("title"), "Item")
    line["price"] = coerce_price(raw_line.get("price"))
    line["quantity"] = coerce_quantity(raw_line.get("quantity"))
    if "image" in raw_line:
        line["image"] = image_uri(raw_line.get("image"))
    return line


def normalize_lines(raw_items: Any) -> List[Dict[str, Any]]:
    lines = []
    for item in as_record_list(raw_items):
        if not isinstance(item, dict):
            logger.debug("Dropping non-record order line: %r", item)
            continue
        lines.append(normalize_line(item))
    return lines


def line_subtotal(line: Dict[str, Any]) -> float:
    return coerce_price(line.get("price")) * coerce_quantity(line.get("quantity"))


def order_subtotal(lines: Iterable[Dict[str, Any]]) -> float:
    return sum(line_subtotal(line) for line in lines)


# -------------------------------
# Totals
# -------------------------------
def resolve_total(raw: Dict[str, Any], lines: List[Dict[str, Any]]) -> float:
    """
    Single canonical total, by precedence:

      1. totalAmount when it is a number > 0
      2. totalPrice when it is a number > 0
      3. totalAmount / totalPrice parsed from a currency string, when > 0
      4. the sum of line subtotals

    A resolved total of 0 never hides a positive item sum.
    """
    computed = order_subtotal(lines)

    total: float = 0
    for key in TOTAL_FIELDS:
        v = raw.get(key)
        if is_number(v) and math.isfinite(v) and v > 0:
            total = v
            break

    if not total:
        for key in TOTAL_FIELDS:
            v = raw.get(key)
            if v is None or isinstance(v, bool) or is_number(v):
                continue
            parsed = parse_currency(v)
            if parsed is not None and parsed > 0:
                total = parsed
                break

    if not total:
        total = computed

    return total if total > 0 else 0


# -------------------------------
# Status + timestamps
# -------------------------------
def canonical_status(value: Any) -> str:
    """Map loose spellings ('out_for_delivery', ' processing ') onto ORDER_STATUSES."""
    key = clean_str(value).lower().replace("_", "").replace("-", "").replace(" ", "")
    if not key:
        return DEFAULT_STATUS
    status = _STATUS_LOOKUP.get(key)
    if status is None:
        logger.debug("Unknown order status %r, using %r", value, DEFAULT_STATUS)
        return DEFAULT_STATUS
    return status


def _timestamp_str(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if is_number(value):
        dt = parse_timestamp(value)
        return to_iso(dt) if dt else ""
    return ""


# -------------------------------
# Public API
# -------------------------------
def normalize_order(raw: Optional[Dict[str, Any]], order_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Canonical order record, safe for arithmetic and display.

    Never raises: malformed input is coerced to a safe default rather than
    rejected. Pure; the input record is not modified.

    Output fields:
      id, userId, customerName, phoneNumber, address, email, items,
      totalAmount, status, paymentMethod, createdAt, updatedAt
    plus any other fields present on the raw record.
    """
    raw = raw if isinstance(raw, dict) else {}
    order = dict(raw)

    rid = order_id if order_id is not None else raw.get("id")
    if rid is not None and str(rid).strip():
        order["id"] = str(rid).strip()

    lines = normalize_lines(raw.get("items"))
    order["items"] = lines
    order["totalAmount"] = resolve_total(raw, lines)

    order["userId"] = clean_str(raw.get("userId"), DEFAULT_USER_ID)
    order["customerName"] = clean_str(raw.get("customerName"), DEFAULT_CUSTOMER_NAME)
    order["phoneNumber"] = first_present(raw, PHONE_FIELDS, NOT_PROVIDED)
    order["address"] = first_present(raw, ADDRESS_FIELDS, NOT_PROVIDED)
    order["email"] = clean_str(raw.get("email"), NOT_PROVIDED)
    order["paymentMethod"] = clean_str(raw.get("paymentMethod"), DEFAULT_PAYMENT_METHOD)
    order["status"] = canonical_status(raw.get("status"))

    created = _timestamp_str(raw.get("createdAt")) or utc_now_iso()
    order["createdAt"] = created
    order["updatedAt"] = _timestamp_str(raw.get("updatedAt")) or created

    return order


def _sort_key(order: Dict[str, Any]) -> datetime:
    return parse_timestamp(order.get("createdAt")) or datetime.min.replace(tzinfo=timezone.utc)


def normalize_orders(raws: Any) -> List[Dict[str, Any]]:
    """
    Normalize a collection of orders (list, or {id: record} snapshot).

    Snapshot keys win over any id stored inside the record. Newest first.
    """
    orders: List[Dict[str, Any]] = []
    if isinstance(raws, dict):
        for key, rec in raws.items():
            if isinstance(rec, dict):
                orders.append(normalize_order(rec, order_id=str(key)))
    else:
        for rec in as_record_list(raws):
            if isinstance(rec, dict):
                orders.append(normalize_order(rec))

    orders.sort(key=_sort_key, reverse=True)
    return orders


def get_order_details(raw: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Display summary for an order: the canonical order plus per-line subtotals
    and the subtotal / deliveryFee / discount breakdown.
    """
    if raw is None:
        return None

    order = normalize_order(raw)
    items = [dict(line, subtotal=line_subtotal(line)) for line in order["items"]]
    subtotal = order_subtotal(order["items"])

    raw = raw if isinstance(raw, dict) else {}
    delivery_fee = coerce_price(raw.get("deliveryFee"))
    discount = coerce_price(raw.get("discount"))

    return {
        "id": order.get("id", ""),
        "customerName": order["customerName"],
        "phoneNumber": order["phoneNumber"],
        "address": order["address"],
        "email": order["email"],
        "items": items,
        "subtotal": subtotal,
        "deliveryFee": delivery_fee,
        "discount": discount,
        "total": order["totalAmount"],
        "status": order["status"],
        "createdAt": order["createdAt"],
        "paymentMethod": order["paymentMethod"],
    }
