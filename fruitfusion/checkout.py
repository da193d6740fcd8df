# fruitfusion/checkout.py
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from fruitfusion.config import Settings, load_settings
from fruitfusion.errors import CheckoutValidationError
from fruitfusion.normalize import normalize_line, order_subtotal
from fruitfusion.schemas import DEFAULT_PAYMENT_METHOD, DEFAULT_STATUS, DEFAULT_USER_ID, PAYMENT_METHODS
from fruitfusion.time_utils import utc_now_iso

logger = logging.getLogger(__name__)

PHONE_RE = re.compile(r"^03[0-9]{9}$")


def validate_checkout(
    name: str,
    phone: str,
    address: str,
    payment_method: str = DEFAULT_PAYMENT_METHOD,
    settings: Optional[Settings] = None,
) -> None:
    """Raise CheckoutValidationError for the first field that fails."""
    settings = settings or load_settings()
    name = (name or "").strip()
    phone = (phone or "").strip()
    address = (address or "").strip()

    if not name:
        raise CheckoutValidationError("Missing Information", "Please enter your name.")

    if not PHONE_RE.match(phone):
        raise CheckoutValidationError(
            "Invalid Phone Number",
            "Please enter a valid Pakistani phone number (03xxxxxxxxx).",
        )

    if not address:
        raise CheckoutValidationError("Missing Information", "Please enter your delivery address.")

    city, country = settings.delivery_city, settings.delivery_country
    lowered = address.lower()
    if city.lower() not in lowered or country.lower() not in lowered:
        raise CheckoutValidationError(
            "Invalid Address",
            f"We only deliver to {city}, {country}. Please update your address.",
        )

    if (payment_method or "").strip() not in PAYMENT_METHODS:
        raise CheckoutValidationError(
            "Payment Method",
            f"Only {DEFAULT_PAYMENT_METHOD} is available.",
        )


def build_order(
    user_id: Optional[str],
    name: str,
    phone: str,
    address: str,
    items: List[Dict[str, Any]],
    settings: Optional[Settings] = None,
) -> Dict[str, Any]:
    """Raw order for a validated basket: subtotal + delivery fee = totalAmount."""
    settings = settings or load_settings()
    lines = [normalize_line(item) for item in (items or []) if isinstance(item, dict)]
    if not lines:
        raise CheckoutValidationError("Empty Basket", "Add some items to your basket before checkout.")

    subtotal = order_subtotal(lines)
    fee = max(0, settings.delivery_fee)
    return {
        "userId": (user_id or "").strip() or DEFAULT_USER_ID,
        "customerName": name.strip(),
        "phoneNumber": phone.strip(),
        "address": address.strip(),
        "items": lines,
        "subtotal": subtotal,
        "deliveryFee": fee,
        "totalAmount": subtotal + fee,
        "paymentMethod": DEFAULT_PAYMENT_METHOD,
        "status": DEFAULT_STATUS,
        "createdAt": utc_now_iso(),
    }


def place_checkout(
    repo,
    user_id: Optional[str],
    name: str,
    phone: str,
    address: str,
    items: List[Dict[str, Any]],
    payment_method: str = DEFAULT_PAYMENT_METHOD,
    settings: Optional[Settings] = None,
):
    """Validate, build and place an order through an OrderRepository."""
    settings = settings or load_settings()
    validate_checkout(name, phone, address, payment_method, settings=settings)
    order = build_order(user_id, name, phone, address, items, settings=settings)
    result = repo.place_order(order)
    logger.info("Checkout for %s -> order %s (offline=%s)", order["userId"], result.id, result.offline)
    return result
