# fruitfusion/normalize_utils.py
from __future__ import annotations

import math
import re
from typing import Any, Optional

_ABBREV_DOT_RE = re.compile(r"(?<=[A-Za-z])\.")
_NON_NUMERIC_RE = re.compile(r"[^\d.-]")
_NON_DIGIT_RE = re.compile(r"\D")
_LEADING_NUMBER_RE = re.compile(r"-?(?:\d+(?:\.\d*)?|\.\d+)")


def is_number(value: Any) -> bool:
    """True for real ints/floats. bool is excluded even though it subclasses int."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_currency(value: Any) -> Optional[float]:
    """
    Extract the number embedded in a currency-formatted value.

      "Rs 1,250"  -> 1250.0
      "Rs 1 250"  -> 1250.0
      "Rs. 300"   -> 300.0
      "PKR -20.5" -> -20.5
      "free"      -> None

    A dot closing an abbreviation ("Rs.") is dropped first. Then every
    character other than a digit, "-" or "." is stripped and the leading
    number of what remains is parsed ("1.2.3" -> 1.2).
    """
    if value is None or isinstance(value, bool):
        return None
    if is_number(value):
        v = float(value)
        return v if math.isfinite(v) else None

    s = _ABBREV_DOT_RE.sub("", str(value))
    s = _NON_NUMERIC_RE.sub("", s)
    m = _LEADING_NUMBER_RE.match(s)
    if not m:
        return None
    try:
        v = float(m.group(0))
    except ValueError:
        return None
    return v if math.isfinite(v) else None


def coerce_price(value: Any) -> float | int:
    """Finite, non-negative price. Unparseable input becomes 0."""
    if is_number(value):
        if not math.isfinite(value):
            return 0
        return value if value > 0 else 0

    parsed = parse_currency(value)
    if parsed is None or parsed <= 0:
        return 0
    return parsed


def coerce_quantity(value: Any) -> int:
    """
    Integer quantity >= 1. Numbers are truncated; strings keep only their
    digits ("1,000" -> 1000, "2 pcs" -> 2). Anything else becomes 1.
    """
    if is_number(value):
        if not math.isfinite(value):
            return 1
        return max(1, int(value))

    if value is None:
        return 1
    digits = _NON_DIGIT_RE.sub("", str(value))
    return max(1, int(digits)) if digits else 1


def coerce_non_negative_int(value: Any, default: int = 0) -> int:
    if is_number(value):
        return max(0, int(value)) if math.isfinite(value) else default
    parsed = parse_currency(value)
    if parsed is None:
        return default
    return max(0, int(parsed))


def clean_str(value: Any, default: str = "") -> str:
    """Stripped string, or default when value is None/blank."""
    if value is None:
        return default
    s = str(value).strip()
    return s if s else default


def first_present(record: dict, keys: list[str], default: str = "") -> str:
    """First non-blank string among record[k] for k in keys."""
    for k in keys:
        s = clean_str(record.get(k))
        if s:
            return s
    return default


def image_uri(value: Any) -> Optional[str]:
    """Images are stored as a URI string; pickers sometimes hand back {"uri": ...}."""
    if isinstance(value, str):
        return value or None
    if isinstance(value, dict):
        uri = value.get("uri")
        return uri if isinstance(uri, str) and uri else None
    return None


def as_record_list(value: Any) -> list:
    """
    Records as a list.

    The realtime database returns arrays as lists, but sparse arrays and pushed
    children come back as dicts keyed by index or push id.
    """
    if isinstance(value, list):
        return [v for v in value if v is not None]
    if isinstance(value, dict):
        keys = list(value.keys())
        if keys and all(str(k).isdigit() for k in keys):
            keys.sort(key=lambda k: int(k))
        return [value[k] for k in keys if value[k] is not None]
    return []
