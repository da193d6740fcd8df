# fruitfusion/reports.py
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from fruitfusion.normalize import line_subtotal, normalize_order
from fruitfusion.schemas import ORDER_STATUSES
from fruitfusion.time_utils import parse_timestamp

LINE_COLUMNS = [
    "order_id",
    "user_id",
    "status",
    "created_at",
    "name",
    "price",
    "quantity",
    "subtotal",
    "total_amount",
]

ORDER_COLUMNS = ["order_id", "user_id", "status", "created_at", "total_amount", "item_count"]


def _ts(value: Any) -> pd.Timestamp:
    dt = parse_timestamp(value)
    return pd.Timestamp(dt) if dt is not None else pd.NaT


def orders_to_frame(orders: Iterable[Dict[str, Any]]) -> pd.DataFrame:
    """
    One row per order line. Orders are normalized first, so raw snapshots are fine.

    Columns: order_id, user_id, status, created_at (UTC), name, price,
    quantity, subtotal, total_amount (the order's total, repeated per line).
    """
    rows: List[Dict[str, Any]] = []
    for raw in orders or []:
        o = normalize_order(raw)
        for line in o["items"]:
            rows.append(
                {
                    "order_id": o.get("id", ""),
                    "user_id": o["userId"],
                    "status": o["status"],
                    "created_at": _ts(o["createdAt"]),
                    "name": line["name"],
                    "price": float(line["price"]),
                    "quantity": int(line["quantity"]),
                    "subtotal": float(line_subtotal(line)),
                    "total_amount": float(o["totalAmount"]),
                }
            )
    return pd.DataFrame(rows, columns=LINE_COLUMNS)


def order_totals_frame(orders: Iterable[Dict[str, Any]]) -> pd.DataFrame:
    """One row per order (orders without lines included)."""
    rows = []
    for raw in orders or []:
        o = normalize_order(raw)
        rows.append(
            {
                "order_id": o.get("id", ""),
                "user_id": o["userId"],
                "status": o["status"],
                "created_at": _ts(o["createdAt"]),
                "total_amount": float(o["totalAmount"]),
                "item_count": sum(int(line["quantity"]) for line in o["items"]),
            }
        )
    return pd.DataFrame(rows, columns=ORDER_COLUMNS)


def _in_window(df: pd.DataFrame, start: Any = None, end: Any = None) -> pd.DataFrame:
    if df.empty:
        return df
    mask = pd.Series(True, index=df.index)
    if start is not None:
        mask &= df["created_at"] >= _ts(start)
    if end is not None:
        mask &= df["created_at"] <= _ts(end)
    return df[mask]


def status_counts(orders: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    """Count per status; every known status is present, even at 0."""
    counts = {s: 0 for s in ORDER_STATUSES}
    for raw in orders or []:
        counts[normalize_order(raw)["status"]] += 1
    return counts


def sales_summary(
    orders: Iterable[Dict[str, Any]],
    start: Optional[Any] = None,
    end: Optional[Any] = None,
    top_n: int = 5,
) -> Dict[str, Any]:
    """
    Dashboard figures for orders created in [start, end].

    Revenue excludes Cancelled orders; so do top_items and the average.
    """
    orders = list(orders or [])
    totals = _in_window(order_totals_frame(orders), start, end)
    lines = _in_window(orders_to_frame(orders), start, end)

    by_status = {s: 0 for s in ORDER_STATUSES}
    if not totals.empty:
        for status, n in totals["status"].value_counts().items():
            by_status[str(status)] = int(n)

    billable = totals[totals["status"] != "Cancelled"] if not totals.empty else totals
    revenue = float(billable["total_amount"].sum()) if not billable.empty else 0.0
    billable_count = int(len(billable))

    top_items: List[Dict[str, Any]] = []
    sold = lines[lines["status"] != "Cancelled"] if not lines.empty else lines
    if not sold.empty:
        grouped = (
            sold.groupby("name", dropna=False)
            .agg(quantity=("quantity", "sum"), revenue=("subtotal", "sum"))
            .reset_index()
            .sort_values(["quantity", "revenue"], ascending=[False, False])
            .head(top_n)
        )
        top_items = [
            {"name": str(r["name"]), "quantity": int(r["quantity"]), "revenue": float(r["revenue"])}
            for _, r in grouped.iterrows()
        ]

    return {
        "revenue": revenue,
        "order_count": int(len(totals)),
        "by_status": by_status,
        "top_items": top_items,
        "average_order_value": (revenue / billable_count) if billable_count else 0.0,
    }
