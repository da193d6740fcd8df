# app.py
from __future__ import annotations

import hmac
import logging

import pandas as pd
import streamlit as st

from fruitfusion.config import load_settings
from fruitfusion.errors import RepositoryError
from fruitfusion.logger import setup_logger
from fruitfusion.normalize import get_order_details
from fruitfusion.reports import order_totals_frame, sales_summary
from fruitfusion.repository import build_repositories
from fruitfusion.schemas import ORDER_STATUSES

settings = load_settings()
setup_logger(settings)
logger = logging.getLogger("fruitfusion.console")

_ACCESS_OK_FLAG = "_ff_admin_access_ok"


# -------------------------------
# Access gate
# -------------------------------
def require_admin_access_gate(key: str = "auth_admin_access_code") -> None:
    """
    Admin gate against FF_ADMIN_ACCESS_CODE.

    Idempotent per session. With no code configured the console stays closed.
    """
    if st.session_state.get(_ACCESS_OK_FLAG, False):
        return

    expected = settings.admin_access_code
    if not expected:
        st.error("FF_ADMIN_ACCESS_CODE is not set. The admin console is disabled.")
        st.stop()

    st.subheader("Admin access")
    code = st.text_input("Enter admin access code", type="password", key=key)
    if not hmac.compare_digest(code.encode("utf-8"), expected.encode("utf-8")):
        if code:
            logger.warning("Rejected admin access code")
        st.info("Enter the admin access code to continue.")
        st.stop()

    st.session_state[_ACCESS_OK_FLAG] = True


@st.cache_resource
def get_repositories():
    return build_repositories(settings)


# -------------------------------
# Page
# -------------------------------
st.set_page_config(page_title="Fruit Fusion Admin", layout="wide")
st.title("Fruit Fusion Admin")
st.caption("Orders, status updates and sales in one place.")

require_admin_access_gate()

repos = get_repositories()

with st.sidebar:
    st.header("Sync")
    pending = len(repos.outbox)
    st.caption(f"{pending} offline change(s) waiting")
    if st.button("Sync offline changes", use_container_width=True, disabled=pending == 0):
        applied = repos.sync_offline_changes()
        if applied is None:
            st.warning("Still offline. Changes are kept on this device.")
        else:
            st.success(f"Synced {applied} change(s).")

    st.header("Filters")
    status_filter = st.multiselect("Status", ORDER_STATUSES, default=[])
    date_range = st.date_input("Created between", value=())

result = repos.orders.list_orders("admin")
orders = result.data or []

if result.offline:
    st.warning("Offline: showing the last saved copy. Changes will sync when the connection returns.")
    if result.error:
        st.caption(result.error)

# -------------------------------
# Sales summary
# -------------------------------
start = end = None
if isinstance(date_range, (list, tuple)) and len(date_range) == 2:
    start = pd.Timestamp(date_range[0], tz="UTC")
    end = pd.Timestamp(date_range[1], tz="UTC") + pd.Timedelta(days=1) - pd.Timedelta(milliseconds=1)

summary = sales_summary(orders, start=start, end=end)

k1, k2, k3, k4 = st.columns(4)
k1.metric("Revenue (Rs)", f"{summary['revenue']:,.0f}")
k2.metric("Orders", summary["order_count"])
k3.metric("Average order (Rs)", f"{summary['average_order_value']:,.0f}")
k4.metric("Delivered", summary["by_status"].get("Delivered", 0))

if summary["top_items"]:
    st.subheader("Top items")
    st.dataframe(pd.DataFrame(summary["top_items"]), use_container_width=True, height=220)

# -------------------------------
# Orders
# -------------------------------
st.subheader("Orders")
table = order_totals_frame(orders)
if status_filter and not table.empty:
    table = table[table["status"].isin(status_filter)]

if table.empty:
    st.info("No orders yet.")
    st.stop()

st.dataframe(table, use_container_width=True, height=420)

by_id = {o.get("id"): o for o in orders if o.get("id")}
chosen = st.selectbox("Order", table["order_id"].tolist(), key="ff_order_select")
details = get_order_details(by_id.get(chosen))

if details:
    c1, c2 = st.columns(2)
    with c1:
        st.markdown(f"**{details['customerName']}** · {details['phoneNumber']}")
        st.caption(details["address"])
        st.dataframe(pd.DataFrame(details["items"]), use_container_width=True, height=200)
        st.caption(
            f"Subtotal Rs {details['subtotal']:,.0f} · Delivery Rs {details['deliveryFee']:,.0f} · "
            f"Total Rs {details['total']:,.0f}"
        )
    with c2:
        current = details["status"]
        new_status = st.selectbox("Status", ORDER_STATUSES, index=ORDER_STATUSES.index(current), key=f"ff_status_{chosen}")
        if st.button("Update status", use_container_width=True, disabled=new_status == current):
            try:
                write = repos.orders.update_order_status(chosen, new_status)
            except RepositoryError as e:
                st.error(str(e))
                st.stop()
            if write.offline:
                st.warning(f"{write.message}. It will sync when the connection returns.")
            else:
                st.success(f"Order {chosen} is now {new_status}.")
