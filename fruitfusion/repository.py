# fruitfusion/repository.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import uuid4

from fruitfusion.config import Settings
from fruitfusion.errors import HostedStoreError, RepositoryError
from fruitfusion.hosted_store import HostedStore
from fruitfusion.local_cache import LocalCache
from fruitfusion.normalize import (
    coerce_price,
    normalize_category,
    normalize_order,
    normalize_orders,
    normalize_product,
    visible_products,
)
from fruitfusion.outbox import Outbox
from fruitfusion.schemas import (
    CACHE_CATEGORIES,
    CACHE_ORDERS,
    CACHE_PRODUCTS,
    CACHE_USERS,
    CATEGORY,
    ORDER,
    ORDER_STATUSES,
    PRODUCT,
    USER,
)
from fruitfusion.time_utils import utc_now_iso

logger = logging.getLogger(__name__)

Where = Optional[Tuple[str, Any]]


# -------------------------------
# Results
# -------------------------------
@dataclass
class ReadResult:
    data: Any
    source: str = "live"  # "live" | "cache"
    error: str = ""

    @property
    def offline(self) -> bool:
        return self.source == "cache"


@dataclass
class WriteResult:
    ok: bool
    id: str = ""
    offline: bool = False
    data: Optional[Dict[str, Any]] = None
    error: str = ""

    @property
    def message(self) -> str:
        if not self.ok:
            return self.error or "Operation failed"
        return "Saved offline" if self.offline else "Saved"


def _noop_unsubscribe() -> None:
    return None


def _identity(record: Any, record_id: Optional[str] = None) -> Dict[str, Any]:
    rec = dict(record) if isinstance(record, dict) else {}
    if record_id is not None:
        rec["id"] = str(record_id)
    return rec


# -------------------------------
# Base repository
# -------------------------------
class CollectionRepository:
    """
    One hosted-store collection with a local-cache fallback.

    Reads: hosted store first; on HostedStoreError or an empty result, the copy
    cached by the last successful read. Writes: hosted store first; on failure
    the change is applied to the cache, journaled in the outbox, and reported
    as saved offline.
    """

    def __init__(
        self,
        store: Optional[HostedStore],
        cache: LocalCache,
        outbox: Optional[Outbox] = None,
        *,
        collection: str,
        cache_key: str,
        normalizer: Callable[..., Dict[str, Any]] = _identity,
    ):
        self.store = store
        self.cache = cache
        self.outbox = outbox or Outbox(cache)
        self.collection = collection
        self.cache_key = cache_key
        self.normalizer = normalizer

    # ----------------------------
    # Helpers
    # ----------------------------
    def _require_store(self) -> HostedStore:
        if self.store is None:
            raise HostedStoreError("Hosted store is not configured", path=self.collection)
        return self.store

    def _path(self, record_id: str) -> str:
        return f"{self.collection}/{record_id}"

    def _from_snapshot(self, snapshot: Any) -> List[Dict[str, Any]]:
        records: List[Dict[str, Any]] = []
        if isinstance(snapshot, dict):
            items = snapshot.items()
        elif isinstance(snapshot, list):
            items = ((str(i), v) for i, v in enumerate(snapshot))
        else:
            return records
        for key, value in items:
            if value is None:
                continue
            records.append(self.normalizer(value, str(key)))
        return records

    def _cached(self, where: Where = None) -> List[Dict[str, Any]]:
        raw = self.cache.get_json(self.cache_key, [])
        if not isinstance(raw, list):
            return []
        records = [self.normalizer(r) for r in raw if isinstance(r, dict)]
        if where is not None:
            field_name, value = where
            records = [r for r in records if r.get(field_name) == value]
        return records

    def _write_cache(self, records: List[Dict[str, Any]]) -> None:
        self.cache.set_json(self.cache_key, records)

    def _upsert_cache(self, records: List[Dict[str, Any]]) -> None:
        by_id = {r.get("id"): r for r in records if r.get("id")}
        merged = []
        for r in self._cached():
            rid = r.get("id")
            merged.append(by_id.pop(rid) if rid in by_id else r)
        merged.extend(by_id.values())
        self._write_cache(merged)

    def _find_cached(self, record_id: str) -> Optional[Dict[str, Any]]:
        for r in self._cached():
            if r.get("id") == record_id:
                return r
        return None

    def _fallback(self, error: Exception, where: Where = None) -> ReadResult:
        cached = self._cached(where)
        logger.warning(
            "Reading %s from hosted store failed (%s); using %d cached record(s)",
            self.collection,
            error,
            len(cached),
        )
        return ReadResult(cached, source="cache", error=str(error))

    def _live_or_cached(self, records: List[Dict[str, Any]], where: Where) -> ReadResult:
        if records:
            if where is None:
                self._write_cache(records)
            else:
                self._upsert_cache(records)
            return ReadResult(records)

        cached = self._cached(where)
        if cached:
            logger.warning("Hosted store returned no %s; using %d cached record(s)", self.collection, len(cached))
            return ReadResult(cached, source="cache")
        return ReadResult([])

    def _queue_offline(self, kind: str, record_id: str, value: Any, error: Exception) -> None:
        logger.warning("Writing %s failed (%s); saving offline", self._path(record_id), error)
        self.outbox.enqueue(kind, self._path(record_id), value)

    # ----------------------------
    # Reads
    # ----------------------------
    def list(self, where: Where = None) -> ReadResult:
        try:
            store = self._require_store()
            if where is None:
                snapshot = store.get(self.collection)
            else:
                snapshot = store.query(self.collection, where[0], where[1])
        except HostedStoreError as e:
            return self._fallback(e, where)
        return self._live_or_cached(self._from_snapshot(snapshot), where)

    def get(self, record_id: str) -> ReadResult:
        record_id = str(record_id or "").strip()
        if not record_id:
            return ReadResult(None)
        try:
            value = self._require_store().get(self._path(record_id))
        except HostedStoreError as e:
            logger.warning("Reading %s failed (%s); checking cache", self._path(record_id), e)
            return ReadResult(self._find_cached(record_id), source="cache", error=str(e))

        if value is None:
            cached = self._find_cached(record_id)
            return ReadResult(cached, source="cache") if cached else ReadResult(None)
        return ReadResult(self.normalizer(value, record_id))

    def subscribe(self, on_result: Callable[[ReadResult], None], where: Where = None) -> Callable[[], None]:
        """
        Live listener. on_result gets a ReadResult per change; on stream errors
        it gets the cached copy flagged offline. Returns the unsubscribe callable.
        """
        def _on_value(snapshot: Any) -> None:
            on_result(self._live_or_cached(self._from_snapshot(snapshot), where))

        def _on_error(exc: HostedStoreError) -> None:
            on_result(self._fallback(exc, where))

        if self.store is None:
            _on_error(HostedStoreError("Hosted store is not configured", path=self.collection))
            return _noop_unsubscribe

        if where is None:
            return self.store.subscribe(self.collection, _on_value, _on_error)
        return self.store.subscribe(self.collection, _on_value, _on_error, order_by_child=where[0], equal_to=where[1])

    # ----------------------------
    # Writes
    # ----------------------------
    def add(self, raw: Dict[str, Any]) -> WriteResult:
        record = self.normalizer(raw)
        record.pop("id", None)
        try:
            record_id = self._require_store().push(self.collection, record)
        except HostedStoreError as e:
            record_id = f"offline-{uuid4().hex[:20]}"
            record["id"] = record_id
            self._upsert_cache([record])
            self._queue_offline("set", record_id, record, e)
            return WriteResult(True, id=record_id, offline=True, data=record)

        record["id"] = record_id
        self._upsert_cache([record])
        logger.info("Created %s", self._path(record_id))
        return WriteResult(True, id=record_id, data=record)

    def update(self, record_id: str, partial: Dict[str, Any]) -> WriteResult:
        record_id = str(record_id or "").strip()
        if not record_id:
            raise ValueError("record_id is required")

        cached = self._find_cached(record_id)
        try:
            store = self._require_store()
            store.update(self._path(record_id), partial)
        except HostedStoreError as e:
            if cached is None:
                raise RepositoryError(f"Could not update {self._path(record_id)}: {e}") from e
            merged = self.normalizer({**cached, **partial}, record_id)
            self._upsert_cache([merged])
            self._queue_offline("update", record_id, partial, e)
            return WriteResult(True, id=record_id, offline=True, data=merged)

        if cached is not None:
            merged = self.normalizer({**cached, **partial}, record_id)
            self._upsert_cache([merged])
            return WriteResult(True, id=record_id, data=merged)

        # not cached: partial alone is not a record, read back the stored one
        try:
            stored = store.get(self._path(record_id))
        except HostedStoreError as e:
            logger.warning("Updated %s but could not read it back: %s", self._path(record_id), e)
            return WriteResult(True, id=record_id)
        if stored is None:
            return WriteResult(True, id=record_id)
        merged = self.normalizer(stored, record_id)
        self._upsert_cache([merged])
        return WriteResult(True, id=record_id, data=merged)

    def remove(self, record_id: str) -> WriteResult:
        record_id = str(record_id or "").strip()
        if not record_id:
            raise ValueError("record_id is required")

        cached = self._find_cached(record_id)
        try:
            self._require_store().remove(self._path(record_id))
        except HostedStoreError as e:
            if cached is None:
                raise RepositoryError(f"Could not delete {self._path(record_id)}: {e}") from e
            self._drop_cached(record_id)
            self._queue_offline("remove", record_id, None, e)
            return WriteResult(True, id=record_id, offline=True)

        self._drop_cached(record_id)
        logger.info("Deleted %s", self._path(record_id))
        return WriteResult(True, id=record_id)

    def _drop_cached(self, record_id: str) -> None:
        self._write_cache([r for r in self._cached() if r.get("id") != record_id])

    # ----------------------------
    # Offline sync
    # ----------------------------
    def sync_offline_changes(self) -> Optional[int]:
        """Replay offline writes once the store answers. None if still offline."""
        if self.store is None or not self.store.ping():
            logger.info("Hosted store still unavailable; %d offline change(s) kept", len(self.outbox))
            return None
        return self.outbox.replay(self.store)


# -------------------------------
# Orders
# -------------------------------
def _order_where(user_id: Optional[str]) -> Where:
    uid = str(user_id or "").strip()
    if not uid or uid == "admin":
        return None
    return ("userId", uid)


class OrderRepository(CollectionRepository):
    def __init__(self, store: Optional[HostedStore], cache: LocalCache, outbox: Optional[Outbox] = None):
        super().__init__(
            store,
            cache,
            outbox,
            collection=ORDER.path,
            cache_key=CACHE_ORDERS,
            normalizer=normalize_order,
        )

    def _from_snapshot(self, snapshot: Any) -> List[Dict[str, Any]]:
        return normalize_orders(snapshot)

    def _cached(self, where: Where = None) -> List[Dict[str, Any]]:
        # keep newest-first on every read path
        return normalize_orders(super()._cached(where))

    def list_orders(self, user_id: Optional[str] = None) -> ReadResult:
        """All orders for the admin view (user_id None/'admin'), else one customer's."""
        return self.list(_order_where(user_id))

    def get_order(self, order_id: str) -> ReadResult:
        return self.get(order_id)

    def subscribe_orders(self, on_result: Callable[[ReadResult], None], user_id: Optional[str] = None) -> Callable[[], None]:
        return self.subscribe(on_result, _order_where(user_id))

    def place_order(self, raw: Dict[str, Any]) -> WriteResult:
        raw = dict(raw or {})
        raw.setdefault("createdAt", utc_now_iso())
        result = self.add(raw)
        logger.info(
            "Order %s placed%s: %d item(s), total %s",
            result.id,
            " offline" if result.offline else "",
            len((result.data or {}).get("items", [])),
            (result.data or {}).get("totalAmount"),
        )
        return result

    def update_order_status(self, order_id: str, status: str) -> WriteResult:
        status = str(status or "").strip()
        if status not in ORDER_STATUSES:
            raise ValueError(f"Unknown order status {status!r}; expected one of {ORDER_STATUSES}")
        return self.update(order_id, {"status": status, "updatedAt": utc_now_iso()})


# -------------------------------
# Catalog + users
# -------------------------------
class ProductRepository(CollectionRepository):
    def __init__(self, store: Optional[HostedStore], cache: LocalCache, outbox: Optional[Outbox] = None):
        super().__init__(
            store,
            cache,
            outbox,
            collection=PRODUCT.path,
            cache_key=CACHE_PRODUCTS,
            normalizer=normalize_product,
        )

    def list_products(self, visible_only: bool = False) -> ReadResult:
        result = self.list()
        if visible_only:
            result.data = visible_products(result.data)
        return result

    def add_product(self, raw: Dict[str, Any]) -> WriteResult:
        return self.add({**raw, "isVisible": True, "createdAt": utc_now_iso()})

    def update_product(self, product_id: str, partial: Dict[str, Any]) -> WriteResult:
        partial = dict(partial)
        if "price" in partial:
            partial["price"] = coerce_price(partial["price"])
        partial["updatedAt"] = utc_now_iso()
        return self.update(product_id, partial)

    def delete_product(self, product_id: str) -> WriteResult:
        return self.remove(product_id)


class CategoryRepository(CollectionRepository):
    def __init__(self, store: Optional[HostedStore], cache: LocalCache, outbox: Optional[Outbox] = None):
        super().__init__(
            store,
            cache,
            outbox,
            collection=CATEGORY.path,
            cache_key=CACHE_CATEGORIES,
            normalizer=normalize_category,
        )

    def add_category(self, category: Any) -> WriteResult:
        raw = category if isinstance(category, dict) else {"name": str(category or "").strip()}
        if not str(raw.get("name") or "").strip():
            raise ValueError("Category name is required")
        return self.add(raw)


class UserRepository(CollectionRepository):
    def __init__(self, store: Optional[HostedStore], cache: LocalCache, outbox: Optional[Outbox] = None):
        super().__init__(store, cache, outbox, collection=USER.path, cache_key=CACHE_USERS)

    def add_user(self, raw: Dict[str, Any]) -> WriteResult:
        return self.add({**raw, "createdAt": raw.get("createdAt") or utc_now_iso()})


# -------------------------------
# Wiring
# -------------------------------
@dataclass
class Repositories:
    store: Optional[HostedStore]
    cache: LocalCache
    outbox: Outbox
    orders: OrderRepository
    products: ProductRepository
    categories: CategoryRepository
    users: UserRepository

    @property
    def online(self) -> bool:
        return self.store is not None and self.store.ping()

    def sync_offline_changes(self) -> Optional[int]:
        return self.orders.sync_offline_changes()


def build_repositories(settings: Settings, store: Optional[HostedStore] = None) -> Repositories:
    """Wire one hosted store, one cache file and one shared outbox."""
    if store is None and settings.has_database:
        store = HostedStore.from_settings(settings)
    if store is None:
        logger.warning("FF_DATABASE_URL is not set; running from the local cache only")

    cache = LocalCache(Path(settings.cache_path))
    outbox = Outbox(cache)
    return Repositories(
        store=store,
        cache=cache,
        outbox=outbox,
        orders=OrderRepository(store, cache, outbox),
        products=ProductRepository(store, cache, outbox),
        categories=CategoryRepository(store, cache, outbox),
        users=UserRepository(store, cache, outbox),
    )
