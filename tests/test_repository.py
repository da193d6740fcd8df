from __future__ import annotations

import pytest

from fruitfusion.errors import HostedStoreError, RepositoryError
from fruitfusion.repository import (
    CategoryRepository,
    OrderRepository,
    ProductRepository,
    UserRepository,
    build_repositories,
)


@pytest.fixture
def orders_repo(store, cache, outbox, raw_orders):
    store.data = {"orders": raw_orders}
    return OrderRepository(store, cache, outbox)


# -------------------------------
# Reads
# -------------------------------
def test_live_read_normalizes_and_caches(orders_repo, cache):
    result = orders_repo.list_orders()
    assert result.source == "live" and not result.offline
    assert [o["id"] for o in result.data] == ["o2", "o3", "o1"]
    assert result.data[0]["totalAmount"] == 350
    assert [o["id"] for o in cache.get_json("orders")] == ["o2", "o3", "o1"]


def test_failed_read_falls_back_to_cache(orders_repo, store):
    orders_repo.list_orders()
    store.online = False
    result = orders_repo.list_orders()
    assert result.offline
    assert result.error
    assert [o["id"] for o in result.data] == ["o2", "o3", "o1"]


def test_empty_live_read_falls_back_to_cache(orders_repo, store):
    orders_repo.list_orders()
    store.data = {}
    result = orders_repo.list_orders()
    assert result.source == "cache"
    assert len(result.data) == 3


def test_failed_read_with_empty_cache_is_empty(store, cache, outbox):
    store.online = False
    result = OrderRepository(store, cache, outbox).list_orders()
    assert result.offline and result.data == []


def test_customer_orders_are_queried_by_user(orders_repo, store):
    result = orders_repo.list_orders("u1")
    assert [o["id"] for o in result.data] == ["o3", "o1"]
    assert ("query", "orders") in store.calls


def test_admin_sees_every_order(orders_repo, store):
    assert len(orders_repo.list_orders("admin").data) == 3
    assert ("query", "orders") not in store.calls


def test_customer_fallback_filters_the_cache(orders_repo, store):
    orders_repo.list_orders()
    store.online = False
    result = orders_repo.list_orders("u2")
    assert result.offline
    assert [o["id"] for o in result.data] == ["o2"]


def test_get_order_live_and_cached(orders_repo, store):
    assert orders_repo.get_order("o1").data["customerName"] == "Ayesha"
    orders_repo.list_orders()
    store.online = False
    cached = orders_repo.get_order("o1")
    assert cached.offline and cached.data["id"] == "o1"
    assert orders_repo.get_order("missing").data is None


def test_repository_without_store_uses_cache_only(cache, outbox):
    cache.set_json("orders", [{"id": "o9", "items": [], "createdAt": "2024-01-01T00:00:00.000Z"}])
    result = OrderRepository(None, cache, outbox).list_orders()
    assert result.offline
    assert [o["id"] for o in result.data] == ["o9"]


# -------------------------------
# Writes
# -------------------------------
def test_place_order_online(orders_repo, store):
    result = orders_repo.place_order({"items": [{"name": "Kiwi", "price": 40, "quantity": 2}]})
    assert result.ok and not result.offline
    assert result.id.startswith("-key")
    stored = store.data["orders"][result.id]
    assert stored["totalAmount"] == 80
    assert "id" not in stored
    assert result.data["id"] == result.id


def test_place_order_offline_is_cached_and_queued(orders_repo, store, outbox):
    store.online = False
    result = orders_repo.place_order({"items": [{"name": "Kiwi", "price": 40}]})
    assert result.ok and result.offline
    assert result.id.startswith("offline-")
    assert result.message == "Saved offline"

    ops = outbox.pending()
    assert [(op.kind, op.path) for op in ops] == [("set", f"orders/{result.id}")]

    listed = orders_repo.list_orders()
    assert listed.offline
    assert result.id in [o["id"] for o in listed.data]


def test_offline_order_syncs_when_back_online(orders_repo, store, outbox):
    store.online = False
    placed = orders_repo.place_order({"items": [{"name": "Kiwi", "price": 40}]})
    assert orders_repo.sync_offline_changes() is None
    assert len(outbox) == 1

    store.online = True
    assert orders_repo.sync_offline_changes() == 1
    assert len(outbox) == 0
    assert store.data["orders"][placed.id]["totalAmount"] == 40


def test_update_order_status_stamps_updated_at(orders_repo, store):
    orders_repo.list_orders()
    result = orders_repo.update_order_status("o2", "Out for Delivery")
    assert not result.offline
    assert store.data["orders"]["o2"]["status"] == "Out for Delivery"
    assert store.data["orders"]["o2"]["updatedAt"] != "2024-05-03T09:30:00.000Z"


def test_update_of_uncached_order_returns_the_stored_record(store, cache, outbox):
    store.data = {
        "orders": {
            "o9": {
                "customerName": "Bilal",
                "items": [{"name": "Grapes", "price": 100, "quantity": 2}],
                "totalAmount": 200,
                "createdAt": "2024-05-04T12:00:00.000Z",
            }
        }
    }
    repo = OrderRepository(store, cache, outbox)
    result = repo.update_order_status("o9", "Delivered")
    assert not result.offline
    assert result.data["totalAmount"] == 200
    assert result.data["customerName"] == "Bilal"
    assert result.data["status"] == "Delivered"
    assert repo.get_order("o9").data["status"] == "Delivered"
    assert [o["id"] for o in cache.get_json("orders")] == ["o9"]


def test_update_order_status_rejects_unknown_status(orders_repo):
    with pytest.raises(ValueError):
        orders_repo.update_order_status("o1", "Teleported")


def test_update_offline_changes_cache(orders_repo, store, outbox):
    orders_repo.list_orders()
    store.online = False
    result = orders_repo.update_order_status("o1", "Cancelled")
    assert result.offline
    assert result.data["status"] == "Cancelled"
    assert orders_repo.get_order("o1").data["status"] == "Cancelled"
    assert outbox.pending()[0].kind == "update"


def test_update_fails_when_store_and_cache_miss(orders_repo, store):
    store.online = False
    with pytest.raises(RepositoryError):
        orders_repo.update_order_status("o1", "Delivered")


def test_delete_offline_and_permanent_failure(store, cache, outbox):
    store.data = {"products": {"p1": {"name": "Mango", "price": 300}}}
    repo = ProductRepository(store, cache, outbox)
    repo.list_products()

    store.online = False
    result = repo.delete_product("p1")
    assert result.offline
    assert repo.list_products().data == []

    with pytest.raises(RepositoryError):
        repo.delete_product("p1")


def test_delete_online_removes_from_store_and_cache(store, cache, outbox):
    store.data = {"products": {"p1": {"name": "Mango"}, "p2": {"name": "Apple"}}}
    repo = ProductRepository(store, cache, outbox)
    repo.list_products()
    repo.delete_product("p1")
    assert "p1" not in store.data["products"]
    assert [p["id"] for p in cache.get_json("products")] == ["p2"]


# -------------------------------
# Subscriptions
# -------------------------------
def test_subscribe_delivers_normalized_results(orders_repo, store, raw_orders):
    seen = []
    unsubscribe = orders_repo.subscribe_orders(seen.append, user_id="u1")
    sub = store.subscriptions[0]
    assert sub["where"] == ("userId", "u1")

    sub["on_value"]({"o1": raw_orders["o1"]})
    assert seen[-1].source == "live"
    assert seen[-1].data[0]["id"] == "o1"

    sub["on_error"](HostedStoreError("stream dropped"))
    assert seen[-1].offline
    assert [o["id"] for o in seen[-1].data] == ["o1"]

    unsubscribe()
    assert sub["closed"]


def test_subscribe_without_store_delivers_cache(cache, outbox):
    cache.set_json("products", [{"id": "p1", "name": "Mango"}])
    seen = []
    unsubscribe = ProductRepository(None, cache, outbox).subscribe(seen.append)
    assert seen[0].offline and seen[0].data[0]["name"] == "Mango"
    assert unsubscribe() is None


# -------------------------------
# Catalog + users
# -------------------------------
def test_product_add_and_update(store, cache, outbox):
    repo = ProductRepository(store, cache, outbox)
    added = repo.add_product({"name": "Mango", "price": "Rs 300", "category": "popular"})
    stored = store.data["products"][added.id]
    assert stored["price"] == 300
    assert stored["isVisible"] is True
    assert stored["category"] == "Popular"

    repo.update_product(added.id, {"price": "Rs 350", "isVisible": False})
    assert store.data["products"][added.id]["price"] == 350
    assert repo.list_products(visible_only=True).data == []
    assert len(repo.list_products().data) == 1


def test_categories_accept_bare_names(store, cache, outbox):
    store.data = {"categories": {"c1": "Fruits"}}
    repo = CategoryRepository(store, cache, outbox)
    assert repo.list().data == [{"id": "c1", "name": "Fruits"}]
    added = repo.add_category("Juices")
    assert store.data["categories"][added.id] == {"name": "Juices"}
    with pytest.raises(ValueError):
        repo.add_category("  ")


def test_users_round_trip(store, cache, outbox):
    repo = UserRepository(store, cache, outbox)
    added = repo.add_user({"name": "Ayesha", "email": "a@example.com"})
    assert repo.get(added.id).data["email"] == "a@example.com"


def test_build_repositories_shares_one_cache_and_outbox(settings):
    repos = build_repositories(settings)
    assert repos.store is None
    assert not repos.online
    assert repos.orders.outbox is repos.products.outbox is repos.outbox
    assert repos.orders.cache.path == settings.cache_path
    assert repos.sync_offline_changes() is None
