from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional

import pytest

from fruitfusion.config import Settings
from fruitfusion.errors import HostedStoreError
from fruitfusion.hosted_store import apply_event
from fruitfusion.local_cache import LocalCache
from fruitfusion.outbox import Outbox


class FakeHostedStore:
    """In-memory stand-in for HostedStore. Set `online = False` to simulate an outage."""

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self.data: Dict[str, Any] = copy.deepcopy(data) if data else {}
        self.online = True
        self.calls: List[tuple] = []
        self.subscriptions: List[dict] = []
        self._next_key = 0

    def _check(self, op: str, path: str) -> None:
        self.calls.append((op, path))
        if not self.online:
            raise HostedStoreError(f"{op} {path} failed: offline", path=path)

    def _node(self, path: str) -> Any:
        node: Any = self.data
        for part in [p for p in path.split("/") if p]:
            if not isinstance(node, dict):
                return None
            node = node.get(part)
        return copy.deepcopy(node)

    def get(self, path: str) -> Any:
        self._check("get", path)
        return self._node(path)

    def set(self, path: str, value: Any) -> Any:
        self._check("set", path)
        self.data = apply_event(self.data, path, copy.deepcopy(value))
        return value

    def update(self, path: str, partial: Dict[str, Any]) -> Any:
        self._check("update", path)
        self.data = apply_event(self.data, path, copy.deepcopy(partial), patch=True)
        return partial

    def remove(self, path: str) -> None:
        self._check("remove", path)
        self.data = apply_event(self.data, path, None)

    def push(self, path: str, value: Any) -> str:
        self._check("push", path)
        self._next_key += 1
        key = f"-key{self._next_key:04d}"
        self.data = apply_event(self.data, f"{path}/{key}", copy.deepcopy(value))
        return key

    def query(self, path: str, order_by_child: str, equal_to: Any) -> Any:
        self._check("query", path)
        node = self._node(path) or {}
        return {k: v for k, v in node.items() if isinstance(v, dict) and v.get(order_by_child) == equal_to}

    def subscribe(self, path, on_value, on_error=None, order_by_child=None, equal_to=None):
        sub = {
            "path": path,
            "on_value": on_value,
            "on_error": on_error,
            "where": (order_by_child, equal_to) if order_by_child else None,
            "closed": False,
        }
        self.subscriptions.append(sub)

        def _close():
            sub["closed"] = True

        return _close

    def ping(self) -> bool:
        return self.online


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(data_dir=tmp_path / "data", log_dir=tmp_path / "logs", admin_access_code="letmein")


@pytest.fixture
def cache(tmp_path) -> LocalCache:
    return LocalCache(tmp_path / "cache.json")


@pytest.fixture
def outbox(cache) -> Outbox:
    return Outbox(cache)


@pytest.fixture
def store() -> FakeHostedStore:
    return FakeHostedStore()


@pytest.fixture
def raw_orders() -> Dict[str, Any]:
    return {
        "o1": {
            "userId": "u1",
            "customerName": "Ayesha",
            "phoneNumber": "03001234567",
            "address": "House 1, F-7, Islamabad, Pakistan",
            "items": [{"name": "Mango", "price": "Rs 300", "quantity": 2}],
            "totalAmount": 650,
            "status": "Delivered",
            "createdAt": "2024-05-01T10:00:00.000Z",
        },
        "o2": {
            "userId": "u2",
            "items": [{"name": "Apple", "price": 100, "quantity": "3"}],
            "totalPrice": "Rs 350",
            "status": "processing",
            "createdAt": "2024-05-03T09:30:00.000Z",
        },
        "o3": {
            "userId": "u1",
            "items": [{"name": "Banana", "price": 50}],
            "status": "Cancelled",
            "createdAt": "2024-05-02T08:00:00.000Z",
        },
    }
