from __future__ import annotations

import json
from typing import Any, List

import pytest
import requests

from fruitfusion.errors import HostedStoreError
from fruitfusion.hosted_store import HostedStore, apply_event, iter_sse_events


class StubResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, lines: List[str] | None = None):
        self.status_code = status_code
        self._payload = payload
        self.content = b"" if payload is None else json.dumps(payload).encode("utf-8")
        self.text = self.content.decode("utf-8")
        self._lines = lines or []
        self.closed = False

    def json(self):
        return json.loads(self.content)

    def iter_lines(self, decode_unicode: bool = False):
        return iter(self._lines)

    def close(self):
        self.closed = True


class StubSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: List[dict] = []

    def request(self, method, url, **kwargs):
        self.requests.append({"method": method, "url": url, **kwargs})
        r = self.responses.pop(0)
        if isinstance(r, Exception):
            raise r
        return r


def make_store(*responses, auth: str = "") -> HostedStore:
    return HostedStore("https://demo.example.com/", auth=auth, timeout=3, session=StubSession(*responses))


def test_get_builds_rest_url_with_auth():
    store = make_store(StubResponse(payload={"a": 1}), auth="secret")
    assert store.get("orders/o1") == {"a": 1}
    req = store.session.requests[0]
    assert req["method"] == "GET"
    assert req["url"] == "https://demo.example.com/orders/o1.json"
    assert req["params"] == {"auth": "secret"}
    assert req["timeout"] == 3
    assert "json" not in req


def test_write_primitives_use_rest_verbs():
    store = make_store(StubResponse(payload={"x": 1}), StubResponse(payload={"y": 2}), StubResponse())
    store.set("products/p1", {"x": 1})
    store.update("products/p1", {"y": 2})
    store.remove("products/p1")
    methods = [(r["method"], r.get("json")) for r in store.session.requests]
    assert methods == [("PUT", {"x": 1}), ("PATCH", {"y": 2}), ("DELETE", None)]


def test_push_returns_generated_key():
    store = make_store(StubResponse(payload={"name": "-Nabc123"}))
    assert store.push("orders", {"status": "Order Taken"}) == "-Nabc123"
    assert store.session.requests[0]["method"] == "POST"


def test_query_sends_json_encoded_filter():
    store = make_store(StubResponse(payload={}))
    store.query("orders", "userId", "u1")
    assert store.session.requests[0]["params"] == {"orderBy": '"userId"', "equalTo": '"u1"'}


def test_http_error_raises_hosted_store_error():
    store = make_store(StubResponse(status_code=401, payload={"error": "Permission denied"}))
    with pytest.raises(HostedStoreError) as exc:
        store.get("orders")
    assert exc.value.status_code == 401
    assert "Permission denied" in str(exc.value)


def test_transport_error_raises_hosted_store_error():
    store = make_store(requests.ConnectionError("no route"))
    with pytest.raises(HostedStoreError):
        store.get("orders")


def test_ping_reports_availability():
    assert make_store(StubResponse(payload={"orders": True})).ping() is True
    assert make_store(requests.Timeout("slow")).ping() is False


def test_requires_database_url():
    with pytest.raises(ValueError):
        HostedStore("")


def test_iter_sse_events_parses_blocks():
    lines = [
        "event: put",
        'data: {"path": "/", "data": {"a": 1}}',
        "",
        ": comment",
        "event: keep-alive",
        "data: null",
        "",
    ]
    assert list(iter_sse_events(lines)) == [
        ("put", '{"path": "/", "data": {"a": 1}}'),
        ("keep-alive", "null"),
    ]


def test_apply_event_put_patch_and_delete():
    snap = apply_event(None, "/", {"o1": {"status": "Processing"}})
    snap = apply_event(snap, "/o2", {"status": "Order Taken"})
    snap = apply_event(snap, "/o1", {"status": "Delivered"}, patch=True)
    assert snap == {"o1": {"status": "Delivered"}, "o2": {"status": "Order Taken"}}

    before = snap
    snap = apply_event(snap, "/o2", None)
    assert snap == {"o1": {"status": "Delivered"}}
    assert "o2" in before


def test_subscription_delivers_snapshots_then_reports_close():
    lines = [
        "event: put",
        'data: {"path": "/", "data": {"o1": {"status": "Processing"}}}',
        "",
        "event: patch",
        'data: {"path": "/o1", "data": {"status": "Delivered"}}',
        "",
    ]
    store = make_store(StubResponse(lines=lines))
    values, errors = [], []
    sub = store.subscribe("orders", values.append, errors.append)
    sub.join(timeout=5)

    assert values == [{"o1": {"status": "Processing"}}, {"o1": {"status": "Delivered"}}]
    assert len(errors) == 1 and "closed" in str(errors[0])
    assert store.session.requests[0]["headers"] == {"Accept": "text/event-stream"}
    assert store.session.requests[0]["stream"] is True


def test_subscription_cancel_event_is_an_error():
    store = make_store(StubResponse(lines=["event: cancel", "data: null", ""]))
    errors = []
    sub = store.subscribe("orders", lambda snap: None, errors.append)
    sub.join(timeout=5)
    assert len(errors) == 1
    assert isinstance(errors[0], HostedStoreError)


def test_closed_subscription_is_idempotent():
    store = make_store(StubResponse(lines=[]))
    errors = []
    sub = store.subscribe("orders", lambda snap: None, errors.append)
    sub.join(timeout=5)
    sub.close()
    sub()
    assert not sub.active
