# fruitfusion/hosted_store.py
from __future__ import annotations

import json
import logging
import threading
from typing import Any, Callable, Dict, Iterable, Iterator, Optional, Tuple

import requests

from fruitfusion.config import Settings
from fruitfusion.errors import HostedStoreError

logger = logging.getLogger(__name__)

_MISSING = object()


# -------------------------------
# Server-sent events
# -------------------------------
def iter_sse_events(lines: Iterable[Any]) -> Iterator[Tuple[str, str]]:
    """
    Yield (event, data) pairs from an event-stream body, one per blank-line
    terminated block. Comment lines (":...") are skipped.
    """
    event = ""
    data: list[str] = []
    for line in lines:
        if line is None:
            continue
        if isinstance(line, bytes):
            line = line.decode("utf-8")
        line = line.rstrip("\r")

        if line == "":
            if event or data:
                yield event or "message", "\n".join(data)
            event, data = "", []
            continue
        if line.startswith(":"):
            continue

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            event = value
        elif field == "data":
            data.append(value)

    if event or data:
        yield event or "message", "\n".join(data)


def _as_dict(value: Any) -> Dict[str, Any]:
    return dict(value) if isinstance(value, dict) else {}


def apply_event(snapshot: Any, path: str, data: Any, patch: bool = False) -> Any:
    """
    Apply a realtime `put` (replace at path) or `patch` (merge children at path)
    to a snapshot and return the new snapshot. None data deletes.

    Only the nodes along `path` are copied; the input snapshot is not mutated.
    """
    if patch:
        out = snapshot
        base = path.rstrip("/")
        for key, value in _as_dict(data).items():
            out = apply_event(out, f"{base}/{key}", value)
        return out

    parts = [p for p in (path or "").split("/") if p]
    if not parts:
        return data

    root = _as_dict(snapshot)
    node = root
    for p in parts[:-1]:
        child = _as_dict(node.get(p))
        node[p] = child
        node = child

    if data is None:
        node.pop(parts[-1], None)
    else:
        node[parts[-1]] = data
    return root


# -------------------------------
# Subscription
# -------------------------------
class Subscription:
    """
    A live listener on one path. Runs the event stream in a daemon thread.

    Calling the subscription (or .close()) tears it down; both are idempotent.
    """

    def __init__(
        self,
        store: "HostedStore",
        path: str,
        on_value: Callable[[Any], None],
        on_error: Optional[Callable[[HostedStoreError], None]] = None,
        params: Optional[Dict[str, str]] = None,
    ):
        self.store = store
        self.path = path
        self.on_value = on_value
        self.on_error = on_error
        self.params = params or {}
        self._stop = threading.Event()
        self._response = None
        self._thread = threading.Thread(target=self._run, name=f"subscribe:{path}", daemon=True)

    def start(self) -> "Subscription":
        self._thread.start()
        return self

    def join(self, timeout: Optional[float] = None) -> None:
        self._thread.join(timeout)

    @property
    def active(self) -> bool:
        return self._thread.is_alive() and not self._stop.is_set()

    def close(self) -> None:
        if self._stop.is_set():
            return
        self._stop.set()
        logger.info("Unsubscribing from %s", self.path)
        resp = self._response
        if resp is not None:
            resp.close()

    __call__ = close

    def _fail(self, exc: HostedStoreError) -> None:
        if self._stop.is_set():
            return
        logger.warning("Subscription to %s failed: %s", self.path, exc)
        if self.on_error is not None:
            self.on_error(exc)

    def _deliver(self, snapshot: Any) -> None:
        try:
            self.on_value(snapshot)
        except Exception:
            logger.exception("Subscriber callback for %s raised", self.path)

    def _run(self) -> None:
        snapshot: Any = None
        try:
            self._response = self.store.open_stream(self.path, self.params)
            for event, data in iter_sse_events(self._response.iter_lines(decode_unicode=True)):
                if self._stop.is_set():
                    return
                if event == "keep-alive":
                    continue
                if event in ("cancel", "auth_revoked"):
                    raise HostedStoreError(f"Subscription {event}: {data}", path=self.path)
                if event not in ("put", "patch"):
                    continue

                payload = json.loads(data) if data else {}
                if not isinstance(payload, dict):
                    continue
                snapshot = apply_event(
                    snapshot,
                    str(payload.get("path") or "/"),
                    payload.get("data"),
                    patch=(event == "patch"),
                )
                self._deliver(snapshot)

            self._fail(HostedStoreError("Event stream closed by server", path=self.path))
        except HostedStoreError as e:
            self._fail(e)
        except (requests.RequestException, ValueError) as e:
            self._fail(HostedStoreError(f"Event stream for {self.path} failed: {e}", path=self.path))
        finally:
            if self._response is not None:
                self._response.close()


# -------------------------------
# Client
# -------------------------------
class HostedStore:
    """
    Client for the hosted realtime database REST API.

    Every primitive raises HostedStoreError on transport errors, timeouts and
    non-2xx responses. There is no retry: callers fall back to the local
    cache or surface the failure.
    """

    def __init__(
        self,
        base_url: str,
        auth: str = "",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        if not base_url:
            raise ValueError("HostedStore requires a database URL")
        self.base_url = base_url.rstrip("/")
        self.auth = auth
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: Settings) -> "HostedStore":
        return cls(settings.database_url, auth=settings.database_auth, timeout=settings.timeout_sec)

    # ----------------------------
    # Plumbing
    # ----------------------------
    def url_for(self, path: str) -> str:
        path = (path or "").strip("/")
        return f"{self.base_url}/{path}.json" if path else f"{self.base_url}/.json"

    def _params(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        params = dict(extra or {})
        if self.auth:
            params["auth"] = self.auth
        return params

    def _request(self, method: str, path: str, body: Any = _MISSING, params: Optional[Dict[str, str]] = None) -> Any:
        kwargs: Dict[str, Any] = {"params": self._params(params), "timeout": self.timeout}
        if body is not _MISSING:
            kwargs["json"] = body

        try:
            r = self.session.request(method, self.url_for(path), **kwargs)
        except requests.RequestException as e:
            raise HostedStoreError(f"{method} {path} failed: {e}", path=path) from e

        if not 200 <= r.status_code < 300:
            detail = ""
            try:
                detail = str((r.json() or {}).get("error", ""))
            except (ValueError, AttributeError):
                detail = (r.text or "")[:200]
            raise HostedStoreError(
                f"{method} {path} returned HTTP {r.status_code} {detail}".strip(),
                path=path,
                status_code=r.status_code,
            )

        if not r.content:
            return None
        try:
            return r.json()
        except ValueError as e:
            raise HostedStoreError(f"{method} {path} returned invalid JSON", path=path) from e

    def open_stream(self, path: str, params: Optional[Dict[str, str]] = None):
        try:
            r = self.session.request(
                "GET",
                self.url_for(path),
                params=self._params(params),
                headers={"Accept": "text/event-stream"},
                stream=True,
                timeout=(self.timeout, None),
            )
        except requests.RequestException as e:
            raise HostedStoreError(f"Opening event stream for {path} failed: {e}", path=path) from e
        if not 200 <= r.status_code < 300:
            r.close()
            raise HostedStoreError(
                f"Event stream for {path} returned HTTP {r.status_code}",
                path=path,
                status_code=r.status_code,
            )
        return r

    # ----------------------------
    # Primitives
    # ----------------------------
    def get(self, path: str) -> Any:
        return self._request("GET", path)

    def set(self, path: str, value: Any) -> Any:
        return self._request("PUT", path, value)

    def update(self, path: str, partial: Dict[str, Any]) -> Any:
        return self._request("PATCH", path, partial)

    def remove(self, path: str) -> None:
        self._request("DELETE", path)

    def push(self, path: str, value: Any) -> str:
        """Create a child with a server-generated key and return the key."""
        result = self._request("POST", path, value)
        key = (result or {}).get("name") if isinstance(result, dict) else None
        if not key:
            raise HostedStoreError(f"POST {path} did not return a key", path=path)
        return str(key)

    def query(self, path: str, order_by_child: str, equal_to: Any) -> Any:
        """Server-side filter on one indexed child, e.g. orders by userId."""
        return self._request("GET", path, params=self.query_params(order_by_child, equal_to))

    @staticmethod
    def query_params(order_by_child: str, equal_to: Any) -> Dict[str, str]:
        return {"orderBy": json.dumps(order_by_child), "equalTo": json.dumps(equal_to)}

    def subscribe(
        self,
        path: str,
        on_value: Callable[[Any], None],
        on_error: Optional[Callable[[HostedStoreError], None]] = None,
        order_by_child: Optional[str] = None,
        equal_to: Any = None,
    ) -> Subscription:
        params = self.query_params(order_by_child, equal_to) if order_by_child else None
        logger.info("Subscribing to %s%s", path, f" where {order_by_child} == {equal_to!r}" if order_by_child else "")
        return Subscription(self, path, on_value, on_error, params).start()

    def ping(self) -> bool:
        """Cheap connectivity probe (shallow read of the root)."""
        try:
            self._request("GET", "", params={"shallow": "true"})
            return True
        except HostedStoreError as e:
            logger.warning("Hosted store unavailable: %s", e)
            return False
