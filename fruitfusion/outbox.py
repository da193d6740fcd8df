# fruitfusion/outbox.py
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from uuid import uuid4

from fruitfusion.errors import HostedStoreError
from fruitfusion.local_cache import LocalCache
from fruitfusion.schemas import CACHE_PENDING_OPERATIONS
from fruitfusion.time_utils import utc_now_iso

logger = logging.getLogger(__name__)

OPERATION_KINDS = ("set", "update", "remove")


@dataclass
class PendingOperation:
    kind: str  # "set" | "update" | "remove"
    path: str
    value: Any = None
    op_id: str = field(default_factory=lambda: uuid4().hex)
    ts: str = field(default_factory=utc_now_iso)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "op_id": self.op_id,
            "ts": self.ts,
            "kind": self.kind,
            "path": self.path,
            "value": self.value,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> Optional["PendingOperation"]:
        kind = str(d.get("kind", ""))
        path = str(d.get("path", "") or "")
        if kind not in OPERATION_KINDS or not path:
            return None
        return cls(
            kind=kind,
            path=path,
            value=d.get("value"),
            op_id=str(d.get("op_id") or uuid4().hex),
            ts=str(d.get("ts") or ""),
        )


class Outbox:
    """
    Journal of hosted-store writes made while offline.

    Stored in the local cache under `pendingOperations` as a JSON list, oldest
    first. replay() applies them in order and stops at the first failure so a
    later write can never land before an earlier one.

    Writes queued while a replay is running are kept: the replay only removes
    the operations it applied.
    """

    def __init__(self, cache: LocalCache, key: str = CACHE_PENDING_OPERATIONS):
        self.cache = cache
        self.key = key
        # guards read-modify-write of the journal; never held across store calls
        self._lock = threading.Lock()

    def pending(self) -> List[PendingOperation]:
        raw = self.cache.get_json(self.key, [])
        if not isinstance(raw, list):
            return []
        ops = []
        for d in raw:
            op = PendingOperation.from_dict(d) if isinstance(d, dict) else None
            if op is not None:
                ops.append(op)
        return ops

    def __len__(self) -> int:
        return len(self.pending())

    def _save(self, ops: List[PendingOperation]) -> None:
        self.cache.set_json(self.key, [op.as_dict() for op in ops])

    def enqueue(self, kind: str, path: str, value: Any = None) -> PendingOperation:
        if kind not in OPERATION_KINDS:
            raise ValueError(f"Unknown outbox operation {kind!r}; expected one of {OPERATION_KINDS}")
        op = PendingOperation(kind=kind, path=path, value=value)
        with self._lock:
            ops = self.pending()
            ops.append(op)
            self._save(ops)
        logger.info("Queued offline %s on %s (%d pending)", kind, path, len(ops))
        return op

    def clear(self) -> None:
        with self._lock:
            self.cache.remove_item(self.key)

    def replay(self, store) -> int:
        """Apply pending operations to `store`. Returns how many were applied."""
        ops = self.pending()
        if not ops:
            return 0

        applied = 0
        for op in ops:
            try:
                if op.kind == "set":
                    store.set(op.path, op.value)
                elif op.kind == "update":
                    store.update(op.path, op.value or {})
                else:
                    store.remove(op.path)
            except HostedStoreError as e:
                logger.warning("Replay stopped at %s %s: %s", op.kind, op.path, e)
                break
            applied += 1

        done = {op.op_id for op in ops[:applied]}
        with self._lock:
            remaining = [op for op in self.pending() if op.op_id not in done]
            if remaining:
                self._save(remaining)
            else:
                self.cache.remove_item(self.key)
        logger.info("Replayed %d offline operation(s), %d still pending", applied, len(remaining))
        return applied
