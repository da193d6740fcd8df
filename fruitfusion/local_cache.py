# fruitfusion/local_cache.py
from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

logger = logging.getLogger(__name__)


class LocalCache:
    """
    Flat string-keyed cache persisted as a single JSON file.

    Mirrors the on-device key-value storage the storefront falls back to:
    every value is a string (callers JSON-encode records), there are no
    transactions across keys, and the later write wins.

    File shape:
      { "<key>": "<json string>", ... }
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        # guards the read-modify-write of the backing file within this process
        self._lock = threading.Lock()

    # ----------------------------
    # Persistence
    # ----------------------------
    def load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Local cache at %s is unreadable, treating as empty: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def save(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")

    # ----------------------------
    # Key-value primitives
    # ----------------------------
    def get_item(self, key: str) -> Optional[str]:
        return self.load().get(str(key))

    def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"LocalCache values must be strings, got {type(value).__name__}")
        with self._lock:
            data = self.load()
            data[str(key)] = value
            self.save(data)

    def remove_item(self, key: str) -> None:
        self.multi_remove([key])

    def multi_remove(self, keys: Iterable[str]) -> None:
        with self._lock:
            data = self.load()
            changed = False
            for k in keys:
                if str(k) in data:
                    del data[str(k)]
                    changed = True
            if changed:
                self.save(data)

    def keys(self) -> list[str]:
        return sorted(self.load().keys())

    # ----------------------------
    # JSON helpers
    # ----------------------------
    def get_json(self, key: str, default: Any = None) -> Any:
        raw = self.get_item(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Cached value for %r is not valid JSON, ignoring it", key)
            return default

    def set_json(self, key: str, value: Any) -> None:
        self.set_item(key, json.dumps(value, ensure_ascii=False, default=str))
