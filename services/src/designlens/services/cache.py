"""In-memory cache for parsed design previews."""

from __future__ import annotations

import hashlib
import json
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional


def make_cache_key(**params: Any) -> str:
    """Return a deterministic SHA-256 key for the given parameters."""

    serialized = json.dumps(params, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


@dataclass
class _Entry:
    data: Dict[str, Any]
    stored_at: float


class ParseCache:
    """TTL cache that can still hand out stale entries on request."""

    def __init__(self, ttl_seconds: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def get(self, key: str, *, allow_stale: bool = False) -> Optional[Dict[str, Any]]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if allow_stale or self._clock() - entry.stored_at < self._ttl:
                return entry.data
            return None

    def store(self, key: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self._entries[key] = _Entry(data=data, stored_at=self._clock())


__all__ = ["ParseCache", "make_cache_key"]
