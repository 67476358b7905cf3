"""Bounded TTL cache for API GET responses."""
from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, Mapping, Optional, Tuple
from urllib.parse import urlencode

DEFAULT_TTL_SECONDS = 5 * 60
DEFAULT_MAX_ENTRIES = 50


def cache_key(path: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Key a GET by path plus its non-empty query parameters in sorted order."""
    if not params:
        return path
    items = sorted((k, v) for k, v in params.items() if v is not None)
    return f"{path}?{urlencode(items)}" if items else path


class ResponseCache:
    """Keeps recent GET responses for ``ttl`` seconds, at most ``max_entries`` of them.

    When full, the entry stored earliest is evicted first. Stale reads within
    the TTL are acceptable; mutations call ``invalidate_prefix`` for the
    resource they touched.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[float, Any]]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if self._clock() - stored_at >= self.ttl:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = (self._clock(), value)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop every entry whose key starts with ``prefix``; return how many."""
        with self._lock:
            stale = [key for key in self._entries if key.startswith(prefix)]
            for key in stale:
                del self._entries[key]
            return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {key: value for key, (_, value) in self._entries.items()}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
