from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Callable, Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class LruTtlCache(Generic[K, V]):
    """Thread-safe in-memory cache with per-entry expiry and LRU eviction."""

    def __init__(
        self,
        *,
        enabled: bool,
        ttl_seconds: int,
        max_entries: int,
        clone_value: Callable[[V], V] | None = None,
    ) -> None:
        self._enabled = bool(enabled)
        self._ttl_seconds = max(0, int(ttl_seconds))
        self._max_entries = max(1, int(max_entries))
        self._clone_value = clone_value
        self._lock = threading.Lock()
        self._entries: OrderedDict[K, tuple[float, V]] = OrderedDict()
        self._hits = 0
        self._misses = 0

    @property
    def active(self) -> bool:
        return self._enabled and self._ttl_seconds > 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def get(self, key: K) -> V | None:
        if not self.active:
            return None
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry[0] <= now:
                self._entries.pop(key, None)
                self._misses += 1
                return None
            self._entries.move_to_end(key)
            self._hits += 1
            return self._clone(entry[1])

    def set(self, key: K, value: V) -> None:
        if not self.active:
            return
        now = time.monotonic()
        with self._lock:
            self._drop_expired(now)
            self._entries[key] = (now + float(self._ttl_seconds), self._clone(value))
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    def stats(self) -> dict[str, int | bool]:
        with self._lock:
            return {
                "enabled": self.active,
                "entries": len(self._entries),
                "max_entries": self._max_entries,
                "hits": self._hits,
                "misses": self._misses,
            }

    def _clone(self, value: V) -> V:
        if self._clone_value is None:
            return value
        return self._clone_value(value)

    def _drop_expired(self, now: float) -> None:
        for key in [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]:
            self._entries.pop(key, None)
