"""
ttl_cache.py — small in-memory key/value cache with per-entry expiry.

Entries expire lazily: get() drops a stale entry the first time it is read.
cleanup() sweeps everything that has expired, for callers that want to
bound memory between reads.

Thread-safe: one lock around the dict. Overwriting a key is idempotent for
our use (the same barcode always maps to the same product), so two
concurrent writers racing on a key is harmless.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    expires_at: float       # clock() seconds

    def expired(self, now: float) -> bool:
        return now > self.expires_at


class TTLCache:

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None when missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expired(self._clock()):
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ttl = self.ttl if ttl is None else ttl
        with self._lock:
            self._entries[key] = CacheEntry(key, value, self._clock() + ttl)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def cleanup(self) -> int:
        """Remove all expired entries. Returns how many were dropped."""
        with self._lock:
            now = self._clock()
            stale = [k for k, e in self._entries.items() if e.expired(now)]
            for key in stale:
                del self._entries[key]
            return len(stale)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        # Includes entries that expired but haven't been read or swept yet
        with self._lock:
            return len(self._entries)
