"""Decision caches for the fusion classifier."""

import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from threading import Lock
from typing import Callable

from .models import FusionDecision


class DecisionCache(ABC):
    """Pluggable cache of fusion decisions keyed by (fact id, new value)."""

    @abstractmethod
    def get(self, key: tuple[str, str]) -> FusionDecision | None: ...

    @abstractmethod
    def set(self, key: tuple[str, str], decision: FusionDecision) -> None: ...

    @abstractmethod
    def evict(self, key: tuple[str, str]) -> None: ...

    @abstractmethod
    def clear(self) -> None: ...


class NullDecisionCache(DecisionCache):
    """Never stores anything."""

    def get(self, key):
        return None

    def set(self, key, decision):
        pass

    def evict(self, key):
        pass

    def clear(self):
        pass


class TTLDecisionCache(DecisionCache):
    """Thread-safe in-memory cache with TTL and FIFO eviction at capacity."""

    def __init__(
        self,
        ttl: float = 300.0,
        max_size: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.max_size = max_size
        self._clock = clock
        self._entries: OrderedDict[tuple[str, str], tuple[FusionDecision, float]] = OrderedDict()
        self._lock = Lock()

    def get(self, key):
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            decision, expiry = entry
            if self._clock() >= expiry:
                del self._entries[key]
                return None
            return decision

    def set(self, key, decision):
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self.max_size:
                self._entries.popitem(last=False)
            self._entries[key] = (decision, self._clock() + self.ttl)

    def evict(self, key):
        with self._lock:
            self._entries.pop(key, None)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def cleanup_expired(self) -> int:
        """Remove all expired entries; returns how many were dropped."""
        now = self._clock()
        with self._lock:
            expired = [k for k, (_, expiry) in self._entries.items() if now >= expiry]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
