from __future__ import annotations

import copy
import threading
import time
from collections.abc import Callable
from typing import Any

from session_api.storage.base import ReserveResult, SessionStore


class InMemorySessionStore(SessionStore):
    """Process-local store for tests and single-instance dev runs."""

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[float, dict[str, Any]]] = {}

    def reserve_if_absent(
        self, *, key: str, value: dict[str, Any], ttl_seconds: int
    ) -> ReserveResult:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        with self._lock:
            now = self._clock()
            existing = self._entries.get(key)
            if existing is not None and existing[0] > now:
                return ReserveResult(reserved=False)
            self._entries[key] = (now + ttl_seconds, copy.deepcopy(value))
            return ReserveResult(reserved=True)

    def get(self, *, key: str) -> dict[str, Any] | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            deadline, value = entry
            if deadline <= self._clock():
                del self._entries[key]
                return None
            return copy.deepcopy(value)

    def purge_expired(self) -> int:
        with self._lock:
            now = self._clock()
            expired = [k for k, (deadline, _) in self._entries.items() if deadline <= now]
            for k in expired:
                del self._entries[k]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(1 for deadline, _ in self._entries.values() if deadline > now)
