# ============================================================================
# src/lab_reconciliation/core/state_store.py
# ============================================================================
"""
TTL keyed state store for per-account correlation state.

Each entry carries the time it was last written and its own TTL, so
expiry is a property of the value rather than of the caller remembering
to compare timestamps. Expiry is evaluated lazily against the `now`
passed in by the caller (cooperative timeouts, no background sweep).

Process-local: entries are lost on restart and not shared between
instances.
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Generic, List, Optional, Tuple, TypeVar
import logging

T = TypeVar("T")


@dataclass
class StateEntry(Generic[T]):
    """
    Single state entry.

    Attributes:
        value: Stored state object
        updated_at: Last write or touch
        ttl: Lifetime measured from updated_at
    """
    value: T
    updated_at: datetime
    ttl: timedelta

    @property
    def expires_at(self) -> datetime:
        return self.updated_at + self.ttl

    def is_expired(self, now: datetime) -> bool:
        """An entry is still live exactly at its expiry instant."""
        return now > self.expires_at

    def age(self, now: datetime) -> timedelta:
        return now - self.updated_at


class TTLStateStore(Generic[T]):
    """
    Keyed store with per-entry expiry.

    Example:
        store = TTLStateStore(name="last_upload", default_ttl=timedelta(minutes=2))
        store.set(account_id, state, now)
        state = store.get(account_id, now)   # None once expired
    """

    def __init__(self, name: str, default_ttl: timedelta):
        self.name = name
        self.default_ttl = default_ttl
        self._entries: Dict[str, StateEntry[T]] = {}
        self._lock = threading.RLock()
        self.logger = logging.getLogger(__name__)

    def set(self, key: str, value: T, now: datetime, ttl: Optional[timedelta] = None) -> StateEntry[T]:
        with self._lock:
            entry = StateEntry(value=value, updated_at=now, ttl=ttl or self.default_ttl)
            self._entries[key] = entry
            return entry

    def get(self, key: str, now: datetime) -> Optional[T]:
        """Live value for key; expired entries are dropped and reported as missing."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(now):
                self.logger.debug(f"{self.name}: entry for {key} expired")
                del self._entries[key]
                return None
            return entry.value

    def peek(self, key: str) -> Optional[StateEntry[T]]:
        """Raw entry including expired ones (callers that must clean up after expiry)."""
        with self._lock:
            return self._entries.get(key)

    def touch(self, key: str, now: datetime) -> bool:
        """Restart the entry's TTL. Returns False if there is nothing to touch."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            entry.updated_at = now
            return True

    def pop(self, key: str) -> Optional[T]:
        with self._lock:
            entry = self._entries.pop(key, None)
            return entry.value if entry else None

    def purge_expired(self, now: datetime) -> List[Tuple[str, T]]:
        """Remove and return every expired (key, value) pair."""
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            return [(k, self._entries.pop(k).value) for k in expired]

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
