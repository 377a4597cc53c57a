# ============================================================================
# src/lab_reconciliation/core/keyed_lock.py
# ============================================================================
"""
Per-key asyncio locks.

Uploads from one account are processed one at a time so they cannot race
on that account's continuation and pending-name state. Different accounts
still run concurrently. Locks are dropped once nobody holds or waits on
them.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Dict


class KeyedLock:

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str):
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()
