# ============================================================================
# tests/unit/test_state_store.py
# ============================================================================
"""
Tests for the TTL state store and per-key locks
"""

import asyncio
from datetime import timedelta

import pytest

from lab_reconciliation.core.keyed_lock import KeyedLock
from lab_reconciliation.core.state_store import TTLStateStore


@pytest.fixture
def state():
    return TTLStateStore(name="test", default_ttl=timedelta(seconds=60))


class TestTTLStateStore:
    """Test TTL keyed state store"""

    def test_get_live_entry(self, state, clock):
        """Test live entry is returned"""
        state.set("a", "value", clock())
        clock.advance(seconds=60)
        assert state.get("a", clock()) == "value"

    def test_expired_entry_is_dropped(self, state, clock):
        """Test expired entry is dropped on read"""
        state.set("a", "value", clock())
        clock.advance(seconds=61)

        assert state.get("a", clock()) is None
        assert "a" not in state

    def test_touch_restarts_ttl(self, state, clock):
        """Test touch restarts the TTL"""
        state.set("a", "value", clock())
        clock.advance(seconds=50)
        assert state.touch("a", clock())
        clock.advance(seconds=50)

        assert state.get("a", clock()) == "value"

    def test_touch_missing_key(self, state, clock):
        """Test touch on a missing key"""
        assert not state.touch("missing", clock())

    def test_per_entry_ttl(self, state, clock):
        """Test per-entry TTL overrides the default"""
        state.set("short", 1, clock(), ttl=timedelta(seconds=5))
        state.set("long", 2, clock())
        clock.advance(seconds=10)

        assert state.get("short", clock()) is None
        assert state.get("long", clock()) == 2

    def test_peek_returns_expired_entry(self, state, clock):
        """Test peek returns entries without expiring them"""
        state.set("a", "value", clock())
        clock.advance(seconds=61)

        entry = state.peek("a")
        assert entry.value == "value"
        assert entry.is_expired(clock())
        assert entry.age(clock()) == timedelta(seconds=61)

    def test_purge_expired(self, state, clock):
        """Test purge removes only expired entries"""
        state.set("old", 1, clock())
        clock.advance(seconds=30)
        state.set("new", 2, clock())
        clock.advance(seconds=31)

        assert state.purge_expired(clock()) == [("old", 1)]
        assert len(state) == 1

    def test_pop_and_clear(self, state, clock):
        """Test pop and clear"""
        state.set("a", 1, clock())
        state.set("b", 2, clock())

        assert state.pop("a") == 1
        assert state.pop("a") is None
        state.clear()
        assert len(state) == 0


class TestKeyedLock:
    """Test per-key asyncio lock"""

    @pytest.mark.asyncio
    async def test_same_key_is_serialized(self):
        """Test holders of one key run one at a time"""
        lock = KeyedLock()
        order = []

        async def worker(name):
            async with lock.hold("acc"):
                order.append(f"{name}-start")
                await asyncio.sleep(0.01)
                order.append(f"{name}-end")

        await asyncio.gather(worker("a"), worker("b"))

        assert order == ["a-start", "a-end", "b-start", "b-end"]

    @pytest.mark.asyncio
    async def test_different_keys_run_concurrently(self):
        """Test different keys do not block each other"""
        lock = KeyedLock()
        active = 0
        peak = 0

        async def worker(key):
            nonlocal active, peak
            async with lock.hold(key):
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.01)
                active -= 1

        await asyncio.gather(worker("a"), worker("b"))

        assert peak == 2

    @pytest.mark.asyncio
    async def test_lock_released_after_use(self):
        """Test lock is released after the block"""
        lock = KeyedLock()

        async with lock.hold("acc"):
            assert lock.is_locked("acc")

        assert not lock.is_locked("acc")
        assert lock._locks == {}
