"""
Unit tests for the session store: lifecycle, snapshots, eviction and locking.
"""

import threading
import time

import pytest

from app.agent.memory import SummaryBufferPolicy, Turn
from app.core.errors import SessionBusyError
from app.core.session_store import InMemorySessionBackend, MemoryStore


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore(max_recent_messages=20, avg_tokens_per_turn=100)


class TestMemoryStore:
    def test_get_or_create_returns_same_memory(self, store: MemoryStore) -> None:
        first = store.get_or_create("s1")
        first.turns.append(Turn("user", "hi"))
        assert store.get_or_create("s1") is first
        assert len(store) == 1

    def test_new_memory_uses_configured_budget(self, store: MemoryStore) -> None:
        memory = store.get_or_create("s1")
        assert memory.turns == [] and memory.summary == ""
        assert memory.token_budget == 2000

    def test_clear_then_get_or_create_is_empty(self, store: MemoryStore) -> None:
        memory = store.get_or_create("s1")
        policy = SummaryBufferPolicy(lambda s, turns: "x")
        policy.record_turn(memory, "user", "hello")
        assert store.clear("s1") is True

        fresh = store.get_or_create("s1")
        assert fresh is not memory
        assert fresh.turns == [] and fresh.summary == ""

    def test_clear_unknown_session_is_noop(self, store: MemoryStore) -> None:
        assert store.clear("missing") is False

    def test_load_unknown_session_shape(self, store: MemoryStore) -> None:
        assert store.load("nobody") == {"recentMessages": [], "summary": None, "totalMessages": 0}
        # load does not create the session
        assert len(store) == 0

    def test_load_existing_session(self, store: MemoryStore) -> None:
        memory = store.get_or_create("s1")
        memory.turns.extend([Turn("user", "q"), Turn("assistant", "a")])
        snap = store.load("s1")
        assert snap["recentMessages"] == [{"role": "user", "content": "q"}, {"role": "assistant", "content": "a"}]
        assert snap["summary"] is None
        assert snap["totalMessages"] == 2


class TestInMemorySessionBackend:
    def test_ttl_expires_idle_sessions(self) -> None:
        clock = FakeClock()
        store = MemoryStore(2, 100, backend=InMemorySessionBackend(ttl_seconds=60, clock=clock))
        store.get_or_create("old")
        clock.now = 30.0
        store.get_or_create("young")
        clock.now = 61.0
        assert store.load("old") == {"recentMessages": [], "summary": None, "totalMessages": 0}
        assert len(store) == 1

    def test_access_refreshes_ttl(self) -> None:
        clock = FakeClock()
        store = MemoryStore(2, 100, backend=InMemorySessionBackend(ttl_seconds=60, clock=clock))
        memory = store.get_or_create("s1")
        clock.now = 50.0
        assert store.get_or_create("s1") is memory
        clock.now = 100.0
        assert store.get_or_create("s1") is memory

    def test_lru_eviction_over_capacity(self) -> None:
        store = MemoryStore(2, 100, backend=InMemorySessionBackend(max_sessions=2))
        store.get_or_create("a")
        store.get_or_create("b")
        store.get_or_create("a")  # a is now most recent
        store.get_or_create("c")
        assert len(store) == 2
        assert store.load("b")["totalMessages"] == 0
        assert store.backend.get("b") is None
        assert store.backend.get("a") is not None

    def test_load_does_not_refresh_ttl(self) -> None:
        clock = FakeClock()
        store = MemoryStore(2, 100, backend=InMemorySessionBackend(ttl_seconds=60, clock=clock))
        store.get_or_create("s1").turns.append(Turn("user", "hi"))
        clock.now = 50.0
        assert store.load("s1")["totalMessages"] == 1
        clock.now = 61.0
        assert store.load("s1")["totalMessages"] == 0
        assert len(store) == 0

    def test_load_does_not_change_lru_order(self) -> None:
        store = MemoryStore(2, 100, backend=InMemorySessionBackend(max_sessions=2))
        store.get_or_create("a")
        store.get_or_create("b")
        store.load("a")
        store.get_or_create("c")
        assert store.backend.peek("a") is None
        assert store.backend.peek("b") is not None


class TestSessionLock:
    def test_busy_session_raises(self, store: MemoryStore) -> None:
        entered = threading.Event()
        release = threading.Event()

        def hold() -> None:
            with store.session_lock("s1"):
                entered.set()
                release.wait(5)

        worker = threading.Thread(target=hold)
        worker.start()
        try:
            assert entered.wait(5)
            with pytest.raises(SessionBusyError):
                with store.session_lock("s1", timeout=0.05):
                    pass
            # Other sessions are unaffected
            with store.session_lock("s2", timeout=0.05):
                pass
        finally:
            release.set()
            worker.join(5)

        with store.session_lock("s1", timeout=0.05):
            pass

    def test_lock_released_after_exception(self, store: MemoryStore) -> None:
        with pytest.raises(RuntimeError):
            with store.session_lock("s1"):
                raise RuntimeError("boom")
        with store.session_lock("s1", timeout=0.05):
            pass

    def test_clear_does_not_split_a_contended_lock(self, store: MemoryStore) -> None:
        waiter_in = threading.Event()
        release = threading.Event()

        def wait_then_hold() -> None:
            with store.session_lock("s"):
                waiter_in.set()
                release.wait(5)

        worker = threading.Thread(target=wait_then_hold)
        with store.session_lock("s"):
            worker.start()
            deadline = time.monotonic() + 5
            while store._session_locks["s"].users < 2 and time.monotonic() < deadline:
                time.sleep(0.001)
            assert store._session_locks["s"].users == 2
        try:
            assert waiter_in.wait(5)
            store.clear("s")
            # The waiter now holds the lock; a third caller must still be kept out
            with pytest.raises(SessionBusyError):
                with store.session_lock("s", timeout=0.1):
                    pass
        finally:
            release.set()
            worker.join(5)
        assert store._session_locks == {}

    def test_lock_map_empty_after_many_sessions(self) -> None:
        store = MemoryStore(2, 100, backend=InMemorySessionBackend(max_sessions=2))
        for i in range(1000):
            with store.session_lock(f"s{i}"):
                store.get_or_create(f"s{i}")
        assert len(store) == 2
        assert store._session_locks == {}

    def test_busy_caller_leaves_no_lock_entry(self, store: MemoryStore) -> None:
        with store.session_lock("s1"):
            with pytest.raises(SessionBusyError):
                with store.session_lock("s1", timeout=0.01):
                    pass
            assert store._session_locks["s1"].users == 1
        assert store._session_locks == {}
