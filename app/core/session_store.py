"""
Session memory store. Keyed by session_id; history is not sent from the frontend.

MemoryStore owns the session -> ConversationMemory mapping for one agent and
hands out per-session locks so a request's load -> LLM -> record cycle is not
interleaved with another request on the same session. The backing map is
injectable; the in-memory backend evicts idle sessions (TTL) and the least
recently used one when over capacity. Nothing survives a process restart.
"""

import logging
import threading
import time
from collections import OrderedDict
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Protocol

from app.agent.memory import ConversationMemory
from app.core.errors import SessionBusyError

logger = logging.getLogger(__name__)


class SessionBackend(Protocol):
    def get(self, session_id: str) -> ConversationMemory | None: ...

    def peek(self, session_id: str) -> ConversationMemory | None: ...

    def put(self, session_id: str, memory: ConversationMemory) -> None: ...

    def delete(self, session_id: str) -> bool: ...

    def __len__(self) -> int: ...


class InMemorySessionBackend:
    """OrderedDict in LRU order; entries idle longer than ttl_seconds expire on access."""

    def __init__(
        self,
        ttl_seconds: float | None = None,
        max_sessions: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_sessions = max_sessions
        self._clock = clock
        self._entries: OrderedDict[str, tuple[ConversationMemory, float]] = OrderedDict()

    def _expired(self, last_access: float) -> bool:
        return self.ttl_seconds is not None and self._clock() - last_access > self.ttl_seconds

    def _purge_expired(self) -> None:
        if self.ttl_seconds is None:
            return
        # Oldest access first, so stop at the first live entry
        while self._entries:
            session_id, (_, last_access) = next(iter(self._entries.items()))
            if not self._expired(last_access):
                break
            del self._entries[session_id]
            logger.info("[session_store:evict] expired session_id=%s", session_id[:16])

    def get(self, session_id: str) -> ConversationMemory | None:
        self._purge_expired()
        entry = self._entries.get(session_id)
        if entry is None:
            return None
        memory, _ = entry
        self._entries[session_id] = (memory, self._clock())
        self._entries.move_to_end(session_id)
        return memory

    def peek(self, session_id: str) -> ConversationMemory | None:
        """Like get but leaves access time and LRU order untouched."""
        entry = self._entries.get(session_id)
        if entry is None or self._expired(entry[1]):
            return None
        return entry[0]

    def put(self, session_id: str, memory: ConversationMemory) -> None:
        self._purge_expired()
        self._entries[session_id] = (memory, self._clock())
        self._entries.move_to_end(session_id)
        if self.max_sessions is not None:
            while len(self._entries) > self.max_sessions:
                evicted, _ = self._entries.popitem(last=False)
                logger.info("[session_store:evict] lru session_id=%s", evicted[:16])

    def delete(self, session_id: str) -> bool:
        return self._entries.pop(session_id, None) is not None

    def __len__(self) -> int:
        self._purge_expired()
        return len(self._entries)


class _SessionLock:
    """A session's lock and the number of callers holding or waiting on it."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class MemoryStore:
    """Per-agent session memories plus per-session locks."""

    def __init__(
        self,
        max_recent_messages: int,
        avg_tokens_per_turn: int,
        backend: SessionBackend | None = None,
    ) -> None:
        self.max_recent_messages = max_recent_messages
        self.avg_tokens_per_turn = avg_tokens_per_turn
        self.backend: SessionBackend = backend if backend is not None else InMemorySessionBackend()
        self._lock = threading.Lock()
        self._session_locks: dict[str, _SessionLock] = {}

    def _new_memory(self) -> ConversationMemory:
        return ConversationMemory(
            max_recent_messages=self.max_recent_messages,
            avg_tokens_per_turn=self.avg_tokens_per_turn,
        )

    def get_or_create(self, session_id: str) -> ConversationMemory:
        with self._lock:
            memory = self.backend.get(session_id)
            if memory is None:
                memory = self._new_memory()
                self.backend.put(session_id, memory)
                logger.info("[session_store:get_or_create] created session_id=%s", session_id[:16])
            return memory

    def clear(self, session_id: str) -> bool:
        with self._lock:
            removed = self.backend.delete(session_id)
        logger.info("[session_store:clear] session_id=%s removed=%s", session_id[:16], removed)
        return removed

    def load(self, session_id: str) -> dict[str, Any]:
        """Read-only snapshot; unknown sessions get empty defaults and are not created."""
        with self._lock:
            memory = self.backend.peek(session_id) if session_id else None
            if memory is None:
                return {"recentMessages": [], "summary": None, "totalMessages": 0}
            return memory.snapshot()

    def __len__(self) -> int:
        with self._lock:
            return len(self.backend)

    @contextmanager
    def session_lock(self, session_id: str, timeout: float | None = None) -> Iterator[None]:
        """Serialize work on one session. Raises SessionBusyError if not acquired within timeout."""
        with self._lock:
            entry = self._session_locks.get(session_id)
            if entry is None:
                entry = self._session_locks[session_id] = _SessionLock()
            entry.users += 1
        try:
            acquired = entry.lock.acquire(timeout=timeout) if timeout is not None else entry.lock.acquire()
            if not acquired:
                logger.warning("[session_store:session_lock] busy session_id=%s", session_id[:16])
                raise SessionBusyError(session_id)
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            # Dropped only once no caller holds or waits on it
            with self._lock:
                entry.users -= 1
                if entry.users == 0:
                    del self._session_locks[session_id]
