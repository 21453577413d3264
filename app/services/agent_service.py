"""
Agent service: one conversational turn = load memory -> run agent -> record turns.

Responsibility: Own the per-session cycle for one agent (general or RAG). Runs
under the session lock so concurrent requests on the same session cannot
interleave their read-modify-write of memory. Called by the API; no HTTP here.

Requests without a session id run statelessly: no history in the prompt and
nothing recorded.
"""

import logging
from contextlib import ExitStack
from typing import Any, Iterator

from app.agent.graph import Agent, RunOptions
from app.agent.memory import SummaryBufferPolicy
from app.core.session_store import MemoryStore

logger = logging.getLogger(__name__)


class SessionStream:
    """Iterator over one streamed turn's events that owns the session lock until exhausted or closed."""

    def __init__(self, events: Iterator[dict[str, Any]], stack: ExitStack) -> None:
        self._events = events
        self._stack = stack

    def __iter__(self) -> "SessionStream":
        return self

    def __next__(self) -> dict[str, Any]:
        try:
            return next(self._events)
        except BaseException:
            self.close()
            raise

    def close(self) -> None:
        try:
            self._events.close()
        finally:
            self._stack.close()


class AgentService:
    def __init__(
        self,
        agent: Agent,
        memory_store: MemoryStore,
        policy: SummaryBufferPolicy,
        lock_timeout: float | None = None,
    ) -> None:
        self.agent = agent
        self.memory_store = memory_store
        self.policy = policy
        self.lock_timeout = lock_timeout

    def _memory_info(self, session_id: str | None) -> dict[str, Any] | None:
        if not session_id:
            return None
        snapshot = self.memory_store.load(session_id)
        return {
            "totalMessages": snapshot["totalMessages"],
            "hasSummary": snapshot["summary"] is not None,
            "maxRecentMessages": self.memory_store.max_recent_messages,
        }

    def _commit(self, session_id: str, message: str, answer: str) -> None:
        memory = self.memory_store.get_or_create(session_id)
        self.policy.record_turn(memory, "user", message)
        self.policy.record_turn(memory, "assistant", answer)
        logger.info("[agent_service:commit] session_id=%s recent=%d", session_id[:16], len(memory.turns))

    def invoke(
        self,
        message: str,
        session_id: str | None = None,
        context: dict[str, Any] | None = None,
        options: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Run one turn. Returns the /invoke data payload."""
        if not message or not str(message).strip():
            raise ValueError("Message is required")
        run_options = RunOptions.from_dict(options)
        logger.info("[agent_service:invoke] IN  session_id=%s message_len=%d", session_id, len(message))
        with ExitStack() as stack:
            history = None
            if session_id:
                stack.enter_context(self.memory_store.session_lock(session_id, self.lock_timeout))
                history = self.memory_store.get_or_create(session_id).as_messages()
            result = self.agent.run(message, history=history, context=context, options=run_options)
            if session_id:
                self._commit(session_id, message, result.output)
        logger.info("[agent_service:invoke] OUT steps=%d answer_len=%d", len(result.steps), len(result.output))
        return {
            "response": result.output,
            "context": context or {},
            "steps": result.steps,
            "sessionId": session_id,
            "hasMemory": bool(session_id),
            "memoryInfo": self._memory_info(session_id),
        }

    def stream(
        self,
        message: str,
        session_id: str | None = None,
        context: dict[str, Any] | None = None,
        options: dict[str, Any] | None = None,
    ) -> SessionStream:
        """
        Stream one turn. The session lock is taken before this returns, so a busy
        session raises SessionBusyError here rather than mid-stream. The returned
        SessionStream yields the agent's events and holds the lock until it is
        exhausted or closed; the buffered answer is committed to memory only after
        the agent reports done. A closed (disconnected) or failed stream commits
        nothing.
        """
        if not message or not str(message).strip():
            raise ValueError("Message is required")
        run_options = RunOptions.from_dict(options)
        stack = ExitStack()
        history = None
        if session_id:
            stack.enter_context(self.memory_store.session_lock(session_id, self.lock_timeout))
            try:
                history = self.memory_store.get_or_create(session_id).as_messages()
            except BaseException:
                stack.close()
                raise
        return SessionStream(self._stream(message, session_id, history, context, run_options), stack)

    def _stream(
        self,
        message: str,
        session_id: str | None,
        history: list[dict[str, str]] | None,
        context: dict[str, Any] | None,
        run_options: RunOptions,
    ) -> Iterator[dict[str, Any]]:
        events = self.agent.stream(message, history=history, context=context, options=run_options)
        try:
            for event in events:
                if event["event"] == "done" and session_id:
                    self._commit(session_id, message, event["output"])
                yield event
        finally:
            events.close()

    def history(self, session_id: str) -> dict[str, Any]:
        return self.memory_store.load(session_id)

    def clear(self, session_id: str) -> bool:
        return self.memory_store.clear(session_id)
