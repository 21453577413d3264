"""
Shared fakes: a scripted chat model, an embedder, and an in-memory vector index.

No test talks to OpenAI, Hugging Face or Milvus.
"""

from typing import Any

import pytest

from app.services.vector_store import DocumentChunk


class FakeLLM:
    """
    Scripted chat model. Each entry in `replies` is either a string (final answer)
    or a list of (name, arguments) tool calls. Once the script runs out the last
    entry is repeated.
    """

    def __init__(self, replies: list[Any] | None = None, summary: str = "summary") -> None:
        self.model = "fake-model"
        self.temperature = 0.7
        self.max_tokens = 2000
        self.replies = list(replies or ["ok"])
        self.summary = summary
        self.calls: list[list[dict[str, Any]]] = []
        self.complete_calls: list[list[dict[str, Any]]] = []
        self.streams_closed = 0

    def _next(self) -> Any:
        index = min(len(self.calls) - 1, len(self.replies) - 1)
        return self.replies[index]

    @staticmethod
    def _tool_calls(reply: list[tuple[str, dict]]) -> list[dict[str, Any]]:
        return [{"id": f"call_{i}", "name": name, "arguments": args} for i, (name, args) in enumerate(reply)]

    def complete(self, messages, max_tokens=None, temperature=None) -> str:
        self.complete_calls.append(messages)
        return self.summary

    def chat_with_tools(self, messages, tools, max_tokens=None, temperature=None):
        self.calls.append(list(messages))
        reply = self._next()
        if isinstance(reply, str):
            return reply, None
        return None, self._tool_calls(reply)

    def chat_with_tools_stream(self, messages, tools, max_tokens=None, temperature=None):
        self.calls.append(list(messages))
        reply = self._next()
        try:
            if isinstance(reply, str):
                for word in reply.split(" "):
                    yield ("content_delta", word + " ")
                yield ("content_done",)
            else:
                yield ("tool_calls", self._tool_calls(reply), "")
        finally:
            self.streams_closed += 1


class FakeEmbeddings:
    """Deterministic 3-dim vectors; counts calls."""

    def __init__(self) -> None:
        self.document_calls = 0
        self.queries: list[str] = []

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.document_calls += 1
        return [[float(len(t)), 1.0, 0.0] for t in texts]

    def embed_query(self, text: str) -> list[float]:
        self.queries.append(text)
        return [float(len(text)), 1.0, 0.0]


class FakeVectorStore:
    """Keeps chunks in a list; search returns them in insertion order with descending scores."""

    def __init__(self) -> None:
        self.rows: list[tuple[str, DocumentChunk]] = []
        self.last_filter: dict[str, Any] | None = None

    def insert(self, chunks: list[DocumentChunk], vectors: list[list[float]]) -> list[str]:
        assert len(chunks) == len(vectors)
        ids = [f"vec-{len(self.rows) + i}" for i in range(len(chunks))]
        self.rows.extend(zip(ids, chunks))
        return ids

    def search(self, vector, k=4, metadata_filter=None) -> list[tuple[DocumentChunk, float]]:
        self.last_filter = metadata_filter
        rows = [c for _, c in self.rows]
        if metadata_filter:
            rows = [c for c in rows if all(c.metadata.get(key) == value for key, value in metadata_filter.items())]
        return [(c, round(1.0 - i * 0.1, 2)) for i, c in enumerate(rows[:k])]

    def delete(self, metadata_filter: dict[str, Any]) -> int:
        before = len(self.rows)
        self.rows = [
            (i, c) for i, c in self.rows
            if not all(c.metadata.get(key) == value for key, value in metadata_filter.items())
        ]
        return before - len(self.rows)


class FakeRetriever:
    def __init__(self, chunks: list[DocumentChunk] | None = None, error: Exception | None = None) -> None:
        self.chunks = chunks or []
        self.error = error
        self.queries: list[tuple[str, int]] = []

    def similarity_search(self, query: str, k: int = 4) -> list[DocumentChunk]:
        self.queries.append((query, k))
        if self.error is not None:
            raise self.error
        return self.chunks[:k]


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def fake_embeddings() -> FakeEmbeddings:
    return FakeEmbeddings()


@pytest.fixture
def fake_store() -> FakeVectorStore:
    return FakeVectorStore()
