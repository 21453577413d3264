"""Schemas for the agent and RAG endpoints. JSON keys are camelCase (sessionId, memoryInfo)."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class InvokeRequest(CamelModel):
    """Body for POST /api/agent/invoke. History is stored server-side by sessionId."""

    message: str | None = Field(None, description="User message for the agent. Required (400 when missing).")
    session_id: str | None = Field(None, description="Optional session id; enables summarizing conversation memory.")
    context: dict[str, Any] | None = Field(None, description="Extra context passed to the agent's instructions.")
    options: dict[str, Any] | None = Field(None, description="Overrides: temperature, maxTokens, maxIterations.")


class RagSearchRequest(CamelModel):
    """Body for POST /api/rag/search. `query` is the RAG name for the user message; `message` is also accepted."""

    query: str | None = Field(None, description="User question for the RAG agent.")
    message: str | None = Field(None, description="Alias of query, for clients shared with /api/agent/invoke.")
    session_id: str | None = Field(None, description="Optional session id; enables conversation memory.")
    context: dict[str, Any] | None = None
    options: dict[str, Any] | None = None


class DocumentSearchRequest(CamelModel):
    """Body for POST /api/rag/documents/search (raw similarity search, no LLM)."""

    query: str | None = Field(None, description="Search text.")
    k: int = Field(4, ge=1, le=100, description="Number of results.")
    filter: dict[str, Any] | None = Field(
        None, description='Metadata filter, e.g. {"documentId": "doc-1"} or {"type": ["pdf", "txt"]}.'
    )


class Step(CamelModel):
    tool: str
    tool_input: dict[str, Any] = Field(default_factory=dict)
    observation: str = ""


class MemoryInfo(CamelModel):
    total_messages: int
    has_summary: bool
    max_recent_messages: int


class InvokeData(CamelModel):
    response: str = Field(..., description="Final answer from the agent.")
    context: dict[str, Any] = Field(default_factory=dict)
    steps: list[Step] = Field(default_factory=list, description="Ordered tool calls made by the agent.")
    session_id: str | None = None
    has_memory: bool = False
    memory_info: MemoryInfo | None = None


class InvokeResponse(CamelModel):
    success: bool = True
    data: InvokeData

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "success": True,
                    "data": {
                        "response": "2 + 2 is 4.",
                        "context": {},
                        "steps": [{"tool": "calculator", "toolInput": {"expression": "2 + 2"}, "observation": "Result: 4"}],
                        "sessionId": "user-42",
                        "hasMemory": True,
                        "memoryInfo": {"totalMessages": 2, "hasSummary": False, "maxRecentMessages": 20},
                    },
                }
            ]
        }
    )


class HistoryMessage(CamelModel):
    role: str
    content: str


class SessionHistory(CamelModel):
    recent_messages: list[HistoryMessage] = Field(default_factory=list)
    summary: str | None = None
    total_messages: int = 0
    max_recent_messages: int | None = None


class SessionHistoryResponse(CamelModel):
    success: bool = True
    data: SessionHistory
