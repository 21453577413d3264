"""
Agent tools: definitions and execution for tool-calling mode.

Tools: calculator, get_current_time (general agent); document_search (RAG agent).
A tool never raises: bad arguments and internal failures come back as text so
the model can read the error and carry on.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from app.agent.calculator import evaluate, format_number

logger = logging.getLogger(__name__)

NO_DOCUMENTS_FOUND = "No relevant documents found."


@dataclass
class Tool:
    name: str
    description: str
    func: Callable[..., str]
    parameters: dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})

    def to_openai(self) -> dict[str, Any]:
        """OpenAI function-calling format."""
        return {
            "type": "function",
            "function": {"name": self.name, "description": self.description, "parameters": self.parameters},
        }

    def invoke(self, arguments: dict[str, Any] | None = None) -> str:
        args = arguments or {}
        logger.info("[tools] invoke name=%r arguments=%r", self.name, args)
        missing = [p for p in self.parameters.get("required", []) if args.get(p) in (None, "")]
        if missing:
            return f"Error: missing required argument(s): {', '.join(missing)}"
        known = self.parameters.get("properties", {})
        kwargs = {k: v for k, v in args.items() if k in known}
        try:
            return str(self.func(**kwargs))
        except Exception as e:
            logger.warning("[tools] %s failed: %s", self.name, e)
            return f"Error running {self.name}: {e}"


class ToolSet:
    """Ordered tools by name; unknown names return an error string."""

    def __init__(self, tools: list[Tool]) -> None:
        self._tools = {t.name: t for t in tools}

    def __iter__(self):
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def specs(self) -> list[dict[str, Any]]:
        return [t.to_openai() for t in self._tools.values()]

    def execute(self, name: str, arguments: dict[str, Any] | None) -> str:
        tool = self._tools.get(name)
        if tool is None:
            return f"Unknown tool: {name}"
        return tool.invoke(arguments)


def _calculator(expression: str) -> str:
    try:
        return f"Result: {format_number(evaluate(str(expression)))}"
    except (ValueError, ArithmeticError) as e:
        return f"Error calculating: {e}"


def _current_time() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


calculator_tool = Tool(
    name="calculator",
    description=(
        "Performs basic arithmetic operations. Use this tool to calculate mathematical expressions. "
        "Supports numbers, + - * / // % ** ^ and parentheses."
    ),
    func=_calculator,
    parameters={
        "type": "object",
        "properties": {
            "expression": {
                "type": "string",
                "description": 'The mathematical expression to evaluate (e.g., "2 + 2", "10 * 5")',
            }
        },
        "required": ["expression"],
    },
)

current_time_tool = Tool(
    name="get_current_time",
    description="Gets the current date and time (UTC, ISO-8601). Use this when you need to know what time it is now.",
    func=_current_time,
)


def format_search_results(chunks: list[Any]) -> str:
    if not chunks:
        return NO_DOCUMENTS_FOUND
    blocks = []
    for i, chunk in enumerate(chunks, 1):
        source = chunk.metadata.get("source") or "Unknown"
        blocks.append(f"[Document {i}]\nSource: {source}\nContent: {chunk.content}\n")
    return f"Found {len(chunks)} relevant document(s):\n\n" + "\n---\n\n".join(blocks)


def make_document_search_tool(retriever: Any, k: int = 4) -> Tool:
    """document_search bound to a retriever (anything with similarity_search(query, k))."""

    def _search(query: str) -> str:
        try:
            chunks = retriever.similarity_search(query, k=k)
        except Exception as e:
            logger.warning("[tools] document_search failed: %s", e)
            return f"Error searching documents: {getattr(e, 'message', None) or e}"
        return format_search_results(chunks)

    return Tool(
        name="document_search",
        description=(
            "Searches internal documents for relevant information. Use this when you need to find information "
            "from company documents, manuals, or knowledge base."
        ),
        func=_search,
        parameters={
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "The search query to find relevant documents"}
            },
            "required": ["query"],
        },
    )


def build_agent_tools() -> ToolSet:
    return ToolSet([calculator_tool, current_time_tool])


def build_rag_tools(retriever: Any, k: int = 4) -> ToolSet:
    return ToolSet([make_document_search_tool(retriever, k=k)])
