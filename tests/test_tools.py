"""
Unit tests for agent tools: calculator, get_current_time, document_search, ToolSet dispatch.
"""

from datetime import datetime

from app.agent.tools import (
    NO_DOCUMENTS_FOUND,
    Tool,
    ToolSet,
    build_agent_tools,
    build_rag_tools,
    calculator_tool,
    current_time_tool,
    format_search_results,
    make_document_search_tool,
)
from app.core.errors import ServiceUnavailableError
from app.services.vector_store import DocumentChunk
from conftest import FakeRetriever


class TestCalculatorTool:
    def test_simple_sum(self) -> None:
        out = calculator_tool.invoke({"expression": "2 + 2"})
        assert out == "Result: 4"

    def test_malformed_expression_returns_error_string(self) -> None:
        out = calculator_tool.invoke({"expression": "2 + * oops"})
        assert out.startswith("Error calculating:")

    def test_missing_argument(self) -> None:
        out = calculator_tool.invoke({})
        assert out == "Error: missing required argument(s): expression"

    def test_ignores_unknown_arguments(self) -> None:
        assert calculator_tool.invoke({"expression": "3*3", "verbose": True}) == "Result: 9"


class TestCurrentTimeTool:
    def test_iso_utc_with_millis(self) -> None:
        out = current_time_tool.invoke({})
        assert out.endswith("Z")
        parsed = datetime.fromisoformat(out.replace("Z", "+00:00"))
        assert parsed.tzinfo is not None
        assert len(out.split(".")[1]) == 4  # three digits of milliseconds + Z


class TestDocumentSearchTool:
    def test_no_results_sentinel(self) -> None:
        tool = make_document_search_tool(FakeRetriever([]))
        assert tool.invoke({"query": "anything"}) == NO_DOCUMENTS_FOUND

    def test_formats_results_with_sources(self) -> None:
        chunks = [
            DocumentChunk("Refunds take 5 days.", {"source": "policy.pdf"}),
            DocumentChunk("Contact support.", {}),
        ]
        retriever = FakeRetriever(chunks)
        out = make_document_search_tool(retriever, k=3).invoke({"query": "refunds"})

        assert out.startswith("Found 2 relevant document(s):")
        assert "[Document 1]\nSource: policy.pdf\nContent: Refunds take 5 days." in out
        assert "[Document 2]\nSource: Unknown" in out
        assert "\n---\n\n" in out
        assert retriever.queries == [("refunds", 3)]

    def test_retriever_failure_becomes_text(self) -> None:
        tool = make_document_search_tool(FakeRetriever(error=ServiceUnavailableError("Milvus is not configured")))
        assert tool.invoke({"query": "x"}) == "Error searching documents: Milvus is not configured"

    def test_format_search_results_empty(self) -> None:
        assert format_search_results([]) == "No relevant documents found."


class TestToolSet:
    def test_agent_and_rag_tool_names(self) -> None:
        assert build_agent_tools().names == ["calculator", "get_current_time"]
        assert build_rag_tools(FakeRetriever()).names == ["document_search"]

    def test_unknown_tool(self) -> None:
        assert build_agent_tools().execute("shell", {"cmd": "ls"}) == "Unknown tool: shell"

    def test_specs_are_openai_functions(self) -> None:
        specs = build_agent_tools().specs()
        assert specs[0]["type"] == "function"
        assert specs[0]["function"]["name"] == "calculator"
        assert specs[0]["function"]["parameters"]["required"] == ["expression"]

    def test_tool_exception_becomes_text(self) -> None:
        def boom() -> str:
            raise RuntimeError("kaput")

        tools = ToolSet([Tool(name="boom", description="fails", func=boom)])
        assert tools.execute("boom", {}) == "Error running boom: kaput"
