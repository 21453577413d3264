"""
Unit tests for the tool-calling agent (LangGraph run and streaming loop) with a scripted LLM.
"""

import pytest

from app.agent.graph import MAX_ITERATIONS_MESSAGE, Agent, RunOptions
from app.agent.tools import build_agent_tools
from conftest import FakeLLM


def _agent(replies, max_iterations: int = 15) -> tuple[Agent, FakeLLM]:
    llm = FakeLLM(replies)
    return Agent(llm, build_agent_tools(), "You are helpful.", max_iterations=max_iterations), llm


class TestRun:
    def test_direct_answer(self) -> None:
        agent, llm = _agent(["Hello!"])
        result = agent.run("hi")
        assert result.output == "Hello!"
        assert result.steps == []
        assert len(llm.calls) == 1

    def test_tool_call_then_answer(self) -> None:
        agent, llm = _agent([[("calculator", {"expression": "2 + 2"})], "It is 4."])
        result = agent.run("what is 2 + 2?")

        assert result.output == "It is 4."
        assert result.steps == [{"tool": "calculator", "toolInput": {"expression": "2 + 2"}, "observation": "Result: 4"}]
        second_call = llm.calls[1]
        assert second_call[-2]["role"] == "assistant" and second_call[-2]["tool_calls"][0]["function"]["name"] == "calculator"
        assert second_call[-1] == {"role": "tool", "tool_call_id": "call_0", "content": "Result: 4"}

    def test_steps_keep_model_order(self) -> None:
        agent, _ = _agent([[("calculator", {"expression": "1+1"}), ("calculator", {"expression": "2*3"})], "done"])
        result = agent.run("two sums")
        assert [s["observation"] for s in result.steps] == ["Result: 2", "Result: 6"]

    def test_stops_at_max_iterations(self) -> None:
        agent, llm = _agent([[("calculator", {"expression": "1+1"})]], max_iterations=2)
        result = agent.run("loop forever")
        assert result.output == MAX_ITERATIONS_MESSAGE
        assert len(result.steps) == 2
        assert len(llm.calls) == 2

    def test_per_request_max_iterations(self) -> None:
        agent, _ = _agent([[("get_current_time", {})]], max_iterations=10)
        result = agent.run("time?", options=RunOptions(max_iterations=1))
        assert result.output == MAX_ITERATIONS_MESSAGE
        assert len(result.steps) == 1

    def test_history_and_context_reach_the_model(self) -> None:
        agent, llm = _agent(["ok"])
        history = [{"role": "system", "content": "Summary of the earlier conversation:\nuser likes tea"},
                   {"role": "user", "content": "earlier"}]
        agent.run("now", history=history, context={"userName": "Sam"})

        messages = llm.calls[0]
        assert messages[0]["role"] == "system" and '"userName": "Sam"' in messages[0]["content"]
        assert messages[1:3] == history
        assert messages[-1] == {"role": "user", "content": "now"}


class TestRunOptions:
    def test_from_dict(self) -> None:
        opts = RunOptions.from_dict({"temperature": 5, "maxTokens": "100", "maxIterations": 3, "other": 1})
        assert opts.temperature == 2.0
        assert opts.max_tokens == 100
        assert opts.max_iterations == 3

    def test_empty(self) -> None:
        assert RunOptions.from_dict(None) == RunOptions()

    def test_invalid_value(self) -> None:
        with pytest.raises(ValueError):
            RunOptions.from_dict({"maxTokens": "lots"})


class TestStream:
    def test_streams_chunks_then_done(self) -> None:
        agent, llm = _agent(["The answer"])
        events = list(agent.stream("q"))

        chunks = [e["content"] for e in events if e["event"] == "chunk"]
        assert "".join(chunks).strip() == "The answer"
        assert events[-1] == {"event": "done", "output": "The answer", "steps": []}
        assert llm.streams_closed == 1

    def test_streams_tool_events(self) -> None:
        agent, _ = _agent([[("calculator", {"expression": "6*7"})], "42"])
        events = list(agent.stream("6 times 7"))

        tool_events = [e for e in events if e["event"] == "tool"]
        assert tool_events == [{"event": "tool", "name": "calculator", "input": {"expression": "6*7"}, "observation": "Result: 42"}]
        assert events[-1]["output"] == "42"
        assert len(events[-1]["steps"]) == 1

    def test_stream_max_iterations(self) -> None:
        agent, _ = _agent([[("get_current_time", {})]], max_iterations=2)
        events = list(agent.stream("q"))
        assert events[-1]["event"] == "done"
        assert events[-1]["output"] == MAX_ITERATIONS_MESSAGE

    def test_closing_early_closes_llm_stream(self) -> None:
        agent, llm = _agent(["one two three four"])
        events = agent.stream("q")
        assert next(events)["event"] == "chunk"
        events.close()
        assert llm.streams_closed == 1
