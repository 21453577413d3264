"""
LangGraph agent: call_model -> (run_tools -> call_model)* -> END.

The model decides which tools to call; this module only supplies the prompt
(system instructions, conversation history, user input, tool-call scratchpad),
executes the requested tools and records an ordered step trace. Invoke runs the
compiled graph; streaming runs the same loop by hand so answer tokens can be
forwarded as they arrive.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterator, Literal, TypedDict

from langgraph.graph import END, StateGraph

from app.agent.tools import ToolSet

logger = logging.getLogger(__name__)

MAX_ITERATIONS_MESSAGE = "Agent stopped due to max iterations."


class AgentState(TypedDict):
    messages: list  # OpenAI chat messages, scratchpad included
    pending_tool_calls: list
    steps: list  # list of {"tool", "toolInput", "observation"}
    output: str
    iteration: int
    max_iterations: int
    temperature: float | None
    max_tokens: int | None


@dataclass
class RunOptions:
    """Per-request overrides taken from the API `options` object; unknown keys are ignored."""

    temperature: float | None = None
    max_tokens: int | None = None
    max_iterations: int | None = None

    @classmethod
    def from_dict(cls, options: dict[str, Any] | None) -> "RunOptions":
        opts = options or {}
        out = cls()
        try:
            if opts.get("temperature") is not None:
                out.temperature = min(max(float(opts["temperature"]), 0.0), 2.0)
            if opts.get("maxTokens") is not None:
                out.max_tokens = max(int(opts["maxTokens"]), 1)
            if opts.get("maxIterations") is not None:
                out.max_iterations = max(int(opts["maxIterations"]), 1)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid options: {e}") from e
        return out


@dataclass
class AgentResult:
    output: str
    steps: list[dict[str, Any]] = field(default_factory=list)


def _assistant_tool_message(content: str | None, tool_calls: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "role": "assistant",
        "content": content or "",
        "tool_calls": [
            {
                "id": tc["id"],
                "type": "function",
                "function": {"name": tc["name"], "arguments": json.dumps(tc.get("arguments") or {})},
            }
            for tc in tool_calls
        ],
    }


class Agent:
    def __init__(self, llm: Any, tools: ToolSet, system_prompt: str, max_iterations: int = 15) -> None:
        self.llm = llm
        self.tools = tools
        self.system_prompt = system_prompt
        self.max_iterations = max_iterations
        self.graph = self._build_graph()

    # --- prompt ---

    def build_messages(
        self,
        question: str,
        history: list[dict[str, str]] | None = None,
        context: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        system = self.system_prompt
        if context:
            system += "\n\nAdditional context provided by the caller:\n" + json.dumps(context, ensure_ascii=False, default=str)
        messages: list[dict[str, Any]] = [{"role": "system", "content": system}]
        messages.extend(history or [])
        messages.append({"role": "user", "content": question})
        return messages

    def _execute_tool_calls(self, tool_calls: list[dict[str, Any]]) -> tuple[list[dict], list[dict]]:
        """Run tools in the order the model listed them. Returns (tool messages, steps)."""
        tool_messages, steps = [], []
        for tc in tool_calls:
            name = tc.get("name", "")
            args = tc.get("arguments") or {}
            observation = self.tools.execute(name, args)
            logger.info("[graph:run_tools] tool=%s observation_len=%d", name, len(observation))
            tool_messages.append({"role": "tool", "tool_call_id": tc.get("id", ""), "content": observation})
            steps.append({"tool": name, "toolInput": args, "observation": observation})
        return tool_messages, steps

    # --- graph ---

    def _call_model(self, state: AgentState) -> dict:
        logger.info("[graph:call_model] IN  iteration=%d messages=%d", state["iteration"], len(state["messages"]))
        content, tool_calls = self.llm.chat_with_tools(
            state["messages"],
            self.tools.specs(),
            max_tokens=state.get("max_tokens"),
            temperature=state.get("temperature"),
        )
        if not tool_calls:
            logger.info("[graph:call_model] OUT final answer_len=%d", len(content or ""))
            return {"output": content or "", "pending_tool_calls": []}
        return {
            "messages": state["messages"] + [_assistant_tool_message(content, tool_calls)],
            "pending_tool_calls": tool_calls,
            "iteration": state["iteration"] + 1,
        }

    def _run_tools(self, state: AgentState) -> dict:
        tool_messages, steps = self._execute_tool_calls(state["pending_tool_calls"])
        return {
            "messages": state["messages"] + tool_messages,
            "steps": state["steps"] + steps,
            "pending_tool_calls": [],
        }

    def _stop(self, state: AgentState) -> dict:
        logger.warning("[graph:stop] reached max_iterations=%d", state["max_iterations"])
        return {"output": MAX_ITERATIONS_MESSAGE}

    @staticmethod
    def _route_after_model(state: AgentState) -> Literal["run_tools", "__end__"]:
        return "run_tools" if state.get("pending_tool_calls") else END

    @staticmethod
    def _route_after_tools(state: AgentState) -> Literal["call_model", "stop"]:
        return "stop" if state["iteration"] >= state["max_iterations"] else "call_model"

    def _build_graph(self):
        graph = StateGraph(AgentState)
        graph.add_node("call_model", self._call_model)
        graph.add_node("run_tools", self._run_tools)
        graph.add_node("stop", self._stop)
        graph.set_entry_point("call_model")
        graph.add_conditional_edges("call_model", self._route_after_model)
        graph.add_conditional_edges("run_tools", self._route_after_tools)
        graph.add_edge("stop", END)
        return graph.compile()

    def run(
        self,
        question: str,
        history: list[dict[str, str]] | None = None,
        context: dict[str, Any] | None = None,
        options: RunOptions | None = None,
    ) -> AgentResult:
        """Run the tool loop to completion. Returns the final answer and the tool-call trace."""
        opts = options or RunOptions()
        max_iterations = opts.max_iterations or self.max_iterations
        initial: AgentState = {
            "messages": self.build_messages(question, history, context),
            "pending_tool_calls": [],
            "steps": [],
            "output": "",
            "iteration": 0,
            "max_iterations": max_iterations,
            "temperature": opts.temperature,
            "max_tokens": opts.max_tokens,
        }
        logger.info("[graph:run] START question=%r history_len=%d tools=%s", question, len(history or []), self.tools.names)
        # Each iteration is two graph steps (call_model, run_tools)
        final = self.graph.invoke(initial, config={"recursion_limit": 2 * max_iterations + 5})
        result = AgentResult(output=(final.get("output") or "").strip(), steps=final.get("steps") or [])
        logger.info("[graph:run] END steps=%d answer_len=%d", len(result.steps), len(result.output))
        return result

    # --- streaming ---

    def stream(
        self,
        question: str,
        history: list[dict[str, str]] | None = None,
        context: dict[str, Any] | None = None,
        options: RunOptions | None = None,
    ) -> Iterator[dict[str, Any]]:
        """
        Yields {"event": "chunk", "content": str} for answer tokens,
        {"event": "tool", "name", "input", "observation"} per tool call, and finally
        {"event": "done", "output": str, "steps": list}. Closing the generator closes the LLM stream.
        """
        opts = options or RunOptions()
        max_iterations = opts.max_iterations or self.max_iterations
        messages = self.build_messages(question, history, context)
        steps: list[dict[str, Any]] = []
        logger.info("[graph:stream] START question=%r history_len=%d", question, len(history or []))
        for _ in range(max_iterations):
            streamed: list[str] = []
            tool_calls: list[dict[str, Any]] | None = None
            content_with_tools = ""
            llm_stream = self.llm.chat_with_tools_stream(
                messages, self.tools.specs(), max_tokens=opts.max_tokens, temperature=opts.temperature
            )
            try:
                for item in llm_stream:
                    if item[0] == "content_delta":
                        streamed.append(item[1])
                        yield {"event": "chunk", "content": item[1]}
                    elif item[0] == "tool_calls":
                        tool_calls, content_with_tools = item[1], item[2] or ""
            finally:
                llm_stream.close()
            if not tool_calls:
                output = "".join(streamed).strip()
                logger.info("[graph:stream] END steps=%d answer_len=%d", len(steps), len(output))
                yield {"event": "done", "output": output, "steps": steps}
                return
            messages.append(_assistant_tool_message(content_with_tools, tool_calls))
            tool_messages, new_steps = self._execute_tool_calls(tool_calls)
            messages.extend(tool_messages)
            steps.extend(new_steps)
            for step in new_steps:
                yield {"event": "tool", "name": step["tool"], "input": step["toolInput"], "observation": step["observation"]}
        logger.warning("[graph:stream] reached max_iterations=%d", max_iterations)
        yield {"event": "done", "output": MAX_ITERATIONS_MESSAGE, "steps": steps}
