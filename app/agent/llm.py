"""
Agent LLM: OpenAI chat completions (plain, tool-calling, and streamed tool-calling).

One ChatModel is built at startup and shared by both agents and the memory
summarizer. Timeouts and dropped connections are raised as UpstreamTimeoutError
so the API can answer 503 (retryable) instead of failing the process.
"""

import json
import logging
from typing import Any, Iterator

import openai
from openai import OpenAI

from app.core.errors import ServiceUnavailableError, UpstreamTimeoutError

logger = logging.getLogger(__name__)


def _parse_arguments(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    try:
        args = json.loads(raw) if raw else {}
    except json.JSONDecodeError:
        logger.warning("[llm] could not decode tool arguments: %r", raw)
        return {}
    return args if isinstance(args, dict) else {}


class ChatModel:
    """Thin wrapper over the OpenAI client with the agent's model defaults."""

    def __init__(
        self,
        api_key: str,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        timeout: float = 60.0,
        max_retries: int = 2,
        client: Any = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        if client is not None:
            self._client = client
        elif api_key:
            self._client = OpenAI(api_key=api_key, timeout=timeout, max_retries=max_retries)
        else:
            self._client = None
            logger.warning("[llm] OPENAI_API_KEY is not set. Agent functionality will be limited.")

    @property
    def configured(self) -> bool:
        return self._client is not None

    def _create(self, **kwargs: Any) -> Any:
        if self._client is None:
            raise ServiceUnavailableError("OPENAI_API_KEY is not set; the agent LLM is unavailable.")
        kwargs.setdefault("model", self.model)
        try:
            return self._client.chat.completions.create(**kwargs)
        except (openai.APITimeoutError, openai.APIConnectionError) as e:
            logger.warning("[llm] upstream timeout/connection error: %s", e)
            raise UpstreamTimeoutError(f"LLM request failed, please retry: {e}") from e

    def complete(
        self,
        messages: list[dict[str, Any]],
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        """Plain completion. Returns generated text (may be empty)."""
        logger.info("[llm:complete] IN  messages=%d", len(messages))
        response = self._create(
            messages=messages,
            max_tokens=max_tokens or self.max_tokens,
            temperature=self.temperature if temperature is None else temperature,
        )
        msg = response.choices[0].message if response.choices else None
        out = ((msg.content if msg else None) or "").strip()
        logger.info("[llm:complete] OUT response_len=%d", len(out))
        return out

    def chat_with_tools(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> tuple[str | None, list[dict[str, Any]] | None]:
        """
        Call chat with tools. Returns (content, tool_calls). If tool_calls is non-empty, caller should execute
        them and call again with tool results; if content is set and no tool_calls, that's the final answer.
        """
        kwargs: dict[str, Any] = {
            "messages": messages,
            "max_tokens": max_tokens or self.max_tokens,
            "temperature": self.temperature if temperature is None else temperature,
        }
        if tools:
            kwargs["tools"] = tools
        response = self._create(**kwargs)
        msg = response.choices[0].message if response.choices else None
        if not msg:
            return None, None
        content = (getattr(msg, "content", None) or "").strip() or None
        tool_calls = []
        for tc in getattr(msg, "tool_calls", None) or []:
            fn = getattr(tc, "function", None)
            if not fn:
                continue
            tool_calls.append({
                "id": getattr(tc, "id", None) or "",
                "name": getattr(fn, "name", None) or "",
                "arguments": _parse_arguments(getattr(fn, "arguments", None)),
            })
        if tool_calls:
            logger.info("[llm:chat_with_tools] OUT tool_calls=%s", [t["name"] for t in tool_calls])
        if content:
            logger.info("[llm:chat_with_tools] OUT content_len=%d", len(content))
        return content, tool_calls or None

    def chat_with_tools_stream(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> Iterator[tuple]:
        """
        Call chat with tools and stream the response. Yields:
        - ('content_delta', str) for each token of the final answer;
        - ('content_done',) when the answer is complete (no tool_calls);
        - ('tool_calls', list[dict], content_str) when the model called tools (content_str may be empty).
        Closing the generator closes the upstream HTTP stream.
        """
        kwargs: dict[str, Any] = {
            "messages": messages,
            "max_tokens": max_tokens or self.max_tokens,
            "temperature": self.temperature if temperature is None else temperature,
            "stream": True,
        }
        if tools:
            kwargs["tools"] = tools
        stream = self._create(**kwargs)
        content_parts: list[str] = []
        tool_calls_accum: dict[int, dict[str, Any]] = {}
        try:
            for chunk in stream:
                if not chunk.choices:
                    continue
                d = chunk.choices[0].delta
                if getattr(d, "content", None):
                    content_parts.append(d.content)
                    yield ("content_delta", d.content)
                for tc in getattr(d, "tool_calls", None) or []:
                    idx = getattr(tc, "index", 0)
                    acc = tool_calls_accum.setdefault(idx, {"id": "", "name": "", "arguments": ""})
                    if getattr(tc, "id", None):
                        acc["id"] = tc.id
                    fn = getattr(tc, "function", None)
                    if fn is not None:
                        if getattr(fn, "name", None):
                            acc["name"] = fn.name
                        if getattr(fn, "arguments", None):
                            acc["arguments"] += fn.arguments
        except (openai.APITimeoutError, openai.APIConnectionError) as e:
            logger.warning("[llm:chat_with_tools_stream] stream interrupted: %s", e)
            raise UpstreamTimeoutError(f"LLM stream interrupted, please retry: {e}") from e
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                close()
        full_content = "".join(content_parts)
        if tool_calls_accum:
            tool_calls_list = [
                {"id": t["id"], "name": t["name"], "arguments": _parse_arguments(t["arguments"])}
                for t in (tool_calls_accum[i] for i in sorted(tool_calls_accum))
            ]
            logger.info("[llm:chat_with_tools_stream] OUT tool_calls=%s", [x["name"] for x in tool_calls_list])
            yield ("tool_calls", tool_calls_list, full_content)
        else:
            logger.info("[llm:chat_with_tools_stream] OUT content_done len=%d", len(full_content))
            yield ("content_done",)
