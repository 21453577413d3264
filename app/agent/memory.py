"""
Conversation memory with summarizing eviction.

Each session keeps its most recent turns verbatim plus one running summary of
everything older. Token cost is estimated as turns x a fixed per-turn average;
no tokenizer is involved. When the estimate goes over budget the oldest turns
are folded into the summary through a summarizer (normally the LLM).
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from app.agent.prompts import SUMMARY_PROMPT

logger = logging.getLogger(__name__)

ROLES = ("user", "assistant")

# (existing_summary, turns_to_fold) -> new summary
Summarizer = Callable[[str, Sequence["Turn"]], str]


@dataclass(frozen=True)
class Turn:
    role: str
    content: str

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"role must be one of {ROLES}, got {self.role!r}")

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class ConversationMemory:
    """Recent turns (chronological) plus a running summary that precedes them."""

    max_recent_messages: int
    avg_tokens_per_turn: int
    turns: list[Turn] = field(default_factory=list)
    summary: str = ""

    @property
    def token_budget(self) -> int:
        return self.max_recent_messages * self.avg_tokens_per_turn

    def estimated_tokens(self) -> int:
        return len(self.turns) * self.avg_tokens_per_turn

    def over_budget(self) -> bool:
        return self.estimated_tokens() > self.token_budget

    def as_messages(self) -> list[dict[str, str]]:
        """Prompt-ready history: summary as a system message, then recent turns."""
        messages: list[dict[str, str]] = []
        if self.summary:
            messages.append({"role": "system", "content": f"Summary of the earlier conversation:\n{self.summary}"})
        messages.extend(t.to_dict() for t in self.turns)
        return messages

    def snapshot(self) -> dict[str, Any]:
        return {
            "recentMessages": [t.to_dict() for t in self.turns],
            "summary": self.summary or None,
            "totalMessages": len(self.turns),
            "maxRecentMessages": self.max_recent_messages,
        }


class SummaryBufferPolicy:
    """
    Keeps a ConversationMemory within its token budget.

    record_turn appends a turn and, if the estimate exceeds the budget, pops the
    oldest turns and folds them into the summary with one summarizer call. If
    the summarizer fails, the popped turns go back to the front of the buffer so
    nothing is lost; the next successful call folds them.
    """

    def __init__(self, summarizer: Summarizer) -> None:
        self.summarizer = summarizer

    def record_turn(self, memory: ConversationMemory, role: str, text: str) -> None:
        memory.turns.append(Turn(role=role, content=text or ""))
        if not memory.over_budget():
            return

        pruned: list[Turn] = []
        while memory.turns and memory.over_budget():
            pruned.append(memory.turns.pop(0))
        logger.info(
            "[memory:record_turn] folding %d turns into summary (kept=%d budget=%d)",
            len(pruned), len(memory.turns), memory.token_budget,
        )
        try:
            new_summary = self.summarizer(memory.summary, pruned)
        except Exception as e:
            logger.warning("[memory:record_turn] summarizer failed, keeping %d turns unsummarized: %s", len(pruned), e)
            memory.turns[:0] = pruned
            return
        memory.summary = (new_summary or "").strip()


def format_turns(turns: Sequence[Turn]) -> str:
    lines = []
    for t in turns:
        label = "Human" if t.role == "user" else "AI"
        lines.append(f"{label}: {t.content}")
    return "\n".join(lines)


class LLMSummarizer:
    """Progressive summarization: existing summary + new lines -> new summary."""

    def __init__(self, llm: Any, max_tokens: int = 512) -> None:
        self.llm = llm
        self.max_tokens = max_tokens

    def __call__(self, summary: str, turns: Sequence[Turn]) -> str:
        prompt = SUMMARY_PROMPT.format(summary=summary or "(none)", new_lines=format_turns(turns))
        logger.info("[memory:summarize] IN  summary_len=%d turns=%d", len(summary or ""), len(turns))
        out = self.llm.complete([{"role": "user", "content": prompt}], max_tokens=self.max_tokens)
        if not out:
            raise RuntimeError("summarizer returned empty text")
        logger.info("[memory:summarize] OUT summary_len=%d", len(out))
        return out
