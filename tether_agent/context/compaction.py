"""
Conversation compaction.

Older messages (everything between the system prompt and the most recent
``keep_recent`` messages) are summarized by the model and replaced with a
single system message carrying the summary.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, Union

from tether_agent.llm.messages import Message
from tether_agent.tokens.counter import TokenCounter

logger = logging.getLogger("tether_agent.context.compaction")

DEFAULT_KEEP_RECENT = 4
DEFAULT_AUTO_THRESHOLD = 0.90
DEFAULT_RESERVED_TOKENS = 10_000

SUMMARY_PREFIX = "[Previous context summary]: "

COMPACTION_PROMPT = (
    "Summarize the conversation below so that it can replace the original messages. "
    "Keep the user's goals and explicit instructions, decisions that were made, "
    "files that were read or changed (with paths), commands that were run and their "
    "important results, errors and how they were resolved, and any work still pending. "
    "Be concise and factual. Do not add commentary or ask questions.\n\n"
    "Conversation:\n\n"
)


@dataclass
class CompactionConfig:
    """Configuration for compaction.

    Attributes:
            auto_enabled: Whether compaction may run automatically after a turn.
            threshold: Fraction of the effective window (context window minus
                    reserved_tokens) at which automatic compaction triggers.
            keep_recent: Number of most recent messages never compacted.
            reserved_tokens: Headroom kept free for the model's reply.
    """

    auto_enabled: bool = True
    threshold: float = DEFAULT_AUTO_THRESHOLD
    keep_recent: int = DEFAULT_KEEP_RECENT
    reserved_tokens: int = DEFAULT_RESERVED_TOKENS


@dataclass(frozen=True)
class NothingToCompact:
    pass


@dataclass(frozen=True)
class Compacted:
    removed: int
    tokens_before: int
    tokens_after: int
    summary: str

    @property
    def saved(self) -> int:
        return self.tokens_before - self.tokens_after


@dataclass(frozen=True)
class CompactionFailed:
    reason: str


CompactionResult = Union[NothingToCompact, Compacted, CompactionFailed]


class SummaryModel(Protocol):
    async def prompt(self, text: str) -> str: ...


def render_transcript(messages: list[Message]) -> str:
    return "".join(f"[{m.role.value}]: {m.countable_text()}\n\n" for m in messages)


class CompactionEngine:
    def __init__(self, llm: SummaryModel, counter: TokenCounter) -> None:
        self.llm = llm
        self.counter = counter

    async def compact(self, messages: list[Message], model: str, keep_recent: int) -> CompactionResult:
        """Summarize ``messages[1:len - keep_recent]`` in place.

        The list is left untouched unless the summary request succeeds.
        """
        keep_recent = max(keep_recent, 0)
        if len(messages) <= 1 + keep_recent:
            return NothingToCompact()
        end = len(messages) - keep_recent
        if end <= 1:
            return NothingToCompact()

        tokens_before = self.counter.count_conversation(messages, model)
        prompt_text = COMPACTION_PROMPT + render_transcript(messages[1:end])

        try:
            summary = await self.llm.prompt(prompt_text)
        except Exception as e:
            logger.warning(f"Compaction summary request failed: {e}")
            return CompactionFailed(reason=f"Failed to generate compaction summary: {e}")

        summary = (summary or "").strip()
        if not summary:
            logger.warning("Compaction returned an empty summary; keeping history")
            return CompactionFailed(reason="Model returned an empty summary")

        removed = end - 1
        messages[1:end] = [Message.system(SUMMARY_PREFIX + summary)]
        tokens_after = self.counter.count_conversation(messages, model)

        logger.info(f"Compacted {removed} messages ({tokens_before} -> {tokens_after} tokens)")
        return Compacted(
            removed=removed,
            tokens_before=tokens_before,
            tokens_after=tokens_after,
            summary=summary,
        )
