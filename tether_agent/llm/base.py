"""
Chat model protocol shared by the agent loop and the compaction engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from tether_agent.llm.messages import Message
from tether_agent.llm.views import ChatInvokeCompletion


@dataclass
class ToolDefinition:
    """Provider-neutral tool declaration (JSON Schema parameters)."""

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class BaseChatModel(Protocol):
    model: str

    @property
    def provider(self) -> str: ...

    @property
    def name(self) -> str: ...

    async def ainvoke(
        self,
        messages: list[Message],
        tools: list[ToolDefinition] | None = None,
        **kwargs: Any,
    ) -> ChatInvokeCompletion: ...

    async def prompt(self, text: str) -> str:
        """Single-shot, tool-free completion returning the text reply."""
        ...
