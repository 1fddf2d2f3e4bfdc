from __future__ import annotations

from pydantic import BaseModel, Field

from tether_agent.llm.messages import ToolCall


class ChatInvokeUsage(BaseModel):
    """
    Usage information for a chat model invocation.
    """

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    prompt_cached_tokens: int | None = None


class ChatInvokeCompletion(BaseModel):
    """
    Response from a chat model invocation.
    """

    content: str | None = None
    tool_calls: list[ToolCall] = Field(default_factory=list)
    usage: ChatInvokeUsage | None = None
    stop_reason: str | None = None

    @property
    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0
