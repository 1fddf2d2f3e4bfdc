"""
Event types emitted by the agent loop.

Usage:
    def on_event(event):
        match event:
            case ToolCallEvent(tool=name):
                print(f"Calling {name}")
            case TextEvent(content=text):
                print(text)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal, Union

if TYPE_CHECKING:
    from tether_agent.context.manager import ContextReport


@dataclass
class TextEvent:
    """Emitted when the assistant produces text content."""

    content: str

    def __str__(self) -> str:
        preview = self.content[:100] + "..." if len(self.content) > 100 else self.content
        return f"💬 {preview}"


@dataclass
class ToolCallEvent:
    """Emitted when the assistant calls a tool."""

    tool: str
    arguments: str
    """Raw JSON arguments as produced by the model."""
    tool_call_id: str

    def __str__(self) -> str:
        args = self.arguments if len(self.arguments) <= 80 else self.arguments[:77] + "..."
        return f"🔧 {self.tool}({args})"


@dataclass
class ToolResultEvent:
    """Emitted when a tool returns a result or is skipped by the permission hook."""

    tool: str
    result: str
    tool_call_id: str
    is_error: bool = False
    skipped: bool = False

    def __str__(self) -> str:
        prefix = "❌" if self.is_error else "✓"
        preview = self.result[:80] + "..." if len(self.result) > 80 else self.result
        return f"   {prefix} {self.tool}: {preview}"


@dataclass
class ContextEvent:
    """Emitted after each turn with the context usage report."""

    report: "ContextReport"


@dataclass
class StopEvent:
    reason: Literal["completed", "max_iterations"]

    def __str__(self) -> str:
        return f"🛑 Stop: {self.reason}"


AgentEvent = Union[TextEvent, ToolCallEvent, ToolResultEvent, ContextEvent, StopEvent]
