"""
Conversation message types.

A conversation is an ordered ``list[Message]``. Index 0 is normally the system
prompt; the context layer relies on that position and never removes it.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


# 显示用的角色名（/history 输出）
ROLE_DISPLAY_NAMES: dict[Role, str] = {
    Role.SYSTEM: "system",
    Role.USER: "you",
    Role.ASSISTANT: "assistant",
    Role.TOOL: "tool",
}


class ToolCall(BaseModel):
    """A tool invocation requested by the model.

    ``arguments`` is kept as the raw JSON text the model produced so that the
    permission layer and the session log see exactly what was requested.
    """

    id: str
    name: str
    arguments: str = "{}"

    def parsed_arguments(self) -> dict[str, Any]:
        try:
            parsed = json.loads(self.arguments or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}
        return parsed if isinstance(parsed, dict) else {}


class Message(BaseModel):
    role: Role
    text: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
    tool_call_id: str | None = None
    tool_name: str | None = None
    is_error: bool = False

    model_config = {"extra": "forbid"}

    @model_validator(mode="after")
    def _check_tool_message(self) -> "Message":
        if self.role == Role.TOOL and not self.tool_call_id:
            raise ValueError("tool message requires tool_call_id")
        if self.role != Role.ASSISTANT and self.tool_calls:
            raise ValueError("only assistant messages may carry tool_calls")
        return self

    @classmethod
    def system(cls, text: str) -> "Message":
        return cls(role=Role.SYSTEM, text=text)

    @classmethod
    def user(cls, text: str) -> "Message":
        return cls(role=Role.USER, text=text)

    @classmethod
    def assistant(cls, text: str = "", tool_calls: list[ToolCall] | None = None) -> "Message":
        return cls(role=Role.ASSISTANT, text=text, tool_calls=list(tool_calls or []))

    @classmethod
    def tool_result(
        cls,
        *,
        tool_call_id: str,
        tool_name: str,
        text: str,
        is_error: bool = False,
    ) -> "Message":
        return cls(
            role=Role.TOOL,
            text=text,
            tool_call_id=tool_call_id,
            tool_name=tool_name,
            is_error=is_error,
        )

    @property
    def expects_tool_results(self) -> bool:
        """Assistant turns that requested tools are not terminal."""
        return self.role == Role.ASSISTANT and bool(self.tool_calls)

    def countable_text(self) -> str:
        """Text used for token accounting (includes tool-call arguments)."""
        if not self.tool_calls:
            return self.text
        parts = [self.text] if self.text else []
        for call in self.tool_calls:
            parts.append(f"{call.name}({call.arguments})")
        return "\n".join(parts)

    def display_name(self) -> str:
        return ROLE_DISPLAY_NAMES[self.role]
