from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal

HookAction = Literal["proceed", "skip"]

DISPLAY_ARGS_LIMIT = 200


class PromptResponse(str, Enum):
    YES = "yes"
    NO = "no"
    ALWAYS = "always"


@dataclass(frozen=True, slots=True)
class HookDecision:
    action: HookAction
    reason: str | None = None

    @classmethod
    def proceed(cls) -> "HookDecision":
        return cls(action="proceed")

    @classmethod
    def skip(cls, reason: str) -> "HookDecision":
        return cls(action="skip", reason=reason)

    @property
    def should_proceed(self) -> bool:
        return self.action == "proceed"


def disabled_reason(tool_name: str) -> str:
    return f"Tool '{tool_name}' is disabled by user configuration"


def rejected_reason(tool_name: str) -> str:
    return f"User rejected the change for '{tool_name}'"


PROMPT_FAILED_REASON = "Failed to read user input for permission prompt"


def display_args(raw_args: str, limit: int = DISPLAY_ARGS_LIMIT) -> str:
    if len(raw_args) <= limit:
        return raw_args
    return raw_args[:limit] + "..."
