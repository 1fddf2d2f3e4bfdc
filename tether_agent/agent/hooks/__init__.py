from tether_agent.agent.hooks.models import HookDecision, PromptResponse
from tether_agent.agent.hooks.prompter import (
    LinePrompter,
    PermissionPrompter,
    PromptUnavailableError,
    QuestionaryPrompter,
    default_prompter,
)
from tether_agent.agent.hooks.tool_call import ToolCallHook

__all__ = [
    "HookDecision",
    "LinePrompter",
    "PermissionPrompter",
    "PromptResponse",
    "PromptUnavailableError",
    "QuestionaryPrompter",
    "ToolCallHook",
    "default_prompter",
]
