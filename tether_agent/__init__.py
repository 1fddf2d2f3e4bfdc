"""
A terminal coding assistant: a tool-calling agent loop over the local project,
with a permission gateway in front of every tool call and a context-budget
manager that compacts or truncates history as the window fills up.

Example:
    from pathlib import Path

    from tether_agent.system_tools import ToolRegistry

    registry = ToolRegistry.with_builtins(Path.cwd())
    result = await registry.execute("grep", {"pattern": "def main"})
    print(result.content)
"""

from tether_agent.agent import (
    AgentRunner,
    ChatSession,
    Permission,
    PermissionConfig,
    PermissionManager,
    Settings,
    ToolCallHook,
    resolve_settings,
)
from tether_agent.context import CompactionConfig, CompactionEngine, ContextManager
from tether_agent.llm import ChatAnthropic, Message, Role, ToolCall
from tether_agent.system_tools import ToolRegistry, ToolResult
from tether_agent.tokens import ModelRegistry, TokenCounter

__all__ = [
    "AgentRunner",
    "ChatAnthropic",
    "ChatSession",
    "CompactionConfig",
    "CompactionEngine",
    "ContextManager",
    "Message",
    "ModelRegistry",
    "Permission",
    "PermissionConfig",
    "PermissionManager",
    "Role",
    "Settings",
    "TokenCounter",
    "ToolCall",
    "ToolCallHook",
    "ToolRegistry",
    "ToolResult",
    "resolve_settings",
]
