from tether_agent.agent.events import (
    AgentEvent,
    ContextEvent,
    StopEvent,
    TextEvent,
    ToolCallEvent,
    ToolResultEvent,
)
from tether_agent.agent.hooks import HookDecision, PromptResponse, ToolCallHook
from tether_agent.agent.permissions import Permission, PermissionConfig, PermissionManager
from tether_agent.agent.runner import AgentRunner, TurnResult
from tether_agent.agent.session_store import ChatSession, SessionMeta, list_sessions
from tether_agent.agent.settings import Settings, resolve_settings

__all__ = [
    "AgentEvent",
    "AgentRunner",
    "ChatSession",
    "ContextEvent",
    "HookDecision",
    "Permission",
    "PermissionConfig",
    "PermissionManager",
    "PromptResponse",
    "SessionMeta",
    "Settings",
    "StopEvent",
    "TextEvent",
    "ToolCallEvent",
    "ToolCallHook",
    "ToolResultEvent",
    "TurnResult",
    "list_sessions",
    "resolve_settings",
]
