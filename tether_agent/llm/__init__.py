"""
LLM message types and provider adapters.
"""

from tether_agent.llm.anthropic.chat import ChatAnthropic
from tether_agent.llm.base import BaseChatModel, ToolDefinition
from tether_agent.llm.exceptions import ModelError, ModelProviderError, ModelRateLimitError
from tether_agent.llm.messages import Message, Role, ToolCall
from tether_agent.llm.views import ChatInvokeCompletion, ChatInvokeUsage

__all__ = [
    "BaseChatModel",
    "ChatAnthropic",
    "ChatInvokeCompletion",
    "ChatInvokeUsage",
    "Message",
    "ModelError",
    "ModelProviderError",
    "ModelRateLimitError",
    "Role",
    "ToolCall",
    "ToolDefinition",
]
