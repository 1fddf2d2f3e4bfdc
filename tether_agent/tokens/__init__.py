from tether_agent.tokens.counter import TokenCounter, format_number, format_token_usage
from tether_agent.tokens.model_registry import (
    DEFAULT_CONTEXT_WINDOW,
    DEFAULT_MODEL,
    ModelInfo,
    ModelRegistry,
)

__all__ = [
    "DEFAULT_CONTEXT_WINDOW",
    "DEFAULT_MODEL",
    "ModelInfo",
    "ModelRegistry",
    "TokenCounter",
    "format_number",
    "format_token_usage",
]
