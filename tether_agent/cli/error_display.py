"""Unified error formatter for the terminal CLI"""
from __future__ import annotations

from tether_agent.agent.session_store import SessionStoreError
from tether_agent.llm.exceptions import ModelProviderError, ModelRateLimitError


def format_error(exc: Exception) -> tuple[str, str | None]:
    """Convert exception to user-friendly message.

    Returns:
        (error_message, suggestion) - Error message and optional suggestion
    """
    exc_msg = str(exc)

    # LLM Provider errors
    if isinstance(exc, ModelRateLimitError):
        return "⚠️ Rate limit exceeded", "Wait a moment and try again"

    if isinstance(exc, ModelProviderError):
        code = exc.status_code
        if code == 404:
            return "⚠️ Model not found or invalid API path", "Check model in .tether/settings.json"
        if code == 401:
            return "⚠️ Invalid or expired API key", "Set ANTHROPIC_API_KEY or api_key in .tether/settings.json"
        if code == 403:
            return "⚠️ Access denied to this model", "Check API key permissions"
        if code and code >= 500:
            return f"⚠️ Server error ({code})", "Try again later"
        return f"⚠️ API error: {_truncate(exc_msg, 80)}", None

    if isinstance(exc, SessionStoreError):
        return f"⚠️ {_truncate(exc_msg, 80)}", "Run 'tether sessions' to list saved sessions"

    # Network errors (generic detection)
    lower_msg = exc_msg.lower()
    if "timeout" in lower_msg or "timed out" in lower_msg:
        return "⚠️ Request timed out", "Check network connection, or try again"
    if "connection" in lower_msg:
        return "⚠️ Connection failed", "Check network and API endpoint"

    # Generic fallback
    return f"⚠️ Error: {_truncate(exc_msg, 60)}", "You can continue typing"


def _truncate(s: str, max_len: int) -> str:
    return s[:max_len] + "..." if len(s) > max_len else s
