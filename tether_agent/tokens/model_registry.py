"""
Known models and their context windows.

Lookup is by exact model name; unknown models use DEFAULT_CONTEXT_WINDOW.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

DEFAULT_CONTEXT_WINDOW = 128_000
DEFAULT_MODEL = "claude-sonnet-4-5"


@dataclass(frozen=True)
class ModelInfo:
    name: str
    context_window: int
    provider: str


KNOWN_MODELS: tuple[ModelInfo, ...] = (
    # Anthropic
    ModelInfo("claude-opus-4-6", 200_000, "anthropic"),
    ModelInfo("claude-sonnet-4-6", 200_000, "anthropic"),
    ModelInfo("claude-haiku-4-5", 200_000, "anthropic"),
    ModelInfo("claude-sonnet-4-5", 200_000, "anthropic"),
    ModelInfo("claude-opus-4", 200_000, "anthropic"),
    # OpenAI
    ModelInfo("gpt-5.2", 1_047_576, "openai"),
    ModelInfo("gpt-5-mini", 1_047_576, "openai"),
    ModelInfo("gpt-5-nano", 1_047_576, "openai"),
    ModelInfo("gpt-4.1", 1_047_576, "openai"),
    ModelInfo("gpt-4.1-mini", 1_047_576, "openai"),
    ModelInfo("gpt-4.1-nano", 1_047_576, "openai"),
    ModelInfo("o3", 200_000, "openai"),
    ModelInfo("o4-mini", 200_000, "openai"),
    # Ollama
    ModelInfo("llama3", 8_192, "ollama"),
    ModelInfo("llama3:70b", 8_192, "ollama"),
    ModelInfo("codellama", 16_384, "ollama"),
    ModelInfo("mistral", 32_768, "ollama"),
    ModelInfo("mixtral", 32_768, "ollama"),
)


class ModelRegistry:
    """Context window lookup with optional per-model overrides from settings."""

    def __init__(self, overrides: Mapping[str, int] | None = None) -> None:
        self._windows: dict[str, int] = {m.name: m.context_window for m in KNOWN_MODELS}
        self._overrides: dict[str, int] = dict(overrides or {})

    def context_window(self, model: str) -> int:
        if model in self._overrides:
            return self._overrides[model]
        return self._windows.get(model, DEFAULT_CONTEXT_WINDOW)

    def known_models(self, provider: str | None = None) -> list[ModelInfo]:
        models = [m for m in KNOWN_MODELS if provider is None or m.provider == provider]
        known = {m.name for m in models}
        for name, window in self._overrides.items():
            if name not in known and provider is None:
                models.append(ModelInfo(name, window, "custom"))
        return models
