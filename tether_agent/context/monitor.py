"""上下文用量分级

用量 / 窗口 >= 0.95 为 critical，>= 0.80 为 warning，其余为 ok。
每轮结束后从实时消息列表重新计算，不缓存。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from tether_agent.llm.messages import Message
from tether_agent.tokens.counter import TokenCounter, format_token_usage
from tether_agent.tokens.model_registry import ModelRegistry

WARNING_RATIO = 0.80
CRITICAL_RATIO = 0.95


@dataclass(frozen=True)
class ContextOk:
    used: int
    limit: int


@dataclass(frozen=True)
class ContextWarning:
    used: int
    limit: int
    percent: int


@dataclass(frozen=True)
class ContextCritical:
    used: int
    limit: int
    percent: int


ContextStatus = Union[ContextOk, ContextWarning, ContextCritical]


def classify(used: int, limit: int) -> ContextStatus:
    ratio = used / limit if limit > 0 else 1.0
    percent = used * 100 // limit if limit > 0 else 100
    if ratio >= CRITICAL_RATIO:
        return ContextCritical(used=used, limit=limit, percent=percent)
    if ratio >= WARNING_RATIO:
        return ContextWarning(used=used, limit=limit, percent=percent)
    return ContextOk(used=used, limit=limit)


def describe_status(status: ContextStatus) -> tuple[str, str]:
    """状态行文本和 rich 样式"""
    usage = format_token_usage(status.used, status.limit)
    if isinstance(status, ContextCritical):
        return f"[tokens: {usage} ({status.percent}%) -- compacting...]", "red"
    if isinstance(status, ContextWarning):
        return f"[tokens: {usage} ({status.percent}%) -- consider /compact]", "yellow"
    return f"[tokens: {usage}]", "dim"


class ContextMonitor:
    def __init__(self, counter: TokenCounter, registry: ModelRegistry) -> None:
        self.counter = counter
        self.registry = registry

    def check(self, messages: list[Message], model: str) -> ContextStatus:
        used = self.counter.count_conversation(messages, model)
        return classify(used, self.registry.context_window(model))
