"""截断兜底

压缩不可用或失败时，从最旧的非 system 消息开始删除，直到用量不超过
上下文窗口的 70%。system 消息永远保留。
"""

from __future__ import annotations

import logging

from tether_agent.llm.messages import Message, Role
from tether_agent.tokens.counter import TokenCounter
from tether_agent.tokens.model_registry import ModelRegistry

logger = logging.getLogger("tether_agent.context.truncation")

TRUNCATION_TARGET_RATIO = 0.70


def truncate_oldest_messages(
    messages: list[Message],
    model: str,
    counter: TokenCounter,
    registry: ModelRegistry,
) -> int:
    """删除最旧的非 system 消息直到用量 <= 目标值，返回删除条数"""
    target = int(registry.context_window(model) * TRUNCATION_TARGET_RATIO)
    removed = 0

    while len(messages) > 1:
        used = counter.count_conversation(messages, model)
        if used <= target:
            break
        index = next((i for i, m in enumerate(messages) if m.role != Role.SYSTEM), None)
        if index is None:
            break
        del messages[index]
        removed += 1

    if removed:
        logger.warning(f"上下文截断：删除了 {removed} 条最旧消息 (目标 {target} tokens)")
    return removed
