"""每轮结束后的上下文策略

1. 计数并分级（ContextMonitor）
2. critical：立即压缩；无可压缩内容或压缩失败时截断兜底
3. 本轮尚未压缩、开启了自动压缩且 used / (window - reserved) >= threshold：压缩，
   失败只记 warning，不截断。截断过的话 used 按截断后的历史重新计数
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Literal

from tether_agent.context.compaction import (
    Compacted,
    CompactionConfig,
    CompactionEngine,
    CompactionFailed,
    CompactionResult,
)
from tether_agent.context.monitor import ContextCritical, ContextMonitor, ContextStatus
from tether_agent.context.truncation import truncate_oldest_messages
from tether_agent.llm.messages import Message
from tether_agent.tokens.counter import TokenCounter
from tether_agent.tokens.model_registry import ModelRegistry

logger = logging.getLogger("tether_agent.context.manager")

CompactionTrigger = Literal["critical", "auto", "manual"]


@dataclass
class ContextReport:
    status: ContextStatus
    compaction: CompactionResult | None = None
    trigger: CompactionTrigger | None = None
    truncated: int = 0
    notes: list[str] = field(default_factory=list)

    @property
    def changed_history(self) -> bool:
        return isinstance(self.compaction, Compacted) or self.truncated > 0


class ContextManager:
    def __init__(
        self,
        *,
        counter: TokenCounter,
        registry: ModelRegistry,
        engine: CompactionEngine,
        config: CompactionConfig | None = None,
    ) -> None:
        self.counter = counter
        self.registry = registry
        self.engine = engine
        self.config = config or CompactionConfig()
        self.monitor = ContextMonitor(counter, registry)

    def status(self, messages: list[Message], model: str) -> ContextStatus:
        return self.monitor.check(messages, model)

    def should_auto_compact(self, used: int, model: str) -> bool:
        if not self.config.auto_enabled:
            return False
        effective = max(self.registry.context_window(model) - self.config.reserved_tokens, 1)
        return used / effective >= self.config.threshold

    async def compact_now(self, messages: list[Message], model: str) -> CompactionResult:
        return await self.engine.compact(messages, model, self.config.keep_recent)

    async def after_turn(self, messages: list[Message], model: str) -> ContextReport:
        status = self.monitor.check(messages, model)
        report = ContextReport(status=status)
        used = status.used

        if isinstance(status, ContextCritical):
            result = await self.compact_now(messages, model)
            report.compaction = result
            report.trigger = "critical"
            if isinstance(result, Compacted):
                return report
            if isinstance(result, CompactionFailed):
                logger.warning(f"压缩失败，改为截断: {result.reason}")
                report.notes.append(f"Compaction failed: {result.reason}")
            report.truncated = truncate_oldest_messages(messages, model, self.counter, self.registry)
            if report.truncated:
                used = self.counter.count_conversation(messages, model)

        if self.should_auto_compact(used, model):
            result = await self.compact_now(messages, model)
            if isinstance(result, CompactionFailed):
                logger.warning(f"自动压缩失败: {result.reason}")
                report.notes.append(f"Auto-compaction failed: {result.reason}")
            if report.compaction is None or isinstance(result, Compacted):
                report.compaction = result
                report.trigger = "auto"

        return report
