"""多轮工具调用循环

一轮用户输入：
    追加 user 消息 -> 调用模型 -> 追加 assistant 消息 ->
    对每个 tool call 先过 ToolCallHook，proceed 才执行，skip 以错误结果回填 ->
    直到模型不再请求工具或达到 max_iterations ->
    ContextManager.after_turn（可能压缩/截断），历史变化时重写 session 文件
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Literal

from tether_agent.agent.events import (
    AgentEvent,
    ContextEvent,
    StopEvent,
    TextEvent,
    ToolCallEvent,
    ToolResultEvent,
)
from tether_agent.agent.hooks.tool_call import ToolCallHook
from tether_agent.agent.session_store import ChatSession
from tether_agent.context.compaction import Compacted
from tether_agent.context.manager import ContextManager, ContextReport
from tether_agent.llm.base import BaseChatModel
from tether_agent.llm.messages import Message
from tether_agent.system_tools.registry import ToolRegistry
from tether_agent.system_tools.tool_result import ToolResult

logger = logging.getLogger("tether_agent.agent.runner")

DEFAULT_MAX_ITERATIONS = 25

EventCallback = Callable[[AgentEvent], None]


@dataclass
class TurnResult:
    text: str
    stop_reason: Literal["completed", "max_iterations"]
    report: ContextReport


class AgentRunner:
    def __init__(
        self,
        *,
        llm: BaseChatModel,
        registry: ToolRegistry,
        hook: ToolCallHook,
        session: ChatSession,
        context_manager: ContextManager,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        on_event: EventCallback | None = None,
    ) -> None:
        self.llm = llm
        self.registry = registry
        self.hook = hook
        self.session = session
        self.context_manager = context_manager
        self.max_iterations = max_iterations
        self.on_event = on_event

    @property
    def model(self) -> str:
        return self.llm.model

    def _emit(self, event: AgentEvent) -> None:
        if self.on_event is not None:
            self.on_event(event)

    async def _run_tool(self, name: str, arguments: str, tool_call_id: str) -> None:
        self._emit(ToolCallEvent(tool=name, arguments=arguments, tool_call_id=tool_call_id))

        decision = await self.hook.on_tool_call(name, arguments)
        if decision.should_proceed:
            result = await self.registry.execute(name, arguments)
        else:
            logger.debug(f"跳过工具 {name}: {decision.reason}")
            result = ToolResult.error("PERMISSION_DENIED", decision.reason or f"Tool '{name}' was skipped")

        self.session.append(
            Message.tool_result(
                tool_call_id=tool_call_id,
                tool_name=name,
                text=result.content,
                is_error=result.is_error,
            )
        )
        self._emit(
            ToolResultEvent(
                tool=name,
                result=result.content,
                tool_call_id=tool_call_id,
                is_error=result.is_error,
                skipped=not decision.should_proceed,
            )
        )

    async def run_turn(self, user_text: str) -> TurnResult:
        self.session.append(Message.user(user_text))
        tools = self.registry.definitions()
        final_text = ""
        stop_reason: Literal["completed", "max_iterations"] = "max_iterations"

        for _ in range(self.max_iterations):
            completion = await self.llm.ainvoke(self.session.messages, tools=tools)
            if completion.content or completion.tool_calls:
                self.session.append(Message.assistant(completion.content or "", completion.tool_calls))
            else:
                logger.warning("模型返回了空回复，不写入会话")

            if completion.content:
                final_text = completion.content
                self._emit(TextEvent(content=completion.content))

            if not completion.tool_calls:
                stop_reason = "completed"
                break

            for call in completion.tool_calls:
                await self._run_tool(call.name, call.arguments, call.id)
        else:
            logger.warning(f"达到最大迭代次数 {self.max_iterations}，本轮结束")

        report = await self.context_manager.after_turn(self.session.messages, self.model)
        if report.changed_history:
            self.session.rewrite()
            self._record_context_change(report)

        self._emit(ContextEvent(report=report))
        self._emit(StopEvent(reason=stop_reason))
        return TurnResult(text=final_text, stop_reason=stop_reason, report=report)

    def _record_context_change(self, report: ContextReport) -> None:
        if isinstance(report.compaction, Compacted):
            self.session.append_event(
                "compaction",
                trigger=report.trigger,
                messages_removed=report.compaction.removed,
                tokens_before=report.compaction.tokens_before,
                tokens_after=report.compaction.tokens_after,
            )
        if report.truncated:
            self.session.append_event("truncation", messages_removed=report.truncated)
