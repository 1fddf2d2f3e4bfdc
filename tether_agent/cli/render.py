"""rich 输出：对话事件、上下文状态行、压缩报告"""
from __future__ import annotations

from rich.console import Console
from rich.markdown import Markdown
from rich.text import Text

from tether_agent.agent.events import (
    AgentEvent,
    ContextEvent,
    TextEvent,
    ToolCallEvent,
    ToolResultEvent,
)
from tether_agent.context.compaction import Compacted, CompactionFailed, CompactionResult
from tether_agent.context.manager import ContextReport
from tether_agent.context.monitor import describe_status
from tether_agent.llm.messages import Message, Role
from tether_agent.tokens.counter import format_number

TOOL_RESULT_PREVIEW_LINES = 8


def format_compaction(label: str, result: Compacted) -> str:
    return (
        f"{label} {result.removed} messages "
        f"({format_number(result.tokens_before)} → {format_number(result.tokens_after)} tokens, "
        f"saved {format_number(result.saved)})"
    )


def _preview(text: str, max_lines: int = TOOL_RESULT_PREVIEW_LINES) -> str:
    lines = text.splitlines()
    if len(lines) <= max_lines:
        return text
    return "\n".join(lines[:max_lines]) + f"\n… {len(lines) - max_lines} more lines"


class EventRenderer:
    def __init__(self, console: Console) -> None:
        self.console = console

    def __call__(self, event: AgentEvent) -> None:
        if isinstance(event, TextEvent):
            self.console.print(Markdown(event.content))
        elif isinstance(event, ToolCallEvent):
            args = event.arguments if len(event.arguments) <= 120 else event.arguments[:117] + "..."
            self.console.print(Text(f"→ {event.tool}({args})", style="cyan"))
        elif isinstance(event, ToolResultEvent):
            style = "yellow" if event.skipped else ("red" if event.is_error else "dim")
            self.console.print(Text(_preview(event.result), style=style))
        elif isinstance(event, ContextEvent):
            self.render_report(event.report)

    def render_compaction(self, label: str, result: CompactionResult) -> None:
        if isinstance(result, Compacted):
            self.console.print(Text(format_compaction(label, result), style="green"))
        elif isinstance(result, CompactionFailed):
            self.console.print(Text(f"warning: compaction failed: {result.reason}", style="yellow"))
        else:
            self.console.print(Text("Nothing to compact.", style="dim"))

    def render_report(self, report: ContextReport) -> None:
        text, style = describe_status(report.status)
        self.console.print(Text(text, style=style))
        if isinstance(report.compaction, Compacted):
            label = "Auto-compacted" if report.trigger == "auto" else "Compacted"
            self.console.print(Text(format_compaction(label, report.compaction), style="green"))
        for note in report.notes:
            self.console.print(Text(f"warning: {note}", style="yellow"))
        if report.truncated:
            self.console.print(
                Text(f"Truncated {report.truncated} oldest messages to fit the context window.", style="yellow")
            )

    def render_history(self, messages: list[Message]) -> None:
        for message in messages:
            if message.role == Role.SYSTEM:
                continue
            style = {"you": "bold blue", "assistant": "bold green", "tool": "bold magenta"}.get(
                message.display_name(), "bold"
            )
            header = Text(f"{message.display_name()}:", style=style)
            self.console.print(header)
            body = message.countable_text() if message.role == Role.ASSISTANT else message.text
            self.console.print(_preview(body) if message.role == Role.TOOL else body, markup=False, highlight=False)
            self.console.print()
