import io
import unittest

from rich.console import Console

from tether_agent.agent.events import ContextEvent, ToolCallEvent, ToolResultEvent
from tether_agent.cli.render import EventRenderer, format_compaction
from tether_agent.context.compaction import Compacted, CompactionFailed
from tether_agent.context.manager import ContextReport
from tether_agent.context.monitor import ContextCritical, ContextOk, ContextWarning


def _renderer() -> tuple[EventRenderer, io.StringIO]:
    buffer = io.StringIO()
    return EventRenderer(Console(file=buffer, width=200)), buffer


class TestFormatCompaction(unittest.TestCase):
    def test_format(self) -> None:
        result = Compacted(removed=12, tokens_before=150_000, tokens_after=30_000, summary="s")
        self.assertEqual(
            format_compaction("Compacted", result),
            "Compacted 12 messages (150,000 → 30,000 tokens, saved 120,000)",
        )


class TestEventRenderer(unittest.TestCase):
    def test_status_line_after_turn(self) -> None:
        renderer, buffer = _renderer()
        renderer(ContextEvent(report=ContextReport(status=ContextOk(used=1200, limit=200_000))))
        self.assertEqual(buffer.getvalue().strip(), "[tokens: 1,200 / 200,000]")

    def test_warning_line(self) -> None:
        renderer, buffer = _renderer()
        renderer(ContextEvent(report=ContextReport(status=ContextWarning(used=170_000, limit=200_000, percent=85))))
        self.assertIn("(85%) -- consider /compact", buffer.getvalue())

    def test_auto_compaction_report(self) -> None:
        renderer, buffer = _renderer()
        report = ContextReport(
            status=ContextOk(used=190_000, limit=200_000),
            compaction=Compacted(removed=10, tokens_before=190_000, tokens_after=20_000, summary="s"),
            trigger="auto",
        )
        renderer.render_report(report)
        self.assertIn("Auto-compacted 10 messages (190,000 → 20,000 tokens, saved 170,000)", buffer.getvalue())

    def test_critical_fallback_report(self) -> None:
        renderer, buffer = _renderer()
        report = ContextReport(
            status=ContextCritical(used=199_000, limit=200_000, percent=99),
            compaction=CompactionFailed(reason="boom"),
            trigger="critical",
            truncated=7,
            notes=["Compaction failed: boom"],
        )
        renderer.render_report(report)
        out = buffer.getvalue()
        self.assertIn("-- compacting...]", out)
        self.assertIn("warning: Compaction failed: boom", out)
        self.assertIn("Truncated 7 oldest messages", out)

    def test_tool_events(self) -> None:
        renderer, buffer = _renderer()
        renderer(ToolCallEvent(tool="grep", arguments='{"pattern": "x"}', tool_call_id="t1"))
        renderer(ToolResultEvent(tool="grep", result="\n".join(f"l{i}" for i in range(20)), tool_call_id="t1"))
        out = buffer.getvalue()
        self.assertIn('→ grep({"pattern": "x"})', out)
        self.assertIn("l7", out)
        self.assertNotIn("l8\n", out)
        self.assertIn("12 more lines", out)


if __name__ == "__main__":
    unittest.main(verbosity=2)
