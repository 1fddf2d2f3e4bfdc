import asyncio
import unittest
from unittest import mock

from tether_agent.context.compaction import (
    SUMMARY_PREFIX,
    Compacted,
    CompactionEngine,
    CompactionFailed,
    NothingToCompact,
    render_transcript,
)
from tether_agent.llm.messages import Message, Role, ToolCall
from tether_agent.tokens.counter import TokenCounter


def _counter() -> TokenCounter:
    return TokenCounter(tokenizer=lambda text, model: len(text.split()))


def _conversation(n_users: int) -> list[Message]:
    return [Message.system("sys")] + [Message.user(f"message {i} " + "pad " * 10) for i in range(n_users)]


class TestCompactionEngine(unittest.TestCase):
    def test_older_messages_are_replaced_by_summary(self) -> None:
        llm = mock.AsyncMock()
        llm.prompt.return_value = "  the user asked for things  "
        engine = CompactionEngine(llm, _counter())
        messages = _conversation(7)
        recent = messages[-4:]

        result = asyncio.run(engine.compact(messages, "m", keep_recent=4))

        self.assertIsInstance(result, Compacted)
        self.assertEqual(result.removed, 3)
        self.assertEqual(result.summary, "the user asked for things")
        self.assertGreater(result.saved, 0)
        self.assertEqual(result.saved, result.tokens_before - result.tokens_after)

        self.assertEqual(len(messages), 6)
        self.assertEqual(messages[0], Message.system("sys"))
        self.assertEqual(messages[1], Message.system(SUMMARY_PREFIX + "the user asked for things"))
        self.assertEqual(messages[2:], recent)

    def test_prompt_covers_only_the_compacted_range(self) -> None:
        llm = mock.AsyncMock()
        llm.prompt.return_value = "summary"
        engine = CompactionEngine(llm, _counter())
        messages = _conversation(6)

        asyncio.run(engine.compact(messages, "m", keep_recent=4))

        prompt = llm.prompt.await_args.args[0]
        self.assertIn("[user]: message 0", prompt)
        self.assertIn("[user]: message 1", prompt)
        self.assertNotIn("message 2", prompt)
        self.assertNotIn("[system]: sys", prompt)

    def test_nothing_to_compact(self) -> None:
        llm = mock.AsyncMock()
        engine = CompactionEngine(llm, _counter())

        for n_users in (0, 3, 4):
            messages = _conversation(n_users)
            before = list(messages)
            self.assertEqual(asyncio.run(engine.compact(messages, "m", keep_recent=4)), NothingToCompact())
            self.assertEqual(messages, before)
        llm.prompt.assert_not_awaited()

    def test_failure_leaves_history_untouched(self) -> None:
        llm = mock.AsyncMock()
        llm.prompt.side_effect = RuntimeError("rate limited")
        engine = CompactionEngine(llm, _counter())
        messages = _conversation(8)
        before = list(messages)

        result = asyncio.run(engine.compact(messages, "m", keep_recent=4))

        self.assertEqual(result, CompactionFailed(reason="Failed to generate compaction summary: rate limited"))
        self.assertEqual(messages, before)

    def test_empty_summary_is_a_failure(self) -> None:
        llm = mock.AsyncMock()
        llm.prompt.return_value = "   "
        engine = CompactionEngine(llm, _counter())
        messages = _conversation(8)
        before = list(messages)

        result = asyncio.run(engine.compact(messages, "m", keep_recent=4))

        self.assertIsInstance(result, CompactionFailed)
        self.assertEqual(messages, before)

    def test_keep_recent_zero_compacts_everything_after_system(self) -> None:
        llm = mock.AsyncMock()
        llm.prompt.return_value = "all of it"
        engine = CompactionEngine(llm, _counter())
        messages = _conversation(3)

        result = asyncio.run(engine.compact(messages, "m", keep_recent=0))

        self.assertEqual(result.removed, 3)
        self.assertEqual([m.role for m in messages], [Role.SYSTEM, Role.SYSTEM])


class TestRenderTranscript(unittest.TestCase):
    def test_roles_and_tool_calls(self) -> None:
        call = ToolCall(id="t1", name="glob", arguments='{"pattern": "*.py"}')
        text = render_transcript(
            [
                Message.user("find files"),
                Message.assistant("", [call]),
                Message.tool_result(tool_call_id="t1", tool_name="glob", text="a.py"),
            ]
        )
        self.assertEqual(
            text,
            '[user]: find files\n\n[assistant]: glob({"pattern": "*.py"})\n\n[tool]: a.py\n\n',
        )


if __name__ == "__main__":
    unittest.main(verbosity=2)
