import asyncio
import io
import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from rich.console import Console

from tether_agent.agent.events import ContextEvent, StopEvent, TextEvent, ToolCallEvent, ToolResultEvent
from tether_agent.agent.hooks import PromptResponse, ToolCallHook
from tether_agent.agent.permissions import Permission, PermissionConfig, PermissionManager
from tether_agent.agent.runner import AgentRunner
from tether_agent.agent.session_store import ChatSession
from tether_agent.context.compaction import Compacted, CompactionConfig, CompactionEngine
from tether_agent.context.manager import ContextManager
from tether_agent.llm.messages import Message, Role, ToolCall
from tether_agent.llm.views import ChatInvokeCompletion
from tether_agent.system_tools.registry import ToolRegistry
from tether_agent.tokens.counter import TokenCounter
from tether_agent.tokens.model_registry import ModelRegistry


class _ScriptedLLM:
    """Returns queued completions; ``prompt`` serves compaction summaries."""

    model = "scripted"
    provider = "test"
    name = "scripted"

    def __init__(self, completions: list[ChatInvokeCompletion], summary: str = "summary") -> None:
        self.completions = list(completions)
        self.summary = summary
        self.seen: list[list] = []

    async def ainvoke(self, messages, tools=None, **kwargs) -> ChatInvokeCompletion:
        self.seen.append(list(messages))
        return self.completions.pop(0)

    async def prompt(self, text: str) -> str:
        return self.summary


class _Prompter:
    def __init__(self, response: PromptResponse) -> None:
        self.response = response
        self.asked: list[str] = []

    async def ask(self, tool_name: str, display_args: str) -> PromptResponse:
        self.asked.append(tool_name)
        return self.response


def _call(call_id: str, name: str, **arguments) -> ToolCall:
    return ToolCall(id=call_id, name=name, arguments=json.dumps(arguments))


class TestAgentRunner(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        base = Path(self._td.name).resolve()
        self.project = base / "project"
        self.project.mkdir()
        self.sessions = base / "sessions"
        self.events: list = []

    def tearDown(self) -> None:
        self._td.cleanup()

    def _runner(
        self,
        llm: _ScriptedLLM,
        *,
        prompter: _Prompter | None = None,
        permissions: PermissionConfig | None = None,
        window: int = 100_000,
        compaction: CompactionConfig | None = None,
        max_iterations: int = 25,
    ) -> AgentRunner:
        counter = TokenCounter(tokenizer=lambda text, model: len(text.split()))
        self.prompter = prompter or _Prompter(PromptResponse.YES)
        hook = ToolCallHook(
            manager=PermissionManager(permissions),
            project_root=self.project,
            prompter=self.prompter,
            console=Console(file=io.StringIO()),
        )
        self.session = ChatSession.create(model=llm.model, system_prompt="sys", root=self.sessions)
        return AgentRunner(
            llm=llm,  # type: ignore[arg-type]
            registry=ToolRegistry.with_builtins(self.project),
            hook=hook,
            session=self.session,
            context_manager=ContextManager(
                counter=counter,
                registry=ModelRegistry({llm.model: window}),
                engine=CompactionEngine(llm, counter),
                config=compaction,
            ),
            max_iterations=max_iterations,
            on_event=self.events.append,
        )

    def test_plain_reply(self) -> None:
        runner = self._runner(_ScriptedLLM([ChatInvokeCompletion(content="Hello!")]))

        result = asyncio.run(runner.run_turn("hi"))

        self.assertEqual(result.text, "Hello!")
        self.assertEqual(result.stop_reason, "completed")
        self.assertEqual([m.role for m in self.session.messages], [Role.SYSTEM, Role.USER, Role.ASSISTANT])
        self.assertIsInstance(self.events[0], TextEvent)
        self.assertIsInstance(self.events[-2], ContextEvent)
        self.assertEqual(self.events[-1], StopEvent(reason="completed"))

    def test_empty_reply_is_not_persisted(self) -> None:
        llm = _ScriptedLLM(
            [
                ChatInvokeCompletion(content=None, stop_reason="max_tokens"),
                ChatInvokeCompletion(content="Back again."),
            ]
        )
        runner = self._runner(llm)

        with self.assertLogs("tether_agent.agent.runner", level="WARNING"):
            first = asyncio.run(runner.run_turn("hi"))
        asyncio.run(runner.run_turn("still there?"))

        self.assertEqual(first.text, "")
        self.assertEqual(first.stop_reason, "completed")
        self.assertEqual(
            [m.role for m in self.session.messages],
            [Role.SYSTEM, Role.USER, Role.USER, Role.ASSISTANT],
        )
        reloaded = ChatSession.load(self.session.id, root=self.sessions)
        self.assertNotIn(Message.assistant(""), reloaded.messages)

    def test_tool_call_is_executed_and_result_fed_back(self) -> None:
        (self.project / "notes.txt").write_text("remember the milk\n", encoding="utf-8")
        llm = _ScriptedLLM(
            [
                ChatInvokeCompletion(content=None, tool_calls=[_call("t1", "read_file", path="notes.txt")]),
                ChatInvokeCompletion(content="It says to remember the milk."),
            ]
        )
        runner = self._runner(llm)

        result = asyncio.run(runner.run_turn("what is in notes.txt?"))

        self.assertEqual(result.text, "It says to remember the milk.")
        tool_msg = self.session.messages[3]
        self.assertEqual(tool_msg.role, Role.TOOL)
        self.assertEqual(tool_msg.tool_call_id, "t1")
        self.assertEqual(tool_msg.text, "remember the milk\n")
        self.assertFalse(tool_msg.is_error)
        # second request includes the tool result
        self.assertEqual(llm.seen[1][-1], tool_msg)

        kinds = [type(e) for e in self.events]
        self.assertEqual(kinds[:2], [ToolCallEvent, ToolResultEvent])

    def test_rejected_tool_call_is_reported_to_the_model(self) -> None:
        llm = _ScriptedLLM(
            [
                ChatInvokeCompletion(tool_calls=[_call("t1", "bash", command="rm -rf build")]),
                ChatInvokeCompletion(content="Okay, I will not."),
            ]
        )
        runner = self._runner(llm, prompter=_Prompter(PromptResponse.NO))

        asyncio.run(runner.run_turn("clean up"))

        tool_msg = self.session.messages[3]
        self.assertTrue(tool_msg.is_error)
        self.assertEqual(tool_msg.text, "User rejected the change for 'bash'")
        result_event = next(e for e in self.events if isinstance(e, ToolResultEvent))
        self.assertTrue(result_event.skipped)
        self.assertEqual(self.prompter.asked, ["bash"])

    def test_denied_tool_does_not_run(self) -> None:
        llm = _ScriptedLLM(
            [
                ChatInvokeCompletion(tool_calls=[_call("t1", "write_file", path="x.txt", content="x")]),
                ChatInvokeCompletion(content="Could not write."),
            ]
        )
        runner = self._runner(llm, permissions=PermissionConfig(tools={"write_file": Permission.DENY}))

        asyncio.run(runner.run_turn("write x"))

        self.assertFalse((self.project / "x.txt").exists())
        self.assertEqual(self.session.messages[3].text, "Tool 'write_file' is disabled by user configuration")

    def test_max_iterations_stops_the_loop(self) -> None:
        looping = [ChatInvokeCompletion(tool_calls=[_call(f"t{i}", "glob", pattern="*")]) for i in range(3)]
        runner = self._runner(_ScriptedLLM(looping), max_iterations=3)

        result = asyncio.run(runner.run_turn("loop"))

        self.assertEqual(result.stop_reason, "max_iterations")
        self.assertEqual(self.events[-1], StopEvent(reason="max_iterations"))
        self.assertEqual(sum(1 for m in self.session.messages if m.role == Role.TOOL), 3)

    def test_compaction_after_turn_rewrites_session_file(self) -> None:
        llm = _ScriptedLLM([ChatInvokeCompletion(content="done " * 20)], summary="short summary")
        runner = self._runner(
            llm,
            window=200,
            compaction=CompactionConfig(threshold=0.3, reserved_tokens=0, keep_recent=1),
        )
        for i in range(4):
            self.session.append(Message.user(f"earlier message {i} " + "pad " * 5))

        result = asyncio.run(runner.run_turn("latest"))

        self.assertIsInstance(result.report.compaction, Compacted)
        self.assertEqual(result.report.trigger, "auto")
        self.assertEqual(self.session.messages[1].text, "[Previous context summary]: short summary")

        lines = self.session.file_path.read_text(encoding="utf-8").splitlines()
        self.assertEqual(len(lines), len(self.session.messages) + 1)
        self.assertEqual(json.loads(lines[-1])["event"], "compaction")

    def test_provider_error_propagates(self) -> None:
        llm = _ScriptedLLM([])
        llm.ainvoke = mock.AsyncMock(side_effect=RuntimeError("boom"))  # type: ignore[method-assign]
        runner = self._runner(llm)

        with self.assertRaises(RuntimeError):
            asyncio.run(runner.run_turn("hi"))
        self.assertEqual(self.session.messages[-1].role, Role.USER)


if __name__ == "__main__":
    unittest.main(verbosity=2)
