import json
import tempfile
import unittest
from pathlib import Path

from tether_agent.agent.session_store import (
    ChatSession,
    SessionStoreError,
    list_sessions,
    load_index,
    make_title,
)
from tether_agent.llm.messages import Message, Role, ToolCall


class TestChatSession(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.root = Path(self._td.name)

    def tearDown(self) -> None:
        self._td.cleanup()

    def test_create_writes_system_prompt_and_index(self) -> None:
        session = ChatSession.create(model="m", system_prompt="sys", root=self.root)

        self.assertTrue(session.file_path.exists())
        self.assertEqual([m.role for m in session.messages], [Role.SYSTEM])
        index = load_index(self.root)
        self.assertEqual([e.id for e in index], [session.id])
        self.assertEqual(index[0].title, "(untitled)")
        self.assertEqual(index[0].message_count, 1)

    def test_round_trip_through_disk(self) -> None:
        session = ChatSession.create(model="m", system_prompt="sys", root=self.root)
        session.append(Message.user("fix the bug"))
        session.append(Message.assistant("", [ToolCall(id="t1", name="read_file", arguments='{"path": "a.py"}')]))
        session.append(Message.tool_result(tool_call_id="t1", tool_name="read_file", text="x = 1"))
        session.append_event("compaction", messages_removed=3)

        loaded = ChatSession.load(session.id, root=self.root)
        self.assertEqual(loaded.messages, session.messages)
        self.assertEqual(loaded.model, "m")
        self.assertEqual(loaded.title(), "fix the bug")

    def test_malformed_lines_are_skipped(self) -> None:
        session = ChatSession.create(model="m", system_prompt="sys", root=self.root)
        with session.file_path.open("a", encoding="utf-8") as f:
            f.write("{broken\n")
            f.write(json.dumps({"role": "tool", "text": "no id"}) + "\n")
            f.write(json.dumps(Message.user("hi").model_dump(mode="json")) + "\n")

        loaded = ChatSession.load(session.id, root=self.root)
        self.assertEqual([m.role for m in loaded.messages], [Role.SYSTEM, Role.USER])

    def test_missing_session_raises(self) -> None:
        with self.assertRaises(SessionStoreError):
            ChatSession.load("nope", root=self.root)

    def test_rewrite_replaces_file_contents(self) -> None:
        session = ChatSession.create(model="m", system_prompt="sys", root=self.root)
        for i in range(4):
            session.append(Message.user(f"u{i}"))
        session.append_event("truncation", messages_removed=2)

        del session.messages[1:3]
        session.rewrite()

        lines = session.file_path.read_text(encoding="utf-8").splitlines()
        self.assertEqual(len(lines), 3)
        self.assertNotIn("event", lines[-1])
        self.assertEqual(load_index(self.root)[0].message_count, 3)

    def test_clear_history_keeps_only_leading_system_prompt(self) -> None:
        session = ChatSession.create(model="m", system_prompt="sys", root=self.root)
        session.append(Message.system("[Previous context summary]: earlier"))
        session.append(Message.user("hi"))

        session.clear_history()
        self.assertEqual(session.messages, [Message.system("sys")])

        session.clear_history(keep_system=False)
        self.assertEqual(session.messages, [])
        self.assertEqual(session.file_path.read_text(encoding="utf-8"), "")

    def test_list_sessions_most_recent_first(self) -> None:
        first = ChatSession.create(model="m", system_prompt=None, root=self.root)
        second = ChatSession.create(model="m", system_prompt=None, root=self.root)
        first.append(Message.user("touched later"))

        ids = [e.id for e in list_sessions(self.root)]
        self.assertEqual(ids, [first.id, second.id])


class TestMakeTitle(unittest.TestCase):
    def test_first_user_message_is_used(self) -> None:
        msgs = [Message.system("s"), Message.user("  hello\n  world "), Message.user("second")]
        self.assertEqual(make_title(msgs), "hello world")

    def test_long_titles_are_shortened(self) -> None:
        title = make_title([Message.user("x" * 80)])
        self.assertEqual(title, "x" * 50 + "...")

    def test_untitled(self) -> None:
        self.assertEqual(make_title([Message.system("s")]), "(untitled)")


if __name__ == "__main__":
    unittest.main(verbosity=2)
