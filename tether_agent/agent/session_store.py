"""Session persistence: append-only JSONL log plus a sessions index.

Layout under the sessions root (default ``~/.tether/sessions``)::

    index.json          # list of SessionMeta
    <session_id>.jsonl  # one message per line; event lines carry "event"

Compaction and truncation rewrite history in place, so after either the
whole JSONL file is rewritten from the live message list.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from tether_agent.llm.messages import Message, Role

logger = logging.getLogger("tether_agent.agent.session_store")

INDEX_FILE_NAME = "index.json"
TITLE_MAX_CHARS = 50


class SessionStoreError(Exception):
    pass


def default_sessions_root() -> Path:
    return Path.home() / ".tether" / "sessions"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _atomic_write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=".tmp_", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_name, path)
    finally:
        if os.path.exists(tmp_name):
            os.remove(tmp_name)


@dataclass
class SessionMeta:
    id: str
    title: str
    model: str
    created_at: str
    updated_at: str
    message_count: int = 0


def make_title(messages: list[Message]) -> str:
    first_user = next((m for m in messages if m.role == Role.USER and m.text.strip()), None)
    if first_user is None:
        return "(untitled)"
    text = " ".join(first_user.text.split())
    if len(text) > TITLE_MAX_CHARS:
        return text[:TITLE_MAX_CHARS] + "..."
    return text


def load_index(root: Path) -> list[SessionMeta]:
    path = root / INDEX_FILE_NAME
    if not path.exists():
        return []
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Failed to read session index {path}: {e}")
        return []
    if not isinstance(raw, list):
        logger.warning(f"Session index is not a list: {path}")
        return []

    entries: list[SessionMeta] = []
    for item in raw:
        try:
            entries.append(SessionMeta(**item))
        except TypeError:
            logger.warning(f"Skipping malformed session index entry: {item!r}")
    return entries


def save_index(root: Path, entries: list[SessionMeta]) -> None:
    _atomic_write(root / INDEX_FILE_NAME, json.dumps([asdict(e) for e in entries], indent=2, ensure_ascii=False))


def list_sessions(root: Path | None = None) -> list[SessionMeta]:
    """Sessions ordered by most recent update first."""
    entries = load_index(root or default_sessions_root())
    return sorted(entries, key=lambda e: e.updated_at, reverse=True)


@dataclass
class ChatSession:
    """A conversation and its on-disk log.

    ``messages`` is the live list the agent loop and the context manager
    mutate; ``append`` mirrors single additions to disk and ``rewrite``
    resynchronizes after in-place edits.
    """

    model: str
    root: Path = field(default_factory=default_sessions_root)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    messages: list[Message] = field(default_factory=list)
    created_at: str = field(default_factory=_now)

    @property
    def file_path(self) -> Path:
        return self.root / f"{self.id}.jsonl"

    @classmethod
    def create(cls, *, model: str, system_prompt: str | None, root: Path | None = None) -> "ChatSession":
        session = cls(model=model, root=root or default_sessions_root())
        session.root.mkdir(parents=True, exist_ok=True)
        session.file_path.touch()
        if system_prompt:
            session.append(Message.system(system_prompt))
        else:
            session._update_index()
        return session

    @classmethod
    def load(cls, session_id: str, *, root: Path | None = None) -> "ChatSession":
        base = root or default_sessions_root()
        path = base / f"{session_id}.jsonl"
        if not path.exists():
            raise SessionStoreError(f"Session not found: {session_id}")

        messages: list[Message] = []
        with path.open("r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                except json.JSONDecodeError:
                    logger.warning(f"{path}:{lineno}: skipping malformed line")
                    continue
                if not isinstance(data, dict) or "event" in data:
                    continue
                try:
                    messages.append(Message.model_validate(data))
                except ValidationError as e:
                    logger.warning(f"{path}:{lineno}: skipping invalid message: {e.error_count()} error(s)")

        meta = next((m for m in load_index(base) if m.id == session_id), None)
        session = cls(
            model=meta.model if meta else "",
            root=base,
            id=session_id,
            messages=messages,
            created_at=meta.created_at if meta else _now(),
        )
        logger.debug(f"Loaded session {session_id} ({len(messages)} messages)")
        return session

    def title(self) -> str:
        return make_title(self.messages)

    def _append_line(self, payload: dict[str, Any]) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        with self.file_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(payload, ensure_ascii=False) + "\n")

    def append(self, message: Message) -> None:
        self.messages.append(message)
        self._append_line(message.model_dump(mode="json"))
        self._update_index()

    def append_event(self, event: str, **data: Any) -> None:
        """Non-message record (compaction, truncation); ignored on replay."""
        self._append_line({"event": event, "timestamp": _now(), **data})

    def rewrite(self) -> None:
        lines = [json.dumps(m.model_dump(mode="json"), ensure_ascii=False) for m in self.messages]
        _atomic_write(self.file_path, "".join(line + "\n" for line in lines))
        self._update_index()

    def clear_history(self, *, keep_system: bool = True) -> None:
        # Only the leading system prompt survives; compaction summaries go too
        if keep_system and self.messages and self.messages[0].role == Role.SYSTEM:
            del self.messages[1:]
        else:
            self.messages.clear()
        self.rewrite()

    def _update_index(self) -> None:
        entries = [e for e in load_index(self.root) if e.id != self.id]
        entries.append(
            SessionMeta(
                id=self.id,
                title=self.title(),
                model=self.model,
                created_at=self.created_at,
                updated_at=_now(),
                message_count=len(self.messages),
            )
        )
        save_index(self.root, entries)
