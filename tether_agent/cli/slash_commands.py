from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document
from rich.text import Text

from tether_agent.context.compaction import Compacted
from tether_agent.tokens.counter import format_token_usage

if TYPE_CHECKING:
    from tether_agent.cli.render import EventRenderer
    from tether_agent.agent.runner import AgentRunner


class CommandAction(Enum):
    CONTINUE = "continue"
    EXIT = "exit"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class SlashCommandSpec:
    name: str
    description: str
    aliases: tuple[str, ...] = ()

    def slash_name(self) -> str:
        if self.aliases:
            return f"/{self.name} ({', '.join('/' + a for a in self.aliases)})"
        return f"/{self.name}"


@dataclass(frozen=True, slots=True)
class SlashCommandCall:
    name: str
    args: str
    raw_input: str


def parse_slash_command_call(user_input: str) -> SlashCommandCall | None:
    text = user_input.strip()
    if not text or not text.startswith("/"):
        return None

    match = re.match(r"^\/([a-zA-Z0-9_-]+)", text)
    if match is None:
        return None
    if len(text) > match.end() and not text[match.end()].isspace():
        return None

    return SlashCommandCall(
        name=match.group(1).lower(),
        args=text[match.end() :].lstrip(),
        raw_input=text,
    )


SLASH_COMMAND_SPECS: tuple[SlashCommandSpec, ...] = (
    SlashCommandSpec(name="help", description="Show available slash commands", aliases=("h",)),
    SlashCommandSpec(name="history", description="Show conversation history"),
    SlashCommandSpec(name="clear", description="Clear conversation (keeps the system prompt)"),
    SlashCommandSpec(name="compact", description="Summarize old context to free tokens"),
    SlashCommandSpec(name="tokens", description="Show current context usage"),
    SlashCommandSpec(name="exit", description="Exit the chat", aliases=("quit", "q")),
)


def _resolve_name(name: str) -> str | None:
    for spec in SLASH_COMMAND_SPECS:
        if name == spec.name or name in spec.aliases:
            return spec.name
    return None


class SlashCommandCompleter(Completer):
    """Completes ``/name`` at the start of the input."""

    def get_completions(self, document: Document, complete_event):  # type: ignore[override]
        text = document.text_before_cursor
        if not text.startswith("/") or " " in text:
            return
        prefix = text[1:].lower()
        for spec in SLASH_COMMAND_SPECS:
            if spec.name.startswith(prefix):
                yield Completion(f"/{spec.name}", start_position=-len(text), display_meta=spec.description)


async def handle_slash_command(
    call: SlashCommandCall,
    *,
    runner: "AgentRunner",
    renderer: "EventRenderer",
) -> CommandAction:
    name = _resolve_name(call.name)
    console = renderer.console
    session = runner.session
    if name is None:
        console.print(Text(f"Unknown command: /{call.name}. Type /help for commands.", style="yellow"))
        return CommandAction.UNKNOWN

    if name == "exit":
        return CommandAction.EXIT

    if name == "help":
        console.print(Text("Commands:", style="bold"))
        for spec in SLASH_COMMAND_SPECS:
            line = Text("  ")
            line.append(spec.slash_name(), style="cyan")
            line.append(f" - {spec.description}")
            console.print(line)
        console.print(Text("  Ctrl+D - exit", style="dim"))
        return CommandAction.CONTINUE

    if name == "history":
        renderer.render_history(session.messages)
        return CommandAction.CONTINUE

    if name == "clear":
        session.clear_history()
        console.print(Text("History cleared.", style="dim"))
        return CommandAction.CONTINUE

    if name == "compact":
        result = await runner.context_manager.compact_now(session.messages, runner.model)
        if isinstance(result, Compacted):
            session.rewrite()
            session.append_event(
                "compaction",
                trigger="manual",
                messages_removed=result.removed,
                tokens_before=result.tokens_before,
                tokens_after=result.tokens_after,
            )
        renderer.render_compaction("Compacted", result)
        return CommandAction.CONTINUE

    if name == "tokens":
        status = runner.context_manager.status(session.messages, runner.model)
        console.print(Text(f"Context: {format_token_usage(status.used, status.limit)} tokens", style="dim"))
        return CommandAction.CONTINUE

    return CommandAction.UNKNOWN
