from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass
from pathlib import Path

from prompt_toolkit import PromptSession
from prompt_toolkit.history import FileHistory
from rich.console import Console
from rich.table import Table
from rich.text import Text

from tether_agent.agent.hooks.prompter import PermissionPrompter, default_prompter
from tether_agent.agent.hooks.tool_call import ToolCallHook
from tether_agent.agent.permissions import PermissionManager
from tether_agent.agent.runner import AgentRunner
from tether_agent.agent.session_store import ChatSession, default_sessions_root, list_sessions
from tether_agent.agent.settings import USER_CONFIG_DIR, Settings, resolve_settings
from tether_agent.cli.error_display import format_error
from tether_agent.cli.logging_setup import configure_logging
from tether_agent.cli.render import EventRenderer
from tether_agent.cli.slash_commands import (
    CommandAction,
    SlashCommandCompleter,
    handle_slash_command,
    parse_slash_command_call,
)
from tether_agent.context.compaction import CompactionEngine
from tether_agent.context.manager import ContextManager
from tether_agent.llm.anthropic.chat import ChatAnthropic
from tether_agent.llm.base import BaseChatModel
from tether_agent.system_tools.registry import ToolRegistry
from tether_agent.tokens.counter import TokenCounter, format_number
from tether_agent.tokens.model_registry import ModelRegistry

console = Console()
logger = logging.getLogger("tether_agent.cli.app")

HISTORY_FILE_NAME = "chat_history.txt"


@dataclass
class Runtime:
    settings: Settings
    runner: AgentRunner
    renderer: EventRenderer


def build_runtime(
    *,
    project_root: Path,
    settings: Settings,
    session: ChatSession,
    llm: BaseChatModel,
    prompter: PermissionPrompter,
    output: Console,
) -> Runtime:
    counter = TokenCounter()
    registry = ModelRegistry(settings.context_windows)
    renderer = EventRenderer(output)
    hook = ToolCallHook(
        manager=PermissionManager(settings.permissions),
        project_root=project_root,
        prompter=prompter,
        console=output,
    )
    context_manager = ContextManager(
        counter=counter,
        registry=registry,
        engine=CompactionEngine(llm, counter),
        config=settings.compaction,
    )
    runner = AgentRunner(
        llm=llm,
        registry=ToolRegistry.with_builtins(project_root),
        hook=hook,
        session=session,
        context_manager=context_manager,
        on_event=renderer,
    )
    return Runtime(settings=settings, runner=runner, renderer=renderer)


def _open_session(args: argparse.Namespace, settings: Settings, sessions_root: Path) -> ChatSession:
    if args.session:
        session = ChatSession.load(args.session, root=sessions_root)
        if not session.model:
            session.model = settings.model
        return session
    return ChatSession.create(model=settings.model, system_prompt=settings.system_prompt, root=sessions_root)


def _prepare(args: argparse.Namespace) -> tuple[Path, Settings]:
    project_root = Path(args.project or Path.cwd()).expanduser().resolve()
    settings = resolve_settings(project_root)
    if args.model:
        settings.model = args.model
    return project_root, settings


def _make_llm(settings: Settings, model: str) -> ChatAnthropic:
    return ChatAnthropic(model=model, api_key=settings.resolve_api_key(), base_url=settings.base_url)


async def _chat(args: argparse.Namespace) -> int:
    project_root, settings = _prepare(args)
    session = _open_session(args, settings, default_sessions_root())
    runtime = build_runtime(
        project_root=project_root,
        settings=settings,
        session=session,
        llm=_make_llm(settings, session.model or settings.model),
        prompter=default_prompter(),
        output=console,
    )
    runner = runtime.runner

    console.print(Text(f"tether · {runner.model} · {project_root}", style="bold"))
    console.print(Text(f"session {session.id} · /help for commands, Ctrl+D to exit", style="dim"))

    USER_CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    prompt_session: PromptSession[str] = PromptSession(
        history=FileHistory(str(USER_CONFIG_DIR / HISTORY_FILE_NAME)),
        completer=SlashCommandCompleter(),
    )

    while True:
        try:
            user_input = await prompt_session.prompt_async("> ")
        except KeyboardInterrupt:
            continue
        except EOFError:
            break

        if not user_input.strip():
            continue

        call = parse_slash_command_call(user_input)
        if call is not None:
            action = await handle_slash_command(call, runner=runner, renderer=runtime.renderer)
            if action == CommandAction.EXIT:
                break
            continue

        try:
            await runner.run_turn(user_input)
        except KeyboardInterrupt:
            console.print(Text("Interrupted.", style="yellow"))
        except Exception as exc:
            logger.debug("turn failed", exc_info=True)
            message, suggestion = format_error(exc)
            console.print(Text(message, style="red"))
            if suggestion:
                console.print(Text(suggestion, style="dim"))

    console.print(Text(f"Session saved: {session.id}", style="dim"))
    return 0


async def _ask(args: argparse.Namespace) -> int:
    project_root, settings = _prepare(args)
    session = _open_session(args, settings, default_sessions_root())
    runtime = build_runtime(
        project_root=project_root,
        settings=settings,
        session=session,
        llm=_make_llm(settings, session.model or settings.model),
        prompter=default_prompter(),
        output=console,
    )
    try:
        await runtime.runner.run_turn(args.prompt)
    except Exception as exc:
        message, suggestion = format_error(exc)
        console.print(Text(message, style="red"))
        if suggestion:
            console.print(Text(suggestion, style="dim"))
        return 1
    return 0


def _sessions(_: argparse.Namespace) -> int:
    entries = list_sessions()
    if not entries:
        console.print(Text("No saved sessions.", style="dim"))
        return 0
    table = Table(show_header=True, header_style="bold")
    table.add_column("id")
    table.add_column("title")
    table.add_column("model")
    table.add_column("messages", justify="right")
    table.add_column("updated")
    for e in entries:
        table.add_row(e.id, e.title, e.model, str(e.message_count), e.updated_at[:19])
    console.print(table)
    return 0


def _models(args: argparse.Namespace) -> int:
    _, settings = _prepare(args)
    registry = ModelRegistry(settings.context_windows)
    table = Table(show_header=True, header_style="bold")
    table.add_column("model")
    table.add_column("provider")
    table.add_column("context window", justify="right")
    for info in registry.known_models():
        marker = " *" if info.name == settings.model else ""
        table.add_row(info.name + marker, info.provider, format_number(info.context_window))
    console.print(table)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tether", description="Terminal coding assistant")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--project", help="Project root (default: current directory)")
    parser.add_argument("--model", help="Model name (overrides settings)")
    sub = parser.add_subparsers(dest="command")

    chat = sub.add_parser("chat", help="Interactive chat (default)")
    chat.add_argument("--session", help="Resume a saved session by id")

    ask = sub.add_parser("ask", help="Run a single prompt through the agent loop")
    ask.add_argument("prompt")
    ask.add_argument("--session", help="Continue a saved session by id")

    sub.add_parser("sessions", help="List saved sessions")
    sub.add_parser("models", help="List known models and context windows")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=args.verbose)

    command = args.command or "chat"
    if command == "chat" and not hasattr(args, "session"):
        args.session = None

    try:
        if command == "chat":
            return asyncio.run(_chat(args))
        if command == "ask":
            return asyncio.run(_ask(args))
        if command == "sessions":
            return _sessions(args)
        if command == "models":
            return _models(args)
    except KeyboardInterrupt:
        return 130
    except Exception as exc:
        message, suggestion = format_error(exc)
        console.print(Text(message, style="red"))
        if suggestion:
            console.print(Text(suggestion, style="dim"))
        return 1

    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())
