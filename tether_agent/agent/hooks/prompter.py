"""权限确认交互

PermissionPrompter 只负责向用户提问并返回 yes / no / always；
读取失败（EOF、取消、I/O 错误）以异常抛出，由 hook 统一按“跳过”处理。
"""

from __future__ import annotations

import asyncio
import sys
from typing import Protocol, TextIO

import questionary
from questionary import Choice

from tether_agent.agent.hooks.models import PromptResponse


class PromptUnavailableError(Exception):
    """用户输入无法读取（EOF、取消等）"""


class PermissionPrompter(Protocol):
    async def ask(self, tool_name: str, display_args: str) -> PromptResponse: ...


def prompt_message(tool_name: str, display_args: str) -> str:
    return f"Tool '{tool_name}' wants to execute:\n{display_args}\n\nAllow?"


def parse_answer(answer: str) -> PromptResponse:
    """y/yes -> YES，a/always -> ALWAYS，其它一律 NO"""
    normalized = answer.strip().lower()
    if normalized in ("y", "yes"):
        return PromptResponse.YES
    if normalized in ("a", "always"):
        return PromptResponse.ALWAYS
    return PromptResponse.NO


class QuestionaryPrompter:
    """TTY 下的选择菜单"""

    async def ask(self, tool_name: str, display_args: str) -> PromptResponse:
        answer = await questionary.select(
            prompt_message(tool_name, display_args),
            choices=[
                Choice("Yes", value=PromptResponse.YES),
                Choice("No", value=PromptResponse.NO),
                Choice("Always (this session)", value=PromptResponse.ALWAYS),
            ],
            default=None,
        ).ask_async()
        if answer is None:
            raise PromptUnavailableError("permission prompt cancelled")
        return PromptResponse(answer)


class LinePrompter:
    """非 TTY 环境：打印提示并读取一行 ``[y]es / [n]o / [a]lways``"""

    def __init__(self, stdin: TextIO | None = None, stdout: TextIO | None = None) -> None:
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout

    def _read_line(self, message: str) -> str:
        self._stdout.write(f"{message} [y]es / [n]o / [a]lways: ")
        self._stdout.flush()
        line = self._stdin.readline()
        if not line:
            raise PromptUnavailableError("EOF while reading permission answer")
        return line

    async def ask(self, tool_name: str, display_args: str) -> PromptResponse:
        line = await asyncio.to_thread(self._read_line, prompt_message(tool_name, display_args))
        return parse_answer(line)


def default_prompter() -> PermissionPrompter:
    if sys.stdin.isatty() and sys.stdout.isatty():
        return QuestionaryPrompter()
    return LinePrompter()
