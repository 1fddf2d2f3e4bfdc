"""工具调用前置 hook

流程：
1. deny -> 跳过
2. write_file / edit：无论最终是否执行，先展示 diff 预览
3. allow -> 执行
4. ask -> 询问用户：yes 执行；always 记录会话级 allow 后执行；no 跳过；
   读取输入失败 -> 跳过（fail closed）
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.text import Text

from tether_agent.agent.hooks.models import (
    PROMPT_FAILED_REASON,
    HookDecision,
    PromptResponse,
    disabled_reason,
    display_args,
    rejected_reason,
)
from tether_agent.agent.hooks.prompter import PermissionPrompter
from tether_agent.agent.permissions import Permission, PermissionManager
from tether_agent.system_tools import _internal_utils as iu
from tether_agent.system_tools.diff_preview import (
    diff_lines_to_text,
    new_file_lines,
    unified_diff_lines,
)
from tether_agent.system_tools.path_guard import PathGuardError, resolve_for_read, to_relpath
from tether_agent.system_tools.tools import EDIT, MAX_READ_SIZE, WRITE_FILE

logger = logging.getLogger("tether_agent.agent.hooks.tool_call")


def _read_existing(path: Path) -> str | None:
    if not path.is_file() or path.stat().st_size > MAX_READ_SIZE:
        return None
    return iu.decode_text(path.read_bytes())


def _parse_args(raw_args: str | dict[str, Any]) -> dict[str, Any] | None:
    if isinstance(raw_args, dict):
        return raw_args
    try:
        parsed = json.loads(raw_args)
    except (json.JSONDecodeError, TypeError):
        return None
    return parsed if isinstance(parsed, dict) else None


class ToolCallHook:
    def __init__(
        self,
        *,
        manager: PermissionManager,
        project_root: Path,
        prompter: PermissionPrompter,
        console: Console | None = None,
    ) -> None:
        self.manager = manager
        self.project_root = Path(project_root).resolve()
        self.prompter = prompter
        self.console = console or Console(stderr=True)

    def build_preview(self, tool_name: str, raw_args: str | dict[str, Any]) -> Text | None:
        """write_file / edit 的 diff 预览；参数不完整或路径不可读时返回 None"""
        if tool_name not in (WRITE_FILE, EDIT):
            return None
        args = _parse_args(raw_args)
        if args is None or not isinstance(args.get("path"), str):
            return None

        user_path: str = args["path"]
        try:
            path = resolve_for_read(user_path=user_path, project_root=self.project_root)
            existing = _read_existing(path)
            label = to_relpath(path, project_root=self.project_root)
        except PathGuardError as exc:
            if exc.code != "NOT_FOUND":
                return None
            existing = None
            label = user_path
        except OSError as exc:
            logger.debug(f"diff 预览读取失败 {user_path}: {exc}")
            return None

        if tool_name == WRITE_FILE:
            content = args.get("content")
            if not isinstance(content, str):
                return None
            if existing is None:
                lines = new_file_lines(content, label)
            else:
                lines = unified_diff_lines(existing, content, label)
            return diff_lines_to_text(lines)

        old_text, new_text = args.get("old_text"), args.get("new_text")
        if existing is None or not isinstance(old_text, str) or not isinstance(new_text, str) or not old_text:
            return None
        if args.get("replace_all"):
            updated = existing.replace(old_text, new_text)
        else:
            updated = existing.replace(old_text, new_text, 1)
        return diff_lines_to_text(unified_diff_lines(existing, updated, label))

    async def on_tool_call(self, tool_name: str, raw_args: str | dict[str, Any]) -> HookDecision:
        permission = self.manager.check(tool_name, raw_args)
        if permission == Permission.DENY:
            return HookDecision.skip(disabled_reason(tool_name))

        preview = self.build_preview(tool_name, raw_args)
        if preview is not None:
            self.console.print(preview)

        if permission == Permission.ALLOW:
            return HookDecision.proceed()

        args_text = raw_args if isinstance(raw_args, str) else json.dumps(raw_args, ensure_ascii=False)
        try:
            response = await self.prompter.ask(tool_name, display_args(args_text))
        except Exception as exc:
            logger.warning(f"权限确认读取失败 ({tool_name}): {exc}")
            return HookDecision.skip(PROMPT_FAILED_REASON)

        if response == PromptResponse.YES:
            return HookDecision.proceed()
        if response == PromptResponse.ALWAYS:
            self.manager.set_session_override(tool_name, Permission.ALLOW)
            return HookDecision.proceed()
        return HookDecision.skip(rejected_reason(tool_name))
