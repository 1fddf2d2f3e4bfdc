"""工具权限判定

判定顺序：
    会话级覆盖（用户选过 always） > bash 命令模式（按插入顺序，首个匹配生效）
    > 工具级静态配置 > 未知工具默认 ask
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

logger = logging.getLogger("tether_agent.agent.permissions")

BASH_TOOL_NAME = "bash"


class Permission(str, Enum):
    ALLOW = "allow"
    ASK = "ask"
    DENY = "deny"


DEFAULT_TOOL_PERMISSIONS: dict[str, Permission] = {
    "read_file": Permission.ALLOW,
    "glob": Permission.ALLOW,
    "grep": Permission.ALLOW,
    "write_file": Permission.ALLOW,
    "edit": Permission.ALLOW,
    "bash": Permission.ASK,
}


def _parse_permission_map(raw: Any, *, section: str) -> dict[str, Permission]:
    result: dict[str, Permission] = {}
    if raw is None:
        return result
    if not isinstance(raw, Mapping):
        logger.warning(f"permissions.{section} 不是对象，跳过")
        return result
    for key, value in raw.items():
        try:
            result[str(key)] = Permission(str(value).lower())
        except ValueError:
            logger.warning(f"permissions.{section}.{key} 取值无效: {value!r}，跳过该项")
    return result


@dataclass
class PermissionConfig:
    """静态权限配置

    Attributes:
        tools: 工具名 -> 权限
        bash_commands: bash 命令模式 -> 权限（dict 保持插入顺序，首个匹配生效）
    """

    tools: dict[str, Permission] = field(default_factory=lambda: dict(DEFAULT_TOOL_PERMISSIONS))
    bash_commands: dict[str, Permission] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "PermissionConfig":
        """从 settings 的 permissions 段构建；未配置的内置工具使用默认值"""
        data = data or {}
        tools = dict(DEFAULT_TOOL_PERMISSIONS)
        tools.update(_parse_permission_map(data.get("tools"), section="tools"))
        bash_commands = _parse_permission_map(data.get("bash_commands"), section="bash_commands")
        return cls(tools=tools, bash_commands=bash_commands)


def wildcard_match(pattern: str, command: str) -> bool:
    """``"git *"`` 匹配以 ``"git"`` 开头的命令；其它模式要求完全相等"""
    if pattern.endswith(" *"):
        return command.startswith(pattern[:-2])
    return pattern == command


def _extract_command(raw_args: str | Mapping[str, Any]) -> str | None:
    if isinstance(raw_args, Mapping):
        args: Any = raw_args
    else:
        try:
            args = json.loads(raw_args)
        except (json.JSONDecodeError, TypeError):
            return None
    if not isinstance(args, Mapping):
        return None
    command = args.get("command")
    return command if isinstance(command, str) else None


class PermissionManager:
    """权限管理器

    由交互 hook 和对话循环共享同一个实例；会话级覆盖用锁保护。
    """

    def __init__(self, config: PermissionConfig | None = None) -> None:
        self.config = config or PermissionConfig()
        self._session_overrides: dict[str, Permission] = {}
        self._lock = threading.Lock()

    def check(self, tool_name: str, raw_args: str | Mapping[str, Any]) -> Permission:
        with self._lock:
            override = self._session_overrides.get(tool_name)
        if override is not None:
            logger.debug(f"权限判定 {tool_name}: 会话覆盖 {override.value}")
            return override

        if tool_name == BASH_TOOL_NAME and self.config.bash_commands:
            command = _extract_command(raw_args)
            if command is not None:
                for pattern, permission in self.config.bash_commands.items():
                    if wildcard_match(pattern, command):
                        logger.debug(f"权限判定 bash: 模式 {pattern!r} -> {permission.value}")
                        return permission

        permission = self.config.tools.get(tool_name, Permission.ASK)
        logger.debug(f"权限判定 {tool_name}: {permission.value}")
        return permission

    def set_session_override(self, tool_name: str, permission: Permission) -> None:
        with self._lock:
            self._session_overrides[tool_name] = permission
        logger.info(f"会话级权限覆盖: {tool_name} -> {permission.value}")

    def session_overrides(self) -> dict[str, Permission]:
        with self._lock:
            return dict(self._session_overrides)

    def clear_session_overrides(self) -> None:
        with self._lock:
            self._session_overrides.clear()
