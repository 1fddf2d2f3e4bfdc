"""
工具注册表
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from tether_agent.llm.base import ToolDefinition
from tether_agent.system_tools.base import SystemTool
from tether_agent.system_tools.tool_result import ToolResult, err
from tether_agent.system_tools.tools import builtin_tools

logger = logging.getLogger("tether_agent.system_tools.registry")


class ToolRegistry:
    """工具注册表

    用于管理和查找工具，支持按名称注册、检索和执行。
    """

    def __init__(self) -> None:
        self._tools: dict[str, SystemTool] = {}

    @classmethod
    def with_builtins(cls, project_root: Path, *, kill_on_timeout: bool = True) -> "ToolRegistry":
        """创建包含全部内置工具（read_file/write_file/edit/glob/grep/bash）的注册表"""
        registry = cls()
        for tool in builtin_tools(project_root, kill_on_timeout=kill_on_timeout):
            registry.register(tool)
        return registry

    def register(self, tool: SystemTool) -> None:
        """注册一个工具，同名工具会被覆盖"""
        if tool.name in self._tools:
            logger.warning(f"Tool '{tool.name}' already registered, overwriting with new definition")
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def get(self, name: str) -> SystemTool:
        """根据名称获取工具

        Raises:
            KeyError: 如果工具不存在
        """
        if name not in self._tools:
            raise KeyError(f"Tool '{name}' not found in registry")
        return self._tools[name]

    def names(self) -> list[str]:
        return list(self._tools.keys())

    def definitions(self) -> list[ToolDefinition]:
        return [tool.definition() for tool in self._tools.values()]

    async def execute(self, name: str, arguments: dict[str, Any] | str | None) -> ToolResult:
        """执行工具；未知工具返回错误结果而不是抛异常"""
        tool = self._tools.get(name)
        if tool is None:
            return err("TOOL_NOT_AVAILABLE", f"Unknown tool: {name}")
        return await tool.execute(arguments)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools
