"""
系统工具基类

每个工具声明 name / description / 入参模型（pydantic），execute() 负责参数校验、
执行和错误映射，任何失败都以 ToolResult(is_error=True) 返回，不向对话循环抛异常。
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from tether_agent.llm.base import ToolDefinition
from tether_agent.system_tools.path_guard import PathGuardError
from tether_agent.system_tools.tool_result import ToolResult, err

logger = logging.getLogger("tether_agent.system_tools.base")

InputT = TypeVar("InputT", bound=BaseModel)


def _format_validation_error(exc: ValidationError) -> str:
    parts: list[str] = []
    for error in exc.errors():
        loc = ".".join(str(p) for p in error.get("loc", ())) or "arguments"
        parts.append(f"{loc}: {error.get('msg', 'invalid value')}")
    return "Invalid arguments: " + "; ".join(parts)


class SystemTool(ABC, Generic[InputT]):
    name: ClassVar[str]
    description: ClassVar[str]
    input_model: ClassVar[type[BaseModel]]

    def __init__(self, project_root: Path) -> None:
        self.project_root = Path(project_root).resolve()

    def schema(self) -> dict[str, Any]:
        schema = self.input_model.model_json_schema()
        schema.pop("title", None)
        return schema

    def definition(self) -> ToolDefinition:
        return ToolDefinition(name=self.name, description=self.description, parameters=self.schema())

    def parse_arguments(self, arguments: dict[str, Any] | str | None) -> InputT:
        """校验参数；字符串按 JSON 解析"""
        if arguments is None:
            arguments = {}
        if isinstance(arguments, str):
            try:
                arguments = json.loads(arguments) if arguments.strip() else {}
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid JSON arguments: {exc.msg}") from exc
        if not isinstance(arguments, dict):
            raise ValueError("Arguments must be a JSON object")
        return self.input_model.model_validate(arguments)  # type: ignore[return-value]

    async def execute(self, arguments: dict[str, Any] | str | None) -> ToolResult:
        try:
            params = self.parse_arguments(arguments)
        except ValidationError as exc:
            return err("INVALID_ARGUMENT", _format_validation_error(exc))
        except ValueError as exc:
            return err("INVALID_ARGUMENT", str(exc))

        try:
            return await self._run(params)
        except PathGuardError as exc:
            return err(exc.code, exc.message)
        except IsADirectoryError as exc:
            return err("IS_DIRECTORY", f"Is a directory: {exc.filename or exc}")
        except PermissionError as exc:
            return err("PERMISSION_DENIED", f"Permission denied: {exc.filename or exc}")
        except FileNotFoundError as exc:
            return err("NOT_FOUND", f"File not found: {exc.filename or exc}")
        except UnicodeDecodeError:
            return err("BINARY_CONTENT", "File is not valid UTF-8 text")
        except OSError as exc:
            logger.warning(f"工具 {self.name} I/O 失败: {exc}")
            return err("INTERNAL", f"{self.name} failed: {exc}")
        except Exception as exc:
            logger.exception(f"工具 {self.name} 执行异常")
            return err("INTERNAL", f"{self.name} failed: {exc}")

    @abstractmethod
    async def _run(self, params: InputT) -> ToolResult:
        raise NotImplementedError
