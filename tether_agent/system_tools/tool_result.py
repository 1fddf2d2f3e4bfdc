from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ToolErrorCode = Literal[
    "INVALID_ARGUMENT",
    "NOT_FOUND",
    "IS_DIRECTORY",
    "PERMISSION_DENIED",
    "PATH_ESCAPE",
    "FILE_TOO_LARGE",
    "BINARY_CONTENT",
    "TEXT_NOT_FOUND",
    "TIMEOUT",
    "EXIT_STATUS",
    "TOOL_NOT_AVAILABLE",
    "INTERNAL",
]


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one tool execution.

    ``content`` is what the model sees. Failures are values, never exceptions:
    ``is_error`` is set and ``code`` names the failure class.
    """

    content: str
    is_error: bool = False
    code: ToolErrorCode | None = None

    @classmethod
    def success(cls, content: str) -> "ToolResult":
        return cls(content=content)

    @classmethod
    def error(cls, code: ToolErrorCode, content: str) -> "ToolResult":
        return cls(content=content, is_error=True, code=code)


def ok(content: str) -> ToolResult:
    return ToolResult.success(content)


def err(code: ToolErrorCode, message: str) -> ToolResult:
    return ToolResult.error(code, message)
