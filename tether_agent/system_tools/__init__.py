from tether_agent.system_tools.base import SystemTool
from tether_agent.system_tools.path_guard import PathGuardError, resolve_for_read, resolve_for_write
from tether_agent.system_tools.registry import ToolRegistry
from tether_agent.system_tools.tool_result import ToolErrorCode, ToolResult
from tether_agent.system_tools.tools import (
    BASH,
    EDIT,
    GLOB,
    GREP,
    READ_FILE,
    WRITE_FILE,
    BashTool,
    EditTool,
    GlobTool,
    GrepTool,
    ReadFileTool,
    WriteFileTool,
)

__all__ = [
    "BASH",
    "EDIT",
    "GLOB",
    "GREP",
    "READ_FILE",
    "WRITE_FILE",
    "BashTool",
    "EditTool",
    "GlobTool",
    "GrepTool",
    "PathGuardError",
    "ReadFileTool",
    "SystemTool",
    "ToolErrorCode",
    "ToolRegistry",
    "ToolResult",
    "WriteFileTool",
    "resolve_for_read",
    "resolve_for_write",
]
