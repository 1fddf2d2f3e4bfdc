from __future__ import annotations

import asyncio
import logging
import os
import re
import signal
from pathlib import Path

from pydantic import BaseModel, Field

from tether_agent.system_tools import _internal_utils as iu
from tether_agent.system_tools.base import SystemTool
from tether_agent.system_tools.diff_preview import DIFF_CONTEXT_LINES, edit_diff
from tether_agent.system_tools.output_limiter import cap_items, cap_output
from tether_agent.system_tools.path_guard import (
    PathGuardError,
    resolve_for_read,
    resolve_for_search,
    resolve_for_write,
    to_relpath,
)
from tether_agent.system_tools.tool_result import ToolResult, err, ok

logger = logging.getLogger("tether_agent.system_tools.tools")

MAX_READ_SIZE = 100 * 1024
GLOB_MAX_RESULTS = 1000
GREP_MAX_MATCHES = 500
GREP_MAX_FILE_SIZE = 1024 * 1024
BASH_DEFAULT_TIMEOUT_SECS = 30
BASH_MAX_TIMEOUT_SECS = 600
BASH_MAX_OUTPUT_SIZE = 100 * 1024

# Credentials that must not leak into model-driven shell commands
STRIPPED_ENV_VARS: frozenset[str] = frozenset(
    {
        "ANTHROPIC_API_KEY",
        "OPENAI_API_KEY",
        "OPENROUTER_API_KEY",
        "GEMINI_API_KEY",
        "GOOGLE_API_KEY",
        "AWS_ACCESS_KEY_ID",
        "AWS_SECRET_ACCESS_KEY",
        "AWS_SESSION_TOKEN",
        "AZURE_OPENAI_API_KEY",
        "GITHUB_TOKEN",
        "GH_TOKEN",
        "HF_TOKEN",
    }
)

READ_FILE = "read_file"
WRITE_FILE = "write_file"
EDIT = "edit"
GLOB = "glob"
GREP = "grep"
BASH = "bash"


# ────────────────────────────────────────────────────────────────────────────
# Input models
# ────────────────────────────────────────────────────────────────────────────
class ReadFileInput(BaseModel):
    path: str = Field(description="Path to the file, relative to the project root or absolute inside it.")

    model_config = {"extra": "forbid"}


class WriteFileInput(BaseModel):
    path: str = Field(description="Target file path. Parent directories are created as needed.")
    content: str = Field(description="Full content to write. Replaces any existing content.")

    model_config = {"extra": "forbid"}


class EditInput(BaseModel):
    path: str = Field(description="Path of the file to edit.")
    old_text: str = Field(min_length=1, description="Exact text to replace, including whitespace and indentation.")
    new_text: str = Field(description="Replacement text.")
    replace_all: bool = Field(default=False, description="Replace every occurrence instead of only the first.")

    model_config = {"extra": "forbid"}


class GlobInput(BaseModel):
    pattern: str = Field(min_length=1, description="Glob pattern, e.g. '**/*.py', '*.json', 'src/**/*.ts'.")
    path: str | None = Field(default=None, description="Directory to search in. Defaults to the project root.")

    model_config = {"extra": "forbid"}


class GrepInput(BaseModel):
    pattern: str = Field(min_length=1, description="Regular expression to search for.")
    path: str | None = Field(default=None, description="Directory or file to search. Defaults to the project root.")
    include: str | None = Field(default=None, description="Only search files matching this glob, e.g. '*.py'.")

    model_config = {"extra": "forbid"}


class BashInput(BaseModel):
    command: str = Field(min_length=1, description="Shell command, run with 'sh -c' from the project root.")
    timeout: int | None = Field(
        default=None,
        ge=1,
        le=BASH_MAX_TIMEOUT_SECS,
        description=f"Timeout in seconds (default: {BASH_DEFAULT_TIMEOUT_SECS}).",
    )

    model_config = {"extra": "forbid"}


# ────────────────────────────────────────────────────────────────────────────
# File tools
# ────────────────────────────────────────────────────────────────────────────
def _read_text_checked(path: Path, *, max_size: int | None) -> str | ToolResult:
    if path.is_dir():
        return err("IS_DIRECTORY", f"Path is a directory: {path}")
    size = path.stat().st_size
    if max_size is not None and size > max_size:
        return err("FILE_TOO_LARGE", f"File too large: {size} bytes (max {max_size})")
    payload = path.read_bytes()
    if iu.looks_binary(payload):
        return err("BINARY_CONTENT", "Binary file detected. Cannot display binary content.")
    try:
        return payload.decode("utf-8")
    except UnicodeDecodeError:
        return err("BINARY_CONTENT", f"File is not valid UTF-8 text: {path}")


class ReadFileTool(SystemTool[ReadFileInput]):
    name = READ_FILE
    description = "Read a UTF-8 text file inside the project. Files over 100 KiB and binary files are rejected."
    input_model = ReadFileInput

    async def _run(self, params: ReadFileInput) -> ToolResult:
        path = resolve_for_read(user_path=params.path, project_root=self.project_root)
        content = await iu.io_call(_read_text_checked, path, max_size=MAX_READ_SIZE)
        if isinstance(content, ToolResult):
            return content
        return ok(content)


class WriteFileTool(SystemTool[WriteFileInput]):
    name = WRITE_FILE
    description = "Create or overwrite a file inside the project with the given content."
    input_model = WriteFileInput

    async def _run(self, params: WriteFileInput) -> ToolResult:
        path = resolve_for_write(user_path=params.path, project_root=self.project_root)
        if path.is_dir():
            return err("IS_DIRECTORY", f"Path is a directory: {params.path}")
        written = await iu.atomic_write_text(path, params.content)
        logger.debug(f"write_file: {written} bytes -> {path}")
        return ok(f"Wrote {written} bytes to {params.path}")


class EditTool(SystemTool[EditInput]):
    name = EDIT
    description = (
        "Replace exact text in an existing file. old_text must match exactly; "
        "only the first occurrence is replaced unless replace_all is true."
    )
    input_model = EditInput

    def __init__(self, project_root: Path, *, context_lines: int = DIFF_CONTEXT_LINES) -> None:
        super().__init__(project_root)
        self.context_lines = context_lines

    async def _run(self, params: EditInput) -> ToolResult:
        path = resolve_for_read(user_path=params.path, project_root=self.project_root)
        before = await iu.io_call(_read_text_checked, path, max_size=None)
        if isinstance(before, ToolResult):
            return before

        occurrences = before.count(params.old_text)
        if occurrences == 0:
            return err(
                "TEXT_NOT_FOUND",
                f"Text not found in {params.path}. Make sure the old_text matches exactly, "
                "including whitespace and indentation.",
            )

        if params.replace_all:
            after = before.replace(params.old_text, params.new_text)
            replaced = occurrences
        else:
            after = before.replace(params.old_text, params.new_text, 1)
            replaced = 1

        await iu.atomic_write_text(path, after)
        noun = "replacement" if replaced == 1 else "replacements"
        diff = edit_diff(before, after, context=self.context_lines)
        return ok(f"Edited {params.path} ({replaced} {noun})\n\n{diff}")


# ────────────────────────────────────────────────────────────────────────────
# Search tools
# ────────────────────────────────────────────────────────────────────────────
def _search_root(user_path: str | None, project_root: Path) -> Path:
    try:
        return resolve_for_search(user_path=user_path, project_root=project_root)
    except PathGuardError as exc:
        if exc.code == "PATH_ESCAPE":
            raise PathGuardError("PATH_ESCAPE", "Search path escapes project directory") from exc
        raise


class GlobTool(SystemTool[GlobInput]):
    name = GLOB
    description = "Find files by glob pattern. Hidden and dependency directories are skipped."
    input_model = GlobInput

    def _collect(self, search_dir: Path, pattern: str) -> list[str]:
        matches: list[str] = []
        for p in iu.walk_files(search_dir, root=self.project_root):
            rel = p.relative_to(search_dir).as_posix()
            if iu.glob_matches(rel, pattern):
                matches.append(to_relpath(p, project_root=self.project_root))
        return sorted(matches)

    async def _run(self, params: GlobInput) -> ToolResult:
        search_dir = _search_root(params.path, self.project_root)
        if not search_dir.is_dir():
            return err("INVALID_ARGUMENT", f"Not a directory: {params.path}")

        matches = await iu.io_call(self._collect, search_dir, params.pattern)
        if not matches:
            return ok("No files matched the pattern.")

        kept, notice = cap_items(matches, GLOB_MAX_RESULTS, "results")
        output = "\n".join(kept)
        if notice:
            output += "\n" + notice
        return ok(output)


class GrepTool(SystemTool[GrepInput]):
    name = GREP
    description = (
        "Search file contents with a regular expression. "
        "Returns 'path:line:content' lines; binary files and files over 1 MiB are skipped."
    )
    input_model = GrepInput

    def _search(self, regex: re.Pattern[str], search_path: Path, include: str | None) -> tuple[list[str], bool]:
        base = search_path if search_path.is_dir() else search_path.parent
        matches: list[str] = []
        for p in iu.walk_files(search_path, root=self.project_root):
            if include and not iu.include_matches(p.relative_to(base).as_posix(), include):
                continue
            try:
                text = iu.read_searchable_text(p, max_size=GREP_MAX_FILE_SIZE)
            except OSError:
                continue
            if text is None:
                continue
            rel = to_relpath(p, project_root=self.project_root)
            for lineno, line in enumerate(text.splitlines(), start=1):
                if not regex.search(line):
                    continue
                if len(matches) >= GREP_MAX_MATCHES:
                    return matches, True
                matches.append(f"{rel}:{lineno}:{line}")
        return matches, False

    async def _run(self, params: GrepInput) -> ToolResult:
        try:
            regex = re.compile(params.pattern)
        except re.error as exc:
            return err("INVALID_ARGUMENT", f"Invalid regex: {exc}")

        search_path = _search_root(params.path, self.project_root)
        matches, truncated = await iu.io_call(self._search, regex, search_path, params.include)
        if not matches:
            return ok("No matches found.")

        output = "\n".join(matches)
        if truncated:
            output += f"\n... truncated at {GREP_MAX_MATCHES} matches"
        return ok(output)


# ────────────────────────────────────────────────────────────────────────────
# Shell
# ────────────────────────────────────────────────────────────────────────────
def scrubbed_environment() -> dict[str, str]:
    return {k: v for k, v in os.environ.items() if k not in STRIPPED_ENV_VARS}


def _kill_process_group(proc: asyncio.subprocess.Process) -> None:
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        try:
            proc.kill()
        except ProcessLookupError:
            pass


class BashTool(SystemTool[BashInput]):
    """Run a shell command from the project root.

    The command runs in its own session with provider credentials removed
    from the environment. Output is stdout, then stderr under a separator,
    capped at BASH_MAX_OUTPUT_SIZE bytes.

    With ``kill_on_timeout`` (the default) the whole process group is killed
    when the deadline passes. Without it the command is left running and only
    the wait is abandoned.
    """

    name = BASH
    description = (
        "Run a shell command with 'sh -c' in the project root. "
        f"Default timeout {BASH_DEFAULT_TIMEOUT_SECS}s; output is truncated at {BASH_MAX_OUTPUT_SIZE} bytes."
    )
    input_model = BashInput

    def __init__(
        self,
        project_root: Path,
        *,
        default_timeout: int = BASH_DEFAULT_TIMEOUT_SECS,
        max_output_bytes: int = BASH_MAX_OUTPUT_SIZE,
        kill_on_timeout: bool = True,
    ) -> None:
        super().__init__(project_root)
        self.default_timeout = default_timeout
        self.max_output_bytes = max_output_bytes
        self.kill_on_timeout = kill_on_timeout

    async def _run(self, params: BashInput) -> ToolResult:
        timeout = params.timeout or self.default_timeout
        try:
            proc = await asyncio.create_subprocess_exec(
                "sh",
                "-c",
                params.command,
                cwd=str(self.project_root),
                env=scrubbed_environment(),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as exc:
            return err("INTERNAL", f"Failed to execute command: {exc}")

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            if self.kill_on_timeout:
                _kill_process_group(proc)
                await proc.wait()
            logger.info(f"bash 超时 ({timeout}s): {params.command[:80]}")
            return err("TIMEOUT", f"Command timed out after {timeout}s")

        combined = stdout
        if stderr:
            combined += b"\n--- stderr ---\n" + stderr
        output = cap_output(combined, self.max_output_bytes)

        if proc.returncode != 0:
            return err("EXIT_STATUS", f"{output.strip()}\nExit code: {proc.returncode}")
        return ok(output)


def builtin_tools(project_root: Path, *, kill_on_timeout: bool = True) -> list[SystemTool]:
    return [
        ReadFileTool(project_root),
        WriteFileTool(project_root),
        EditTool(project_root),
        GlobTool(project_root),
        GrepTool(project_root),
        BashTool(project_root, kill_on_timeout=kill_on_timeout),
    ]
