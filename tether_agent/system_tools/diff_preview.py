"""Diff rendering for file-mutating tools.

Two flavours:

- ``unified_diff`` / ``new_file_preview``: the colored preview shown to the
  user before a write or edit is approved.
- ``edit_diff``: the compact ``--- before`` / ``+++ after`` diff returned to
  the model after an edit.

Everything here is pure: no file system access.
"""

from __future__ import annotations

import difflib
import io

from rich.console import Console
from rich.text import Text

DIFF_CONTEXT_LINES = 3

_STYLE_HEADER = "bold"
_STYLE_HUNK = "cyan"
_STYLE_DELETE = "red"
_STYLE_INSERT = "green"


def _line_style(line: str) -> str | None:
    if line.startswith("--- ") or line.startswith("+++ "):
        return _STYLE_HEADER
    if line.startswith("@@"):
        return _STYLE_HUNK
    if line.startswith("-"):
        return _STYLE_DELETE
    if line.startswith("+"):
        return _STYLE_INSERT
    return None


def diff_lines_to_text(lines: list[str]) -> Text:
    """Style diff lines: deletions red, insertions green."""
    text = Text()
    for i, line in enumerate(lines):
        if i:
            text.append("\n")
        text.append(line, style=_line_style(line))
    return text


def render_ansi(text: Text) -> str:
    buffer = io.StringIO()
    console = Console(
        file=buffer,
        force_terminal=True,
        color_system="standard",
        soft_wrap=True,
        width=10_000,
        highlight=False,
    )
    console.print(text, end="")
    return buffer.getvalue()


def _finish(lines: list[str], color: bool) -> str:
    if not color:
        return "\n".join(lines)
    return render_ansi(diff_lines_to_text(lines))


def unified_diff_lines(old: str, new: str, label: str, *, context: int = DIFF_CONTEXT_LINES) -> list[str]:
    lines = [f"--- a/{label}", f"+++ b/{label}"]
    body = difflib.unified_diff(
        old.splitlines(),
        new.splitlines(),
        fromfile=f"a/{label}",
        tofile=f"b/{label}",
        n=context,
        lineterm="",
    )
    # difflib repeats the two header lines when there are changes
    lines.extend(line for i, line in enumerate(body) if i >= 2)
    return lines


def unified_diff(old: str, new: str, label: str, *, color: bool = True) -> str:
    """Unified diff of ``old`` -> ``new``; identical inputs yield headers only."""
    return _finish(unified_diff_lines(old, new, label), color)


def new_file_lines(content: str, label: str) -> list[str]:
    lines = ["--- /dev/null", f"+++ b/{label}"]
    lines.extend(f"+{line}" for line in content.splitlines())
    return lines


def new_file_preview(content: str, label: str, *, color: bool = True) -> str:
    return _finish(new_file_lines(content, label), color)


def edit_diff(old: str, new: str, *, context: int = DIFF_CONTEXT_LINES) -> str:
    """Compact diff for edit results, one ``@@ line N @@`` header per hunk."""
    old_lines = old.splitlines()
    new_lines = new.splitlines()
    out = ["--- before", "+++ after"]

    matcher = difflib.SequenceMatcher(a=old_lines, b=new_lines, autojunk=False)
    for group in matcher.get_grouped_opcodes(context):
        out.append(f"@@ line {group[0][1] + 1} @@")
        for tag, i1, i2, j1, j2 in group:
            if tag == "equal":
                out.extend(f" {line}" for line in old_lines[i1:i2])
                continue
            if tag in ("replace", "delete"):
                out.extend(f"-{line}" for line in old_lines[i1:i2])
            if tag in ("replace", "insert"):
                out.extend(f"+{line}" for line in new_lines[j1:j2])
    return "\n".join(out)
