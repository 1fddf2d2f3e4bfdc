"""Internal utilities for system tools.

Low-level helpers shared by the tool implementations in tools.py.
"""
from __future__ import annotations

import asyncio
import os
import tempfile
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Any, Callable, Iterator

BINARY_DETECTION_BYTES = 8192

SKIPPED_DIRS: frozenset[str] = frozenset(
    {
        "node_modules",
        "target",
        "__pycache__",
        "dist",
        "build",
        "venv",
        ".venv",
    }
)


# ────────────────────────────────────────────────────────────────────────────
# Async I/O wrapper
# ────────────────────────────────────────────────────────────────────────────
async def io_call(func: Callable, /, *args: Any, **kwargs: Any) -> Any:
    """Run a blocking I/O function in a thread pool executor."""
    return await asyncio.to_thread(func, *args, **kwargs)


# ────────────────────────────────────────────────────────────────────────────
# Content checks
# ────────────────────────────────────────────────────────────────────────────
def looks_binary(payload: bytes) -> bool:
    """A NUL byte in the leading window marks the file as binary."""
    return b"\x00" in payload[:BINARY_DETECTION_BYTES]


def decode_text(payload: bytes) -> str | None:
    """Decode UTF-8 text; None for binary or undecodable content."""
    if looks_binary(payload):
        return None
    try:
        return payload.decode("utf-8")
    except UnicodeDecodeError:
        return None


def read_searchable_text(path: Path, *, max_size: int) -> str | None:
    """UTF-8 text of ``path``; None when it is too large, binary or undecodable.

    Only the leading window is read before the binary check.
    """
    if path.stat().st_size > max_size:
        return None
    with path.open("rb") as f:
        head = f.read(BINARY_DETECTION_BYTES)
        if looks_binary(head):
            return None
        # The file may have grown since stat()
        payload = head + f.read(max_size + 1 - len(head))
    if len(payload) > max_size:
        return None
    try:
        return payload.decode("utf-8")
    except UnicodeDecodeError:
        return None


# ────────────────────────────────────────────────────────────────────────────
# Atomic write
# ────────────────────────────────────────────────────────────────────────────
def atomic_write_bytes_sync(path: Path, payload: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=".tmp_", dir=str(path.parent))
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    finally:
        if os.path.exists(tmp_name):
            try:
                os.remove(tmp_name)
            except FileNotFoundError:
                pass


async def atomic_write_text(path: Path, content: str) -> int:
    payload = content.encode("utf-8")
    await io_call(atomic_write_bytes_sync, path, payload)
    return len(payload)


# ────────────────────────────────────────────────────────────────────────────
# Directory walking
# ────────────────────────────────────────────────────────────────────────────
def is_skipped_dir(name: str) -> bool:
    return name.startswith(".") or name in SKIPPED_DIRS


def walk_files(search_path: Path, *, root: Path) -> Iterator[Path]:
    """Yield files under ``search_path`` in sorted, deterministic order.

    Hidden and build/dependency directories are pruned. Entries that resolve
    outside ``root`` (symlinks) are skipped.
    """
    if search_path.is_file():
        yield search_path
        return

    for current, dirs, files in os.walk(search_path, topdown=True):
        dirs[:] = sorted(d for d in dirs if not is_skipped_dir(d))
        current_path = Path(current)
        for name in sorted(files):
            p = current_path / name
            try:
                p.resolve().relative_to(root)
            except (ValueError, OSError):
                continue
            if p.is_file():
                yield p


def _match_segments(parts: list[str], segments: list[str]) -> bool:
    if not segments:
        return not parts
    head, rest = segments[0], segments[1:]
    if head == "**":
        return any(_match_segments(parts[i:], rest) for i in range(len(parts) + 1))
    if not parts:
        return False
    return fnmatchcase(parts[0], head) and _match_segments(parts[1:], rest)


def glob_matches(rel: str, pattern: str) -> bool:
    """Match a root-relative POSIX path against a glob, segment by segment.

    ``*``, ``?`` and ``[...]`` stay within one path segment; a ``**`` segment
    spans zero or more directories, so ``src/**/*.ts`` also matches
    ``src/main.ts``.
    """
    segments = [s for s in pattern.split("/") if s and s != "."]
    return _match_segments(rel.split("/"), segments)


def include_matches(rel: str, pattern: str) -> bool:
    """Grep ``include`` filter: fnmatch over the relative path or the file name.

    Here ``*`` may span separators, so ``*.py`` selects Python files at any depth.
    """
    if fnmatchcase(rel, pattern):
        return True
    if pattern.startswith("**/") and fnmatchcase(rel, pattern[3:]):
        return True
    return "/" not in pattern and fnmatchcase(rel.rsplit("/", 1)[-1], pattern)
