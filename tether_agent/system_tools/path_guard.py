from __future__ import annotations

import os
from pathlib import Path

from tether_agent.system_tools.tool_result import ToolErrorCode


class PathGuardError(Exception):
    def __init__(self, code: ToolErrorCode, message: str) -> None:
        super().__init__(message)
        self.code: ToolErrorCode = code
        self.message = message


def _is_under(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
        return True
    except ValueError:
        return False


def _ensure_under_root(path: Path, root: Path, user_path: str) -> None:
    if not _is_under(path, root):
        raise PathGuardError("PATH_ESCAPE", f"Path escapes project directory: {user_path}")


def _candidate(user_path: str, root: Path) -> Path:
    candidate = Path(user_path).expanduser()
    if not candidate.is_absolute():
        candidate = root / candidate
    return candidate


def _lexically_escapes(candidate: Path, project_root: Path) -> bool:
    """True when ``candidate`` leaves the root before any symlink is followed.

    Compared against both the given and the canonical root, since callers may
    pass either spelling of the project directory.
    """
    normalized = Path(os.path.normpath(candidate))
    roots = {Path(os.path.normpath(project_root.absolute())), project_root.resolve()}
    return not any(_is_under(normalized, r) for r in roots)


def _nearest_existing_ancestor(path: Path) -> Path:
    cursor = path
    while not cursor.exists() and cursor != cursor.parent:
        cursor = cursor.parent
    return cursor


def resolve_for_read(*, user_path: str, project_root: Path) -> Path:
    """Resolve an existing path and confirm it stays inside the project root.

    Relative paths are joined to the root. Symlinks are followed, so a link
    inside the root that points elsewhere is rejected.
    """
    if not user_path or not user_path.strip():
        raise PathGuardError("INVALID_ARGUMENT", "path cannot be empty")

    root = project_root.resolve()
    candidate = _candidate(user_path, root)
    try:
        resolved = candidate.resolve(strict=True)
    except FileNotFoundError as exc:
        raise PathGuardError("NOT_FOUND", f"File not found: {user_path}") from exc
    except (OSError, RuntimeError) as exc:
        raise PathGuardError("INVALID_ARGUMENT", f"Cannot resolve path {user_path}: {exc}") from exc

    _ensure_under_root(resolved, root, user_path)
    return resolved


def resolve_for_search(*, user_path: str | None, project_root: Path) -> Path:
    if user_path is None or not user_path.strip():
        return project_root.resolve()
    return resolve_for_read(user_path=user_path, project_root=project_root)


def resolve_for_write(*, user_path: str, project_root: Path) -> Path:
    """Resolve a path that may not exist yet.

    The parent directory is created, canonicalized and checked against the
    root; the file name is then re-appended. An existing target that is a
    symlink must also resolve inside the root.
    """
    if not user_path or not user_path.strip():
        raise PathGuardError("INVALID_ARGUMENT", "path cannot be empty")

    root = project_root.resolve()
    candidate = _candidate(user_path, root)
    file_name = candidate.name
    if file_name in ("", ".", ".."):
        raise PathGuardError("INVALID_ARGUMENT", f"path does not name a file: {user_path}")

    # Never create directories outside the root
    if _lexically_escapes(candidate, project_root):
        raise PathGuardError("PATH_ESCAPE", f"Path escapes project directory: {user_path}")
    _ensure_under_root(_nearest_existing_ancestor(candidate.parent).resolve(), root, user_path)

    try:
        candidate.parent.mkdir(parents=True, exist_ok=True)
        parent = candidate.parent.resolve(strict=True)
    except OSError as exc:
        raise PathGuardError("INVALID_ARGUMENT", f"Cannot create parent directory for {user_path}: {exc}") from exc

    _ensure_under_root(parent, root, user_path)

    target = parent / file_name
    if target.is_symlink() or target.exists():
        _ensure_under_root(target.resolve(), root, user_path)
    return target


def to_relpath(path: Path, *, project_root: Path) -> str:
    root = project_root.resolve()
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()
