"""Settings 配置文件加载

从 ~/.tether/settings.json（user级）和 {project_root}/.tether/settings.json（project级）
加载配置，支持分层覆盖。

优先级（从高到低）：
    CLI 参数 > project/.tether/settings.json > ~/.tether/settings.json > 默认值

字符串值支持 ``{env:VAR}`` 占位符，从环境变量替换（未设置时替换为空串）。
任何文件缺失、解析失败或单项取值非法都不会抛异常，只记录 warning 并跳过。
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from tether_agent.agent.permissions import PermissionConfig
from tether_agent.context.compaction import CompactionConfig
from tether_agent.tokens.model_registry import DEFAULT_MODEL

logger = logging.getLogger("tether_agent.agent.settings")

SettingSource = Literal["user", "project"]
DEFAULT_SETTING_SOURCES: tuple[SettingSource, ...] = ("user", "project")

SETTINGS_DIR_NAME = ".tether"
SETTINGS_FILE_NAME = "settings.json"

# 用户级配置路径
USER_CONFIG_DIR: Path = Path.home() / SETTINGS_DIR_NAME
USER_SETTINGS_PATH: Path = USER_CONFIG_DIR / SETTINGS_FILE_NAME

API_KEY_ENV_VAR = "ANTHROPIC_API_KEY"

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful AI coding assistant working in the user's terminal. "
    "You can read, search and edit files in the current project and run shell commands "
    "using the provided tools. Be concise. Use code blocks with language tags when showing code."
)

_ENV_PLACEHOLDER = re.compile(r"\{env:([A-Za-z_][A-Za-z0-9_]*)\}")


def substitute_env(value: Any) -> Any:
    """递归替换字符串中的 ``{env:VAR}``"""
    if isinstance(value, str):
        return _ENV_PLACEHOLDER.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: substitute_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [substitute_env(v) for v in value]
    return value


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """override 覆盖 base；两边都是对象时逐键合并"""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


@dataclass
class Settings:
    """合并后的配置

    Attributes:
        model: 模型名
        system_prompt: 系统提示词
        api_key: Anthropic API key（环境变量优先，见 resolve_api_key）
        base_url: 可选的 API base_url
        permissions: 工具权限配置
        compaction: 压缩配置
        context_windows: 额外的模型上下文窗口 {model: tokens}
    """

    model: str = DEFAULT_MODEL
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    api_key: str | None = None
    base_url: str | None = None
    permissions: PermissionConfig = field(default_factory=PermissionConfig)
    compaction: CompactionConfig = field(default_factory=CompactionConfig)
    context_windows: dict[str, int] = field(default_factory=dict)
    sources: list[Path] = field(default_factory=list)

    def resolve_api_key(self) -> str | None:
        return os.environ.get(API_KEY_ENV_VAR) or self.api_key or None


def load_settings_file(path: Path) -> dict[str, Any] | None:
    """从 settings.json 文件加载原始对象

    文件不存在或解析失败时返回 None，不抛异常。
    """
    resolved = path.expanduser()
    if not resolved.exists():
        logger.debug(f"settings.json 不存在，跳过: {resolved}")
        return None

    if not resolved.is_file():
        logger.warning(f"settings.json 路径不是文件: {resolved}")
        return None

    try:
        raw = resolved.read_text(encoding="utf-8")
        data = json.loads(raw)
    except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
        logger.warning(f"读取/解析 settings.json 失败 {resolved}: {e}")
        return None

    if not isinstance(data, dict):
        logger.warning(f"settings.json 内容不是 JSON 对象: {resolved}")
        return None

    return substitute_env(data)


def _optional_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        logger.warning(f"settings.json {key} 不是字符串，跳过")
        return None
    return value or None


def _parse_compaction(raw: Any) -> CompactionConfig:
    config = CompactionConfig()
    if raw is None:
        return config
    if not isinstance(raw, dict):
        logger.warning("settings.json compaction 不是对象，跳过")
        return config

    auto = raw.get("auto")
    if auto is not None:
        if isinstance(auto, bool):
            config.auto_enabled = auto
        else:
            logger.warning("settings.json compaction.auto 不是布尔值，跳过该项")

    threshold = raw.get("auto_threshold")
    if threshold is not None:
        if isinstance(threshold, (int, float)) and not isinstance(threshold, bool) and 0 < threshold <= 1:
            config.threshold = float(threshold)
        else:
            logger.warning(f"settings.json compaction.auto_threshold 必须在 (0, 1] 内: {threshold!r}")

    for key, attr in (("keep_recent", "keep_recent"), ("reserved", "reserved_tokens")):
        value = raw.get(key)
        if value is None:
            continue
        if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
            setattr(config, attr, value)
        else:
            logger.warning(f"settings.json compaction.{key} 必须是非负整数: {value!r}")

    return config


def _parse_context_windows(raw: Any) -> dict[str, int]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        logger.warning("settings.json context_windows 不是对象，跳过")
        return {}
    windows: dict[str, int] = {}
    for model, value in raw.items():
        if isinstance(value, int) and not isinstance(value, bool) and value > 0:
            windows[str(model)] = value
        else:
            logger.warning(f"settings.json context_windows.{model} 必须是正整数，跳过该项")
    return windows


def parse_settings(data: dict[str, Any]) -> Settings:
    settings = Settings()

    model = _optional_str(data, "model")
    if model:
        settings.model = model
    system_prompt = _optional_str(data, "system_prompt")
    if system_prompt:
        settings.system_prompt = system_prompt
    settings.api_key = _optional_str(data, "api_key")
    settings.base_url = _optional_str(data, "base_url")

    permissions = data.get("permissions")
    if permissions is not None and not isinstance(permissions, dict):
        logger.warning("settings.json permissions 不是对象，跳过")
        permissions = None
    settings.permissions = PermissionConfig.from_mapping(permissions)

    settings.compaction = _parse_compaction(data.get("compaction"))
    settings.context_windows = _parse_context_windows(data.get("context_windows"))
    return settings


def project_settings_path(project_root: Path) -> Path:
    return project_root / SETTINGS_DIR_NAME / SETTINGS_FILE_NAME


def resolve_settings(
    project_root: Path | None = None,
    *,
    sources: tuple[SettingSource, ...] | None = DEFAULT_SETTING_SOURCES,
    user_settings_path: Path | None = None,
) -> Settings:
    """按优先级加载并合并 settings

    合并策略：project 逐键覆盖 user；两者都没有时返回默认配置。

    Args:
        project_root: 项目根目录，None 时使用 cwd
        sources: 要加载的配置源，None 或空 tuple 表示只用默认值
        user_settings_path: user 级配置路径（测试用），默认 ~/.tether/settings.json
    """
    if not sources:
        logger.debug("setting_sources 为空，使用默认配置")
        return Settings()

    root = (project_root or Path.cwd()).expanduser()
    merged: dict[str, Any] = {}
    loaded: list[Path] = []

    layers: list[tuple[SettingSource, Path]] = [
        ("user", user_settings_path or USER_SETTINGS_PATH),
        ("project", project_settings_path(root)),
    ]
    for source, path in layers:
        if source not in sources:
            continue
        data = load_settings_file(path)
        if data is None:
            continue
        logger.debug(f"加载 {source} settings: {path}")
        merged = deep_merge(merged, data)
        loaded.append(path)

    settings = parse_settings(merged)
    settings.sources = loaded
    if loaded:
        logger.info(f"settings.json 已加载: {', '.join(str(p) for p in loaded)}")
    return settings
