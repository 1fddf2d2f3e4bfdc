"""终端日志：文件 + 控制台双通道

- 所有日志写入 ~/.tether/logs/agent.log（RotatingFileHandler，含 traceback）
- WARNING/ERROR 以简短格式打印到 rich 控制台（stderr），相同消息只显示一次
- --verbose 时控制台也显示 DEBUG/INFO
"""
from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.text import Text

LOG_DIR: Path = Path.home() / ".tether" / "logs"
LOG_FILE_NAME = "agent.log"
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 3
MESSAGE_MAX_CHARS = 160

NOISY_LOGGERS = ("httpx", "httpcore", "anthropic")


class ConsoleLoggingHandler(logging.Handler):
    """把日志友好地打印到 rich Console

    WARNING 及以上按 logger 名 + 消息前缀去重（首次显示）；verbose 模式下
    低级别日志带上 logger 名原样输出，不去重。
    """

    def __init__(self, console: Console, *, verbose: bool = False) -> None:
        super().__init__(logging.DEBUG if verbose else logging.WARNING)
        self.console = console
        self.verbose = verbose
        self._shown_messages: set[str] = set()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = record.getMessage()
            if record.levelno < logging.WARNING:
                self.console.print(Text(f"{record.name}: {msg}", style="dim"))
                return

            key = f"{record.name}:{msg[:50]}"
            if key in self._shown_messages:
                return
            self._shown_messages.add(key)

            if len(msg) > MESSAGE_MAX_CHARS:
                msg = msg[:MESSAGE_MAX_CHARS] + "..."
            if record.levelno >= logging.ERROR:
                self.console.print(Text(f"error: {msg}", style="red"))
            else:
                self.console.print(Text(f"warning: {msg}", style="yellow"))
        except Exception:
            self.handleError(record)


def configure_logging(
    *,
    verbose: bool = False,
    console: Console | None = None,
    log_dir: Path | None = None,
) -> ConsoleLoggingHandler:
    """初始化 root logger；返回控制台 handler（测试用）"""
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.DEBUG)

    target_dir = log_dir or LOG_DIR
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            target_dir / LOG_FILE_NAME,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
    except OSError:
        file_handler = None
    if file_handler is not None:
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        root.addHandler(file_handler)

    console_handler = ConsoleLoggingHandler(console or Console(stderr=True), verbose=verbose)
    root.addHandler(console_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return console_handler
