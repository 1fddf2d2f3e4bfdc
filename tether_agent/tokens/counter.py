"""Token 计数

优先使用 tiktoken：先按模型名取 encoding，取不到则回退 cl100k_base；
tiktoken 无法加载 encoding（如离线环境）时回退到 len(text) // 3 估算。
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Iterable

import tiktoken

from tether_agent.llm.messages import Message

logger = logging.getLogger("tether_agent.tokens.counter")

DEFAULT_ENCODING = "cl100k_base"
MESSAGE_OVERHEAD_TOKENS = 4
CONVERSATION_OVERHEAD_TOKENS = 2

Tokenizer = Callable[[str, str], int]


class TokenCounter:
    """Token 计数器

    Args:
        tokenizer: 可选的自定义计数函数 ``(text, model) -> int``，用于测试或非 tiktoken 模型
    """

    def __init__(self, tokenizer: Tokenizer | None = None) -> None:
        self._tokenizer = tokenizer
        self._encoders: dict[str, Any] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _fallback_count(text: str) -> int:
        return max(1, len(text) // 3)

    def _load_encoder(self, model: str) -> Any | None:
        try:
            return tiktoken.encoding_for_model(model)
        except KeyError:
            pass
        except Exception as e:
            logger.debug(f"tiktoken encoding_for_model({model}) 失败: {e}")

        try:
            return tiktoken.get_encoding(DEFAULT_ENCODING)
        except Exception as e:
            logger.debug(f"tiktoken 无法加载 {DEFAULT_ENCODING}，使用 len(text)//3 估算: {e}")
            return None

    def _encoder_for(self, model: str) -> Any | None:
        with self._lock:
            if model in self._encoders:
                return self._encoders[model]
            encoder = self._load_encoder(model)
            self._encoders[model] = encoder
            return encoder

    def count(self, text: str, model: str) -> int:
        """估算文本的 token 数，空文本为 0"""
        if not text:
            return 0

        if self._tokenizer is not None:
            return self._tokenizer(text, model)

        encoder = self._encoder_for(model)
        if encoder is None:
            return self._fallback_count(text)
        try:
            return len(encoder.encode(text, disallowed_special=()))
        except Exception as e:
            logger.debug(f"tiktoken encode 失败，使用估算: {e}")
            return self._fallback_count(text)

    def count_conversation(self, messages: Iterable[Message], model: str) -> int:
        """整段对话的 token 数：每条消息 +4，整体 +2"""
        total = CONVERSATION_OVERHEAD_TOKENS
        for message in messages:
            total += self.count(message.countable_text(), model) + MESSAGE_OVERHEAD_TOKENS
        return total


def format_number(n: int) -> str:
    return f"{n:,}"


def format_token_usage(used: int, limit: int) -> str:
    return f"{format_number(used)} / {format_number(limit)}"
