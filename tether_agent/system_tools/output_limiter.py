"""Size caps for tool output.

Byte caps cut on a UTF-8 character boundary and say so; item caps keep the
first N entries of an already-ordered list.
"""

from __future__ import annotations

from typing import Sequence, TypeVar

T = TypeVar("T")


def truncation_notice(max_bytes: int) -> str:
    return f"\n... output truncated at {max_bytes} bytes"


def utf8_boundary(data: bytes, limit: int) -> int:
    """Largest index <= limit that does not split a UTF-8 sequence."""
    if limit >= len(data):
        return len(data)
    cut = max(limit, 0)
    # Continuation bytes look like 0b10xxxxxx
    while cut > 0 and (data[cut] & 0xC0) == 0x80:
        cut -= 1
    return cut


def cap_output(data: bytes | str, max_bytes: int) -> str:
    """Return ``data`` as text, cut to at most ``max_bytes`` of UTF-8.

    Text within the limit is returned unchanged. Otherwise the kept prefix is
    followed by the truncation notice. For ``bytes`` the limit applies to the
    raw input; invalid sequences are replaced only after the cut.
    """
    raw = data if isinstance(data, bytes) else data.encode("utf-8")
    if len(raw) <= max_bytes:
        return raw.decode("utf-8", errors="replace") if isinstance(data, bytes) else data

    cut = utf8_boundary(raw, max_bytes)
    return raw[:cut].decode("utf-8", errors="replace") + truncation_notice(max_bytes)


def cap_items(items: Sequence[T], max_items: int, noun: str) -> tuple[list[T], str | None]:
    if len(items) <= max_items:
        return list(items), None
    return list(items[:max_items]), f"... truncated at {max_items} {noun}"
