"""Heuristic token counting for chat messages."""

from __future__ import annotations

import dataclasses
import json
from typing import Any, Iterable

from cortex.provider import ChatMessage

__all__ = ["estimate_tokens", "estimate_content_tokens", "estimate_string_tokens"]

_WHITESPACE = frozenset(" \n\t\r")


def estimate_tokens(messages: Iterable[ChatMessage] | None) -> int:
    """Estimate the token count of a conversation, overheads included."""
    total = 3
    for msg in messages or ():
        total += 4
        total += estimate_content_tokens(msg.content)
        for tc in msg.tool_calls:
            total += (
                estimate_string_tokens(tc.function.name)
                + estimate_string_tokens(tc.function.arguments)
                + 4
            )
    return max(total, 1)


def _json_default(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    raise TypeError(f"cannot serialise {type(value).__name__}")


def estimate_content_tokens(content: Any) -> int:
    """Estimate tokens of message content, serialising structured content as JSON."""
    if content is None:
        return 0
    if isinstance(content, str):
        return estimate_string_tokens(content)
    try:
        text = json.dumps(
            content,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            default=_json_default,
        )
    except (TypeError, ValueError):
        text = ""
    return estimate_string_tokens(text)


def _is_ascii_alnum(ch: str) -> bool:
    return ("a" <= ch <= "z") or ("A" <= ch <= "Z") or ("0" <= ch <= "9")


def estimate_string_tokens(text: str) -> int:
    """Estimate tokens of a string from its words, punctuation and byte mix."""
    if not text:
        return 0
    rune_count = len(text)
    byte_count = len(text.encode("utf-8", "surrogatepass"))
    multi_byte = byte_count - rune_count

    if multi_byte / byte_count > 0.3:
        tokens = (rune_count * 2 + 2) // 3
    else:
        words = 1
        punctuation = 0
        in_whitespace = False
        for ch in text:
            if ch in _WHITESPACE:
                if not in_whitespace:
                    words += 1
                    in_whitespace = True
            else:
                in_whitespace = False
                if not _is_ascii_alnum(ch):
                    punctuation += 1
        tokens = words * 13 // 10 + punctuation // 2
        char_estimate = (rune_count - multi_byte) // 4
        tokens = max(tokens, char_estimate)

    return max(tokens, 1)