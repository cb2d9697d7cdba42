"""Capability guesses for fields a provider catalog does not report."""

from __future__ import annotations

import re
from typing import Tuple

DEFAULT_CONTEXT_WINDOW = 8192
DEFAULT_MAX_TOKENS = 4096
MAX_DISPLAY_NAME_LENGTH = 150

# Checked in order; the first fragment found in the lower-cased model name wins.
_CONTEXT_WINDOWS: Tuple[Tuple[Tuple[str, ...], int], ...] = (
    (("claude-3", "claude-sonnet-4", "claude-opus-4", "claude-haiku-4"), 200000),
    (("claude-2",), 100000),
    (("gpt-4o", "gpt-4-turbo", "gpt-4.1"), 128000),
    (("gpt-3.5",), 16385),
    (("gemini-1.5",), 128000),
    (("gemini-pro",), 32768),
    (("mistral", "mixtral"), 32768),
    (("llama",), 8192),
)

_VISION_MARKERS = ("vision", "gpt-4o", "claude-3", "gemini-1.5")
_CODE_MARKERS = ("code", "coder", "codestral")
_NON_CHAT_MARKERS = ("embedding", "whisper", "tts", "dall-e", "moderation")

_CONTEXT_SUFFIX = re.compile(r"-(\d{5,6})$")


def context_window_for(model_name: str) -> int:
    name = (model_name or "").lower()
    if not name:
        return DEFAULT_CONTEXT_WINDOW
    for fragments, size in _CONTEXT_WINDOWS:
        if any(fragment in name for fragment in fragments):
            # Names like "mixtral-8x7b-32768" carry their window explicitly.
            match = _CONTEXT_SUFFIX.search(name)
            return int(match.group(1)) if match else size
    return DEFAULT_CONTEXT_WINDOW


def supports_vision(model_name: str) -> bool:
    name = (model_name or "").lower()
    return any(marker in name for marker in _VISION_MARKERS)


def supports_code_completion(model_name: str) -> bool:
    name = (model_name or "").lower()
    return any(marker in name for marker in _CODE_MARKERS)


def is_chat_model(model_name: str) -> bool:
    name = (model_name or "").lower()
    return not any(marker in name for marker in _NON_CHAT_MARKERS)


def display_name_for(model_name: str) -> str:
    """Turn ``gpt-4o-mini`` into ``Gpt 4o Mini``; keeps the last path segment only."""
    base = model_name.rsplit("/", 1)[-1]
    words = [word for word in re.split(r"[-_:]", base) if word]
    if not words:
        return model_name[:MAX_DISPLAY_NAME_LENGTH]
    name = " ".join(word if word[:1].isdigit() else word.capitalize() for word in words)
    return name[:MAX_DISPLAY_NAME_LENGTH]


__all__ = [
    "DEFAULT_CONTEXT_WINDOW",
    "DEFAULT_MAX_TOKENS",
    "MAX_DISPLAY_NAME_LENGTH",
    "context_window_for",
    "display_name_for",
    "is_chat_model",
    "supports_code_completion",
    "supports_vision",
]
