"""Voice-wake trigger phrase normalization."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

MAX_TRIGGERS = 32
MAX_TRIGGER_LENGTH = 64

DEFAULT_VOICE_WAKE_TRIGGERS: tuple[str, ...] = ("hey assistant", "assistant")


def default_voice_wake_triggers() -> list[str]:
    """Return a fresh copy of the built-in trigger phrases."""
    return list(DEFAULT_VOICE_WAKE_TRIGGERS)


def normalize_voice_wake_triggers(
    raw: Any,
    *,
    defaults: Callable[[], list[str]] = default_voice_wake_triggers,
) -> list[str]:
    """Clean an untrusted trigger list.

    Non-list input and non-string entries are ignored. Each entry is trimmed
    and clipped to ``MAX_TRIGGER_LENGTH`` characters, blanks are dropped,
    repeats keep their first position, and at most ``MAX_TRIGGERS`` entries
    survive. An empty result is replaced by ``defaults()``.
    """
    items = raw if isinstance(raw, list | tuple) else []
    seen: set[str] = set()
    cleaned: list[str] = []
    for item in items:
        if not isinstance(item, str):
            continue
        phrase = item.strip()[:MAX_TRIGGER_LENGTH].rstrip()
        if not phrase or phrase in seen:
            continue
        seen.add(phrase)
        cleaned.append(phrase)
        if len(cleaned) >= MAX_TRIGGERS:
            break
    return cleaned if cleaned else defaults()
