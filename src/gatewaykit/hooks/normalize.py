"""Validation of untrusted webhook payloads into hook actions.

Normalizers never raise. They return :class:`Normalized` with the coerced
action or :class:`Invalid` with a short reason suitable for a ``400``.
"""

from __future__ import annotations

import math
import uuid
from collections.abc import Callable, Mapping
from typing import Any

from aiohttp import web

from gatewaykit.models.enums import DeliveryChannel, WakeMode
from gatewaykit.models.hook import (
    AgentAction,
    Invalid,
    Normalized,
    NormalizeResult,
    WakeAction,
)

CHANNEL_ERROR = "channel must be " + "|".join(c.value for c in DeliveryChannel)


def _trimmed(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def _wake_mode(value: Any) -> WakeMode:
    return WakeMode.NEXT_HEARTBEAT if value == WakeMode.NEXT_HEARTBEAT.value else WakeMode.NOW


def _timeout_seconds(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return math.floor(value)


def new_session_key(id_factory: Callable[[], Any] = uuid.uuid4) -> str:
    """Return a fresh ``hook:<id>`` session key."""
    return f"hook:{id_factory()}"


def normalize_wake_payload(payload: Mapping[str, Any]) -> NormalizeResult[WakeAction]:
    text = _trimmed(payload.get("text"))
    if text is None:
        return Invalid("text required")
    return Normalized(WakeAction(text=text, mode=_wake_mode(payload.get("mode"))))


def normalize_agent_payload(
    payload: Mapping[str, Any],
    *,
    id_factory: Callable[[], Any] = uuid.uuid4,
) -> NormalizeResult[AgentAction]:
    """Validate an ``/agent`` payload.

    ``message`` is required. ``name`` defaults to ``"Hook"``, ``wakeMode``
    to ``"now"`` and ``sessionKey`` to a fresh ``hook:<uuid>``. ``deliver``
    is only true for a literal JSON ``true``; ``timeoutSeconds`` must be a
    positive finite number and is floored.
    """
    message = _trimmed(payload.get("message"))
    if message is None:
        return Invalid("message required")

    channel = DeliveryChannel.LAST
    channel_raw = _trimmed(payload.get("channel"))
    if channel_raw is not None:
        try:
            channel = DeliveryChannel(channel_raw)
        except ValueError:
            return Invalid(CHANNEL_ERROR)

    return Normalized(
        AgentAction(
            message=message,
            name=_trimmed(payload.get("name")) or "Hook",
            wake_mode=_wake_mode(payload.get("wakeMode")),
            session_key=_trimmed(payload.get("sessionKey")) or new_session_key(id_factory),
            deliver=payload.get("deliver") is True,
            channel=channel,
            to=_trimmed(payload.get("to")),
            thinking=_trimmed(payload.get("thinking")),
            timeout_seconds=_timeout_seconds(payload.get("timeoutSeconds")),
        )
    )


def normalize_hook_headers(request: web.BaseRequest) -> dict[str, str]:
    """Lower-case header names and join repeated values with ``", "``."""
    grouped: dict[str, list[str]] = {}
    for name, value in request.headers.items():
        grouped.setdefault(name.lower(), []).append(value)
    return {name: ", ".join(values) for name, values in grouped.items()}
