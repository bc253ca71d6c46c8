"""Core primitives: cancellation, errors and trigger normalization.

:class:`~gatewaykit.core.supervisor.ConnectorSupervisor` and
:class:`~gatewaykit.core.framework.Gateway` live in their own modules and
are re-exported from :mod:`gatewaykit`.
"""

from gatewaykit.core.cancellation import CancellationToken
from gatewaykit.core.errors import ConnectorNotFoundError, GatewayError, format_error
from gatewaykit.core.triggers import (
    DEFAULT_VOICE_WAKE_TRIGGERS,
    MAX_TRIGGER_LENGTH,
    MAX_TRIGGERS,
    default_voice_wake_triggers,
    normalize_voice_wake_triggers,
)

__all__ = [
    "DEFAULT_VOICE_WAKE_TRIGGERS",
    "MAX_TRIGGERS",
    "MAX_TRIGGER_LENGTH",
    "CancellationToken",
    "ConnectorNotFoundError",
    "GatewayError",
    "default_voice_wake_triggers",
    "format_error",
    "normalize_voice_wake_triggers",
]
