"""gatewaykit - Async connector supervisor and webhook ingress gateway."""

from gatewaykit._version import __version__
from gatewaykit.connectors import (
    BotIdentity,
    ConnectorRunner,
    DiscordLaunch,
    IMessageLaunch,
    LinkedSession,
    ProbeFn,
    ProbeResult,
    SelfId,
    SignalLaunch,
    StatusSink,
    TelegramLaunch,
    WhatsAppLaunch,
    probe_discord,
    probe_telegram,
)
from gatewaykit.core import (
    CancellationToken,
    ConnectorNotFoundError,
    GatewayError,
    default_voice_wake_triggers,
    format_error,
    normalize_voice_wake_triggers,
)
from gatewaykit.core.framework import Gateway
from gatewaykit.core.supervisor import ConnectorSupervisor
from gatewaykit.hooks import (
    HookGateway,
    MappingDispatcher,
    MappingEngine,
    MappingOutcome,
    MappingStatus,
    TemplateMappingEngine,
    extract_hook_token,
    normalize_agent_payload,
    normalize_wake_payload,
    read_json_body,
)
from gatewaykit.models.config import (
    DiscordConfig,
    GatewayConfig,
    HookMappingRule,
    HookMatch,
    HooksConfig,
    IMessageConfig,
    SignalConfig,
    TelegramConfig,
    WebConfig,
)
from gatewaykit.models.enums import (
    CONNECTOR_START_ORDER,
    ConnectorKind,
    DeliveryChannel,
    MappingActionKind,
    TelegramMode,
    WakeMode,
)
from gatewaykit.models.hook import (
    AgentAction,
    HookAction,
    HookRequestContext,
    Invalid,
    MappedAgent,
    MappedWake,
    MappingMatched,
    MappingResult,
    Normalized,
    NormalizeResult,
    WakeAction,
)
from gatewaykit.models.status import (
    ConnectorSnapshot,
    ConnectorStatus,
    DiscordStatus,
    IMessageStatus,
    SignalStatus,
    TelegramStatus,
    WhatsAppStatus,
)
from gatewaykit.server import GatewayServer, RequestRouter, WebSocketAcceptor
from gatewaykit.telemetry import (
    ConsoleTelemetryProvider,
    MockTelemetryProvider,
    NoopTelemetryProvider,
    TelemetryProvider,
)

__all__ = [
    # Version
    "__version__",
    # Gateway
    "Gateway",
    "GatewayServer",
    "RequestRouter",
    "WebSocketAcceptor",
    # Supervisor
    "CONNECTOR_START_ORDER",
    "CancellationToken",
    "ConnectorKind",
    "ConnectorNotFoundError",
    "ConnectorRunner",
    "ConnectorSnapshot",
    "ConnectorStatus",
    "ConnectorSupervisor",
    "DiscordStatus",
    "GatewayError",
    "IMessageStatus",
    "SignalStatus",
    "StatusSink",
    "TelegramMode",
    "TelegramStatus",
    "WhatsAppStatus",
    "format_error",
    # Connectors
    "BotIdentity",
    "DiscordLaunch",
    "IMessageLaunch",
    "LinkedSession",
    "ProbeFn",
    "ProbeResult",
    "SelfId",
    "SignalLaunch",
    "TelegramLaunch",
    "WhatsAppLaunch",
    "probe_discord",
    "probe_telegram",
    # Hooks
    "AgentAction",
    "DeliveryChannel",
    "HookAction",
    "HookGateway",
    "HookRequestContext",
    "Invalid",
    "MappedAgent",
    "MappedWake",
    "MappingActionKind",
    "MappingDispatcher",
    "MappingEngine",
    "MappingMatched",
    "MappingOutcome",
    "MappingResult",
    "MappingStatus",
    "Normalized",
    "NormalizeResult",
    "TemplateMappingEngine",
    "WakeAction",
    "WakeMode",
    "default_voice_wake_triggers",
    "extract_hook_token",
    "normalize_agent_payload",
    "normalize_voice_wake_triggers",
    "normalize_wake_payload",
    "read_json_body",
    # Config
    "DiscordConfig",
    "GatewayConfig",
    "HookMappingRule",
    "HookMatch",
    "HooksConfig",
    "IMessageConfig",
    "SignalConfig",
    "TelegramConfig",
    "WebConfig",
    # Telemetry
    "ConsoleTelemetryProvider",
    "MockTelemetryProvider",
    "NoopTelemetryProvider",
    "TelemetryProvider",
]
