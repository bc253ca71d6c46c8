"""Connector entry-point types and credential probes."""

from gatewaykit.connectors.base import (
    BotIdentity,
    ConnectorLaunch,
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
)
from gatewaykit.connectors.probes import probe_discord, probe_telegram

__all__ = [
    "BotIdentity",
    "ConnectorLaunch",
    "ConnectorRunner",
    "DiscordLaunch",
    "IMessageLaunch",
    "LinkedSession",
    "ProbeFn",
    "ProbeResult",
    "SelfId",
    "SignalLaunch",
    "StatusSink",
    "TelegramLaunch",
    "WhatsAppLaunch",
    "probe_discord",
    "probe_telegram",
]
