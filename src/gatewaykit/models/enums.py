"""All string enums for gatewaykit."""

from __future__ import annotations

from enum import StrEnum, unique


@unique
class ConnectorKind(StrEnum):
    WHATSAPP = "whatsapp"
    TELEGRAM = "telegram"
    DISCORD = "discord"
    SIGNAL = "signal"
    IMESSAGE = "imessage"


# Order used by ``ConnectorSupervisor.start_all()``.
CONNECTOR_START_ORDER: tuple[ConnectorKind, ...] = (
    ConnectorKind.WHATSAPP,
    ConnectorKind.DISCORD,
    ConnectorKind.TELEGRAM,
    ConnectorKind.SIGNAL,
    ConnectorKind.IMESSAGE,
)


@unique
class WakeMode(StrEnum):
    NOW = "now"
    NEXT_HEARTBEAT = "next-heartbeat"


@unique
class DeliveryChannel(StrEnum):
    LAST = "last"
    WHATSAPP = "whatsapp"
    TELEGRAM = "telegram"
    DISCORD = "discord"
    SIGNAL = "signal"
    IMESSAGE = "imessage"


@unique
class TelegramMode(StrEnum):
    WEBHOOK = "webhook"
    POLLING = "polling"


@unique
class MappingActionKind(StrEnum):
    WAKE = "wake"
    AGENT = "agent"
