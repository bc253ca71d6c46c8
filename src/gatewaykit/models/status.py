"""Runtime status records for supervised connectors."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from gatewaykit.models.enums import ConnectorKind, TelegramMode


class ConnectorStatus(BaseModel):
    """Aggregated runtime status shared by every connector kind.

    Records are immutable: the supervisor replaces a record with an updated
    copy instead of mutating it, so a record handed out in a snapshot can
    never observe later changes.

    Attributes:
        running: True while the supervisor owns an active task.
        last_start_at: When the most recent task was launched.
        last_stop_at: When the most recent task settled.
        last_error: Formatted failure text, or an informational skip reason
            such as ``"disabled"`` or ``"not configured"``.
    """

    model_config = ConfigDict(frozen=True)

    running: bool = False
    last_start_at: datetime | None = None
    last_stop_at: datetime | None = None
    last_error: str | None = None


class WhatsAppStatus(ConnectorStatus):
    """Status of the WhatsApp web bridge."""

    connected: bool = False
    reconnect_attempts: int = 0
    last_connected_at: datetime | None = None
    last_disconnect: str | None = None
    last_message_at: datetime | None = None
    last_event_at: datetime | None = None


class TelegramStatus(ConnectorStatus):
    mode: TelegramMode | None = None


class DiscordStatus(ConnectorStatus):
    pass


class SignalStatus(ConnectorStatus):
    base_url: str | None = None


class IMessageStatus(ConnectorStatus):
    cli_path: str | None = None
    db_path: str | None = None


STATUS_MODELS: dict[ConnectorKind, type[ConnectorStatus]] = {
    ConnectorKind.WHATSAPP: WhatsAppStatus,
    ConnectorKind.TELEGRAM: TelegramStatus,
    ConnectorKind.DISCORD: DiscordStatus,
    ConnectorKind.SIGNAL: SignalStatus,
    ConnectorKind.IMESSAGE: IMessageStatus,
}


class ConnectorSnapshot(BaseModel):
    """Point-in-time copy of every connector status."""

    model_config = ConfigDict(frozen=True)

    whatsapp: WhatsAppStatus
    telegram: TelegramStatus
    discord: DiscordStatus
    signal: SignalStatus
    imessage: IMessageStatus

    def __getitem__(self, kind: ConnectorKind | str) -> ConnectorStatus:
        status: ConnectorStatus = getattr(self, ConnectorKind(kind).value)
        return status
