"""Gateway configuration models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from gatewaykit.models.enums import DeliveryChannel, MappingActionKind, WakeMode

DEFAULT_HOOKS_PATH = "/hooks"
DEFAULT_HOOKS_MAX_BODY_BYTES = 256 * 1024


class WebConfig(BaseModel):
    """WhatsApp web bridge configuration."""

    enabled: bool = True


class TelegramConfig(BaseModel):
    """Telegram bot connector configuration.

    The bot token is resolved from ``TELEGRAM_BOT_TOKEN`` first, then
    ``token_file``, then ``bot_token``.
    """

    enabled: bool = True
    bot_token: SecretStr | None = None
    token_file: str | None = None
    proxy: str | None = None
    webhook_url: str | None = None
    webhook_secret: SecretStr | None = None
    webhook_path: str | None = None


class DiscordConfig(BaseModel):
    """Discord bot connector configuration (``DISCORD_BOT_TOKEN`` wins over ``token``)."""

    enabled: bool = True
    token: SecretStr | None = None
    slash_command: str | None = None
    media_max_mb: float | None = None
    history_limit: int | None = None


class SignalConfig(BaseModel):
    """signal-cli bridge configuration."""

    enabled: bool = True
    account: str | None = None
    http_url: str | None = None
    http_host: str | None = None
    http_port: int | None = None
    cli_path: str | None = None
    auto_start: bool | None = None

    @property
    def meaningfully_configured(self) -> bool:
        """True when at least one field that locates the bridge is set."""
        return bool(
            (self.account or "").strip()
            or (self.http_url or "").strip()
            or (self.cli_path or "").strip()
            or (self.http_host or "").strip()
            or self.http_port is not None
            or self.auto_start is not None
        )


class IMessageConfig(BaseModel):
    """iMessage bridge configuration."""

    enabled: bool = True
    cli_path: str | None = None
    db_path: str | None = None
    allow_from: list[str] = Field(default_factory=list)
    include_attachments: bool | None = None
    media_max_mb: float | None = None


class HookMatch(BaseModel):
    """Conditions a mapping rule requires; unset fields match anything."""

    path: str | None = None
    source: str | None = None


class HookMappingRule(BaseModel):
    """Translate an arbitrary webhook shape into a wake or agent action.

    Templates accept ``{{payload.a.b}}``, ``{{headers.x}}``, ``{{query.x}}``
    and ``{{path}}`` placeholders. ``transform`` names a ``module:attr``
    callable that receives the template context and may return ``None``
    (skip) or a dict of action field overrides.
    """

    id: str | None = None
    match: HookMatch | None = None
    action: MappingActionKind = MappingActionKind.AGENT
    wake_mode: WakeMode = WakeMode.NOW
    name: str | None = None
    session_key: str | None = None
    message_template: str | None = None
    text_template: str | None = None
    deliver: bool | None = None
    channel: DeliveryChannel | None = None
    to: str | None = None
    thinking: str | None = None
    timeout_seconds: int | None = None
    transform: str | None = None


class HooksConfig(BaseModel):
    """Webhook ingress configuration.

    Immutable for the lifetime of a :class:`~gatewaykit.hooks.HookGateway`.
    """

    base_path: str = DEFAULT_HOOKS_PATH
    token: SecretStr
    max_body_bytes: int = Field(default=DEFAULT_HOOKS_MAX_BODY_BYTES, gt=0)
    mappings: list[HookMappingRule] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @field_validator("base_path")
    @classmethod
    def normalize_base_path(cls, v: str) -> str:
        path = "/" + v.strip().strip("/")
        if path == "/":
            raise ValueError("hooks base_path must not be '/'")
        return path

    @field_validator("token")
    @classmethod
    def require_token(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value().strip():
            raise ValueError("hooks token must not be blank")
        return v


class GatewayConfig(BaseModel):
    """Top-level configuration re-read by the supervisor on every start."""

    web: WebConfig | None = None
    telegram: TelegramConfig | None = None
    discord: DiscordConfig | None = None
    signal: SignalConfig | None = None
    imessage: IMessageConfig | None = None
    hooks: HooksConfig | None = None
