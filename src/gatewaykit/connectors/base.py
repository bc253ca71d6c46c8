"""Interfaces between the supervisor and chat-platform connectors.

Connectors implement the platform wire protocols and are not part of this
package. The supervisor only needs three things from them:

* a **runner**: ``run(options, token, sink)`` coroutine that keeps the
  connection alive until ``token`` is cancelled or an unrecoverable error
  occurs;
* optionally a **probe**: ``probe(token, timeout_ms)`` returning the bot
  identity, used to label log lines;
* for the WhatsApp web bridge, a **linked session** store that says whether
  a paired device exists.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from pydantic import BaseModel, Field, SecretStr

from gatewaykit.core.cancellation import CancellationToken
from gatewaykit.models.status import ConnectorStatus


# -- Launch options (resolved configuration handed to each runner) --


class WhatsAppLaunch(BaseModel):
    identity: str = "unknown"
    verbose: bool = False


class TelegramLaunch(BaseModel):
    token: SecretStr
    use_webhook: bool = False
    webhook_url: str | None = None
    webhook_secret: SecretStr | None = None
    webhook_path: str | None = None
    proxy: str | None = None


class DiscordLaunch(BaseModel):
    token: SecretStr
    slash_command: str | None = None
    media_max_mb: float | None = None
    history_limit: int | None = None


class SignalLaunch(BaseModel):
    base_url: str
    account: str | None = None
    cli_path: str | None = None
    http_host: str | None = None
    http_port: int | None = None
    auto_start: bool | None = None


class IMessageLaunch(BaseModel):
    cli_path: str = "imsg"
    db_path: str | None = None
    allow_from: list[str] = Field(default_factory=list)
    include_attachments: bool | None = None
    media_max_mb: float | None = None


ConnectorLaunch = WhatsAppLaunch | TelegramLaunch | DiscordLaunch | SignalLaunch | IMessageLaunch

# A connector pushes live sub-status (e.g. ``{"connected": True}``) through
# the sink at any time. Fields it does not report are left untouched.
StatusSink = Callable[[Mapping[str, Any] | ConnectorStatus], None]

ConnectorRunner = Callable[[Any, CancellationToken, StatusSink], Awaitable[None]]


# -- Probes --


class BotIdentity(BaseModel):
    id: str | None = None
    username: str | None = None


class ProbeResult(BaseModel):
    """Outcome of a credential probe. Probes report failures, never raise."""

    ok: bool
    status: int | None = None
    error: str | None = None
    elapsed_ms: float = 0.0
    bot: BotIdentity | None = None


ProbeFn = Callable[[str, int], Awaitable[ProbeResult]]


# -- WhatsApp linked session --


class SelfId(BaseModel):
    e164: str | None = None
    jid: str | None = None

    @property
    def label(self) -> str:
        if self.e164:
            return self.e164
        if self.jid:
            return f"jid {self.jid}"
        return "unknown"


class LinkedSession(ABC):
    """Access to the paired-device credentials of the WhatsApp web bridge."""

    @abstractmethod
    async def auth_exists(self) -> bool:
        """Return True when a linked session is stored."""
        ...

    def read_self_id(self) -> SelfId:
        """Return the identity of the linked account, if known."""
        return SelfId()
