"""Connector supervisor: one cancellable background task per connector kind."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import SecretStr

from gatewaykit.connectors.base import (
    ConnectorLaunch,
    ConnectorRunner,
    DiscordLaunch,
    IMessageLaunch,
    LinkedSession,
    ProbeFn,
    SignalLaunch,
    StatusSink,
    TelegramLaunch,
    WhatsAppLaunch,
)
from gatewaykit.core.cancellation import CancellationToken
from gatewaykit.core.errors import ConnectorNotFoundError, format_error
from gatewaykit.models.config import (
    DiscordConfig,
    GatewayConfig,
    TelegramConfig,
)
from gatewaykit.models.enums import CONNECTOR_START_ORDER, ConnectorKind, TelegramMode
from gatewaykit.models.status import STATUS_MODELS, ConnectorSnapshot, ConnectorStatus
from gatewaykit.telemetry.base import Attr, SpanKind, TelemetryProvider
from gatewaykit.telemetry.noop import NoopTelemetryProvider

logger = logging.getLogger("gatewaykit.supervisor")

PROBE_TIMEOUT_MS = 2500
DEFAULT_SIGNAL_HOST = "127.0.0.1"
DEFAULT_SIGNAL_PORT = 8080
DEFAULT_IMESSAGE_CLI = "imsg"

# Bot connectors whose skip reasons are only logged in verbose mode.
_QUIET_KINDS = frozenset(
    {ConnectorKind.TELEGRAM, ConnectorKind.DISCORD, ConnectorKind.SIGNAL, ConnectorKind.IMESSAGE}
)


@dataclass(slots=True)
class _ConnectorHandle:
    """Cancellation token and task of one running connector."""

    token: CancellationToken = field(default_factory=CancellationToken)
    task: asyncio.Task[None] | None = None
    span_id: str = ""


@dataclass(frozen=True, slots=True)
class _Prepared:
    options: ConnectorLaunch
    label: str = ""
    fields: dict[str, Any] = field(default_factory=dict)


def _connector_logger(kind: ConnectorKind) -> logging.Logger:
    return logging.getLogger(f"gatewaykit.connectors.{kind}")


class ConnectorSupervisor:
    """Start, stop and report on the configured chat connectors.

    Each connector kind owns at most one background task. ``start`` is
    idempotent while a task is active; ``stop`` signals the task's
    :class:`CancellationToken` and waits for it to settle. When a task
    settles, its status flips to ``running=False``, records ``last_stop_at``
    (and ``last_error`` on failure) and releases the handle in a single
    step, so a snapshot never shows a half-updated record.

    Configuration is re-read through ``load_config`` on every start.
    Disabled or unconfigured connectors are skipped: the reason is stored
    as ``last_error`` and no task is created.

    Example::

        supervisor = ConnectorSupervisor(
            load_config,
            {ConnectorKind.TELEGRAM: run_telegram},
            probes={ConnectorKind.TELEGRAM: probe_telegram},
        )
        await supervisor.start_all()
        print(supervisor.get_snapshot().telegram)
        await supervisor.stop_all()
    """

    def __init__(
        self,
        load_config: Callable[[], GatewayConfig],
        runners: Mapping[ConnectorKind, ConnectorRunner],
        *,
        probes: Mapping[ConnectorKind, ProbeFn] | None = None,
        linked_session: LinkedSession | None = None,
        environ: Mapping[str, str] | None = None,
        verbose: bool = False,
        stop_timeout: float | None = None,
        telemetry: TelemetryProvider | None = None,
    ) -> None:
        """Initialise the supervisor.

        Args:
            load_config: Returns the current configuration; called on every start.
            runners: Entry point per connector kind. Kinds without a runner
                are reported as ``"not available"`` when started.
            probes: Optional credential probes used to label start log lines.
            linked_session: Paired-device store for the WhatsApp web bridge.
                Without one, WhatsApp is always ``"not linked"``.
            environ: Environment used for token overrides (defaults to
                ``os.environ``).
            verbose: Log skip reasons of the bot connectors.
            stop_timeout: Default bound in seconds for :meth:`stop`. ``None``
                waits for the connector to honour cancellation indefinitely.
            telemetry: Span and metric sink; defaults to the noop provider.
        """
        self._load_config = load_config
        self._runners: dict[ConnectorKind, ConnectorRunner] = {
            ConnectorKind(k): r for k, r in runners.items()
        }
        self._probes: dict[ConnectorKind, ProbeFn] = {
            ConnectorKind(k): p for k, p in (probes or {}).items()
        }
        self._linked_session = linked_session
        self._environ = environ if environ is not None else os.environ
        self._verbose = verbose
        self._stop_timeout = stop_timeout
        self._telemetry = telemetry or NoopTelemetryProvider()

        self._statuses: dict[ConnectorKind, ConnectorStatus] = {
            kind: model() for kind, model in STATUS_MODELS.items()
        }
        self._handles: dict[ConnectorKind, _ConnectorHandle] = {}
        self._locks: dict[ConnectorKind, asyncio.Lock] = {
            kind: asyncio.Lock() for kind in ConnectorKind
        }

    # -- Public API --

    async def start(self, kind: ConnectorKind | str) -> None:
        """Launch the connector task for ``kind`` unless one is already active.

        Raises:
            ConnectorNotFoundError: If ``kind`` is not a known connector kind.
        """
        kind = self._resolve(kind)
        async with self._locks[kind]:
            if kind in self._handles:
                return

            runner = self._runners.get(kind)
            if runner is None:
                _connector_logger(kind).debug("skipping provider start (no runner registered)")
                self._update(kind, running=False, last_error="not available")
                return

            prepared = await self._prepare(kind, self._load_config())
            if isinstance(prepared, str):
                self._update(kind, running=False, last_error=prepared)
                return

            _connector_logger(kind).info(
                "starting provider%s",
                prepared.label,
                extra={"connector": str(kind)},
            )
            handle = _ConnectorHandle()
            handle.span_id = self._telemetry.start_span(
                SpanKind.CONNECTOR_RUN,
                f"connector.{kind}",
                connector=str(kind),
                attributes={
                    Attr.CONNECTOR: str(kind),
                    Attr.CONNECTOR_LABEL: prepared.label.strip(),
                },
            )
            self._update(
                kind,
                running=True,
                last_start_at=datetime.now(UTC),
                last_error=None,
                **prepared.fields,
            )
            self._handles[kind] = handle
            handle.task = asyncio.create_task(
                self._run_connector(kind, handle, runner, prepared.options),
                name=f"connector:{kind}",
            )

    async def stop(self, kind: ConnectorKind | str, timeout: float | None = None) -> None:
        """Signal cancellation and wait for the connector task to settle.

        A no-op when no task is active. Errors raised by the settling task
        are recorded in the status, never re-raised here.

        Args:
            kind: Connector kind to stop.
            timeout: Seconds to wait for cooperative shutdown before the task
                is cancelled outright. Falls back to the supervisor's
                ``stop_timeout``; ``None`` waits indefinitely.

        Raises:
            ConnectorNotFoundError: If ``kind`` is not a known connector kind.
        """
        kind = self._resolve(kind)
        async with self._locks[kind]:
            handle = self._handles.get(kind)
            if handle is None or handle.task is None:
                return

            handle.token.cancel("stop requested")
            limit = timeout if timeout is not None else self._stop_timeout
            done, _ = await asyncio.wait({handle.task}, timeout=limit)
            if not done:
                logger.warning(
                    "Connector %s ignored cancellation for %.1fs, cancelling task",
                    kind,
                    limit,
                )
                handle.task.cancel()
                await asyncio.wait({handle.task})
            # A task cancelled before its first step never reaches its own settle.
            if self._handles.get(kind) is handle:
                self._settle(kind, handle, None)

    async def start_all(self) -> None:
        """Start every connector kind in the fixed start order.

        A failure to start one connector is logged and does not prevent the
        next one from starting.
        """
        for kind in CONNECTOR_START_ORDER:
            try:
                await self.start(kind)
            except Exception:
                logger.exception("Failed to start connector %s", kind)

    async def stop_all(self) -> None:
        """Stop every connector kind in reverse start order."""
        for kind in reversed(CONNECTOR_START_ORDER):
            await self.stop(kind)

    def get_snapshot(self) -> ConnectorSnapshot:
        """Return an immutable copy of every connector status."""
        return ConnectorSnapshot(**{kind.value: status for kind, status in self._statuses.items()})

    def get_status(self, kind: ConnectorKind | str) -> ConnectorStatus:
        """Return the current (immutable) status record of one connector."""
        return self._statuses[self._resolve(kind)]

    def is_running(self, kind: ConnectorKind | str) -> bool:
        return self._resolve(kind) in self._handles

    def mark_external_event(
        self,
        kind: ConnectorKind | str,
        *,
        connected: bool | None = None,
        error: str | None = None,
    ) -> None:
        """Apply an out-of-band signal without touching task ownership.

        Only the given fields change; ``running`` is never affected.
        ``connected`` is ignored for kinds that do not track it.
        """
        kind = self._resolve(kind)
        changes: dict[str, Any] = {}
        if connected is not None and "connected" in type(self._statuses[kind]).model_fields:
            changes["connected"] = connected
        if error is not None:
            changes["last_error"] = error
        if changes:
            self._update(kind, **changes)

    def mark_logged_out(self, cleared: bool) -> None:
        """Record that the WhatsApp linked session was logged out."""
        if cleared:
            self.mark_external_event(ConnectorKind.WHATSAPP, connected=False, error="logged out")
        else:
            self.mark_external_event(ConnectorKind.WHATSAPP, connected=False)

    # -- Task lifecycle --

    async def _run_connector(
        self,
        kind: ConnectorKind,
        handle: _ConnectorHandle,
        runner: ConnectorRunner,
        options: ConnectorLaunch,
    ) -> None:
        error: str | None = None
        try:
            await runner(options, handle.token, self._make_sink(kind, handle))
        except asyncio.CancelledError:
            _connector_logger(kind).debug("provider task cancelled")
            raise
        except Exception as exc:
            error = format_error(exc)
            _connector_logger(kind).error(
                "provider exited: %s",
                error,
                extra={"connector": str(kind)},
            )
        finally:
            self._settle(kind, handle, error)

    def _settle(
        self,
        kind: ConnectorKind,
        handle: _ConnectorHandle,
        error: str | None,
    ) -> None:
        changes: dict[str, Any] = {"running": False, "last_stop_at": datetime.now(UTC)}
        if kind == ConnectorKind.WHATSAPP:
            changes["connected"] = False
        if error is not None:
            changes["last_error"] = error
        self._update(kind, **changes)
        if self._handles.get(kind) is handle:
            del self._handles[kind]

        self._telemetry.end_span(handle.span_id, error=error)

    def _make_sink(self, kind: ConnectorKind, handle: _ConnectorHandle) -> StatusSink:
        def sink(update: Mapping[str, Any] | ConnectorStatus) -> None:
            if self._handles.get(kind) is not handle:
                return
            if isinstance(update, ConnectorStatus):
                update = update.model_dump(exclude_unset=True)
            known = type(self._statuses[kind]).model_fields
            changes = {k: v for k, v in update.items() if k in known and k != "running"}
            if changes:
                self._update(kind, **changes)

        return sink

    def _update(self, kind: ConnectorKind, **changes: Any) -> None:
        self._statuses[kind] = self._statuses[kind].model_copy(update=changes)

    @staticmethod
    def _resolve(kind: ConnectorKind | str) -> ConnectorKind:
        try:
            return ConnectorKind(kind)
        except ValueError:
            raise ConnectorNotFoundError(f"Unknown connector kind: {kind!r}") from None

    # -- Per-kind preparation --

    async def _prepare(self, kind: ConnectorKind, config: GatewayConfig) -> _Prepared | str:
        match kind:
            case ConnectorKind.WHATSAPP:
                return await self._prepare_whatsapp(config)
            case ConnectorKind.TELEGRAM:
                return await self._prepare_telegram(config)
            case ConnectorKind.DISCORD:
                return await self._prepare_discord(config)
            case ConnectorKind.SIGNAL:
                return self._prepare_signal(config)
            case ConnectorKind.IMESSAGE:
                return self._prepare_imessage(config)

    def _skip(self, kind: ConnectorKind, reason: str, detail: str) -> str:
        log = _connector_logger(kind)
        if kind in _QUIET_KINDS:
            if self._verbose:
                log.debug("skipping provider start (%s)", detail)
        else:
            log.info("skipping provider start (%s)", detail)
        return reason

    async def _prepare_whatsapp(self, config: GatewayConfig) -> _Prepared | str:
        kind = ConnectorKind.WHATSAPP
        if config.web is not None and not config.web.enabled:
            self._update(kind, connected=False)
            return self._skip(kind, "disabled", "web.enabled=false")
        if self._linked_session is None or not await self._linked_session.auth_exists():
            self._update(kind, connected=False)
            return self._skip(kind, "not linked", "no linked session")

        identity = self._linked_session.read_self_id().label
        return _Prepared(
            options=WhatsAppLaunch(identity=identity, verbose=self._verbose),
            label=f" ({identity})",
            fields={"connected": False},
        )

    async def _prepare_telegram(self, config: GatewayConfig) -> _Prepared | str:
        kind = ConnectorKind.TELEGRAM
        cfg = config.telegram or TelegramConfig()
        if not cfg.enabled:
            return self._skip(kind, "disabled", "telegram.enabled=false")
        token = self._resolve_telegram_token(cfg)
        if not token:
            return self._skip(kind, "not configured", "no telegram token")

        label = await self._probe_label(kind, token)
        mode = TelegramMode.WEBHOOK if cfg.webhook_url else TelegramMode.POLLING
        return _Prepared(
            options=TelegramLaunch(
                token=SecretStr(token),
                use_webhook=bool(cfg.webhook_url),
                webhook_url=cfg.webhook_url,
                webhook_secret=cfg.webhook_secret,
                webhook_path=cfg.webhook_path,
                proxy=cfg.proxy,
            ),
            label=label,
            fields={"mode": mode},
        )

    async def _prepare_discord(self, config: GatewayConfig) -> _Prepared | str:
        kind = ConnectorKind.DISCORD
        cfg = config.discord or DiscordConfig()
        if not cfg.enabled:
            return self._skip(kind, "disabled", "discord.enabled=false")
        token = self._resolve_discord_token(cfg)
        if not token:
            return self._skip(kind, "not configured", "no discord token")

        label = await self._probe_label(kind, token)
        return _Prepared(
            options=DiscordLaunch(
                token=SecretStr(token),
                slash_command=cfg.slash_command,
                media_max_mb=cfg.media_max_mb,
                history_limit=cfg.history_limit,
            ),
            label=label,
        )

    def _prepare_signal(self, config: GatewayConfig) -> _Prepared | str:
        kind = ConnectorKind.SIGNAL
        cfg = config.signal
        if cfg is None:
            return self._skip(kind, "not configured", "signal not configured")
        if not cfg.enabled:
            return self._skip(kind, "disabled", "signal.enabled=false")
        if not cfg.meaningfully_configured:
            return self._skip(kind, "not configured", "signal not configured")

        host = (cfg.http_host or "").strip() or DEFAULT_SIGNAL_HOST
        port = cfg.http_port or DEFAULT_SIGNAL_PORT
        base_url = (cfg.http_url or "").strip() or f"http://{host}:{port}"
        return _Prepared(
            options=SignalLaunch(
                base_url=base_url,
                account=cfg.account,
                cli_path=cfg.cli_path,
                http_host=cfg.http_host,
                http_port=cfg.http_port,
                auto_start=cfg.auto_start,
            ),
            label=f" ({base_url})",
            fields={"base_url": base_url},
        )

    def _prepare_imessage(self, config: GatewayConfig) -> _Prepared | str:
        kind = ConnectorKind.IMESSAGE
        cfg = config.imessage
        if cfg is None:
            return self._skip(kind, "not configured", "imessage not configured")
        if not cfg.enabled:
            return self._skip(kind, "disabled", "imessage.enabled=false")

        cli_path = (cfg.cli_path or "").strip() or DEFAULT_IMESSAGE_CLI
        db_path = (cfg.db_path or "").strip() or None
        return _Prepared(
            options=IMessageLaunch(
                cli_path=cli_path,
                db_path=db_path,
                allow_from=list(cfg.allow_from),
                include_attachments=cfg.include_attachments,
                media_max_mb=cfg.media_max_mb,
            ),
            label=f" ({cli_path})",
            fields={"cli_path": cli_path, "db_path": db_path},
        )

    # -- Credentials --

    def _resolve_telegram_token(self, cfg: TelegramConfig) -> str:
        env_token = self._environ.get("TELEGRAM_BOT_TOKEN", "").strip()
        if env_token:
            return env_token
        if cfg.token_file:
            try:
                file_token = Path(cfg.token_file).expanduser().read_text(encoding="utf-8").strip()
            except OSError as exc:
                _connector_logger(ConnectorKind.TELEGRAM).warning(
                    "Failed to read telegram token file %s: %s", cfg.token_file, exc
                )
                file_token = ""
            if file_token:
                return file_token
        if cfg.bot_token is not None:
            return cfg.bot_token.get_secret_value().strip()
        return ""

    def _resolve_discord_token(self, cfg: DiscordConfig) -> str:
        env_token = self._environ.get("DISCORD_BOT_TOKEN", "").strip()
        if env_token:
            return env_token
        if cfg.token is not None:
            return cfg.token.get_secret_value().strip()
        return ""

    async def _probe_label(self, kind: ConnectorKind, token: str) -> str:
        probe = self._probes.get(kind)
        if probe is None:
            return ""
        span_id = self._telemetry.start_span(
            SpanKind.CONNECTOR_PROBE,
            f"connector.{kind}.probe",
            connector=str(kind),
        )
        try:
            result = await probe(token, PROBE_TIMEOUT_MS)
        except Exception as exc:
            self._telemetry.end_span(span_id, error=format_error(exc))
            if self._verbose:
                _connector_logger(kind).debug("bot probe failed: %s", format_error(exc))
            return ""

        self._telemetry.end_span(
            span_id,
            error=None if result.ok else result.error or "probe failed",
            attributes={Attr.DURATION_MS: result.elapsed_ms},
        )
        if result.ok and result.bot is not None and result.bot.username:
            return f" (@{result.bot.username})"
        return ""
