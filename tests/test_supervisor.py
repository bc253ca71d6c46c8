"""Tests for ConnectorSupervisor lifecycle, skips and status aggregation."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import pytest
from pydantic import ValidationError

from gatewaykit import (
    BotIdentity,
    ConnectorKind,
    ConnectorNotFoundError,
    ConnectorSupervisor,
    DiscordConfig,
    DiscordLaunch,
    GatewayConfig,
    IMessageConfig,
    IMessageLaunch,
    ProbeResult,
    SelfId,
    SignalConfig,
    SignalLaunch,
    TelegramConfig,
    TelegramLaunch,
    TelegramMode,
    WebConfig,
    WhatsAppLaunch,
    WhatsAppStatus,
)
from gatewaykit.telemetry import MockTelemetryProvider, SpanKind
from tests.conftest import ConfigSource, FakeConnector, FakeLinkedSession

TG = ConnectorKind.TELEGRAM
WA = ConnectorKind.WHATSAPP


def _telegram_config(**overrides: Any) -> GatewayConfig:
    overrides.setdefault("bot_token", "123:abc")
    return GatewayConfig(telegram=TelegramConfig(**overrides))


def _supervisor(
    config: GatewayConfig | ConfigSource,
    runners: dict[ConnectorKind, Any],
    **kwargs: Any,
) -> ConnectorSupervisor:
    kwargs.setdefault("environ", {})
    source = config if isinstance(config, ConfigSource) else ConfigSource(config)
    return ConnectorSupervisor(source, runners, **kwargs)


def _messages(caplog: pytest.LogCaptureFixture, logger: str) -> list[str]:
    return [r.getMessage() for r in caplog.records if r.name == logger]


# =============================================================================
# Start / stop lifecycle
# =============================================================================


class TestStart:
    async def test_start_launches_task(self, advance) -> None:
        runner = FakeConnector()
        sup = _supervisor(_telegram_config(), {TG: runner})

        await sup.start(TG)
        await advance()

        status = sup.get_snapshot().telegram
        assert status.running is True
        assert status.last_start_at is not None
        assert status.last_error is None
        assert status.mode == TelegramMode.POLLING
        assert runner.calls == 1
        options = runner.options[0]
        assert isinstance(options, TelegramLaunch)
        assert options.token.get_secret_value() == "123:abc"
        assert options.use_webhook is False
        assert sup.is_running(TG)

        await sup.stop(TG)

    async def test_start_accepts_string_kind(self, advance) -> None:
        runner = FakeConnector()
        sup = _supervisor(_telegram_config(), {TG: runner})

        await sup.start("telegram")
        await advance()

        assert runner.calls == 1
        await sup.stop("telegram")

    async def test_start_twice_is_idempotent(self, advance) -> None:
        runner = FakeConnector()
        sup = _supervisor(_telegram_config(), {TG: runner})

        await sup.start(TG)
        assert sup.get_snapshot().telegram.running is True
        await sup.start(TG)
        assert sup.get_snapshot().telegram.running is True
        await advance()

        assert runner.calls == 1
        assert runner.max_active == 1
        await sup.stop(TG)

    async def test_concurrent_starts_create_one_task(self, advance) -> None:
        runner = FakeConnector()
        sup = _supervisor(_telegram_config(), {TG: runner})

        await asyncio.gather(sup.start(TG), sup.start(TG), sup.start(TG))
        await advance()

        assert runner.calls == 1
        await sup.stop(TG)

    async def test_config_is_reread_on_each_start(self, advance) -> None:
        source = ConfigSource(GatewayConfig())
        runner = FakeConnector()
        sup = _supervisor(source, {TG: runner})

        await sup.start(TG)
        assert sup.get_snapshot().telegram.last_error == "not configured"
        assert runner.calls == 0

        source.config = _telegram_config()
        await sup.start(TG)
        await advance()

        status = sup.get_snapshot().telegram
        assert status.running is True
        assert status.last_error is None
        assert source.reads == 2
        await sup.stop(TG)

    async def test_start_while_running_does_not_reread_config(self) -> None:
        source = ConfigSource(_telegram_config())
        sup = _supervisor(source, {TG: FakeConnector()})

        await sup.start(TG)
        await sup.start(TG)

        assert source.reads == 1
        await sup.stop(TG)

    async def test_unknown_kind_raises(self) -> None:
        sup = _supervisor(GatewayConfig(), {})

        with pytest.raises(ConnectorNotFoundError):
            await sup.start("matrix")
        with pytest.raises(ConnectorNotFoundError):
            await sup.stop("matrix")
        with pytest.raises(ConnectorNotFoundError):
            sup.mark_external_event("matrix", error="x")

    async def test_missing_runner_is_not_available(self) -> None:
        sup = _supervisor(_telegram_config(), {})

        await sup.start(TG)

        status = sup.get_snapshot().telegram
        assert status.running is False
        assert status.last_error == "not available"


class TestStop:
    async def test_stop_when_idle_is_noop(self) -> None:
        sup = _supervisor(GatewayConfig(), {TG: FakeConnector()})
        await sup.start(TG)
        before = sup.get_status(TG)

        await sup.stop(TG)

        after = sup.get_status(TG)
        assert after == before
        assert after.last_stop_at is None
        assert after.last_error == "not configured"

    async def test_stop_cancels_token_and_settles(self, advance) -> None:
        runner = FakeConnector()
        sup = _supervisor(_telegram_config(), {TG: runner})
        await sup.start(TG)
        await advance()

        await sup.stop(TG)

        status = sup.get_snapshot().telegram
        assert runner.tokens[0].cancelled
        assert runner.active == 0
        assert status.running is False
        assert status.last_stop_at is not None
        assert status.last_error is None
        assert not sup.is_running(TG)

    async def test_restart_after_stop_creates_fresh_task(self, advance) -> None:
        runner = FakeConnector()
        sup = _supervisor(_telegram_config(), {TG: runner})
        await sup.start(TG)
        await advance()
        await sup.stop(TG)

        await sup.start(TG)
        await advance()

        assert runner.calls == 2
        assert runner.tokens[0] is not runner.tokens[1]
        assert not runner.tokens[1].cancelled
        assert sup.get_snapshot().telegram.running is True
        await sup.stop(TG)

    async def test_stop_swallows_runner_error_raised_on_shutdown(self, advance) -> None:
        async def runner(options: Any, token: Any, sink: Any) -> None:
            await token.wait()
            raise RuntimeError("shutdown failed")

        sup = _supervisor(_telegram_config(), {TG: runner})
        await sup.start(TG)
        await advance()

        await sup.stop(TG)

        status = sup.get_snapshot().telegram
        assert status.running is False
        assert status.last_error == "shutdown failed"

    async def test_bounded_stop_cancels_unresponsive_runner(
        self, advance, caplog: pytest.LogCaptureFixture
    ) -> None:
        caplog.set_level(logging.WARNING, logger="gatewaykit")
        runner = FakeConnector(ignore_cancel=True)
        sup = _supervisor(_telegram_config(), {TG: runner})
        await sup.start(TG)
        await advance()

        await sup.stop(TG, timeout=0.05)

        status = sup.get_snapshot().telegram
        assert status.running is False
        assert status.last_stop_at is not None
        assert runner.active == 0
        assert any("ignored cancellation" in m for m in _messages(caplog, "gatewaykit.supervisor"))

    async def test_supervisor_default_stop_timeout(self, advance) -> None:
        runner = FakeConnector(ignore_cancel=True)
        sup = _supervisor(_telegram_config(), {TG: runner}, stop_timeout=0.05)
        await sup.start(TG)
        await advance()

        await sup.stop(TG)

        assert sup.get_snapshot().telegram.running is False
        assert runner.active == 0


class TestSettle:
    async def test_runner_failure_records_error(
        self, advance, caplog: pytest.LogCaptureFixture
    ) -> None:
        caplog.set_level(logging.ERROR, logger="gatewaykit")
        runner = FakeConnector(fail_with=RuntimeError("boom"))
        sup = _supervisor(_telegram_config(), {TG: runner})

        await sup.start(TG)
        await advance()

        status = sup.get_snapshot().telegram
        assert status.running is False
        assert status.last_error == "boom"
        assert status.last_stop_at is not None
        assert not sup.is_running(TG)
        assert "provider exited: boom" in _messages(caplog, "gatewaykit.connectors.telegram")

    async def test_failure_without_message_uses_class_name(self, advance) -> None:
        sup = _supervisor(_telegram_config(), {TG: FakeConnector(fail_with=ConnectionError())})

        await sup.start(TG)
        await advance()

        assert sup.get_snapshot().telegram.last_error == "ConnectionError"

    async def test_restart_after_failure(self, advance) -> None:
        runner = FakeConnector(fail_with=RuntimeError("boom"))
        sup = _supervisor(_telegram_config(), {TG: runner})
        await sup.start(TG)
        await advance()

        await sup.start(TG)
        await advance()

        assert runner.calls == 2

    async def test_clean_exit_clears_running(self, advance) -> None:
        runner = FakeConnector()
        sup = _supervisor(_telegram_config(), {TG: runner})
        await sup.start(TG)
        await advance()

        runner.finish.set()
        await advance(10)

        status = sup.get_snapshot().telegram
        assert status.running is False
        assert status.last_error is None
        assert status.last_stop_at is not None
        assert not sup.is_running(TG)


# =============================================================================
# Per-kind preparation
# =============================================================================


class TestWhatsApp:
    async def test_without_linked_session(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.INFO, logger="gatewaykit")
        runner = FakeConnector()
        sup = _supervisor(GatewayConfig(), {WA: runner})

        await sup.start(WA)

        status = sup.get_snapshot().whatsapp
        assert status.last_error == "not linked"
        assert status.running is False
        assert status.connected is False
        assert runner.calls == 0
        assert "skipping provider start (no linked session)" in _messages(
            caplog, "gatewaykit.connectors.whatsapp"
        )

    async def test_session_not_linked(self) -> None:
        sup = _supervisor(
            GatewayConfig(),
            {WA: FakeConnector()},
            linked_session=FakeLinkedSession(linked=False),
        )

        await sup.start(WA)

        assert sup.get_snapshot().whatsapp.last_error == "not linked"

    async def test_disabled(self) -> None:
        runner = FakeConnector()
        sup = _supervisor(
            GatewayConfig(web=WebConfig(enabled=False)),
            {WA: runner},
            linked_session=FakeLinkedSession(),
        )

        await sup.start(WA)

        assert sup.get_snapshot().whatsapp.last_error == "disabled"
        assert runner.calls == 0

    async def test_start_with_identity(self, advance, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.INFO, logger="gatewaykit")
        runner = FakeConnector()
        sup = _supervisor(
            GatewayConfig(),
            {WA: runner},
            linked_session=FakeLinkedSession(),
            verbose=True,
        )

        await sup.start(WA)
        await advance()

        options = runner.options[0]
        assert isinstance(options, WhatsAppLaunch)
        assert options.identity == "+15550001"
        assert options.verbose is True
        assert sup.get_snapshot().whatsapp.connected is False
        assert "starting provider (+15550001)" in _messages(
            caplog, "gatewaykit.connectors.whatsapp"
        )
        await sup.stop(WA)

    @pytest.mark.parametrize(
        ("self_id", "label"),
        [
            (SelfId(jid="123@s.whatsapp.net"), "jid 123@s.whatsapp.net"),
            (SelfId(), "unknown"),
        ],
    )
    async def test_identity_fallbacks(self, advance, self_id: SelfId, label: str) -> None:
        runner = FakeConnector()
        sup = _supervisor(
            GatewayConfig(),
            {WA: runner},
            linked_session=FakeLinkedSession(self_id=self_id),
        )

        await sup.start(WA)
        await advance()

        assert runner.options[0].identity == label
        await sup.stop(WA)

    async def test_settle_marks_disconnected(self, advance) -> None:
        runner = FakeConnector(push={"connected": True})
        sup = _supervisor(GatewayConfig(), {WA: runner}, linked_session=FakeLinkedSession())
        await sup.start(WA)
        await advance()
        assert sup.get_snapshot().whatsapp.connected is True

        await sup.stop(WA)

        assert sup.get_snapshot().whatsapp.connected is False


class TestTelegram:
    @pytest.mark.parametrize(
        "config",
        [
            GatewayConfig(),
            GatewayConfig(telegram=TelegramConfig()),
            GatewayConfig(telegram=TelegramConfig(bot_token="   ")),
        ],
    )
    async def test_not_configured(self, config: GatewayConfig) -> None:
        runner = FakeConnector()
        sup = _supervisor(config, {TG: runner})

        await sup.start(TG)

        status = sup.get_snapshot().telegram
        assert status.running is False
        assert status.last_error == "not configured"
        assert runner.calls == 0

    async def test_disabled_wins_over_token(self) -> None:
        runner = FakeConnector()
        sup = _supervisor(
            _telegram_config(enabled=False),
            {TG: runner},
            environ={"TELEGRAM_BOT_TOKEN": "env-token"},
        )

        await sup.start(TG)

        assert sup.get_snapshot().telegram.last_error == "disabled"
        assert runner.calls == 0

    async def test_env_token_takes_precedence(self, advance) -> None:
        runner = FakeConnector()
        sup = _supervisor(
            _telegram_config(), {TG: runner}, environ={"TELEGRAM_BOT_TOKEN": " env-token "}
        )

        await sup.start(TG)
        await advance()

        assert runner.options[0].token.get_secret_value() == "env-token"
        await sup.stop(TG)

    async def test_env_token_without_section(self, advance) -> None:
        runner = FakeConnector()
        sup = _supervisor(GatewayConfig(), {TG: runner}, environ={"TELEGRAM_BOT_TOKEN": "env"})

        await sup.start(TG)
        await advance()

        assert runner.calls == 1
        await sup.stop(TG)

    async def test_token_file_before_config_token(self, advance, tmp_path) -> None:
        token_file = tmp_path / "telegram.token"
        token_file.write_text("file-token\n", encoding="utf-8")
        runner = FakeConnector()
        sup = _supervisor(_telegram_config(token_file=str(token_file)), {TG: runner})

        await sup.start(TG)
        await advance()

        assert runner.options[0].token.get_secret_value() == "file-token"
        await sup.stop(TG)

    async def test_missing_token_file_falls_back(
        self, advance, tmp_path, caplog: pytest.LogCaptureFixture
    ) -> None:
        caplog.set_level(logging.WARNING, logger="gatewaykit")
        runner = FakeConnector()
        sup = _supervisor(
            _telegram_config(token_file=str(tmp_path / "missing.token")), {TG: runner}
        )

        await sup.start(TG)
        await advance()

        assert runner.options[0].token.get_secret_value() == "123:abc"
        assert any(
            "Failed to read telegram token file" in m
            for m in _messages(caplog, "gatewaykit.connectors.telegram")
        )
        await sup.stop(TG)

    async def test_webhook_mode(self, advance) -> None:
        runner = FakeConnector()
        sup = _supervisor(
            _telegram_config(webhook_url="https://example.com/tg", webhook_path="/tg"),
            {TG: runner},
        )

        await sup.start(TG)
        await advance()

        options = runner.options[0]
        assert options.use_webhook is True
        assert options.webhook_url == "https://example.com/tg"
        assert sup.get_snapshot().telegram.mode == TelegramMode.WEBHOOK
        await sup.stop(TG)

    async def test_skip_logged_only_when_verbose(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.DEBUG, logger="gatewaykit")

        await _supervisor(GatewayConfig(), {TG: FakeConnector()}).start(TG)
        assert _messages(caplog, "gatewaykit.connectors.telegram") == []

        await _supervisor(GatewayConfig(), {TG: FakeConnector()}, verbose=True).start(TG)
        assert "skipping provider start (no telegram token)" in _messages(
            caplog, "gatewaykit.connectors.telegram"
        )


class TestProbes:
    async def test_probe_labels_start(self, advance, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.INFO, logger="gatewaykit")
        seen: list[tuple[str, int]] = []

        async def probe(token: str, timeout_ms: int) -> ProbeResult:
            seen.append((token, timeout_ms))
            return ProbeResult(ok=True, status=200, bot=BotIdentity(id="1", username="gwbot"))

        sup = _supervisor(_telegram_config(), {TG: FakeConnector()}, probes={TG: probe})

        await sup.start(TG)
        await advance()

        assert seen == [("123:abc", 2500)]
        assert "starting provider (@gwbot)" in _messages(caplog, "gatewaykit.connectors.telegram")
        await sup.stop(TG)

    async def test_failing_probe_does_not_block_start(
        self, advance, caplog: pytest.LogCaptureFixture
    ) -> None:
        caplog.set_level(logging.INFO, logger="gatewaykit")

        async def probe(token: str, timeout_ms: int) -> ProbeResult:
            raise RuntimeError("network down")

        runner = FakeConnector()
        sup = _supervisor(_telegram_config(), {TG: runner}, probes={TG: probe})

        await sup.start(TG)
        await advance()

        assert runner.calls == 1
        assert "starting provider" in _messages(caplog, "gatewaykit.connectors.telegram")
        await sup.stop(TG)

    async def test_unsuccessful_probe_has_no_label(
        self, advance, caplog: pytest.LogCaptureFixture
    ) -> None:
        caplog.set_level(logging.INFO, logger="gatewaykit")

        async def probe(token: str, timeout_ms: int) -> ProbeResult:
            return ProbeResult(ok=False, status=401, error="Unauthorized")

        sup = _supervisor(
            GatewayConfig(discord=DiscordConfig(token="d-token")),
            {ConnectorKind.DISCORD: FakeConnector()},
            probes={ConnectorKind.DISCORD: probe},
        )

        await sup.start(ConnectorKind.DISCORD)
        await advance()

        assert "starting provider" in _messages(caplog, "gatewaykit.connectors.discord")
        await sup.stop(ConnectorKind.DISCORD)


class TestDiscord:
    async def test_start_with_config_token(self, advance) -> None:
        runner = FakeConnector()
        sup = _supervisor(
            GatewayConfig(discord=DiscordConfig(token="d-token", history_limit=20)),
            {ConnectorKind.DISCORD: runner},
        )

        await sup.start(ConnectorKind.DISCORD)
        await advance()

        options = runner.options[0]
        assert isinstance(options, DiscordLaunch)
        assert options.token.get_secret_value() == "d-token"
        assert options.history_limit == 20
        await sup.stop(ConnectorKind.DISCORD)

    async def test_env_token_takes_precedence(self, advance) -> None:
        runner = FakeConnector()
        sup = _supervisor(
            GatewayConfig(discord=DiscordConfig(token="d-token")),
            {ConnectorKind.DISCORD: runner},
            environ={"DISCORD_BOT_TOKEN": "env-token"},
        )

        await sup.start(ConnectorKind.DISCORD)
        await advance()

        assert runner.options[0].token.get_secret_value() == "env-token"
        await sup.stop(ConnectorKind.DISCORD)

    @pytest.mark.parametrize(
        ("config", "reason"),
        [
            (GatewayConfig(), "not configured"),
            (GatewayConfig(discord=DiscordConfig(token="  ")), "not configured"),
            (GatewayConfig(discord=DiscordConfig(enabled=False, token="t")), "disabled"),
        ],
    )
    async def test_skips(self, config: GatewayConfig, reason: str) -> None:
        sup = _supervisor(config, {ConnectorKind.DISCORD: FakeConnector()})

        await sup.start(ConnectorKind.DISCORD)

        assert sup.get_snapshot().discord.last_error == reason


class TestSignal:
    @pytest.mark.parametrize(
        ("config", "reason"),
        [
            (GatewayConfig(), "not configured"),
            (GatewayConfig(signal=SignalConfig(enabled=False, account="+1")), "disabled"),
            (GatewayConfig(signal=SignalConfig()), "not configured"),
            (GatewayConfig(signal=SignalConfig(account="  ", http_url="")), "not configured"),
        ],
    )
    async def test_skips(self, config: GatewayConfig, reason: str) -> None:
        runner = FakeConnector()
        sup = _supervisor(config, {ConnectorKind.SIGNAL: runner})

        await sup.start(ConnectorKind.SIGNAL)

        assert sup.get_snapshot().signal.last_error == reason
        assert runner.calls == 0

    @pytest.mark.parametrize(
        ("signal", "base_url"),
        [
            (SignalConfig(account="+15550002"), "http://127.0.0.1:8080"),
            (SignalConfig(http_host="10.0.0.5", http_port=9000), "http://10.0.0.5:9000"),
            (SignalConfig(http_port=9001), "http://127.0.0.1:9001"),
            (SignalConfig(auto_start=False), "http://127.0.0.1:8080"),
            (
                SignalConfig(http_url=" http://signal.local:7000 ", http_host="ignored"),
                "http://signal.local:7000",
            ),
        ],
    )
    async def test_base_url(self, advance, signal: SignalConfig, base_url: str) -> None:
        runner = FakeConnector()
        sup = _supervisor(GatewayConfig(signal=signal), {ConnectorKind.SIGNAL: runner})

        await sup.start(ConnectorKind.SIGNAL)
        await advance()

        options = runner.options[0]
        assert isinstance(options, SignalLaunch)
        assert options.base_url == base_url
        assert sup.get_snapshot().signal.base_url == base_url
        await sup.stop(ConnectorKind.SIGNAL)


class TestIMessage:
    async def test_defaults(self, advance) -> None:
        runner = FakeConnector()
        sup = _supervisor(
            GatewayConfig(imessage=IMessageConfig()), {ConnectorKind.IMESSAGE: runner}
        )

        await sup.start(ConnectorKind.IMESSAGE)
        await advance()

        options = runner.options[0]
        assert isinstance(options, IMessageLaunch)
        assert options.cli_path == "imsg"
        assert options.db_path is None
        status = sup.get_snapshot().imessage
        assert status.cli_path == "imsg"
        assert status.db_path is None
        await sup.stop(ConnectorKind.IMESSAGE)

    async def test_custom_paths(self, advance) -> None:
        runner = FakeConnector()
        sup = _supervisor(
            GatewayConfig(
                imessage=IMessageConfig(
                    cli_path=" /opt/bin/imsg ", db_path="~/chat.db", allow_from=["+1"]
                )
            ),
            {ConnectorKind.IMESSAGE: runner},
        )

        await sup.start(ConnectorKind.IMESSAGE)
        await advance()

        options = runner.options[0]
        assert options.cli_path == "/opt/bin/imsg"
        assert options.db_path == "~/chat.db"
        assert options.allow_from == ["+1"]
        await sup.stop(ConnectorKind.IMESSAGE)

    @pytest.mark.parametrize(
        ("config", "reason"),
        [
            (GatewayConfig(), "not configured"),
            (GatewayConfig(imessage=IMessageConfig(enabled=False)), "disabled"),
        ],
    )
    async def test_skips(self, config: GatewayConfig, reason: str) -> None:
        sup = _supervisor(config, {ConnectorKind.IMESSAGE: FakeConnector()})

        await sup.start(ConnectorKind.IMESSAGE)

        assert sup.get_snapshot().imessage.last_error == reason


# =============================================================================
# start_all / stop_all
# =============================================================================


def _full_config() -> GatewayConfig:
    return GatewayConfig(
        telegram=TelegramConfig(bot_token="t"),
        discord=DiscordConfig(token="d"),
        signal=SignalConfig(account="+15550002"),
        imessage=IMessageConfig(),
    )


class TestStartAll:
    async def test_starts_in_fixed_order(self, advance) -> None:
        log: list[str] = []
        runners = {kind: FakeConnector(kind.value, log=log) for kind in ConnectorKind}
        sup = _supervisor(_full_config(), runners, linked_session=FakeLinkedSession())

        await sup.start_all()
        await advance()

        assert log == ["whatsapp", "discord", "telegram", "signal", "imessage"]
        snapshot = sup.get_snapshot()
        assert all(snapshot[kind].running for kind in ConnectorKind)

        await sup.stop_all()

        snapshot = sup.get_snapshot()
        assert not any(snapshot[kind].running for kind in ConnectorKind)
        assert all(runner.active == 0 for runner in runners.values())

    async def test_skipped_connector_does_not_block_others(self, advance) -> None:
        runners = {kind: FakeConnector(kind.value) for kind in ConnectorKind}
        sup = _supervisor(GatewayConfig(discord=DiscordConfig(token="d")), runners)

        await sup.start_all()
        await advance()

        snapshot = sup.get_snapshot()
        assert snapshot.whatsapp.last_error == "not linked"
        assert snapshot.telegram.last_error == "not configured"
        assert snapshot.discord.running is True
        await sup.stop_all()

    async def test_failure_does_not_block_others(
        self, advance, caplog: pytest.LogCaptureFixture
    ) -> None:
        caplog.set_level(logging.ERROR, logger="gatewaykit")

        class BrokenSession(FakeLinkedSession):
            async def auth_exists(self) -> bool:
                raise RuntimeError("session store unavailable")

        runners = {kind: FakeConnector(kind.value) for kind in ConnectorKind}
        sup = _supervisor(_full_config(), runners, linked_session=BrokenSession())

        await sup.start_all()
        await advance()

        snapshot = sup.get_snapshot()
        assert snapshot.whatsapp.running is False
        assert snapshot.telegram.running is True
        assert snapshot.imessage.running is True
        assert "Failed to start connector whatsapp" in _messages(caplog, "gatewaykit.supervisor")
        await sup.stop_all()


# =============================================================================
# Status sink, external events, snapshots
# =============================================================================


class TestStatusSink:
    async def test_merges_reported_fields(self, advance) -> None:
        runner = FakeConnector(
            push={"connected": True, "reconnect_attempts": 2, "running": False, "bogus": 1}
        )
        sup = _supervisor(GatewayConfig(), {WA: runner}, linked_session=FakeLinkedSession())

        await sup.start(WA)
        await advance()

        status = sup.get_snapshot().whatsapp
        assert status.connected is True
        assert status.reconnect_attempts == 2
        assert status.running is True
        assert status.last_start_at is not None
        await sup.stop(WA)

    async def test_accepts_status_model(self, advance) -> None:
        runner = FakeConnector()
        sup = _supervisor(GatewayConfig(), {WA: runner}, linked_session=FakeLinkedSession())
        await sup.start(WA)
        await advance()

        runner.sinks[0](WhatsAppStatus(connected=True, last_disconnect="timeout"))

        status = sup.get_snapshot().whatsapp
        assert status.connected is True
        assert status.last_disconnect == "timeout"
        assert status.running is True
        await sup.stop(WA)

    async def test_stale_sink_is_ignored(self, advance) -> None:
        runner = FakeConnector()
        sup = _supervisor(GatewayConfig(), {WA: runner}, linked_session=FakeLinkedSession())
        await sup.start(WA)
        await advance()
        await sup.stop(WA)

        runner.sinks[0]({"connected": True})

        assert sup.get_snapshot().whatsapp.connected is False


class TestExternalEvents:
    async def test_mark_external_event_keeps_running(self, advance) -> None:
        sup = _supervisor(
            GatewayConfig(), {WA: FakeConnector()}, linked_session=FakeLinkedSession()
        )
        await sup.start(WA)
        await advance()

        sup.mark_external_event(WA, connected=True, error="flaky network")

        status = sup.get_snapshot().whatsapp
        assert status.connected is True
        assert status.last_error == "flaky network"
        assert status.running is True
        await sup.stop(WA)

    async def test_connected_ignored_for_kinds_without_it(self) -> None:
        sup = _supervisor(GatewayConfig(), {})

        sup.mark_external_event(TG, connected=True, error="webhook rejected")

        status = sup.get_snapshot().telegram
        assert status.last_error == "webhook rejected"
        assert not hasattr(status, "connected")

    async def test_mark_logged_out(self, advance) -> None:
        sup = _supervisor(
            GatewayConfig(), {WA: FakeConnector()}, linked_session=FakeLinkedSession()
        )
        await sup.start(WA)
        await advance()
        sup.mark_external_event(WA, connected=True)

        sup.mark_logged_out(cleared=True)

        status = sup.get_snapshot().whatsapp
        assert status.last_error == "logged out"
        assert status.connected is False
        assert status.running is True
        await sup.stop(WA)

    async def test_mark_logged_out_not_cleared_keeps_error(self) -> None:
        sup = _supervisor(GatewayConfig(), {WA: FakeConnector()})
        await sup.start(WA)

        sup.mark_logged_out(cleared=False)

        assert sup.get_snapshot().whatsapp.last_error == "not linked"


class TestSnapshot:
    async def test_initial_snapshot(self) -> None:
        snapshot = _supervisor(GatewayConfig(), {}).get_snapshot()

        for kind in ConnectorKind:
            assert snapshot[kind].running is False
            assert snapshot[kind].last_error is None

    async def test_snapshot_is_immutable(self) -> None:
        snapshot = _supervisor(GatewayConfig(), {}).get_snapshot()

        with pytest.raises(ValidationError):
            snapshot.telegram.running = True  # type: ignore[misc]

    async def test_snapshot_does_not_track_later_changes(self, advance) -> None:
        sup = _supervisor(_telegram_config(), {TG: FakeConnector()})
        before = sup.get_snapshot()

        await sup.start(TG)
        await advance()

        assert before.telegram.running is False
        assert sup.get_snapshot().telegram.running is True
        await sup.stop(TG)

    async def test_lookup_by_string(self) -> None:
        snapshot = _supervisor(GatewayConfig(), {}).get_snapshot()

        assert snapshot["signal"] is snapshot.signal


class TestSupervisorTelemetry:
    async def test_run_span_per_task(self, advance) -> None:
        telemetry = MockTelemetryProvider()
        sup = _supervisor(_telegram_config(), {TG: FakeConnector()}, telemetry=telemetry)

        await sup.start(TG)
        await advance()
        assert len(telemetry.open_spans) == 1
        await sup.stop(TG)

        spans = telemetry.get_spans(SpanKind.CONNECTOR_RUN, connector="telegram")
        assert len(spans) == 1
        assert spans[0].connector == "telegram"
        assert spans[0].ok

    async def test_failed_run_span(self, advance) -> None:
        telemetry = MockTelemetryProvider()
        sup = _supervisor(
            _telegram_config(),
            {TG: FakeConnector(fail_with=RuntimeError("boom"))},
            telemetry=telemetry,
        )

        await sup.start(TG)
        await advance()

        span = telemetry.get_spans(SpanKind.CONNECTOR_RUN)[0]
        assert not span.ok
        assert span.error == "boom"

    async def test_probe_span(self, advance) -> None:
        telemetry = MockTelemetryProvider()

        async def probe(token: str, timeout_ms: int) -> ProbeResult:
            return ProbeResult(ok=True, elapsed_ms=12.0, bot=BotIdentity(username="gwbot"))

        sup = _supervisor(
            _telegram_config(), {TG: FakeConnector()}, probes={TG: probe}, telemetry=telemetry
        )
        await sup.start(TG)
        await advance()
        await sup.stop(TG)

        probes = telemetry.get_spans(SpanKind.CONNECTOR_PROBE)
        assert len(probes) == 1
        assert probes[0].attributes["duration_ms"] == 12.0
