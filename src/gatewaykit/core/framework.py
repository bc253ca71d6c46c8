"""Process-level composition of the supervisor, hook ingress and listener."""

from __future__ import annotations

import uuid
from collections.abc import Callable, Mapping, Sequence
from types import TracebackType
from typing import Any

from gatewaykit.connectors.base import ConnectorRunner, LinkedSession, ProbeFn
from gatewaykit.core.supervisor import ConnectorSupervisor
from gatewaykit.hooks.gateway import AgentDispatcher, HookGateway, WakeDispatcher
from gatewaykit.hooks.mapping import MappingEngine
from gatewaykit.models.config import GatewayConfig
from gatewaykit.models.enums import ConnectorKind
from gatewaykit.models.status import ConnectorSnapshot
from gatewaykit.server.listener import DEFAULT_HOST, DEFAULT_PORT, GatewayServer
from gatewaykit.server.router import HttpHandler, RequestRouter
from gatewaykit.server.websocket import ConnectionHandler, WebSocketAcceptor
from gatewaykit.telemetry.base import TelemetryProvider
from gatewaykit.telemetry.noop import NoopTelemetryProvider


class Gateway:
    """One process boundary in front of every chat connector.

    Owns a :class:`ConnectorSupervisor`, a :class:`HookGateway` built from
    the ``hooks`` section of the configuration, a :class:`RequestRouter`
    and the :class:`GatewayServer` listener.

    Example::

        gateway = Gateway(
            load_config,
            runners={ConnectorKind.TELEGRAM: run_telegram},
            on_wake=wake_heartbeat,
            on_agent=enqueue_agent_run,
            port=0,
        )
        async with gateway:
            print(gateway.server.url)
            await stop_event.wait()
    """

    def __init__(
        self,
        load_config: Callable[[], GatewayConfig],
        runners: Mapping[ConnectorKind, ConnectorRunner],
        *,
        on_wake: WakeDispatcher,
        on_agent: AgentDispatcher,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        probes: Mapping[ConnectorKind, ProbeFn] | None = None,
        linked_session: LinkedSession | None = None,
        mapping_engine: MappingEngine | None = None,
        canvas_handlers: Sequence[HttpHandler] = (),
        control_ui: HttpHandler | None = None,
        upgrade_handler: HttpHandler | None = None,
        on_websocket: ConnectionHandler | None = None,
        environ: Mapping[str, str] | None = None,
        verbose: bool = False,
        stop_timeout: float | None = None,
        id_factory: Callable[[], Any] = uuid.uuid4,
        telemetry: TelemetryProvider | None = None,
    ) -> None:
        self._telemetry = telemetry or NoopTelemetryProvider()
        self._supervisor = ConnectorSupervisor(
            load_config,
            runners,
            probes=probes,
            linked_session=linked_session,
            environ=environ,
            verbose=verbose,
            stop_timeout=stop_timeout,
            telemetry=self._telemetry,
        )
        self._hooks = HookGateway(
            load_config().hooks,
            on_wake=on_wake,
            on_agent=on_agent,
            mapping_engine=mapping_engine,
            id_factory=id_factory,
            telemetry=self._telemetry,
        )
        self._router = RequestRouter(
            self._hooks,
            canvas_handlers=canvas_handlers,
            control_ui=control_ui,
            upgrade_handler=upgrade_handler,
            websocket_acceptor=WebSocketAcceptor(on_websocket) if on_websocket else None,
            telemetry=self._telemetry,
        )
        self._server = GatewayServer(self._router, host, port)

    @property
    def supervisor(self) -> ConnectorSupervisor:
        return self._supervisor

    @property
    def hooks(self) -> HookGateway:
        return self._hooks

    @property
    def router(self) -> RequestRouter:
        return self._router

    @property
    def server(self) -> GatewayServer:
        return self._server

    def get_snapshot(self) -> ConnectorSnapshot:
        return self._supervisor.get_snapshot()

    async def start(self) -> None:
        """Bind the listener, then start every connector."""
        await self._server.start()
        await self._supervisor.start_all()

    async def stop(self) -> None:
        """Stop every connector, then close the listener."""
        try:
            await self._supervisor.stop_all()
        finally:
            await self._server.stop()
            self._telemetry.close()

    async def __aenter__(self) -> Gateway:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()
