"""Shared test fixtures and helpers."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Coroutine, Mapping
from typing import Any

import pytest
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer

from gatewaykit.connectors.base import LinkedSession, SelfId
from gatewaykit.core.cancellation import CancellationToken
from gatewaykit.models.config import GatewayConfig, HooksConfig
from gatewaykit.models.hook import AgentAction, WakeAction

HOOK_TOKEN = "hook-secret"


@pytest.fixture
def advance() -> Callable[[int], Coroutine[Any, Any, None]]:
    """Yield control to let pending tasks run without real delay.

    Replaces ``await asyncio.sleep(0.05)`` patterns with zero-delay
    event loop yields::

        await advance()       # 5 yields (default)
        await advance(10)     # 10 yields for heavier workloads
    """

    async def _advance(n: int = 5) -> None:
        for _ in range(n):
            await asyncio.sleep(0)

    return _advance


class FakeConnector:
    """Connector runner double that blocks until its token is cancelled.

    Args:
        fail_with: Raise this right after starting instead of blocking.
        ignore_cancel: Keep running after cancellation (only ``Task.cancel``
            ends it).
        push: Status update pushed through the sink on start.
        log: Shared list receiving ``name`` on every invocation.
    """

    def __init__(
        self,
        name: str = "fake",
        *,
        fail_with: BaseException | None = None,
        ignore_cancel: bool = False,
        push: Mapping[str, Any] | None = None,
        log: list[str] | None = None,
    ) -> None:
        self.name = name
        self._fail_with = fail_with
        self._ignore_cancel = ignore_cancel
        self._push = push
        self._log = log
        self.options: list[Any] = []
        self.tokens: list[CancellationToken] = []
        self.sinks: list[Callable[[Any], None]] = []
        self.active = 0
        self.max_active = 0
        self.finish = asyncio.Event()

    @property
    def calls(self) -> int:
        return len(self.options)

    async def __call__(
        self,
        options: Any,
        token: CancellationToken,
        sink: Callable[[Any], None],
    ) -> None:
        self.options.append(options)
        self.tokens.append(token)
        self.sinks.append(sink)
        if self._log is not None:
            self._log.append(self.name)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self._push is not None:
                sink(self._push)
            if self._fail_with is not None:
                raise self._fail_with
            if self._ignore_cancel:
                await asyncio.Event().wait()
            waiter = asyncio.ensure_future(token.wait())
            finisher = asyncio.ensure_future(self.finish.wait())
            try:
                await asyncio.wait({waiter, finisher}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                waiter.cancel()
                finisher.cancel()
        finally:
            self.active -= 1


class FakeLinkedSession(LinkedSession):
    def __init__(self, *, linked: bool = True, self_id: SelfId | None = None) -> None:
        self.linked = linked
        self.self_id = self_id or SelfId(e164="+15550001")

    async def auth_exists(self) -> bool:
        return self.linked

    def read_self_id(self) -> SelfId:
        return self.self_id


class ConfigSource:
    """Mutable ``load_config`` callable that counts reads."""

    def __init__(self, config: GatewayConfig | None = None) -> None:
        self.config = config or GatewayConfig()
        self.reads = 0

    def __call__(self) -> GatewayConfig:
        self.reads += 1
        return self.config


class HookRecorder:
    """Collects dispatched hook actions."""

    def __init__(self, run_id: str = "run-1") -> None:
        self.run_id = run_id
        self.wakes: list[WakeAction] = []
        self.agents: list[AgentAction] = []

    def on_wake(self, action: WakeAction) -> None:
        self.wakes.append(action)

    def on_agent(self, action: AgentAction) -> str:
        self.agents.append(action)
        return self.run_id


@pytest.fixture
def config_source() -> ConfigSource:
    return ConfigSource()


@pytest.fixture
def recorder() -> HookRecorder:
    return HookRecorder()


@pytest.fixture
def hooks_config() -> HooksConfig:
    return HooksConfig(token=HOOK_TOKEN, max_body_bytes=1024)


@pytest.fixture
async def make_client() -> AsyncIterator[Callable[[web.Application], Awaitable[TestClient]]]:
    """Start an aiohttp test server for an application and return its client."""
    clients: list[TestClient] = []

    async def _make(app: web.Application) -> TestClient:
        client = TestClient(TestServer(app))
        await client.start_server()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        await client.close()
