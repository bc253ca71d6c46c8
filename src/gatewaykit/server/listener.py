"""aiohttp listener hosting the request router."""

from __future__ import annotations

import logging
from types import TracebackType

from aiohttp import web

from gatewaykit.core.errors import GatewayError
from gatewaykit.server.router import RequestRouter

logger = logging.getLogger("gatewaykit.server")

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 18789


class GatewayServer:
    """Bind one HTTP/WebSocket listener for a :class:`RequestRouter`.

    Pass ``port=0`` to bind an ephemeral port; :attr:`port` reports the
    bound port once :meth:`start` has returned.
    """

    def __init__(
        self,
        router: RequestRouter,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        *,
        shutdown_timeout: float = 5.0,
    ) -> None:
        self._router = router
        self._host = host
        self._port = port
        self._shutdown_timeout = shutdown_timeout
        self._runner: web.AppRunner | None = None

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def url(self) -> str:
        return f"http://{self._host}:{self._port}"

    @property
    def started(self) -> bool:
        return self._runner is not None

    async def start(self) -> None:
        if self._runner is not None:
            raise GatewayError("Gateway server already started")

        runner = web.AppRunner(
            self._router.build_app(),
            handle_signals=False,
            shutdown_timeout=self._shutdown_timeout,
        )
        await runner.setup()
        site = web.TCPSite(runner, self._host, self._port)
        try:
            await site.start()
        except OSError:
            await runner.cleanup()
            raise

        addresses = runner.addresses
        if addresses:
            self._port = int(addresses[0][1])
        self._runner = runner
        logger.info("Gateway listening on %s", self.url)

    async def stop(self) -> None:
        runner, self._runner = self._runner, None
        if runner is None:
            return
        await self._router.shutdown()
        await runner.cleanup()
        logger.info("Gateway listener on %s closed", self.url)

    async def __aenter__(self) -> GatewayServer:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()
