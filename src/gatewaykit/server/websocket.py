"""WebSocket acceptor for upgrade requests that no specialised handler claims."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from aiohttp import WSCloseCode, web

logger = logging.getLogger("gatewaykit.server")

ConnectionHandler = Callable[[web.WebSocketResponse, web.Request], Awaitable[None]]


class WebSocketAcceptor:
    """Complete the WebSocket handshake and hand the socket to ``on_connection``.

    The connection stays open for as long as ``on_connection`` runs and is
    closed when it returns. An error raised by ``on_connection`` is logged
    and closes the socket with ``1011`` (internal error).
    """

    def __init__(
        self,
        on_connection: ConnectionHandler,
        *,
        heartbeat: float | None = 30.0,
        max_msg_size: int = 4 * 1024 * 1024,
    ) -> None:
        self._on_connection = on_connection
        self._heartbeat = heartbeat
        self._max_msg_size = max_msg_size
        self._connections: set[web.WebSocketResponse] = set()

    @property
    def connections(self) -> frozenset[web.WebSocketResponse]:
        """Sockets currently handed to ``on_connection``."""
        return frozenset(self._connections)

    async def accept(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse(heartbeat=self._heartbeat, max_msg_size=self._max_msg_size)
        await ws.prepare(request)
        self._connections.add(ws)
        try:
            await self._on_connection(ws, request)
        except Exception:
            logger.exception("WebSocket handler failed for %s", request.path)
            if not ws.closed:
                await ws.close(code=WSCloseCode.INTERNAL_ERROR, message=b"internal error")
        finally:
            self._connections.discard(ws)
            if not ws.closed:
                await ws.close()
        return ws

    async def close_all(self) -> None:
        """Close every open socket with ``1001`` (going away)."""
        for ws in list(self._connections):
            if not ws.closed:
                await ws.close(code=WSCloseCode.GOING_AWAY, message=b"server shutdown")
