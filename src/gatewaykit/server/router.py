"""Top-level HTTP request router with fixed handler precedence."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence

from aiohttp import hdrs, web

from gatewaykit.core.errors import format_error
from gatewaykit.hooks.gateway import HookGateway, text_response
from gatewaykit.server.websocket import WebSocketAcceptor
from gatewaykit.telemetry.base import Attr, SpanKind, TelemetryProvider
from gatewaykit.telemetry.noop import NoopTelemetryProvider

logger = logging.getLogger("gatewaykit.server")

# Returns a response, or None to let the next handler try.
HttpHandler = Callable[[web.Request], Awaitable[web.StreamResponse | None]]


def is_websocket_upgrade(request: web.BaseRequest) -> bool:
    return request.headers.get(hdrs.UPGRADE, "").lower() == "websocket"


class RequestRouter:
    """Compose the gateway's HTTP handlers behind one catch-all route.

    Plain HTTP requests are offered, in order, to the hook gateway, the
    canvas handlers, the control UI, and finally answered with a plain-text
    ``404``. WebSocket upgrades skip that chain: the optional
    ``upgrade_handler`` gets the first chance, then the
    :class:`WebSocketAcceptor`. Any error escaping a handler becomes a
    plain-text ``500`` carrying the formatted error.
    """

    def __init__(
        self,
        hooks: HookGateway | None = None,
        *,
        canvas_handlers: Sequence[HttpHandler] = (),
        control_ui: HttpHandler | None = None,
        upgrade_handler: HttpHandler | None = None,
        websocket_acceptor: WebSocketAcceptor | None = None,
        telemetry: TelemetryProvider | None = None,
    ) -> None:
        self._hooks = hooks
        self._canvas_handlers = tuple(canvas_handlers)
        self._control_ui = control_ui
        self._upgrade_handler = upgrade_handler
        self._websocket_acceptor = websocket_acceptor
        self._telemetry = telemetry or NoopTelemetryProvider()

    @property
    def websocket_acceptor(self) -> WebSocketAcceptor | None:
        return self._websocket_acceptor

    def build_app(self) -> web.Application:
        """Return an aiohttp application that routes every path through :meth:`handle`."""
        app = web.Application()
        app.router.add_route("*", "/{tail:.*}", self.handle)
        return app

    async def handle(self, request: web.Request) -> web.StreamResponse:
        span_id = self._telemetry.start_span(
            SpanKind.HTTP_REQUEST,
            f"{request.method} {request.path}",
            attributes={Attr.HTTP_METHOD: request.method, Attr.HTTP_PATH: request.path},
        )
        try:
            if is_websocket_upgrade(request):
                response = await self._handle_upgrade(request)
            else:
                response = await self._handle_http(request)
        except web.HTTPException as exc:
            self._telemetry.end_span(span_id, attributes={Attr.HTTP_STATUS: exc.status})
            raise
        except Exception as exc:
            logger.exception("Unhandled error serving %s %s", request.method, request.path)
            self._telemetry.end_span(span_id, error=format_error(exc))
            return text_response(500, format_error(exc))

        self._telemetry.end_span(span_id, attributes={Attr.HTTP_STATUS: response.status})
        return response

    async def shutdown(self) -> None:
        """Close open WebSocket connections."""
        if self._websocket_acceptor is not None:
            await self._websocket_acceptor.close_all()

    async def _handle_http(self, request: web.Request) -> web.StreamResponse:
        if self._hooks is not None:
            response = await self._hooks.handle(request)
            if response is not None:
                return response

        for handler in self._canvas_handlers:
            response = await handler(request)
            if response is not None:
                return response

        if self._control_ui is not None:
            response = await self._control_ui(request)
            if response is not None:
                return response

        return text_response(404, "Not Found")

    async def _handle_upgrade(self, request: web.Request) -> web.StreamResponse:
        if self._upgrade_handler is not None:
            response = await self._upgrade_handler(request)
            if response is not None:
                return response

        if self._websocket_acceptor is not None:
            return await self._websocket_acceptor.accept(request)

        return text_response(404, "Not Found")
