"""Webhook ingress: authentication, body parsing and hook dispatch."""

from __future__ import annotations

import inspect
import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

from aiohttp import web

from gatewaykit.core.errors import format_error
from gatewaykit.hooks.auth import extract_hook_token, verify_hook_token
from gatewaykit.hooks.body import PAYLOAD_TOO_LARGE, read_json_body
from gatewaykit.hooks.mapping import MappingDispatcher, MappingEngine, MappingStatus
from gatewaykit.hooks.normalize import (
    normalize_agent_payload,
    normalize_hook_headers,
    normalize_wake_payload,
)
from gatewaykit.models.config import HooksConfig
from gatewaykit.models.hook import AgentAction, HookRequestContext, Invalid, WakeAction
from gatewaykit.telemetry.base import Attr, SpanKind, TelemetryProvider
from gatewaykit.telemetry.noop import NoopTelemetryProvider

logger = logging.getLogger("gatewaykit.hooks")

WakeDispatcher = Callable[[WakeAction], Awaitable[None] | None]
AgentDispatcher = Callable[[AgentAction], Awaitable[str] | str]

REQUESTS_METRIC = "gatewaykit.hooks.requests"


def text_response(status: int, text: str, **headers: str) -> web.Response:
    return web.Response(
        status=status, text=text, content_type="text/plain", headers=headers or None
    )


def _json_error(status: int, error: str) -> web.Response:
    return web.json_response({"ok": False, "error": error}, status=status)


class HookGateway:
    """Request handler for everything under the configured hook base path.

    Built-in routes are ``{base}/wake`` and ``{base}/agent``; any other
    sub-path is offered to the mapping engine. Requests outside the base
    path, or every request when no :class:`HooksConfig` is given, are
    declined (:meth:`handle` returns ``None``) so the router can try the
    next handler.

    The token is checked before the method, so an unauthenticated probe
    learns nothing about which routes exist.

    Example::

        gateway = HookGateway(
            HooksConfig(token="s3cret"),
            on_wake=lambda action: heartbeat.wake(action.text, action.mode),
            on_agent=runs.enqueue,
        )
        router = RequestRouter(gateway)
    """

    def __init__(
        self,
        config: HooksConfig | None,
        *,
        on_wake: WakeDispatcher,
        on_agent: AgentDispatcher,
        mapping_engine: MappingEngine | None = None,
        id_factory: Callable[[], Any] = uuid.uuid4,
        telemetry: TelemetryProvider | None = None,
    ) -> None:
        self._config = config
        self._on_wake = on_wake
        self._on_agent = on_agent
        self._id_factory = id_factory
        self._telemetry = telemetry or NoopTelemetryProvider()
        self._mappings = MappingDispatcher(
            config.mappings if config is not None else (),
            mapping_engine,
            id_factory=id_factory,
            telemetry=self._telemetry,
        )

    @property
    def config(self) -> HooksConfig | None:
        return self._config

    @property
    def enabled(self) -> bool:
        return self._config is not None

    def matches(self, path: str) -> bool:
        """True when ``path`` falls under the hook base path."""
        if self._config is None:
            return False
        base = self._config.base_path
        return path == base or path.startswith(f"{base}/")

    async def handle(self, request: web.Request) -> web.StreamResponse | None:
        """Handle a hook request, or return ``None`` to decline it."""
        if self._config is None or not self.matches(request.path):
            return None

        sub_path = request.path[len(self._config.base_path) :].lstrip("/")
        route = sub_path if sub_path in ("wake", "agent") else "mapping"
        t0 = time.monotonic()
        span_id = self._telemetry.start_span(
            SpanKind.HOOK_REQUEST,
            f"hook.{route}",
            attributes={Attr.HOOK_ROUTE: route, Attr.HTTP_METHOD: request.method},
        )
        try:
            response = await self._handle(request, self._config, sub_path)
        except Exception as exc:
            self._telemetry.end_span(span_id, error=format_error(exc))
            raise

        self._telemetry.end_span(
            span_id,
            attributes={
                Attr.HOOK_STATUS: response.status,
                Attr.DURATION_MS: (time.monotonic() - t0) * 1000,
            },
        )
        self._telemetry.record_metric(
            REQUESTS_METRIC,
            1,
            attributes={"status": response.status, "route": route},
        )
        return response

    async def _handle(
        self,
        request: web.Request,
        config: HooksConfig,
        sub_path: str,
    ) -> web.StreamResponse:
        token = extract_hook_token(request)
        if not verify_hook_token(token, config.token.get_secret_value()):
            logger.debug("Rejected hook request to %s: bad token", request.path)
            return text_response(401, "Unauthorized")

        if request.method != "POST":
            return text_response(405, "Method Not Allowed", Allow="POST")

        if not sub_path:
            return text_response(404, "Not Found")

        body = await read_json_body(request, config.max_body_bytes)
        if isinstance(body, Invalid):
            status = 413 if body.error == PAYLOAD_TOO_LARGE else 400
            return _json_error(status, body.error)
        payload: dict[str, Any] = body.value if isinstance(body.value, dict) else {}

        if sub_path == "wake":
            wake = normalize_wake_payload(payload)
            if isinstance(wake, Invalid):
                return _json_error(400, wake.error)
            return await self._dispatch_wake(wake.value)

        if sub_path == "agent":
            agent = normalize_agent_payload(payload, id_factory=self._id_factory)
            if isinstance(agent, Invalid):
                return _json_error(400, agent.error)
            return await self._dispatch_agent(agent.value)

        ctx = HookRequestContext(
            payload=payload,
            headers=normalize_hook_headers(request),
            query={key: value for key, value in request.query.items()},
            path=sub_path,
            url=str(request.url),
        )
        outcome = await self._mappings.dispatch(ctx)
        match outcome.status:
            case MappingStatus.NO_MATCH:
                return text_response(404, "Not Found")
            case MappingStatus.REJECTED:
                return _json_error(400, outcome.error or "invalid hook mapping")
            case MappingStatus.FAILED:
                return _json_error(500, outcome.error or "hook mapping failed")
            case MappingStatus.NO_ACTION:
                return web.Response(status=204)
            case MappingStatus.ACTION:
                if isinstance(outcome.action, WakeAction):
                    return await self._dispatch_wake(outcome.action)
                if isinstance(outcome.action, AgentAction):
                    return await self._dispatch_agent(outcome.action)
        raise TypeError(f"Unexpected mapping outcome: {outcome!r}")

    async def _dispatch_wake(self, action: WakeAction) -> web.Response:
        result = self._on_wake(action)
        if inspect.isawaitable(result):
            await result
        logger.info("Dispatched wake hook (mode=%s)", action.mode)
        return web.json_response({"ok": True, "mode": action.mode.value}, status=200)

    async def _dispatch_agent(self, action: AgentAction) -> web.Response:
        result = self._on_agent(action)
        run_id = await result if inspect.isawaitable(result) else result
        logger.info(
            "Dispatched agent hook %s (session=%s)",
            run_id,
            action.session_key,
            extra={"run_id": run_id},
        )
        return web.json_response({"ok": True, "runId": run_id}, status=202)
