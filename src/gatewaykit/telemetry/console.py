"""Telemetry provider that writes one log line per finished span."""

from __future__ import annotations

import logging
from typing import Any

from gatewaykit.telemetry.base import Span, SpanKind, TelemetryProvider

logger = logging.getLogger("gatewaykit.telemetry")


def _describe(attributes: dict[str, Any]) -> str:
    if not attributes:
        return ""
    return " " + " ".join(f"{key}={value}" for key, value in attributes.items())


class ConsoleTelemetryProvider(TelemetryProvider):
    """Log finished spans and metric points to ``gatewaykit.telemetry``.

    Successful spans log at ``level``; failed spans log at ``WARNING`` with
    their error. A connector run therefore shows up once, when its task
    settles::

        connector.run connector.telegram 5231.4ms connector=telegram
    """

    def __init__(self, *, level: int = logging.INFO) -> None:
        self._level = level
        self._open: dict[str, Span] = {}

    @property
    def name(self) -> str:
        return "console"

    def start_span(
        self,
        kind: SpanKind,
        name: str,
        *,
        connector: str | None = None,
        parent_id: str | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> str:
        span = Span(
            kind=kind,
            name=name,
            connector=connector,
            parent_id=parent_id,
            attributes=dict(attributes or {}),
        )
        self._open[span.id] = span
        return span.id

    def end_span(
        self,
        span_id: str,
        *,
        error: str | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        span = self._open.pop(span_id, None)
        if span is None:
            return
        span.finish(error, attributes)
        if span.ok:
            logger.log(
                self._level,
                "%s %s %.1fms%s",
                span.kind,
                span.name,
                span.duration_ms,
                _describe(span.attributes),
            )
        else:
            logger.warning(
                "%s %s %.1fms failed: %s%s",
                span.kind,
                span.name,
                span.duration_ms,
                span.error,
                _describe(span.attributes),
            )

    def record_metric(
        self,
        name: str,
        value: float = 1,
        *,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        logger.log(self._level, "metric %s=%g%s", name, value, _describe(attributes or {}))

    def close(self) -> None:
        if self._open:
            logger.warning("Telemetry closed with %d unfinished spans", len(self._open))
        self._open.clear()
