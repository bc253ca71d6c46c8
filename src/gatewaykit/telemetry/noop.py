"""Telemetry provider that discards everything."""

from __future__ import annotations

from typing import Any

from gatewaykit.telemetry.base import SpanKind, TelemetryProvider


class NoopTelemetryProvider(TelemetryProvider):
    """Default provider. Every span id is the empty string."""

    @property
    def name(self) -> str:
        return "noop"

    def start_span(
        self,
        kind: SpanKind,
        name: str,
        *,
        connector: str | None = None,
        parent_id: str | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> str:
        return ""

    def end_span(
        self,
        span_id: str,
        *,
        error: str | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        return None

    def record_metric(
        self,
        name: str,
        value: float = 1,
        *,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        return None
