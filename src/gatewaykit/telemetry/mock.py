"""In-memory telemetry provider for assertions in tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from gatewaykit.telemetry.base import Span, SpanKind, TelemetryProvider


@dataclass(frozen=True, slots=True)
class MetricPoint:
    name: str
    value: float
    attributes: dict[str, Any] = field(default_factory=dict)


class MockTelemetryProvider(TelemetryProvider):
    """Keeps every span and metric point in memory.

    Example::

        telemetry = MockTelemetryProvider()
        supervisor = ConnectorSupervisor(load_config, runners, telemetry=telemetry)
        await supervisor.start(ConnectorKind.TELEGRAM)
        await supervisor.stop(ConnectorKind.TELEGRAM)
        [run] = telemetry.get_spans(SpanKind.CONNECTOR_RUN, connector="telegram")
        assert run.ok
    """

    def __init__(self) -> None:
        self._open: dict[str, Span] = {}
        self.spans: list[Span] = []
        self.metrics: list[MetricPoint] = []

    @property
    def name(self) -> str:
        return "mock"

    @property
    def open_spans(self) -> list[Span]:
        return list(self._open.values())

    def get_spans(self, kind: SpanKind, *, connector: str | None = None) -> list[Span]:
        """Ended spans of ``kind``, optionally narrowed to one connector."""
        return [
            s
            for s in self.spans
            if s.kind == kind and (connector is None or s.connector == connector)
        ]

    def get_metrics(self, name: str) -> list[MetricPoint]:
        return [m for m in self.metrics if m.name == name]

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
        if span is not None:
            span.finish(error, attributes)
            self.spans.append(span)

    def record_metric(
        self,
        name: str,
        value: float = 1,
        *,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        self.metrics.append(MetricPoint(name, value, dict(attributes or {})))

    def reset(self) -> None:
        self._open.clear()
        self.spans.clear()
        self.metrics.clear()
