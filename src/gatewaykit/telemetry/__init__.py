"""Pluggable spans and metrics for connector runs and ingress requests."""

from gatewaykit.telemetry.base import Attr, Span, SpanKind, TelemetryProvider
from gatewaykit.telemetry.console import ConsoleTelemetryProvider
from gatewaykit.telemetry.mock import MetricPoint, MockTelemetryProvider
from gatewaykit.telemetry.noop import NoopTelemetryProvider

__all__ = [
    "Attr",
    "ConsoleTelemetryProvider",
    "MetricPoint",
    "MockTelemetryProvider",
    "NoopTelemetryProvider",
    "Span",
    "SpanKind",
    "TelemetryProvider",
]
