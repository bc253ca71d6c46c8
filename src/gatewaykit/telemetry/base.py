"""Span and metric primitives shared by every telemetry provider."""

from __future__ import annotations

import time
import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import StrEnum, unique
from typing import Any


@unique
class SpanKind(StrEnum):
    CONNECTOR_RUN = "connector.run"
    CONNECTOR_PROBE = "connector.probe"
    HOOK_REQUEST = "hook.request"
    HOOK_MAPPING = "hook.mapping"
    HTTP_REQUEST = "http.request"
    CUSTOM = "custom"


class Attr:
    """Attribute keys used on gateway spans and metrics."""

    CONNECTOR = "connector"
    CONNECTOR_LABEL = "connector.label"

    HOOK_ROUTE = "hook.route"
    HOOK_STATUS = "hook.status"
    HOOK_RULE_ID = "hook.rule_id"

    HTTP_METHOD = "http.method"
    HTTP_PATH = "http.path"
    HTTP_STATUS = "http.status"

    DURATION_MS = "duration_ms"


@dataclass(slots=True)
class Span:
    """One timed operation: a connector run, a probe or a request.

    ``error`` is set when the operation failed. Times come from
    :func:`time.monotonic`.
    """

    kind: SpanKind = SpanKind.CUSTOM
    name: str = ""
    connector: str | None = None
    parent_id: str | None = None
    attributes: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:16])
    started_at: float = field(default_factory=time.monotonic)
    ended_at: float | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def ended(self) -> bool:
        return self.ended_at is not None

    @property
    def duration_ms(self) -> float | None:
        if self.ended_at is None:
            return None
        return (self.ended_at - self.started_at) * 1000

    def finish(self, error: str | None, attributes: dict[str, Any] | None) -> None:
        self.ended_at = time.monotonic()
        self.error = error
        if attributes:
            self.attributes.update(attributes)


class TelemetryProvider(ABC):
    """Sink for the supervisor's and the ingress path's spans and metrics.

    Span ids are opaque strings. Ending an unknown or already-ended span is
    a no-op, so callers never need to track whether a provider recorded
    the start.
    """

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def start_span(
        self,
        kind: SpanKind,
        name: str,
        *,
        connector: str | None = None,
        parent_id: str | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> str:
        """Open a span and return its id."""

    @abstractmethod
    def end_span(
        self,
        span_id: str,
        *,
        error: str | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        """Close a span, marking it failed when ``error`` is given."""

    @abstractmethod
    def record_metric(
        self,
        name: str,
        value: float = 1,
        *,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        """Record one metric point; the default value counts an occurrence."""

    def close(self) -> None:  # noqa: B027
        """Flush and release provider resources."""

    @contextmanager
    def span(self, kind: SpanKind, name: str, **kwargs: Any) -> Iterator[str]:
        """Open a span for the duration of a ``with`` block.

        An exception escaping the block ends the span with its message and
        is re-raised.
        """
        span_id = self.start_span(kind, name, **kwargs)
        try:
            yield span_id
        except Exception as exc:
            self.end_span(span_id, error=str(exc) or type(exc).__name__)
            raise
        self.end_span(span_id)
