"""Mapping engine interface, default template engine and dispatcher."""

from __future__ import annotations

import importlib
import inspect
import json
import logging
import re
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum, unique
from typing import Any

from pydantic import ValidationError

from gatewaykit.core.errors import format_error
from gatewaykit.hooks.normalize import new_session_key
from gatewaykit.models.config import HookMappingRule
from gatewaykit.models.enums import DeliveryChannel, MappingActionKind
from gatewaykit.models.hook import (
    AgentAction,
    HookRequestContext,
    Invalid,
    MappedAgent,
    MappedWake,
    MappingMatched,
    MappingResult,
    WakeAction,
)
from gatewaykit.telemetry.base import Attr, SpanKind, TelemetryProvider
from gatewaykit.telemetry.noop import NoopTelemetryProvider

logger = logging.getLogger("gatewaykit.hooks")

_TEMPLATE_RE = re.compile(r"\{\{\s*([^}]+?)\s*\}\}")


class MappingEngine(ABC):
    """Translates an arbitrary webhook into a wake or agent action.

    The gateway consults the engine once per request that does not hit a
    built-in route. The engine may evaluate any number of rules; the
    gateway only interprets its result:

    * ``None``: no rule matched (the request ends in ``404``).
    * :class:`Invalid`: a rule matched but the request is unusable (``400``).
    * :class:`MappingMatched` with ``action=None``: matched, nothing to do
      (``204``).
    * :class:`MappingMatched` with an action: dispatched like a built-in hook.

    Exceptions are caught by :class:`MappingDispatcher` and reported as ``500``.
    """

    @abstractmethod
    async def apply(
        self,
        rules: Sequence[HookMappingRule],
        ctx: HookRequestContext,
    ) -> MappingResult | None: ...


def _lookup(scope: Mapping[str, Any], expr: str) -> Any:
    current: Any = scope
    for part in expr.split("."):
        if isinstance(current, Mapping):
            current = current.get(part)
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            current = current[index] if index < len(current) else None
        else:
            return None
        if current is None:
            return None
    return current


def render_template(template: str, ctx: HookRequestContext) -> str:
    """Substitute ``{{payload.a.b}}``-style placeholders from the request.

    Missing values render as an empty string; objects and lists render as
    compact JSON.
    """
    scope = {
        "payload": ctx.payload,
        "headers": ctx.headers,
        "query": ctx.query,
        "path": ctx.path,
        "url": ctx.url,
    }

    def replace(match: re.Match[str]) -> str:
        value = _lookup(scope, match.group(1))
        if value is None:
            return ""
        if isinstance(value, dict | list):
            return json.dumps(value, separators=(",", ":"))
        return str(value)

    return _TEMPLATE_RE.sub(replace, template)


def load_transform(ref: str) -> Callable[..., Any]:
    """Import a ``module:attr`` (or ``module.attr``) callable reference."""
    module_name, sep, attr = ref.partition(":")
    if not sep:
        module_name, _, attr = ref.rpartition(".")
    if not module_name or not attr:
        raise ValueError(f"Invalid transform reference: {ref!r}")
    fn = getattr(importlib.import_module(module_name), attr)
    if not callable(fn):
        raise TypeError(f"Transform {ref!r} is not callable")
    return fn


def _validation_message(exc: ValidationError) -> str:
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ()))
    detail = f"{field}: {first['msg']}" if field else first["msg"]
    return f"invalid hook mapping: {detail}"


class TemplateMappingEngine(MappingEngine):
    """Rule-based engine: the first rule whose ``match`` fits wins.

    A rule matches when its ``match.path`` equals the hook sub-path and its
    ``match.source`` equals ``payload["source"]`` (unset conditions match
    anything). The action is built from the rule's templates, then the
    optional ``transform`` callable may veto it (return ``None``) or
    override fields (return a dict).
    """

    def __init__(self) -> None:
        self._transforms: dict[str, Callable[..., Any]] = {}

    async def apply(
        self,
        rules: Sequence[HookMappingRule],
        ctx: HookRequestContext,
    ) -> MappingResult | None:
        for rule in rules:
            if self._matches(rule, ctx):
                return await self._build(rule, ctx)
        return None

    @staticmethod
    def _matches(rule: HookMappingRule, ctx: HookRequestContext) -> bool:
        if rule.match is None:
            return True
        if rule.match.path is not None and rule.match.path.strip("/") != ctx.path:
            return False
        if rule.match.source is not None and ctx.payload.get("source") != rule.match.source:
            return False
        return True

    async def _build(self, rule: HookMappingRule, ctx: HookRequestContext) -> MappingResult:
        fields = self._base_fields(rule, ctx)

        if rule.transform:
            transform = self._transforms.get(rule.transform)
            if transform is None:
                transform = load_transform(rule.transform)
                self._transforms[rule.transform] = transform
            override = transform(ctx)
            if inspect.isawaitable(override):
                override = await override
            if override is None:
                return MappingMatched(action=None, rule_id=rule.id)
            if not isinstance(override, Mapping):
                raise TypeError(
                    f"Transform {rule.transform!r} returned {type(override).__name__}, "
                    "expected a mapping or None"
                )
            fields.update({k: v for k, v in override.items() if k != "kind"})

        if rule.action == MappingActionKind.WAKE:
            text = str(fields.get("text") or "").strip()
            if not text:
                return Invalid("hook mapping requires text")
            fields["text"] = text
            model: type[MappedWake] | type[MappedAgent] = MappedWake
        else:
            message = str(fields.get("message") or "").strip()
            if not message:
                return Invalid("hook mapping requires message")
            fields["message"] = message
            model = MappedAgent

        try:
            action = model.model_validate(fields)
        except ValidationError as exc:
            return Invalid(_validation_message(exc))
        return MappingMatched(action=action, rule_id=rule.id)

    @staticmethod
    def _base_fields(rule: HookMappingRule, ctx: HookRequestContext) -> dict[str, Any]:
        def render(template: str | None) -> str | None:
            if template is None:
                return None
            return render_template(template, ctx).strip() or None

        if rule.action == MappingActionKind.WAKE:
            return {
                "kind": "wake",
                "text": render(rule.text_template),
                "mode": rule.wake_mode,
            }
        return {
            "kind": "agent",
            "message": render(rule.message_template),
            "name": render(rule.name),
            "wake_mode": rule.wake_mode,
            "session_key": render(rule.session_key),
            "deliver": rule.deliver,
            "channel": rule.channel,
            "to": render(rule.to),
            "thinking": rule.thinking,
            "timeout_seconds": rule.timeout_seconds,
        }


@unique
class MappingStatus(StrEnum):
    NO_MATCH = "no_match"
    REJECTED = "rejected"
    NO_ACTION = "no_action"
    ACTION = "action"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class MappingOutcome:
    """Result of dispatching one request through the mapping engine."""

    status: MappingStatus
    action: WakeAction | AgentAction | None = None
    error: str | None = None
    rule_id: str | None = None


class MappingDispatcher:
    """Consults the mapping engine once per request and canonicalizes the result.

    Engine exceptions never escape: they are logged and reported as
    :attr:`MappingStatus.FAILED`.
    """

    def __init__(
        self,
        rules: Sequence[HookMappingRule],
        engine: MappingEngine | None = None,
        *,
        id_factory: Callable[[], Any] = uuid.uuid4,
        telemetry: TelemetryProvider | None = None,
    ) -> None:
        self._rules = tuple(rules)
        self._engine = engine or TemplateMappingEngine()
        self._id_factory = id_factory
        self._telemetry = telemetry or NoopTelemetryProvider()

    @property
    def rules(self) -> tuple[HookMappingRule, ...]:
        return self._rules

    async def dispatch(self, ctx: HookRequestContext) -> MappingOutcome:
        if not self._rules:
            return MappingOutcome(MappingStatus.NO_MATCH)

        span_id = self._telemetry.start_span(
            SpanKind.HOOK_MAPPING,
            "hook.mapping",
            attributes={Attr.HOOK_ROUTE: ctx.path},
        )
        try:
            result = await self._engine.apply(self._rules, ctx)
            outcome = self._translate(result)
        except Exception as exc:
            error = format_error(exc)
            logger.warning("hook mapping failed: %s", error, extra={"hook_path": ctx.path})
            self._telemetry.end_span(span_id, error=error)
            return MappingOutcome(MappingStatus.FAILED, error="hook mapping failed")

        self._telemetry.end_span(
            span_id,
            attributes={Attr.HOOK_STATUS: str(outcome.status), Attr.HOOK_RULE_ID: outcome.rule_id},
        )
        return outcome

    def _translate(self, result: MappingResult | None) -> MappingOutcome:
        match result:
            case None:
                return MappingOutcome(MappingStatus.NO_MATCH)
            case Invalid(error=error):
                return MappingOutcome(MappingStatus.REJECTED, error=error)
            case MappingMatched(action=None, rule_id=rule_id):
                return MappingOutcome(MappingStatus.NO_ACTION, rule_id=rule_id)
            case MappingMatched(action=MappedWake() as wake, rule_id=rule_id):
                return MappingOutcome(
                    MappingStatus.ACTION,
                    action=WakeAction(text=wake.text, mode=wake.mode),
                    rule_id=rule_id,
                )
            case MappingMatched(action=MappedAgent() as agent, rule_id=rule_id):
                return MappingOutcome(
                    MappingStatus.ACTION,
                    action=AgentAction(
                        message=agent.message,
                        name=agent.name or "Hook",
                        wake_mode=agent.wake_mode,
                        session_key=agent.session_key or new_session_key(self._id_factory),
                        deliver=agent.deliver is True,
                        channel=agent.channel or DeliveryChannel.LAST,
                        to=agent.to,
                        thinking=agent.thinking,
                        timeout_seconds=agent.timeout_seconds,
                    ),
                    rule_id=rule_id,
                )
        raise TypeError(f"Unexpected mapping result: {result!r}")
