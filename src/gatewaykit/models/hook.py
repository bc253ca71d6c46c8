"""Hook action models and validation result tags."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from gatewaykit.models.enums import DeliveryChannel, WakeMode


class WakeAction(BaseModel):
    """Rouse an idle agent session."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["wake"] = "wake"
    text: str
    mode: WakeMode = WakeMode.NOW


class AgentAction(BaseModel):
    """Run an agent task and optionally deliver the result over a channel."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["agent"] = "agent"
    message: str
    name: str = "Hook"
    wake_mode: WakeMode = WakeMode.NOW
    session_key: str
    deliver: bool = False
    channel: DeliveryChannel = DeliveryChannel.LAST
    to: str | None = None
    thinking: str | None = None
    timeout_seconds: int | None = None


HookAction = Annotated[WakeAction | AgentAction, Field(discriminator="kind")]


@dataclass(frozen=True, slots=True)
class Normalized[T]:
    """Successful validation carrying the coerced value."""

    value: T
    ok: Literal[True] = True


@dataclass(frozen=True, slots=True)
class Invalid:
    """Failed validation with a human-readable reason."""

    error: str
    ok: Literal[False] = False


type NormalizeResult[T] = Normalized[T] | Invalid


# -- Mapping engine results --


class MappedWake(BaseModel):
    """Wake action as produced by a mapping engine, before canonicalization."""

    kind: Literal["wake"] = "wake"
    text: str
    mode: WakeMode = WakeMode.NOW


class MappedAgent(BaseModel):
    """Agent action as produced by a mapping engine.

    Optional fields are filled with gateway defaults when the action is
    translated into an :class:`AgentAction`.
    """

    kind: Literal["agent"] = "agent"
    message: str
    name: str | None = None
    wake_mode: WakeMode = WakeMode.NOW
    session_key: str | None = None
    deliver: bool | None = None
    channel: DeliveryChannel | None = None
    to: str | None = None
    thinking: str | None = None
    timeout_seconds: int | None = None


MappedAction = Annotated[MappedWake | MappedAgent, Field(discriminator="kind")]


@dataclass(frozen=True, slots=True)
class MappingMatched:
    """A rule matched. ``action`` is None when the rule chose to do nothing."""

    action: MappedWake | MappedAgent | None
    rule_id: str | None = None
    ok: Literal[True] = True


type MappingResult = MappingMatched | Invalid


@dataclass(frozen=True, slots=True)
class HookRequestContext:
    """Inputs handed to a mapping engine for one webhook request.

    Attributes:
        payload: Parsed JSON object (``{}`` for empty or non-object bodies).
        headers: Header names lower-cased, repeated values joined by ``", "``.
        query: Query-string parameters (last value wins).
        path: Sub-path below the hook base path, without leading slashes.
        url: Full request URL as a string.
    """

    payload: dict[str, Any]
    headers: dict[str, str]
    query: dict[str, str]
    path: str
    url: str
