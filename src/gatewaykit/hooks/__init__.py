"""Webhook ingress: token auth, body reader, normalizers and mapping engine."""

from gatewaykit.hooks.auth import extract_hook_token, verify_hook_token
from gatewaykit.hooks.body import PAYLOAD_TOO_LARGE, read_json_body
from gatewaykit.hooks.gateway import AgentDispatcher, HookGateway, WakeDispatcher
from gatewaykit.hooks.mapping import (
    MappingDispatcher,
    MappingEngine,
    MappingOutcome,
    MappingStatus,
    TemplateMappingEngine,
    load_transform,
    render_template,
)
from gatewaykit.hooks.normalize import (
    normalize_agent_payload,
    normalize_hook_headers,
    normalize_wake_payload,
)

__all__ = [
    "PAYLOAD_TOO_LARGE",
    "AgentDispatcher",
    "HookGateway",
    "MappingDispatcher",
    "MappingEngine",
    "MappingOutcome",
    "MappingStatus",
    "TemplateMappingEngine",
    "WakeDispatcher",
    "extract_hook_token",
    "load_transform",
    "normalize_agent_payload",
    "normalize_hook_headers",
    "normalize_wake_payload",
    "read_json_body",
    "render_template",
    "verify_hook_token",
]
