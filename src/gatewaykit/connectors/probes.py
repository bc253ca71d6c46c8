"""Bot identity probes for the Telegram and Discord connectors."""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from gatewaykit.connectors.base import BotIdentity, ProbeResult

logger = logging.getLogger("gatewaykit.probes")

TELEGRAM_API_BASE = "https://api.telegram.org"
DISCORD_API_BASE = "https://discord.com/api/v10"


def _elapsed_ms(t0: float) -> float:
    return (time.monotonic() - t0) * 1000


async def _get_json(
    url: str,
    *,
    headers: dict[str, str] | None,
    timeout_ms: int,
    proxy: str | None,
    client: httpx.AsyncClient | None,
) -> httpx.Response:
    timeout = max(timeout_ms, 1) / 1000
    if client is not None:
        return await client.get(url, headers=headers, timeout=timeout)
    async with httpx.AsyncClient(timeout=timeout, proxy=proxy) as owned:
        return await owned.get(url, headers=headers)


def _json_body(resp: httpx.Response) -> dict[str, Any] | None:
    try:
        data = resp.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _identity(data: dict[str, Any]) -> BotIdentity:
    raw_id = data.get("id")
    if isinstance(raw_id, bool) or not isinstance(raw_id, str | int):
        raw_id = None
    return BotIdentity(
        id=str(raw_id) if raw_id is not None else None,
        username=_text(data.get("username")),
    )


def _invalid_response(resp: httpx.Response, t0: float) -> ProbeResult:
    return ProbeResult(
        ok=False, status=resp.status_code, error="invalid response", elapsed_ms=_elapsed_ms(t0)
    )


async def probe_telegram(
    token: str,
    timeout_ms: int,
    proxy: str | None = None,
    *,
    client: httpx.AsyncClient | None = None,
) -> ProbeResult:
    """Call ``getMe`` and return the bot identity.

    Args:
        token: Bot API token.
        timeout_ms: Overall request timeout in milliseconds.
        proxy: Optional proxy URL for the request.
        client: Reuse an existing client instead of opening one.
    """
    t0 = time.monotonic()
    url = f"{TELEGRAM_API_BASE}/bot{token}/getMe"
    try:
        resp = await _get_json(
            url, headers=None, timeout_ms=timeout_ms, proxy=proxy, client=client
        )
    except httpx.TimeoutException:
        return ProbeResult(ok=False, error="timeout", elapsed_ms=_elapsed_ms(t0))
    except httpx.HTTPError as exc:
        logger.debug("Telegram probe failed: %s", exc)
        return ProbeResult(
            ok=False, error=str(exc) or type(exc).__name__, elapsed_ms=_elapsed_ms(t0)
        )

    data = _json_body(resp) or {}
    if resp.status_code != 200 or data.get("ok") is not True:
        return ProbeResult(
            ok=False,
            status=resp.status_code,
            error=_text(data.get("description")) or f"getMe failed ({resp.status_code})",
            elapsed_ms=_elapsed_ms(t0),
        )

    result = data.get("result")
    if not isinstance(result, dict):
        return _invalid_response(resp, t0)
    return ProbeResult(
        ok=True, status=resp.status_code, elapsed_ms=_elapsed_ms(t0), bot=_identity(result)
    )


async def probe_discord(
    token: str,
    timeout_ms: int,
    *,
    client: httpx.AsyncClient | None = None,
) -> ProbeResult:
    """Fetch ``/users/@me`` with the bot token and return the bot identity."""
    t0 = time.monotonic()
    url = f"{DISCORD_API_BASE}/users/@me"
    headers = {"Authorization": f"Bot {token}"}
    try:
        resp = await _get_json(
            url, headers=headers, timeout_ms=timeout_ms, proxy=None, client=client
        )
    except httpx.TimeoutException:
        return ProbeResult(ok=False, error="timeout", elapsed_ms=_elapsed_ms(t0))
    except httpx.HTTPError as exc:
        logger.debug("Discord probe failed: %s", exc)
        return ProbeResult(
            ok=False, error=str(exc) or type(exc).__name__, elapsed_ms=_elapsed_ms(t0)
        )

    data = _json_body(resp)
    if resp.status_code != 200:
        return ProbeResult(
            ok=False,
            status=resp.status_code,
            error=_text((data or {}).get("message")) or f"getMe failed ({resp.status_code})",
            elapsed_ms=_elapsed_ms(t0),
        )

    if data is None:
        return _invalid_response(resp, t0)
    return ProbeResult(
        ok=True, status=resp.status_code, elapsed_ms=_elapsed_ms(t0), bot=_identity(data)
    )
