"""Shared-secret token extraction and verification for webhook requests."""

from __future__ import annotations

import hmac

from aiohttp import web

TOKEN_HEADER = "X-Gateway-Token"
TOKEN_QUERY_PARAM = "token"


def extract_hook_token(request: web.BaseRequest) -> str | None:
    """Return the token a request presents, or None when it carries none.

    Headers take precedence over the query string: an ``Authorization:
    Bearer <token>`` header first, then ``X-Gateway-Token``, then the
    ``?token=`` query parameter.
    """
    auth = request.headers.get("Authorization", "").strip()
    if auth.lower().startswith("bearer "):
        token = auth[7:].strip()
        if token:
            return token

    header_token = request.headers.get(TOKEN_HEADER, "").strip()
    if header_token:
        return header_token

    query_token = request.query.get(TOKEN_QUERY_PARAM, "").strip()
    return query_token or None


def verify_hook_token(presented: str | None, expected: str) -> bool:
    """Constant-time comparison of a presented token against the secret."""
    if not presented or not expected:
        return False
    return hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))
