"""Size-bounded JSON request body reader."""

from __future__ import annotations

import json
from typing import Any

import aiohttp
from aiohttp import web

from gatewaykit.core.errors import format_error
from gatewaykit.models.hook import Invalid, Normalized, NormalizeResult

PAYLOAD_TOO_LARGE = "payload too large"

_CHUNK_SIZE = 64 * 1024


async def read_json_body(request: web.BaseRequest, max_bytes: int) -> NormalizeResult[Any]:
    """Read and decode a JSON request body of at most ``max_bytes``.

    A declared ``Content-Length`` above the limit is rejected before any
    byte is read; otherwise the stream is consumed in chunks and reading
    stops as soon as the limit is crossed. An empty body decodes to ``{}``.

    Returns:
        ``Normalized`` with the decoded value, or ``Invalid`` whose error is
        ``"payload too large"`` for oversized bodies and the decoder
        message for malformed or too deeply nested ones.
    """
    declared = request.content_length
    if declared is not None and declared > max_bytes:
        return Invalid(PAYLOAD_TOO_LARGE)

    buf = bytearray()
    try:
        async for chunk in request.content.iter_chunked(_CHUNK_SIZE):
            buf.extend(chunk)
            if len(buf) > max_bytes:
                return Invalid(PAYLOAD_TOO_LARGE)
    except (aiohttp.ClientError, OSError) as exc:
        return Invalid(format_error(exc))

    if not bytes(buf).strip():
        return Normalized({})
    try:
        return Normalized(json.loads(bytes(buf).decode("utf-8")))
    except (ValueError, RecursionError) as exc:
        return Invalid(str(exc) or type(exc).__name__)
