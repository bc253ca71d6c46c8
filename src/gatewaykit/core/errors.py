"""Gateway exceptions and user-facing error formatting."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any


class GatewayError(Exception):
    """Base exception for all gateway errors."""


class ConnectorNotFoundError(GatewayError):
    """Raised when a connector kind is not known to the supervisor."""


def _field(err: Any, name: str) -> Any:
    if isinstance(err, Mapping):
        return err.get(name)
    return getattr(err, name, None)


def _textual(value: Any) -> str | None:
    # bool is an int subclass but never a meaningful status or code
    if isinstance(value, bool):
        return None
    if isinstance(value, str | int):
        return str(value)
    return None


def format_error(err: object) -> str:
    """Render an arbitrary failure as a non-empty, human-readable string.

    Resolution order:

    1. Exceptions render their message (or the class name when empty).
    2. Plain strings are returned as-is.
    3. Values carrying ``status`` and/or ``code`` (attribute or mapping key)
       render as ``"<status> <code>"``, omitting whichever is absent.
    4. JSON-serializable values are dumped with indentation.
    5. Anything else falls back to ``str()``.
    """
    if isinstance(err, BaseException):
        message = str(err)
        return message if message else type(err).__name__
    if isinstance(err, str):
        return err

    status = _textual(_field(err, "status"))
    code = _textual(_field(err, "code"))
    if status or code:
        return " ".join(part for part in (status, code) if part)

    try:
        return json.dumps(err, indent=2)
    except (TypeError, ValueError):
        return str(err)
