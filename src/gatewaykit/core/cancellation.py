"""Cooperative cancellation signal handed to connector tasks."""

from __future__ import annotations

import asyncio


class CancellationToken:
    """One-shot stop signal backed by :class:`asyncio.Event`.

    Signalling does not interrupt the connector; the connector is expected
    to observe the token (poll :attr:`cancelled` or await :meth:`wait`)
    and return promptly.

    Example::

        async def run(options, token, sink):
            async with connect(options) as conn:
                while not token.cancelled:
                    await conn.poll(timeout=1.0)
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        """Why cancellation was requested, if a reason was given."""
        return self._reason

    def cancel(self, reason: str | None = None) -> None:
        """Request cancellation. Later calls keep the first reason."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    async def wait(self) -> None:
        """Block until cancellation is requested."""
        await self._event.wait()
