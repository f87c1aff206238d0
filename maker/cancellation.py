"""Cooperative cancellation token threaded through every pipeline component."""

import asyncio

from maker.errors import Cancelled


class CancelToken:
    """One-shot cancellation signal for a single pipeline invocation.

    Components check the token at every dispatch boundary. Calls that are
    already in flight race against ``wait()`` and abort when it fires.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str = "Cancelled by operator"

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str | None = None) -> None:
        """Signal cancellation. Repeated calls are no-ops."""
        if self._event.is_set():
            return
        if reason:
            self.reason = reason
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise Cancelled(self.reason)

    async def wait(self) -> None:
        await self._event.wait()
