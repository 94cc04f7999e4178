"""Cooperative cancellation for git executions and file tails.

typegit.cancel
~~~~~~~~~~~~~~

A :class:`CancelToken` is a one-shot flag shared between the caller and any
number of in-flight operations. Triggering it is fire-and-forget: every
registered callback runs once, synchronously, in registration order.

Examples
--------
>>> token = CancelToken()
>>> calls = []
>>> remove = token.add_callback(lambda: calls.append("stop"))
>>> token.cancelled
False
>>> token.cancel()
>>> token.cancel()
>>> calls
['stop']
>>> token.cancelled
True
"""

from __future__ import annotations

import asyncio
import logging
import typing as t

if t.TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class CancelToken:
    """One-shot cancellation flag with callbacks."""

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: str | None = None
        self._callbacks: list[Callable[[], None]] = []
        self._event: asyncio.Event | None = None

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "active"
        return f"{self.__class__.__name__}({state})"

    @property
    def cancelled(self) -> bool:
        """Return True once :meth:`cancel` has been called."""
        return self._cancelled

    @property
    def reason(self) -> str | None:
        """Return the reason passed to :meth:`cancel`, if any."""
        return self._reason

    def cancel(self, reason: str | None = None) -> None:
        """Trigger the token. Later calls are no-ops."""
        if self._cancelled:
            return
        self._cancelled = True
        self._reason = reason
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("cancel callback failed")
        if self._event is not None:
            self._event.set()

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register *callback* to run on cancellation.

        A callback added to an already cancelled token runs immediately.

        Returns
        -------
        Callable
            Function that unregisters the callback.
        """
        if self._cancelled:
            callback()
            return lambda: None
        self._callbacks.append(callback)

        def remove() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return remove

    async def wait(self) -> None:
        """Wait until the token is triggered."""
        if self._cancelled:
            return
        if self._event is None:
            self._event = asyncio.Event()
        await self._event.wait()

    def cancel_after(self, delay: float) -> asyncio.TimerHandle:
        """Schedule :meth:`cancel` in *delay* seconds on the running loop.

        There is no timeout inside typegit itself; this is the caller side
        timer driving the token.
        """
        loop = asyncio.get_running_loop()
        return loop.call_later(delay, self.cancel, f"timed out after {delay}s")
