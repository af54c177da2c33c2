"""
ResettableTimer — one re-armable timer on the asyncio loop.

Both the debounce and the inactivity concerns of a session use this class,
so there is exactly one way a timer is armed, re-armed and cleared.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable


class ResettableTimer:
    """
    A single pending callback that can be pushed back or cancelled.

    Usage::

        timer = ResettableTimer(on_fire)
        timer.arm(1.0)   # fires in 1 s
        timer.arm(1.0)   # ...now 1 s from here instead
        timer.cancel()   # never fires

    Must be armed from the event loop thread.
    """

    def __init__(
        self,
        callback: Callable[[], None],
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._callback = callback
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None

    @property
    def armed(self) -> bool:
        return self._handle is not None

    def arm(self, delay_s: float) -> None:
        """Fire the callback *delay_s* seconds from now, replacing any pending fire."""
        self.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(delay_s, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._callback()
