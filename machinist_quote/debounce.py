"""
Debounce primitive: lets a rapidly changing value settle before it is used.

Each push cancels the pending timer and arms a new one, so only the last
value pushed inside the window ever reaches the callback. Timers live on the
running asyncio loop; push() must be called from that loop.
"""

import asyncio
from typing import Any, Callable, Optional


class Debouncer:
    """
    Usage:
        debouncer = Debouncer(0.75, on_settled)
        debouncer.push(options)   # re-arms the timer
        debouncer.cancel()        # teardown: the callback never fires
    """

    def __init__(self, delay: float, callback: Callable[[Any], None]):
        if delay < 0:
            raise ValueError("Debounce delay must be >= 0")
        self.delay = delay
        self._callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        """True while a pushed value is waiting to settle."""
        return self._handle is not None

    def push(self, value: Any) -> None:
        """Replace whatever is pending with value and restart the delay."""
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire, value)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, value: Any) -> None:
        self._handle = None
        self._callback(value)
