"""Collapse bursts of change notifications into one settled event."""

from __future__ import annotations

import asyncio
from collections.abc import Callable


class Debouncer:
    """Fire ``callback`` once ``quiet_period`` seconds pass without a notify.

    Runs on the current asyncio event loop; every ``notify`` restarts the
    timer. ``flush`` fires a pending callback immediately.
    """

    def __init__(self, quiet_period: float, callback: Callable[[], None]) -> None:
        if quiet_period < 0:
            raise ValueError("quiet_period must not be negative")
        self.quiet_period = quiet_period
        self._callback = callback
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def notify(self) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.quiet_period, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def flush(self) -> bool:
        """Fire now if a settle is pending; returns whether it fired."""
        if self._handle is None:
            return False
        self.cancel()
        self._callback()
        return True

    def _fire(self) -> None:
        self._handle = None
        self._callback()
