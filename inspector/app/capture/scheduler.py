"""
Frame schedulers.

The capture loop never sleeps or recurses on its own. It asks a
scheduler for the next frame callback, one at a time, and the scheduler
decides when that callback runs. Cancelling drops the pending callback.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional, Protocol

FrameCallback = Callable[[], None]


class FrameScheduler(Protocol):
    def request_frame(self, callback: FrameCallback) -> None:
        """Run callback once, on the next frame. Replaces any pending one."""
        ...

    def cancel(self) -> None:
        ...


class AsyncioFrameScheduler:
    """
    Redraw-cadence scheduler on the running asyncio event loop.

    Callbacks run on the loop thread, so the capture loop, decoder and
    orchestrator share one thread and need no locks.
    """

    def __init__(
        self,
        interval: float,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self._interval = interval
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None

    def request_frame(self, callback: FrameCallback) -> None:
        self.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(self._interval, self._fire, callback)

    def _fire(self, callback: FrameCallback) -> None:
        self._handle = None
        callback()

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class ManualFrameScheduler:
    """
    Scheduler driven by explicit advance() calls.

    Used in tests and headless simulations to step the capture loop one
    frame at a time.
    """

    def __init__(self) -> None:
        self._pending: Optional[FrameCallback] = None
        self.requests = 0

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def request_frame(self, callback: FrameCallback) -> None:
        self.requests += 1
        self._pending = callback

    def cancel(self) -> None:
        self._pending = None

    def advance(self, frames: int = 1) -> int:
        """Run up to `frames` pending callbacks. Returns how many ran."""
        ran = 0
        for _ in range(frames):
            callback, self._pending = self._pending, None
            if callback is None:
                break
            callback()
            ran += 1
        return ran
