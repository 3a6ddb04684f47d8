"""Timer scheduling with cancellable handles."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol


class TimerHandle(Protocol):
    """Handle to a pending timer."""

    def cancel(self) -> None:
        """Stop the timer from firing."""


class Scheduler(Protocol):
    """Schedules callbacks on the owning event loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay`` seconds."""

    def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` every ``interval`` seconds until cancelled."""


@dataclass
class _RepeatingTimer:
    loop: asyncio.AbstractEventLoop
    interval: float
    callback: Callable[[], None]
    _handle: asyncio.TimerHandle | None = None
    _cancelled: bool = False

    def start(self) -> "_RepeatingTimer":
        self._handle = self.loop.call_later(self.interval, self._fire)
        return self

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        if self._cancelled:
            return
        self._handle = self.loop.call_later(self.interval, self._fire)
        self.callback()


@dataclass
class AsyncioScheduler(Scheduler):
    """Scheduler backed by the running asyncio loop."""

    loop: asyncio.AbstractEventLoop | None = field(default=None)

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return self._get_loop().call_later(delay, callback)

    def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        return _RepeatingTimer(self._get_loop(), interval, callback).start()

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        return self.loop or asyncio.get_running_loop()
