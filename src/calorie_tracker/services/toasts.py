"""Toast notification queue with auto-dismiss timers."""

import itertools
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import Protocol

from calorie_tracker.domain.toasts import Toast, ToastVariant
from calorie_tracker.domain.validation import validate_changes
from calorie_tracker.services.scheduling import Scheduler, TimerHandle

TOAST_LIMIT = 1
DEFAULT_DURATION_SECONDS = 4.0

ToastListener = Callable[[list[Toast]], None]

_logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Anything that can show a toast."""

    def push(
        self,
        title: str,
        description: str | None = None,
        variant: ToastVariant = ToastVariant.DEFAULT,
        duration: float | None = None,
    ) -> object:
        """Show a toast."""


@dataclass(frozen=True)
class ToastHandle:
    """Returned by ``ToastQueue.push`` to control one toast."""

    id: str
    queue: "ToastQueue"

    def dismiss(self) -> None:
        self.queue.dismiss(self.id)

    def update(self, **changes: object) -> None:
        self.queue.update(self.id, **changes)


@dataclass
class ToastQueue:
    """Holds active toasts; only the newest one is shown at a time.

    Dismissal is two-phase: a toast is first marked closed so the UI can
    animate it out, then evicted after its duration elapses.
    """

    scheduler: Scheduler
    default_duration: float = DEFAULT_DURATION_SECONDS
    limit: int = TOAST_LIMIT
    _toasts: list[Toast] = field(default_factory=list)
    _listeners: list[ToastListener] = field(default_factory=list)
    _dismiss_timers: dict[str, TimerHandle] = field(default_factory=dict)
    _remove_timers: dict[str, TimerHandle] = field(default_factory=dict)
    _ids: itertools.count = field(default_factory=lambda: itertools.count(1))

    @property
    def toasts(self) -> list[Toast]:
        """All toasts still in the active set, including closing ones."""
        return list(self._toasts)

    @property
    def visible(self) -> list[Toast]:
        """Toasts currently shown."""
        return [toast for toast in self._toasts if toast.open]

    def push(
        self,
        title: str,
        description: str | None = None,
        variant: ToastVariant = ToastVariant.DEFAULT,
        duration: float | None = None,
    ) -> ToastHandle:
        """Show a new toast, dismissing whatever is visible."""
        toast_id = str(next(self._ids))
        for toast in self.visible:
            self._dismiss_one(toast.id)
        toast = Toast(
            id=toast_id,
            title=title,
            description=description,
            variant=variant,
            open=True,
            duration=duration,
        )
        self._toasts.append(toast)
        self._enforce_limit()
        effective = duration or self.default_duration
        if not math.isinf(effective):
            self._dismiss_timers[toast_id] = self.scheduler.call_later(
                effective, lambda: self._dismiss_one(toast_id)
            )
        self._notify()
        return ToastHandle(id=toast_id, queue=self)

    def error(
        self, title: str, description: str | None = None, duration: float | None = None
    ) -> ToastHandle:
        """Show a destructive toast."""
        return self.push(title, description, ToastVariant.DESTRUCTIVE, duration)

    def update(self, toast_id: str, **changes: object) -> None:
        """Replace display fields of an active toast; unknown ids are ignored."""
        changes.pop("id", None)
        validate_changes(Toast, changes, "toast")
        for index, toast in enumerate(self._toasts):
            if toast.id == toast_id:
                self._toasts[index] = replace(toast, **changes)
                self._notify()
                return

    def dismiss(self, toast_id: str | None = None) -> None:
        """Close one toast, or every toast when no id is given."""
        if toast_id is None:
            for toast in list(self._toasts):
                self._dismiss_one(toast.id)
            return
        self._dismiss_one(toast_id)

    def subscribe(self, listener: ToastListener) -> Callable[[], None]:
        """Register a listener called with the toast list on every change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        """Cancel all pending timers."""
        for handle in [*self._dismiss_timers.values(), *self._remove_timers.values()]:
            handle.cancel()
        self._dismiss_timers.clear()
        self._remove_timers.clear()

    def _dismiss_one(self, toast_id: str) -> None:
        index = self._index_of(toast_id)
        if index is None:
            return
        toast = self._toasts[index]
        if not toast.open:
            return
        timer = self._dismiss_timers.pop(toast_id, None)
        if timer is not None:
            timer.cancel()
        self._toasts[index] = replace(toast, open=False)
        delay = toast.duration or self.default_duration
        if math.isinf(delay):
            delay = self.default_duration
        self._remove_timers[toast_id] = self.scheduler.call_later(
            delay, lambda: self._remove(toast_id)
        )
        self._notify()

    def _remove(self, toast_id: str) -> None:
        self._remove_timers.pop(toast_id, None)
        timer = self._dismiss_timers.pop(toast_id, None)
        if timer is not None:
            timer.cancel()
        index = self._index_of(toast_id)
        if index is None:
            return
        del self._toasts[index]
        self._notify()

    def _enforce_limit(self) -> None:
        open_toasts = self.visible
        for toast in open_toasts[: max(len(open_toasts) - self.limit, 0)]:
            self._dismiss_one(toast.id)

    def _index_of(self, toast_id: str) -> int | None:
        for index, toast in enumerate(self._toasts):
            if toast.id == toast_id:
                return index
        return None

    def _notify(self) -> None:
        snapshot = self.toasts
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                _logger.exception("Toast listener failed")
