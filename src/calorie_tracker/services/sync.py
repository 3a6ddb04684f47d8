"""Periodic reconciliation between the local store and the remote API."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from http import HTTPStatus

from calorie_tracker.adapters.nutrition_api_client import NutritionApiClient
from calorie_tracker.domain.sync import AuthStatus, SyncSnapshot, SyncStatus
from calorie_tracker.errors import NutritionApiError
from calorie_tracker.services.auth import SessionProvider
from calorie_tracker.services.clock import Clock, utc_now
from calorie_tracker.services.nutrition_store import NutritionStore
from calorie_tracker.services.scheduling import Scheduler, TimerHandle

DEFAULT_INTERVAL_SECONDS = 30.0
SESSION_EXPIRED_MESSAGE = "Session expired"

SyncListener = Callable[[SyncSnapshot], None]

_logger = logging.getLogger(__name__)


@dataclass
class SyncService:
    """Sync loop: idle until signed in, then syncing and synced.

    At most one sync runs at a time; a tick that arrives while one is in
    flight is dropped rather than queued. Failures are recorded on the
    snapshot and never raised to callers.
    """

    store: NutritionStore
    client: NutritionApiClient
    scheduler: Scheduler
    interval_seconds: float = DEFAULT_INTERVAL_SECONDS
    clock: Clock = utc_now
    status: SyncStatus = SyncStatus.IDLE
    error: str | None = None
    last_synced_at: datetime | None = None
    fetch_count: int = 0
    _user_id: str | None = None
    _server_cursor: datetime | None = None
    _interval: TimerHandle | None = None
    _task: "asyncio.Task[None] | None" = None
    _in_flight: bool = False
    _generation: int = 0
    _unsubscribe: Callable[[], None] | None = None
    _listeners: list[SyncListener] = field(default_factory=list)

    def snapshot(self) -> SyncSnapshot:
        return SyncSnapshot(
            status=self.status,
            last_synced_at=self.last_synced_at,
            error=self.error,
            fetch_count=self.fetch_count,
        )

    def subscribe(self, listener: SyncListener) -> Callable[[], None]:
        """Register a listener for status changes."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def attach(self, session: SessionProvider) -> None:
        """Follow a session provider, starting or stopping with it."""
        self.detach()
        self._unsubscribe = session.subscribe(self._on_session_change)
        if session.is_authenticated and session.user_id is not None:
            self.start(session.user_id)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def start(self, user_id: str) -> None:
        """Begin syncing for a user: sync now, then on every interval."""
        if self._user_id == user_id and self._interval is not None:
            return
        self.stop()
        self._user_id = user_id
        if not _loop_running():
            _logger.warning(
                "No running event loop, sync for user %s starts on sync_now()", user_id
            )
            return
        self._schedule()

    def _schedule(self) -> None:
        self._interval = self.scheduler.call_every(self.interval_seconds, self.tick)
        _logger.info("Sync started for user %s", self._user_id)
        self.trigger()

    def stop(self) -> None:
        """Return to idle, cancelling the interval and any in-flight sync."""
        self._generation += 1
        if self._interval is not None:
            self._interval.cancel()
            self._interval = None
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._in_flight = False
        was_running = self._user_id is not None
        self._user_id = None
        self._server_cursor = None
        self.status = SyncStatus.IDLE
        self.error = None
        if was_running:
            _logger.info("Sync stopped")
            self._notify()

    def tick(self) -> bool:
        """Interval callback; returns whether a sync was started."""
        return self.trigger()

    def on_online(self) -> bool:
        """Connectivity restored: sync immediately regardless of the timer."""
        if self._user_id is None:
            return False
        _logger.info("Back online, syncing")
        if self._interval is None and _loop_running():
            self._schedule()
            return self._in_flight
        return self.trigger()

    def trigger(self) -> bool:
        """Start a sync unless signed out or one is already running."""
        if self._user_id is None:
            return False
        if self._in_flight:
            _logger.debug("Sync already in flight, skipping")
            return False
        if not _loop_running():
            _logger.warning("No running event loop, skipping sync")
            return False
        loop = asyncio.get_running_loop()
        self._in_flight = True
        self.status = SyncStatus.SYNCING
        self._notify()
        self._task = loop.create_task(self._run(self._user_id, self._generation))
        return True

    async def sync_now(self) -> SyncSnapshot:
        """Run a sync, or join the one in flight, and wait for it."""
        if self._user_id is not None and self._interval is None:
            self._schedule()
        else:
            self.trigger()
        await self.wait_idle()
        return self.snapshot()

    async def wait_idle(self) -> None:
        """Wait for the in-flight sync, if any, to finish."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait({task})

    async def close(self) -> None:
        self.detach()
        self.stop()

    def _on_session_change(self, status: AuthStatus, user_id: str | None) -> None:
        if status is AuthStatus.AUTHENTICATED and user_id is not None:
            self.start(user_id)
        elif status is AuthStatus.UNAUTHENTICATED:
            self.stop()

    async def _run(self, user_id: str, generation: int) -> None:
        try:
            self.fetch_count += 1
            result = await self.client.fetch(user_id, self._server_cursor)
            if generation != self._generation:
                return
            cursor = result.last_sync
            if result.has_updates and result.document is not None:
                outcome = self.store.merge_remote(result.document)
                _logger.info(
                    "Merged remote state: %s remote, %s local",
                    len(outcome.remote_applied),
                    len(outcome.local_kept),
                )
            if self.store.dirty:
                revision = self.store.revision
                pushed_at = await self.client.save(user_id, self.store.document())
                if generation != self._generation:
                    return
                cursor = pushed_at or cursor
                self.store.mark_synced(pushed_at or self.clock(), revision)
            self._server_cursor = cursor
            self.last_synced_at = self.clock()
            self.error = None
        except NutritionApiError as exc:
            if generation != self._generation:
                return
            if exc.status_code == HTTPStatus.UNAUTHORIZED:
                self.error = SESSION_EXPIRED_MESSAGE
            else:
                self.error = str(exc)
            _logger.warning("Nutrition sync failed: %s", exc)
        except Exception:
            if generation != self._generation:
                return
            self.error = "Unexpected sync failure"
            _logger.exception("Nutrition sync failed unexpectedly")
        finally:
            if generation == self._generation:
                self._in_flight = False
                self.status = SyncStatus.SYNCED
                self._notify()

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                _logger.exception("Sync listener failed")


def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True
