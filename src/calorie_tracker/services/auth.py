"""Session status provider consumed by the sync loop."""

from collections.abc import Callable
from dataclasses import dataclass, field

from calorie_tracker.domain.sync import AuthStatus

SessionListener = Callable[[AuthStatus, str | None], None]


@dataclass
class SessionProvider:
    """Exposes authentication status and notifies subscribers of changes."""

    status: AuthStatus = AuthStatus.LOADING
    user_id: str | None = None
    _listeners: list[SessionListener] = field(default_factory=list)

    @property
    def is_authenticated(self) -> bool:
        return self.status is AuthStatus.AUTHENTICATED and self.user_id is not None

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def sign_in(self, user_id: str) -> None:
        """Mark the session authenticated for a user."""
        self.status = AuthStatus.AUTHENTICATED
        self.user_id = user_id
        self._notify()

    def sign_out(self) -> None:
        """Mark the session unauthenticated."""
        self.status = AuthStatus.UNAUTHENTICATED
        self.user_id = None
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self.status, self.user_id)
