"""Domain models for remote synchronisation state."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from calorie_tracker.domain.nutrition import NutritionDocument


class AuthStatus(StrEnum):
    """Authentication status reported by the session provider."""

    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


class SyncStatus(StrEnum):
    """Logical state of the sync loop."""

    IDLE = "idle"
    SYNCING = "syncing"
    SYNCED = "synced"


@dataclass(frozen=True)
class SyncSnapshot:
    """Read-only view of the sync loop for status display."""

    status: SyncStatus
    last_synced_at: datetime | None = None
    error: str | None = None
    fetch_count: int = 0


@dataclass(frozen=True)
class FetchResult:
    """Outcome of a remote fetch."""

    has_updates: bool
    last_sync: datetime | None
    document: NutritionDocument | None = None


@dataclass(frozen=True)
class MergeOutcome:
    """Which date buckets took the remote version and which stayed local."""

    remote_applied: tuple[str, ...] = ()
    local_kept: tuple[str, ...] = ()
    goals_from_remote: bool = False
