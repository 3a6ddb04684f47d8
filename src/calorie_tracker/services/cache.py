"""Expiring cache persisted through local key-value storage."""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Generic, Protocol, TypeVar

from calorie_tracker.adapters.key_value_storage import KeyValueStorage
from calorie_tracker.errors import StorageQuotaExceededError
from calorie_tracker.services.clock import Clock, utc_now

CACHE_PREFIX = "calorie-app-cache:"
IMAGE_CACHE_PREFIX = "img:"
BACKUP_TIME_KEY = "last-backup-time"
DEFAULT_TTL_SECONDS = 7 * 24 * 3600
QUOTA_EVICTION_COUNT = 10

T = TypeVar("T")

_logger = logging.getLogger(__name__)


class Cache(Protocol):
    """Cache interface for simple key-value data."""

    def get(self, key: str) -> object | None:
        """Return a cached value if present and not expired."""

    def set(self, key: str, value: object, ttl_seconds: float) -> None:
        """Store a cached value with a TTL in seconds."""


@dataclass(frozen=True)
class CacheItem(Generic[T]):
    """Envelope stored for every cached payload."""

    data: T
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def to_json(self) -> str:
        return json.dumps(
            {
                "data": self.data,
                "created_at": self.created_at.isoformat(),
                "expires_at": self.expires_at.isoformat(),
            }
        )

    @classmethod
    def from_json(cls, raw: str) -> "CacheItem[object]":
        payload = json.loads(raw)
        return cls(
            data=payload["data"],
            created_at=datetime.fromisoformat(payload["created_at"]),
            expires_at=datetime.fromisoformat(payload["expires_at"]),
        )


@dataclass
class PersistentCache(Cache):
    """Two-level cache: process memory in front of persistent storage.

    Payloads must be JSON-serialisable. Storage failures never propagate;
    a failed write only means a later cache miss.
    """

    storage: KeyValueStorage
    clock: Clock = utc_now
    prefix: str = CACHE_PREFIX
    _memory: dict[str, CacheItem[object]] = field(default_factory=dict)

    def get(self, key: str) -> object | None:
        """Return the payload if present and unexpired, evicting stale entries."""
        full_key = self._full_key(key)
        now = self.clock()
        item = self._memory.get(full_key)
        if item is not None:
            if not item.is_expired(now):
                return item.data
            self._memory.pop(full_key, None)

        raw = self._read(full_key)
        if raw is None:
            return None
        try:
            item = CacheItem.from_json(raw)
        except (ValueError, KeyError, TypeError):
            self._remove_stored(full_key)
            return None
        if item.is_expired(now):
            self._remove_stored(full_key)
            return None
        self._memory[full_key] = item
        return item.data

    def set(
        self, key: str, value: object, ttl_seconds: float = DEFAULT_TTL_SECONDS
    ) -> None:
        """Store a payload that expires after ``ttl_seconds``."""
        full_key = self._full_key(key)
        now = self.clock()
        item = CacheItem(
            data=value,
            created_at=now,
            expires_at=now + timedelta(seconds=ttl_seconds),
        )
        self._memory[full_key] = item
        try:
            serialized = item.to_json()
        except (TypeError, ValueError):
            _logger.warning("Cache value for %s is not serialisable", key)
            return
        try:
            self.storage.set_item(full_key, serialized)
        except OSError:
            _logger.exception("Failed to save %s to cache", key)
        except StorageQuotaExceededError:
            _logger.warning("Cache storage full writing %s, evicting old entries", key)
            self.clear_old()
            try:
                self.storage.set_item(full_key, serialized)
            except StorageQuotaExceededError:
                _logger.exception("Failed to save %s to cache after cleanup", key)

    def remove(self, key: str) -> None:
        """Drop a key from both layers."""
        full_key = self._full_key(key)
        self._memory.pop(full_key, None)
        self._remove_stored(full_key)

    def clear_expired(self) -> int:
        """Evict every expired entry and return how many were removed."""
        now = self.clock()
        for full_key in [k for k, v in self._memory.items() if v.is_expired(now)]:
            self._memory.pop(full_key, None)
        removed = 0
        for full_key, item in self._stored_items():
            if item is None or item.is_expired(now):
                self._remove_stored(full_key)
                removed += 1
        return removed

    def clear_old(self, count: int = QUOTA_EVICTION_COUNT) -> None:
        """Evict the ``count`` entries closest to expiry to free space."""
        entries: list[tuple[datetime, str]] = []
        for full_key, item in self._stored_items():
            if item is None:
                self._remove_stored(full_key)
                continue
            entries.append((item.expires_at, full_key))
        entries.sort()
        for _, full_key in entries[:count]:
            self._remove_stored(full_key)
            self._memory.pop(full_key, None)

    def clear_all(self) -> None:
        """Remove every cache entry, used on logout."""
        self._memory.clear()
        for full_key in self._own_keys():
            self._remove_stored(full_key)

    def save_image(
        self, post_id: str, image_url: str, ttl_seconds: float = DEFAULT_TTL_SECONDS
    ) -> None:
        """Cache an image URL for a post."""
        if not post_id or not image_url:
            return
        self.set(f"{IMAGE_CACHE_PREFIX}{post_id}", image_url, ttl_seconds)

    def get_image(self, post_id: str) -> str | None:
        """Return a cached image URL for a post."""
        if not post_id:
            return None
        cached = self.get(f"{IMAGE_CACHE_PREFIX}{post_id}")
        return cached if isinstance(cached, str) else None

    def save_last_backup_time(self, moment: datetime) -> None:
        """Record when data was last backed up; never expires."""
        try:
            self.storage.set_item(self._full_key(BACKUP_TIME_KEY), moment.isoformat())
        except StorageQuotaExceededError:
            _logger.exception("Failed to save backup time")

    def get_last_backup_time(self) -> datetime | None:
        """Return when data was last backed up."""
        raw = self._read(self._full_key(BACKUP_TIME_KEY))
        if raw is None:
            return None
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            return None

    def _full_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def _own_keys(self) -> list[str]:
        return [k for k in self.storage.keys() if k.startswith(self.prefix)]

    def _stored_items(self) -> list[tuple[str, CacheItem[object] | None]]:
        backup_key = self._full_key(BACKUP_TIME_KEY)
        items: list[tuple[str, CacheItem[object] | None]] = []
        for full_key in self._own_keys():
            if full_key == backup_key:
                continue
            raw = self._read(full_key)
            if raw is None:
                continue
            try:
                items.append((full_key, CacheItem.from_json(raw)))
            except (ValueError, KeyError, TypeError):
                items.append((full_key, None))
        return items

    def _read(self, full_key: str) -> str | None:
        try:
            return self.storage.get_item(full_key)
        except OSError:
            _logger.exception("Failed to read %s from cache storage", full_key)
            return None

    def _remove_stored(self, full_key: str) -> None:
        try:
            self.storage.remove_item(full_key)
        except OSError:
            _logger.exception("Failed to remove %s from cache storage", full_key)
