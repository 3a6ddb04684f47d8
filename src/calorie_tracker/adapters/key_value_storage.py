"""Local key-value string storage with a byte quota."""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from calorie_tracker.errors import StorageQuotaExceededError

_logger = logging.getLogger(__name__)


class KeyValueStorage(Protocol):
    """Interface for persistent string storage."""

    def get_item(self, key: str) -> str | None:
        """Return the stored string for a key, if present."""

    def set_item(self, key: str, value: str) -> None:
        """Store a string, raising StorageQuotaExceededError when full."""

    def remove_item(self, key: str) -> None:
        """Remove a key if present."""

    def keys(self) -> list[str]:
        """Return every stored key."""


def _entry_size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


@dataclass
class InMemoryKeyValueStorage(KeyValueStorage):
    """Quota-limited storage held in process memory."""

    quota_bytes: int | None = None
    _items: dict[str, str] = field(default_factory=dict)

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        _check_quota(self._items, key, value, self.quota_bytes)
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)

    def used_bytes(self) -> int:
        """Return the bytes currently in use."""
        return sum(_entry_size(k, v) for k, v in self._items.items())


@dataclass
class FileKeyValueStorage(KeyValueStorage):
    """Quota-limited storage persisted as a single JSON file."""

    path: Path
    quota_bytes: int | None = None
    _items: dict[str, str] = field(default_factory=dict)

    @classmethod
    def open(
        cls, path: str | Path, quota_bytes: int | None = None
    ) -> "FileKeyValueStorage":
        """Load storage from disk, starting empty if the file is missing or corrupt."""
        resolved = Path(path)
        items: dict[str, str] = {}
        if resolved.exists():
            try:
                raw = json.loads(resolved.read_text(encoding="utf-8"))
            except (OSError, ValueError):
                _logger.warning("Discarding unreadable storage file %s", resolved)
            else:
                if isinstance(raw, dict):
                    items = {str(k): str(v) for k, v in raw.items()}
        return cls(path=resolved, quota_bytes=quota_bytes, _items=items)

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        _check_quota(self._items, key, value, self.quota_bytes)
        self._items[key] = value
        self._flush()

    def remove_item(self, key: str) -> None:
        if self._items.pop(key, None) is not None:
            self._flush()

    def keys(self) -> list[str]:
        return list(self._items)

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(self._items), encoding="utf-8")
        tmp_path.replace(self.path)


def _check_quota(
    items: dict[str, str], key: str, value: str, quota_bytes: int | None
) -> None:
    if quota_bytes is None:
        return
    used = sum(_entry_size(k, v) for k, v in items.items() if k != key)
    if used + _entry_size(key, value) > quota_bytes:
        raise StorageQuotaExceededError(
            f"Storage quota of {quota_bytes} bytes exceeded writing {key!r}"
        )
