"""Persisted gate state and the local key/value storage it lives in."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Protocol

from ...infra.logging import get_logger
from ..diary.models import StoreCredentials

__all__ = [
    "AccessState",
    "JsonFileStorage",
    "KeyValueStorage",
    "MemoryStorage",
    "clear_store_credentials",
    "load_access_state",
    "load_store_credentials",
    "save_access_state",
    "save_store_credentials",
]

logger = get_logger(__name__)

FAILURE_COUNT_KEY = "diary_pwd_error_count"
LOCK_UNTIL_KEY = "diary_pwd_lock_until"
VERIFIED_KEY = "diary_auth"
CREDENTIALS_KEY = "diary_store_credentials"


@dataclass
class AccessState:
    failure_count: int = 0
    lock_until: Optional[datetime] = None
    verified: bool = False

    def is_locked(self, now: datetime) -> bool:
        return self.lock_until is not None and now < self.lock_until


class KeyValueStorage(Protocol):  # pragma: no cover - interface only
    """String key/value storage that survives restarts on one device."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStorage(KeyValueStorage):
    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileStorage(KeyValueStorage):
    """Key/value storage backed by one JSON document on disk."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()
        self._data = self._read()

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._write()

    def remove(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._write()

    def _read(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            loaded = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("access_storage_corrupt", extra={"path": str(self._path)})
            return {}
        if not isinstance(loaded, dict):
            return {}
        return {str(key): str(value) for key, value in loaded.items()}

    def _write(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(self._data, indent=2), encoding="utf-8")
        tmp_path.replace(self._path)


def load_access_state(storage: KeyValueStorage) -> AccessState:
    """Read ``AccessState``; unreadable values fall back to their defaults."""

    raw_count = storage.get(FAILURE_COUNT_KEY)
    try:
        failure_count = max(int(raw_count), 0) if raw_count else 0
    except ValueError:
        failure_count = 0
    return AccessState(
        failure_count=failure_count,
        lock_until=_parse_timestamp(storage.get(LOCK_UNTIL_KEY)),
        verified=storage.get(VERIFIED_KEY) == "true",
    )


def save_access_state(storage: KeyValueStorage, state: AccessState) -> None:
    storage.set(FAILURE_COUNT_KEY, str(state.failure_count))
    if state.lock_until is None:
        storage.remove(LOCK_UNTIL_KEY)
    else:
        storage.set(LOCK_UNTIL_KEY, state.lock_until.isoformat())
    if state.verified:
        storage.set(VERIFIED_KEY, "true")
    else:
        storage.remove(VERIFIED_KEY)


def load_store_credentials(storage: KeyValueStorage) -> Optional[StoreCredentials]:
    raw = storage.get(CREDENTIALS_KEY)
    if not raw:
        return None
    try:
        data = json.loads(raw)
        return StoreCredentials(url=str(data["url"]), key=str(data["key"]))
    except (json.JSONDecodeError, KeyError, TypeError):
        return None


def save_store_credentials(
    storage: KeyValueStorage, credentials: StoreCredentials
) -> None:
    storage.set(
        CREDENTIALS_KEY, json.dumps({"url": credentials.url, "key": credentials.key})
    )


def clear_store_credentials(storage: KeyValueStorage) -> None:
    storage.remove(CREDENTIALS_KEY)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
