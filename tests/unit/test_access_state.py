"""Tests for AccessState persistence and the local storage backends."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from backend.app.domain.access.state import (
    AccessState,
    JsonFileStorage,
    MemoryStorage,
    clear_store_credentials,
    load_access_state,
    load_store_credentials,
    save_access_state,
    save_store_credentials,
)
from backend.app.domain.diary.models import StoreCredentials

pytestmark = [pytest.mark.access]

LOCK_UNTIL = datetime(2025, 1, 1, 13, 0, tzinfo=timezone.utc)


def test_empty_storage_loads_default_state():
    state = load_access_state(MemoryStorage())

    assert state == AccessState(failure_count=0, lock_until=None, verified=False)


def test_state_round_trips_under_fixed_keys():
    storage = MemoryStorage()

    save_access_state(
        storage, AccessState(failure_count=3, lock_until=LOCK_UNTIL, verified=False)
    )

    assert storage.data == {
        "diary_pwd_error_count": "3",
        "diary_pwd_lock_until": LOCK_UNTIL.isoformat(),
    }
    assert load_access_state(storage) == AccessState(
        failure_count=3, lock_until=LOCK_UNTIL, verified=False
    )


def test_clearing_lock_and_verified_removes_keys():
    storage = MemoryStorage()
    save_access_state(
        storage, AccessState(failure_count=2, lock_until=LOCK_UNTIL, verified=True)
    )
    assert storage.data["diary_auth"] == "true"

    save_access_state(storage, AccessState())

    assert storage.data == {"diary_pwd_error_count": "0"}


def test_unreadable_values_fall_back_to_defaults():
    storage = MemoryStorage(
        {
            "diary_pwd_error_count": "many",
            "diary_pwd_lock_until": "tomorrow",
            "diary_auth": "yes",
        }
    )

    assert load_access_state(storage) == AccessState()


def test_offset_less_lock_timestamp_is_read_as_utc():
    storage = MemoryStorage({"diary_pwd_lock_until": "2025-01-01T13:00:00"})

    assert load_access_state(storage).lock_until == LOCK_UNTIL


def test_is_locked_compares_against_now():
    state = AccessState(failure_count=3, lock_until=LOCK_UNTIL)

    assert state.is_locked(datetime(2025, 1, 1, 12, 59, tzinfo=timezone.utc))
    assert not state.is_locked(LOCK_UNTIL)
    assert not AccessState().is_locked(LOCK_UNTIL)


def test_json_file_storage_survives_a_restart(tmp_path):
    path = tmp_path / "nested" / "state.json"
    first = JsonFileStorage(path)
    save_access_state(first, AccessState(failure_count=1, verified=True))

    second = JsonFileStorage(path)

    assert load_access_state(second) == AccessState(failure_count=1, verified=True)
    assert json.loads(path.read_text(encoding="utf-8"))["diary_auth"] == "true"
    assert not (tmp_path / "nested" / "state.json.tmp").exists()


def test_json_file_storage_ignores_corrupt_file(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("{not json", encoding="utf-8")

    storage = JsonFileStorage(path)

    assert storage.get("diary_auth") is None
    storage.set("diary_auth", "true")
    assert json.loads(path.read_text(encoding="utf-8")) == {"diary_auth": "true"}


def test_store_credentials_round_trip_and_clear():
    storage = MemoryStorage()
    credentials = StoreCredentials(url="https://store.example", key="k-1")

    save_store_credentials(storage, credentials)
    assert load_store_credentials(storage) == credentials

    clear_store_credentials(storage)
    assert load_store_credentials(storage) is None


def test_malformed_store_credentials_are_ignored():
    storage = MemoryStorage({"diary_store_credentials": '{"url": "only-url"}'})

    assert load_store_credentials(storage) is None
